"""Free synchronous provider (Cloudflare Workers AI) client.

Processing flow:
    1. Resolve account id and API token.
    2. POST multipart form fields `prompt`, `width`, `height`, `steps` to
       `/accounts/<id>/ai/run/<model>` with a bearer token.
    3. Classify non-2xx responses.
    4. Decode `result.image` (base64) from the JSON envelope.
    5. Persist the PNG artifact.

Scope:
    Only used for `gen` at the `iterate` tier without the text specialist.

Error handling strategy:
    Failures are returned as `ProviderResult`, never raised. Missing credentials
    map to `AUTH_MISSING`; transport faults, envelopes without an image and write
    failures map to `GENERIC_PROVIDER_ERROR`.

Performance characteristics:
    Blocking `requests` call with a single attempt; `core.engine` runs it in a
    worker thread. Without an injected session each call opens and closes its
    own connection, so the client holds no state between calls.
"""

import logging
from datetime import datetime
from typing import Callable

import requests

from imagegen.core.naming import generate_filename, write_artifact
from imagegen.core.tiers import CLOUDFLARE_MODEL
from imagegen.core.types import Mode, ProviderFamily, ProviderResult, Tier
from imagegen.providers.errors import (
    classify_cloudflare_error,
    generic_failure,
    missing_cloudflare_credential,
)
from imagegen.providers.provider_config import PROVIDERS, get_cloudflare_credentials
from imagegen.providers.schemas import decode_cloudflare_image


logger = logging.getLogger(__name__)


class CloudflareClient:
    """Direct-response image generation against Cloudflare Workers AI."""

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float = 120,
        credentials_provider: Callable[[], tuple] = get_cloudflare_credentials,
        model: str = CLOUDFLARE_MODEL,
    ) -> None:
        self.session = session
        self.timeout = timeout
        self.credentials_provider = credentials_provider
        self.model = model
        self.config = PROVIDERS["cloudflare"]

    def generate(
        self,
        prompt: str,
        width: int,
        height: int,
        output_dir: str,
        now: datetime | None = None,
    ) -> ProviderResult:
        """Generate one image and persist it as PNG.

        Args:
            prompt: Generation prompt; also the filename hint.
            width: Output width.
            height: Output height.
            output_dir: Directory receiving the artifact.
            now: Timestamp override for the artifact filename.

        Returns:
            `ProviderResult` tagged with the Cloudflare provider family.
        """
        account_id, api_token = self.credentials_provider()
        if not account_id:
            return missing_cloudflare_credential(self.config["account_env"]).to_result()
        if not api_token:
            return missing_cloudflare_credential(self.config["token_env"]).to_result()

        url = self.config["run_url"].format(account_id=account_id, model=self.model)
        logger.info("Cloudflare: flux-2-klein (FREE)...")

        form = {
            "prompt": (None, prompt),
            "width": (None, str(width)),
            "height": (None, str(height)),
            "steps": (None, str(self.config["steps"])),
        }

        try:
            post = self.session.post if self.session is not None else requests.post
            response = post(
                url,
                headers={"Authorization": f"{self.config['auth_scheme']} {api_token}"},
                files=form,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as err:
            logger.warning("Cloudflare failed: %s", err)
            return generic_failure(ProviderFamily.CLOUDFLARE, str(err))

        if not response.ok:
            return classify_cloudflare_error(response.status_code, response.text).to_result()

        try:
            image = decode_cloudflare_image(response.json())
        except ValueError:
            image = None

        if image is None:
            return generic_failure(ProviderFamily.CLOUDFLARE, "No image in Cloudflare response")

        filename = generate_filename(prompt, "png", Mode.GEN.value, Tier.ITERATE.value, now=now)
        try:
            filepath = write_artifact(output_dir, filename, image)
        except OSError as err:
            logger.warning("Cloudflare failed: %s", err)
            return generic_failure(ProviderFamily.CLOUDFLARE, str(err))

        return ProviderResult.ok(filepath, ProviderFamily.CLOUDFLARE)
