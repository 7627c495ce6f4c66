"""Input upload and artifact download for the queue-based provider.

Processing flow:
    Upload:
        1. Pass `http(s)://` inputs through unchanged.
        2. Read the local file fully and content-type it by extension.
        3. POST `{file_name, content_type}` to the storage initiate endpoint.
        4. PUT the raw bytes to the returned `upload_url`.
        5. Return the durable `file_url` and remember it in the metadata cache.
    Download:
        1. GET the result URL.
        2. Fail on non-2xx.
        3. Write the full body to the computed artifact path.

Concurrency:
    `upload_many` issues uploads concurrently and returns URLs in caller order.
    Any single failure aborts the batch.

Error handling strategy:
    Every failure raises `TransferError`. Callers in `core.engine` and
    `providers.queue_client` map it to `GENERIC_PROVIDER_ERROR`; it never crosses
    a provider-call boundary.
"""

import asyncio
import logging
import mimetypes
import os
from typing import Callable
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from imagegen.core.cache import MetadataCache
from imagegen.core.naming import write_artifact
from imagegen.providers.provider_config import PROVIDERS, get_fal_key
from imagegen.providers.schemas import decode_upload_initiate


logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/png"

mimetypes.add_type("image/webp", ".webp")
mimetypes.add_type("image/svg+xml", ".svg")


class TransferError(RuntimeError):
    """Upload or download failure."""


def is_remote_url(path: str) -> bool:
    """Return whether an input reference is already an HTTP(S) URL."""
    try:
        return urlparse(path).scheme in {"http", "https"}
    except ValueError:
        return False


def guess_content_type(path: str) -> str:
    """Content-type a local file by extension, defaulting to PNG."""
    content_type, _ = mimetypes.guess_type(path)
    return content_type or DEFAULT_CONTENT_TYPE


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


class TransferService:
    """Uploads inputs to provider storage and downloads final artifacts."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: MetadataCache | None = None,
        key_provider: Callable[[], str | None] = get_fal_key,
    ) -> None:
        self.client = client
        self.cache = cache
        self.key_provider = key_provider
        self.initiate_url = PROVIDERS["fal"]["upload_initiate_url"]
        self.auth_scheme = PROVIDERS["fal"]["auth_scheme"]

    async def upload(self, path: str) -> str:
        """Return a durable remote URL for a local path or pass a URL through.

        Raises:
            TransferError: Missing credential, unreadable file or non-2xx
                initiate/PUT response.
        """
        if is_remote_url(path):
            return path

        try:
            stat = os.stat(path)
        except OSError as exc:
            raise TransferError(f"Cannot read {path}: {exc}") from exc

        cache_key = f"upload:{os.path.abspath(path)}:{stat.st_size}:{stat.st_mtime_ns}"
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached:
                logger.debug("Reusing uploaded URL for %s", path)
                return cached

        key = self.key_provider()
        if not key:
            raise TransferError("FAL_API_KEY required for file upload")

        try:
            data = await asyncio.to_thread(_read_bytes, path)
        except OSError as exc:
            raise TransferError(f"Cannot read {path}: {exc}") from exc

        content_type = guess_content_type(path)
        file_name = os.path.basename(path) or "image.png"

        try:
            initiate = await self.client.post(
                self.initiate_url,
                headers={
                    "Authorization": f"{self.auth_scheme} {key}",
                    "Accept": "application/json",
                },
                json={"file_name": file_name, "content_type": content_type},
            )
            if not initiate.is_success:
                raise TransferError(f"Upload initiate failed: {initiate.text}")

            target = decode_upload_initiate(initiate.json())

            uploaded = await self.client.put(
                target.upload_url,
                headers={"Content-Type": content_type},
                content=data,
            )
            if not uploaded.is_success:
                raise TransferError(f"Upload failed: {uploaded.status_code}")
        except httpx.HTTPError as exc:
            raise TransferError(f"Upload failed: {exc}") from exc
        except ValidationError as exc:
            raise TransferError(f"Upload initiate returned malformed response: {exc}") from exc
        except ValueError as exc:
            raise TransferError(f"Upload initiate returned invalid JSON: {exc}") from exc

        if self.cache is not None:
            self.cache.set(cache_key, target.file_url)
        return target.file_url

    async def upload_many(self, paths: list[str]) -> list[str]:
        """Upload several inputs concurrently; results follow `paths` order."""
        if not paths:
            return []
        tasks = [asyncio.ensure_future(self.upload(path)) for path in paths]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

    async def download(self, url: str, output_dir: str, filename: str) -> str:
        """Download `url` to `<output_dir>/<filename>` and return the path.

        Raises:
            TransferError: Non-2xx response, transport fault or write failure.
        """
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as exc:
            raise TransferError(f"Failed to download image: {exc}") from exc

        if not response.is_success:
            raise TransferError(f"Failed to download image: {response.reason_phrase}")

        try:
            return await asyncio.to_thread(write_artifact, output_dir, filename, response.content)
        except OSError as exc:
            raise TransferError(f"Failed to write {filename}: {exc}") from exc
