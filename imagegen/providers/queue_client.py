"""Queue-based provider (fal.ai) job client.

Processing flow:
    1. Submit the payload to `<queue>/<model>`.
    2. Poll the status endpoint once per attempt until `COMPLETED`.
    3. Fetch the result endpoint and extract the first image URL.
    4. Download the image to a freshly named artifact path.

State machine:
    `SUBMITTED -> POLLING -> COMPLETED`, or `FAILED` / `TIMED_OUT`.
    - Non-2xx submit, poll or fetch -> classified failure.
    - 2xx submit without `request_id` -> `GENERIC_PROVIDER_ERROR`, no polling.
    - `IN_QUEUE`/`IN_PROGRESS` -> sleep the fixed interval and poll again.
    - Any other status -> `GENERIC_PROVIDER_ERROR` with the provider message.
    - Attempt ceiling reached while polling -> `JOB_TIMEOUT`; the job is
      abandoned, not retried.
    - Completed without an image URL -> `NO_IMAGE`.

Error handling strategy:
    Failures are returned as `ProviderResult`, never raised. Transport faults,
    invalid JSON and download failures map to `GENERIC_PROVIDER_ERROR`.

Performance characteristics:
    One job per `run` call. The poll loop is a blocking wait with a fixed
    sleep between attempts (120 x 1s by default, about two minutes).
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

import httpx

from imagegen.core.naming import generate_filename, infer_extension
from imagegen.core.types import ErrorCode, ProviderFamily, ProviderResult
from imagegen.providers.errors import classify_fal_error, generic_failure, missing_fal_key
from imagegen.providers.provider_config import PROVIDERS, get_fal_key
from imagegen.providers.schemas import (
    JobCompleted,
    JobFailed,
    JobHandle,
    JobPending,
    decode_status,
    decode_submit,
    extract_image_url,
)
from imagegen.providers.transfer import TransferError, TransferService


logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 1.0
MAX_POLL_ATTEMPTS = 120


class JobState(str, Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class QueueJob:
    """One submit/poll/fetch cycle. Not reusable once terminal."""

    handle: JobHandle
    max_attempts: int = MAX_POLL_ATTEMPTS
    attempts: int = 0
    state: JobState = JobState.SUBMITTED

    @property
    def request_id(self) -> str:
        return self.handle.request_id


class QueueJobClient:
    """Submits, polls and materializes jobs on the queue-based provider."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        transfer: TransferService,
        *,
        key_provider: Callable[[], str | None] = get_fal_key,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        max_poll_attempts: int = MAX_POLL_ATTEMPTS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.transfer = transfer
        self.key_provider = key_provider
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self.sleep = sleep
        self.queue_url = PROVIDERS["fal"]["queue_url"]
        self.auth_scheme = PROVIDERS["fal"]["auth_scheme"]

    async def run(
        self,
        model: str,
        payload: dict,
        output_dir: str,
        filename_hint: str | None = None,
        mode: str | None = None,
        tier: str | None = None,
    ) -> ProviderResult:
        """Run one job to completion and persist its artifact.

        Args:
            model: Provider model identifier.
            payload: Model input (prompt, image URLs, size, ...).
            output_dir: Directory receiving the artifact.
            filename_hint: Content hint for the artifact filename.
            mode: Filename mode segment.
            tier: Filename tier segment.

        Returns:
            `ProviderResult` with the artifact path, or a classified failure.
        """
        key = self.key_provider()
        if not key:
            return missing_fal_key().to_result()

        headers = {"Authorization": f"{self.auth_scheme} {key}"}
        logger.info("Fal.ai: %s...", model)

        try:
            submitted = await self.submit(model, payload, headers)
            if isinstance(submitted, ProviderResult):
                return submitted

            job = submitted
            failure = await self.poll(job, headers)
            if failure is not None:
                return failure

            fetched = await self.fetch(job, headers)
            if isinstance(fetched, ProviderResult):
                return fetched

            ext = infer_extension(fetched)
            filename = generate_filename(filename_hint or "image", ext, mode, tier)
            filepath = await self.transfer.download(fetched, output_dir, filename)
            return ProviderResult.ok(filepath, ProviderFamily.FAL)

        except (httpx.HTTPError, TransferError, ValueError) as exc:
            logger.warning("Fal.ai failed: %s", exc)
            return generic_failure(ProviderFamily.FAL, str(exc))

    async def submit(self, model: str, payload: dict, headers: dict) -> "QueueJob | ProviderResult":
        """POST the payload; returns a `QueueJob` in `SUBMITTED` state or a failure."""
        request_base_url = f"{self.queue_url}/{model}"
        response = await self.client.post(request_base_url, headers=headers, json=payload)

        if not response.is_success:
            return classify_fal_error(response.status_code, response.text).to_result()

        state = decode_submit(response.json(), request_base_url)
        if isinstance(state, JobFailed):
            return generic_failure(ProviderFamily.FAL, state.message)

        logger.info("Queued (%s)...", state.request_id)
        return QueueJob(state, max_attempts=self.max_poll_attempts)

    async def poll(self, job: QueueJob, headers: dict) -> ProviderResult | None:
        """Poll until completion; returns `None` on `COMPLETED` else the failure."""
        job.state = JobState.POLLING

        while job.attempts < job.max_attempts:
            job.attempts += 1
            response = await self.client.get(job.handle.status_url, headers=headers)

            if not response.is_success:
                job.state = JobState.FAILED
                return classify_fal_error(response.status_code, response.text).to_result()

            state = decode_status(response.json())

            if isinstance(state, JobCompleted):
                job.state = JobState.COMPLETED
                return None

            if isinstance(state, JobPending):
                logger.debug(
                    "Job %s %s (attempt %d/%d, position=%s)",
                    job.request_id,
                    state.status.value,
                    job.attempts,
                    job.max_attempts,
                    state.queue_position,
                )
                await self.sleep(self.poll_interval)
                continue

            job.state = JobState.FAILED
            return generic_failure(ProviderFamily.FAL, state.message)

        job.state = JobState.TIMED_OUT
        budget = int(job.max_attempts * self.poll_interval)
        logger.error(
            "Fal.ai job timed out after %d seconds\nFix: Try again or use a faster tier",
            budget,
        )
        return ProviderResult.failure(
            f"Job timed out after {budget}s. Try again or use a faster tier.",
            ErrorCode.JOB_TIMEOUT,
            ProviderFamily.FAL,
        )

    async def fetch(self, job: QueueJob, headers: dict) -> "str | ProviderResult":
        """GET the result endpoint and return the first image URL or a failure."""
        response = await self.client.get(job.handle.response_url, headers=headers)

        if not response.is_success:
            return classify_fal_error(response.status_code, response.text).to_result()

        image_url = extract_image_url(response.json())
        if not image_url:
            logger.error("No image URL in response for job %s", job.request_id)
            return ProviderResult.failure(
                "No image URL in Fal.ai response",
                ErrorCode.NO_IMAGE,
                ProviderFamily.FAL,
            )
        return image_url
