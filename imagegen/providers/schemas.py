"""Provider JSON decoding.

Architectural role:
    Parsing boundary between raw provider JSON and orchestration logic. Every
    queue response is decoded into a tagged job state (`JobHandle`,
    `JobPending`, `JobCompleted`, `JobFailed`); raw dictionaries never leave
    this module.

Shapes (only the fields read below are typed; anything else passes through):
    - Submit: `{request_id, status_url, response_url}`.
    - Status: `{status, queue_position?, logs?, error?}` where status is one of
      `IN_QUEUE`/`QUEUED`, `IN_PROGRESS`, `COMPLETED` (case-insensitive).
    - Result: `{images: [{url, ...}]}` or `{image: {url, ...}}`; the array wins.
    - Upload initiate: `{upload_url, file_url}`.
    - Cloudflare: `{success, result: {image: <base64>}}`.
"""

import base64
import binascii
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, ValidationError


class JobStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


_STATUS_ALIASES = {
    "IN_QUEUE": JobStatus.QUEUED,
    "QUEUED": JobStatus.QUEUED,
    "IN_PROGRESS": JobStatus.IN_PROGRESS,
    "COMPLETED": JobStatus.COMPLETED,
}


class _ProviderModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class QueueSubmitResponse(_ProviderModel):
    request_id: str | None = None
    status_url: str | None = None
    response_url: str | None = None


class QueueStatusResponse(_ProviderModel):
    status: str = ""
    queue_position: int | None = None
    error: Any = None


class ImageRef(_ProviderModel):
    url: str | None = None


class QueueResultResponse(_ProviderModel):
    images: list[ImageRef] | None = None
    image: ImageRef | None = None


class UploadInitiateResponse(_ProviderModel):
    upload_url: str
    file_url: str


class CloudflareResult(_ProviderModel):
    image: str | None = None


class CloudflareEnvelope(_ProviderModel):
    success: bool = False
    result: CloudflareResult | None = None


@dataclass(frozen=True)
class JobHandle:
    """Submitted job: opaque id plus its status and result endpoints."""

    request_id: str
    status_url: str
    response_url: str


@dataclass(frozen=True)
class JobPending:
    status: JobStatus
    queue_position: int | None = None


@dataclass(frozen=True)
class JobCompleted:
    pass


@dataclass(frozen=True)
class JobFailed:
    message: str


SubmitState = Union[JobHandle, JobFailed]
PollState = Union[JobPending, JobCompleted, JobFailed]


def _dump(payload: Any) -> str:
    try:
        return json.dumps(payload)
    except (TypeError, ValueError):
        return repr(payload)


def decode_submit(payload: Any, request_base_url: str | None = None) -> SubmitState:
    """Decode a queue submission response.

    Args:
        payload: Parsed JSON body of a 2xx submit response.
        request_base_url: `<queue>/<model>` prefix used to derive status/result
            endpoints when the provider omits them.

    Returns:
        `JobHandle`, or `JobFailed` when no request id is present.
    """
    try:
        data = QueueSubmitResponse.model_validate(payload)
    except ValidationError:
        return JobFailed(f"No request_id in response: {_dump(payload)}")

    if not data.request_id:
        return JobFailed(f"No request_id in response: {_dump(payload)}")

    status_url = data.status_url
    response_url = data.response_url
    if request_base_url and (not status_url or not response_url):
        request_url = f"{request_base_url.rstrip('/')}/requests/{data.request_id}"
        status_url = status_url or f"{request_url}/status"
        response_url = response_url or request_url

    if not status_url or not response_url:
        return JobFailed(f"Missing status/response URL in response: {_dump(payload)}")

    return JobHandle(data.request_id, status_url, response_url)


def decode_status(payload: Any) -> PollState:
    """Decode one status poll into `JobPending`, `JobCompleted` or `JobFailed`."""
    try:
        data = QueueStatusResponse.model_validate(payload)
    except ValidationError:
        return JobFailed(f"Job failed: malformed status response {_dump(payload)}")

    status = _STATUS_ALIASES.get(data.status.strip().upper())
    if status is JobStatus.COMPLETED:
        return JobCompleted()
    if status is not None:
        return JobPending(status, data.queue_position)
    return JobFailed(f"Job failed: {data.error or data.status}")


def extract_image_url(payload: Any) -> str | None:
    """Return the first image URL of a result payload, checking `images` first."""
    try:
        data = QueueResultResponse.model_validate(payload)
    except ValidationError:
        return None

    if data.images:
        first = data.images[0]
        if first.url:
            return first.url
    if data.image and data.image.url:
        return data.image.url
    return None


def decode_upload_initiate(payload: Any) -> UploadInitiateResponse:
    """Decode an upload-initiate response; raises `ValidationError` if malformed."""
    return UploadInitiateResponse.model_validate(payload)


def decode_cloudflare_image(payload: Any) -> bytes | None:
    """Return decoded image bytes from a Cloudflare envelope, or `None`."""
    try:
        data = CloudflareEnvelope.model_validate(payload)
    except ValidationError:
        return None

    if not data.success or data.result is None or not data.result.image:
        return None
    try:
        return base64.b64decode(data.result.image, validate=True)
    except (binascii.Error, ValueError):
        return None
