"""Shared fixtures: isolated credentials and a scripted fake queue provider."""

from __future__ import annotations

import json

import httpx
import pytest

from imagegen.providers.provider_config import OrchestratorConfig


QUEUE_URL = "https://queue.fal.run"
INITIATE_URL = "https://rest.alpha.fal.ai/storage/upload/initiate"

CREDENTIAL_VARS = (
    "FAL_KEY",
    "FAL_API_KEY",
    "CLOUDFLARE_ACCOUNT_ID",
    "CLOUDFLARE_API_TOKEN",
)


@pytest.fixture(autouse=True)
def isolated_credentials(monkeypatch, tmp_path):
    """Start every test with only a fake fal.ai key and no key files."""
    for name in CREDENTIAL_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("FAL_KEY", "test-fal-key")
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def output_dir(tmp_path):
    return str(tmp_path / "out")


@pytest.fixture
def config(output_dir):
    return OrchestratorConfig(
        output_dir=output_dir,
        poll_interval_seconds=1.0,
        max_poll_attempts=120,
        timeout_seconds=5,
        cache_size=16,
        telemetry_path=None,
    )


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds):
        sleeps.append(seconds)

    return _sleep


class FakeQueueProvider:
    """Scripted fal.ai queue, storage and CDN behind one `httpx.MockTransport`.

    Args:
        statuses: Status strings (or full status bodies) returned by successive
            polls; the last one repeats once the script runs out.
        result: JSON body of the result endpoint.
        submit: JSON body of the submit response (defaults to a valid job).
        submit_status: HTTP status of the submit response.
        image_bytes: Body served for CDN downloads.
        download_status: HTTP status of CDN downloads.
        results_by_model: Per-model result bodies overriding `result`.
    """

    def __init__(
        self,
        statuses=("IN_QUEUE", "IN_PROGRESS", "COMPLETED"),
        result=None,
        submit=None,
        submit_status=200,
        submit_body=None,
        image_bytes=b"fake-image-bytes",
        download_status=200,
        results_by_model=None,
    ):
        self.statuses = list(statuses)
        self.result = result if result is not None else {"images": [{"url": "https://cdn.test/out/result.jpg"}]}
        self.submit = submit
        self.submit_status = submit_status
        self.submit_body = submit_body
        self.image_bytes = image_bytes
        self.download_status = download_status
        self.results_by_model = results_by_model or {}
        self.requests: list[httpx.Request] = []
        self.submissions: list[tuple[str, dict]] = []
        self.uploads: dict[str, bytes] = {}
        self.poll_count = 0

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method: str, prefix: str = "") -> list[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method and str(request.url).startswith(prefix)
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        if url == INITIATE_URL:
            body = json.loads(request.content)
            name = body["file_name"]
            return httpx.Response(
                200,
                json={
                    "upload_url": f"https://upload.test/put/{name}",
                    "file_url": f"https://cdn.test/files/{name}",
                },
            )

        if url.startswith("https://upload.test/put/"):
            name = url.rsplit("/", 1)[-1]
            self.uploads[name] = request.content
            return httpx.Response(200)

        if url.startswith("https://cdn.test/files/"):
            name = url.rsplit("/", 1)[-1]
            return httpx.Response(200, content=self.uploads[name])

        if url.startswith("https://cdn.test/"):
            return httpx.Response(self.download_status, content=self.image_bytes)

        if request.method == "POST" and url.startswith(QUEUE_URL):
            model = url[len(QUEUE_URL) + 1:]
            self.submissions.append((model, json.loads(request.content)))
            if self.submit_body is not None:
                return httpx.Response(self.submit_status, text=self.submit_body)
            body = self.submit
            if body is None:
                body = {
                    "request_id": "req-1",
                    "status_url": f"{QUEUE_URL}/{model}/requests/req-1/status",
                    "response_url": f"{QUEUE_URL}/{model}/requests/req-1",
                }
            return httpx.Response(self.submit_status, json=body)

        if request.method == "GET" and url.endswith("/status"):
            index = min(self.poll_count, len(self.statuses) - 1)
            self.poll_count += 1
            status = self.statuses[index]
            return httpx.Response(200, json=status if isinstance(status, dict) else {"status": status})

        if request.method == "GET" and url.startswith(QUEUE_URL):
            model = url[len(QUEUE_URL) + 1:].split("/requests/")[0]
            return httpx.Response(200, json=self.results_by_model.get(model, self.result))

        return httpx.Response(404, text=f"unexpected {request.method} {url}")


@pytest.fixture
def fake_queue():
    return FakeQueueProvider
