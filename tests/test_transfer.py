"""Tests for input uploads and artifact downloads."""

import json

import httpx
import pytest

from imagegen.core.cache import MetadataCache
from imagegen.providers.transfer import (
    TransferError,
    TransferService,
    guess_content_type,
    is_remote_url,
)


@pytest.fixture
def local_image(tmp_path):
    path = tmp_path / "photo.jpg"
    path.write_bytes(b"\xff\xd8original-jpeg")
    return str(path)


async def test_remote_urls_pass_through(fake_queue):
    provider = fake_queue()
    async with httpx.AsyncClient(transport=provider.transport()) as http:
        url = await TransferService(http).upload("https://example.com/a.png")

    assert url == "https://example.com/a.png"
    assert provider.requests == []


async def test_two_step_upload(fake_queue, local_image):
    provider = fake_queue()
    async with httpx.AsyncClient(transport=provider.transport()) as http:
        url = await TransferService(http).upload(local_image)

    assert url == "https://cdn.test/files/photo.jpg"
    initiate, put = provider.requests
    assert initiate.method == "POST"
    assert initiate.headers["Authorization"] == "Key test-fal-key"
    assert json.loads(initiate.content) == {"file_name": "photo.jpg", "content_type": "image/jpeg"}
    assert put.method == "PUT"
    assert put.headers["Content-Type"] == "image/jpeg"
    assert "Authorization" not in put.headers
    assert provider.uploads["photo.jpg"] == b"\xff\xd8original-jpeg"


async def test_upload_then_download_round_trip(fake_queue, local_image, output_dir):
    provider = fake_queue()
    async with httpx.AsyncClient(transport=provider.transport()) as http:
        transfer = TransferService(http)
        url = await transfer.upload(local_image)
        path = await transfer.download(url, output_dir, "copy.jpg")

    with open(path, "rb") as f:
        assert f.read() == b"\xff\xd8original-jpeg"


async def test_repeat_upload_uses_cache(fake_queue, local_image):
    provider = fake_queue()
    cache = MetadataCache(4)
    async with httpx.AsyncClient(transport=provider.transport()) as http:
        transfer = TransferService(http, cache)
        first = await transfer.upload(local_image)
        second = await transfer.upload(local_image)

    assert first == second
    assert len(provider.calls("POST")) == 1
    assert len(cache) == 1


async def test_upload_many_preserves_caller_order(fake_queue, tmp_path):
    paths = []
    for name in ("primary.png", "ref1.webp", "ref2.png"):
        path = tmp_path / name
        path.write_bytes(name.encode())
        paths.append(str(path))

    provider = fake_queue()
    async with httpx.AsyncClient(transport=provider.transport()) as http:
        urls = await TransferService(http).upload_many([paths[0], "https://x.test/remote.png", *paths[1:]])

    assert urls == [
        "https://cdn.test/files/primary.png",
        "https://x.test/remote.png",
        "https://cdn.test/files/ref1.webp",
        "https://cdn.test/files/ref2.png",
    ]


async def test_any_failed_upload_aborts_batch(fake_queue, local_image, tmp_path):
    provider = fake_queue()
    async with httpx.AsyncClient(transport=provider.transport()) as http:
        with pytest.raises(TransferError):
            await TransferService(http).upload_many([local_image, str(tmp_path / "missing.png")])


async def test_initiate_failure_raises(local_image):
    def handler(request):
        return httpx.Response(500, text="storage down")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        with pytest.raises(TransferError, match="Upload initiate failed: storage down"):
            await TransferService(http).upload(local_image)


async def test_put_failure_raises(local_image):
    def handler(request):
        if request.method == "POST":
            return httpx.Response(200, json={"upload_url": "https://up.test/x", "file_url": "https://cdn.test/x"})
        return httpx.Response(403)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        with pytest.raises(TransferError, match="Upload failed: 403"):
            await TransferService(http).upload(local_image)


async def test_malformed_initiate_response_raises(local_image):
    def handler(request):
        return httpx.Response(200, json={"upload_url": "https://up.test/x"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        with pytest.raises(TransferError, match="malformed"):
            await TransferService(http).upload(local_image)


async def test_upload_without_key_raises(monkeypatch, local_image, fake_queue):
    monkeypatch.delenv("FAL_KEY")
    provider = fake_queue()
    async with httpx.AsyncClient(transport=provider.transport()) as http:
        with pytest.raises(TransferError, match="FAL_API_KEY required"):
            await TransferService(http).upload(local_image)


async def test_download_non_2xx_raises(output_dir):
    def handler(request):
        return httpx.Response(404)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        with pytest.raises(TransferError, match="Failed to download image"):
            await TransferService(http).download("https://cdn.test/a.jpg", output_dir, "a.jpg")


def test_url_and_content_type_helpers():
    assert is_remote_url("https://a/b.png")
    assert is_remote_url("http://a/b.png")
    assert not is_remote_url("/tmp/b.png")
    assert not is_remote_url("file:///tmp/b.png")
    assert guess_content_type("x.webp") == "image/webp"
    assert guess_content_type("x.unknownext") == "image/png"
