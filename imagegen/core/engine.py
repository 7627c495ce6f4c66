"""Core request orchestration for image generation, editing and utilities.

Architectural role:
    Provides the execution pipeline used by the CLI layer to turn one
    `GenerationRequest` into one persisted artifact (`ProviderResult`).

Control-flow model:
    1. Resolve the provider model and price label via `core.tiers`.
    2. Dispatch by mode (`gen`, `edit`, `upscale`, `rembg`, `svg`).
    3. Upload inputs through `TransferService` (references concurrently).
    4. Run the provider job (`CloudflareClient` or `QueueJobClient`).
    5. Optionally vectorize a generated raster.
    6. Emit telemetry and return the result unchanged to the caller.

Fallback policy (free generation tier only):
    - Cloudflare success -> returned.
    - Cloudflare `QUOTA_EXCEEDED` / `RATE_LIMIT` -> returned immediately, no
      paid fallback.
    - Any other Cloudflare failure -> exactly one fal.ai run with the fastest
      generation model. A failure there is terminal.

Error handling strategy:
    Every failure comes back as a classified `ProviderResult`; nothing is raised
    past a provider call and the process is never terminated here. Upload faults
    are mapped to `GENERIC_PROVIDER_ERROR`.

State:
    The metadata cache and the event sink belong to the orchestrator instance.
    Each `run` opens its own HTTP client and job, and the default
    `CloudflareClient` posts without a shared session, so concurrent runs share
    no mutable state apart from the cache.
"""

import asyncio
import dataclasses
import logging
import os
from typing import Any, Awaitable, Callable

import httpx

from imagegen.core.cache import MetadataCache
from imagegen.core.tiers import ModelSelection, resolve_request
from imagegen.core.types import (
    FREE_TIER_EXHAUSTION_CODES,
    GenerationRequest,
    Mode,
    ProviderFamily,
    ProviderResult,
    Tier,
    outcome_for,
)
from imagegen.providers.errors import generic_failure
from imagegen.providers.provider_config import OrchestratorConfig
from imagegen.providers.queue_client import QueueJobClient
from imagegen.providers.sync_client import CloudflareClient
from imagegen.providers.transfer import TransferError, TransferService
from imagegen.telemetry.events import EventSink, JsonlEventSink, NullEventSink


logger = logging.getLogger(__name__)


class ImageOrchestrator:
    """Runs one image request at a time per call, end to end.

    Args:
        config: Output directory, polling budget and cache size.
        sink: Telemetry sink; defaults to a JSONL sink when
            `config.telemetry_path` is set, else a no-op sink.
        cache: Metadata cache; created empty when omitted.
        transport: Optional httpx transport (used by tests).
        cloudflare: Free-provider client override.
        sleep: Poll sleep coroutine override.
    """

    def __init__(
        self,
        config: OrchestratorConfig | None = None,
        *,
        sink: EventSink | None = None,
        cache: MetadataCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        cloudflare: CloudflareClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = config or OrchestratorConfig()
        if sink is None:
            sink = JsonlEventSink(self.config.telemetry_path) if self.config.telemetry_path else NullEventSink()
        self.sink = sink
        self.cache = cache if cache is not None else MetadataCache(self.config.cache_size)
        self.transport = transport
        self.cloudflare = cloudflare or CloudflareClient(timeout=self.config.timeout_seconds)
        self.sleep = sleep

    def run_sync(self, request: GenerationRequest) -> ProviderResult:
        """Execute `run` synchronously with `asyncio.run`."""
        return asyncio.run(self.run(request))

    async def run(self, request: GenerationRequest) -> ProviderResult:
        """Process one request and return its `ProviderResult`.

        Args:
            request: Normalized request (tier already coerced/escalated).

        Returns:
            Success with the artifact path, or a classified failure.
        """
        selection = resolve_request(request)
        logger.info("[%s] %s", selection.tier_label.upper(), selection.price)
        self._emit(
            "request_started",
            mode=request.mode.value,
            tier=request.tier.value,
            model=selection.model,
            provider=selection.provider.value,
        )

        async with httpx.AsyncClient(
            timeout=self.config.timeout_seconds,
            follow_redirects=True,
            transport=self.transport,
        ) as client:
            transfer = TransferService(client, self.cache)
            queue = QueueJobClient(
                client,
                transfer,
                poll_interval=self.config.poll_interval_seconds,
                max_poll_attempts=self.config.max_poll_attempts,
                sleep=self.sleep,
            )

            if request.mode is Mode.GEN:
                result = await self._generate(request, selection, queue, transfer)
            elif request.mode is Mode.EDIT:
                result = await self._edit(request, selection, queue, transfer)
            elif request.mode is Mode.UPSCALE:
                result = await self._upscale(request, selection, queue, transfer)
            else:
                result = await self._utility(request, selection, queue, transfer)

        if result.success:
            self._emit("request_completed", mode=request.mode.value, file_path=result.file_path)
        else:
            self._emit(
                "request_failed",
                mode=request.mode.value,
                code=result.code.value,
                provider=result.provider.value if result.provider else None,
                outcome=outcome_for(result).value,
            )
        return result

    async def generate_free(
        self,
        request: GenerationRequest,
        selection: ModelSelection,
        queue: QueueJobClient,
    ) -> ProviderResult:
        """Free-tier generation with the one-shot paid fallback.

        Returns:
            Cloudflare result on success or on quota/rate-limit exhaustion,
            otherwise the result of a single fal.ai fallback run.
        """
        result = await asyncio.to_thread(
            self.cloudflare.generate,
            request.prompt,
            request.width,
            request.height,
            self.config.output_dir,
        )

        if result.success or result.code in FREE_TIER_EXHAUSTION_CODES:
            return result

        logger.info("Cloudflare failed (%s), falling back to fal.ai flux-2/flash...", result.code.value)
        self._emit("fallback", source=ProviderFamily.CLOUDFLARE.value, code=result.code.value)

        return await queue.run(
            selection.fallback_model,
            {"prompt": request.prompt, "image_size": _image_size(request)},
            self.config.output_dir,
            request.filename_hint,
            Mode.GEN.value,
            Tier.ITERATE.value,
        )

    async def _generate(
        self,
        request: GenerationRequest,
        selection: ModelSelection,
        queue: QueueJobClient,
        transfer: TransferService,
    ) -> ProviderResult:
        if selection.provider is ProviderFamily.CLOUDFLARE:
            result = await self.generate_free(request, selection, queue)
        else:
            payload: dict[str, Any] = {"prompt": request.prompt}
            # Text specialists pick their own canvas.
            if not request.text:
                payload["image_size"] = _image_size(request)
            result = await queue.run(
                selection.model,
                payload,
                self.config.output_dir,
                request.filename_hint,
                Mode.GEN.value,
                selection.tier_label,
            )

        if result.success and request.svg:
            return await self._vectorize_raster(request, result, queue, transfer)
        return result

    async def _vectorize_raster(
        self,
        request: GenerationRequest,
        raster: ProviderResult,
        queue: QueueJobClient,
        transfer: TransferService,
    ) -> ProviderResult:
        """Vectorize a generated raster; the raster result survives any failure."""
        vector = resolve_request(GenerationRequest(mode=Mode.SVG, image=raster.file_path))
        logger.info("Vectorizing to SVG... %s", vector.price)

        try:
            image_url = await transfer.upload(raster.file_path)
        except TransferError as exc:
            logger.warning("Vectorize upload failed, keeping raster only: %s", exc)
            return raster

        result = await queue.run(
            vector.model,
            {"image_url": image_url},
            self.config.output_dir,
            f"{request.filename_hint}_vector",
            Mode.SVG.value,
            vector.tier_label,
        )
        if not result.success:
            logger.warning("Vectorize failed, keeping raster only: %s", result.error)
            return raster
        return dataclasses.replace(raster, vector_path=result.file_path)

    async def _edit(
        self,
        request: GenerationRequest,
        selection: ModelSelection,
        queue: QueueJobClient,
        transfer: TransferService,
    ) -> ProviderResult:
        if not request.image:
            return generic_failure(ProviderFamily.FAL, "Source image is required for edit")

        inputs = [request.image, *request.references]
        if request.mask:
            inputs.append(request.mask)

        try:
            urls = await transfer.upload_many(inputs)
        except TransferError as exc:
            logger.warning("Upload failed: %s", exc)
            return generic_failure(ProviderFamily.FAL, str(exc))

        payload: dict[str, Any] = {
            "prompt": request.prompt,
            "image_size": _image_size(request),
        }
        if request.mask:
            payload["mask_url"] = urls.pop()
        # Primary image first, then references in caller order.
        payload["image_urls"] = urls

        return await queue.run(
            selection.model,
            payload,
            self.config.output_dir,
            request.filename_hint,
            Mode.EDIT.value,
            selection.tier_label,
        )

    async def _upscale(
        self,
        request: GenerationRequest,
        selection: ModelSelection,
        queue: QueueJobClient,
        transfer: TransferService,
    ) -> ProviderResult:
        image_url = await self._upload_source(request, transfer)
        if isinstance(image_url, ProviderResult):
            return image_url

        logger.info("Upscaling %dx", request.scale)
        return await queue.run(
            selection.model,
            {"image_url": image_url, "scale": request.scale},
            self.config.output_dir,
            f"upscaled_{request.scale}x",
            Mode.UPSCALE.value,
            selection.tier_label,
        )

    async def _utility(
        self,
        request: GenerationRequest,
        selection: ModelSelection,
        queue: QueueJobClient,
        transfer: TransferService,
    ) -> ProviderResult:
        """Background removal and vectorization of an existing image."""
        image_url = await self._upload_source(request, transfer)
        if isinstance(image_url, ProviderResult):
            return image_url

        if request.mode is Mode.REMBG:
            hint = "nobg"
        else:
            hint = _source_stem(request.image) or "vectorized"

        return await queue.run(
            selection.model,
            {"image_url": image_url},
            self.config.output_dir,
            hint,
            request.mode.value,
            selection.tier_label,
        )

    async def _upload_source(
        self,
        request: GenerationRequest,
        transfer: TransferService,
    ) -> "str | ProviderResult":
        if not request.image:
            return generic_failure(ProviderFamily.FAL, f"Source image is required for {request.mode.value}")
        try:
            return await transfer.upload(request.image)
        except TransferError as exc:
            logger.warning("Upload failed: %s", exc)
            return generic_failure(ProviderFamily.FAL, str(exc))

    def _emit(self, event: str, **fields: Any) -> None:
        try:
            self.sink.emit(event, **fields)
        except Exception:
            logger.warning("Telemetry sink failed for event %s", event, exc_info=True)


def _image_size(request: GenerationRequest) -> dict[str, int]:
    return {"width": request.width, "height": request.height}


def _source_stem(path: str | None) -> str:
    """Filename up to its first dot, for URLs and local paths alike."""
    if not path:
        return ""
    return os.path.basename(path.rstrip("/")).split(".")[0]
