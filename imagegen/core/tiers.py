"""Tier resolution: (mode, tier, request shape) to provider model and price.

Architectural role:
    Pure lookup layer consumed by `core.engine` before any provider call and by
    `api.cli` for help-text pricing.

Resolution rules:
    - Generation at `iterate` without the text specialist resolves to the free
      synchronous provider; its queue fallback is the `iterate` generation model.
    - Text-specialist generation uses the text model table and never the free
      provider.
    - `rembg` and `svg` are single-model utilities independent of tier.
    - Unknown tier strings are coerced to `default`; resolution never fails.

Determinism:
    Deterministic for fixed inputs. No I/O.
"""

import re
from dataclasses import dataclass

from imagegen.core.types import (
    DEFAULT_HEIGHT,
    DEFAULT_WIDTH,
    GenerationRequest,
    Mode,
    ProviderFamily,
    Tier,
)


CLOUDFLARE_MODEL = "@cf/black-forest-labs/flux-2-klein-4b"

GEN_MODELS = {
    Tier.ITERATE: "fal-ai/flux-2/flash",
    Tier.DEFAULT: "fal-ai/flux-2/turbo",
    Tier.PREMIUM: "fal-ai/flux-2-pro",
    Tier.MAX: "fal-ai/flux-2-max",
}

GEN_TEXT_MODELS = {
    Tier.ITERATE: "fal-ai/recraft/v3/text-to-image",
    Tier.DEFAULT: "fal-ai/recraft/v3/text-to-image",
    Tier.PREMIUM: "fal-ai/ideogram/v2",
    Tier.MAX: "fal-ai/ideogram/v2",
}

EDIT_MODELS = {
    Tier.ITERATE: "fal-ai/flux-2/flash/edit",
    Tier.DEFAULT: "fal-ai/flux-2/turbo/edit",
    Tier.PREMIUM: "fal-ai/flux-2-pro/edit",
    Tier.MAX: "fal-ai/flux-2-flex/edit",
}

UPSCALE_MODELS = {
    Tier.ITERATE: "fal-ai/seedvr/upscale/image",
    Tier.DEFAULT: "fal-ai/seedvr/upscale/image",
    Tier.PREMIUM: "fal-ai/clarity-upscaler",
    Tier.MAX: "fal-ai/clarity-upscaler",
}

UTIL_MODELS = {
    Mode.REMBG: "fal-ai/imageutils/rembg",
    Mode.SVG: "fal-ai/recraft/vectorize",
}

PRICING = {
    "gen": {
        Tier.ITERATE: "FREE (CF)",
        Tier.DEFAULT: "$0.008/MP",
        Tier.PREMIUM: "$0.03/MP",
        Tier.MAX: "$0.07/MP",
    },
    "gen_text": {
        Tier.ITERATE: "$0.04/img",
        Tier.DEFAULT: "$0.04/img",
        Tier.PREMIUM: "$0.08/img",
        Tier.MAX: "$0.08/img",
    },
    "edit": {
        Tier.ITERATE: "$0.005/MP",
        Tier.DEFAULT: "$0.008/MP",
        Tier.PREMIUM: "$0.03/MP",
        Tier.MAX: "$0.06/MP",
    },
    "upscale": {
        Tier.ITERATE: "$0.001/MP",
        Tier.DEFAULT: "$0.001/MP",
        Tier.PREMIUM: "$0.03/MP",
        Tier.MAX: "$0.03/MP",
    },
    "util": {
        Mode.REMBG: "FREE",
        Mode.SVG: "$0.01/img",
    },
}

# Filename tier segment for the tier-independent utilities.
UTIL_TIER_LABELS = {
    Mode.REMBG: "free",
    Mode.SVG: Tier.DEFAULT.value,
}

_SIZE_PATTERN = re.compile(r"^(\d+)x(\d+)$")


@dataclass(frozen=True)
class ModelSelection:
    """Concrete provider model chosen for one request.

    Attributes:
        provider: Provider family that runs `model`.
        model: Provider model identifier.
        price: Advertised price label.
        tier_label: Tier segment used in the artifact filename.
        fallback_model: Queue model used if the free provider fails.
    """

    provider: ProviderFamily
    model: str
    price: str
    tier_label: str
    fallback_model: str | None = None


def parse_tier(value: "str | Tier | None") -> Tier:
    """Coerce a tier string; unknown values resolve to `default`."""
    return Tier.parse(value)


def parse_size(size: str | None) -> tuple[int, int]:
    """Parse a `WxH` size string, falling back to 1024x1024 when malformed."""
    match = _SIZE_PATTERN.match((size or "").strip())
    if match:
        return int(match.group(1)), int(match.group(2))
    return DEFAULT_WIDTH, DEFAULT_HEIGHT


def uses_free_provider(mode: Mode, tier: Tier, text: bool = False) -> bool:
    """Return whether a request is served by the free synchronous provider."""
    return mode is Mode.GEN and tier is Tier.ITERATE and not text


def resolve_model(
    mode: "Mode | str",
    tier: "Tier | str | None",
    *,
    text: bool = False,
    reference_count: int = 0,
) -> ModelSelection:
    """Resolve the provider model and price label for a (mode, tier) pair.

    Args:
        mode: Operation mode.
        tier: Requested tier; unknown strings become `default`.
        text: Whether the text/logo specialist table is requested (gen only).
        reference_count: Number of edit references; two or more force `max`.

    Returns:
        `ModelSelection` with a non-empty model identifier and price label.
    """
    mode = Mode(mode)
    tier = parse_tier(tier)

    if mode is Mode.EDIT and reference_count >= 2:
        tier = Tier.MAX

    if mode in UTIL_MODELS:
        return ModelSelection(
            provider=ProviderFamily.FAL,
            model=UTIL_MODELS[mode],
            price=PRICING["util"][mode],
            tier_label=UTIL_TIER_LABELS[mode],
        )

    if mode is Mode.EDIT:
        return ModelSelection(ProviderFamily.FAL, EDIT_MODELS[tier], PRICING["edit"][tier], tier.value)

    if mode is Mode.UPSCALE:
        return ModelSelection(ProviderFamily.FAL, UPSCALE_MODELS[tier], PRICING["upscale"][tier], tier.value)

    if text:
        return ModelSelection(ProviderFamily.FAL, GEN_TEXT_MODELS[tier], PRICING["gen_text"][tier], tier.value)

    if uses_free_provider(mode, tier, text):
        return ModelSelection(
            provider=ProviderFamily.CLOUDFLARE,
            model=CLOUDFLARE_MODEL,
            price=PRICING["gen"][tier],
            tier_label=tier.value,
            fallback_model=GEN_MODELS[Tier.ITERATE],
        )

    return ModelSelection(ProviderFamily.FAL, GEN_MODELS[tier], PRICING["gen"][tier], tier.value)


def resolve_request(request: GenerationRequest) -> ModelSelection:
    """Resolve the model for an already-normalized request."""
    return resolve_model(
        request.mode,
        request.tier,
        text=request.text,
        reference_count=len(request.references),
    )
