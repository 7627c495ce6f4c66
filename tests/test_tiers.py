"""Tests for tier resolution and request normalization."""

import pytest

from imagegen.core.tiers import (
    CLOUDFLARE_MODEL,
    EDIT_MODELS,
    GEN_MODELS,
    parse_size,
    parse_tier,
    resolve_model,
    resolve_request,
    uses_free_provider,
)
from imagegen.core.types import GenerationRequest, Mode, ProviderFamily, Tier


@pytest.mark.parametrize("mode", list(Mode))
@pytest.mark.parametrize("tier", list(Tier))
@pytest.mark.parametrize("text", [False, True])
def test_every_pair_resolves_to_model_and_price(mode, tier, text):
    selection = resolve_model(mode, tier, text=text)
    assert selection.model
    assert selection.price
    assert selection.tier_label


@pytest.mark.parametrize("raw", ["ultra", "", None, "MAX", "Default"])
def test_unknown_tier_strings_fall_back_to_default(raw):
    assert parse_tier(raw) is Tier.DEFAULT
    assert resolve_model(Mode.GEN, raw).model == GEN_MODELS[Tier.DEFAULT]


def test_free_provider_only_for_plain_iterate_generation():
    selection = resolve_model(Mode.GEN, Tier.ITERATE)
    assert selection.provider is ProviderFamily.CLOUDFLARE
    assert selection.model == CLOUDFLARE_MODEL
    assert selection.price == "FREE (CF)"
    assert selection.fallback_model == "fal-ai/flux-2/flash"

    assert resolve_model(Mode.GEN, Tier.ITERATE, text=True).provider is ProviderFamily.FAL
    assert resolve_model(Mode.EDIT, Tier.ITERATE).provider is ProviderFamily.FAL
    assert not uses_free_provider(Mode.GEN, Tier.DEFAULT)
    assert uses_free_provider(Mode.GEN, Tier.ITERATE)


def test_text_specialist_table():
    assert resolve_model(Mode.GEN, Tier.DEFAULT, text=True).model == "fal-ai/recraft/v3/text-to-image"
    assert resolve_model(Mode.GEN, Tier.MAX, text=True).price == "$0.08/img"


def test_utilities_ignore_tier():
    for tier in Tier:
        rembg = resolve_model(Mode.REMBG, tier)
        assert rembg.model == "fal-ai/imageutils/rembg"
        assert rembg.price == "FREE"
        assert rembg.tier_label == "free"

        svg = resolve_model(Mode.SVG, tier)
        assert svg.model == "fal-ai/recraft/vectorize"
        assert svg.tier_label == "default"


@pytest.mark.parametrize("requested", ["iterate", "default", "premium", "max", "bogus"])
def test_two_references_force_max_edit_tier(requested):
    request = GenerationRequest(
        prompt="match this style",
        mode=Mode.EDIT,
        tier=requested,
        image="photo.jpg",
        references=("a.jpg", "b.jpg"),
    )
    assert request.tier is Tier.MAX
    assert resolve_request(request).model == EDIT_MODELS[Tier.MAX]
    assert resolve_model(Mode.EDIT, requested, reference_count=2).model == "fal-ai/flux-2-flex/edit"


def test_single_reference_keeps_requested_tier():
    request = GenerationRequest(mode=Mode.EDIT, tier="premium", image="photo.jpg", references=["a.jpg"])
    assert request.tier is Tier.PREMIUM
    assert request.references == ("a.jpg",)


def test_references_do_not_escalate_other_modes():
    request = GenerationRequest(mode=Mode.UPSCALE, tier="iterate", image="x.png", references=("a", "b"))
    assert request.tier is Tier.ITERATE


def test_request_coerces_unknown_tier():
    assert GenerationRequest(prompt="x", tier="turbo").tier is Tier.DEFAULT


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1024x1024", (1024, 1024)),
        ("512x768", (512, 768)),
        ("big", (1024, 1024)),
        ("", (1024, 1024)),
        (None, (1024, 1024)),
        ("10x", (1024, 1024)),
    ],
)
def test_parse_size(raw, expected):
    assert parse_size(raw) == expected
