"""Tests for argument parsing and exit-code mapping."""

import pytest

from imagegen.api.cli import build_parser, build_request, main
from imagegen.core.types import ErrorCode, Mode, ProviderFamily, ProviderResult, Tier


class FakeOrchestrator:
    def __init__(self, result):
        self.result = result
        self.requests = []

    async def run(self, request):
        self.requests.append(request)
        return self.result


def parse(*argv):
    return build_request(build_parser().parse_args(list(argv)))


def test_gen_request():
    request = parse("gen", "cyberpunk", "city", "-t", "premium", "-s", "512x768", "--svg")

    assert request.mode is Mode.GEN
    assert request.prompt == "cyberpunk city"
    assert request.tier is Tier.PREMIUM
    assert (request.width, request.height) == (512, 768)
    assert request.svg and not request.text


def test_gen_defaults_and_bad_input():
    request = parse("gen", "cat", "-t", "ultra", "-s", "big")
    assert request.tier is Tier.DEFAULT
    assert (request.width, request.height) == (1024, 1024)


def test_edit_with_two_refs_escalates_to_max():
    request = parse("edit", "photo.png", "match", "style", "--ref", "a.png", "--ref", "b.png", "-m", "mask.png")

    assert request.mode is Mode.EDIT
    assert request.prompt == "match style"
    assert request.image == "photo.png"
    assert request.references == ("a.png", "b.png")
    assert request.mask == "mask.png"
    assert request.tier is Tier.MAX


def test_upscale_and_utilities():
    upscale = parse("upscale", "p.png", "--scale", "4", "-t", "premium")
    assert (upscale.mode, upscale.scale, upscale.tier) == (Mode.UPSCALE, 4, Tier.PREMIUM)

    assert parse("rembg", "p.png").mode is Mode.REMBG
    assert parse("svg", "p.png").image == "p.png"


def test_missing_subcommand_is_usage_error():
    with pytest.raises(SystemExit) as excinfo:
        build_parser().parse_args([])
    assert excinfo.value.code == 2


def test_success_exits_zero(capsys):
    orchestrator = FakeOrchestrator(ProviderResult.ok("/out/a.jpg", ProviderFamily.FAL))

    assert main(["gen", "cat"], orchestrator=orchestrator) == 0
    assert "Done: /out/a.jpg" in capsys.readouterr().out
    assert orchestrator.requests[0].prompt == "cat"


def test_success_with_vector_prints_both(capsys):
    result = ProviderResult(
        success=True,
        file_path="/out/a.jpg",
        provider=ProviderFamily.FAL,
        vector_path="/out/a.svg",
    )

    assert main(["gen", "logo", "--svg"], orchestrator=FakeOrchestrator(result)) == 0
    out = capsys.readouterr().out
    assert "Raster: /out/a.jpg" in out
    assert "SVG: /out/a.svg" in out


def test_provider_failure_exits_one(capsys):
    result = ProviderResult.failure("Fal.ai error (500): boom", ErrorCode.GENERIC_PROVIDER_ERROR, ProviderFamily.FAL)

    assert main(["rembg", "p.png"], orchestrator=FakeOrchestrator(result)) == 1
    assert "Error [GENERIC_PROVIDER_ERROR]: Fal.ai error (500): boom" in capsys.readouterr().err


@pytest.mark.parametrize("code", [ErrorCode.RATE_LIMIT, ErrorCode.QUOTA_EXCEEDED])
def test_free_tier_exhaustion_exits_three(code):
    result = ProviderResult.failure("limit", code, ProviderFamily.CLOUDFLARE)
    assert main(["gen", "cat", "-t", "iterate"], orchestrator=FakeOrchestrator(result)) == 3


def test_paid_rate_limit_exits_one():
    result = ProviderResult.failure("slow down", ErrorCode.RATE_LIMIT, ProviderFamily.FAL)
    assert main(["gen", "cat"], orchestrator=FakeOrchestrator(result)) == 1
