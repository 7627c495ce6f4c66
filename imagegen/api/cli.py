"""
Command-line adapter for the image pipeline.

Architectural role:
- Exposes `gen`, `edit`, `upscale`, `rembg` and `svg` subcommands.
- Builds one `GenerationRequest` per invocation.
- Delegates execution to `ImageOrchestrator.run`.

Exit codes:
- 0: artifact written.
- 1: any provider, upload or download failure.
- 2: argument errors (raised by argparse).
- 3: free tier exhausted (Cloudflare quota or rate limit). Try again later
  instead of retrying automatically on a paid tier.

Side effects:
- `.env` is loaded on import of `provider_config`.
- Writes status lines to stdout and the artifact under the output directory.
"""

import argparse
import asyncio
import logging
import sys

from imagegen.core.engine import ImageOrchestrator
from imagegen.core.tiers import PRICING, parse_size, parse_tier
from imagegen.core.types import GenerationRequest, Mode, Outcome, Tier, outcome_for
from imagegen.providers.provider_config import OrchestratorConfig


EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_FREE_TIER_EXHAUSTED = 3

EXIT_CODES = {
    Outcome.SUCCESS: EXIT_SUCCESS,
    Outcome.FAILED: EXIT_FAILURE,
    Outcome.FREE_TIER_EXHAUSTED: EXIT_FREE_TIER_EXHAUSTED,
}

TIER_CHOICES = "iterate|default|premium|max"


# =========================================================
# HELP TEXT
# =========================================================

def _gen_epilog():
    gen = PRICING["gen"]
    text = PRICING["gen_text"]
    return (
        "Tiers (general):\n"
        f"  iterate   Cloudflare FREE (~96/day)   {gen[Tier.ITERATE]}\n"
        f"  default   flux-2/turbo                {gen[Tier.DEFAULT]}\n"
        f"  premium   flux-2-pro                  {gen[Tier.PREMIUM]}\n"
        f"  max       flux-2-max                  {gen[Tier.MAX]}\n"
        "\n"
        "Tiers (--text):\n"
        f"  iterate   Recraft V3                  {text[Tier.ITERATE]}\n"
        f"  default   Recraft V3                  {text[Tier.DEFAULT]}\n"
        f"  premium   Ideogram                    {text[Tier.PREMIUM]}\n"
        f"  max       Ideogram                    {text[Tier.MAX]}\n"
        "\n"
        "Examples:\n"
        '  imagegen gen "cyberpunk city"              # default (flux-2/turbo)\n'
        '  imagegen gen "cyberpunk city" -t iterate   # FREE (Cloudflare)\n'
        '  imagegen gen "TechCorp logo" --text --svg  # vectorized text specialist\n'
    )


def _edit_epilog():
    edit = PRICING["edit"]
    return (
        "Tiers:\n"
        f"  iterate   Quick edits, cheap          {edit[Tier.ITERATE]}\n"
        f"  default   Daily driver, best value    {edit[Tier.DEFAULT]}\n"
        f"  premium   High quality edits          {edit[Tier.PREMIUM]}\n"
        f"  max       Multi-ref, heavy control    {edit[Tier.MAX]}\n"
        "\n"
        "Note: two or more --ref images force the max tier (flux-2-flex).\n"
    )


def _upscale_epilog():
    upscale = PRICING["upscale"]
    return (
        "Tiers:\n"
        f"  iterate   SeedVR2, nearly free        {upscale[Tier.ITERATE]}\n"
        f"  default   SeedVR2, nearly free        {upscale[Tier.DEFAULT]}\n"
        f"  premium   Clarity, high fidelity      {upscale[Tier.PREMIUM]}\n"
        f"  max       Clarity, high fidelity      {upscale[Tier.MAX]}\n"
    )


# =========================================================
# ARGUMENTS
# =========================================================

def build_parser():
    """Return the top-level argument parser with one subparser per mode."""
    parser = argparse.ArgumentParser(
        prog="imagegen",
        description="Generate, edit, upscale and vectorize images.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("-o", "--output-dir", help="Override the artifact output directory")
    subparsers = parser.add_subparsers(dest="mode", required=True)

    formatter = argparse.RawDescriptionHelpFormatter

    gen = subparsers.add_parser("gen", help="Generate an image from a prompt", epilog=_gen_epilog(), formatter_class=formatter)
    gen.add_argument("prompt", nargs="+", help="Prompt text")
    gen.add_argument("-t", "--tier", default="default", help=f"Quality tier: {TIER_CHOICES}")
    gen.add_argument("-s", "--size", default="1024x1024", help="Output size WxH")
    gen.add_argument("--text", action="store_true", help="Use text/logo specialist (Recraft/Ideogram)")
    gen.add_argument("--svg", action="store_true", help="Also vectorize the output to SVG")

    edit = subparsers.add_parser("edit", help="Edit an image with an instruction", epilog=_edit_epilog(), formatter_class=formatter)
    edit.add_argument("image", help="Source image (local file or URL)")
    edit.add_argument("instruction", nargs="+", help="Edit instruction")
    edit.add_argument("-t", "--tier", default="default", help=f"Quality tier: {TIER_CHOICES}")
    edit.add_argument("-s", "--size", default="1024x1024", help="Output size WxH")
    edit.add_argument("-m", "--mask", help="Mask image for inpainting (white = edit area)")
    edit.add_argument("--ref", action="append", default=[], help="Reference image for style/composition (repeatable)")

    upscale = subparsers.add_parser("upscale", help="Upscale an image", epilog=_upscale_epilog(), formatter_class=formatter)
    upscale.add_argument("image", help="Source image (local file or URL)")
    upscale.add_argument("-t", "--tier", default="default", help=f"Quality tier: {TIER_CHOICES}")
    upscale.add_argument("--scale", type=int, default=2, help="Upscale factor: 2, 4")

    rembg = subparsers.add_parser("rembg", help=f"Remove background ({PRICING['util'][Mode.REMBG]})")
    rembg.add_argument("image", help="Source image (local file or URL)")

    svg = subparsers.add_parser("svg", help=f"Vectorize an image to SVG ({PRICING['util'][Mode.SVG]})")
    svg.add_argument("image", help="Source image (local file or URL)")

    return parser


def build_request(args):
    """Translate parsed arguments into a `GenerationRequest`."""
    mode = Mode(args.mode)

    if mode is Mode.GEN:
        width, height = parse_size(args.size)
        return GenerationRequest(
            prompt=" ".join(args.prompt),
            mode=mode,
            tier=parse_tier(args.tier),
            width=width,
            height=height,
            text=args.text,
            svg=args.svg,
        )

    if mode is Mode.EDIT:
        width, height = parse_size(args.size)
        return GenerationRequest(
            prompt=" ".join(args.instruction),
            mode=mode,
            tier=parse_tier(args.tier),
            width=width,
            height=height,
            image=args.image,
            mask=args.mask,
            references=tuple(args.ref),
        )

    if mode is Mode.UPSCALE:
        return GenerationRequest(
            mode=mode,
            tier=parse_tier(args.tier),
            image=args.image,
            scale=args.scale,
        )

    return GenerationRequest(mode=mode, image=args.image)


# =========================================================
# MAIN
# =========================================================

def main(argv=None, orchestrator=None):
    """
    Parse arguments, run one request and return the process exit code.

    Error handling strategy:
    - argparse usage errors exit with status 2 via `SystemExit`, as usual.
    - Provider failures print the classified message and map to 1 or 3.
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="   %(message)s",
    )

    if orchestrator is None:
        config = OrchestratorConfig()
        if args.output_dir:
            config = OrchestratorConfig(output_dir=args.output_dir)
        orchestrator = ImageOrchestrator(config)

    request = build_request(args)
    result = asyncio.run(orchestrator.run(request))
    outcome = outcome_for(result)

    if outcome is Outcome.SUCCESS:
        if result.vector_path:
            print(f"✅ Raster: {result.file_path}")
            print(f"✅ SVG: {result.vector_path}")
        print(f"   Done: {result.file_path}")
    else:
        print(f"Error [{result.code.value}]: {result.error}", file=sys.stderr)

    return EXIT_CODES[outcome]


if __name__ == "__main__":
    sys.exit(main())
