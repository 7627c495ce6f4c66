"""Request, result and error-taxonomy contracts shared across the pipeline.

Architectural role:
    Defines the immutable `GenerationRequest` consumed by `core.engine`, the
    uniform `ProviderResult` returned by every provider call and the closed
    `ErrorCode` taxonomy produced by `providers.errors`.

Normalization:
    `GenerationRequest` coerces its tier on construction. Unknown tier strings
    become `default` and an edit with two or more references is escalated to
    `max`, so downstream code only ever sees the effective tier.

Determinism:
    The contracts are purely structural and state-free.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Mode(str, Enum):
    """Operation mode; also used as the filename mode segment."""

    GEN = "gen"
    EDIT = "edit"
    UPSCALE = "upscale"
    REMBG = "rembg"
    SVG = "svg"


class Tier(str, Enum):
    """Cost/quality level, ordered iterate < default < premium < max."""

    ITERATE = "iterate"
    DEFAULT = "default"
    PREMIUM = "premium"
    MAX = "max"

    @classmethod
    def parse(cls, value: "str | Tier | None") -> "Tier":
        """Coerce a tier string, falling back to `default` for unknown values."""
        if isinstance(value, Tier):
            return value
        for tier in cls:
            if tier.value == value:
                return tier
        return cls.DEFAULT


class ProviderFamily(str, Enum):
    """Provider family that produced a result."""

    CLOUDFLARE = "cloudflare"
    FAL = "fal"


class ErrorCode(str, Enum):
    """Closed failure taxonomy shared by every provider family."""

    AUTH_MISSING = "AUTH_MISSING"
    AUTH_INVALID = "AUTH_INVALID"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    RATE_LIMIT = "RATE_LIMIT"
    CREDITS_EXHAUSTED = "CREDITS_EXHAUSTED"
    JOB_TIMEOUT = "JOB_TIMEOUT"
    NO_IMAGE = "NO_IMAGE"
    GENERIC_PROVIDER_ERROR = "GENERIC_PROVIDER_ERROR"


class Outcome(str, Enum):
    """Caller-visible outcome of one orchestrated request."""

    SUCCESS = "success"
    FAILED = "failed"
    FREE_TIER_EXHAUSTED = "free_tier_exhausted"


FREE_TIER_EXHAUSTION_CODES = frozenset({ErrorCode.QUOTA_EXCEEDED, ErrorCode.RATE_LIMIT})

DEFAULT_WIDTH = 1024
DEFAULT_HEIGHT = 1024
DEFAULT_UPSCALE_FACTOR = 2


@dataclass(frozen=True)
class GenerationRequest:
    """One image operation as requested by the caller.

    Attributes:
        prompt: Prompt (gen) or instruction (edit) text.
        mode: Operation mode.
        tier: Effective tier after coercion and multi-reference escalation.
        width: Output width in pixels.
        height: Output height in pixels.
        image: Source image path or URL (edit, upscale, rembg, svg).
        mask: Optional inpainting mask path or URL (edit).
        references: Style/composition reference images (edit).
        scale: Upscale factor (upscale).
        text: Use the text/logo specialist model table (gen).
        svg: Vectorize the raster after generation (gen).
    """

    prompt: str = ""
    mode: Mode = Mode.GEN
    tier: Tier = Tier.DEFAULT
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    image: str | None = None
    mask: str | None = None
    references: tuple[str, ...] = field(default_factory=tuple)
    scale: int = DEFAULT_UPSCALE_FACTOR
    text: bool = False
    svg: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "mode", Mode(self.mode))
        object.__setattr__(self, "references", tuple(self.references or ()))

        tier = Tier.parse(self.tier)
        # Multi-reference composition is only supported by the top edit model.
        if self.mode is Mode.EDIT and len(self.references) >= 2:
            tier = Tier.MAX
        object.__setattr__(self, "tier", tier)

    @property
    def filename_hint(self) -> str:
        """Content hint used when naming the persisted artifact."""
        return self.prompt or "image"


@dataclass(frozen=True)
class ProviderResult:
    """Uniform return value of every provider call.

    Exactly one of `file_path` (success) or `code` (failure) is populated.
    `vector_path` is only set when a generation was also vectorized.
    """

    success: bool
    file_path: str | None = None
    error: str | None = None
    code: ErrorCode | None = None
    provider: ProviderFamily | None = None
    vector_path: str | None = None

    def __post_init__(self) -> None:
        if self.success and (self.file_path is None or self.code is not None):
            raise ValueError("successful result requires file_path and no error code")
        if not self.success and (self.code is None or self.file_path is not None):
            raise ValueError("failed result requires an error code and no file_path")

    @classmethod
    def ok(cls, file_path: str, provider: ProviderFamily) -> "ProviderResult":
        return cls(success=True, file_path=str(file_path), provider=provider)

    @classmethod
    def failure(
        cls,
        message: str,
        code: ErrorCode,
        provider: ProviderFamily,
    ) -> "ProviderResult":
        return cls(success=False, error=message, code=code, provider=provider)


def outcome_for(result: ProviderResult) -> Outcome:
    """Map a result to the caller-visible outcome.

    Free-provider quota or rate-limit exhaustion is distinguished so the caller
    can tell the user to try again later instead of retrying automatically.
    """
    if result.success:
        return Outcome.SUCCESS
    if (
        result.provider is ProviderFamily.CLOUDFLARE
        and result.code in FREE_TIER_EXHAUSTION_CODES
    ):
        return Outcome.FREE_TIER_EXHAUSTED
    return Outcome.FAILED
