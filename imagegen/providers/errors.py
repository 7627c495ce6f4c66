"""HTTP failure classification into the closed error taxonomy.

Classification rules (first match wins, body matched case-insensitively):

    Free synchronous provider (Cloudflare):
        1. 429                                         -> RATE_LIMIT
        2. body contains "quota" / "limit" / "exceeded" -> QUOTA_EXCEEDED
        3. 401 / 403                                   -> AUTH_MISSING
        4. anything else                               -> GENERIC_PROVIDER_ERROR

    Queue-based provider (fal.ai):
        1. 401                                         -> AUTH_INVALID
        2. 402, or body contains "credits" / "insufficient" / "balance"
                                                       -> CREDITS_EXHAUSTED
        3. 429                                         -> RATE_LIMIT
        4. anything else                               -> GENERIC_PROVIDER_ERROR

Body inspection exists because providers report the same logical condition
with inconsistent status codes.

Messages:
    Each message carries the remediation hint surfaced to the user verbatim. The
    matching operator banner is logged at error level.
"""

import logging
from dataclasses import dataclass

from imagegen.core.types import ErrorCode, ProviderFamily, ProviderResult


logger = logging.getLogger(__name__)

CLOUDFLARE_QUOTA_MARKERS = ("quota", "limit", "exceeded")
FAL_CREDIT_MARKERS = ("credits", "insufficient", "balance")

CLOUDFLARE_FREE_TIER_FIX = (
    "Info: FREE tier limited to ~96 images/day\n"
    "Fix:\n"
    "  1. Wait until tomorrow (resets at midnight UTC)\n"
    "  2. Use default tier: imagegen gen \"prompt\" -t default"
)


@dataclass(frozen=True)
class ClassifiedError:
    """One classified provider failure."""

    code: ErrorCode
    message: str
    provider: ProviderFamily

    def to_result(self) -> ProviderResult:
        return ProviderResult.failure(self.message, self.code, self.provider)


def classify_cloudflare_error(status: int, body: str = "") -> ClassifiedError:
    """Classify a failed free-provider HTTP response.

    Args:
        status: HTTP status code of a non-2xx response.
        body: Raw response body text.

    Returns:
        `ClassifiedError` for the first matching rule.
    """
    body = body or ""
    lowered = body.lower()
    family = ProviderFamily.CLOUDFLARE

    if status == 429:
        logger.error("Cloudflare rate limit exceeded\n%s", CLOUDFLARE_FREE_TIER_FIX)
        return ClassifiedError(
            ErrorCode.RATE_LIMIT,
            "Cloudflare rate limit exceeded (~96/day). Wait until midnight UTC or use default tier.",
            family,
        )

    if any(marker in lowered for marker in CLOUDFLARE_QUOTA_MARKERS):
        logger.error("Cloudflare FREE quota exceeded for today\n%s", CLOUDFLARE_FREE_TIER_FIX)
        return ClassifiedError(
            ErrorCode.QUOTA_EXCEEDED,
            "Cloudflare quota exceeded. Wait until midnight UTC or use default tier.",
            family,
        )

    if status in (401, 403):
        logger.error(
            "Cloudflare authentication failed\n"
            "Fix: Check your API token has Workers AI permissions\n"
            "Get keys: https://dash.cloudflare.com/profile/api-tokens"
        )
        return ClassifiedError(
            ErrorCode.AUTH_MISSING,
            f"Cloudflare auth error ({status}): {body}",
            family,
        )

    return ClassifiedError(
        ErrorCode.GENERIC_PROVIDER_ERROR,
        f"Cloudflare API error ({status}): {body}",
        family,
    )


def classify_fal_error(status: int, body: str = "") -> ClassifiedError:
    """Classify a failed queue-provider HTTP response.

    Args:
        status: HTTP status code of a non-2xx response.
        body: Raw response body text.

    Returns:
        `ClassifiedError` for the first matching rule.
    """
    body = body or ""
    lowered = body.lower()
    family = ProviderFamily.FAL

    if status == 401:
        logger.error(
            "Fal.ai API key is invalid\n"
            "Fix: Check FAL_API_KEY in your .env file\n"
            "Get key: https://fal.ai/dashboard/keys"
        )
        return ClassifiedError(
            ErrorCode.AUTH_INVALID,
            "Fal.ai API key is invalid. Check FAL_API_KEY in .env",
            family,
        )

    if status == 402 or any(marker in lowered for marker in FAL_CREDIT_MARKERS):
        logger.error("Fal.ai credits exhausted\nFix: Add credits at https://fal.ai/dashboard")
        return ClassifiedError(
            ErrorCode.CREDITS_EXHAUSTED,
            "Fal.ai credits exhausted. Add credits at: https://fal.ai/dashboard",
            family,
        )

    if status == 429:
        logger.error("Fal.ai rate limit exceeded\nFix: Wait 60 seconds and retry")
        return ClassifiedError(
            ErrorCode.RATE_LIMIT,
            "Fal.ai rate limit exceeded. Wait 60 seconds and retry.",
            family,
        )

    return ClassifiedError(
        ErrorCode.GENERIC_PROVIDER_ERROR,
        f"Fal.ai error ({status}): {body}",
        family,
    )


def classify_http_error(family: ProviderFamily, status: int, body: str = "") -> ClassifiedError:
    """Dispatch to the classifier of the given provider family."""
    if ProviderFamily(family) is ProviderFamily.CLOUDFLARE:
        return classify_cloudflare_error(status, body)
    return classify_fal_error(status, body)


def missing_fal_key() -> ClassifiedError:
    """Failure returned when no queue-provider credential is configured."""
    logger.error(
        "Fal.ai API key not configured\n"
        "Fix: Add to your .env file:\n"
        "  FAL_API_KEY=your_api_key\n"
        "Get key: https://fal.ai/dashboard/keys"
    )
    return ClassifiedError(ErrorCode.AUTH_MISSING, "Missing FAL_API_KEY in .env", ProviderFamily.FAL)


def missing_cloudflare_credential(name: str) -> ClassifiedError:
    """Failure returned when a Cloudflare credential is not configured."""
    logger.error(
        "Cloudflare API keys not configured\n"
        "Missing: %s\n"
        "Fix: Add to your .env file:\n"
        "  CLOUDFLARE_ACCOUNT_ID=your_account_id\n"
        "  CLOUDFLARE_API_TOKEN=your_api_token\n"
        "Get keys: https://dash.cloudflare.com/profile/api-tokens",
        name,
    )
    return ClassifiedError(ErrorCode.AUTH_MISSING, f"Missing {name}", ProviderFamily.CLOUDFLARE)


def generic_failure(family: ProviderFamily, message: str) -> ProviderResult:
    """Build a `GENERIC_PROVIDER_ERROR` result for transport or decoding faults."""
    return ProviderResult.failure(message, ErrorCode.GENERIC_PROVIDER_ERROR, ProviderFamily(family))
