"""Artifact naming and persistence.

Filename shape:
    `<YYYYMMDDHHMMSS>_<mode>_<tier>_<hint>.<ext>` where the timestamp is UTC, the
    hint has every non-alphanumeric run collapsed to `_`, leading/trailing `_`
    stripped and is capped at 40 characters. Mode and tier segments are omitted
    when not supplied.

Side effects:
    `write_artifact` creates the output directory if missing and writes the full
    byte payload in one call. Targets are timestamp-qualified, so concurrent
    writers to one directory do not collide on a shared name.
"""

import logging
import os
import re
from datetime import datetime, timezone


logger = logging.getLogger(__name__)

MAX_HINT_LENGTH = 40
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]+")


def sanitize_hint(hint: str) -> str:
    """Reduce a free-text hint to an alphanumeric/underscore slug."""
    safe = _NON_ALNUM.sub("_", hint or "").strip("_")
    return safe[:MAX_HINT_LENGTH]


def format_timestamp(now: datetime | None = None) -> str:
    """Return the 14-digit UTC timestamp used as filename prefix."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y%m%d%H%M%S")


def generate_filename(
    hint: str,
    ext: str = "png",
    mode: str | None = None,
    tier: str | None = None,
    now: datetime | None = None,
) -> str:
    """Derive the artifact filename for one successful job.

    Args:
        hint: Free-text content hint (usually the prompt).
        ext: File extension without the dot.
        mode: Optional operation mode segment.
        tier: Optional tier label segment.
        now: Timestamp override; defaults to the current UTC time.

    Returns:
        Filename without directory component.
    """
    parts = [format_timestamp(now)]
    if mode:
        parts.append(str(getattr(mode, "value", mode)))
    if tier:
        parts.append(str(getattr(tier, "value", tier)))
    parts.append(sanitize_hint(hint) or "image")
    return f"{'_'.join(parts)}.{ext}"


def infer_extension(url: str) -> str:
    """Infer the artifact extension from a result URL."""
    if ".webp" in url:
        return "webp"
    if ".svg" in url:
        return "svg"
    return "jpg"


def ensure_output_dir(output_dir: str) -> str:
    """Create the output directory if needed and return it."""
    os.makedirs(output_dir, exist_ok=True)
    return output_dir


def write_artifact(output_dir: str, filename: str, data: bytes) -> str:
    """Write artifact bytes under `output_dir` and return the full path."""
    ensure_output_dir(output_dir)
    filepath = os.path.join(output_dir, filename)
    with open(filepath, "wb") as f:
        f.write(data)
    logger.info("Saved to %s", filepath)
    return filepath
