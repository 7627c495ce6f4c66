"""Provider/runtime configuration for the image pipeline.

Architectural role:
    Centralizes provider endpoints, credential lookup and orchestration knobs for
    `providers.*` clients and `core.engine`.

Environment:
    `.env` is loaded at import time from the repository root (first ancestor of
    the working directory holding an `install.sh` or `.env` marker), else from
    the working directory. Already-set variables are not overridden.

Determinism:
    Deterministic for a fixed process environment and key files. Credentials are
    resolved at call time in `get_fal_key`/`get_cloudflare_credentials`, so test
    environments can be patched after import.

Failure behavior:
    Missing credentials are represented as `None` and classified by the calling
    client as `AUTH_MISSING`.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv


REPO_ROOT_MARKERS = ("install.sh", ".env")
MAX_ROOT_SEARCH_DEPTH = 10


def find_repo_root(start_dir: str | None = None) -> str | None:
    """Walk up from `start_dir` looking for a repository-root marker.

    Args:
        start_dir: Directory to start from; defaults to the working directory.

    Returns:
        Absolute root path, or `None` when no marker is found within
        `MAX_ROOT_SEARCH_DEPTH` levels.
    """
    directory = os.path.abspath(start_dir or os.getcwd())
    for _ in range(MAX_ROOT_SEARCH_DEPTH):
        if any(os.path.exists(os.path.join(directory, marker)) for marker in REPO_ROOT_MARKERS):
            return directory
        parent = os.path.dirname(directory)
        if parent == directory:
            break
        directory = parent
    return None


def load_environment(start_dir: str | None = None) -> bool:
    """Load `.env` from the repository root, else from the working directory."""
    root = find_repo_root(start_dir) or os.getcwd()
    return load_dotenv(os.path.join(root, ".env"), override=False)


load_environment()


# Endpoint map consumed by the provider clients.
PROVIDERS = {

    "fal": {
        "queue_url": "https://queue.fal.run",
        "upload_initiate_url": "https://rest.alpha.fal.ai/storage/upload/initiate",
        "auth_scheme": "Key",
        "key_env": ("FAL_KEY", "FAL_API_KEY"),
        "key_file": "config/fal.key",
    },

    "cloudflare": {
        "run_url": "https://api.cloudflare.com/client/v4/accounts/{account_id}/ai/run/{model}",
        "auth_scheme": "Bearer",
        "account_env": "CLOUDFLARE_ACCOUNT_ID",
        "token_env": "CLOUDFLARE_API_TOKEN",
        "steps": 25,
    },

}


def load_key(env_names, key_file=None):
    """Load an API key from environment overrides or a key file.

    Resolution order:
        1. First non-empty environment variable in `env_names`.
        2. Raw file contents at `key_file`.

    Args:
        env_names: Environment variable names to try in order.
        key_file: Optional key file path.

    Returns:
        Key string or `None` when not available.

    Edge cases:
        - Missing file returns `None`.
        - Whitespace-only values are treated as missing.
    """
    for name in env_names:
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    if not key_file or not os.path.exists(key_file):
        return None
    with open(key_file, "r") as f:
        return f.read().strip() or None


def get_fal_key():
    """Return the queue-provider credential or `None`."""
    config = PROVIDERS["fal"]
    return load_key(config["key_env"], config["key_file"])


def get_cloudflare_credentials():
    """Return `(account_id, api_token)`; either may be `None`."""
    config = PROVIDERS["cloudflare"]
    account_id = (os.getenv(config["account_env"]) or "").strip() or None
    api_token = (os.getenv(config["token_env"]) or "").strip() or None
    return account_id, api_token


def default_output_dir() -> str:
    """Return `<repo-root>/.ada/data/images`."""
    root = find_repo_root() or os.getcwd()
    return os.path.join(root, ".ada", "data", "images")


@dataclass(frozen=True)
class OrchestratorConfig:
    """Runtime configuration for `ImageOrchestrator`.

    Fields are read from environment variables at import time.

    Relevant environment variables:
        - `IMAGEGEN_OUTPUT_DIR`
        - `IMAGEGEN_POLL_INTERVAL_SECONDS`
        - `IMAGEGEN_MAX_POLL_ATTEMPTS`
        - `IMAGEGEN_HTTP_TIMEOUT_SECONDS`
        - `IMAGEGEN_CACHE_SIZE`
        - `IMAGEGEN_TELEMETRY_PATH`
    """

    output_dir: str = os.getenv("IMAGEGEN_OUTPUT_DIR") or default_output_dir()
    poll_interval_seconds: float = float(os.getenv("IMAGEGEN_POLL_INTERVAL_SECONDS", "1.0"))
    max_poll_attempts: int = int(os.getenv("IMAGEGEN_MAX_POLL_ATTEMPTS", "120"))
    timeout_seconds: float = float(os.getenv("IMAGEGEN_HTTP_TIMEOUT_SECONDS", "120"))
    cache_size: int = int(os.getenv("IMAGEGEN_CACHE_SIZE", "256"))
    telemetry_path: str | None = os.getenv("IMAGEGEN_TELEMETRY_PATH") or None
