"""Tiered image generation package.

Architectural role:
    Submits generation, edit, upscale, background-removal and vectorize requests
    to external providers, tracks job completion, classifies failures and
    persists the resulting artifact locally.

Package split:
    - `core`: request/result contracts, tier resolution, naming, orchestration.
    - `providers`: provider configuration, HTTP clients, error classification,
      file transfer.
    - `telemetry`: injected event sinks.
    - `api`: command-line adapter.
"""

__version__ = "0.1.0"
