"""Core orchestration package.

Architectural role:
    Sits between the CLI adapter and the provider clients. Resolves tiers to
    models, runs the free-provider fallback policy and names persisted artifacts.

Composition:
    - `types`: shared request/result/taxonomy contracts.
    - `tiers`: (mode, tier) to model and price resolution.
    - `naming`: artifact filename derivation and byte persistence.
    - `cache`: bounded process-lifetime metadata cache.
    - `engine`: `ImageOrchestrator`, the per-mode request pipeline.

Determinism and side effects:
    Package import itself is side-effect free.
"""
