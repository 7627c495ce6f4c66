"""Command-line adapter package.

Architectural role:
- Parses arguments into a `GenerationRequest`.
- Delegates all provider work to `imagegen.core.engine.ImageOrchestrator`.
- Maps results to process exit codes.
"""
