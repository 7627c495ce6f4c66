"""Telemetry sinks injected into `core.engine`.

Scope:
    Best-effort event recording. The orchestrator calls its sink but never
    depends on the call succeeding.
"""
