from __future__ import annotations

from typing import Protocol

from idp_auditor.app.events.models import AuditEvent


class AuditEventEmitter(Protocol):
    """
    Sink for run and per-check progress events.

    The orchestrator awaits `emit` inline between checks, so
    implementations should return quickly and never raise. Events carry
    no authority: the AuditReport is the only result of a run.
    """

    async def emit(self, event: AuditEvent) -> None:
        ...


class NullEventEmitter:
    """
    Discards every event. Default when the orchestrator has no listener.
    """

    async def emit(self, event: AuditEvent) -> None:
        return
