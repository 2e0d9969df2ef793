from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, List

from idp_auditor.app.config import AuditorConfig
from idp_auditor.app.events.models import AuditEvent, AuditEventType
from idp_auditor.app.events.emitter import AuditEventEmitter


logger = logging.getLogger(__name__)


class MemoryQueueEventEmitter(AuditEventEmitter):
    """
    In-memory event buffer for a single consumer.

    `emit` never waits: the orchestrator runs checks between emissions,
    so when a bounded queue is full the event is dropped and counted
    instead of stalling the audit. The emitter closes itself on
    AUDIT_COMPLETED.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[AuditEvent | None] = asyncio.Queue(maxsize)
        self._closed = False
        self._dropped = 0

    @classmethod
    def from_config(cls, config: AuditorConfig) -> "MemoryQueueEventEmitter":
        return cls(maxsize=config.EVENT_QUEUE_SIZE)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def dropped(self) -> int:
        return self._dropped

    async def emit(self, event: AuditEvent) -> None:
        if self._closed:
            return

        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning(
                "Event queue full, dropped %s for audit %s",
                event.event_type.value,
                event.audit_id,
            )

        if event.event_type is AuditEventType.AUDIT_COMPLETED:
            await self.close()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            # stream() stops on closed + empty instead
            pass

    async def stream(self) -> AsyncIterator[AuditEvent]:
        """
        Yield buffered events in emission order until the emitter closes.
        """
        while not (self._closed and self._queue.empty()):
            event = await self._queue.get()
            if event is None:
                break
            yield event

    async def drain(self) -> List[AuditEvent]:
        """Collect every event until the emitter closes."""
        return [event async for event in self.stream()]
