import logging

import pytest
from pydantic import ValidationError

from idp_auditor.app.config import AuditorConfig
from idp_auditor.app.events import (
    AuditEvent,
    AuditEventType,
    MemoryQueueEventEmitter,
    NullEventEmitter,
)

pytestmark = pytest.mark.anyio


def _event(event_type, **details):
    return AuditEvent(
        audit_id="audit-001",
        event_type=event_type,
        details=details or None,
    )


async def test_events_stream_in_emission_order():
    emitter = MemoryQueueEventEmitter()

    await emitter.emit(_event(AuditEventType.AUDIT_STARTED))
    await emitter.emit(_event(AuditEventType.CHECK_STARTED, check_id="a"))
    await emitter.emit(_event(AuditEventType.AUDIT_COMPLETED))

    events = await emitter.drain()

    assert [e.event_type for e in events] == [
        AuditEventType.AUDIT_STARTED,
        AuditEventType.CHECK_STARTED,
        AuditEventType.AUDIT_COMPLETED,
    ]
    assert events[1].details == {"check_id": "a"}


async def test_events_after_completion_are_ignored():
    emitter = MemoryQueueEventEmitter()

    await emitter.emit(_event(AuditEventType.AUDIT_COMPLETED))
    await emitter.emit(_event(AuditEventType.CHECK_STARTED))

    events = await emitter.drain()

    assert emitter.closed is True
    assert len(events) == 1


async def test_explicit_close_is_idempotent():
    emitter = MemoryQueueEventEmitter()

    await emitter.close()
    await emitter.close()

    assert await emitter.drain() == []


async def test_null_emitter_accepts_events():
    await NullEventEmitter().emit(_event(AuditEventType.AUDIT_STARTED))


def test_events_are_immutable():
    event = _event(AuditEventType.AUDIT_STARTED)

    with pytest.raises(ValidationError):
        event.audit_id = "other"


async def test_full_queue_drops_instead_of_blocking(caplog):
    emitter = MemoryQueueEventEmitter(maxsize=2)

    with caplog.at_level(logging.WARNING):
        for check_id in ("a", "b", "c"):
            await emitter.emit(
                _event(AuditEventType.CHECK_STARTED, check_id=check_id)
            )
        await emitter.emit(_event(AuditEventType.AUDIT_COMPLETED))

    events = await emitter.drain()

    assert [e.details["check_id"] for e in events] == ["a", "b"]
    assert emitter.dropped == 2
    assert emitter.closed is True
    assert "Event queue full" in caplog.text


async def test_queue_size_comes_from_config():
    emitter = MemoryQueueEventEmitter.from_config(
        AuditorConfig(EVENT_QUEUE_SIZE=1)
    )

    await emitter.emit(_event(AuditEventType.AUDIT_STARTED))
    await emitter.emit(_event(AuditEventType.CHECK_STARTED))

    assert emitter.dropped == 1
