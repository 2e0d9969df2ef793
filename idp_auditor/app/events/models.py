from __future__ import annotations

from typing import Any, Dict, Optional
from enum import Enum
from datetime import datetime, timezone
from uuid import uuid4, UUID

from pydantic import BaseModel, Field, ConfigDict


# ----------------------------------------------------------------------
# Event Types (Finite and Versioned)
# ----------------------------------------------------------------------
class AuditEventType(str, Enum):
    """
    Progression events emitted during an audit run.

    NOTE:
    This enum is finite and versioned.
    New entries must preserve observational semantics.
    """

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------
    AUDIT_STARTED = "audit_started"
    AUDIT_COMPLETED = "audit_completed"

    # ------------------------------------------------------------------
    # Per-check lifecycle
    # ------------------------------------------------------------------
    CHECK_STARTED = "check_started"
    CHECK_COMPLETED = "check_completed"
    CHECK_ERRORED = "check_errored"


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class AuditEvent(BaseModel):
    """
    An immutable observation of a phase transition within an audit run.

    Events are:
    - strictly observational
    - transport-agnostic
    - not authoritative
    """

    event_id: UUID = Field(default_factory=uuid4)
    audit_id: str = Field(..., description="Identifier of the audit run")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: AuditEventType

    # Optional contextual metadata (check_id, status, counts, etc.)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
