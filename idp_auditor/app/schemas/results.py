"""
Standardized check result schema.

Defines the canonical structure every compliance check returns to the
orchestrator. A CheckResult is:
- immutable once constructed
- traceable to exactly one check id
- severity-graded only when it represents a finding (fail or warning)
- self-describing through a read-only metadata mapping

All results included in an AuditReport MUST conform to this schema.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)


# ---------------------------------------------------------------------------
# Enumerations (FROZEN CONTRACTS)
# ---------------------------------------------------------------------------


class Severity(str, Enum):
    """
    Severity level of a finding.

    Ordering is total: info < low < medium < high < critical.
    """

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK: Dict[Severity, int] = {
    Severity.INFO: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class CheckStatus(str, Enum):
    """
    Outcome of a single check execution.
    """

    PASS = "pass"
    FAIL = "fail"
    WARNING = "warning"
    SKIPPED = "skipped"
    ERROR = "error"


class CheckCategory(str, Enum):
    """
    Compliance domain a check belongs to.

    Each category maps to exactly one scorecard standard.
    """

    OAUTH = "oauth"
    NIST = "nist"
    OWASP = "owasp"
    CUSTOM = "custom"


FINDING_STATUSES = frozenset({CheckStatus.FAIL, CheckStatus.WARNING})


# ---------------------------------------------------------------------------
# Canonical Check Result (PUBLIC, FROZEN)
# ---------------------------------------------------------------------------


class CheckResult(BaseModel):
    """
    Immutable outcome of one compliance check.

    Structured findings (flags, token lists, classification outcomes)
    live in `metadata`. Prose in `message` and `remediation` is for
    humans only and must never be the sole carrier of a finding.
    """

    id: str = Field(..., description="Identifier of the producing check")
    name: str = Field(..., description="Human-readable check name")
    category: CheckCategory
    status: CheckStatus

    severity: Optional[Severity] = Field(
        None,
        description="Set only when status is fail or warning",
    )

    description: str = Field("", description="What the check verifies")
    message: Optional[str] = None
    remediation: Optional[str] = None

    references: List[str] = Field(default_factory=list)

    metadata: Mapping[str, Any] = Field(
        default_factory=lambda: MappingProxyType({}),
        description="Read-only structured findings for downstream consumers",
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    duration_ms: float = Field(
        0.0,
        ge=0.0,
        description="Wall-clock execution time recorded by the orchestrator",
    )

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("metadata", mode="after")
    @classmethod
    def freeze_metadata(cls, v: Mapping[str, Any]) -> Mapping[str, Any]:
        if isinstance(v, MappingProxyType):
            return v
        return MappingProxyType(dict(v))

    @model_validator(mode="after")
    def severity_only_on_findings(self) -> "CheckResult":
        if self.severity is not None and self.status not in FINDING_STATUSES:
            raise ValueError(
                f"severity must be unset for status '{self.status.value}'"
            )
        return self

    @field_serializer("metadata")
    def serialize_metadata(self, v: Mapping[str, Any]) -> Dict[str, Any]:
        return dict(v)

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    @property
    def is_finding(self) -> bool:
        return self.status in FINDING_STATUSES

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


# ---------------------------------------------------------------------------
# Metadata accumulation
# ---------------------------------------------------------------------------


class MetadataBuilder:
    """
    Accumulates result metadata during check evaluation.

    The builder is local to one evaluation; `build()` produces the
    read-only mapping attached to the CheckResult.
    """

    def __init__(self, initial: Optional[Mapping[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = dict(initial or {})

    def set(self, key: str, value: Any) -> "MetadataBuilder":
        self._data[key] = value
        return self

    def update(self, values: Mapping[str, Any]) -> "MetadataBuilder":
        self._data.update(values)
        return self

    def build(self) -> Mapping[str, Any]:
        return MappingProxyType(dict(self._data))
