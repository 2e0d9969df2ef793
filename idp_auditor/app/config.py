"""
Runtime configuration for the identity provider auditor.

This module centralizes environment-driven configuration: which checks run,
which NIST assurance level the catalogue targets, how the capability
document is fetched, and which severity counts as a blocking finding.

Configuration is read-only at runtime and must not influence check
outcomes beyond selecting which checks are executed.
"""

from __future__ import annotations

import os
from typing import List

from pydantic import BaseModel, Field, field_validator


ALLOWED_ASSURANCE_LEVELS = ("AAL1", "AAL2", "AAL3")
ALLOWED_CATEGORIES = ("oauth", "nist", "owasp", "custom")
ALLOWED_SEVERITIES = ("critical", "high", "medium", "low", "info")


class AuditorConfig(BaseModel):
    """
    Runtime configuration for the auditor.

    Configuration is environment-driven and immutable once constructed.
    """

    # ------------------------------------------------------------------
    # Target and transport
    # ------------------------------------------------------------------

    TARGET: str = Field(
        "",
        description="Issuer URL of the identity provider under audit",
    )

    HTTP_TIMEOUT_SECONDS: float = Field(
        10.0,
        description="Total timeout applied to each discovery request",
    )

    USER_AGENT: str = Field(
        "IdP-Auditor/0.1.0 (Security Audit Tool)",
        description="User-Agent header sent with discovery requests",
    )

    # ------------------------------------------------------------------
    # Check selection
    # ------------------------------------------------------------------

    INCLUDE_CHECKS: List[str] = Field(
        default_factory=list,
        description="If non-empty, only checks with these ids are run",
    )

    EXCLUDE_CHECKS: List[str] = Field(
        default_factory=list,
        description="Checks with these ids are never run",
    )

    CATEGORIES: List[str] = Field(
        default_factory=list,
        description="If non-empty, only checks in these categories are run",
    )

    # ------------------------------------------------------------------
    # NIST 800-63B catalogue
    # ------------------------------------------------------------------

    NIST_ASSURANCE_LEVEL: str = Field(
        "AAL1",
        description=(
            "Highest authenticator assurance level the catalogue checks "
            "compliance for. Lower levels are always included."
        ),
    )

    ENABLE_SESSION_MANAGEMENT: bool = Field(
        True,
        description="Register the NIST session management check",
    )

    ENABLE_AUTHENTICATOR_LIFECYCLE: bool = Field(
        False,
        description="Register the NIST authenticator lifecycle check",
    )

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    EVENT_QUEUE_SIZE: int = Field(
        1000,
        description=(
            "Capacity of the in-memory event queue. 0 means unbounded; "
            "events beyond capacity are dropped, never awaited."
        ),
    )

    # ------------------------------------------------------------------
    # Outcome gating
    # ------------------------------------------------------------------

    FAIL_ON: str = Field(
        "critical",
        description=(
            "Minimum finding severity that marks an audit as blocking "
            "(see AuditReport.has_findings_at_or_above)"
        ),
    )

    # ------------------------------------------------------------------
    # Validators (Pydantic v2)
    # ------------------------------------------------------------------

    @field_validator("HTTP_TIMEOUT_SECONDS")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("HTTP_TIMEOUT_SECONDS must be positive.")
        return v

    @field_validator("EVENT_QUEUE_SIZE")
    @classmethod
    def validate_queue_size(cls, v: int) -> int:
        if v < 0:
            raise ValueError("EVENT_QUEUE_SIZE must not be negative.")
        return v

    @field_validator("NIST_ASSURANCE_LEVEL")
    @classmethod
    def validate_assurance_level(cls, v: str) -> str:
        normalized = v.strip().upper()
        if normalized not in ALLOWED_ASSURANCE_LEVELS:
            raise ValueError(
                f"Unsupported NIST_ASSURANCE_LEVEL '{v}'. "
                f"Allowed values: {list(ALLOWED_ASSURANCE_LEVELS)}"
            )
        return normalized

    @field_validator("CATEGORIES")
    @classmethod
    def validate_categories(cls, v: List[str]) -> List[str]:
        normalized = [c.strip().lower() for c in v if c.strip()]
        unknown = sorted(set(normalized) - set(ALLOWED_CATEGORIES))
        if unknown:
            raise ValueError(
                f"Unsupported CATEGORIES {unknown}. "
                f"Allowed values: {list(ALLOWED_CATEGORIES)}"
            )
        return normalized

    @field_validator("FAIL_ON")
    @classmethod
    def validate_fail_on(cls, v: str) -> str:
        normalized = v.strip().lower()
        if normalized not in ALLOWED_SEVERITIES:
            raise ValueError(
                f"Unsupported FAIL_ON '{v}'. "
                f"Allowed values: {list(ALLOWED_SEVERITIES)}"
            )
        return normalized

    @field_validator("INCLUDE_CHECKS", "EXCLUDE_CHECKS")
    @classmethod
    def strip_check_ids(cls, v: List[str]) -> List[str]:
        return [c.strip() for c in v if c.strip()]

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "AuditorConfig":
        """
        Load configuration from environment variables.

        All values are parsed once at startup and must remain immutable.
        """

        def env_bool(name: str, default: bool) -> bool:
            raw = os.getenv(name)
            if raw is None:
                return default
            return raw.lower() in {"1", "true", "yes", "on"}

        def env_list(name: str) -> List[str]:
            raw = os.getenv(name, "")
            return [item for item in raw.split(",") if item.strip()]

        return cls(
            TARGET=os.getenv("IDP_AUDITOR_TARGET", ""),
            HTTP_TIMEOUT_SECONDS=float(
                os.getenv("IDP_AUDITOR_HTTP_TIMEOUT_SECONDS", "10")
            ),
            USER_AGENT=os.getenv(
                "IDP_AUDITOR_USER_AGENT",
                "IdP-Auditor/0.1.0 (Security Audit Tool)",
            ),
            INCLUDE_CHECKS=env_list("IDP_AUDITOR_INCLUDE_CHECKS"),
            EXCLUDE_CHECKS=env_list("IDP_AUDITOR_EXCLUDE_CHECKS"),
            CATEGORIES=env_list("IDP_AUDITOR_CATEGORIES"),
            NIST_ASSURANCE_LEVEL=os.getenv(
                "IDP_AUDITOR_NIST_ASSURANCE_LEVEL", "AAL1"
            ),
            ENABLE_SESSION_MANAGEMENT=env_bool(
                "IDP_AUDITOR_ENABLE_SESSION_MANAGEMENT", True
            ),
            ENABLE_AUTHENTICATOR_LIFECYCLE=env_bool(
                "IDP_AUDITOR_ENABLE_AUTHENTICATOR_LIFECYCLE", False
            ),
            EVENT_QUEUE_SIZE=int(
                os.getenv("IDP_AUDITOR_EVENT_QUEUE_SIZE", "1000")
            ),
            FAIL_ON=os.getenv("IDP_AUDITOR_FAIL_ON", "critical"),
        )

    model_config = {
        "frozen": True,
    }
