"""
NIST SP 800-63B session management check (Section 7).

Evaluated against the highest assurance level the provider advertises,
or AAL1 when nothing is advertised. Covers session lifetime, session
binding, reauthentication, termination and idle/absolute timeouts.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from idp_auditor.app.checks.base import AuditContext, RuleFindings
from idp_auditor.app.checks.nist.common import NIST_REFERENCE, NistCheck
from idp_auditor.app.classification.assurance import (
    AssuranceLevel,
    idle_timeout_minutes,
    session_timeout_hours,
)
from idp_auditor.app.discovery.models import DiscoveryFailure, ProviderMetadata
from idp_auditor.app.schemas.results import (
    CheckResult,
    MetadataBuilder,
    Severity,
)


SESSION_LIFETIME_FIELDS = (
    "access_token_ttl",
    "id_token_ttl",
    "session_max_lifetime",
    "session_lifetime",
    "max_session_duration",
)

IDLE_TIMEOUT_FIELDS = (
    "idle_timeout",
    "session_idle_timeout",
    "inactivity_timeout",
)

ABSOLUTE_TIMEOUT_FIELDS = (
    "session_max_lifetime",
    "absolute_timeout",
    "max_session_duration",
)


def _numeric(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def session_timeout_details(
    metadata: ProviderMetadata,
    level: AssuranceLevel,
) -> Dict[str, Any]:
    """
    Locate the first advertised session lifetime (seconds) and compare it
    against the level's maximum.
    """
    details: Dict[str, Any] = {"has_timeout_info": False}

    for field in SESSION_LIFETIME_FIELDS:
        if metadata.get(field) is not None:
            details["has_timeout_info"] = True
            details["max_session_duration"] = metadata.get(field)
            details["source"] = field
            break

    seconds = _numeric(details.get("max_session_duration"))
    if seconds:
        limit = session_timeout_hours(level) * 3600
        details["required_max_seconds"] = limit
        details["meets_requirements"] = seconds <= limit

    return details


def session_binding_methods(metadata: ProviderMetadata) -> List[str]:
    methods = []
    if metadata.code_challenge_methods_supported:
        methods.append("PKCE (authorization code binding)")
    if metadata.has("dpop_signing_alg_values_supported") or metadata.has(
        "dpop_algs_supported"
    ):
        methods.append("DPoP (token binding)")
    if metadata.has("tls_client_certificate_bound_access_tokens") or metadata.has(
        "mtls_endpoint_aliases"
    ):
        methods.append("mTLS (certificate-bound tokens)")
    if metadata.has("token_binding_supported"):
        methods.append("Token Binding Protocol")
    return methods


def logout_mechanisms(metadata: ProviderMetadata) -> List[str]:
    mechanisms = []
    if metadata.end_session_endpoint:
        mechanisms.append(f"end_session_endpoint: {metadata.end_session_endpoint}")
    if metadata.has("frontchannel_logout_supported"):
        mechanisms.append("front-channel logout supported")
    if metadata.has("backchannel_logout_supported"):
        mechanisms.append("back-channel logout supported")
    return mechanisms


class SessionManagementCheck(NistCheck):
    id = "nist-session-management"
    name = "NIST Session Management"
    default_severity = Severity.HIGH
    description = (
        "Validates session management controls including timeouts, binding, "
        "reauthentication, and termination according to NIST SP 800-63B"
    )
    references = (
        NIST_REFERENCE + "#sec7",
        "https://openid.net/specs/openid-connect-session-1_0.html",
        "https://openid.net/specs/openid-connect-frontchannel-1_0.html",
        "https://openid.net/specs/openid-connect-backchannel-1_0.html",
    )
    subject = "session management controls"

    async def evaluate(self, context: AuditContext) -> CheckResult:
        outcome = await self.discover(context)
        if isinstance(outcome, DiscoveryFailure):
            return self.discovery_warning(outcome)

        metadata = outcome.document
        findings = RuleFindings()
        details = MetadataBuilder({"issuer": metadata.issuer})

        level = self.target_level(metadata)
        details.set("target_aal", level.label)

        # Session lifetime
        timeouts = session_timeout_details(metadata, level)
        details.set("session_timeout_check", timeouts)
        if not timeouts["has_timeout_info"]:
            findings.recommend(
                "Cannot verify session timeout configuration from metadata. "
                "Manual verification required."
            )
        elif timeouts.get("meets_requirements") is False:
            findings.critical(
                f"Session timeouts do not meet NIST requirements for "
                f"{level.label} (maximum {session_timeout_hours(level)} hours)."
            )

        # Binding
        binding = session_binding_methods(metadata)
        details.set("session_binding", binding)
        if not binding:
            findings.recommend(
                "Cannot verify session binding mechanisms from metadata. "
                "Ensure sessions are cryptographically bound to "
                "authenticators."
            )

        # Reauthentication
        prompt_login = "login" in metadata.prompt_values_supported
        auth_time = "auth_time" in metadata.claims_supported
        details.set(
            "reauthentication",
            {
                "supports_prompt_login": prompt_login,
                "supports_max_age": auth_time,
                "supports_auth_time": auth_time,
            },
        )
        if not prompt_login and not auth_time:
            findings.recommend(
                "No reauthentication mechanisms detected (prompt=login, "
                "max_age parameter). Required for sensitive operations."
            )

        # Termination
        logout = logout_mechanisms(metadata)
        details.set("session_termination", logout)
        if not logout:
            findings.critical(
                "No session termination endpoint detected. NIST requires the "
                "ability to terminate sessions."
            )

        # Idle vs absolute timeouts
        has_idle = any(metadata.get(f) is not None for f in IDLE_TIMEOUT_FIELDS)
        has_absolute = any(
            metadata.get(f) is not None for f in ABSOLUTE_TIMEOUT_FIELDS
        )
        details.set(
            "timeout_types",
            {
                "has_idle_timeout_info": has_idle,
                "has_absolute_timeout_info": has_absolute,
                "distinguishes_idle_from_absolute": has_idle and has_absolute,
            },
        )
        idle_limit = idle_timeout_minutes(level)
        if idle_limit is not None and not (has_idle and has_absolute):
            findings.recommend(
                f"Cannot verify idle timeout configuration. {level.label} "
                f"requires an idle timeout of {idle_limit} minutes."
            )

        return self.conclude(
            findings,
            failure_message=f"Session management check FAILED for {level.label}.",
            warning_message=(
                "Session management check passed with recommendations for "
                f"{level.label}."
            ),
            pass_message=(
                "Session management controls meet NIST requirements for "
                f"{level.label}."
            ),
            metadata=details,
        )
