"""
State parameter check (RFC 6749 Section 10.12).

The state parameter is a client-side CSRF defence and is not advertised in
discovery metadata. The check confirms the provider is auditable and
records the guidance; it cannot observe the authorization flow itself.
"""

from __future__ import annotations

from idp_auditor.app.checks.base import AuditContext, BaseCheck
from idp_auditor.app.discovery.models import DiscoveryFailure
from idp_auditor.app.schemas.results import (
    CheckCategory,
    CheckResult,
    Severity,
)


class StateParameterCheck(BaseCheck):
    id = "oauth-state-parameter"
    name = "State Parameter Implementation Check"
    category = CheckCategory.OAUTH
    default_severity = Severity.HIGH
    description = (
        "Validates that the OAuth authorization server supports the state "
        "parameter for CSRF protection"
    )
    references = (
        "https://datatracker.ietf.org/doc/html/rfc6749#section-10.12",
        "https://datatracker.ietf.org/doc/html/rfc6749#section-4.1.1",
        "https://owasp.org/www-community/attacks/csrf",
    )
    subject = "state parameter support"

    async def evaluate(self, context: AuditContext) -> CheckResult:
        outcome = await self.discover(context)
        if isinstance(outcome, DiscoveryFailure):
            return self.discovery_warning(outcome)

        metadata = outcome.document

        return self.passed(
            "OAuth metadata discovered. State parameter support cannot be "
            "verified automatically as it requires exercising the "
            "authorization flow. Ensure clients generate and validate state "
            "values for CSRF protection.",
            metadata={
                "issuer": metadata.issuer,
                "authorization_endpoint": metadata.authorization_endpoint,
                "note": (
                    "State parameter is a client-side responsibility "
                    "recommended by RFC 6749 Section 10.12"
                ),
                "recommendation": (
                    "Always include a state parameter in authorization requests"
                ),
            },
        )
