"""
Redirect URI validation check (RFC 6749 Section 3.1.2).
"""

from __future__ import annotations

from idp_auditor.app.checks.base import AuditContext, BaseCheck
from idp_auditor.app.discovery.models import DiscoveryFailure
from idp_auditor.app.schemas.results import (
    CheckCategory,
    CheckResult,
    Severity,
)


REDIRECT_URI_RECOMMENDATIONS = (
    "Require exact match for redirect URIs (no wildcards or pattern matching)",
    "Reject redirect URIs with HTTP scheme (require HTTPS) except for "
    "localhost development",
    "Prevent open redirects by validating against pre-registered URIs only",
    "Do not allow redirect_uri to be omitted if multiple URIs are registered",
    "Validate the full URI including query parameters and fragments",
)


class RedirectURICheck(BaseCheck):
    id = "oauth-redirect-uri"
    name = "Redirect URI Validation Check"
    category = CheckCategory.OAUTH
    default_severity = Severity.CRITICAL
    description = (
        "Validates that the OAuth authorization server exposes the "
        "endpoints needed for redirect URI validation"
    )
    references = (
        "https://datatracker.ietf.org/doc/html/rfc6749#section-3.1.2",
        "https://datatracker.ietf.org/doc/html/rfc6749#section-10.6",
        "https://datatracker.ietf.org/doc/html/rfc6749#section-10.15",
        "https://oauth.net/2/redirect-uris/",
    )
    subject = "redirect URI validation policies"

    async def evaluate(self, context: AuditContext) -> CheckResult:
        outcome = await self.discover(context)
        if isinstance(outcome, DiscoveryFailure):
            return self.discovery_warning(outcome)

        metadata = outcome.document

        if metadata.authorization_endpoint is None:
            return self.failed(
                "No authorization endpoint found in metadata. Cannot "
                "validate redirect URI handling.",
                severity=Severity.HIGH,
                remediation=(
                    "Advertise an authorization_endpoint in the server "
                    "metadata."
                ),
                metadata={"issuer": metadata.issuer},
            )

        has_registration = metadata.registration_endpoint is not None
        if has_registration:
            message = (
                "Authorization server supports dynamic client registration. "
                "Ensure redirect URIs are validated during registration and "
                "authorization."
            )
        else:
            message = (
                "Authorization server metadata discovered. Redirect URI "
                "validation must be enforced during client registration and "
                "authorization requests."
            )

        return self.passed(
            message,
            metadata={
                "issuer": metadata.issuer,
                "authorization_endpoint": metadata.authorization_endpoint,
                "registration_endpoint": metadata.registration_endpoint,
                "has_registration_endpoint": has_registration,
                "recommendations": list(REDIRECT_URI_RECOMMENDATIONS),
                "security_note": (
                    "Redirect URI validation requires manual testing or "
                    "runtime verification"
                ),
            },
        )
