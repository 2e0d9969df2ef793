"""
PKCE (Proof Key for Code Exchange) check.

RFC 7636. PKCE protects the authorization code flow against code
interception, which matters most for public clients (mobile, SPA).
"""

from __future__ import annotations

from idp_auditor.app.checks.base import AuditContext, BaseCheck
from idp_auditor.app.discovery.models import DiscoveryFailure
from idp_auditor.app.schemas.results import (
    CheckCategory,
    CheckResult,
    Severity,
)


PKCE_REMEDIATION = """
To implement PKCE on the authorization server:
1. Accept code_challenge and code_challenge_method on authorization requests
2. Store the code_challenge with the issued authorization code
3. Require code_verifier on the token request
4. Verify that BASE64URL(SHA-256(code_verifier)) equals the stored challenge
5. Advertise support in the discovery document:
   "code_challenge_methods_supported": ["S256"]

References:
- RFC 7636: https://datatracker.ietf.org/doc/html/rfc7636
- OAuth.net PKCE Guide: https://oauth.net/2/pkce/
""".strip()


class PKCECheck(BaseCheck):
    id = "oauth-pkce"
    name = "PKCE Implementation Check"
    category = CheckCategory.OAUTH
    default_severity = Severity.HIGH
    description = (
        "Validates that PKCE (Proof Key for Code Exchange) is supported "
        "for the OAuth 2.0 authorization code flow"
    )
    references = (
        "https://datatracker.ietf.org/doc/html/rfc7636",
        "https://oauth.net/2/pkce/",
        "https://www.oauth.com/oauth2-servers/pkce/",
    )
    subject = "PKCE support"

    async def evaluate(self, context: AuditContext) -> CheckResult:
        outcome = await self.discover(context)
        if isinstance(outcome, DiscoveryFailure):
            return self.discovery_warning(outcome)

        metadata = outcome.document
        methods = metadata.code_challenge_methods_supported

        if not methods:
            return self.failed(
                "PKCE is not supported by this OAuth server. The server does "
                "not advertise code_challenge_methods_supported in its "
                "metadata.",
                severity=Severity.HIGH,
                remediation=PKCE_REMEDIATION,
                metadata={
                    "issuer": metadata.issuer,
                    "authorization_endpoint": metadata.authorization_endpoint,
                    "token_endpoint": metadata.token_endpoint,
                },
            )

        if "S256" not in methods:
            return self.warned(
                "PKCE is supported, but the recommended S256 method is not "
                f"available. Supported methods: {', '.join(methods)}",
                remediation=(
                    "Add S256 (SHA-256) support to the PKCE implementation. "
                    "The 'plain' method is less secure."
                ),
                metadata={
                    "issuer": metadata.issuer,
                    "supported_methods": list(methods),
                },
            )

        self.log(context, "PKCE supported with S256")
        return self.passed(
            "PKCE is properly supported with S256 method. "
            f"Supported methods: {', '.join(methods)}",
            metadata={
                "issuer": metadata.issuer,
                "supported_methods": list(methods),
                "authorization_endpoint": metadata.authorization_endpoint,
            },
        )
