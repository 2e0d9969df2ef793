"""
Token endpoint security check.

OWASP Top 10 A02:2021 (Cryptographic Failures). Verifies the token
endpoint is advertised and served over HTTPS, and flags weak client
authentication methods.
"""

from __future__ import annotations

from urllib.parse import urlparse

from idp_auditor.app.checks.base import AuditContext, BaseCheck
from idp_auditor.app.discovery.models import DiscoveryFailure
from idp_auditor.app.schemas.results import (
    CheckCategory,
    CheckResult,
    Severity,
)


LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1"})

CLIENT_STORAGE_RECOMMENDATIONS = """
1. Never store tokens in localStorage (vulnerable to XSS)
2. Use httpOnly, secure, SameSite cookies when possible
3. For SPAs, consider the Backend-for-Frontend (BFF) pattern
4. Use short-lived access tokens with refresh token rotation
5. Clear tokens on logout and session expiration
""".strip()


class TokenStorageCheck(BaseCheck):
    id = "oauth-token-storage"
    name = "Token Storage Security Check"
    category = CheckCategory.OAUTH
    default_severity = Severity.HIGH
    description = (
        "Validates token endpoint security and provides guidance on secure "
        "token storage practices"
    )
    references = (
        "https://datatracker.ietf.org/doc/html/rfc6749#section-10.3",
        "https://datatracker.ietf.org/doc/html/rfc6750",
        "https://cheatsheetseries.owasp.org/cheatsheets/"
        "HTML5_Security_Cheat_Sheet.html#local-storage",
    )
    subject = "token endpoint security"

    async def evaluate(self, context: AuditContext) -> CheckResult:
        outcome = await self.discover(context)
        if isinstance(outcome, DiscoveryFailure):
            return self.discovery_warning(outcome)

        metadata = outcome.document
        token_endpoint = metadata.token_endpoint

        if token_endpoint is None:
            return self.failed(
                "No token endpoint found in OAuth metadata. A token endpoint "
                "is required for secure token issuance.",
                severity=Severity.CRITICAL,
                remediation=(
                    "Configure and advertise a token_endpoint in the server "
                    "metadata."
                ),
                metadata={"issuer": metadata.issuer},
            )

        parsed = urlparse(token_endpoint)
        uses_https = parsed.scheme == "https"

        if not uses_https and parsed.hostname not in LOCAL_HOSTS:
            return self.failed(
                f"Token endpoint uses insecure protocol: {token_endpoint}. "
                "Tokens MUST be transmitted over HTTPS.",
                severity=Severity.CRITICAL,
                remediation=(
                    "Serve the token endpoint over HTTPS. Tokens are "
                    "credentials and must be protected in transit."
                ),
                metadata={
                    "issuer": metadata.issuer,
                    "token_endpoint": token_endpoint,
                    "protocol": f"{parsed.scheme}:",
                },
            )

        auth_methods = metadata.token_endpoint_auth_methods_supported
        warnings = []

        if "none" in auth_methods:
            warnings.append(
                "'none' authentication method is supported (public clients only)"
            )
        if (
            "client_secret_post" in auth_methods
            and "client_secret_basic" not in auth_methods
            and "private_key_jwt" not in auth_methods
        ):
            warnings.append(
                "Consider supporting more secure methods like 'private_key_jwt'"
            )

        if warnings:
            joined = ". ".join(warnings)
            return self.warned(
                f"Token endpoint found at {token_endpoint}. {joined}.",
                remediation=(
                    f"Server-side: {joined}.\n\n"
                    f"Client-side recommendations:\n"
                    f"{CLIENT_STORAGE_RECOMMENDATIONS}"
                ),
                metadata={
                    "issuer": metadata.issuer,
                    "token_endpoint": token_endpoint,
                    "uses_https": uses_https,
                    "auth_methods": list(auth_methods),
                    "warnings": warnings,
                },
            )

        if auth_methods:
            detail = f"Supported auth methods: {', '.join(auth_methods)}"
        else:
            detail = "Ensure proper client authentication."

        return self.passed(
            f"Token endpoint properly configured at {token_endpoint}. {detail}",
            metadata={
                "issuer": metadata.issuer,
                "token_endpoint": token_endpoint,
                "uses_https": uses_https,
                "auth_methods": list(auth_methods),
                "client_storage_recommendations": CLIENT_STORAGE_RECOMMENDATIONS,
            },
        )
