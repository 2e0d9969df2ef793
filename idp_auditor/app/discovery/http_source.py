"""
HTTP metadata source (aiohttp).

Fetches an identity provider's capability document from the two
well-known discovery locations, in order:

    1. {issuer}/.well-known/oauth-authorization-server   (RFC 8414)
    2. {issuer}/.well-known/openid-configuration        (OIDC Discovery)

aiohttp lifecycle:
    The ClientSession is scoped to a single discover() call. No session
    or response is cached across calls or across checks.

Failure contract:
    Transport errors are never raised to the caller. They terminate
    discovery and yield a DiscoveryFailure whose attempts contain only
    the requests that completed before the error. Bodies that are not
    decodable JSON objects are recorded as unsuccessful attempts.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, List, Optional, Tuple

import aiohttp

from idp_auditor.app.config import AuditorConfig
from idp_auditor.app.discovery.models import (
    DiscoveryAttempt,
    DiscoveryFailure,
    DiscoveryOutcome,
    DiscoverySuccess,
    ProviderMetadata,
)


logger = logging.getLogger(__name__)


WELL_KNOWN_PATHS: Tuple[str, ...] = (
    "/.well-known/oauth-authorization-server",
    "/.well-known/openid-configuration",
)


class HttpMetadataSource:
    """
    MetadataSource backed by aiohttp.

    Every response status is recorded. An attempt is successful only when
    the server answers 200 with a JSON object body.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 10.0,
        user_agent: str = "IdP-Auditor/0.1.0 (Security Audit Tool)",
    ) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._headers = {
            "User-Agent": user_agent,
            "Accept": "application/json",
        }

    @classmethod
    def from_config(cls, config: AuditorConfig) -> "HttpMetadataSource":
        return cls(
            timeout_seconds=config.HTTP_TIMEOUT_SECONDS,
            user_agent=config.USER_AGENT,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def discover(self, target: str) -> DiscoveryOutcome:
        issuer = target.rstrip("/")
        attempts: List[DiscoveryAttempt] = []

        try:
            async with aiohttp.ClientSession(
                timeout=self._timeout,
                headers=self._headers,
            ) as session:
                for path in WELL_KNOWN_PATHS:
                    url = f"{issuer}{path}"
                    status, document = await self._fetch(session, url)

                    attempts.append(
                        DiscoveryAttempt(
                            url=url,
                            status=status,
                            success=document is not None,
                        )
                    )

                    if document is not None:
                        logger.debug("Discovered metadata at %s", url)
                        return DiscoverySuccess(
                            document=ProviderMetadata(document),
                            attempts=tuple(attempts),
                        )

        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning(
                "Metadata discovery for %s aborted after %d attempt(s): %r",
                issuer,
                len(attempts),
                exc,
            )
            return DiscoveryFailure(
                attempts=tuple(attempts),
                error=str(exc) or type(exc).__name__,
            )

        logger.info(
            "No capability document found for %s (%s)",
            issuer,
            ", ".join(str(a.status) for a in attempts),
        )
        return DiscoveryFailure(attempts=tuple(attempts))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _fetch(
        session: aiohttp.ClientSession,
        url: str,
    ) -> Tuple[int, Optional[dict]]:
        """
        Return (status, document). document is None unless the response
        is 200 with a JSON object body.
        """
        async with session.get(url) as response:
            status = response.status
            if status != 200:
                return status, None

            body = await response.read()

        try:
            document: Any = json.loads(body)
        except ValueError:
            # UnicodeDecodeError is a ValueError
            logger.warning("Discovery response from %s is not valid JSON", url)
            return status, None

        if not isinstance(document, dict):
            logger.warning("Discovery response from %s is not a JSON object", url)
            return status, None

        return status, document
