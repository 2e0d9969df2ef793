from typing import Protocol

from idp_auditor.app.discovery.models import DiscoveryOutcome


class MetadataSource(Protocol):
    """
    Interface for fetching an identity provider's capability document.

    A source:
    - attempts well-known discovery URLs in a fixed order
    - records every attempt it made
    - reports failures as a DiscoveryFailure value, never by raising
    """

    async def discover(self, target: str) -> DiscoveryOutcome:
        ...
