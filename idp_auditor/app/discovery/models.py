"""
Discovery outcome schema and provider metadata wrapper.

A discovery outcome is a value, never an exception: checks branch on the
variant and surface failures as warnings.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Provider metadata
# ---------------------------------------------------------------------------


class ProviderMetadata:
    """
    Read-only view over a discovered capability document.

    Accessors tolerate malformed documents: list-valued fields that are
    not lists yield an empty tuple, and non-string list entries are
    dropped.
    """

    __slots__ = ("_document",)

    def __init__(self, document: Mapping[str, Any]) -> None:
        self._document: Mapping[str, Any] = MappingProxyType(dict(document))

    def __repr__(self) -> str:
        return f"ProviderMetadata(issuer={self.issuer!r})"

    # ------------------------------------------------------------------
    # Generic access
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        return self._document.get(key, default)

    def has(self, key: str) -> bool:
        """True if the key is present with a truthy value."""
        return bool(self._document.get(key))

    def string(self, key: str) -> Optional[str]:
        value = self._document.get(key)
        if isinstance(value, str) and value:
            return value
        return None

    def strings(self, key: str) -> Tuple[str, ...]:
        value = self._document.get(key)
        if not isinstance(value, list):
            return ()
        return tuple(item for item in value if isinstance(item, str))

    # ------------------------------------------------------------------
    # Well-known fields
    # ------------------------------------------------------------------

    @property
    def issuer(self) -> Optional[str]:
        return self.string("issuer")

    @property
    def authorization_endpoint(self) -> Optional[str]:
        return self.string("authorization_endpoint")

    @property
    def token_endpoint(self) -> Optional[str]:
        return self.string("token_endpoint")

    @property
    def registration_endpoint(self) -> Optional[str]:
        return self.string("registration_endpoint")

    @property
    def end_session_endpoint(self) -> Optional[str]:
        return self.string("end_session_endpoint")

    @property
    def revocation_endpoint(self) -> Optional[str]:
        return self.string("revocation_endpoint")

    @property
    def introspection_endpoint(self) -> Optional[str]:
        return self.string("introspection_endpoint")

    @property
    def userinfo_endpoint(self) -> Optional[str]:
        return self.string("userinfo_endpoint")

    @property
    def acr_values_supported(self) -> Tuple[str, ...]:
        return self.strings("acr_values_supported")

    @property
    def amr_values_supported(self) -> Tuple[str, ...]:
        return self.strings("amr_values_supported")

    @property
    def claims_supported(self) -> Tuple[str, ...]:
        return self.strings("claims_supported")

    @property
    def response_types_supported(self) -> Tuple[str, ...]:
        return self.strings("response_types_supported")

    @property
    def code_challenge_methods_supported(self) -> Tuple[str, ...]:
        return self.strings("code_challenge_methods_supported")

    @property
    def token_endpoint_auth_methods_supported(self) -> Tuple[str, ...]:
        return self.strings("token_endpoint_auth_methods_supported")

    @property
    def prompt_values_supported(self) -> Tuple[str, ...]:
        return self.strings("prompt_values_supported")

    # ------------------------------------------------------------------
    # Derived capabilities
    # ------------------------------------------------------------------

    @property
    def is_oidc_provider(self) -> bool:
        """An OpenID provider advertises at least one id_token response type."""
        return any("id_token" in rt for rt in self.response_types_supported)

    @property
    def supports_pkce_s256(self) -> bool:
        return "S256" in self.code_challenge_methods_supported

    def non_https_endpoints(self) -> List[str]:
        """
        Present authorization/token endpoints that do not use https://.
        """
        offenders = []
        for name in ("authorization_endpoint", "token_endpoint"):
            endpoint = self.string(name)
            if endpoint is not None and not endpoint.startswith("https://"):
                offenders.append(endpoint)
        return offenders


# ---------------------------------------------------------------------------
# Discovery outcome
# ---------------------------------------------------------------------------


class DiscoveryAttempt(BaseModel):
    """
    One request against a well-known discovery URL.

    `status` is the HTTP status code received.
    """

    url: str
    status: int
    success: bool

    model_config = ConfigDict(frozen=True, extra="forbid")


class DiscoverySuccess(BaseModel):
    ok: Literal[True] = True
    document: ProviderMetadata
    attempts: Tuple[DiscoveryAttempt, ...] = ()

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )


class DiscoveryFailure(BaseModel):
    ok: Literal[False] = False
    attempts: Tuple[DiscoveryAttempt, ...] = ()
    error: Optional[str] = Field(
        None,
        description="Transport error that aborted discovery, if any",
    )

    def attempts_payload(self) -> List[Dict[str, Any]]:
        return [attempt.model_dump() for attempt in self.attempts]

    model_config = ConfigDict(frozen=True, extra="forbid")


DiscoveryOutcome = Union[DiscoverySuccess, DiscoveryFailure]
