"""
Authenticator assurance level classification.

Maps free-text authentication-context tokens (typically the provider's
`acr_values_supported`) onto the NIST SP 800-63B assurance levels, and
rates how confident that mapping is.

IMPORTANT:
- Classification is deterministic and pure.
- Only set membership of the input tokens matters, never their order.
- Pattern groups are evaluated top level first. The first matching group
  wins, so a token contributes to at most one level.
- The pattern tables below are conformance data. Do not reorder or
  "improve" them without updating the conformance tests.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class AssuranceLevel(IntEnum):
    """
    NIST SP 800-63B authenticator assurance levels.

    Integer values give the total order AAL1 < AAL2 < AAL3.
    """

    AAL1 = 1
    AAL2 = 2
    AAL3 = 3

    @property
    def label(self) -> str:
        return self.name

    @property
    def description(self) -> str:
        return _LEVEL_DESCRIPTIONS[self]

    @classmethod
    def from_label(cls, label: str) -> "AssuranceLevel":
        return cls[label.strip().upper()]


_LEVEL_DESCRIPTIONS: Dict[AssuranceLevel, str] = {
    AssuranceLevel.AAL1: "AAL1 (Basic Assurance - Single or Multi-Factor)",
    AssuranceLevel.AAL2: "AAL2 (High Assurance - Multi-Factor with Crypto)",
    AssuranceLevel.AAL3: (
        "AAL3 (Very High Assurance - Hardware Cryptographic Authenticator)"
    ),
}


class Confidence(str, Enum):
    """
    How certain the classification is.

    HIGH:   every token mapped to a level
    MEDIUM: some tokens mapped, some did not
    LOW:    no token mapped (or no tokens at all)
    """

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ---------------------------------------------------------------------------
# Pattern tables (top level first)
# ---------------------------------------------------------------------------

# (level, substrings, exact tokens); all lowercase
_LEVEL_PATTERNS: Tuple[Tuple[AssuranceLevel, Tuple[str, ...], frozenset], ...] = (
    (
        AssuranceLevel.AAL3,
        ("aal:3", "aal3", "veryhigh", "very-high"),
        frozenset({"phrh"}),
    ),
    (
        AssuranceLevel.AAL2,
        ("aal:2", "aal2", "2fa", "mfa", "multi"),
        frozenset({"phr", "high", "strong"}),
    ),
    (
        AssuranceLevel.AAL1,
        ("aal:1", "aal1", "1fa", "single"),
        frozenset({"basic", "low", "0"}),
    ),
)

MFA_INDICATORS: Tuple[str, ...] = (
    "mfa", "2fa", "multi", "aal:2", "aal2", "phr", "totp", "otp",
)

HARDWARE_INDICATORS: Tuple[str, ...] = (
    "aal:3", "aal3", "phrh", "hardware", "fido", "webauthn", "u2f",
)

PHISHING_RESISTANT_INDICATORS: Tuple[str, ...] = (
    "phr", "phrh", "phishing-resistant", "webauthn", "fido",
)


# ---------------------------------------------------------------------------
# Outcome models
# ---------------------------------------------------------------------------


class ClaimSupport(BaseModel):
    """
    Assurance-relevant claims advertised in `claims_supported`.
    """

    acr: bool = False
    amr: bool = False
    auth_time: bool = False

    @classmethod
    def from_claims(cls, claims: Optional[Iterable[str]]) -> "ClaimSupport":
        present = set(claims or ())
        return cls(
            acr="acr" in present,
            amr="amr" in present,
            auth_time="auth_time" in present,
        )

    model_config = ConfigDict(frozen=True, extra="forbid")


class ClassificationOutcome(BaseModel):
    """
    Result of classifying a token list.

    `can_determine` holds exactly when at least one level was detected.
    """

    detected_levels: Tuple[AssuranceLevel, ...] = Field(
        (),
        description="Detected levels in ascending order, without duplicates",
    )
    confidence: Confidence = Confidence.LOW
    tokens: Tuple[str, ...] = Field(
        (),
        description="Input tokens as received",
    )
    unmapped_tokens: Tuple[str, ...] = Field(
        (),
        description="Tokens that matched no level, original spelling",
    )
    claim_support: ClaimSupport = Field(default_factory=ClaimSupport)

    @property
    def can_determine(self) -> bool:
        return len(self.detected_levels) > 0

    @property
    def highest_level(self) -> Optional[AssuranceLevel]:
        if not self.detected_levels:
            return None
        return max(self.detected_levels)

    def supports(self, level: AssuranceLevel) -> bool:
        return level in self.detected_levels

    def as_metadata(self) -> Dict[str, object]:
        highest = self.highest_level
        return {
            "highest_aal": highest.label if highest is not None else None,
            "supported_aals": [level.label for level in self.detected_levels],
            "acr_values": list(self.tokens),
            "unmapped_acr_values": list(self.unmapped_tokens),
            "confidence": self.confidence.value,
            "can_determine": self.can_determine,
            "has_acr_claim": self.claim_support.acr,
            "has_amr_claim": self.claim_support.amr,
            "has_auth_time_claim": self.claim_support.auth_time,
        }

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify_token(token: str) -> Optional[AssuranceLevel]:
    """
    Return the level a single token maps to, or None if unmapped.
    """
    normalized = token.lower()
    for level, substrings, exact in _LEVEL_PATTERNS:
        if normalized in exact:
            return level
        if any(s in normalized for s in substrings):
            return level
    return None


def classify_assurance(
    tokens: Optional[Sequence[str]],
    claims: Optional[Iterable[str]] = None,
) -> ClassificationOutcome:
    """
    Classify authentication-context tokens into assurance levels.

    Empty or absent input yields an undeterminable, low-confidence
    outcome. Claim flags are carried through unchanged.
    """
    claim_support = ClaimSupport.from_claims(claims)

    if not tokens:
        return ClassificationOutcome(claim_support=claim_support)

    detected = set()
    unmapped: List[str] = []

    for token in tokens:
        level = classify_token(token)
        if level is None:
            unmapped.append(token)
        else:
            detected.add(level)

    if not detected:
        confidence = Confidence.LOW
    elif unmapped:
        confidence = Confidence.MEDIUM
    else:
        confidence = Confidence.HIGH

    return ClassificationOutcome(
        detected_levels=tuple(sorted(detected)),
        confidence=confidence,
        tokens=tuple(tokens),
        unmapped_tokens=tuple(unmapped),
        claim_support=claim_support,
    )


# ---------------------------------------------------------------------------
# Indicator scans
# ---------------------------------------------------------------------------


def find_indicators(
    tokens: Iterable[str],
    indicators: Sequence[str],
) -> List[str]:
    """
    Return the tokens containing any of the given indicator substrings.
    """
    return [
        token
        for token in tokens
        if any(indicator in token.lower() for indicator in indicators)
    ]


def mfa_indicators(tokens: Iterable[str], pkce_s256: bool = False) -> List[str]:
    found = find_indicators(tokens, MFA_INDICATORS)
    if pkce_s256:
        found.append("PKCE support")
    return found


def hardware_indicators(
    tokens: Iterable[str],
    pkce_s256: bool = False,
) -> List[str]:
    found = find_indicators(tokens, HARDWARE_INDICATORS)
    if pkce_s256:
        found.append("PKCE S256 support")
    return found


def phishing_resistance_indicators(tokens: Iterable[str]) -> List[str]:
    return find_indicators(tokens, PHISHING_RESISTANT_INDICATORS)


# ---------------------------------------------------------------------------
# Level requirements
# ---------------------------------------------------------------------------


def session_timeout_hours(level: AssuranceLevel) -> int:
    """Maximum session lifetime before reauthentication, in hours."""
    if level is AssuranceLevel.AAL1:
        return 720
    return 12


def idle_timeout_minutes(level: AssuranceLevel) -> Optional[int]:
    """Maximum idle period, in minutes. AAL1 has no idle requirement."""
    if level is AssuranceLevel.AAL3:
        return 15
    if level is AssuranceLevel.AAL2:
        return 60
    return None
