"""Feature extraction: profile -> normalized feature vector.

Normalization rules:
- text: accents stripped, casefolded, whitespace collapsed
- age: clamped to [AGE_MIN, AGE_MAX] and scaled to [0, 1];
  missing or invalid ages map to AGE_DEFAULT
- positions: normalized and mapped through POSITION_ALIASES
  (player position, coach positions, club vacancies)
- specialties: reduced to a token-presence set
"""
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Optional

from transfer_match.profiles.models import Profile, Role

AGE_MIN = 14
AGE_MAX = 45
AGE_DEFAULT = 0.5  # Missing age sits in the middle of the domain

MIN_TOKEN_LENGTH = 2

# Canonical volleyball positions, with common English/Spanish variants
POSITION_ALIASES = {
    "libero": "libero",
    "setter": "setter",
    "armador": "setter",
    "armadora": "setter",
    "outside": "outside hitter",
    "outside hitter": "outside hitter",
    "wing spiker": "outside hitter",
    "punta": "outside hitter",
    "receptor": "outside hitter",
    "opposite": "opposite",
    "opposite hitter": "opposite",
    "opuesto": "opposite",
    "middle": "middle blocker",
    "middle blocker": "middle blocker",
    "central": "middle blocker",
    "defensive specialist": "defensive specialist",
    "ds": "defensive specialist",
}

STOPWORDS = frozenset({
    "a", "an", "and", "the", "of", "in", "on", "for", "with", "to", "at",
    "y", "de", "del", "la", "el", "los", "las", "en", "con", "para",
})

_TOKEN_RE = re.compile(r"[a-z0-9]+")


def normalize_text(value: Optional[str]) -> str:
    """Normalize free text for comparison.

    "Buenos  Aires" and "buenos aires" normalize to the same string, as do
    "Líbero" and "libero".
    """
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", str(value))
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return " ".join(stripped.casefold().split())


def normalize_position(value: Optional[str]) -> str:
    """Map a position to its canonical name."""
    key = normalize_text(value)
    return POSITION_ALIASES.get(key, key)


def normalize_age(age: Optional[int]) -> float:
    """Scale an age into [0, 1] over the fixed domain."""
    if age is None:
        return AGE_DEFAULT
    clamped = min(AGE_MAX, max(AGE_MIN, age))
    return (clamped - AGE_MIN) / (AGE_MAX - AGE_MIN)


def tokenize(texts: tuple[str, ...]) -> frozenset[str]:
    """Reduce free text to a set of tokens."""
    tokens = set()
    for text in texts:
        for token in _TOKEN_RE.findall(normalize_text(text)):
            if len(token) >= MIN_TOKEN_LENGTH and token not in STOPWORDS:
                tokens.add(token)
    return frozenset(tokens)


@dataclass(frozen=True)
class FeatureVector:
    """Normalized attributes derived from exactly one profile."""

    profile_id: str
    role: Role
    categorical: dict[str, str] = field(default_factory=dict)
    numeric: dict[str, float] = field(default_factory=dict)
    positions: frozenset[str] = frozenset()
    tokens: frozenset[str] = frozenset()
    seeking_transfer: bool = False


class FeatureExtractor:
    """Converts profiles into feature vectors. Pure and total."""

    def extract(self, profile: Profile) -> FeatureVector:
        """
        Extract a feature vector from a profile.

        Args:
            profile: Profile snapshot

        Returns:
            FeatureVector; missing attributes map to documented defaults
        """
        categorical = {}
        region = normalize_text(profile.region)
        if region:
            categorical["region"] = region
        club = normalize_text(profile.club)
        if club:
            categorical["club"] = club

        positions = frozenset(
            p for p in (normalize_position(pos) for pos in profile.positions) if p
        )

        return FeatureVector(
            profile_id=profile.id,
            role=profile.role,
            categorical=categorical,
            numeric={"age": normalize_age(profile.age)},
            positions=positions,
            tokens=tokenize(profile.specialties),
            seeking_transfer=profile.seeking_transfer,
        )
