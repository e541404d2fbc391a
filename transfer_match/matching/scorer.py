"""Deterministic compatibility scoring.

Score = sum(weight * sub-score) over:
- position: seeker and candidate positions intersect (1.0 or 0.0)
- region: same normalized region (1.0 or 0.0)
- age: numeric proximity, 1 - |a - b| on normalized ages
- specialties: Jaccard overlap of specialty tokens

Candidates whose role is incompatible with the seeker are excluded before
scoring, never scored to zero.
"""
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import yaml

from transfer_match.exceptions import ConfigurationError
from transfer_match.matching.features import FeatureVector
from transfer_match.profiles.models import Role

logger = logging.getLogger(__name__)

SUB_SCORES = ("position", "region", "age", "specialties")

DEFAULT_WEIGHTS = {
    "position": 0.35,
    "region": 0.25,
    "age": 0.15,
    "specialties": 0.25,
}

WEIGHT_SUM_TOLERANCE = 1e-6

# Which candidate roles each seeker role is matched against
COMPATIBLE_ROLES = {
    Role.PLAYER: (Role.CLUB, Role.COACH),
    Role.COACH: (Role.CLUB, Role.PLAYER),
    Role.CLUB: (Role.PLAYER, Role.COACH),
}


def compatible_roles(seeker_role: Role, target_role: Optional[Role] = None) -> tuple[Role, ...]:
    """Candidate roles a seeker may be matched against.

    Args:
        seeker_role: Role of the seeker
        target_role: Optional narrowing to a single candidate role

    Raises:
        ConfigurationError: If target_role is not compatible with the seeker
    """
    allowed = COMPATIBLE_ROLES[seeker_role]
    if target_role is None:
        return allowed
    if target_role not in allowed:
        raise ConfigurationError(
            f"A {seeker_role.value} cannot be matched against {target_role.value} profiles"
        )
    return (target_role,)


def is_compatible(seeker: FeatureVector, candidate: FeatureVector) -> bool:
    """Hard filter: role compatibility and no self-matches."""
    if seeker.profile_id == candidate.profile_id:
        return False
    return candidate.role in COMPATIBLE_ROLES[seeker.role]


class ScoringWeights:
    """Validated mapping from sub-score name to weight.

    Weights must be non-negative, use only known sub-score names and sum
    to 1. Missing names have weight 0.
    """

    def __init__(self, weights: Optional[Mapping[str, float]] = None):
        raw = dict(DEFAULT_WEIGHTS if weights is None else weights)

        unknown = sorted(set(raw) - set(SUB_SCORES))
        if unknown:
            raise ConfigurationError(f"Unknown weight keys: {', '.join(unknown)}")

        values = {}
        for name in SUB_SCORES:
            value = raw.get(name, 0.0)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
                raise ConfigurationError(f"Weight {name!r} must be a number, got {value!r}")
            if value < 0:
                raise ConfigurationError(f"Weight {name!r} must be non-negative, got {value}")
            values[name] = float(value)

        total = sum(values.values())
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ConfigurationError(f"Weights must sum to 1.0, got {total:.6f}")

        self._values = values

    def __getitem__(self, name: str) -> float:
        return self._values[name]

    def __eq__(self, other) -> bool:
        return isinstance(other, ScoringWeights) and self._values == other._values

    def __repr__(self) -> str:
        return f"ScoringWeights({self._values!r})"

    def to_dict(self) -> dict[str, float]:
        return dict(self._values)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ScoringWeights":
        """Load weights from the ``weights`` mapping of a YAML file."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read weights file {path}: {e}") from e

        weights = data.get("weights") if isinstance(data, dict) else None
        if not isinstance(weights, dict):
            raise ConfigurationError(f"Weights file {path} has no 'weights' mapping")
        logger.info("Loaded scoring weights from %s", path)
        return cls(weights)


@dataclass(frozen=True)
class SubScores:
    """Unweighted sub-scores for one seeker/candidate pair."""

    position: float
    region: float
    age: float
    specialties: float


class ScoringEngine:
    """Computes deterministic compatibility scores."""

    def __init__(self, weights: Optional[ScoringWeights] = None):
        """
        Initialize scoring engine.

        Args:
            weights: Validated weights (defaults to DEFAULT_WEIGHTS)
        """
        self.weights = weights or ScoringWeights()

    def sub_scores(self, seeker: FeatureVector, candidate: FeatureVector) -> SubScores:
        """Compute every sub-score for a pair of vectors."""
        position = 1.0 if seeker.positions & candidate.positions else 0.0

        seeker_region = seeker.categorical.get("region")
        region = 1.0 if seeker_region and seeker_region == candidate.categorical.get("region") else 0.0

        age = 1.0 - abs(seeker.numeric.get("age", 0.5) - candidate.numeric.get("age", 0.5))

        union = seeker.tokens | candidate.tokens
        specialties = len(seeker.tokens & candidate.tokens) / len(union) if union else 0.0

        return SubScores(
            position=position,
            region=region,
            age=min(1.0, max(0.0, age)),
            specialties=specialties,
        )

    def score(self, seeker: FeatureVector, candidate: FeatureVector) -> float:
        """
        Score a candidate against a seeker.

        Args:
            seeker: Seeker feature vector
            candidate: Candidate feature vector

        Returns:
            Score in [0, 1]
        """
        return self._total(self.sub_scores(seeker, candidate))

    def _total(self, subs: SubScores) -> float:
        total = sum(self.weights[name] * getattr(subs, name) for name in SUB_SCORES)
        return min(1.0, max(0.0, total))

    def score_with_reasons(
        self,
        seeker: FeatureVector,
        candidate: FeatureVector,
    ) -> tuple[float, tuple[str, ...]]:
        """Score a candidate and explain which rules contributed."""
        subs = self.sub_scores(seeker, candidate)
        reasons = []

        if subs.position and self.weights["position"]:
            shared = sorted(seeker.positions & candidate.positions)
            reasons.append(f"position match: {', '.join(shared)}")
        if subs.region and self.weights["region"]:
            reasons.append(f"same region: {candidate.categorical['region']}")
        if subs.age >= 0.9 and self.weights["age"]:
            reasons.append("close in age")
        if subs.specialties and self.weights["specialties"]:
            shared = sorted(seeker.tokens & candidate.tokens)
            reasons.append(f"shared specialties: {', '.join(shared)}")

        return self._total(subs), tuple(reasons)
