"""Ranking of scored matches.

Combined score:
- with an external annotation: (1 - w) * score + w * external_score
- without one: score

``w`` is the external weight, at most 0.5 so the deterministic score
always dominates. Ties are broken by candidate id ascending.
"""
import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from transfer_match.exceptions import ConfigurationError
from transfer_match.matching.features import FeatureVector
from transfer_match.matching.scorer_protocol import Annotation
from transfer_match.profiles.models import Profile

logger = logging.getLogger(__name__)

MAX_EXTERNAL_WEIGHT = 0.5


def utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def validate_limit(limit: Any) -> int:
    """Ensure a result limit is a positive integer."""
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise ConfigurationError(f"limit must be a positive integer, got {limit!r}")
    return limit


@dataclass(frozen=True)
class MatchCandidate:
    """A candidate profile paired with its feature vector."""

    profile: Profile
    features: FeatureVector


@dataclass(frozen=True)
class ScoredMatch:
    """A candidate with its deterministic score and optional annotation."""

    profile: Profile
    features: FeatureVector
    score: float  # Deterministic score, 0.0-1.0
    reasons: tuple[str, ...] = ()
    external_score: Optional[float] = None
    explanation: Optional[str] = None
    combined_score: Optional[float] = None

    @property
    def candidate_id(self) -> str:
        return self.profile.id

    @property
    def ai_assisted(self) -> bool:
        """True when an external annotation contributed to this match."""
        return self.external_score is not None

    def with_annotation(self, annotation: Annotation) -> "ScoredMatch":
        """Return a copy carrying an external annotation."""
        return replace(
            self,
            external_score=annotation.score,
            explanation=annotation.explanation or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "candidate_id": self.candidate_id,
            "name": self.profile.name,
            "role": self.profile.role.value,
            "region": self.profile.region,
            "score": round(self.score, 4),
            "combined_score": round(self.combined_score, 4) if self.combined_score is not None else None,
            "external_score": round(self.external_score, 4) if self.external_score is not None else None,
            "ai_assisted": self.ai_assisted,
            "reasons": list(self.reasons),
            "explanation": self.explanation,
        }


@dataclass
class RecommendationResult:
    """Ordered recommendations for one request."""

    seeker_id: str
    limit: int
    matches: list[ScoredMatch] = field(default_factory=list)
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    generated_at: datetime = field(default_factory=utcnow)
    candidates_evaluated: int = 0
    external_requested: bool = False

    def __len__(self) -> int:
        return len(self.matches)

    @property
    def ai_assisted_count(self) -> int:
        return sum(1 for m in self.matches if m.ai_assisted)

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "seeker_id": self.seeker_id,
            "generated_at": self.generated_at.isoformat(),
            "limit": self.limit,
            "candidates_evaluated": self.candidates_evaluated,
            "external_requested": self.external_requested,
            "matches": [m.to_dict() for m in self.matches],
        }


def sort_key(match: ScoredMatch, score: float) -> tuple[float, str]:
    """Descending score, then candidate id ascending."""
    return (-score, match.candidate_id)


class Ranker:
    """Blends, orders and truncates scored matches."""

    def __init__(self, external_weight: float = 0.3):
        """
        Initialize ranker.

        Args:
            external_weight: Weight of the external score in [0, 0.5]
        """
        if (
            isinstance(external_weight, bool)
            or not isinstance(external_weight, (int, float))
            or not 0.0 <= external_weight <= MAX_EXTERNAL_WEIGHT
        ):
            raise ConfigurationError(
                f"external_weight must be between 0 and {MAX_EXTERNAL_WEIGHT}, got {external_weight!r}"
            )
        self.external_weight = float(external_weight)

    def combined_score(self, match: ScoredMatch) -> float:
        """Blend deterministic and external scores."""
        if match.external_score is None:
            return match.score
        w = self.external_weight
        return (1.0 - w) * match.score + w * match.external_score

    def rank(
        self,
        candidates: Iterable[ScoredMatch],
        limit: int,
        seeker_id: str = "",
        annotations: Optional[Mapping[str, Annotation]] = None,
        candidates_evaluated: Optional[int] = None,
        external_requested: bool = False,
    ) -> RecommendationResult:
        """
        Rank scored matches into a recommendation result.

        Args:
            candidates: Scored matches
            limit: Maximum number of matches to return (positive)
            seeker_id: Id of the seeker profile
            annotations: External annotations keyed by candidate id
            candidates_evaluated: Number of candidates scored (defaults to len(candidates))
            external_requested: Whether external scoring was requested

        Returns:
            RecommendationResult ordered by combined score
        """
        limit = validate_limit(limit)
        annotations = annotations or {}

        ranked = []
        for match in candidates:
            annotation = annotations.get(match.candidate_id)
            if annotation is not None:
                match = match.with_annotation(annotation)
            ranked.append(replace(match, combined_score=self.combined_score(match)))

        ranked.sort(key=lambda m: sort_key(m, m.combined_score))
        total = len(ranked)

        result = RecommendationResult(
            seeker_id=seeker_id,
            limit=limit,
            matches=ranked[:limit],
            candidates_evaluated=total if candidates_evaluated is None else candidates_evaluated,
            external_requested=external_requested,
        )
        logger.info(
            "Ranked %d of %d matches (%d AI-assisted)",
            len(result.matches), total, result.ai_assisted_count,
        )
        return result
