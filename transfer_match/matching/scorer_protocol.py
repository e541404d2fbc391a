"""Scorer protocol for pluggable external scoring services.

Defines the interface that all external scorer adapters must satisfy.
Adapters return None instead of raising when the service is unavailable,
so the deterministic ranking never depends on them.
"""
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from transfer_match.profiles.models import Profile


@dataclass(frozen=True)
class Annotation:
    """Supplementary score and explanation from an external scorer."""

    score: float  # 0.0-1.0
    explanation: str = ""


@runtime_checkable
class ExternalScorer(Protocol):
    """Protocol for external scoring adapters."""

    async def annotate(self, seeker: Profile, candidate: Profile) -> Optional[Annotation]:
        """Score a candidate for a seeker, or return None when unavailable."""
        ...
