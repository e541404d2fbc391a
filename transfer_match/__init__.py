"""Transfer Match - profile matching and recommendations for volleyball transfers."""
from .exceptions import (
    CandidateUnavailable,
    ConfigurationError,
    ExternalScorerUnavailable,
    MatchingError,
    ProfileNotFound,
    ProfileStoreUnavailable,
)
from .service import RecommendationService

__all__ = [
    "RecommendationService",
    "MatchingError",
    "ConfigurationError",
    "ProfileNotFound",
    "ProfileStoreUnavailable",
    "CandidateUnavailable",
    "ExternalScorerUnavailable",
]
