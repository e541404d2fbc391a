"""Profile matching, scoring and ranking."""
from .external import (
    AnnotationRunner,
    ChatCompletionScorer,
    HttpExternalScorer,
    NullExternalScorer,
    annotate_top_candidates,
    get_external_scorer,
)
from .features import FeatureExtractor, FeatureVector
from .ranker import MatchCandidate, Ranker, RecommendationResult, ScoredMatch
from .scorer import ScoringEngine, ScoringWeights
from .scorer_protocol import Annotation, ExternalScorer

__all__ = [
    "FeatureExtractor",
    "FeatureVector",
    "ScoringEngine",
    "ScoringWeights",
    "Annotation",
    "ExternalScorer",
    "AnnotationRunner",
    "HttpExternalScorer",
    "ChatCompletionScorer",
    "NullExternalScorer",
    "get_external_scorer",
    "annotate_top_candidates",
    "MatchCandidate",
    "ScoredMatch",
    "RecommendationResult",
    "Ranker",
]
