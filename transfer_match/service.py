"""Recommendation service - the request surface of the matching engine.

Pipeline per request:
    profile store -> feature extractor -> scoring engine
    -> (optional) external annotation of the top-N -> ranker

The deterministic steps never wait on the external scorer; external
failures only show up as matches without an annotation.
"""
import asyncio
import logging
from typing import TYPE_CHECKING, Iterator, Optional, Union

from transfer_match.exceptions import CandidateUnavailable, ConfigurationError, ProfileNotFound
from transfer_match.matching.external import AnnotationRunner, NullExternalScorer, get_external_scorer
from transfer_match.matching.features import FeatureExtractor, FeatureVector
from transfer_match.matching.ranker import (
    MatchCandidate,
    Ranker,
    RecommendationResult,
    ScoredMatch,
    sort_key,
    validate_limit,
)
from transfer_match.matching.scorer import ScoringEngine, ScoringWeights, compatible_roles, is_compatible
from transfer_match.matching.scorer_protocol import ExternalScorer
from transfer_match.profiles.models import Profile, Role
from transfer_match.profiles.store import CandidateFilter, ProfileStore

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)


def _prune(pool: list[ScoredMatch], size: int) -> list[ScoredMatch]:
    """Keep the ``size`` best matches by deterministic score."""
    pool.sort(key=lambda m: sort_key(m, m.score))
    return pool[:size]


class RecommendationService:
    """Produces ranked transfer recommendations for a seeker profile."""

    def __init__(
        self,
        store: ProfileStore,
        weights: Optional[ScoringWeights] = None,
        external_scorer: Optional[ExternalScorer] = None,
        *,
        external_weight: float = 0.3,
        external_top_n: int = 10,
        external_fan_out: int = 4,
        external_timeout: float = 8.0,
        request_deadline: float = 20.0,
        candidate_pool_size: int = 500,
        only_available_candidates: bool = True,
    ):
        """
        Initialize the service. All configuration is validated here.

        Args:
            store: Profile store adapter
            weights: Scoring weights (defaults to DEFAULT_WEIGHTS)
            external_scorer: Optional external scorer adapter
            external_weight: Weight of the external score in the blend (0-0.5)
            external_top_n: Top deterministic matches sent to the external scorer
            external_fan_out: Maximum concurrent external calls
            external_timeout: Timeout per external call (seconds)
            request_deadline: Deadline for the whole annotation phase (seconds)
            candidate_pool_size: Best matches kept while streaming candidates
            only_available_candidates: Only match players/coaches seeking a transfer

        Raises:
            ConfigurationError: If any setting is invalid
        """
        if external_top_n < 0:
            raise ConfigurationError(f"external_top_n must be non-negative, got {external_top_n}")
        if candidate_pool_size < 1:
            raise ConfigurationError(f"candidate_pool_size must be positive, got {candidate_pool_size}")

        self.store = store
        self.extractor = FeatureExtractor()
        self.engine = ScoringEngine(weights)
        self.ranker = Ranker(external_weight)
        self.external_scorer = external_scorer or NullExternalScorer()
        self.runner = AnnotationRunner(
            self.external_scorer,
            fan_out=external_fan_out,
            call_timeout=external_timeout,
            deadline=request_deadline,
        )
        self.external_top_n = external_top_n
        self.candidate_pool_size = candidate_pool_size
        self.only_available_candidates = only_available_candidates

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        store: Optional[ProfileStore] = None,
    ) -> "RecommendationService":
        """Build a service from application settings.

        Uses the YAML profile file when ``profiles_file`` is set, otherwise
        the SQL profile store.
        """
        if store is None:
            if settings.profiles_file:
                from transfer_match.profiles.store import YamlProfileStore
                store = YamlProfileStore(settings.profiles_file)
            else:
                from transfer_match.persistence.database import SessionLocal
                from transfer_match.persistence.store import SqlProfileStore
                store = SqlProfileStore(SessionLocal, batch_size=settings.store_batch_size)

        weights_path = settings.weights_path
        if settings.weights_file or weights_path.exists():
            weights = ScoringWeights.from_yaml(weights_path)
        else:
            weights = ScoringWeights()

        external_scorer = get_external_scorer(
            kind=settings.external_scorer_kind,
            endpoint=settings.external_scorer_url,
            api_key=settings.external_scorer_api_key,
            model=settings.external_scorer_model,
            timeout=settings.external_timeout_seconds,
        )

        return cls(
            store,
            weights=weights,
            external_scorer=external_scorer,
            external_weight=settings.external_weight,
            external_top_n=settings.external_top_n,
            external_fan_out=settings.external_fan_out,
            external_timeout=settings.external_timeout_seconds,
            request_deadline=settings.request_deadline_seconds,
            candidate_pool_size=settings.candidate_pool_size,
            only_available_candidates=settings.only_available_candidates,
        )

    def request_recommendations(
        self,
        seeker_profile_id: str,
        limit: int,
        use_external_scoring: bool = False,
        target_role: Union[Role, str, None] = None,
    ) -> RecommendationResult:
        """Synchronous entry point. Must not be called from a running event loop."""
        return asyncio.run(
            self.recommend(
                seeker_profile_id,
                limit,
                use_external_scoring=use_external_scoring,
                target_role=target_role,
            )
        )

    async def recommend(
        self,
        seeker_profile_id: str,
        limit: int,
        use_external_scoring: bool = False,
        target_role: Union[Role, str, None] = None,
    ) -> RecommendationResult:
        """
        Produce recommendations for a seeker.

        Args:
            seeker_profile_id: Id of the seeker profile
            limit: Maximum number of matches (positive)
            use_external_scoring: Annotate the top matches with the external scorer
            target_role: Optional single candidate role to match against

        Returns:
            RecommendationResult

        Raises:
            ConfigurationError: Invalid limit or target role
            ProfileNotFound: Seeker id cannot be resolved
            ProfileStoreUnavailable: The store failed while loading the seeker
        """
        limit = validate_limit(limit)
        target = self._parse_role(target_role)

        seeker = self.store.get_profile(seeker_profile_id)
        if seeker is None:
            raise ProfileNotFound(seeker_profile_id)
        roles = compatible_roles(seeker.role, target)

        logger.info(
            "Recommendations for %s (%s): limit=%d, roles=%s, external=%s",
            seeker.id, seeker.role.value, limit, [r.value for r in roles], use_external_scoring,
        )

        pool_size = max(self.candidate_pool_size, limit + self.external_top_n)
        matches, evaluated = self._score_candidates(seeker, roles, pool_size)

        annotations = {}
        if use_external_scoring and self.external_top_n and matches:
            top = matches[: self.external_top_n]
            annotations = await self.runner.run(seeker, [m.profile for m in top])

        return self.ranker.rank(
            matches,
            limit,
            seeker_id=seeker.id,
            annotations=annotations,
            candidates_evaluated=evaluated,
            external_requested=use_external_scoring,
        )

    @staticmethod
    def _parse_role(target_role: Union[Role, str, None]) -> Optional[Role]:
        if target_role is None:
            return None
        try:
            return Role.parse(target_role)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    def _candidate_filter(self, role: Role) -> CandidateFilter:
        seeking = True if self.only_available_candidates and role is not Role.CLUB else None
        return CandidateFilter(role=role, seeking_transfer=seeking)

    def _stream_candidates(self, candidate_filter: CandidateFilter) -> Iterator[Profile]:
        """Iterate a store stream, skipping candidates the store cannot read."""
        current = candidate_filter
        while True:
            try:
                yield from self.store.list_candidates(current)
                return
            except CandidateUnavailable as e:
                resume = e.resume_after
                if resume is None or (current.after_id is not None and resume <= current.after_id):
                    logger.warning(
                        "Skipping remaining %s candidates: %s", current.role.value, e,
                    )
                    return
                logger.warning("Skipping candidate %s: %s", e.profile_id or resume, e)
                current = current.resume_after(resume)

    def _score_candidates(
        self,
        seeker: Profile,
        roles: tuple[Role, ...],
        pool_size: int,
    ) -> tuple[list[ScoredMatch], int]:
        """Score every compatible candidate, keeping the best ``pool_size``.

        Returns:
            (matches sorted by deterministic score, number of candidates scored)
        """
        seeker_vector = self.extractor.extract(seeker)
        pool: list[ScoredMatch] = []
        evaluated = 0

        for role in roles:
            for profile in self._stream_candidates(self._candidate_filter(role)):
                candidate = MatchCandidate(profile=profile, features=self.extractor.extract(profile))
                if not is_compatible(seeker_vector, candidate.features):
                    continue

                pool.append(self._score(seeker_vector, candidate))
                evaluated += 1
                if len(pool) >= 2 * pool_size:
                    pool = _prune(pool, pool_size)

        logger.debug("Scored %d candidates for %s", evaluated, seeker.id)
        return _prune(pool, pool_size), evaluated

    def _score(self, seeker_vector: FeatureVector, candidate: MatchCandidate) -> ScoredMatch:
        score, reasons = self.engine.score_with_reasons(seeker_vector, candidate.features)
        return ScoredMatch(
            profile=candidate.profile,
            features=candidate.features,
            score=score,
            reasons=reasons,
        )
