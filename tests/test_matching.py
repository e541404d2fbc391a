"""Tests for feature extraction, scoring and ranking."""
import pytest
import yaml

from conftest import make_profile
from transfer_match.exceptions import ConfigurationError
from transfer_match.matching.features import (
    AGE_DEFAULT,
    FeatureExtractor,
    normalize_age,
    normalize_position,
    normalize_text,
    tokenize,
)
from transfer_match.matching.ranker import Ranker, ScoredMatch
from transfer_match.matching.scorer import (
    DEFAULT_WEIGHTS,
    ScoringEngine,
    ScoringWeights,
    compatible_roles,
    is_compatible,
)
from transfer_match.matching.scorer_protocol import Annotation
from transfer_match.profiles.models import Role


@pytest.fixture
def extractor():
    return FeatureExtractor()


@pytest.fixture
def engine():
    return ScoringEngine()


def _scored(extractor, profile_id: str, score: float, **kwargs) -> ScoredMatch:
    profile = make_profile(profile_id, "club", name=profile_id)
    return ScoredMatch(profile=profile, features=extractor.extract(profile), score=score, **kwargs)


class TestFeatureExtractor:
    """Tests for FeatureExtractor."""

    def test_extract_is_deterministic(self, extractor, libero_seeker):
        assert extractor.extract(libero_seeker) == extractor.extract(libero_seeker)

    def test_extract_player(self, extractor, libero_seeker):
        vector = extractor.extract(libero_seeker)

        assert vector.profile_id == "player-1"
        assert vector.role is Role.PLAYER
        assert vector.categorical["region"] == "buenos aires"
        assert vector.positions == frozenset({"libero"})
        assert vector.tokens == frozenset({"reception", "floor", "defense"})
        assert vector.numeric["age"] == pytest.approx((23 - 14) / (45 - 14))
        assert vector.seeking_transfer is True

    def test_extract_club_uses_vacancies_and_target_age(self, extractor):
        club = make_profile("c1", "club", name="Ferro", vacancies=["Opposite Hitter", "central"], target_age=45)
        vector = extractor.extract(club)

        assert vector.positions == frozenset({"opposite", "middle blocker"})
        assert vector.numeric["age"] == 1.0
        assert vector.categorical["club"] == "ferro"

    def test_missing_attributes_map_to_defaults(self, extractor):
        vector = extractor.extract(make_profile("p1", "player"))

        assert vector.numeric["age"] == AGE_DEFAULT
        assert vector.categorical == {}
        assert vector.positions == frozenset()
        assert vector.tokens == frozenset()

    def test_normalize_text(self):
        assert normalize_text("  Buenos   AIRES ") == "buenos aires"
        assert normalize_text("Córdoba") == "cordoba"
        assert normalize_text(None) == ""

    def test_normalize_position_aliases(self):
        assert normalize_position("Líbero") == "libero"
        assert normalize_position("Armador") == "setter"
        assert normalize_position("Beach specialist") == "beach specialist"

    def test_normalize_age_clamps(self):
        assert normalize_age(10) == 0.0
        assert normalize_age(60) == 1.0
        assert normalize_age(None) == AGE_DEFAULT

    def test_tokenize_drops_stopwords_and_short_tokens(self):
        assert tokenize(("Serve receive and a jump-serve",)) == frozenset({"serve", "receive", "jump"})


class TestScoringWeights:
    """Tests for weight validation."""

    def test_defaults(self):
        assert ScoringWeights().to_dict() == DEFAULT_WEIGHTS

    def test_missing_keys_are_zero(self):
        weights = ScoringWeights({"position": 0.5, "region": 0.5})
        assert weights["age"] == 0.0

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigurationError, match="Unknown weight keys: height"):
            ScoringWeights({"position": 0.5, "region": 0.5, "height": 0.0})

    def test_negative_weight_rejected(self):
        with pytest.raises(ConfigurationError):
            ScoringWeights({"position": 1.2, "region": -0.2})

    def test_sum_must_be_one(self):
        with pytest.raises(ConfigurationError, match="sum to 1.0"):
            ScoringWeights({"position": 0.5, "region": 0.4})

    def test_non_numeric_rejected(self):
        with pytest.raises(ConfigurationError):
            ScoringWeights({"position": "1.0"})

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "weights.yaml"
        path.write_text(yaml.dump({"weights": {"position": 0.6, "specialties": 0.4}}))

        weights = ScoringWeights.from_yaml(path)
        assert weights["position"] == 0.6

    def test_from_yaml_without_mapping(self, tmp_path):
        path = tmp_path / "weights.yaml"
        path.write_text("position: 1.0\n")

        with pytest.raises(ConfigurationError):
            ScoringWeights.from_yaml(path)

    def test_from_yaml_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ScoringWeights.from_yaml(tmp_path / "nope.yaml")

    def test_default_weights_file_is_valid(self):
        from config.settings import settings

        assert ScoringWeights.from_yaml(settings.weights_path) == ScoringWeights()


class TestRoleCompatibility:
    """Tests for the role hard filter."""

    def test_player_matches_clubs_and_coaches(self):
        assert compatible_roles(Role.PLAYER) == (Role.CLUB, Role.COACH)

    def test_target_role_narrows(self):
        assert compatible_roles(Role.CLUB, Role.PLAYER) == (Role.PLAYER,)

    def test_incompatible_target_role(self):
        with pytest.raises(ConfigurationError):
            compatible_roles(Role.PLAYER, Role.PLAYER)

    def test_players_not_compatible_with_players(self, extractor, libero_seeker):
        other = extractor.extract(make_profile("player-2", "player", position="libero"))
        assert is_compatible(extractor.extract(libero_seeker), other) is False

    def test_seeker_not_compatible_with_itself(self, extractor):
        club = extractor.extract(make_profile("c1", "club"))
        assert is_compatible(club, club) is False


class TestScoringEngine:
    """Tests for ScoringEngine."""

    def test_score_is_pure(self, extractor, engine, libero_seeker, club_pool):
        seeker = extractor.extract(libero_seeker)
        candidate = extractor.extract(club_pool[0])

        scores = {engine.score(seeker, candidate) for _ in range(5)}
        assert len(scores) == 1

    def test_identical_vectors_score_identically(self, extractor, engine, libero_seeker):
        seeker = extractor.extract(libero_seeker)
        a = extractor.extract(make_profile("c1", "club", region="Rosario", vacancies=["setter"]))
        b = extractor.extract(make_profile("c1", "club", region="Rosario", vacancies=["setter"]))
        assert engine.score(seeker, a) == engine.score(seeker, b)

    def test_score_bounds(self, extractor, engine, libero_seeker):
        seeker = extractor.extract(libero_seeker)
        perfect = extractor.extract(make_profile(
            "c1", "club", region="Buenos Aires", vacancies=["libero"],
            target_age=23, specialties=["reception", "floor defense"],
        ))
        empty = extractor.extract(make_profile("c2", "club", target_age=45))

        assert engine.score(seeker, perfect) == pytest.approx(1.0)
        assert 0.0 <= engine.score(seeker, empty) < 0.15

    def test_sub_scores(self, extractor, engine, libero_seeker, club_pool):
        subs = engine.sub_scores(extractor.extract(libero_seeker), extractor.extract(club_pool[0]))

        assert subs.position == 1.0
        assert subs.region == 1.0
        assert subs.specialties == 0.0

    def test_specialties_jaccard(self, extractor, engine):
        seeker = extractor.extract(make_profile("p1", "player", specialties=["block", "serve"]))
        club = extractor.extract(make_profile("c1", "club", specialties=["serve", "defense"]))
        assert engine.sub_scores(seeker, club).specialties == pytest.approx(1 / 3)

    def test_missing_region_never_matches(self, extractor, engine):
        seeker = extractor.extract(make_profile("p1", "player"))
        club = extractor.extract(make_profile("c1", "club"))
        assert engine.sub_scores(seeker, club).region == 0.0

    def test_weights_change_score(self, extractor, libero_seeker, club_pool):
        seeker = extractor.extract(libero_seeker)
        club = extractor.extract(club_pool[1])  # No shared position or region
        position_only = ScoringEngine(ScoringWeights({"position": 1.0}))
        assert position_only.score(seeker, club) == 0.0

    def test_score_with_reasons(self, extractor, engine, libero_seeker, club_pool):
        score, reasons = engine.score_with_reasons(
            extractor.extract(libero_seeker), extractor.extract(club_pool[0]),
        )

        assert score == engine.score(extractor.extract(libero_seeker), extractor.extract(club_pool[0]))
        assert "position match: libero" in reasons
        assert "same region: buenos aires" in reasons


class TestRanker:
    """Tests for Ranker."""

    def test_orders_descending(self, extractor):
        matches = [_scored(extractor, "a", 0.2), _scored(extractor, "b", 0.9), _scored(extractor, "c", 0.5)]
        result = Ranker().rank(matches, limit=3)
        assert [m.candidate_id for m in result.matches] == ["b", "c", "a"]

    def test_tie_broken_by_id_ascending(self, extractor):
        matches = [_scored(extractor, cid, 0.5) for cid in ("delta", "alpha", "charlie", "bravo")]
        result = Ranker().rank(matches, limit=4)
        assert [m.candidate_id for m in result.matches] == ["alpha", "bravo", "charlie", "delta"]

    def test_truncates_to_limit(self, extractor):
        matches = [_scored(extractor, f"c{i}", i / 10) for i in range(10)]
        result = Ranker().rank(matches, limit=3)

        assert len(result.matches) == 3
        assert result.candidates_evaluated == 10

    @pytest.mark.parametrize("limit", [0, -1, 2.5, True, None, "3"])
    def test_invalid_limit(self, extractor, limit):
        with pytest.raises(ConfigurationError):
            Ranker().rank([_scored(extractor, "a", 0.5)], limit=limit)

    @pytest.mark.parametrize("weight", [-0.1, 0.51, 1.0])
    def test_external_weight_bounds(self, weight):
        with pytest.raises(ConfigurationError):
            Ranker(external_weight=weight)

    def test_blend_with_annotation(self, extractor):
        matches = [_scored(extractor, "a", 0.6), _scored(extractor, "b", 0.5)]
        annotations = {"b": Annotation(score=1.0, explanation="great fit")}

        result = Ranker(external_weight=0.5).rank(matches, limit=2, annotations=annotations)

        first, second = result.matches
        assert first.candidate_id == "b"
        assert first.combined_score == pytest.approx(0.75)
        assert first.ai_assisted is True
        assert first.explanation == "great fit"
        assert second.combined_score == pytest.approx(0.6)
        assert second.ai_assisted is False

    def test_without_annotations_combined_equals_score(self, extractor):
        result = Ranker().rank([_scored(extractor, "a", 0.42)], limit=1)
        assert result.matches[0].combined_score == 0.42
        assert result.ai_assisted_count == 0

    def test_result_to_dict(self, extractor):
        result = Ranker().rank([_scored(extractor, "a", 0.5, reasons=("same region: x",))], limit=1, seeker_id="s")
        data = result.to_dict()

        assert data["seeker_id"] == "s"
        assert data["matches"][0]["candidate_id"] == "a"
        assert data["matches"][0]["ai_assisted"] is False
        assert data["matches"][0]["reasons"] == ["same region: x"]
        assert len(data["request_id"]) == 32
