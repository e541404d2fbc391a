"""Pytest fixtures for Transfer Match tests."""
import asyncio
import sys
from pathlib import Path
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from transfer_match.matching.scorer_protocol import Annotation
from transfer_match.persistence.models import Base
from transfer_match.profiles.models import Profile
from transfer_match.profiles.store import InMemoryProfileStore


def make_profile(profile_id: str, role: str, **fields) -> Profile:
    """Build a profile from keyword fields (attributes may be given flat)."""
    return Profile.from_dict({"id": profile_id, "role": role, **fields})


# =============================================================================
# PROFILE FIXTURES
# =============================================================================


@pytest.fixture
def libero_seeker():
    """Player looking for a club: a libero in Buenos Aires."""
    return make_profile(
        "player-1",
        "player",
        name="Lucía Fernández",
        region="Buenos Aires",
        seeking_transfer=True,
        specialties=["reception", "floor defense"],
        position="Libero",
        age=23,
    )


@pytest.fixture
def club_pool():
    """Three clubs: only club-a is in Buenos Aires with a libero vacancy."""
    return [
        make_profile("club-a", "club", name="Ferro", region="Buenos Aires", vacancies=["libero"]),
        make_profile("club-b", "club", name="Bolívar", region="Bolívar", vacancies=["setter"]),
        make_profile("club-c", "club", name="UPCN", region="San Juan"),
    ]


@pytest.fixture
def scenario_store(libero_seeker, club_pool):
    """Store holding the libero seeker and the three clubs."""
    return InMemoryProfileStore([libero_seeker, *club_pool])


@pytest.fixture
def mixed_store(libero_seeker, club_pool):
    """Store with players, coaches and clubs."""
    others = [
        make_profile("player-2", "player", region="Buenos Aires", seeking_transfer=True,
                     position="libero", age=23, specialties=["reception"]),
        make_profile("player-3", "player", region="Córdoba", seeking_transfer=True, position="setter"),
        make_profile("coach-1", "coach", region="Buenos Aires", seeking_transfer=True,
                     positions=["libero"], age=40, specialties=["floor defense"]),
        make_profile("coach-2", "coach", region="Rosario", seeking_transfer=False, positions=["setter"]),
    ]
    return InMemoryProfileStore([libero_seeker, *club_pool, *others])


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="function")
def session_factory():
    """Session factory over a fresh in-memory database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False)
    engine.dispose()


@pytest.fixture
def test_db(session_factory):
    """Single database session for direct writes."""
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# MOCK EXTERNAL SCORERS
# =============================================================================


class FixedScorer:
    """Returns preset annotations and records calls."""

    def __init__(self, scores: Optional[dict] = None, default: Optional[float] = None):
        self.scores = scores or {}
        self.default = default
        self.calls: list[str] = []

    async def annotate(self, seeker: Profile, candidate: Profile) -> Optional[Annotation]:
        self.calls.append(candidate.id)
        score = self.scores.get(candidate.id, self.default)
        if score is None:
            return None
        return Annotation(score=score, explanation=f"external view of {candidate.id}")


class SlowScorer:
    """Sleeps longer than any test timeout; optionally fast for some ids."""

    def __init__(self, delay: float = 10.0, fast_ids: tuple = ()):
        self.delay = delay
        self.fast_ids = fast_ids

    async def annotate(self, seeker: Profile, candidate: Profile) -> Optional[Annotation]:
        if candidate.id not in self.fast_ids:
            await asyncio.sleep(self.delay)
        return Annotation(score=1.0, explanation="fast")


class FailingScorer:
    """Raises on every call, like a broken third-party adapter."""

    async def annotate(self, seeker: Profile, candidate: Profile) -> Optional[Annotation]:
        raise RuntimeError("provider exploded with secret details")


@pytest.fixture
def fixed_scorer():
    return FixedScorer()
