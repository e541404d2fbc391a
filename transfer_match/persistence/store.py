"""Profile store backed by SQLAlchemy."""
import logging
from typing import Callable, Iterable, Iterator, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from transfer_match.exceptions import CandidateUnavailable, ProfileStoreUnavailable
from transfer_match.persistence.models import ProfileRecord
from transfer_match.profiles.models import Profile
from transfer_match.profiles.store import CandidateFilter

logger = logging.getLogger(__name__)


class SqlProfileStore:
    """Read-only profile store over the ``profiles`` table.

    Candidates are streamed with keyset pagination on the profile id, one
    short-lived session per batch, so the full pool is never loaded at once.
    """

    def __init__(self, session_factory: Callable[[], Session], batch_size: int = 200):
        """
        Initialize SQL profile store.

        Args:
            session_factory: Callable returning a new Session (e.g. a sessionmaker)
            batch_size: Rows fetched per query
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._session_factory = session_factory
        self.batch_size = batch_size

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        """
        Load one profile by id.

        Raises:
            ProfileStoreUnavailable: The lookup query failed
        """
        try:
            with self._session_factory() as session:
                record = session.get(ProfileRecord, profile_id)
                if record is None:
                    return None
                item = self._convert(record)
        except SQLAlchemyError as e:
            logger.error("Failed to load profile %s: %s", profile_id, e)
            raise ProfileStoreUnavailable(f"Failed to load profile {profile_id}") from e

        if isinstance(item, Exception):
            logger.error("Profile %s is malformed: %s", profile_id, item)
            return None
        return item

    def _select(self, candidate_filter: CandidateFilter, cursor: Optional[str]):
        stmt = select(ProfileRecord).where(ProfileRecord.role == candidate_filter.role.value)
        if candidate_filter.region is not None:
            stmt = stmt.where(func.lower(ProfileRecord.region) == candidate_filter.region.lower())
        if candidate_filter.seeking_transfer is not None:
            stmt = stmt.where(ProfileRecord.seeking_transfer == candidate_filter.seeking_transfer)
        if cursor is not None:
            stmt = stmt.where(ProfileRecord.id > cursor)
        return stmt.order_by(ProfileRecord.id).limit(self.batch_size)

    @staticmethod
    def _convert(record: ProfileRecord) -> Union[Profile, Exception]:
        try:
            return record.to_profile()
        except (TypeError, ValueError) as e:
            return e

    def list_candidates(self, candidate_filter: CandidateFilter) -> Iterator[Profile]:
        """
        Stream candidate profiles ordered by id.

        Raises:
            CandidateUnavailable: A row is malformed (resumable after that row)
                or a batch query failed (not resumable)
        """
        cursor = candidate_filter.after_id

        while True:
            try:
                with self._session_factory() as session:
                    records = session.execute(self._select(candidate_filter, cursor)).scalars().all()
                    batch = [(record.id, self._convert(record)) for record in records]
            except SQLAlchemyError as e:
                raise CandidateUnavailable(
                    f"Failed to load {candidate_filter.role.value} candidates after {cursor!r}"
                ) from e

            for record_id, item in batch:
                if isinstance(item, Exception):
                    raise CandidateUnavailable(
                        f"Malformed profile row {record_id}: {item}",
                        profile_id=record_id,
                        resume_after=record_id,
                    ) from item
                yield item

            if len(batch) < self.batch_size:
                return
            cursor = batch[-1][0]


def upsert_profiles(session: Session, profiles: Iterable[Profile]) -> int:
    """Insert or update profiles. Returns the number of profiles written."""
    count = 0
    for profile in profiles:
        record = session.get(ProfileRecord, profile.id)
        if record is None:
            session.add(ProfileRecord.from_profile(profile))
        else:
            record.update_from(profile)
        count += 1
    session.flush()
    return count
