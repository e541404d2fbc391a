"""Profile store interface and file-backed implementation.

The recommendation engine reads profiles only through the ``ProfileStore``
protocol. Candidate streams are lazy, ordered by profile id and restartable
through ``CandidateFilter.after_id``.
"""
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Protocol, runtime_checkable

import yaml

from transfer_match.exceptions import CandidateUnavailable
from transfer_match.profiles.models import Profile, Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateFilter:
    """Coarse filter passed to profile stores."""

    role: Role
    region: Optional[str] = None
    seeking_transfer: Optional[bool] = None
    after_id: Optional[str] = None  # Resume cursor: only ids greater than this

    def resume_after(self, profile_id: str) -> "CandidateFilter":
        """Return a copy of this filter that restarts after ``profile_id``."""
        return replace(self, after_id=profile_id)

    def accepts(self, profile: Profile) -> bool:
        """Check a profile against the filter."""
        if profile.role is not self.role:
            return False
        if self.region is not None and (profile.region or "").casefold() != self.region.casefold():
            return False
        if self.seeking_transfer is not None and profile.seeking_transfer != self.seeking_transfer:
            return False
        if self.after_id is not None and profile.id <= self.after_id:
            return False
        return True


@runtime_checkable
class ProfileStore(Protocol):
    """Read-only access to profile snapshots."""

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        """Return the profile with ``profile_id`` or None.

        May raise ProfileStoreUnavailable when the store cannot be reached.
        """
        ...

    def list_candidates(self, candidate_filter: CandidateFilter) -> Iterable[Profile]:
        """Lazily yield profiles matching the filter, ordered by id.

        May raise CandidateUnavailable mid-iteration.
        """
        ...


class InMemoryProfileStore:
    """Profile store over raw profile mappings held in memory.

    Entries are converted to ``Profile`` lazily, so a malformed entry only
    costs that one candidate.
    """

    def __init__(self, entries: Iterable[Any]):
        """
        Initialize the store.

        Args:
            entries: Profile objects or profile dictionaries
        """
        self._entries: dict[str, Any] = {}
        for entry in entries:
            entry_id = entry.id if isinstance(entry, Profile) else entry.get("id")
            if entry_id is None or not str(entry_id).strip():
                logger.warning("Skipping profile entry without an id")
                continue
            entry_id = str(entry_id)
            if entry_id in self._entries:
                logger.warning("Duplicate profile id %s, keeping the last entry", entry_id)
            self._entries[entry_id] = entry
        self._ordered_ids = sorted(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def _to_profile(self, profile_id: str) -> Profile:
        entry = self._entries[profile_id]
        if isinstance(entry, Profile):
            return entry
        return Profile.from_dict(entry)

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        if profile_id not in self._entries:
            return None
        try:
            return self._to_profile(profile_id)
        except (TypeError, ValueError) as e:
            logger.error("Profile %s is malformed: %s", profile_id, e)
            return None

    def list_candidates(self, candidate_filter: CandidateFilter) -> Iterator[Profile]:
        for profile_id in self._ordered_ids:
            if candidate_filter.after_id is not None and profile_id <= candidate_filter.after_id:
                continue
            try:
                profile = self._to_profile(profile_id)
            except (TypeError, ValueError) as e:
                raise CandidateUnavailable(
                    f"Malformed profile entry {profile_id}: {e}",
                    profile_id=profile_id,
                    resume_after=profile_id,
                ) from e
            if candidate_filter.accepts(profile):
                yield profile


class YamlProfileStore(InMemoryProfileStore):
    """Profile store loaded from a YAML file with a top-level ``profiles`` list."""

    def __init__(self, path: str | Path):
        """
        Initialize store from a YAML file.

        Args:
            path: Path to a profiles YAML file
        """
        self.path = Path(path)
        super().__init__(self.load_entries(self.path))
        logger.info("Loaded %d profiles from %s", len(self), self.path)

    @staticmethod
    def load_entries(path: str | Path) -> list[dict]:
        """Load profile entries from YAML."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        entries = data.get("profiles", []) if isinstance(data, dict) else data
        return [e for e in entries if isinstance(e, dict)]
