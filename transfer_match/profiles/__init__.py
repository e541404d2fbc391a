"""Profile models and profile store adapters."""
from .models import ClubAttributes, CoachAttributes, PlayerAttributes, Profile, Role
from .store import CandidateFilter, InMemoryProfileStore, ProfileStore, YamlProfileStore

__all__ = [
    "Role",
    "Profile",
    "PlayerAttributes",
    "CoachAttributes",
    "ClubAttributes",
    "CandidateFilter",
    "ProfileStore",
    "InMemoryProfileStore",
    "YamlProfileStore",
]
