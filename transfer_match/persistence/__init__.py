"""Database persistence layer."""
from .models import Base, ProfileRecord
from .store import SqlProfileStore, upsert_profiles

__all__ = ["Base", "ProfileRecord", "SqlProfileStore", "upsert_profiles"]
