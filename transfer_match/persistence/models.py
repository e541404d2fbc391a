"""SQLAlchemy models for Transfer Match."""
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, String
from sqlalchemy.orm import DeclarativeBase

from transfer_match.profiles.models import Profile


def utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class ProfileRecord(Base):
    """Stored player, coach or club profile."""

    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    role = Column(String, nullable=False)  # player, coach, club
    name = Column(String, nullable=False, default="")
    region = Column(String, nullable=True)
    seeking_transfer = Column(Boolean, default=False)

    # Free text and role-specific fields
    specialties = Column(JSON, default=list)
    attributes = Column(JSON, default=dict)

    # Timestamps
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_profiles_role_id", "role", "id"),
        Index("ix_profiles_region", "region"),
    )

    def __repr__(self) -> str:
        return f"<ProfileRecord {self.id} ({self.role})>"

    def to_profile(self) -> Profile:
        """Convert the row to an immutable profile snapshot.

        Raises ValueError/TypeError on malformed rows.
        """
        return Profile.from_dict({
            "id": self.id,
            "role": self.role,
            "name": self.name,
            "region": self.region,
            "seeking_transfer": self.seeking_transfer,
            "specialties": self.specialties or [],
            "attributes": self.attributes or {},
        })

    def update_from(self, profile: Profile) -> None:
        """Copy profile fields onto this row."""
        data = profile.to_dict()
        self.role = data["role"]
        self.name = data["name"]
        self.region = data["region"]
        self.seeking_transfer = data["seeking_transfer"]
        self.specialties = data["specialties"]
        self.attributes = data["attributes"]

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileRecord":
        record = cls(id=profile.id)
        record.update_from(profile)
        return record
