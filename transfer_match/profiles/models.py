"""Profile data models.

A profile is a tagged variant: ``role`` is the discriminant and
``attributes`` holds the role-specific fields. Profiles are immutable
snapshots owned by a profile store; the matching engine never mutates them.
"""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class Role(str, Enum):
    """Kind of marketplace participant."""

    PLAYER = "player"
    COACH = "coach"
    CLUB = "club"

    @classmethod
    def parse(cls, value: Union[str, "Role"]) -> "Role":
        """Parse a role from its value or name, case-insensitively."""
        if isinstance(value, Role):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown role: {value!r}") from None


def _as_tuple(value: Any) -> tuple[str, ...]:
    """Coerce a YAML/JSON scalar or list into a tuple of strings."""
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value.strip() else ()
    return tuple(str(v) for v in value if v is not None and str(v).strip())


def _as_age(value: Any) -> Optional[int]:
    """Coerce an age value, returning None for missing or non-numeric input."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):  # NaN, inf, "unknown"
        return None


_TRUE_STRINGS = frozenset({"true", "yes", "y", "1", "si", "sí"})


def _as_bool(value: Any) -> bool:
    """Coerce a YAML/JSON flag.

    Real booleans, non-zero numbers and the usual "true" strings are True;
    anything else is False.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value.strip().casefold() in _TRUE_STRINGS
    return False


@dataclass(frozen=True)
class PlayerAttributes:
    """Fields specific to players."""

    position: Optional[str] = None
    age: Optional[int] = None
    club: Optional[str] = None


@dataclass(frozen=True)
class CoachAttributes:
    """Fields specific to coaches."""

    age: Optional[int] = None
    club: Optional[str] = None
    positions: tuple[str, ...] = ()  # Positions the coach specialises in


@dataclass(frozen=True)
class ClubAttributes:
    """Fields specific to clubs."""

    vacancies: tuple[str, ...] = ()  # Open positions
    target_age: Optional[int] = None


RoleAttributes = Union[PlayerAttributes, CoachAttributes, ClubAttributes]

_ATTRIBUTE_TYPES = {
    Role.PLAYER: PlayerAttributes,
    Role.COACH: CoachAttributes,
    Role.CLUB: ClubAttributes,
}


@dataclass(frozen=True)
class Profile:
    """Immutable snapshot of a marketplace profile."""

    id: str
    role: Role
    name: str = ""
    region: Optional[str] = None
    seeking_transfer: bool = False
    specialties: tuple[str, ...] = ()
    attributes: RoleAttributes = field(default=None)  # type: ignore[assignment]

    def __post_init__(self):
        """Validate the role/attributes pairing."""
        role = Role.parse(self.role)
        object.__setattr__(self, "role", role)

        expected = _ATTRIBUTE_TYPES[role]
        if self.attributes is None:
            object.__setattr__(self, "attributes", expected())
        elif not isinstance(self.attributes, expected):
            raise TypeError(
                f"{role.value} profile {self.id!r} requires {expected.__name__}, "
                f"got {type(self.attributes).__name__}"
            )

    @property
    def age(self) -> Optional[int]:
        """Age of a player/coach, or the preferred age of a club."""
        if isinstance(self.attributes, ClubAttributes):
            return self.attributes.target_age
        return self.attributes.age

    @property
    def club(self) -> Optional[str]:
        """Current club affiliation (clubs are their own affiliation)."""
        if isinstance(self.attributes, ClubAttributes):
            return self.name or None
        return self.attributes.club

    @property
    def positions(self) -> tuple[str, ...]:
        """Positions played, coached, or open at a club."""
        attrs = self.attributes
        if isinstance(attrs, PlayerAttributes):
            return (attrs.position,) if attrs.position else ()
        if isinstance(attrs, CoachAttributes):
            return attrs.positions
        return attrs.vacancies

    def summary(self) -> dict[str, Any]:
        """Compact description sent to external scorers."""
        return {
            "role": self.role.value,
            "name": self.name,
            "region": self.region,
            "age": self.age,
            "club": self.club,
            "positions": list(self.positions),
            "seeking_transfer": self.seeking_transfer,
            "specialties": list(self.specialties),
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        attrs = self.attributes
        if isinstance(attrs, PlayerAttributes):
            attributes = {"position": attrs.position, "age": attrs.age, "club": attrs.club}
        elif isinstance(attrs, CoachAttributes):
            attributes = {"age": attrs.age, "club": attrs.club, "positions": list(attrs.positions)}
        else:
            attributes = {"vacancies": list(attrs.vacancies), "target_age": attrs.target_age}

        return {
            "id": self.id,
            "role": self.role.value,
            "name": self.name,
            "region": self.region,
            "seeking_transfer": self.seeking_transfer,
            "specialties": list(self.specialties),
            "attributes": attributes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Profile":
        """Create from a dictionary (YAML entry, JSON body or DB row).

        Role-specific fields may be nested under ``attributes`` or given at
        the top level. Raises ValueError when the id or role is missing.
        """
        profile_id = data.get("id")
        if profile_id is None or str(profile_id).strip() == "":
            raise ValueError("Profile is missing an id")
        if not data.get("role"):
            raise ValueError(f"Profile {profile_id!r} is missing a role")

        role = Role.parse(data["role"])
        attrs = data.get("attributes") or data
        if not isinstance(attrs, dict):
            raise ValueError(f"Profile {profile_id!r} attributes must be a mapping")

        if role is Role.PLAYER:
            attributes: RoleAttributes = PlayerAttributes(
                position=attrs.get("position"),
                age=_as_age(attrs.get("age")),
                club=attrs.get("club"),
            )
        elif role is Role.COACH:
            attributes = CoachAttributes(
                age=_as_age(attrs.get("age")),
                club=attrs.get("club"),
                positions=_as_tuple(attrs.get("positions")),
            )
        else:
            attributes = ClubAttributes(
                vacancies=_as_tuple(attrs.get("vacancies")),
                target_age=_as_age(attrs.get("target_age")),
            )

        return cls(
            id=str(profile_id),
            role=role,
            name=data.get("name") or "",
            region=data.get("region"),
            seeking_transfer=_as_bool(data.get("seeking_transfer", False)),
            specialties=_as_tuple(data.get("specialties")),
            attributes=attributes,
        )
