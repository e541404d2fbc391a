"""Exceptions for Transfer Match."""
from typing import Optional


class MatchingError(Exception):
    """Base exception for recommendation errors."""

    pass


class ConfigurationError(MatchingError):
    """Raised when weights, limits or engine settings are invalid."""

    pass


class ProfileNotFound(MatchingError):
    """Raised when the seeker profile cannot be resolved."""

    def __init__(self, profile_id: str):
        self.profile_id = profile_id
        super().__init__(f"Profile not found: {profile_id}")


class ProfileStoreUnavailable(MatchingError):
    """Raised when the profile store cannot be queried at all."""

    pass


class CandidateUnavailable(MatchingError):
    """Raised by a profile store when a candidate or batch cannot be read.

    ``resume_after`` is the id the stream can be restarted after, skipping
    the failed candidate. When it is None the rest of the stream is lost.
    """

    def __init__(
        self,
        message: str,
        profile_id: Optional[str] = None,
        resume_after: Optional[str] = None,
    ):
        self.profile_id = profile_id
        self.resume_after = resume_after
        super().__init__(message)


class ExternalScorerUnavailable(MatchingError):
    """Raised inside external scorer adapters; never leaves them."""

    def __init__(self, reason: str = "unavailable"):
        self.reason = reason
        super().__init__(f"External scorer {reason}")
