"""Exceptions raised by the savings challenge engine."""


class ChallengeError(Exception):
    """Base exception for challenge engine operations."""
    pass


class InvalidScheduleError(ChallengeError, ValueError):
    """
    Schedule inputs the progression cannot represent.

    Raised for total_weeks < 1, a custom schedule whose length does not
    match total_weeks, a week outside [1, total_weeks], or a negative
    deposit amount.
    """
    pass


class ChallengeStateError(ChallengeError):
    """The requested status change is not allowed from the current status."""
    pass
