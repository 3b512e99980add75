"""
Error taxonomy for the waitlist core.

Exceptions are raised by the storage and transport collaborators and
caught by the verification orchestrator, which collapses them into the
coarse outcome categories returned to the HTTP layer.
"""

from __future__ import annotations


class WaitlistError(Exception):
    """Base class for every error raised inside the waitlist core."""


class StorageUnavailable(WaitlistError):
    """A backing store (ephemeral store or user database) could not be reached."""


class UniqueViolation(WaitlistError):
    """An insert collided with a uniqueness constraint.

    ``field`` names the offending column (``"email"`` or ``"referral_code"``).
    """

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"Unique constraint violated on {field}")


class SendFailed(WaitlistError):
    """The OTP message could not be handed to the email transport."""


class ReferralCodeExhausted(WaitlistError):
    """No free referral code was found within the retry ceiling."""


class UnknownUser(WaitlistError):
    """A user id did not resolve to a stored user."""
