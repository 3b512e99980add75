"""
Abstract interface for the durable store of waitlist users and referrals.

The verification core only talks to this protocol, so the relational
backend (SQLite today) can be swapped without touching it. Uniqueness of
emails and referral codes, and the atomicity of the referral counter, are
the store's responsibility.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from waitlist.models import ReferralEvent, WaitlistUser


class UserStore(Protocol):
    """Protocol that every user store backend must satisfy."""

    # ── Lookups ───────────────────────────────────────────────────────
    async def find_by_email(self, email: str) -> WaitlistUser | None:
        ...

    async def find_by_id(self, user_id: str) -> WaitlistUser | None:
        ...

    async def find_by_referral_code(self, code: str) -> WaitlistUser | None:
        ...

    # ── Writes ────────────────────────────────────────────────────────
    async def insert_user(
        self, email: str, referral_code: str, *, verified: bool
    ) -> WaitlistUser:
        """Insert a user. Raises ``UniqueViolation`` on email or code collision."""
        ...

    async def insert_verified_user(self, email: str, referral_code: str) -> WaitlistUser:
        ...

    async def mark_verified(self, user_id: str) -> None:
        ...

    async def record_referral(
        self, referrer_id: str, referred_id: str, unlock_threshold: int
    ) -> WaitlistUser | None:
        """
        In one transaction: add one to the referrer's referral_count
        (unlocking the reward when the new count reaches *unlock_threshold*)
        and append the ReferralEvent. Returns the updated referrer, or None
        if no such user exists.
        """
        ...

    async def list_referral_events(self, referrer_id: str) -> list[ReferralEvent]:
        ...

    # ── Ranking ───────────────────────────────────────────────────────
    async def count_created_before(self, created_at: datetime, *, seq: int | None = None) -> int:
        """
        Count users registered strictly before *created_at*. When *seq* is
        given, users with the same timestamp and a lower seq count as earlier.
        """
        ...

    async def ping(self) -> bool:
        ...
