"""
Referral ledger: referral codes, waitlist rank and referral credit.

Codes use an alphabet without the look-alike characters 0, O, I and 1.
Collisions are arbitrated by the user store's UNIQUE constraint; the
ledger only retries. Crediting is a single atomic increment in the store
so two referred signups landing at once never lose a count.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable

from waitlist.errors import ReferralCodeExhausted, UniqueViolation, UnknownUser
from waitlist.models import RewardStatus, WaitlistUser, normalize_email
from waitlist.services.user_store import UserStore

logger = logging.getLogger(__name__)

REFERRAL_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
REFERRAL_CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 10


def generate_referral_code(length: int = REFERRAL_CODE_LENGTH) -> str:
    return "".join(secrets.choice(REFERRAL_ALPHABET) for _ in range(length))


class ReferralLedger:
    def __init__(
        self,
        users: UserStore,
        *,
        unlock_threshold: int = 5,
        max_code_attempts: int = MAX_CODE_ATTEMPTS,
        code_factory: Callable[[], str] = generate_referral_code,
    ) -> None:
        self._users = users
        self.unlock_threshold = unlock_threshold
        self._max_code_attempts = max_code_attempts
        self._code_factory = code_factory

    # ── Codes ──────────────────────────────────────────────────────────

    async def generate_unique_code(self) -> str:
        """Draw codes until one is not taken. Raises ReferralCodeExhausted."""
        for attempt in range(1, self._max_code_attempts + 1):
            code = self._code_factory()
            if await self._users.find_by_referral_code(code) is None:
                return code
            logger.info("Referral code collision on attempt %d", attempt)
        raise ReferralCodeExhausted(
            f"No free referral code after {self._max_code_attempts} attempts"
        )

    async def create_verified_user(self, email: str) -> WaitlistUser:
        """
        Insert a verified user with a fresh referral code.

        A code taken between the lookup and the insert is retried within the
        same ceiling. An email collision propagates as ``UniqueViolation``.
        """
        email = normalize_email(email)
        for _ in range(self._max_code_attempts):
            code = await self.generate_unique_code()
            try:
                return await self._users.insert_verified_user(email, code)
            except UniqueViolation as exc:
                if exc.field != "referral_code":
                    raise
                logger.info("Referral code %s taken concurrently, retrying", code)
        raise ReferralCodeExhausted(
            f"Referral code kept colliding on insert for {email}"
        )

    # ── Credit ─────────────────────────────────────────────────────────

    async def credit_referral(
        self, new_user_id: str, new_user_email: str, referral_code: str | None
    ) -> WaitlistUser | None:
        """
        Credit the owner of *referral_code* for a new signup.

        Unknown codes and self-referrals are ignored with a warning; they
        never block the signup. Returns the updated referrer, if credited.
        """
        if not referral_code:
            return None

        referrer = await self._users.find_by_referral_code(referral_code)
        if referrer is None:
            logger.warning("Referral code %s not found, ignoring", referral_code)
            return None

        if referrer.id == new_user_id or referrer.email == normalize_email(new_user_email):
            logger.warning("Self-referral attempt by user %s, ignoring", new_user_id)
            return None

        updated = await self._users.record_referral(
            referrer.id, new_user_id, self.unlock_threshold
        )
        if updated is None:
            logger.warning("Referrer %s vanished before credit, ignoring", referrer.id)
            return None

        # The counter moves by exactly one per credit, so only one credit lands on the threshold.
        if (
            updated.reward_status is RewardStatus.UNLOCKED
            and updated.referral_count == self.unlock_threshold
        ):
            logger.info(
                "🎉 Reward unlocked for user %s at %d referrals",
                updated.id,
                updated.referral_count,
            )
        logger.info(
            "Referral credited: user %s → user %s (count=%d)",
            referrer.id,
            new_user_id,
            updated.referral_count,
        )
        return updated

    # ── Rank ───────────────────────────────────────────────────────────

    async def compute_position(self, user: WaitlistUser | str) -> int:
        """1-based waitlist rank; same-timestamp ties go to the earlier insert."""
        if isinstance(user, str):
            found = await self._users.find_by_id(user)
            if found is None:
                raise UnknownUser(f"Unknown user {user}")
            user = found
        ahead = await self._users.count_created_before(user.created_at, seq=user.seq)
        return ahead + 1
