"""
Pending signups: join intent parked until the email is verified.

A record binds an unauthenticated email to the referral code it joined
with. It lives exactly as long as the OTP that would unlock it, and a
second join for the same email simply replaces it (last intent wins).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from waitlist.models import PendingSignup, normalize_email
from waitlist.store import EphemeralStore

logger = logging.getLogger(__name__)


class PendingSignupStore:
    def __init__(self, store: EphemeralStore, *, ttl_seconds: int) -> None:
        self._store = store
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def key(email: str) -> str:
        return f"pending:waitlist:{email}"

    async def put(self, email: str, referral_code: str | None = None) -> None:
        email = normalize_email(email)
        await self._store.put_hash(
            self.key(email),
            {
                "email": email,
                "referralCode": referral_code or "",
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
            self.ttl_seconds,
        )

    async def get(self, email: str) -> PendingSignup | None:
        email = normalize_email(email)
        data = await self._store.get_hash(self.key(email))
        if not data.get("email"):
            return None
        return PendingSignup(
            email=data["email"],
            referral_code=data.get("referralCode") or None,
            created_at=data.get("created_at") or datetime.now(timezone.utc),
        )

    async def clear(self, email: str) -> None:
        """Idempotent delete."""
        removed = await self._store.delete(self.key(normalize_email(email)))
        if removed:
            logger.debug("Cleared pending signup for %s", email)
