"""
Join and verify flows: the top-level state machine of the waitlist.

``join`` parks the signup intent and mails a code. ``verify`` checks the
code and then reconciles the email against the user store:

1.  Existing and verified   → ``login``    (snapshot only)
2.  Existing, not verified  → ``verified`` (flag flipped, snapshot)
3.  Unknown                 → ``signup``   (account created from the
    pending signup, referrer credited, snapshot)

Every failure is collapsed into a coarse category before it leaves this
module. "Wrong code", "no such email" and "expired" are indistinguishable
to the caller; the detail only goes to the log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from waitlist.errors import UniqueViolation, WaitlistError
from waitlist.models import WaitlistSnapshot, WaitlistUser, normalize_email
from waitlist.rate_limit import JOIN, VERIFY, RateLimiter
from waitlist.services.otp import OtpCheck, OtpEngine, OtpRequestResult
from waitlist.services.pending import PendingSignupStore
from waitlist.services.referrals import ReferralLedger
from waitlist.services.user_store import UserStore

logger = logging.getLogger(__name__)


class JoinStatus(str, Enum):
    OK = "ok"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"


class VerifyStatus(str, Enum):
    OK = "ok"
    RATE_LIMITED = "rate_limited"
    INVALID_OR_EXPIRED = "invalid_or_expired"
    SESSION_EXPIRED = "session_expired"
    ACCOUNT_EXISTS = "account_exists"
    ERROR = "error"


class VerifyAction(str, Enum):
    LOGIN = "login"          # returning, already verified
    VERIFIED = "verified"    # existing row, verified just now
    SIGNUP = "signup"        # account created from the pending signup


@dataclass(frozen=True)
class JoinOutcome:
    status: JoinStatus


@dataclass(frozen=True)
class VerifyOutcome:
    status: VerifyStatus
    action: VerifyAction | None = None
    email: str | None = None
    snapshot: WaitlistSnapshot | None = None


class VerificationOrchestrator:
    def __init__(
        self,
        *,
        limiter: RateLimiter,
        otp: OtpEngine,
        pending: PendingSignupStore,
        ledger: ReferralLedger,
        users: UserStore,
        ip_window_seconds: int = 60,
        ip_max_requests: int = 20,
    ) -> None:
        self._limiter = limiter
        self._otp = otp
        self._pending = pending
        self._ledger = ledger
        self._users = users
        self.ip_window_seconds = ip_window_seconds
        self.ip_max_requests = ip_max_requests

    # ── Join ───────────────────────────────────────────────────────────

    async def join(self, email: str, referral_code: str | None, ip: str) -> JoinOutcome:
        """
        Start a signup. The response never depends on whether *email* is
        already on the list.
        """
        email = normalize_email(email)
        try:
            if not await self._limiter.allow(
                JOIN, ip, self.ip_window_seconds, self.ip_max_requests
            ):
                return JoinOutcome(JoinStatus.RATE_LIMITED)

            await self._pending.put(email, referral_code)

            if await self._otp.request_code(email) is OtpRequestResult.RATE_LIMITED:
                logger.info("Join for %s throttled by per-email OTP limit", email)
                return JoinOutcome(JoinStatus.RATE_LIMITED)
        except WaitlistError:
            logger.exception("Join failed for %s", email)
            return JoinOutcome(JoinStatus.ERROR)

        return JoinOutcome(JoinStatus.OK)

    # ── Verify ─────────────────────────────────────────────────────────

    async def verify(self, email: str, code: str, ip: str) -> VerifyOutcome:
        email = normalize_email(email)
        try:
            if not await self._limiter.allow(
                VERIFY, ip, self.ip_window_seconds, self.ip_max_requests
            ):
                return VerifyOutcome(VerifyStatus.RATE_LIMITED)

            check = await self._otp.verify_code(email, code)
            if check is not OtpCheck.OK:
                logger.info("Verification rejected for %s: %s", email, check.value)
                return VerifyOutcome(VerifyStatus.INVALID_OR_EXPIRED)

            return await self._reconcile(email)
        except WaitlistError:
            logger.exception("Verification failed for %s", email)
            return VerifyOutcome(VerifyStatus.ERROR)

    async def _reconcile(self, email: str) -> VerifyOutcome:
        """The code was valid: decide what it means for this email."""
        user = await self._users.find_by_email(email)

        if user is not None and user.is_verified:
            await self._pending.clear(email)
            return await self._success(VerifyAction.LOGIN, user)

        if user is not None:
            await self._users.mark_verified(user.id)
            await self._pending.clear(email)
            logger.info("Existing waitlist user %s verified", email)
            return await self._success(VerifyAction.VERIFIED, user)

        pending = await self._pending.get(email)
        if pending is None:
            logger.info("Valid code for %s but no pending signup", email)
            return VerifyOutcome(VerifyStatus.SESSION_EXPIRED)

        try:
            user = await self._ledger.create_verified_user(email)
        except UniqueViolation:
            logger.warning("Concurrent signup for %s lost the insert race", email)
            return VerifyOutcome(VerifyStatus.ACCOUNT_EXISTS)

        await self._ledger.credit_referral(user.id, email, pending.referral_code)
        await self._pending.clear(email)
        logger.info("Account created for %s (referral code %s)", email, user.referral_code)
        return await self._success(VerifyAction.SIGNUP, user)

    async def _success(self, action: VerifyAction, user: WaitlistUser) -> VerifyOutcome:
        snapshot = WaitlistSnapshot(
            referral_code=user.referral_code,
            position=await self._ledger.compute_position(user),
            referral_count=user.referral_count,
            reward_status=user.reward_status,
        )
        return VerifyOutcome(VerifyStatus.OK, action=action, email=user.email, snapshot=snapshot)
