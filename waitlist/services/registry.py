"""
Service registry – builds and owns every long-lived collaborator.

Constructed once in the app lifespan and stored on ``app.state``; routers
reach it through ``waitlist.dependencies``. Nothing here is a module-level
global, so tests can build a registry against a temp database and the
in-process store.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from waitlist import config
from waitlist.db import WaitlistDB
from waitlist.rate_limit import RateLimiter
from waitlist.services.email import EmailSender, SmtpEmailSender
from waitlist.services.otp import OtpEngine, OtpStore, generate_code
from waitlist.services.pending import PendingSignupStore
from waitlist.services.referrals import ReferralLedger, generate_referral_code
from waitlist.services.verification import VerificationOrchestrator
from waitlist.store import EphemeralStore, MemoryStore, RedisStore

logger = logging.getLogger(__name__)


class ServiceRegistry:
    """Holds the stores and the services wired on top of them."""

    def __init__(
        self,
        *,
        store: EphemeralStore,
        db: WaitlistDB,
        sender: EmailSender,
        otp_secret: str = config.OTP_SECRET,
        otp_ttl_seconds: int = config.OTP_TTL_SECONDS,
        otp_max_attempts: int = config.OTP_MAX_ATTEMPTS,
        otp_requests_per_hour: int = config.OTP_REQUESTS_PER_HOUR,
        ip_window_seconds: int = config.IP_RATE_LIMIT_WINDOW_SECONDS,
        ip_max_requests: int = config.IP_RATE_LIMIT_MAX_REQUESTS,
        referral_threshold: int = config.REFERRAL_THRESHOLD,
        otp_code_factory: Callable[[], str] = generate_code,
        referral_code_factory: Callable[[], str] = generate_referral_code,
    ) -> None:
        self.store = store
        self.db = db
        self.sender = sender

        self.limiter = RateLimiter(store)
        self.otp_store = OtpStore(store, ttl_seconds=otp_ttl_seconds)
        self.otp = OtpEngine(
            self.otp_store,
            self.limiter,
            sender,
            secret=otp_secret,
            max_attempts=otp_max_attempts,
            requests_per_hour=otp_requests_per_hour,
            code_factory=otp_code_factory,
        )
        self.pending = PendingSignupStore(store, ttl_seconds=otp_ttl_seconds)
        self.ledger = ReferralLedger(
            db,
            unlock_threshold=referral_threshold,
            code_factory=referral_code_factory,
        )
        self.orchestrator = VerificationOrchestrator(
            limiter=self.limiter,
            otp=self.otp,
            pending=self.pending,
            ledger=self.ledger,
            users=db,
            ip_window_seconds=ip_window_seconds,
            ip_max_requests=ip_max_requests,
        )

    @classmethod
    def from_config(cls) -> ServiceRegistry:
        """Build the production wiring from environment configuration."""
        if config.REDIS_URL:
            store: EphemeralStore = RedisStore.from_url(config.REDIS_URL)
            logger.info("Using Redis ephemeral store")
        else:
            store = MemoryStore()
            logger.warning("REDIS_URL not set, using in-process store (single worker only)")

        if config.ENVIRONMENT == "production" and config.OTP_SECRET == "dev-secret":
            logger.warning("OTP_SECRET is the development default, set it in production")

        return cls(
            store=store,
            db=WaitlistDB(config.DB_PATH),
            sender=SmtpEmailSender(ttl_seconds=config.OTP_TTL_SECONDS),
        )

    # ── Lifecycle ──────────────────────────────────────────────────────

    async def start(self) -> None:
        await self.db.open()

    async def stop(self) -> None:
        await self.db.close()
        await self.store.close()
