"""
One-time passcode lifecycle.

``OtpStore`` keeps one hashed code and an attempt counter per email in the
ephemeral store. ``OtpEngine`` generates codes, throttles requests per
email, sends the code out and checks submissions.

Codes are never stored in plaintext: the record holds
HMAC-SHA256(secret, "<email>:<code>") and submissions are compared in
constant time. Every check first reserves an attempt with an atomic
increment, so concurrent guesses cannot all slip under the ceiling. A
successful match deletes the record, so a code can be used once.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from waitlist.models import normalize_email
from waitlist.rate_limit import OTP_REQUEST, RateLimiter
from waitlist.services.email import EmailSender
from waitlist.store import EphemeralStore

logger = logging.getLogger(__name__)

# Per-email request window
_REQUEST_WINDOW_SECONDS = 60 * 60


class OtpRequestResult(str, Enum):
    OK = "ok"
    RATE_LIMITED = "rate_limited"


class OtpCheck(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    INVALID = "invalid"


def generate_code() -> str:
    """Uniform 6-digit code, zero-padded ("000000" … "999999")."""
    return f"{secrets.randbelow(1_000_000):06d}"


def hash_code(secret: str, email: str, code: str) -> str:
    """Keyed digest of a code, bound to the (case-folded) email it was issued for."""
    message = f"{normalize_email(email)}:{code}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def _digests_match(email: str, stored_hex: str, candidate_hex: str) -> bool:
    """Constant-time comparison. A stored digest that cannot be decoded never matches."""
    try:
        stored = bytes.fromhex(stored_hex)
    except ValueError:
        logger.error("Stored OTP digest for %s is malformed, treating as mismatch", email)
        return False
    return hmac.compare_digest(stored, bytes.fromhex(candidate_hex))


@dataclass(frozen=True)
class OtpRecord:
    email: str
    code_hash: str
    attempts: int
    created_at: datetime
    expires_at: datetime


class OtpStore:
    """One live OTP record per email, TTL-bound."""

    def __init__(self, store: EphemeralStore, *, ttl_seconds: int) -> None:
        self._store = store
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def key(email: str) -> str:
        return f"otp:email:{email}"

    async def put(self, email: str, code_hash: str) -> None:
        """Store a fresh record, replacing (and so invalidating) any earlier code."""
        now = datetime.now(timezone.utc)
        await self._store.put_hash(
            self.key(email),
            {"hash": code_hash, "attempts": "0", "created_at": now.isoformat()},
            self.ttl_seconds,
        )

    async def get(self, email: str) -> OtpRecord | None:
        data = await self._store.get_hash(self.key(email))
        if not data.get("hash"):
            return None
        created_at = (
            datetime.fromisoformat(data["created_at"])
            if data.get("created_at")
            else datetime.now(timezone.utc)
        )
        return OtpRecord(
            email=email,
            code_hash=data["hash"],
            attempts=int(data.get("attempts") or 0),
            created_at=created_at,
            expires_at=created_at + timedelta(seconds=self.ttl_seconds),
        )

    async def reserve_attempt(self, email: str) -> int | None:
        """Bump the attempt counter and return the new value. None if there is no live record."""
        return await self._store.incr_hash_field(self.key(email), "attempts", 1)

    async def consume(self, email: str) -> bool:
        """Delete the record. True only for the caller that actually removed it."""
        return await self._store.delete(self.key(email))


class OtpEngine:
    """
    Issues and checks one-time passcodes.

    The per-email attempt ceiling here complements the per-IP limiter in
    front of it: one throttles a single source, the other throttles brute
    force against a single target.
    """

    def __init__(
        self,
        otp_store: OtpStore,
        limiter: RateLimiter,
        sender: EmailSender,
        *,
        secret: str,
        max_attempts: int = 5,
        requests_per_hour: int = 5,
        code_factory: Callable[[], str] = generate_code,
    ) -> None:
        self._otps = otp_store
        self._limiter = limiter
        self._sender = sender
        self._secret = secret
        self.max_attempts = max_attempts
        self.requests_per_hour = requests_per_hour
        self._code_factory = code_factory

    async def request_code(self, email: str) -> OtpRequestResult:
        """
        Issue a new code for *email* and send it.

        Raises ``StorageUnavailable`` or ``SendFailed``; the record is already
        stored when sending fails, which is harmless since it expires.
        """
        email = normalize_email(email)
        allowed = await self._limiter.allow(
            OTP_REQUEST, email, _REQUEST_WINDOW_SECONDS, self.requests_per_hour
        )
        if not allowed:
            return OtpRequestResult.RATE_LIMITED

        code = self._code_factory()
        await self._otps.put(email, hash_code(self._secret, email, code))
        await self._sender.send(email, code)
        logger.info("OTP issued for %s (ttl=%ds)", email, self._otps.ttl_seconds)
        return OtpRequestResult.OK

    async def verify_code(self, email: str, code: str) -> OtpCheck:
        """Check a submitted code; a match consumes the record."""
        email = normalize_email(email)
        attempt = await self._otps.reserve_attempt(email)
        if attempt is None:
            logger.info("OTP check for %s: no live record", email)
            return OtpCheck.NOT_FOUND

        # Exhausted records stay until their TTL runs out.
        if attempt > self.max_attempts:
            logger.warning(
                "OTP check for %s: attempt ceiling reached (%d)", email, self.max_attempts
            )
            return OtpCheck.TOO_MANY_ATTEMPTS

        record = await self._otps.get(email)
        if record is None:
            logger.info("OTP check for %s: record gone during check", email)
            return OtpCheck.NOT_FOUND

        candidate = hash_code(self._secret, email, code)
        if not _digests_match(email, record.code_hash, candidate):
            logger.info(
                "OTP check for %s: mismatch (attempt %d/%d)", email, attempt, self.max_attempts
            )
            return OtpCheck.INVALID

        if not await self._otps.consume(email):
            # A concurrent verifier consumed it first.
            logger.info("OTP check for %s: record already consumed", email)
            return OtpCheck.NOT_FOUND

        logger.info("OTP verified for %s", email)
        return OtpCheck.OK
