"""
Test doubles for the waitlist collaborators.

No network, no SMTP, no Redis server: everything here is deterministic so that
tests can assert on exact codes and exact expiry.
"""

from __future__ import annotations

import asyncio
from itertools import cycle

from waitlist.errors import SendFailed, StorageUnavailable
from waitlist.services.registry import ServiceRegistry
from waitlist.store import MemoryStore

TEST_SECRET = "test-secret"


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingEmailSender:
    """EmailSender that remembers every (to, code) it was asked to send."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def send(self, to: str, code: str) -> None:
        self.sent.append((to, code))

    def last_code_for(self, email: str) -> str | None:
        for to, code in reversed(self.sent):
            if to == email:
                return code
        return None


class FailingEmailSender:
    async def send(self, to: str, code: str) -> None:
        raise SendFailed(f"transport down for {to}")


class CodeSequence:
    """Callable code factory that hands out the given codes in a loop."""

    def __init__(self, *codes: str) -> None:
        self._codes = cycle(codes)
        self.issued: list[str] = []

    def __call__(self) -> str:
        code = next(self._codes)
        self.issued.append(code)
        return code


class UnavailableStore:
    """EphemeralStore whose every call fails as if Redis were down."""

    async def incr(self, key: str, ttl_seconds: int) -> int:
        raise StorageUnavailable("store down")

    async def put_hash(self, key: str, mapping: dict[str, str], ttl_seconds: int) -> None:
        raise StorageUnavailable("store down")

    async def get_hash(self, key: str) -> dict[str, str]:
        raise StorageUnavailable("store down")

    async def incr_hash_field(self, key: str, field: str, amount: int = 1) -> int | None:
        raise StorageUnavailable("store down")

    async def delete(self, key: str) -> bool:
        raise StorageUnavailable("store down")

    async def ping(self) -> bool:
        return False

    async def close(self) -> None:
        pass


class YieldingStore(MemoryStore):
    """
    MemoryStore that hands control back to the event loop before every call.

    Concurrent callers interleave between store round-trips the way they do
    against a networked backend.
    """

    async def incr(self, key: str, ttl_seconds: int) -> int:
        await asyncio.sleep(0)
        return await super().incr(key, ttl_seconds)

    async def put_hash(self, key: str, mapping: dict[str, str], ttl_seconds: int) -> None:
        await asyncio.sleep(0)
        await super().put_hash(key, mapping, ttl_seconds)

    async def get_hash(self, key: str) -> dict[str, str]:
        await asyncio.sleep(0)
        return await super().get_hash(key)

    async def incr_hash_field(self, key: str, field: str, amount: int = 1) -> int | None:
        await asyncio.sleep(0)
        return await super().incr_hash_field(key, field, amount)

    async def delete(self, key: str) -> bool:
        await asyncio.sleep(0)
        return await super().delete(key)


def build_registry(store, db, sender, codes, **overrides) -> ServiceRegistry:
    """Registry with the documented defaults unless overridden."""
    settings = dict(
        otp_secret=TEST_SECRET,
        otp_ttl_seconds=600,
        otp_max_attempts=5,
        otp_requests_per_hour=5,
        ip_window_seconds=60,
        ip_max_requests=20,
        referral_threshold=5,
        otp_code_factory=codes,
    )
    settings.update(overrides)
    return ServiceRegistry(store=store, db=db, sender=sender, **settings)
