"""
Fixed-window rate limiting on top of the ephemeral store.

One limiter serves every throttle in the service, parameterized by scope:

  • join        – per client IP, IP_RATE_LIMIT_MAX_REQUESTS / window
  • verify-otp  – per client IP, same limit
  • otp-request – per email, OTP_REQUESTS_PER_HOUR / hour
  • contact     – per client IP, same limit as join

A window opens on the first hit and closes when its counter key expires.
There is no sliding and no refund: once a window is exhausted, every
further call is denied until the key expires.
"""

from __future__ import annotations

import logging

from fastapi import Request

from waitlist.store import EphemeralStore

logger = logging.getLogger(__name__)

# Named scopes
JOIN = "join"
VERIFY = "verify-otp"
OTP_REQUEST = "otp-request"
CONTACT = "contact"

UNKNOWN_CLIENT = "unknown"


class RateLimiter:
    """Counts hits per (scope, identifier) in fixed, TTL-driven windows."""

    def __init__(self, store: EphemeralStore) -> None:
        self._store = store

    @staticmethod
    def key(scope: str, identifier: str) -> str:
        return f"ratelimit:{scope}:{identifier}"

    async def allow(
        self,
        scope: str,
        identifier: str,
        window_seconds: int,
        max_requests: int,
    ) -> bool:
        """
        Record one hit and return True if it is within the window's limit.

        Raises ``StorageUnavailable`` when the counter cannot be updated;
        whether that means allow or deny is the caller's decision.
        """
        count = await self._store.incr(self.key(scope, identifier), window_seconds)
        allowed = count <= max_requests
        if not allowed:
            logger.warning(
                "Rate limit exceeded: scope=%s identifier=%s count=%d max=%d",
                scope,
                identifier,
                count,
                max_requests,
            )
        return allowed


def client_ip(request: Request) -> str:
    """
    Resolve the originating address of a request.

    Prefers the first entry of X-Forwarded-For, then X-Real-IP, then the
    socket peer, then the "unknown" sentinel.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host

    return UNKNOWN_CLIENT
