"""
SQLite database layer using aiosqlite.

Stores waitlist users, referral events and contact-form messages.
Tables are created automatically on first connect.

Implements the ``UserStore`` protocol. Uniqueness of emails and referral
codes is enforced by UNIQUE constraints, and the referral counter is
bumped with a single UPDATE so concurrent credits never lose a write.

There is one connection per process, so a transaction is shared by every
task that touches it. Each unit of work (statements plus commit or
rollback) therefore runs under ``self._lock``; a rollback can only ever
undo the statements of the unit that failed.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

import aiosqlite

from waitlist.errors import StorageUnavailable, UniqueViolation
from waitlist.models import ReferralEvent, RewardStatus, WaitlistUser

logger = logging.getLogger(__name__)


# ── Schema ────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS waitlist_users (
    seq             INTEGER PRIMARY KEY AUTOINCREMENT,
    id              TEXT NOT NULL UNIQUE,
    email           TEXT NOT NULL UNIQUE,
    referral_code   TEXT NOT NULL UNIQUE,
    is_verified     INTEGER NOT NULL DEFAULT 0,
    referral_count  INTEGER NOT NULL DEFAULT 0 CHECK (referral_count >= 0),
    reward_status   TEXT NOT NULL DEFAULT 'locked'
                    CHECK (reward_status IN ('locked', 'unlocked')),
    created_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_users_created ON waitlist_users(created_at, seq);

CREATE TABLE IF NOT EXISTS referral_events (
    id              TEXT PRIMARY KEY,
    referrer_id     TEXT NOT NULL,
    referred_id     TEXT NOT NULL UNIQUE,
    created_at      TEXT NOT NULL,
    CHECK (referrer_id <> referred_id),
    FOREIGN KEY (referrer_id) REFERENCES waitlist_users(id) ON DELETE CASCADE,
    FOREIGN KEY (referred_id) REFERENCES waitlist_users(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_events_referrer ON referral_events(referrer_id);

CREATE TABLE IF NOT EXISTS contact_messages (
    id              TEXT PRIMARY KEY,
    first_name      TEXT NOT NULL,
    last_name       TEXT NOT NULL,
    email           TEXT NOT NULL,
    message         TEXT NOT NULL,
    inquiry_type    TEXT NOT NULL,
    created_at      TEXT NOT NULL
);
"""

# "UNIQUE constraint failed: waitlist_users.email"
_UNIQUE_RE = re.compile(r"UNIQUE constraint failed: \w+\.(\w+)")


# ── Helpers ───────────────────────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(dt: datetime) -> str:
    # Fixed-width so that lexical order in SQL matches chronological order.
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _row_to_user(row: aiosqlite.Row) -> WaitlistUser:
    """Convert a database row to a WaitlistUser model."""
    return WaitlistUser(
        id=row["id"],
        seq=row["seq"],
        email=row["email"],
        referral_code=row["referral_code"],
        is_verified=bool(row["is_verified"]),
        referral_count=row["referral_count"],
        reward_status=RewardStatus(row["reward_status"]),
        created_at=row["created_at"],
    )


def _row_to_event(row: aiosqlite.Row) -> ReferralEvent:
    return ReferralEvent(
        id=row["id"],
        referrer_id=row["referrer_id"],
        referred_id=row["referred_id"],
        created_at=row["created_at"],
    )


class WaitlistDB:
    """
    aiosqlite-backed ``UserStore`` plus the contact-message table.

    Constructed once at startup, opened in the app lifespan and passed by
    reference to the services that need it.
    """

    def __init__(self, path: str, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._path = path
        self._clock = clock
        self._db: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    # ── Lifecycle ──────────────────────────────────────────────────────

    async def open(self) -> None:
        """Open the database and create tables if they don't exist."""
        db_path = Path(self._path)
        db_path.parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(str(db_path))
        self._db.row_factory = aiosqlite.Row  # dict-like rows
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("PRAGMA foreign_keys=ON")

        await self._db.executescript(_SCHEMA)
        await self._db.commit()
        logger.info("Database initialized at %s", db_path)

    async def close(self) -> None:
        """Close the database connection."""
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.info("Database connection closed")

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StorageUnavailable("Database not initialized, call open() first")
        return self._db

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        """
        Run one unit of work exclusively.

        Driver-level failures roll the unit back and surface as
        ``UniqueViolation`` or ``StorageUnavailable``.
        """
        db = self._conn()
        async with self._lock:
            try:
                yield db
            except aiosqlite.IntegrityError as exc:
                await db.rollback()
                match = _UNIQUE_RE.search(str(exc))
                if match is None:
                    raise StorageUnavailable(f"{operation}: integrity error") from exc
                raise UniqueViolation(match.group(1), str(exc)) from exc
            except aiosqlite.Error as exc:
                logger.error("Database error during %s: %s", operation, exc)
                await db.rollback()
                raise StorageUnavailable(f"{operation} failed") from exc

    async def ping(self) -> bool:
        if self._db is None:
            return False
        try:
            async with self._db.execute("SELECT 1") as cur:
                await cur.fetchone()
        except aiosqlite.Error:
            logger.warning("Database ping failed", exc_info=True)
            return False
        return True

    # ══════════════════════════════════════════════════════════════════
    #                        USER REPOSITORY
    # ══════════════════════════════════════════════════════════════════

    async def _fetch_user(self, column: str, value: str) -> WaitlistUser | None:
        async with self._guard(f"find user by {column}") as db:
            async with db.execute(
                f"SELECT * FROM waitlist_users WHERE {column} = ?", (value,)
            ) as cur:
                row = await cur.fetchone()
        return _row_to_user(row) if row else None

    async def find_by_email(self, email: str) -> WaitlistUser | None:
        return await self._fetch_user("email", email)

    async def find_by_id(self, user_id: str) -> WaitlistUser | None:
        return await self._fetch_user("id", user_id)

    async def find_by_referral_code(self, code: str) -> WaitlistUser | None:
        return await self._fetch_user("referral_code", code)

    async def insert_user(
        self, email: str, referral_code: str, *, verified: bool
    ) -> WaitlistUser:
        """Insert a new user and return it."""
        async with self._guard("insert user") as db:
            async with db.execute(
                """
                INSERT INTO waitlist_users
                    (id, email, referral_code, is_verified, referral_count, reward_status, created_at)
                VALUES (?, ?, ?, ?, 0, 'locked', ?)
                RETURNING *
                """,
                (str(uuid4()), email, referral_code, int(verified), _iso(self._clock())),
            ) as cur:
                row = await cur.fetchone()
            await db.commit()
        return _row_to_user(row)

    async def insert_verified_user(self, email: str, referral_code: str) -> WaitlistUser:
        return await self.insert_user(email, referral_code, verified=True)

    async def mark_verified(self, user_id: str) -> None:
        async with self._guard("mark verified") as db:
            await db.execute(
                "UPDATE waitlist_users SET is_verified = 1 WHERE id = ?", (user_id,)
            )
            await db.commit()

    async def count_created_before(
        self, created_at: datetime, *, seq: int | None = None
    ) -> int:
        ts = _iso(created_at)
        if seq is None:
            sql = "SELECT COUNT(*) FROM waitlist_users WHERE created_at < ?"
            params: tuple = (ts,)
        else:
            sql = (
                "SELECT COUNT(*) FROM waitlist_users "
                "WHERE created_at < ? OR (created_at = ? AND seq < ?)"
            )
            params = (ts, ts, seq)
        async with self._guard("count users") as db:
            async with db.execute(sql, params) as cur:
                row = await cur.fetchone()
        return row[0]

    # ══════════════════════════════════════════════════════════════════
    #                     REFERRAL EVENT REPOSITORY
    # ══════════════════════════════════════════════════════════════════

    async def record_referral(
        self, referrer_id: str, referred_id: str, unlock_threshold: int
    ) -> WaitlistUser | None:
        """
        Credit one referral in a single transaction.

        Bumps the referrer's counter (unlocking the reward on reaching
        *unlock_threshold*) and appends the ReferralEvent. Either both are
        committed or neither is. Returns the updated referrer, or None if
        it does not exist.
        """
        async with self._guard("record referral") as db:
            async with db.execute(
                """
                UPDATE waitlist_users
                SET referral_count = referral_count + 1,
                    reward_status = CASE
                        WHEN reward_status = 'locked' AND referral_count + 1 >= ?
                        THEN 'unlocked'
                        ELSE reward_status
                    END
                WHERE id = ?
                RETURNING *
                """,
                (unlock_threshold, referrer_id),
            ) as cur:
                row = await cur.fetchone()
            if row is None:
                await db.rollback()
                return None

            await db.execute(
                """
                INSERT INTO referral_events (id, referrer_id, referred_id, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (str(uuid4()), referrer_id, referred_id, _iso(self._clock())),
            )
            await db.commit()
        return _row_to_user(row)

    async def list_referral_events(self, referrer_id: str) -> list[ReferralEvent]:
        """Return referral events credited to a user, oldest first."""
        async with self._guard("list referral events") as db:
            async with db.execute(
                "SELECT * FROM referral_events WHERE referrer_id = ? ORDER BY created_at",
                (referrer_id,),
            ) as cur:
                rows = await cur.fetchall()
        return [_row_to_event(r) for r in rows]

    # ══════════════════════════════════════════════════════════════════
    #                     CONTACT MESSAGE REPOSITORY
    # ══════════════════════════════════════════════════════════════════

    async def create_contact_message(
        self,
        *,
        first_name: str,
        last_name: str,
        email: str,
        message: str,
        inquiry_type: str,
    ) -> str:
        """Store a contact-form submission and return its ID."""
        msg_id = str(uuid4())
        async with self._guard("create contact message") as db:
            await db.execute(
                """
                INSERT INTO contact_messages
                    (id, first_name, last_name, email, message, inquiry_type, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (msg_id, first_name, last_name, email, message, inquiry_type, _iso(self._clock())),
            )
            await db.commit()
        return msg_id
