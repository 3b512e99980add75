"""Tests for the pending-signup store."""

from waitlist.services.pending import PendingSignupStore


class TestPendingSignupStore:
    async def test_put_and_get(self, store):
        pending = PendingSignupStore(store, ttl_seconds=600)
        await pending.put("New@X.com", "ABCD2345")

        record = await pending.get("new@x.com")
        assert record is not None
        assert record.email == "new@x.com"
        assert record.referral_code == "ABCD2345"

    async def test_missing_referral_code_reads_back_as_none(self, store):
        pending = PendingSignupStore(store, ttl_seconds=600)
        await pending.put("a@x.com")
        record = await pending.get("a@x.com")
        assert record.referral_code is None

    async def test_last_join_wins(self, store):
        pending = PendingSignupStore(store, ttl_seconds=600)
        await pending.put("a@x.com", "FIRST234")
        await pending.put("a@x.com", "SECND234")
        assert (await pending.get("a@x.com")).referral_code == "SECND234"

        await pending.put("a@x.com", None)
        assert (await pending.get("a@x.com")).referral_code is None

    async def test_expires_with_otp_ttl(self, store, clock):
        pending = PendingSignupStore(store, ttl_seconds=600)
        await pending.put("a@x.com")
        clock.advance(599)
        assert await pending.get("a@x.com") is not None
        clock.advance(1)
        assert await pending.get("a@x.com") is None

    async def test_clear_is_idempotent(self, store):
        pending = PendingSignupStore(store, ttl_seconds=600)
        await pending.put("a@x.com")
        await pending.clear("a@x.com")
        await pending.clear("a@x.com")
        assert await pending.get("a@x.com") is None

    async def test_clear_unknown_email_is_noop(self, store):
        pending = PendingSignupStore(store, ttl_seconds=600)
        await pending.clear("ghost@x.com")
        assert await pending.get("ghost@x.com") is None
