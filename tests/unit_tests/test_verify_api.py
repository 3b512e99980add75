"""
Tests for POST /api/auth/verify-otp.

Every test drives the API end to end: join, read the code from the
recording sender, verify.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient


def _join(client: TestClient, email: str, referral_code: str | None = None) -> None:
    body = {"email": email}
    if referral_code:
        body["referralCode"] = referral_code
    assert client.post("/api/waitlist/join", json=body).status_code == 200


def _verify(client: TestClient, email: str, otp: str):
    return client.post("/api/auth/verify-otp", json={"email": email, "otp": otp})


class TestVerifyOtp:
    def test_signup_returns_snapshot(self, client: TestClient, sender):
        _join(client, "new@example.com")
        resp = _verify(client, "new@example.com", sender.last_code_for("new@example.com"))

        assert resp.status_code == 200
        data = resp.json()
        assert data["ok"] is True
        assert data["action"] == "signup"
        assert data["email"] == "new@example.com"
        assert data["position"] == 1
        assert data["referralCount"] == 0
        assert data["rewardStatus"] == "locked"
        assert data["isVerified"] is True
        assert len(data["referralCode"]) == 8

    def test_second_verification_is_login(self, client: TestClient, sender):
        _join(client, "a@example.com")
        first = _verify(client, "a@example.com", "123456").json()

        _join(client, "a@example.com")
        second = _verify(client, "A@Example.com", "123456").json()
        assert second["action"] == "login"
        assert second["referralCode"] == first["referralCode"]
        assert second["position"] == first["position"]

    def test_reused_code_is_rejected(self, client: TestClient):
        _join(client, "a@example.com")
        assert _verify(client, "a@example.com", "123456").status_code == 200

        resp = _verify(client, "a@example.com", "123456")
        assert resp.status_code == 400
        assert resp.json() == {
            "ok": False,
            "error": "Invalid or expired OTP",
            "errorType": "INVALID_OTP",
        }

    def test_wrong_and_unknown_look_the_same(self, client: TestClient):
        _join(client, "a@example.com")
        wrong = _verify(client, "a@example.com", "000000")
        unknown = _verify(client, "ghost@example.com", "123456")
        assert wrong.status_code == unknown.status_code == 400
        assert wrong.json() == unknown.json()

    def test_no_pending_signup(self, client: TestClient, store):
        _join(client, "a@example.com")
        asyncio.run(store.delete("pending:waitlist:a@example.com"))

        resp = _verify(client, "a@example.com", "123456")
        assert resp.status_code == 400
        assert resp.json()["errorType"] == "NO_PENDING_SIGNUP"

    @pytest.mark.parametrize("otp", ["12345", "1234567", "abcdef", ""])
    def test_malformed_otp_is_422(self, client: TestClient, otp):
        resp = _verify(client, "a@example.com", otp)
        assert resp.status_code == 422

    def test_referral_flow_over_http(self, client: TestClient, sender):
        _join(client, "ref@example.com")
        referrer = _verify(client, "ref@example.com", "123456").json()

        _join(client, "friend@example.com", referrer["referralCode"].lower())
        friend = _verify(client, "friend@example.com", "123456").json()
        assert friend["action"] == "signup"
        assert friend["position"] == 2

        _join(client, "ref@example.com")
        again = _verify(client, "ref@example.com", "123456").json()
        assert again["action"] == "login"
        assert again["referralCount"] == 1

    def test_ip_limit_returns_429(self, client: TestClient):
        headers = {"X-Forwarded-For": "198.51.100.30"}
        for _ in range(20):
            client.post(
                "/api/auth/verify-otp",
                json={"email": "a@example.com", "otp": "000000"},
                headers=headers,
            )
        resp = client.post(
            "/api/auth/verify-otp",
            json={"email": "a@example.com", "otp": "000000"},
            headers=headers,
        )
        assert resp.status_code == 429
        assert resp.json()["errorType"] == "RATE_LIMITED"
