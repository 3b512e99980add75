import logging

import aiosmtplib
import pytest

from waitlist.errors import SendFailed
from waitlist.services.email import SmtpEmailSender


async def test_console_fallback_logs_code(caplog):
    sender = SmtpEmailSender(ttl_seconds=600, enabled=False)
    with caplog.at_level(logging.INFO):
        await sender.send("a@x.com", "123456")
    assert "123456" in caplog.text
    assert "a@x.com" in caplog.text


async def test_smtp_send_builds_message(monkeypatch):
    captured = {}

    async def _fake_send(message, **kwargs):
        captured["message"] = message
        captured["kwargs"] = kwargs

    monkeypatch.setattr(aiosmtplib, "send", _fake_send)
    await SmtpEmailSender(ttl_seconds=600, enabled=True).send("a@x.com", "654321")

    message = captured["message"]
    assert message["To"] == "a@x.com"
    assert "654321" in message.as_string()
    assert "10 minutes" in message.as_string()


async def test_smtp_failure_raises_send_failed(monkeypatch):
    async def _broken_send(message, **kwargs):
        raise aiosmtplib.SMTPException("relay refused")

    monkeypatch.setattr(aiosmtplib, "send", _broken_send)
    with pytest.raises(SendFailed):
        await SmtpEmailSender(ttl_seconds=600, enabled=True).send("a@x.com", "123456")


async def test_connection_error_raises_send_failed(monkeypatch):
    async def _unreachable(message, **kwargs):
        raise ConnectionRefusedError("no route")

    monkeypatch.setattr(aiosmtplib, "send", _unreachable)
    with pytest.raises(SendFailed):
        await SmtpEmailSender(ttl_seconds=600, enabled=True).send("a@x.com", "123456")
