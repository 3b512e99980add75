"""
Application configuration from environment variables.

All settings have sensible defaults for local development.
A .env file in the project root is loaded automatically (if present).
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file before reading any env vars
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# ── Environment ───────────────────────────────────────────────────────────

ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "info")

# Comma-separated list of allowed origins for the waitlist frontend.
CORS_ORIGINS: list[str] = [
    o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()
]

# ── Paths ─────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"

# SQLite database file (waitlist users, referral events, contact messages)
DB_PATH: str = os.getenv("DB_PATH", str(DATA_DIR / "waitlist.db"))

# ── Ephemeral store ───────────────────────────────────────────────────────

# Rate counters, OTP records and pending signups live here.
# Leave empty to use the in-process store (single worker / development only).
REDIS_URL: str = os.getenv("REDIS_URL", "").strip().strip('"')

# ── OTP ───────────────────────────────────────────────────────────────────

OTP_SECRET: str = os.getenv("OTP_SECRET", "dev-secret")
OTP_TTL_SECONDS: int = int(os.getenv("OTP_TTL_SECONDS", "600"))
OTP_MAX_ATTEMPTS: int = int(os.getenv("OTP_MAX_ATTEMPTS", "5"))
OTP_REQUESTS_PER_HOUR: int = int(os.getenv("OTP_REQUESTS_PER_HOUR", "5"))

# ── Per-IP rate limiting ──────────────────────────────────────────────────

IP_RATE_LIMIT_WINDOW_SECONDS: int = int(os.getenv("IP_RATE_LIMIT_WINDOW_SECONDS", "60"))
IP_RATE_LIMIT_MAX_REQUESTS: int = int(os.getenv("IP_RATE_LIMIT_MAX_REQUESTS", "20"))

# ── Referrals ─────────────────────────────────────────────────────────────

REFERRAL_THRESHOLD: int = int(os.getenv("REFERRAL_THRESHOLD", "5"))

# ── SMTP ──────────────────────────────────────────────────────────────────

SMTP_HOST: str = os.getenv("SMTP_HOST", "")
SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
SMTP_FROM_EMAIL: str = os.getenv("SMTP_FROM_EMAIL", "noreply@waitlist.local")
SMTP_USE_TLS: bool = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

# Product name used in the OTP email subject and body.
PRODUCT_NAME: str = os.getenv("PRODUCT_NAME", "StudentVerse")

# Set to "false" to force console-only mode even when SMTP credentials are present.
_SMTP_ENABLED_OVERRIDE: str = os.getenv("SMTP_ENABLED", "auto")


def smtp_enabled() -> bool:
    """True when SMTP should actually send emails.

    Controlled by SMTP_ENABLED env var:
      • "auto" (default): send if credentials are configured
      • "true" : always send (fails if credentials are missing)
      • "false": never send, log the code instead
    """
    if _SMTP_ENABLED_OVERRIDE.lower() == "false":
        return False
    if _SMTP_ENABLED_OVERRIDE.lower() == "true":
        return True
    return bool(SMTP_HOST and SMTP_USERNAME and SMTP_PASSWORD)
