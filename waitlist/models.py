"""Pydantic models for the waitlist API and its stored records."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator


def normalize_email(email: str) -> str:
    """Case-fold an address before it is used as a key or stored."""
    return email.strip().lower()


class RewardStatus(str, Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"


# ── Stored records ────────────────────────────────────────────────────────


class WaitlistUser(BaseModel):
    """A row of the waitlist_users table."""
    id: str = Field(..., description="Unique user identifier")
    seq: int = Field(..., description="Monotonic insertion sequence")
    email: str = Field(..., description="Case-folded email address")
    referral_code: str = Field(..., description="Public code this user shares")
    is_verified: bool = Field(False, description="Whether the email has been proven via OTP")
    referral_count: int = Field(0, ge=0, description="Number of credited referrals")
    reward_status: RewardStatus = Field(RewardStatus.LOCKED, description="Referral reward state")
    created_at: datetime = Field(..., description="Registration time (UTC)")


class ReferralEvent(BaseModel):
    """One credited referral, append-only."""
    id: str
    referrer_id: str
    referred_id: str
    created_at: datetime


class PendingSignup(BaseModel):
    """Join intent parked in the ephemeral store until the OTP is verified."""
    email: str
    referral_code: Optional[str] = None
    created_at: datetime


class WaitlistSnapshot(BaseModel):
    """Everything a verified user is told about their place on the list."""
    referral_code: str
    position: int = Field(..., ge=1)
    referral_count: int = Field(..., ge=0)
    reward_status: RewardStatus


# ── Requests ──────────────────────────────────────────────────────────────


class JoinRequest(BaseModel):
    email: EmailStr = Field(..., description="Email address to put on the waitlist")
    referral_code: Optional[str] = Field(
        None, alias="referralCode", max_length=32, description="Referral code of an existing user"
    )

    model_config = {"populate_by_name": True}

    @field_validator("referral_code")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().upper()
        return v or None


class VerifyOtpRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., pattern=r"^\d{6}$", description="6-digit one-time passcode")


class ContactRequest(BaseModel):
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=100)
    last_name: str = Field(..., alias="lastName", min_length=1, max_length=100)
    email: EmailStr
    message: str = Field(..., min_length=1, max_length=5000)
    inquiry_type: Literal["student_support", "merchant_business"] = Field(..., alias="inquiryType")

    model_config = {"populate_by_name": True}


# ── Responses ─────────────────────────────────────────────────────────────


class MessageResponse(BaseModel):
    ok: bool = True
    message: str


class VerifyOtpResponse(BaseModel):
    ok: bool = True
    action: Literal["login", "verified", "signup"]
    message: str
    email: str
    referral_code: str = Field(..., serialization_alias="referralCode")
    position: int
    referral_count: int = Field(..., serialization_alias="referralCount")
    reward_status: RewardStatus = Field(..., serialization_alias="rewardStatus")
    is_verified: bool = Field(True, serialization_alias="isVerified")


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
    error_type: str = Field(..., serialization_alias="errorType")


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime
    ephemeral_store: bool
    database: bool
