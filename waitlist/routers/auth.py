"""
Authentication endpoint – email OTP verification.

No session is issued: the waitlist snapshot is returned once per valid
code, and getting it again means requesting and presenting a new code.
"""

from fastapi import APIRouter, status

from waitlist.dependencies import ClientIp, Orchestrator
from waitlist.models import ErrorResponse, VerifyOtpRequest, VerifyOtpResponse
from waitlist.routers.waitlist import (
    INTERNAL_ERROR_MESSAGE,
    RATE_LIMITED_MESSAGE,
    error_response,
)
from waitlist.services.verification import VerifyAction, VerifyStatus

router = APIRouter(prefix="/api/auth", tags=["auth"])

_MESSAGES = {
    VerifyAction.LOGIN: "Welcome back! You're already verified.",
    VerifyAction.VERIFIED: "Email verified successfully!",
    VerifyAction.SIGNUP: "Account created and verified successfully!",
}

# status -> (HTTP status, message, errorType)
_FAILURES = {
    VerifyStatus.RATE_LIMITED: (
        status.HTTP_429_TOO_MANY_REQUESTS, RATE_LIMITED_MESSAGE, "RATE_LIMITED",
    ),
    VerifyStatus.INVALID_OR_EXPIRED: (
        status.HTTP_400_BAD_REQUEST, "Invalid or expired OTP", "INVALID_OTP",
    ),
    VerifyStatus.SESSION_EXPIRED: (
        status.HTTP_400_BAD_REQUEST,
        "No pending signup found. Please restart signup.",
        "NO_PENDING_SIGNUP",
    ),
    VerifyStatus.ACCOUNT_EXISTS: (
        status.HTTP_409_CONFLICT, "An account with this email already exists.", "ACCOUNT_EXISTS",
    ),
    VerifyStatus.ERROR: (
        status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE, "INTERNAL_ERROR",
    ),
}


@router.post(
    "/verify-otp",
    response_model=VerifyOtpResponse,
    responses={code: {"model": ErrorResponse} for code in (400, 409, 429, 500)},
    operation_id="verifyOtp",
    summary="Verify an OTP and receive the waitlist snapshot",
)
async def verify_otp(body: VerifyOtpRequest, orchestrator: Orchestrator, ip: ClientIp):
    outcome = await orchestrator.verify(body.email, body.otp, ip)

    if outcome.status is not VerifyStatus.OK:
        return error_response(*_FAILURES[outcome.status])

    snapshot = outcome.snapshot
    return VerifyOtpResponse(
        action=outcome.action.value,
        message=_MESSAGES[outcome.action],
        email=outcome.email,
        referral_code=snapshot.referral_code,
        position=snapshot.position,
        referral_count=snapshot.referral_count,
        reward_status=snapshot.reward_status,
    )
