"""
Waitlist endpoints – start a signup by email.
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from waitlist.dependencies import ClientIp, Orchestrator
from waitlist.models import ErrorResponse, JoinRequest, MessageResponse
from waitlist.services.verification import JoinStatus

router = APIRouter(prefix="/api/waitlist", tags=["waitlist"])

RATE_LIMITED_MESSAGE = "Too many requests. Please try again later."
INTERNAL_ERROR_MESSAGE = "Something went wrong. Please try again later."


def error_response(status_code: int, error: str, error_type: str) -> JSONResponse:
    """Coarse failure body; never carries more than a fixed message and category."""
    body = ErrorResponse(error=error, error_type=error_type)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))


@router.post(
    "/join",
    response_model=MessageResponse,
    responses={
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    operation_id="joinWaitlist",
    summary="Start a waitlist signup and send a verification code",
)
async def join_waitlist(body: JoinRequest, orchestrator: Orchestrator, ip: ClientIp):
    """
    Park the signup (with its optional referral code) and email a 6-digit
    code. The response is identical whether or not the email is already
    on the waitlist.
    """
    outcome = await orchestrator.join(body.email, body.referral_code, ip)

    if outcome.status is JoinStatus.RATE_LIMITED:
        return error_response(status.HTTP_429_TOO_MANY_REQUESTS, RATE_LIMITED_MESSAGE, "RATE_LIMITED")
    if outcome.status is JoinStatus.ERROR:
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE, "INTERNAL_ERROR"
        )

    return MessageResponse(message="If this email can join, a verification code has been sent.")
