"""
Contact form endpoint.
"""

import logging

from fastapi import APIRouter, status

from waitlist.dependencies import ClientIp, Database, Registry
from waitlist.errors import StorageUnavailable
from waitlist.models import ContactRequest, ErrorResponse, MessageResponse, normalize_email
from waitlist.rate_limit import CONTACT
from waitlist.routers.waitlist import (
    INTERNAL_ERROR_MESSAGE,
    RATE_LIMITED_MESSAGE,
    error_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contact", tags=["contact"])


@router.post(
    "/submit",
    response_model=MessageResponse,
    responses={429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    operation_id="submitContact",
    summary="Submit a contact-form message",
)
async def submit_contact(body: ContactRequest, db: Database, registry: Registry, ip: ClientIp):
    try:
        allowed = await registry.limiter.allow(
            CONTACT,
            ip,
            registry.orchestrator.ip_window_seconds,
            registry.orchestrator.ip_max_requests,
        )
        if not allowed:
            return error_response(
                status.HTTP_429_TOO_MANY_REQUESTS, RATE_LIMITED_MESSAGE, "RATE_LIMITED"
            )

        await db.create_contact_message(
            first_name=body.first_name.strip(),
            last_name=body.last_name.strip(),
            email=normalize_email(body.email),
            message=body.message.strip(),
            inquiry_type=body.inquiry_type,
        )
    except StorageUnavailable:
        logger.exception("Contact form submission failed")
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE, "INTERNAL_ERROR"
        )

    return MessageResponse(message="Message submitted successfully")
