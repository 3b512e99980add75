"""
Health check endpoint.
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from waitlist.dependencies import Registry
from waitlist.models import HealthResponse

router = APIRouter(prefix="/api", tags=["health"])

VERSION = "0.1.0"


@router.get(
    "/health",
    response_model=HealthResponse,
    operation_id="getHealth",
    summary="Health check",
)
async def get_health(registry: Registry) -> HealthResponse:
    store_ok = await registry.store.ping()
    db_ok = await registry.db.ping()
    return HealthResponse(
        status="ok" if store_ok and db_ok else "degraded",
        version=VERSION,
        timestamp=datetime.now(timezone.utc),
        ephemeral_store=store_ok,
        database=db_ok,
    )
