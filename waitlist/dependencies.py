from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from waitlist.db import WaitlistDB
from waitlist.rate_limit import client_ip
from waitlist.services.registry import ServiceRegistry
from waitlist.services.verification import VerificationOrchestrator


def get_registry(request: Request) -> ServiceRegistry:
    return request.app.state.registry


def get_orchestrator(
    registry: Annotated[ServiceRegistry, Depends(get_registry)],
) -> VerificationOrchestrator:
    return registry.orchestrator


def get_db(registry: Annotated[ServiceRegistry, Depends(get_registry)]) -> WaitlistDB:
    return registry.db


def get_client_ip(request: Request) -> str:
    return client_ip(request)


Registry = Annotated[ServiceRegistry, Depends(get_registry)]
Orchestrator = Annotated[VerificationOrchestrator, Depends(get_orchestrator)]
Database = Annotated[WaitlistDB, Depends(get_db)]
ClientIp = Annotated[str, Depends(get_client_ip)]
