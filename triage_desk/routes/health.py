"""
Health check endpoint
"""
import time
from typing import Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from triage_desk import __version__
from triage_desk.container import Container
from triage_desk.models.schemas import utc_now
from triage_desk.routes.deps import get_container

router = APIRouter(prefix="/api/v1/health", tags=["health"])

APP_START_TIME = time.time()


class HealthResponse(BaseModel):
    status: str = Field(..., description="healthy or degraded")
    version: str
    uptime_seconds: float
    timestamp: str
    tickets: int
    drafts: Dict[str, int]
    storage_enabled: bool
    helpdesk_configured: bool
    batch_running: bool


@router.get("", response_model=HealthResponse)
async def health(container: Container = Depends(get_container)) -> HealthResponse:
    """
    Process health and snapshot counters.

    Missing storage or helpdesk configuration reports "degraded"; triage keeps
    working from the in-memory snapshot either way.
    """
    degraded = not container.sync.enabled or container.freshdesk is None
    return HealthResponse(
        status="degraded" if degraded else "healthy",
        version=__version__,
        uptime_seconds=round(time.time() - APP_START_TIME, 2),
        timestamp=utc_now().isoformat(),
        tickets=len(container.store),
        drafts=container.engine.stats(),
        storage_enabled=container.sync.enabled,
        helpdesk_configured=container.freshdesk is not None,
        batch_running=container.scheduler.is_running,
    )
