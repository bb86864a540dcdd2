"""
Batch schedule routes
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from pydantic import BaseModel

from triage_desk.container import Container
from triage_desk.exceptions import BatchInProgressError, TicketNotFoundError
from triage_desk.models.schemas import BatchPhase, ScheduleRun
from triage_desk.routes.deps import get_container
from triage_desk.utils.logger import get_logger

router = APIRouter(prefix="/api/v1/schedule", tags=["schedule"])
logger = get_logger(__name__)


class RunRequest(BaseModel):
    phase: BatchPhase = BatchPhase.CLASSIFY_AND_DRAFT
    ticket_ids: Optional[List[int]] = None
    wait: bool = False


class RunAccepted(BaseModel):
    status: str = "started"
    phase: BatchPhase
    total: int


class ToggleRequest(BaseModel):
    enabled: bool


async def _run_in_background(container: Container, tickets, phase: BatchPhase) -> None:
    try:
        await container.scheduler.run_batch(tickets, phase)
    except BatchInProgressError:
        logger.warning("Background batch not started: a batch is already running")


@router.post("/run", status_code=status.HTTP_202_ACCEPTED)
async def run_batch(
    request: RunRequest,
    background_tasks: BackgroundTasks,
    response: Response,
    container: Container = Depends(get_container)
):
    """
    Start a manual batch

    With `wait` the completed ScheduleRun is returned (200), otherwise the batch runs
    after the response is sent. 409 if a batch is already running.
    """
    if container.scheduler.is_running:
        raise BatchInProgressError("A batch is already running")

    if request.ticket_ids is None:
        tickets = container.store.all()
    else:
        tickets = []
        for ticket_id in request.ticket_ids:
            ticket = container.store.by_id(ticket_id)
            if ticket is None:
                raise TicketNotFoundError(ticket_id)
            tickets.append(ticket)

    if request.wait:
        run: ScheduleRun = await container.scheduler.run_batch(tickets, request.phase)
        response.status_code = status.HTTP_200_OK
        return run

    background_tasks.add_task(_run_in_background, container, tickets, request.phase)
    return RunAccepted(phase=request.phase, total=len(tickets))


@router.post("/abort")
async def abort_batch(container: Container = Depends(get_container)) -> Dict[str, bool]:
    return {"abort_requested": container.scheduler.request_abort()}


@router.post("/toggle")
async def toggle_schedule(request: ToggleRequest, container: Container = Depends(get_container)) -> Dict[str, bool]:
    return {"enabled": container.scheduler.toggle_schedule(request.enabled)}


@router.get("/status")
async def schedule_status(container: Container = Depends(get_container)) -> Dict[str, Any]:
    return container.scheduler.status()


@router.get("/runs", response_model=List[ScheduleRun])
async def list_runs(
    limit: int = Query(20, ge=1, le=200),
    container: Container = Depends(get_container)
):
    """Batch audit log, newest first"""
    return container.scheduler.runs(limit)
