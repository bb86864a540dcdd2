"""
Ticket routes

- Sync tickets from Freshdesk into the store
- Browse the triage queue with analyses, drafts and routing
- Run classification / the full pipeline for one ticket
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from triage_desk.container import Container
from triage_desk.exceptions import BatchInProgressError
from triage_desk.models.schemas import (
    Agent,
    AnalysisResult,
    Draft,
    IngestReport,
    SimilarMatch,
    Ticket,
    TicketFilter,
    TicketStatus,
)
from triage_desk.routes.deps import get_container

router = APIRouter(prefix="/api/v1/tickets", tags=["tickets"])


def _ensure_idle(container: Container) -> None:
    # Single-ticket runs would race the batch for the same tickets
    if container.scheduler.is_running:
        raise BatchInProgressError("A batch is running, retry once it finishes")


class SyncRequest(BaseModel):
    """Ticket sync parameters"""
    since: Optional[datetime] = Field(None, description="Only tickets updated after this time")
    limit: int = Field(100, ge=1, le=500, description="Maximum tickets to fetch")
    statuses: Optional[List[TicketStatus]] = None


class TicketDetail(BaseModel):
    ticket: Ticket
    analysis: Optional[AnalysisResult] = None
    draft: Optional[Draft] = None
    routed_to: Agent


@router.post("/sync", response_model=IngestReport)
async def sync_tickets(request: SyncRequest, container: Container = Depends(get_container)):
    """Fetch tickets from Freshdesk and merge them into the store"""
    return await container.refresh_tickets(
        TicketFilter(statuses=request.statuses, updated_since=request.since, max_tickets=request.limit)
    )


@router.get("", response_model=List[Ticket])
async def list_tickets(
    ticket_status: Optional[TicketStatus] = Query(None, alias="status"),
    unanalyzed: bool = False,
    limit: int = Query(100, ge=1, le=1000),
    container: Container = Depends(get_container)
):
    """Tickets in triage queue order"""
    if unanalyzed:
        tickets = container.store.unanalyzed()
    elif ticket_status is not None:
        tickets = container.store.by_status(ticket_status)
    else:
        tickets = container.store.all()
    return tickets[:limit]


@router.get("/{ticket_id}", response_model=TicketDetail)
async def get_ticket(ticket_id: int, container: Container = Depends(get_container)):
    ticket = container.pipeline.require_ticket(ticket_id)
    analysis = container.store.get_analysis(ticket_id)
    return TicketDetail(
        ticket=ticket,
        analysis=analysis,
        draft=container.engine.draft_for_ticket(ticket_id),
        routed_to=container.router.route_ticket(ticket, analysis),
    )


@router.get("/{ticket_id}/similar", response_model=List[SimilarMatch])
async def similar_cases(
    ticket_id: int,
    limit: int = Query(3, ge=1, le=20),
    container: Container = Depends(get_container)
):
    ticket = container.pipeline.require_ticket(ticket_id)
    return container.pipeline.retriever.find_similar(ticket, container.engine.casebook(), limit)


@router.post("/{ticket_id}/analyze", response_model=AnalysisResult)
async def analyze_ticket(ticket_id: int, container: Container = Depends(get_container)):
    """(Re)classify one ticket; the new analysis replaces the old one"""
    ticket = container.pipeline.require_ticket(ticket_id)
    _ensure_idle(container)
    return await container.pipeline.analyze(ticket)


@router.post("/{ticket_id}/process", response_model=Draft)
async def process_ticket(ticket_id: int, container: Container = Depends(get_container)):
    """Classify if needed, then generate a new draft"""
    _ensure_idle(container)
    return await container.pipeline.process_ticket(ticket_id)
