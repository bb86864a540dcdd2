"""
Draft review routes

Reviewer action surface: each endpoint maps 1:1 to a Draft Workflow Engine
transition. Illegal transitions surface as 409, unknown drafts as 404.
"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from triage_desk.container import Container
from triage_desk.exceptions import DraftNotFoundError
from triage_desk.models.schemas import CasebookEntry, Draft, DraftStatus
from triage_desk.routes.deps import get_container

router = APIRouter(prefix="/api/v1/drafts", tags=["drafts"])
casebook_router = APIRouter(prefix="/api/v1/casebook", tags=["casebook"])


class ResubmitRequest(BaseModel):
    text: str = Field(..., min_length=1, description="Reviewer-edited response text")


class PromotionResponse(BaseModel):
    draft: Draft
    entry: CasebookEntry
    created: bool


class DeletionResponse(BaseModel):
    draft_id: str
    casebook_entry_id: Optional[str] = None


@router.get("", response_model=List[Draft])
async def list_drafts(
    draft_status: Optional[DraftStatus] = Query(None, alias="status"),
    container: Container = Depends(get_container)
):
    """Drafts newest first, optionally filtered by status"""
    return container.engine.by_status(draft_status)


@router.get("/stats", response_model=Dict[str, int])
async def draft_stats(container: Container = Depends(get_container)):
    return container.engine.stats()


@router.get("/{draft_id}", response_model=Draft)
async def get_draft(draft_id: str, container: Container = Depends(get_container)):
    draft = container.engine.get(draft_id)
    if draft is None:
        raise DraftNotFoundError(draft_id)
    return draft


@router.post("/{draft_id}/approve", response_model=Draft)
async def approve_draft(draft_id: str, container: Container = Depends(get_container)):
    return await container.pipeline.approve(draft_id)


@router.post("/{draft_id}/reject", response_model=Draft)
async def reject_draft(draft_id: str, container: Container = Depends(get_container)):
    return await container.pipeline.reject(draft_id)


@router.post("/{draft_id}/request-edit", response_model=Draft)
async def request_edit(draft_id: str, container: Container = Depends(get_container)):
    return await container.pipeline.request_edit(draft_id)


@router.post("/{draft_id}/resubmit", response_model=Draft)
async def resubmit_draft(
    draft_id: str,
    request: ResubmitRequest,
    container: Container = Depends(get_container)
):
    return await container.pipeline.resubmit(draft_id, request.text)


@router.post("/{draft_id}/escalate", response_model=Draft)
async def recommend_escalation(draft_id: str, container: Container = Depends(get_container)):
    return await container.pipeline.recommend_escalation(draft_id)


@router.post("/{draft_id}/promote", response_model=PromotionResponse)
async def promote_draft(draft_id: str, container: Container = Depends(get_container)):
    """Approve the draft and save it to the casebook"""
    result = await container.pipeline.promote_to_casebook(draft_id)
    return PromotionResponse(draft=result.draft, entry=result.entry, created=result.created)


@router.delete("/{draft_id}", response_model=DeletionResponse, status_code=status.HTTP_200_OK)
async def delete_draft(draft_id: str, container: Container = Depends(get_container)):
    """Delete a draft and its casebook entry, if any"""
    result = await container.pipeline.delete_draft(draft_id)
    return DeletionResponse(
        draft_id=result.draft.id,
        casebook_entry_id=result.casebook_entry.id if result.casebook_entry else None,
    )


@casebook_router.get("", response_model=List[CasebookEntry])
async def list_casebook(container: Container = Depends(get_container)):
    return container.engine.casebook()
