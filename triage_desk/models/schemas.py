"""
Pydantic models for Triage Desk

This module contains the domain entities of the triage pipeline (tickets,
analyses, drafts, casebook entries, agents, schedule runs) plus the schema used
to validate untrusted structured output from the generative model.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List, Set, FrozenSet
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict


def utc_now() -> datetime:
    """Timezone-aware current time"""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


# ============================================================================
# Enums
# ============================================================================

class TicketStatus(str, Enum):
    """Ticket statuses, declared in triage queue order"""
    OPEN = "open"
    PENDING = "pending"
    WAITING_ON_CUSTOMER = "waiting_on_customer"
    ON_HOLD = "on_hold"
    RESOLVED = "resolved"
    CLOSED = "closed"


class Priority(str, Enum):
    """Ticket priorities"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class EscalationType(str, Enum):
    """Specialist track a ticket belongs to"""
    DEV = "DEV"
    TWILIO = "TWILIO"
    BILLING = "BILLING"
    FEATURE = "FEATURE"
    BUG = "BUG"
    SUPPORT = "SUPPORT"


class DraftStatus(str, Enum):
    """Review status of a generated draft"""
    PENDING_REVIEW = "PENDING_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    NEEDS_EDIT = "NEEDS_EDIT"
    ESCALATION_RECOMMENDED = "ESCALATION_RECOMMENDED"


class QAOverall(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"


class BatchPhase(str, Enum):
    """Batch execution mode"""
    CLASSIFY_ONLY = "classify_only"
    CLASSIFY_AND_DRAFT = "classify_and_draft"


# Escalation types whose drafts start in ESCALATION_RECOMMENDED
ESCALATING_TYPES: FrozenSet[EscalationType] = frozenset({
    EscalationType.DEV,
    EscalationType.TWILIO,
    EscalationType.BUG,
})

PRIORITY_RANK: Dict[Priority, int] = {
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
    Priority.URGENT: 4,
}

STATUS_RANK: Dict[TicketStatus, int] = {
    status: index for index, status in enumerate(TicketStatus)
}


# ============================================================================
# Tickets
# ============================================================================

class Requester(BaseModel):
    """Ticket requester contact"""
    model_config = ConfigDict(from_attributes=True)

    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)


class Ticket(BaseModel):
    """
    Normalized support ticket.

    Identity is the external helpdesk id. Only `status` and `priority` change
    after ingestion; everything else is fixed at first sight.

    Attributes:
        id: Helpdesk ticket id
        subject: Ticket subject line
        body_text: Plain-text ticket description
        requester: Requester name/email
        status: Current helpdesk status
        priority: Current helpdesk priority
        created_at: Creation timestamp in the helpdesk
        tags: Helpdesk tags
    """
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., ge=1, description="Helpdesk ticket ID")
    subject: str = Field(..., max_length=1024, description="Ticket subject")
    body_text: str = Field("", description="Ticket description (plain text)")
    requester: Requester = Field(default_factory=Requester)
    status: TicketStatus = Field(TicketStatus.OPEN)
    priority: Priority = Field(Priority.MEDIUM)
    created_at: datetime = Field(default_factory=utc_now)
    tags: Set[str] = Field(default_factory=set)

    def sort_key(self):
        """Triage queue ordering: priority desc, status asc, created_at desc"""
        return (
            -PRIORITY_RANK[self.priority],
            STATUS_RANK[self.status],
            -self.created_at.timestamp(),
        )


class TicketFilter(BaseModel):
    """Filter passed to the helpdesk ticket source"""
    statuses: Optional[List[TicketStatus]] = None
    updated_since: Optional[datetime] = None
    max_tickets: Optional[int] = Field(None, ge=1)


class IngestReport(BaseModel):
    """Outcome of merging a batch of raw tickets into the store"""
    added: int = 0
    updated: int = 0
    unchanged: int = 0


# ============================================================================
# Analysis
# ============================================================================

class AnalysisResult(BaseModel):
    """
    Classifier output for a ticket (latest wins).

    There is no default-valued instance: a ticket without an AnalysisResult is
    "not yet triaged".
    """
    model_config = ConfigDict(from_attributes=True, frozen=True)

    ticket_id: int
    escalation_type: EscalationType
    urgency_score: int = Field(..., ge=0, le=10)
    summary: str
    action_items: List[str] = Field(default_factory=list)
    computed_at: datetime = Field(default_factory=utc_now)


class ClassifierPayload(BaseModel):
    """
    Schema for the generative model's classification JSON.

    Accepts the upper-case keys the model tends to produce
    (ESCALATION_TYPE, URGENCY_SCORE, ...) as well as snake_case.
    """
    escalation_type: EscalationType
    urgency_score: int = Field(..., ge=0, le=10)
    summary: str = Field(..., min_length=1)
    action_items: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def lowercase_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {str(k).lower(): v for k, v in data.items()}
        return data

    @field_validator("escalation_type", mode="before")
    @classmethod
    def normalize_escalation(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("action_items", mode="before")
    @classmethod
    def coerce_action_items(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v


# ============================================================================
# Drafts & QA
# ============================================================================

class CriterionResult(BaseModel):
    """Single QA criterion outcome"""
    model_config = ConfigDict(populate_by_name=True)

    passed: bool = Field(..., alias="pass")
    notes: Optional[str] = None


class QAResult(BaseModel):
    """QA evaluation of a draft response"""
    score: int = Field(..., ge=0, le=100)
    overall: QAOverall
    criteria: Dict[str, CriterionResult] = Field(default_factory=dict)
    fixes: List[str] = Field(default_factory=list)

    @field_validator("overall", mode="before")
    @classmethod
    def normalize_overall(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v


class Draft(BaseModel):
    """
    Generated candidate reply for a ticket.

    Status transitions (and the text replacement on resubmit) are the only
    mutations and are owned by the DraftWorkflowEngine.
    """
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=new_id)
    ticket_id: int
    text: str = Field(..., min_length=1)
    status: DraftStatus = DraftStatus.PENDING_REVIEW
    qa_result: Optional[QAResult] = None
    # Casebook entries shown to the generator as precedents
    casebook_entries_used: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class CasebookEntry(BaseModel):
    """Approved, reusable resolution used as the similarity corpus"""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str = Field(default_factory=new_id)
    ticket_id: int
    draft_id: str
    subject: str
    approved_response_text: str
    keywords: FrozenSet[str] = Field(default_factory=frozenset)
    created_at: datetime = Field(default_factory=utc_now)


class SimilarMatch(BaseModel):
    """Casebook entry scored against a ticket"""
    entry: CasebookEntry
    match_score: int = Field(..., ge=1)


# ============================================================================
# Agents
# ============================================================================

class Agent(BaseModel):
    """Static handler configuration"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    capabilities: FrozenSet[str] = Field(default_factory=frozenset)
    is_generalist: bool = False
    restrictions: List[str] = Field(default_factory=list)


# ============================================================================
# Batch scheduling
# ============================================================================

class BatchProgress(BaseModel):
    """Incremental batch progress"""
    current_index: int
    total: int
    phase_label: str


class ScheduleRun(BaseModel):
    """Audit record of one batch execution"""
    id: str = Field(default_factory=new_id)
    trigger: str = "manual"
    phase: BatchPhase = BatchPhase.CLASSIFY_AND_DRAFT
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: Optional[datetime] = None
    tickets_processed: int = 0
    drafts_generated: int = 0
    errors: List[str] = Field(default_factory=list)
    aborted: bool = False
