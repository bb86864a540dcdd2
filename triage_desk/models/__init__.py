"""
Pydantic models for Triage Desk
"""

from triage_desk.models.schemas import (
    # Enums
    TicketStatus,
    Priority,
    EscalationType,
    DraftStatus,
    QAOverall,
    BatchPhase,
    ESCALATING_TYPES,

    # Tickets
    Requester,
    Ticket,
    TicketFilter,
    IngestReport,

    # Analysis & drafts
    AnalysisResult,
    ClassifierPayload,
    CriterionResult,
    QAResult,
    Draft,
    CasebookEntry,
    SimilarMatch,

    # Agents & batches
    Agent,
    BatchProgress,
    ScheduleRun,
)

__all__ = [
    "TicketStatus",
    "Priority",
    "EscalationType",
    "DraftStatus",
    "QAOverall",
    "BatchPhase",
    "ESCALATING_TYPES",
    "Requester",
    "Ticket",
    "TicketFilter",
    "IngestReport",
    "AnalysisResult",
    "ClassifierPayload",
    "CriterionResult",
    "QAResult",
    "Draft",
    "CasebookEntry",
    "SimilarMatch",
    "Agent",
    "BatchProgress",
    "ScheduleRun",
]
