"""
Draft Workflow Engine

Owns generated drafts and the casebook built from approved ones.

State machine (reviewer/system actions only, never self-promoting):

    create ──> PENDING_REVIEW ──approve──> APPROVED
           │                  ├─reject──> REJECTED
           │                  └─request_edit──> NEEDS_EDIT ──resubmit──> PENDING_REVIEW
           └─(escalating analysis)──> ESCALATION_RECOMMENDED ──approve/reject/request_edit──> ...

- ESCALATION_RECOMMENDED is assigned at creation when the ticket's analysis
  is DEV, TWILIO or BUG. Reviewers may escalate PENDING_REVIEW or NEEDS_EDIT
  drafts of such tickets, never APPROVED/REJECTED ones.
- promote_to_casebook approves (even over a rejection) and creates the
  casebook entry in one step.
- delete_draft cascades to the linked casebook entry.

Every mutation happens under one lock and swaps in a whole new Draft object.
"""
import threading
from collections import Counter
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Sequence

from triage_desk.exceptions import (
    DraftNotFoundError,
    InvalidTransitionError,
    TicketNotFoundError,
)
from triage_desk.models.schemas import (
    AnalysisResult,
    CasebookEntry,
    Draft,
    DraftStatus,
    ESCALATING_TYPES,
    QAResult,
    utc_now,
)
from triage_desk.services.ticket_store import TicketStore
from triage_desk.utils.logger import get_logger
from triage_desk.utils.text import subject_keywords

logger = get_logger(__name__)


# Reviewer-initiated transitions
REVIEWER_TRANSITIONS: Dict[DraftStatus, FrozenSet[DraftStatus]] = {
    DraftStatus.PENDING_REVIEW: frozenset({
        DraftStatus.APPROVED,
        DraftStatus.REJECTED,
        DraftStatus.NEEDS_EDIT,
    }),
    DraftStatus.ESCALATION_RECOMMENDED: frozenset({
        DraftStatus.APPROVED,
        DraftStatus.REJECTED,
        DraftStatus.NEEDS_EDIT,
    }),
    DraftStatus.NEEDS_EDIT: frozenset({
        DraftStatus.PENDING_REVIEW,
        DraftStatus.ESCALATION_RECOMMENDED,
    }),
    DraftStatus.APPROVED: frozenset(),
    DraftStatus.REJECTED: frozenset(),
}

# Human decisions that escalation may never overwrite
TERMINAL_DECISIONS = frozenset({DraftStatus.APPROVED, DraftStatus.REJECTED})


def initial_status(analysis: Optional[AnalysisResult]) -> DraftStatus:
    """Status a freshly generated draft starts in"""
    if analysis is not None and analysis.escalation_type in ESCALATING_TYPES:
        return DraftStatus.ESCALATION_RECOMMENDED
    return DraftStatus.PENDING_REVIEW


@dataclass(frozen=True)
class PromotionResult:
    draft: Draft
    entry: CasebookEntry
    created: bool


@dataclass(frozen=True)
class DeletionResult:
    draft: Draft
    casebook_entry: Optional[CasebookEntry]


class DraftWorkflowEngine:
    """Draft store + review state machine + casebook"""

    def __init__(self, ticket_store: TicketStore):
        self.ticket_store = ticket_store
        self._drafts: Dict[str, Draft] = {}
        self._drafts_by_ticket: Dict[int, List[str]] = {}
        self._casebook: Dict[str, CasebookEntry] = {}
        self._casebook_by_draft: Dict[str, str] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _require(self, draft_id: str) -> Draft:
        draft = self._drafts.get(draft_id)
        if draft is None:
            raise DraftNotFoundError(draft_id)
        return draft

    def _store(self, draft: Draft) -> Draft:
        self._drafts[draft.id] = draft
        return draft

    def _transition(self, draft_id: str, target: DraftStatus) -> Draft:
        with self._lock:
            draft = self._require(draft_id)
            allowed = REVIEWER_TRANSITIONS[draft.status]
            if target not in allowed:
                raise InvalidTransitionError(draft_id, draft.status.value, target.value)

            updated = draft.model_copy(update={"status": target, "updated_at": utc_now()})
            self._store(updated)

        logger.info(f"Draft {draft_id} (ticket {draft.ticket_id}): {draft.status.value} -> {target.value}")
        return updated

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------
    def create_draft(
        self,
        ticket_id: int,
        text: str,
        analysis: Optional[AnalysisResult],
        qa_result: Optional[QAResult] = None,
        casebook_entries_used: Sequence[str] = ()
    ) -> Draft:
        """
        Register a generated draft

        Args:
            ticket_id: Ticket the draft answers
            text: Generated response text
            analysis: Ticket analysis at creation time (decides initial status)
            qa_result: Optional QA evaluation
            casebook_entries_used: Ids of the casebook precedents used in generation

        Returns:
            The new Draft
        """
        draft = Draft(
            ticket_id=ticket_id,
            text=text,
            status=initial_status(analysis),
            qa_result=qa_result,
            casebook_entries_used=list(casebook_entries_used),
        )

        with self._lock:
            self._store(draft)
            self._drafts_by_ticket.setdefault(ticket_id, []).append(draft.id)

        logger.info(f"Draft {draft.id} created for ticket {ticket_id} ({draft.status.value})")
        return draft

    # ------------------------------------------------------------------
    # Reviewer transitions
    # ------------------------------------------------------------------
    def approve(self, draft_id: str) -> Draft:
        return self._transition(draft_id, DraftStatus.APPROVED)

    def reject(self, draft_id: str) -> Draft:
        return self._transition(draft_id, DraftStatus.REJECTED)

    def request_edit(self, draft_id: str) -> Draft:
        return self._transition(draft_id, DraftStatus.NEEDS_EDIT)

    def resubmit(self, draft_id: str, text: str) -> Draft:
        """
        Return an edited draft to review (NEEDS_EDIT -> PENDING_REVIEW)

        Args:
            draft_id: Draft to resubmit
            text: Reviewer-edited response text

        Raises:
            InvalidTransitionError: Draft is not in NEEDS_EDIT
            ValueError: Empty text
        """
        if not text or not text.strip():
            raise ValueError("Edited draft text must not be empty")

        target = DraftStatus.PENDING_REVIEW
        with self._lock:
            draft = self._require(draft_id)
            if draft.status != DraftStatus.NEEDS_EDIT:
                raise InvalidTransitionError(draft_id, draft.status.value, target.value)

            updated = draft.model_copy(update={
                "text": text.strip(),
                "status": target,
                "updated_at": utc_now(),
            })
            self._store(updated)

        logger.info(f"Draft {draft_id} resubmitted for review ({len(updated.text)} chars)")
        return updated

    def recommend_escalation(self, draft_id: str) -> Draft:
        """
        Reviewer-initiated escalation.

        Raises:
            InvalidTransitionError: Draft already approved/rejected, or the
                ticket's analysis is not an escalating type
        """
        with self._lock:
            draft = self._require(draft_id)
            target = DraftStatus.ESCALATION_RECOMMENDED

            if draft.status in TERMINAL_DECISIONS:
                raise InvalidTransitionError(
                    draft_id, draft.status.value, target.value,
                    reason="human decision is final"
                )

            analysis = self.ticket_store.get_analysis(draft.ticket_id)
            if analysis is None or analysis.escalation_type not in ESCALATING_TYPES:
                raise InvalidTransitionError(
                    draft_id, draft.status.value, target.value,
                    reason="ticket analysis is not DEV, TWILIO or BUG"
                )

            if draft.status == target:
                return draft

            updated = draft.model_copy(update={"status": target, "updated_at": utc_now()})
            self._store(updated)

        logger.info(f"Draft {draft_id} (ticket {draft.ticket_id}): {draft.status.value} -> {target.value}")
        return updated

    def escalated_draft(self, ticket_id: int) -> Optional[Draft]:
        """A ticket's draft currently in ESCALATION_RECOMMENDED, if any"""
        for draft in self.drafts_for_ticket(ticket_id):
            if draft.status == DraftStatus.ESCALATION_RECOMMENDED:
                return draft
        return None

    # ------------------------------------------------------------------
    # Casebook
    # ------------------------------------------------------------------
    def promote_to_casebook(self, draft_id: str) -> PromotionResult:
        """
        Approve a draft (if needed) and save it as a reusable casebook entry.

        Promotion always forces APPROVED, overriding an earlier rejection.
        Promoting an already promoted draft returns the existing entry.
        """
        with self._lock:
            draft = self._require(draft_id)

            existing_id = self._casebook_by_draft.get(draft_id)
            if existing_id is not None:
                return PromotionResult(draft=draft, entry=self._casebook[existing_id], created=False)

            ticket = self.ticket_store.by_id(draft.ticket_id)
            if ticket is None:
                raise TicketNotFoundError(draft.ticket_id)

            approved = draft
            if draft.status != DraftStatus.APPROVED:
                approved = draft.model_copy(update={"status": DraftStatus.APPROVED, "updated_at": utc_now()})

            entry = CasebookEntry(
                ticket_id=ticket.id,
                draft_id=draft.id,
                subject=ticket.subject,
                approved_response_text=approved.text,
                keywords=frozenset(subject_keywords(ticket.subject)),
            )

            self._store(approved)
            self._casebook[entry.id] = entry
            self._casebook_by_draft[draft.id] = entry.id

        logger.info(
            f"Draft {draft_id} promoted to casebook entry {entry.id} "
            f"({draft.status.value} -> {DraftStatus.APPROVED.value}, {len(entry.keywords)} keywords)"
        )
        return PromotionResult(draft=approved, entry=entry, created=True)

    def casebook(self) -> List[CasebookEntry]:
        """Similarity corpus, newest first"""
        with self._lock:
            entries = list(self._casebook.values())
        return sorted(entries, key=lambda e: e.created_at, reverse=True)

    def casebook_entry_for_draft(self, draft_id: str) -> Optional[CasebookEntry]:
        with self._lock:
            entry_id = self._casebook_by_draft.get(draft_id)
            return self._casebook.get(entry_id) if entry_id else None

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------
    def delete_draft(self, draft_id: str) -> DeletionResult:
        """Delete a draft from any state, together with its casebook entry"""
        with self._lock:
            draft = self._require(draft_id)

            entry = None
            entry_id = self._casebook_by_draft.pop(draft_id, None)
            if entry_id is not None:
                entry = self._casebook.pop(entry_id, None)

            del self._drafts[draft_id]
            ticket_drafts = self._drafts_by_ticket.get(draft.ticket_id, [])
            if draft_id in ticket_drafts:
                ticket_drafts.remove(draft_id)
            if not ticket_drafts:
                self._drafts_by_ticket.pop(draft.ticket_id, None)

        logger.info(
            f"Draft {draft_id} deleted"
            + (f" with casebook entry {entry.id}" if entry else "")
        )
        return DeletionResult(draft=draft, casebook_entry=entry)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get(self, draft_id: str) -> Optional[Draft]:
        with self._lock:
            return self._drafts.get(draft_id)

    def drafts_for_ticket(self, ticket_id: int) -> List[Draft]:
        with self._lock:
            return [self._drafts[d] for d in self._drafts_by_ticket.get(ticket_id, [])]

    def draft_for_ticket(self, ticket_id: int) -> Optional[Draft]:
        """Latest draft for a ticket"""
        drafts = self.drafts_for_ticket(ticket_id)
        return drafts[-1] if drafts else None

    def has_draft(self, ticket_id: int) -> bool:
        with self._lock:
            return bool(self._drafts_by_ticket.get(ticket_id))

    def by_status(self, status: Optional[DraftStatus] = None) -> List[Draft]:
        """Drafts (optionally filtered by status), newest first"""
        with self._lock:
            drafts = list(self._drafts.values())
        if status is not None:
            drafts = [d for d in drafts if d.status == status]
        return sorted(drafts, key=lambda d: d.created_at, reverse=True)

    def stats(self) -> Dict[str, int]:
        """Draft counts by status plus casebook size"""
        with self._lock:
            counts = Counter(d.status.value for d in self._drafts.values())
            casebook_size = len(self._casebook)
        result = {status.value: counts.get(status.value, 0) for status in DraftStatus}
        result["casebook"] = casebook_size
        return result
