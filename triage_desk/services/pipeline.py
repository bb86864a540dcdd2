"""
Triage Pipeline

Per-ticket orchestration shared by the batch scheduler and the HTTP surface:

    classify (if unanalyzed) -> route -> casebook similarity -> generate
    -> QA (informational) -> create draft -> persist

Reviewer actions go through here too, so every engine transition is followed
by a best-effort write-through to durable storage.
"""
from typing import Iterable, Optional

from triage_desk.agents.router import AgentRouter
from triage_desk.config import Settings, get_settings
from triage_desk.exceptions import InvalidTransitionError, TicketNotFoundError, TriageError
from triage_desk.models.schemas import (
    AnalysisResult,
    Draft,
    IngestReport,
    QAResult,
    Ticket,
)
from triage_desk.repositories.sync_repository import SyncRepository
from triage_desk.services.classifier import ClassifierAdapter
from triage_desk.services.draft_generator import DraftGenerator
from triage_desk.services.draft_workflow import (
    DeletionResult,
    DraftWorkflowEngine,
    PromotionResult,
)
from triage_desk.services.qa_evaluator import QAEvaluator
from triage_desk.services.similarity import SimilarityRetriever
from triage_desk.services.ticket_store import TicketStore
from triage_desk.utils.logger import get_logger

logger = get_logger(__name__)


class TriagePipeline:
    """Wires the store, classifier, router, generator and workflow engine together"""

    def __init__(
        self,
        store: TicketStore,
        engine: DraftWorkflowEngine,
        classifier: ClassifierAdapter,
        router: AgentRouter,
        retriever: SimilarityRetriever,
        generator: DraftGenerator,
        qa_evaluator: Optional[QAEvaluator],
        sync: SyncRepository,
        settings: Optional[Settings] = None
    ):
        settings = settings or get_settings()
        self.store = store
        self.engine = engine
        self.classifier = classifier
        self.router = router
        self.retriever = retriever
        self.generator = generator
        self.qa_evaluator = qa_evaluator if settings.qa_enabled else None
        self.sync = sync

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------
    async def ingest(self, tickets: Iterable[Ticket]) -> IngestReport:
        """Merge tickets into the store and persist the merged rows"""
        tickets = list(tickets)
        report = self.store.ingest(tickets)

        merged = [self.store.by_id(tid) for tid in {t.id for t in tickets}]
        await self.sync.sync_tickets_async([t for t in merged if t is not None])
        return report

    def require_ticket(self, ticket_id: int) -> Ticket:
        ticket = self.store.by_id(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        return ticket

    # ------------------------------------------------------------------
    # Phase 1: classification
    # ------------------------------------------------------------------
    async def analyze(self, ticket: Ticket) -> AnalysisResult:
        """
        Classify a ticket and record the analysis

        Raises:
            InvalidTransitionError: Ticket has a draft in ESCALATION_RECOMMENDED
            MalformedResponseError: Classifier output invalid twice
            TransientExternalFailure: Provider unavailable / rate limited
        """
        # An escalated draft must keep its DEV/TWILIO/BUG analysis
        escalated = self.engine.escalated_draft(ticket.id)
        if escalated is not None:
            raise InvalidTransitionError(
                escalated.id, escalated.status.value, escalated.status.value,
                reason=f"ticket {ticket.id} cannot be re-analyzed while its draft is recommended for escalation"
            )

        analysis = await self.classifier.classify(ticket)
        self.store.set_analysis(analysis)
        await self.sync.sync_analysis_async(analysis)

        logger.info(
            f"Ticket {ticket.id} analyzed: {analysis.escalation_type.value} "
            f"(urgency {analysis.urgency_score})"
        )
        return analysis

    # ------------------------------------------------------------------
    # Phase 2: drafting
    # ------------------------------------------------------------------
    async def _evaluate(self, text: str, ticket: Ticket) -> Optional[QAResult]:
        if self.qa_evaluator is None:
            return None
        try:
            return await self.qa_evaluator.evaluate(text, ticket)
        except TriageError as e:
            logger.warning(f"QA evaluation failed for ticket {ticket.id}, storing draft without QA: {e}")
            return None

    async def draft_ticket(self, ticket: Ticket, analysis: AnalysisResult) -> Draft:
        """
        Generate, evaluate and register a draft for an analyzed ticket

        Returns:
            The created Draft
        """
        agent = self.router.route_ticket(ticket, analysis)
        similar = self.retriever.find_similar(ticket, self.engine.casebook())

        text = await self.generator.generate(ticket, analysis, similar, agent)
        qa_result = await self._evaluate(text, ticket)

        draft = self.engine.create_draft(
            ticket.id, text, analysis, qa_result,
            casebook_entries_used=[m.entry.id for m in similar]
        )
        await self.sync.sync_draft_async(draft)
        return draft

    async def process_ticket(self, ticket_id: int) -> Draft:
        """Run the full pipeline for one ticket, classifying first if needed"""
        ticket = self.require_ticket(ticket_id)

        analysis = self.store.get_analysis(ticket_id)
        if analysis is None:
            analysis = await self.analyze(ticket)

        return await self.draft_ticket(ticket, analysis)

    # ------------------------------------------------------------------
    # Reviewer actions
    # ------------------------------------------------------------------
    async def approve(self, draft_id: str) -> Draft:
        draft = self.engine.approve(draft_id)
        await self.sync.sync_draft_async(draft)
        return draft

    async def reject(self, draft_id: str) -> Draft:
        draft = self.engine.reject(draft_id)
        await self.sync.sync_draft_async(draft)
        return draft

    async def request_edit(self, draft_id: str) -> Draft:
        draft = self.engine.request_edit(draft_id)
        await self.sync.sync_draft_async(draft)
        return draft

    async def resubmit(self, draft_id: str, text: str) -> Draft:
        draft = self.engine.resubmit(draft_id, text)
        await self.sync.sync_draft_async(draft)
        return draft

    async def recommend_escalation(self, draft_id: str) -> Draft:
        draft = self.engine.recommend_escalation(draft_id)
        await self.sync.sync_draft_async(draft)
        return draft

    async def promote_to_casebook(self, draft_id: str) -> PromotionResult:
        result = self.engine.promote_to_casebook(draft_id)
        if result.created:
            await self.sync.sync_draft_async(result.draft)
            await self.sync.sync_casebook_entry_async(result.entry)
        return result

    async def delete_draft(self, draft_id: str) -> DeletionResult:
        result = self.engine.delete_draft(draft_id)
        if result.casebook_entry is not None:
            await self.sync.delete_casebook_entry_async(result.casebook_entry.id)
        await self.sync.delete_draft_async(draft_id)
        return result
