"""
Application container

Builds the owned stores and services once at startup. The FastAPI app keeps
the container on `app.state`; nothing here is a module-level singleton.
"""
from dataclasses import dataclass
from typing import Optional

from triage_desk.agents.registry import AgentRegistry
from triage_desk.agents.router import AgentRouter
from triage_desk.config import Settings, get_settings
from triage_desk.models.schemas import IngestReport, TicketFilter, TicketStatus
from triage_desk.repositories.sync_repository import SyncRepository
from triage_desk.services.classifier import ClassifierAdapter
from triage_desk.services.draft_generator import DraftGenerator
from triage_desk.services.draft_workflow import DraftWorkflowEngine
from triage_desk.services.freshdesk import FreshdeskClient
from triage_desk.services.llm_service import TextGenerationService, create_text_service
from triage_desk.services.pipeline import TriagePipeline
from triage_desk.services.qa_evaluator import QAEvaluator
from triage_desk.services.scheduler import BatchScheduler
from triage_desk.services.similarity import SimilarityRetriever
from triage_desk.services.ticket_store import TicketStore
from triage_desk.utils.logger import get_logger

logger = get_logger(__name__)

# Statuses refreshed before a scheduled batch
ACTIVE_STATUSES = [TicketStatus.OPEN, TicketStatus.PENDING]


@dataclass
class Container:
    settings: Settings
    store: TicketStore
    engine: DraftWorkflowEngine
    router: AgentRouter
    sync: SyncRepository
    pipeline: TriagePipeline
    scheduler: BatchScheduler
    freshdesk: Optional[FreshdeskClient] = None

    async def refresh_tickets(self, ticket_filter: Optional[TicketFilter] = None) -> IngestReport:
        """Pull tickets from Freshdesk into the store"""
        if self.freshdesk is None:
            logger.info("Freshdesk not configured, skipping ticket refresh")
            return IngestReport()

        tickets = await self.freshdesk.fetch_normalized_tickets(
            ticket_filter or TicketFilter(statuses=ACTIVE_STATUSES)
        )
        return await self.pipeline.ingest(tickets)


def build_container(
    settings: Optional[Settings] = None,
    text_service: Optional[TextGenerationService] = None,
    supabase_client=None,
    freshdesk: Optional[FreshdeskClient] = None
) -> Container:
    """
    Wire every component

    Args:
        settings: Application settings (defaults to cached settings)
        text_service: Generative capability (defaults to the configured provider)
        supabase_client: Pre-built Supabase client
        freshdesk: Pre-built Freshdesk client

    Returns:
        Container
    """
    settings = settings or get_settings()
    text_service = text_service or create_text_service(settings)

    if freshdesk is None and settings.freshdesk_domain and settings.freshdesk_api_key:
        freshdesk = FreshdeskClient(settings)

    store = TicketStore()
    engine = DraftWorkflowEngine(store)
    router = AgentRouter(AgentRegistry())
    sync = SyncRepository(supabase_client, settings)

    pipeline = TriagePipeline(
        store=store,
        engine=engine,
        classifier=ClassifierAdapter(text_service),
        router=router,
        retriever=SimilarityRetriever(settings.similar_limit),
        generator=DraftGenerator(text_service),
        qa_evaluator=QAEvaluator(text_service),
        sync=sync,
        settings=settings,
    )

    container = Container(
        settings=settings,
        store=store,
        engine=engine,
        router=router,
        sync=sync,
        pipeline=pipeline,
        scheduler=BatchScheduler(pipeline, sync, settings),
        freshdesk=freshdesk,
    )
    container.scheduler.refresh = container.refresh_tickets
    return container
