"""Tests for the per-ticket TriagePipeline"""
from unittest.mock import MagicMock

import pytest

from triage_desk.container import build_container
from triage_desk.exceptions import (
    InvalidTransitionError,
    MalformedResponseError,
    TicketNotFoundError,
)
from triage_desk.models.schemas import DraftStatus, EscalationType
from triage_desk.repositories.sync_repository import SyncRepository

from conftest import make_ticket


@pytest.fixture
def mock_sync(container):
    sync = MagicMock(spec=SyncRepository)
    container.pipeline.sync = sync
    return sync


class TestProcessTicket:
    @pytest.mark.asyncio
    async def test_twilio_ticket_classified_and_escalated(self, container, text_service):
        text_service.escalations["A2P campaign"] = "TWILIO"
        text_service.urgency = 8
        await container.pipeline.ingest([make_ticket(501, subject="A2P campaign suspended by carrier")])

        draft = await container.pipeline.process_ticket(501)

        analysis = container.store.get_analysis(501)
        assert analysis.escalation_type == EscalationType.TWILIO
        assert analysis.urgency_score == 8
        assert draft.status == DraftStatus.ESCALATION_RECOMMENDED
        assert draft.qa_result.score == 92
        assert "HighLevel & Twilio/A2P Specialist" in text_service.generate_prompts[0]

    @pytest.mark.asyncio
    async def test_existing_analysis_is_reused(self, container, text_service):
        await container.pipeline.ingest([make_ticket(1)])
        await container.pipeline.analyze(container.store.by_id(1))

        await container.pipeline.process_ticket(1)

        assert len(text_service.classification_prompts) == 1

    @pytest.mark.asyncio
    async def test_unknown_ticket(self, container):
        with pytest.raises(TicketNotFoundError):
            await container.pipeline.process_ticket(404)

    @pytest.mark.asyncio
    async def test_failed_classification_creates_no_analysis(self, container, text_service):
        text_service.malformed_markers.add("garbled")
        await container.pipeline.ingest([make_ticket(3, subject="garbled text")])

        with pytest.raises(MalformedResponseError):
            await container.pipeline.process_ticket(3)

        assert container.store.get_analysis(3) is None
        assert container.engine.draft_for_ticket(3) is None


class TestQA:
    @pytest.mark.asyncio
    async def test_qa_failure_stores_draft_without_qa(self, container, text_service):
        text_service.qa_error = MalformedResponseError("QA output unparseable")
        await container.pipeline.ingest([make_ticket(1)])

        draft = await container.pipeline.process_ticket(1)

        assert draft.qa_result is None
        assert draft.status == DraftStatus.PENDING_REVIEW

    @pytest.mark.asyncio
    async def test_failing_qa_score_does_not_change_status(self, container, text_service):
        text_service.qa_payload = {"overall": "FAIL", "score": 10, "fixes": ["a", "b", "c"]}
        await container.pipeline.ingest([make_ticket(1)])

        draft = await container.pipeline.process_ticket(1)

        assert draft.qa_result.overall.value == "FAIL"
        assert draft.status == DraftStatus.PENDING_REVIEW

    @pytest.mark.asyncio
    async def test_qa_disabled(self, settings, text_service):
        container = build_container(settings.model_copy(update={"qa_enabled": False}), text_service=text_service)
        await container.pipeline.ingest([make_ticket(1)])

        draft = await container.pipeline.process_ticket(1)

        assert draft.qa_result is None
        assert text_service.qa_prompts == []


class TestCasebookContext:
    @pytest.mark.asyncio
    async def test_promoted_response_feeds_next_prompt(self, container, text_service):
        await container.pipeline.ingest([
            make_ticket(1, subject="Calendar booking widget broken"),
            make_ticket(2, subject="Booking widget shows wrong calendar"),
        ])
        first = await container.pipeline.process_ticket(1)
        await container.pipeline.promote_to_casebook(first.id)

        await container.pipeline.process_ticket(2)

        assert "HUMAN-APPROVED CASEBOOK RESPONSES" in text_service.generate_prompts[1]
        assert "Calendar booking widget broken" in text_service.generate_prompts[1]

    @pytest.mark.asyncio
    async def test_draft_records_precedents_used(self, container):
        await container.pipeline.ingest([
            make_ticket(1, subject="Calendar booking widget broken"),
            make_ticket(2, subject="Booking widget shows wrong calendar"),
        ])
        first = await container.pipeline.process_ticket(1)
        promotion = await container.pipeline.promote_to_casebook(first.id)

        second = await container.pipeline.process_ticket(2)

        assert first.casebook_entries_used == []
        assert second.casebook_entries_used == [promotion.entry.id]


class TestReviewerActions:
    @pytest.mark.asyncio
    async def test_transitions_are_persisted(self, container, mock_sync):
        await container.pipeline.ingest([make_ticket(1)])
        draft = await container.pipeline.process_ticket(1)

        approved = await container.pipeline.approve(draft.id)

        mock_sync.sync_draft_async.assert_called_with(approved)

    @pytest.mark.asyncio
    async def test_promote_and_delete_persist_casebook(self, container, mock_sync):
        await container.pipeline.ingest([make_ticket(1)])
        draft = await container.pipeline.process_ticket(1)
        promotion = await container.pipeline.promote_to_casebook(draft.id)

        mock_sync.sync_casebook_entry_async.assert_called_once_with(promotion.entry)

        await container.pipeline.delete_draft(draft.id)

        mock_sync.delete_casebook_entry_async.assert_called_once_with(promotion.entry.id)
        mock_sync.delete_draft_async.assert_called_once_with(draft.id)


class TestReanalysis:
    @pytest.mark.asyncio
    async def test_escalated_draft_blocks_reanalysis(self, container, text_service):
        text_service.escalations["Workflow"] = "DEV"
        await container.pipeline.ingest([make_ticket(1, subject="Workflow trigger not firing")])
        draft = await container.pipeline.process_ticket(1)
        assert draft.status == DraftStatus.ESCALATION_RECOMMENDED
        text_service.escalations.clear()

        with pytest.raises(InvalidTransitionError):
            await container.pipeline.analyze(container.store.by_id(1))

        assert container.store.get_analysis(1).escalation_type == EscalationType.DEV
        assert len(text_service.classification_prompts) == 1

    @pytest.mark.asyncio
    async def test_reanalysis_allowed_once_escalation_is_decided(self, container, text_service):
        text_service.escalations["Workflow"] = "DEV"
        await container.pipeline.ingest([make_ticket(1, subject="Workflow trigger not firing")])
        draft = await container.pipeline.process_ticket(1)
        await container.pipeline.approve(draft.id)
        text_service.escalations.clear()

        analysis = await container.pipeline.analyze(container.store.by_id(1))

        assert analysis.escalation_type == EscalationType.SUPPORT
        assert container.engine.get(draft.id).status == DraftStatus.APPROVED
