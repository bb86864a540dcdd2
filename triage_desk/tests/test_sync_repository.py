"""Unit tests for SyncRepository"""
from unittest.mock import MagicMock

import pytest

from triage_desk.models.schemas import (
    AnalysisResult,
    CasebookEntry,
    Draft,
    EscalationType,
    QAResult,
    ScheduleRun,
)
from triage_desk.repositories.sync_repository import SyncRepository

from conftest import make_ticket


@pytest.fixture
def mock_supabase():
    """Mocked Supabase client"""
    client = MagicMock()

    # Table chainable methods
    client.table.return_value = client
    client.insert.return_value = client
    client.upsert.return_value = client
    client.delete.return_value = client
    client.eq.return_value = client

    client.execute.return_value = MagicMock(data=[], count=0)
    return client


@pytest.fixture
def repo(mock_supabase, settings):
    return SyncRepository(supabase_client=mock_supabase, settings=settings)


class TestDisabled:
    def test_no_configuration_means_no_op(self, settings):
        repo = SyncRepository(settings=settings)

        assert not repo.enabled
        assert repo.sync_tickets([make_ticket(1)]) is False


class TestWrites:
    def test_sync_tickets_upserts_rows(self, repo, mock_supabase):
        ticket = make_ticket(11)
        ticket.tags.update({"vip", "a2p"})

        assert repo.sync_tickets([ticket]) is True

        mock_supabase.table.assert_called_with("tickets")
        rows = mock_supabase.upsert.call_args[0][0]
        assert rows[0]["id"] == 11
        assert rows[0]["requester_email"] == "dana@example.com"
        assert rows[0]["tags"] == ["a2p", "vip"]
        assert mock_supabase.upsert.call_args[1] == {"on_conflict": "id"}

    def test_sync_analysis_upserts_by_ticket(self, repo, mock_supabase):
        analysis = AnalysisResult(
            ticket_id=3, escalation_type=EscalationType.BUG, urgency_score=6, summary="Crash"
        )

        repo.sync_analysis(analysis)

        mock_supabase.table.assert_called_with("ticket_analyses")
        row = mock_supabase.upsert.call_args[0][0]
        assert row["escalation_type"] == "BUG"
        assert mock_supabase.upsert.call_args[1] == {"on_conflict": "ticket_id"}

    def test_sync_draft_serializes_qa(self, repo, mock_supabase):
        qa = QAResult.model_validate({
            "overall": "PASS",
            "score": 80,
            "criteria": {"proper_tone": {"pass": True}},
        })
        draft = Draft(ticket_id=3, text="Hello", qa_result=qa)

        repo.sync_draft(draft)

        row = mock_supabase.upsert.call_args[0][0]
        assert row["status"] == "PENDING_REVIEW"
        assert row["qa_passed"] is True
        assert row["qa_result"]["criteria"]["proper_tone"]["pass"] is True

    def test_delete_casebook_entry(self, repo, mock_supabase):
        repo.delete_casebook_entry("entry-1")

        mock_supabase.table.assert_called_with("casebook")
        mock_supabase.delete.assert_called_once()
        mock_supabase.eq.assert_called_with("id", "entry-1")

    def test_casebook_keywords_sorted(self, repo, mock_supabase):
        entry = CasebookEntry(
            ticket_id=1,
            draft_id="d1",
            subject="Porting number delay",
            approved_response_text="Reply",
            keywords=frozenset({"porting", "number", "delay"}),
        )

        repo.sync_casebook_entry(entry)

        assert mock_supabase.upsert.call_args[0][0]["keywords"] == ["delay", "number", "porting"]

    @pytest.mark.asyncio
    async def test_append_schedule_run_async(self, repo, mock_supabase):
        run = ScheduleRun(tickets_processed=2, errors=["Ticket 4: failed"])

        assert await repo.append_schedule_run_async(run) is True

        mock_supabase.table.assert_called_with("schedule_runs")
        assert mock_supabase.insert.call_args[0][0]["errors"] == ["Ticket 4: failed"]


class TestFailures:
    def test_storage_failure_is_logged_and_swallowed(self, repo, mock_supabase):
        mock_supabase.execute.side_effect = ConnectionError("supabase down")

        assert repo.sync_draft(Draft(ticket_id=1, text="Hi")) is False
        assert repo.delete_draft("x") is False

    @pytest.mark.asyncio
    async def test_async_failure_does_not_raise(self, repo, mock_supabase):
        mock_supabase.execute.side_effect = RuntimeError("timeout")

        assert await repo.sync_tickets_async([make_ticket(1)]) is False
