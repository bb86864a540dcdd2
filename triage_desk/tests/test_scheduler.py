"""Tests for BatchScheduler"""
from unittest.mock import AsyncMock, call, patch

import pytest

from triage_desk.exceptions import BatchInProgressError
from triage_desk.models.schemas import BatchPhase
from triage_desk.services.scheduler import parse_schedule_times

from conftest import make_ticket


async def load_tickets(container, count=10, garbled=()):
    tickets = [
        make_ticket(
            i,
            subject="garbled request" if i in garbled else f"Account question {i}",
            minutes=i,
        )
        for i in range(1, count + 1)
    ]
    await container.pipeline.ingest(tickets)
    return sorted(container.store.all(), key=lambda t: t.id)


class TestRunBatch:
    @pytest.mark.asyncio
    async def test_malformed_ticket_is_recorded_and_batch_continues(self, container, text_service):
        text_service.malformed_markers.add("garbled")
        tickets = await load_tickets(container, garbled={6})

        run = await container.scheduler.run_batch(tickets)

        assert len(run.errors) == 1
        assert run.errors[0].startswith("Ticket 6:")
        assert run.tickets_processed == 9
        assert run.drafts_generated == 9
        for ticket_id in (7, 8, 9, 10):
            assert container.store.get_analysis(ticket_id) is not None
            assert container.engine.has_draft(ticket_id)
        assert not container.engine.has_draft(6)
        # First attempt + one strict retry
        assert sum("garbled request" in p for p in text_service.classification_prompts) == 2

    @pytest.mark.asyncio
    async def test_unexpected_error_is_recorded_and_batch_continues(self, container, text_service):
        text_service.classify_errors["Account question 6"] = ConnectionResetError("connection reset by peer")
        tickets = await load_tickets(container)

        run = await container.scheduler.run_batch(tickets)

        assert len(run.errors) == 1
        assert run.errors[0].startswith("Ticket 6: classification failed: ConnectionResetError")
        assert run.tickets_processed == 9
        assert run.drafts_generated == 9
        for ticket_id in (7, 8, 9, 10):
            assert container.engine.has_draft(ticket_id)
        assert container.scheduler.runs() == [run]
        assert not container.scheduler.is_running

    @pytest.mark.asyncio
    async def test_fixed_delay_between_external_calls(self, container):
        tickets = await load_tickets(container, count=3)
        container.scheduler.delay_seconds = 0.25

        with patch("triage_desk.services.scheduler.asyncio.sleep", new_callable=AsyncMock) as sleep:
            run = await container.scheduler.run_batch(tickets)

        assert run.drafts_generated == 3
        # 3 classifications + 3 drafts, paused between each consecutive pair
        assert sleep.await_args_list == [call(0.25)] * 5

    @pytest.mark.asyncio
    async def test_draft_created_during_batch_is_not_duplicated(self, container, text_service):
        tickets = await load_tickets(container, count=2)

        async def on_progress(progress):
            if progress.phase_label == "drafting" and progress.current_index == 1:
                await container.pipeline.process_ticket(2)

        run = await container.scheduler.run_batch(tickets, on_progress=on_progress)

        assert run.drafts_generated == 1
        assert len(container.engine.drafts_for_ticket(1)) == 1
        assert len(container.engine.drafts_for_ticket(2)) == 1
        assert len(text_service.generate_prompts) == 2

    @pytest.mark.asyncio
    async def test_rerun_only_processes_remaining_tickets(self, container, text_service):
        tickets = await load_tickets(container)
        await container.scheduler.run_batch(tickets[:4])
        text_service.classification_prompts.clear()
        text_service.generate_prompts.clear()

        run = await container.scheduler.run_batch(tickets)

        assert run.tickets_processed == 6
        assert run.drafts_generated == 6
        assert run.errors == []
        assert len(text_service.classification_prompts) == 6
        assert len(text_service.generate_prompts) == 6

    @pytest.mark.asyncio
    async def test_classify_only_creates_no_drafts(self, container):
        tickets = await load_tickets(container, count=3)

        run = await container.scheduler.run_batch(tickets, BatchPhase.CLASSIFY_ONLY)

        assert run.tickets_processed == 3
        assert run.drafts_generated == 0
        assert container.engine.stats()["casebook"] == 0
        assert all(not container.engine.has_draft(t.id) for t in tickets)

    @pytest.mark.asyncio
    async def test_progress_is_reported_per_ticket(self, container):
        tickets = await load_tickets(container, count=2)
        seen = []

        run = await container.scheduler.run_batch(tickets, on_progress=seen.append)

        assert [(p.current_index, p.total, p.phase_label) for p in seen] == [
            (1, 2, "classifying"),
            (2, 2, "classifying"),
            (1, 2, "drafting"),
            (2, 2, "drafting"),
        ]
        assert container.scheduler.progress is None
        assert container.scheduler.runs() == [run]

    @pytest.mark.asyncio
    async def test_second_batch_is_rejected_while_running(self, container):
        tickets = await load_tickets(container, count=2)
        nested_errors = []

        async def on_progress(progress):
            if not nested_errors:
                try:
                    await container.scheduler.run_batch(tickets)
                except BatchInProgressError as e:
                    nested_errors.append(e)

        await container.scheduler.run_batch(tickets, on_progress=on_progress)

        assert len(nested_errors) == 1
        assert not container.scheduler.is_running

    @pytest.mark.asyncio
    async def test_abort_stops_before_next_ticket(self, container):
        tickets = await load_tickets(container, count=10)

        def on_progress(progress):
            if progress.current_index == 3:
                container.scheduler.request_abort()

        run = await container.scheduler.run_batch(tickets, on_progress=on_progress)

        assert run.aborted
        assert run.tickets_processed == 3
        assert run.drafts_generated == 0
        assert len(container.store.unanalyzed()) == 7

    def test_abort_without_running_batch(self, container):
        assert container.scheduler.request_abort() is False


class TestScheduledTriggers:
    @pytest.mark.asyncio
    async def test_disabled_schedule_skips_run(self, container):
        await load_tickets(container, count=2)

        assert await container.scheduler._scheduled_run() is None
        assert container.scheduler.runs() == []

    @pytest.mark.asyncio
    async def test_enabled_schedule_runs_store_snapshot(self, container):
        await load_tickets(container, count=2)
        container.scheduler.toggle_schedule(True)

        run = await container.scheduler._scheduled_run()

        assert run.trigger == "scheduled"
        assert run.drafts_generated == 2

    @pytest.mark.asyncio
    async def test_cron_jobs_registered_per_time(self, container):
        scheduler = container.scheduler
        scheduler.start()
        try:
            status = scheduler.status()
            assert len(status["next_runs"]) == 4
            assert status["timezone"] == "America/New_York"
            assert status["enabled"] is False
        finally:
            scheduler.stop()


class TestParseScheduleTimes:
    def test_valid(self):
        assert parse_schedule_times(["08:00", "00:30"]) == [(8, 0), (0, 30)]

    @pytest.mark.parametrize("value", ["8am", "24:00", "12:60", "12"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_schedule_times([value])
