"""Unit tests for TicketStore"""
from triage_desk.models.schemas import AnalysisResult, EscalationType, Priority, TicketStatus
from triage_desk.services.ticket_store import TicketStore

from conftest import make_ticket


class TestIngest:
    def test_new_tickets_are_added(self):
        store = TicketStore()

        report = store.ingest([make_ticket(1), make_ticket(2)])

        assert (report.added, report.updated, report.unchanged) == (2, 0, 0)
        assert len(store) == 2

    def test_duplicates_in_one_batch_collapse(self):
        store = TicketStore()

        report = store.ingest([
            make_ticket(1, priority=Priority.LOW),
            make_ticket(1, priority=Priority.HIGH),
        ])

        assert report.added == 1
        assert len(store) == 1
        assert store.by_id(1).priority == Priority.HIGH

    def test_reingest_unchanged_keeps_single_copy(self):
        store = TicketStore()
        store.ingest([make_ticket(7)])

        report = store.ingest([make_ticket(7)])

        assert (report.added, report.updated, report.unchanged) == (0, 0, 1)
        assert len(store.search(lambda t: t.id == 7)) == 1

    def test_reingest_only_updates_status_and_priority(self):
        store = TicketStore()
        store.ingest([make_ticket(7, subject="Original subject")])

        report = store.ingest([
            make_ticket(
                7,
                subject="Edited subject",
                status=TicketStatus.PENDING,
                priority=Priority.URGENT,
            )
        ])

        ticket = store.by_id(7)
        assert report.updated == 1
        assert ticket.status == TicketStatus.PENDING
        assert ticket.priority == Priority.URGENT
        assert ticket.subject == "Original subject"


class TestQueries:
    def test_search_orders_by_priority_status_then_newest(self):
        store = TicketStore()
        store.ingest([
            make_ticket(1, priority=Priority.LOW, minutes=50),
            make_ticket(2, priority=Priority.URGENT, status=TicketStatus.PENDING, minutes=10),
            make_ticket(3, priority=Priority.URGENT, status=TicketStatus.OPEN, minutes=0),
            make_ticket(4, priority=Priority.URGENT, status=TicketStatus.OPEN, minutes=30),
        ])

        assert [t.id for t in store.all()] == [4, 3, 2, 1]

    def test_by_status(self):
        store = TicketStore()
        store.ingest([
            make_ticket(1, status=TicketStatus.OPEN),
            make_ticket(2, status=TicketStatus.CLOSED),
        ])

        assert [t.id for t in store.by_status(TicketStatus.CLOSED)] == [2]

    def test_unknown_ticket_is_none(self):
        assert TicketStore().by_id(99) is None


class TestAnalyses:
    def test_untriaged_ticket_has_no_analysis(self):
        store = TicketStore()
        store.ingest([make_ticket(1)])

        assert store.get_analysis(1) is None
        assert [t.id for t in store.unanalyzed()] == [1]

    def test_latest_analysis_wins(self):
        store = TicketStore()
        store.ingest([make_ticket(1), make_ticket(2)])

        store.set_analysis(AnalysisResult(
            ticket_id=1, escalation_type=EscalationType.SUPPORT, urgency_score=2, summary="first"
        ))
        store.set_analysis(AnalysisResult(
            ticket_id=1, escalation_type=EscalationType.BUG, urgency_score=8, summary="second"
        ))

        assert store.get_analysis(1).summary == "second"
        assert [t.id for t in store.unanalyzed()] == [2]
