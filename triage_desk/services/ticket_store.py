"""
Ticket Store

In-memory snapshot of normalized helpdesk tickets and their latest analyses.

The helpdesk source is paged and may return duplicated or stale rows, so every
ingest deduplicates by ticket id and merges by identity. Only status and
priority are overwritten on re-fetch.
"""
import threading
from typing import Callable, Dict, Iterable, List, Optional

from triage_desk.models.schemas import (
    AnalysisResult,
    IngestReport,
    Ticket,
    TicketStatus,
)
from triage_desk.utils.logger import get_logger

logger = get_logger(__name__)


class TicketStore:
    """Owned, lock-guarded ticket snapshot"""

    def __init__(self) -> None:
        self._tickets: Dict[int, Ticket] = {}
        self._analyses: Dict[int, AnalysisResult] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------
    def ingest(self, raw_tickets: Iterable[Ticket]) -> IngestReport:
        """
        Merge a batch of tickets into the snapshot.

        Args:
            raw_tickets: Normalized tickets, possibly containing duplicates

        Returns:
            IngestReport with added/updated/unchanged counts
        """
        deduped: Dict[int, Ticket] = {}
        for ticket in raw_tickets:
            deduped[ticket.id] = ticket  # last write wins within the batch

        report = IngestReport()

        with self._lock:
            for ticket_id, incoming in deduped.items():
                existing = self._tickets.get(ticket_id)

                if existing is None:
                    self._tickets[ticket_id] = incoming
                    report.added += 1
                    continue

                if existing.status == incoming.status and existing.priority == incoming.priority:
                    report.unchanged += 1
                    continue

                self._tickets[ticket_id] = existing.model_copy(
                    update={"status": incoming.status, "priority": incoming.priority}
                )
                report.updated += 1

        logger.info(
            f"Ingested {len(deduped)} tickets: "
            f"added={report.added}, updated={report.updated}, unchanged={report.unchanged}"
        )
        return report

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def _ordered(self, tickets: Iterable[Ticket]) -> List[Ticket]:
        return sorted(tickets, key=lambda t: t.sort_key())

    def by_id(self, ticket_id: int) -> Optional[Ticket]:
        with self._lock:
            return self._tickets.get(ticket_id)

    def by_status(self, status: TicketStatus) -> List[Ticket]:
        return self.search(lambda t: t.status == status)

    def search(self, predicate: Callable[[Ticket], bool]) -> List[Ticket]:
        """Return tickets matching predicate in triage queue order"""
        with self._lock:
            snapshot = list(self._tickets.values())
        return self._ordered(t for t in snapshot if predicate(t))

    def all(self) -> List[Ticket]:
        return self.search(lambda t: True)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tickets)

    # ------------------------------------------------------------------
    # Analyses
    # ------------------------------------------------------------------
    def set_analysis(self, analysis: AnalysisResult) -> None:
        """Store the latest analysis for a ticket, replacing any previous one"""
        with self._lock:
            self._analyses[analysis.ticket_id] = analysis

    def get_analysis(self, ticket_id: int) -> Optional[AnalysisResult]:
        """Latest analysis, or None when the ticket has not been triaged"""
        with self._lock:
            return self._analyses.get(ticket_id)

    def unanalyzed(self) -> List[Ticket]:
        with self._lock:
            analyzed = set(self._analyses)
        return self.search(lambda t: t.id not in analyzed)
