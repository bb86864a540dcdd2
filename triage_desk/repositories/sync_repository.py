"""
Sync Repository

Best-effort write-through of the in-memory snapshot to Supabase tables:

- tickets            (upsert on id)
- ticket_analyses    (upsert on ticket_id, latest wins)
- drafts             (upsert on id / delete)
- casebook           (upsert on id / delete)
- schedule_runs      (insert, append-only)

Durable storage is never allowed to break triage: every failure is logged and
reported as False, and when Supabase is not configured all calls are no-ops.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, Iterable, List

from triage_desk.config import Settings, get_settings
from triage_desk.exceptions import StorageUnavailableError
from triage_desk.models.schemas import (
    AnalysisResult,
    CasebookEntry,
    Draft,
    ScheduleRun,
    Ticket,
)
from triage_desk.utils.logger import get_logger

logger = get_logger(__name__)


class SyncRepository:
    """Write-through persistence for tickets, analyses, drafts, casebook and runs."""

    TICKETS = "tickets"
    ANALYSES = "ticket_analyses"
    DRAFTS = "drafts"
    CASEBOOK = "casebook"
    SCHEDULE_RUNS = "schedule_runs"

    def __init__(self, supabase_client=None, settings: Settings | None = None) -> None:
        settings = settings or get_settings()

        if supabase_client is not None:
            self.client = supabase_client
        elif settings.SUPABASE_ENABLED:
            from supabase import create_client  # Lazy import for tests

            self.client = create_client(
                settings.supabase_url,
                settings.supabase_service_role_key or settings.supabase_key
            )
        else:
            self.client = None

        if self.enabled:
            logger.info("SyncRepository initialized (Supabase write-through enabled)")
        else:
            logger.info("SyncRepository disabled: Supabase is not configured")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    @staticmethod
    def _ticket_row(ticket: Ticket) -> Dict[str, Any]:
        data = ticket.model_dump(mode="json")
        requester = data.pop("requester") or {}
        data["requester_name"] = requester.get("name")
        data["requester_email"] = requester.get("email")
        data["tags"] = sorted(ticket.tags)
        return data

    @staticmethod
    def _analysis_row(analysis: AnalysisResult) -> Dict[str, Any]:
        return analysis.model_dump(mode="json")

    @staticmethod
    def _draft_row(draft: Draft) -> Dict[str, Any]:
        data = draft.model_dump(mode="json", by_alias=True)
        data["qa_passed"] = (
            draft.qa_result.overall.value == "PASS" if draft.qa_result else None
        )
        return data

    @staticmethod
    def _casebook_row(entry: CasebookEntry) -> Dict[str, Any]:
        data = entry.model_dump(mode="json")
        data["keywords"] = sorted(entry.keywords)
        return data

    @staticmethod
    def _run_row(run: ScheduleRun) -> Dict[str, Any]:
        return run.model_dump(mode="json")

    # ------------------------------------------------------------------
    # Best-effort execution
    # ------------------------------------------------------------------
    def _run(self, operation: str, action: Callable[[], Any]) -> bool:
        if not self.enabled:
            return False

        try:
            action()
            return True
        except Exception as exc:
            error = StorageUnavailableError(
                f"Supabase {operation} failed: {exc}",
                details={"operation": operation}
            )
            logger.error("%s", error)
            return False

    # ------------------------------------------------------------------
    # Tickets & analyses
    # ------------------------------------------------------------------
    def sync_tickets(self, tickets: Iterable[Ticket]) -> bool:
        rows: List[Dict[str, Any]] = [self._ticket_row(t) for t in tickets]
        if not rows:
            return True

        ok = self._run(
            "sync_tickets",
            lambda: self.client.table(self.TICKETS)
                .upsert(rows, on_conflict="id")
                .execute()
        )
        if ok:
            logger.info("Synced %d tickets to Supabase", len(rows))
        return ok

    async def sync_tickets_async(self, tickets: Iterable[Ticket]) -> bool:
        return await asyncio.to_thread(self.sync_tickets, list(tickets))

    def sync_analysis(self, analysis: AnalysisResult) -> bool:
        row = self._analysis_row(analysis)
        return self._run(
            "sync_analysis",
            lambda: self.client.table(self.ANALYSES)
                .upsert(row, on_conflict="ticket_id")
                .execute()
        )

    async def sync_analysis_async(self, analysis: AnalysisResult) -> bool:
        return await asyncio.to_thread(self.sync_analysis, analysis)

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------
    def sync_draft(self, draft: Draft) -> bool:
        row = self._draft_row(draft)
        return self._run(
            "sync_draft",
            lambda: self.client.table(self.DRAFTS)
                .upsert(row, on_conflict="id")
                .execute()
        )

    async def sync_draft_async(self, draft: Draft) -> bool:
        return await asyncio.to_thread(self.sync_draft, draft)

    def delete_draft(self, draft_id: str) -> bool:
        return self._run(
            "delete_draft",
            lambda: self.client.table(self.DRAFTS)
                .delete()
                .eq("id", draft_id)
                .execute()
        )

    async def delete_draft_async(self, draft_id: str) -> bool:
        return await asyncio.to_thread(self.delete_draft, draft_id)

    # ------------------------------------------------------------------
    # Casebook
    # ------------------------------------------------------------------
    def sync_casebook_entry(self, entry: CasebookEntry) -> bool:
        row = self._casebook_row(entry)
        return self._run(
            "sync_casebook_entry",
            lambda: self.client.table(self.CASEBOOK)
                .upsert(row, on_conflict="id")
                .execute()
        )

    async def sync_casebook_entry_async(self, entry: CasebookEntry) -> bool:
        return await asyncio.to_thread(self.sync_casebook_entry, entry)

    def delete_casebook_entry(self, entry_id: str) -> bool:
        return self._run(
            "delete_casebook_entry",
            lambda: self.client.table(self.CASEBOOK)
                .delete()
                .eq("id", entry_id)
                .execute()
        )

    async def delete_casebook_entry_async(self, entry_id: str) -> bool:
        return await asyncio.to_thread(self.delete_casebook_entry, entry_id)

    # ------------------------------------------------------------------
    # Schedule runs
    # ------------------------------------------------------------------
    def append_schedule_run(self, run: ScheduleRun) -> bool:
        row = self._run_row(run)
        return self._run(
            "append_schedule_run",
            lambda: self.client.table(self.SCHEDULE_RUNS)
                .insert(row)
                .execute()
        )

    async def append_schedule_run_async(self, run: ScheduleRun) -> bool:
        return await asyncio.to_thread(self.append_schedule_run, run)
