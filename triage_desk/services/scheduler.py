"""
Batch Scheduler

Runs the triage pipeline over a ticket set, strictly one ticket at a time with
a fixed delay between external calls.

Two phases:
1. classify every ticket that has no analysis yet
2. (classify_and_draft only) draft every analyzed ticket that has no draft yet

Tickets already handled are skipped, so re-running a partially completed batch
resumes where it stopped. A per-ticket failure is recorded on the ScheduleRun
and the batch moves on.

Only one batch runs at a time. A manual run while another is in flight raises
BatchInProgressError; a scheduled trigger in that situation is skipped.
Wall-clock triggers are APScheduler cron jobs configured process-wide.
"""
import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from triage_desk.config import Settings, get_settings
from triage_desk.exceptions import BatchInProgressError, TriageError
from triage_desk.models.schemas import (
    BatchPhase,
    BatchProgress,
    ScheduleRun,
    Ticket,
    utc_now,
)
from triage_desk.repositories.sync_repository import SyncRepository
from triage_desk.services.pipeline import TriagePipeline
from triage_desk.utils.logger import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[BatchProgress], Any]

PHASE_CLASSIFY = "classifying"
PHASE_DRAFT = "drafting"


def parse_schedule_times(times: Sequence[str]) -> List[Tuple[int, int]]:
    """
    Parse "HH:MM" wall-clock times

    Raises:
        ValueError: Malformed or out-of-range time
    """
    parsed = []
    for value in times:
        try:
            hour_str, minute_str = value.split(":")
            hour, minute = int(hour_str), int(minute_str)
        except ValueError as e:
            raise ValueError(f"Invalid schedule time '{value}', expected HH:MM") from e
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ValueError(f"Invalid schedule time '{value}', expected HH:MM")
        parsed.append((hour, minute))
    return parsed


class BatchScheduler:
    """Sequential, mutually exclusive batch runner with cron triggers"""

    def __init__(
        self,
        pipeline: TriagePipeline,
        sync: SyncRepository,
        settings: Optional[Settings] = None,
        refresh: Optional[Callable[[], Awaitable[Any]]] = None
    ):
        settings = settings or get_settings()
        self.pipeline = pipeline
        self.sync = sync
        self.refresh = refresh
        self.delay_seconds = settings.batch_delay_seconds
        self.schedule_times = settings.SCHEDULE_TIMES
        self.timezone = settings.schedule_timezone
        self.enabled = settings.schedule_enabled

        self._lock = asyncio.Lock()
        self._abort_requested = False
        self._progress: Optional[BatchProgress] = None
        self._current: Optional[ScheduleRun] = None
        self._runs: List[ScheduleRun] = []
        self._scheduler: Optional[AsyncIOScheduler] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    @property
    def progress(self) -> Optional[BatchProgress]:
        return self._progress

    def runs(self, limit: Optional[int] = None) -> List[ScheduleRun]:
        """Audit log, newest first"""
        runs = list(reversed(self._runs))
        return runs[:limit] if limit else runs

    def request_abort(self) -> bool:
        """
        Ask the running batch to stop before its next ticket

        Returns:
            True if a batch was running
        """
        if not self.is_running:
            return False
        self._abort_requested = True
        logger.warning("Abort requested for running batch")
        return True

    def toggle_schedule(self, enabled: bool) -> bool:
        """Enable or disable the wall-clock triggers"""
        self.enabled = enabled
        logger.info(f"Scheduled batches {'enabled' if enabled else 'disabled'}")
        return self.enabled

    def status(self) -> Dict[str, Any]:
        next_runs = []
        if self._scheduler is not None:
            next_runs = sorted(
                job.next_run_time.isoformat()
                for job in self._scheduler.get_jobs()
                if job.next_run_time is not None
            )

        last_run = self._runs[-1] if self._runs else None
        return {
            "enabled": self.enabled,
            "running": self.is_running,
            "schedule_times": self.schedule_times,
            "timezone": self.timezone,
            "next_runs": next_runs,
            "progress": self._progress.model_dump() if self._progress else None,
            "current_run_id": self._current.id if self._current else None,
            "last_run": last_run.model_dump(mode="json") if last_run else None,
        }

    # ------------------------------------------------------------------
    # Batch execution
    # ------------------------------------------------------------------
    async def run_batch(
        self,
        tickets: Optional[Sequence[Ticket]] = None,
        phase: BatchPhase = BatchPhase.CLASSIFY_AND_DRAFT,
        trigger: str = "manual",
        on_progress: Optional[ProgressCallback] = None
    ) -> ScheduleRun:
        """
        Run one batch

        Args:
            tickets: Ticket set (defaults to every ticket in the store)
            phase: classify_only or classify_and_draft
            trigger: Audit label ("manual" / "scheduled")
            on_progress: Called with BatchProgress before each ticket

        Returns:
            The completed ScheduleRun

        Raises:
            BatchInProgressError: Another batch is running
        """
        if self._lock.locked():
            raise BatchInProgressError("A batch is already running")

        async with self._lock:
            self._abort_requested = False
            try:
                return await self._execute(tickets, phase, trigger, on_progress)
            finally:
                self._progress = None
                self._current = None
                self._abort_requested = False

    async def _report(self, progress: BatchProgress, on_progress: Optional[ProgressCallback]) -> None:
        self._progress = progress
        if on_progress is None:
            return
        result = on_progress(progress)
        if inspect.isawaitable(result):
            await result

    async def _pause(self) -> None:
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

    async def _execute(
        self,
        tickets: Optional[Sequence[Ticket]],
        phase: BatchPhase,
        trigger: str,
        on_progress: Optional[ProgressCallback]
    ) -> ScheduleRun:
        store = self.pipeline.store
        engine = self.pipeline.engine
        tickets = list(tickets) if tickets is not None else store.all()

        run = ScheduleRun(trigger=trigger, phase=phase)
        self._current = run
        processed: Set[int] = set()
        # External calls made so far; the fixed delay separates consecutive ones
        calls = 0

        logger.info(f"Batch {run.id} started ({trigger}, {phase.value}, {len(tickets)} tickets)")

        # Phase 1: classification
        to_classify = [t for t in tickets if store.get_analysis(t.id) is None]
        for index, ticket in enumerate(to_classify):
            if self._abort_requested:
                run.aborted = True
                break

            progress = BatchProgress(current_index=index + 1, total=len(to_classify), phase_label=PHASE_CLASSIFY)
            await self._report(progress, on_progress)
            if calls:
                await self._pause()
            calls += 1
            try:
                await self.pipeline.analyze(ticket)
                processed.add(ticket.id)
            except TriageError as e:
                run.errors.append(f"Ticket {ticket.id}: classification failed: {e}")
                logger.error(f"Batch {run.id}: classification failed for ticket {ticket.id}: {e}")
            except Exception as e:
                run.errors.append(f"Ticket {ticket.id}: classification failed: {type(e).__name__}: {e}")
                logger.exception(f"Batch {run.id}: unexpected error classifying ticket {ticket.id}")

        # Phase 2: drafting
        if phase == BatchPhase.CLASSIFY_AND_DRAFT and not run.aborted:
            to_draft = [
                t for t in tickets
                if not engine.has_draft(t.id) and store.get_analysis(t.id) is not None
            ]
            for index, ticket in enumerate(to_draft):
                if self._abort_requested:
                    run.aborted = True
                    break

                progress = BatchProgress(current_index=index + 1, total=len(to_draft), phase_label=PHASE_DRAFT)
                await self._report(progress, on_progress)
                # A draft may have been created outside the batch since the list was built
                if engine.has_draft(ticket.id):
                    logger.info(f"Batch {run.id}: ticket {ticket.id} already has a draft, skipping")
                    continue
                if calls:
                    await self._pause()
                calls += 1
                try:
                    await self.pipeline.draft_ticket(ticket, store.get_analysis(ticket.id))
                    run.drafts_generated += 1
                    processed.add(ticket.id)
                except TriageError as e:
                    run.errors.append(f"Ticket {ticket.id}: draft generation failed: {e}")
                    logger.error(f"Batch {run.id}: draft generation failed for ticket {ticket.id}: {e}")
                except Exception as e:
                    run.errors.append(f"Ticket {ticket.id}: draft generation failed: {type(e).__name__}: {e}")
                    logger.exception(f"Batch {run.id}: unexpected error drafting ticket {ticket.id}")

        run.tickets_processed = len(processed)
        run.finished_at = utc_now()
        self._runs.append(run)
        await self.sync.append_schedule_run_async(run)

        logger.info(
            f"Batch {run.id} finished: processed={run.tickets_processed}, "
            f"drafts={run.drafts_generated}, errors={len(run.errors)}, aborted={run.aborted}"
        )
        return run

    # ------------------------------------------------------------------
    # Wall-clock triggers
    # ------------------------------------------------------------------
    async def _scheduled_run(self) -> Optional[ScheduleRun]:
        if not self.enabled:
            logger.info("Scheduled batch skipped: schedule disabled")
            return None
        if self.is_running:
            logger.warning("Scheduled batch skipped: a batch is already running")
            return None

        if self.refresh is not None:
            try:
                await self.refresh()
            except TriageError as e:
                logger.error(f"Ticket refresh before scheduled batch failed, using current snapshot: {e}")

        try:
            return await self.run_batch(trigger="scheduled")
        except BatchInProgressError:
            logger.warning("Scheduled batch skipped: a batch is already running")
            return None

    def start(self) -> None:
        """Register one cron job per configured time and start APScheduler"""
        if self._scheduler is not None:
            logger.warning("Batch scheduler already started")
            return

        times = parse_schedule_times(self.schedule_times)
        self._scheduler = AsyncIOScheduler(timezone=self.timezone)

        for hour, minute in times:
            self._scheduler.add_job(
                self._scheduled_run,
                "cron",
                hour=hour,
                minute=minute,
                id=f"triage_batch_{hour:02d}{minute:02d}",
                name=f"Triage batch {hour:02d}:{minute:02d}",
                misfire_grace_time=300,
                max_instances=1,
                replace_existing=True
            )

        self._scheduler.start()
        logger.info(
            f"Batch scheduler started: {', '.join(self.schedule_times)} ({self.timezone}), "
            f"enabled={self.enabled}"
        )

    def stop(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Batch scheduler stopped")
