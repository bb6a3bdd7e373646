"""
Follow-up reconciliation engine.

One tick:
1. Fetch pending follow-ups older than the grace window
2. For each one, independently:
   - contact wrote back after missed_at → resolve, no notification
   - otherwise send the reminder → resolve on success, stay pending on failure
3. Ticks never overlap (single-flight guard)

Failures are contained per follow-up. A tick that cannot even list the
pending set is logged and reported, never raised.

Known race: a reply landing between the reply check and the send is only
seen next tick, so at most one redundant reminder can go out per follow-up.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

from relay.errors import NotifierConfigError, NotifierError, StorageError
from relay.notifier import Notifier, PayloadFactory
from relay.store import FollowUp, FollowUpStore, MessageLog, Resolution, run_blocking

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineSettings:
    """Reconciliation tuning."""

    grace_window: timedelta = timedelta(seconds=60)
    notify_timeout: float = 15.0
    max_attempts: int = 10           # 0 = retry forever (still logged every time)
    max_concurrency: int = 1
    sentinel_body: Optional[str] = "__missed_call__"


@dataclass
class TickReport:
    """Outcome of one reconciliation tick."""

    selected: int = 0
    replied: int = 0       # resolved without notification
    notified: int = 0      # resolved after a delivered reminder
    failed: int = 0        # notification failed, still pending
    exhausted: int = 0     # moved to the terminal failed state
    errors: int = 0        # storage faults
    skipped: bool = False  # another tick was already running
    aborted: bool = False  # could not fetch the pending set

    def as_dict(self) -> dict:
        return {
            "selected": self.selected,
            "replied": self.replied,
            "notified": self.notified,
            "failed": self.failed,
            "exhausted": self.exhausted,
            "errors": self.errors,
            "skipped": self.skipped,
            "aborted": self.aborted,
        }


class ReconciliationEngine:
    """
    Owns the follow-up state machine.

    Constructed once at process start with explicit store, log and notifier
    references; the scheduler and the operator routes share this instance.
    """

    def __init__(
        self,
        store: FollowUpStore,
        message_log: MessageLog,
        notifier: Notifier,
        payloads: PayloadFactory,
        settings: Optional[EngineSettings] = None,
    ):
        self.store = store
        self.message_log = message_log
        self.notifier = notifier
        self.payloads = payloads
        self.settings = settings or EngineSettings()
        self._tick_lock = asyncio.Lock()
        self._notifier_misconfigured = False

    @property
    def running(self) -> bool:
        return self._tick_lock.locked()

    async def run_tick(self, stop_event: Optional[asyncio.Event] = None) -> TickReport:
        """
        Execute one reconciliation tick.

        Args:
            stop_event: When set, the tick ends after the record in progress

        Returns:
            TickReport (skipped=True if a tick was already running)
        """
        if self._tick_lock.locked():
            logger.info("Reconciliation tick already running, skipping")
            return TickReport(skipped=True)

        async with self._tick_lock:
            return await self._run(stop_event)

    async def _run(self, stop_event: Optional[asyncio.Event]) -> TickReport:
        report = TickReport()
        self._notifier_misconfigured = False

        try:
            pending = await run_blocking(self.store.list_pending, self.settings.grace_window)
        except StorageError as e:
            logger.error(f"Cannot fetch pending follow-ups, skipping tick: {e}")
            report.aborted = True
            return report

        batch = _dedupe(pending)
        report.selected = len(batch)
        if not batch:
            logger.debug("No follow-ups due")
            return report

        logger.info(f"Reconciling {len(batch)} follow-up(s)")

        if self.settings.max_concurrency <= 1:
            for followup in batch:
                if stop_event is not None and stop_event.is_set():
                    logger.info("Stop requested, ending tick early")
                    break
                await self._process(followup, report)
        else:
            semaphore = asyncio.Semaphore(self.settings.max_concurrency)

            async def worker(followup: FollowUp) -> None:
                async with semaphore:
                    if stop_event is not None and stop_event.is_set():
                        return
                    await self._process(followup, report)

            await asyncio.gather(*(worker(f) for f in batch))

        logger.info(
            f"Tick complete: {report.replied} replied, {report.notified} notified, "
            f"{report.failed} failed, {report.exhausted} exhausted, {report.errors} errors",
            extra=report.as_dict(),
        )
        return report

    async def _process(self, followup: FollowUp, report: TickReport) -> None:
        """Decide and act on one follow-up. Never raises."""
        try:
            await self._reconcile(followup, report)
        except Exception as e:
            # Unexpected backend fault: the record stays pending for the next tick
            logger.error(
                f"Unexpected error reconciling follow-up {followup.id}: {e!r}",
                exc_info=True,
            )
            report.errors += 1

    async def _reconcile(self, followup: FollowUp, report: TickReport) -> None:
        try:
            replied = await run_blocking(
                self.message_log.exists_since,
                followup.from_number,
                followup.missed_at,
                exclude_body=self.settings.sentinel_body or None,
            )
        except StorageError as e:
            logger.error(f"Reply lookup failed for follow-up {followup.id}: {e}")
            report.errors += 1
            return

        if replied:
            await self._resolve(followup, Resolution.REPLIED, report)
            return

        if self._notifier_misconfigured:
            return

        try:
            await asyncio.wait_for(
                self.notifier.send(followup.from_number, self.payloads.reminder()),
                timeout=self.settings.notify_timeout,
            )
        except NotifierConfigError as e:
            # Not the record's fault: keep attempts untouched, stop sending this tick
            self._notifier_misconfigured = True
            logger.critical(f"Notifier misconfigured, reminders suspended: {e}")
            return
        except (NotifierError, asyncio.TimeoutError) as e:
            reason = str(e) or f"timed out after {self.settings.notify_timeout}s"
            await self._record_failure(followup, reason, report)
            return

        logger.info(f"Reminder sent to {followup.from_number} (follow-up {followup.id})")
        await self._resolve(followup, Resolution.NOTIFIED, report)

    async def _resolve(self, followup: FollowUp, resolution: Resolution, report: TickReport) -> None:
        try:
            await run_blocking(self.store.mark_resolved, followup.id, resolution)
        except StorageError as e:
            logger.error(f"Could not resolve follow-up {followup.id}: {e}")
            report.errors += 1
            return

        if resolution is Resolution.REPLIED:
            logger.info(f"No reminder, {followup.from_number} already replied (follow-up {followup.id})")
            report.replied += 1
        else:
            report.notified += 1

    async def _record_failure(self, followup: FollowUp, reason: str, report: TickReport) -> None:
        report.failed += 1
        try:
            attempts = await run_blocking(self.store.record_failure, followup.id, reason)
        except StorageError as e:
            logger.error(f"Could not record failure for follow-up {followup.id}: {e}")
            report.errors += 1
            return

        logger.warning(
            f"Reminder to {followup.from_number} failed "
            f"(follow-up {followup.id}, attempt {attempts}): {reason}"
        )

        ceiling = self.settings.max_attempts
        if ceiling > 0 and attempts >= ceiling:
            try:
                await run_blocking(self.store.mark_failed, followup.id, reason)
            except StorageError as e:
                logger.error(f"Could not mark follow-up {followup.id} failed: {e}")
                report.errors += 1
                return
            logger.error(
                f"Giving up on follow-up {followup.id} for {followup.from_number} "
                f"after {attempts} attempts: {reason}"
            )
            report.exhausted += 1


def _dedupe(followups: List[FollowUp]) -> List[FollowUp]:
    seen = set()
    batch = []
    for followup in followups:
        if followup.id not in seen:
            seen.add(followup.id)
            batch.append(followup)
    return batch
