"""
application.services.range_loader - Latest-request-wins range fetching.

The insights view asks for one date range at a time. A newer request
always supersedes an older one: the older fetch task is cancelled and,
should its result still arrive, it is dropped because its generation
token is stale. Live-change notifications from the log store re-run the
current range through the same path.

A superseded load is not an error and is never reported as one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from application.dto import InsightsReport, LoadResult, LoadStatus
from application.services.insights import InsightsService
from domain.models import ChangeEvent, DateRange
from domain.ports import LogStore, Unsubscribe

logger = logging.getLogger(__name__)

ReportListener = Callable[[InsightsReport], None]


class RangeLoader:
    """Holds the report for the currently selected range of one user."""

    def __init__(
        self,
        log_store: LogStore,
        insights: InsightsService,
        user_id: str,
        debounce: float = 0.0,
    ):
        self._log_store = log_store
        self._insights = insights
        self._user_id = user_id
        self._debounce = debounce
        self._generation = 0
        self._inflight: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()
        self._listeners: list[ReportListener] = []
        self._unsubscribe: Optional[Unsubscribe] = None
        self.current_range: Optional[DateRange] = None
        self.report: Optional[InsightsReport] = None
        self.last_error: Optional[str] = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self, date_range: DateRange) -> LoadResult:
        """Fetch *date_range* and apply it unless a newer load started meanwhile."""
        self._generation += 1
        token = self._generation
        self.current_range = date_range

        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        task = asyncio.ensure_future(self._fetch(date_range))
        self._inflight = task

        try:
            entries = await task
        except asyncio.CancelledError:
            if token != self._generation:
                return self._superseded(date_range)
            raise
        except Exception as exc:
            if token != self._generation:
                return self._superseded(date_range)
            logger.exception("Loading range %s - %s failed", date_range.start, date_range.end)
            self.last_error = str(exc)
            return LoadResult(status=LoadStatus.FAILED, range=date_range, error=str(exc))

        if token != self._generation:
            return self._superseded(date_range)

        report = self._insights.build_report(entries, date_range)
        self.report = report
        self.last_error = None
        logger.debug("Applied %d entries for user %s", len(entries), self._user_id)
        for listener in list(self._listeners):
            try:
                listener(report)
            except Exception:
                logger.exception("Insights listener failed")
        return LoadResult(status=LoadStatus.APPLIED, range=date_range, report=report)

    async def refresh(self) -> Optional[LoadResult]:
        if self.current_range is None:
            return None
        return await self.load(self.current_range)

    async def _fetch(self, date_range: DateRange):
        if self._debounce > 0:
            await asyncio.sleep(self._debounce)
        return await self._log_store.fetch_range(
            self._user_id, date_range.start, date_range.end,
        )

    def _superseded(self, date_range: DateRange) -> LoadResult:
        logger.debug("Discarded superseded load for %s - %s", date_range.start, date_range.end)
        return LoadResult(status=LoadStatus.SUPERSEDED, range=date_range)

    # ------------------------------------------------------------------
    # Live updates
    # ------------------------------------------------------------------

    def add_listener(self, listener: ReportListener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        """Re-fetch the current range whenever this user's entries change."""
        if self._unsubscribe is None:
            self._unsubscribe = self._log_store.subscribe_to_changes(self._on_change)

    def _on_change(self, event: ChangeEvent) -> None:
        if event.user_id != self._user_id or self.current_range is None:
            return
        logger.debug("Change %s on entry %s, refreshing", event.kind.value, event.entry_id)
        task = asyncio.get_running_loop().create_task(self.refresh())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        pending = [t for t in (self._inflight, *self._background) if t and not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
