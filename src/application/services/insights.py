"""
application.services.insights - Insights, patterns and the doctor summary.

Thin async layer over the pure analysis functions: fetch the entries
from the log store, hand them to the aggregator, return DTOs.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional, Sequence

from application.analysis.aggregation import DayGroup, group_by_day, summarize, to_series
from application.analysis.conditions import onboarding_defaults
from application.analysis.doctor_summary import format_doctor_summary
from application.analysis.patterns import compute_patterns, generate_contextual_suggestions
from application.dto import InsightsReport
from domain.entities import PainLogEntry
from domain.models import ConditionDefaults, DateRange, UserPatterns
from domain.ports import LogStore

logger = logging.getLogger(__name__)


class InsightsService:
    """Range-scoped summaries and history-wide patterns for one user."""

    def __init__(
        self,
        log_store: LogStore,
        tz: Optional[tzinfo] = None,
        app_name: str = "Lila",
        history_days: int = 90,
    ):
        self._log_store = log_store
        self._tz = tz
        self._app_name = app_name
        self._history_days = history_days

    @property
    def tz(self) -> Optional[tzinfo]:
        return self._tz

    def build_report(
        self, entries: Sequence[PainLogEntry], date_range: DateRange,
    ) -> InsightsReport:
        return InsightsReport(
            range=date_range,
            entries=list(entries),
            summary=summarize(entries, date_range, self._tz),
            series=to_series(entries, date_range, self._tz),
        )

    async def fetch(self, user_id: str, date_range: DateRange) -> list[PainLogEntry]:
        return await self._log_store.fetch_range(user_id, date_range.start, date_range.end)

    async def report(self, user_id: str, date_range: DateRange) -> InsightsReport:
        entries = await self.fetch(user_id, date_range)
        logger.debug(
            "Insights for user %s: %d entries between %s and %s",
            user_id, len(entries), date_range.start, date_range.end,
        )
        return self.build_report(entries, date_range)

    async def day_groups(self, user_id: str, date_range: DateRange) -> list[DayGroup]:
        return group_by_day(await self.fetch(user_id, date_range), self._tz)

    async def doctor_summary(self, user_id: str, date_range: DateRange) -> str:
        report = await self.report(user_id, date_range)
        return format_doctor_summary(report.summary, self._tz, self._app_name)

    # ------------------------------------------------------------------
    # Patterns
    # ------------------------------------------------------------------

    async def history(self, user_id: str, now: Optional[datetime] = None) -> list[PainLogEntry]:
        end = now or datetime.now(timezone.utc)
        return await self._log_store.fetch_range(
            user_id, end - timedelta(days=self._history_days), end + timedelta(microseconds=1),
        )

    async def patterns(self, user_id: str, now: Optional[datetime] = None) -> UserPatterns:
        return compute_patterns(await self.history(user_id, now), self._tz)

    async def suggestions(
        self,
        user_id: str,
        message: str,
        conversation_context: Sequence[str] = (),
        now: Optional[datetime] = None,
    ) -> list[str]:
        history = await self.history(user_id, now)
        return generate_contextual_suggestions(
            message, history, conversation_context, now=now, tz=self._tz,
        )

    async def onboarding_defaults(self, user_id: str, diagnosis: str) -> ConditionDefaults:
        return onboarding_defaults(diagnosis, await self.patterns(user_id))
