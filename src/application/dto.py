"""
application.dto - Data Transfer Objects for service input/output.

These are the structured values that services exchange with callers
(REST endpoints, WebSocket handlers, CLI commands).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from domain.entities import PainLogEntry
from domain.models import DateRange, InsightsSummary, SeriesPoint


@dataclass(frozen=True)
class EntryDraft:
    """Fields of the direct-entry form; everything but the time is optional."""
    logged_at: Optional[datetime] = None
    pain_level: Optional[int] = None
    locations: list[str] = field(default_factory=list)
    triggers: list[str] = field(default_factory=list)
    medications: list[Any] = field(default_factory=list)
    symptoms: list[str] = field(default_factory=list)
    notes: str = ""
    functional_impact: Optional[str] = None
    impact_tags: list[str] = field(default_factory=list)
    side_effects: str = ""
    pain_strategies: list[str] = field(default_factory=list)
    journal_entry: str = ""
    rx_taken: bool = False


@dataclass(frozen=True)
class InsightsReport:
    """Everything the insights page renders for one range."""
    range: DateRange
    entries: list[PainLogEntry]
    summary: InsightsSummary
    series: list[SeriesPoint]


class LoadStatus(str, Enum):
    APPLIED = "applied"
    SUPERSEDED = "superseded"
    FAILED = "failed"


@dataclass(frozen=True)
class LoadResult:
    status: LoadStatus
    range: DateRange
    report: Optional[InsightsReport] = None
    error: Optional[str] = None
