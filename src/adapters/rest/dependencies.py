"""
Shared FastAPI dependencies.

- get_factory(): returns the initialized ServiceFactory (set at startup).
- get_current_user(): the caller's user id from the X-User-Id header.
- get_date_range(): a DateRange from ?preset=... or ?start=...&end=...
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, Header, HTTPException, Query, status

from factory import ServiceFactory
from domain.models import DateRange, DateRangePreset

# Module-level reference set by app lifespan
_factory: ServiceFactory | None = None


def set_factory(factory: ServiceFactory) -> None:
    global _factory
    _factory = factory


def get_factory() -> ServiceFactory:
    if _factory is None:
        raise RuntimeError("ServiceFactory not initialized.")
    return _factory


@dataclass
class CurrentUser:
    """Identified by the host application. Passed to route handlers."""
    user_id: str


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
) -> CurrentUser:
    """Return CurrentUser from the X-User-Id header. Raises 401 if absent."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header.",
        )
    return CurrentUser(user_id=x_user_id.strip())


async def get_date_range(
    preset: Optional[str] = Query(default=None, description="today, last7, last30, last60, last90"),
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
    factory: ServiceFactory = Depends(get_factory),
) -> DateRange:
    """Resolve the requested range; explicit bounds win over a preset.

    With neither given the range defaults to the last 7 days.
    """
    if start is not None or end is not None:
        if start is None or end is None:
            raise HTTPException(status_code=422, detail="Both start and end are required.")
        return DateRange.custom(start, end)

    try:
        chosen = DateRangePreset(preset or DateRangePreset.LAST_7.value)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown range preset: {preset}")
    if chosen is DateRangePreset.CUSTOM:
        raise HTTPException(status_code=422, detail="Custom ranges need start and end.")
    return DateRange.from_preset(chosen, datetime.now(timezone.utc), factory.config.tzinfo)
