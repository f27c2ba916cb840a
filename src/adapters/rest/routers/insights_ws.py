"""WebSocket endpoint that keeps an insights view live."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from adapters.rest.dependencies import get_factory
from adapters.rest.routers.chat_ws import parse_frame
from adapters.rest.schemas import InsightsReportOut
from application.dto import InsightsReport, LoadResult, LoadStatus
from domain.models import DateRange, DateRangePreset

router = APIRouter()
logger = logging.getLogger(__name__)


def range_from_frame(frame: dict[str, Any], tz) -> DateRange:
    """Raises ValueError or TypeError when the frame does not describe a range."""
    if frame.get("start") and frame.get("end"):
        return DateRange.custom(
            datetime.fromisoformat(frame["start"]),
            datetime.fromisoformat(frame["end"]),
        )
    preset = DateRangePreset(frame.get("preset") or DateRangePreset.LAST_7.value)
    return DateRange.from_preset(preset, datetime.now(timezone.utc), tz)


@router.websocket("/ws/insights")
async def websocket_insights(
    ws: WebSocket,
    user_id: str = Query(default=""),
    preset: str = Query(default=DateRangePreset.LAST_7.value),
):
    """
    Live insights for one user.

    Protocol:
      - Client sends: {"type": "range", "preset": "last30"}
                      {"type": "range", "start": "<iso>", "end": "<iso>"}
      - Server sends: {"type": "report", ...} whenever the selected range is
                      (re)loaded, including after any change to the user's entries;
                      {"type": "error", "detail": ...} when a load fails.
    A newer range request supersedes an older one still loading; the
    superseded result is dropped silently.
    """
    if not user_id.strip():
        await ws.close(code=4001, reason="Missing user_id")
        return

    factory = get_factory()
    tz = factory.config.tzinfo
    user_id = user_id.strip()
    await ws.accept()

    loader = factory.create_range_loader(user_id)
    outbox: asyncio.Queue = asyncio.Queue()
    loads: set[asyncio.Task] = set()

    def on_report(report: InsightsReport) -> None:
        outbox.put_nowait({"type": "report", **InsightsReportOut.from_report(report).model_dump(mode="json")})

    async def run_load(date_range: DateRange) -> None:
        result: LoadResult = await loader.load(date_range)
        if result.status is LoadStatus.FAILED:
            outbox.put_nowait({"type": "error", "detail": result.error or "Could not load range"})

    def start_load(date_range: DateRange) -> None:
        task = asyncio.create_task(run_load(date_range))
        loads.add(task)
        task.add_done_callback(loads.discard)

    async def sender() -> None:
        while True:
            await ws.send_json(await outbox.get())

    loader.add_listener(on_report)
    loader.start()
    send_task = asyncio.create_task(sender())

    try:
        try:
            start_load(range_from_frame({"preset": preset}, tz))
        except (TypeError, ValueError) as exc:
            outbox.put_nowait({"type": "error", "detail": str(exc)})

        while True:
            frame = parse_frame(await ws.receive_text())
            if frame.get("type") != "range":
                outbox.put_nowait({"type": "error", "detail": "Expected a range frame"})
                continue
            try:
                start_load(range_from_frame(frame, tz))
            except (TypeError, ValueError) as exc:
                outbox.put_nowait({"type": "error", "detail": str(exc)})
    except WebSocketDisconnect:
        pass
    except Exception as exc:
        logger.exception("Unhandled error in insights socket for user %s", user_id)
        try:
            await ws.send_json({"type": "error", "detail": f"Unexpected error: {exc}"})
        except RuntimeError:
            logger.debug("Socket already closed for user %s", user_id)
        await ws.close(code=1011)
    finally:
        await loader.close()
        for task in (*loads, send_task):
            task.cancel()
        await asyncio.gather(*loads, send_task, return_exceptions=True)
        logger.debug("Insights socket closed for user %s", user_id)
