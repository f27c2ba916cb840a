"""
Test Range Loader

Latest-request-wins loading of insights ranges and live refresh on
store changes.
"""

import asyncio

import pytest

from application.dto import LoadStatus
from application.services.insights import InsightsService
from application.services.range_loader import RangeLoader
from conftest import USER, at, make_entry
from domain.models import DateRange

WEEK = DateRange.custom(at(1, 0), at(8, 0))
DAY = DateRange.custom(at(5, 0), at(6, 0))


@pytest.fixture
async def loader(log_store):
    loader = RangeLoader(log_store, InsightsService(log_store), USER)
    yield loader
    await loader.close()


async def test_applies_loaded_range(loader, log_store):
    await log_store.save(make_entry(6, at(3, 9)))
    await log_store.save(make_entry(2, at(3, 9), user_id="other"))

    result = await loader.load(WEEK)

    assert result.status is LoadStatus.APPLIED
    assert loader.report is result.report
    assert [e.pain_level for e in result.report.entries] == [6]
    assert result.report.summary.entry_count == 1


async def test_newer_request_supersedes_older(loader, log_store):
    await log_store.save(make_entry(6, at(3, 9)))
    await log_store.save(make_entry(4, at(5, 9)))
    log_store.delay_for = lambda start, end: 0.2 if start == WEEK.start else 0.0

    slow = asyncio.ensure_future(loader.load(WEEK))
    await asyncio.sleep(0)
    fast = await loader.load(DAY)
    stale = await slow

    assert fast.status is LoadStatus.APPLIED
    assert stale.status is LoadStatus.SUPERSEDED
    assert loader.current_range == DAY
    assert [e.pain_level for e in loader.report.entries] == [4]


async def test_listeners_see_only_applied_reports(loader, log_store):
    seen = []
    loader.add_listener(lambda report: seen.append(report.range))
    log_store.delay_for = lambda start, end: 0.2 if start == WEEK.start else 0.0

    slow = asyncio.ensure_future(loader.load(WEEK))
    await asyncio.sleep(0)
    await loader.load(DAY)
    await slow

    assert seen == [DAY]


async def test_failed_fetch_is_reported(loader, log_store):
    log_store.fail_fetch = True
    result = await loader.load(WEEK)
    assert result.status is LoadStatus.FAILED
    assert result.error == "store offline"
    assert loader.last_error == "store offline"
    assert loader.report is None


async def test_refresh_without_range():
    loader = RangeLoader(None, None, USER)
    assert await loader.refresh() is None


async def test_live_update_reloads_current_range(loader, log_store):
    updated = asyncio.Event()
    counts = []

    def on_report(report):
        counts.append(report.summary.entry_count)
        updated.set()

    loader.start()
    await loader.load(WEEK)
    loader.add_listener(on_report)

    await log_store.save(make_entry(7, at(4, 10)))
    await asyncio.wait_for(updated.wait(), timeout=1)

    assert counts == [1]


async def test_other_users_changes_are_ignored(loader, log_store):
    calls = []
    loader.start()
    await loader.load(WEEK)
    loader.add_listener(lambda report: calls.append(report))

    await log_store.save(make_entry(7, at(4, 10), user_id="other"))
    await asyncio.sleep(0.05)

    assert calls == []


async def test_close_unsubscribes(log_store):
    loader = RangeLoader(log_store, InsightsService(log_store), USER)
    loader.start()
    assert log_store.notifier.subscriber_count == 1
    await loader.close()
    assert log_store.notifier.subscriber_count == 0
