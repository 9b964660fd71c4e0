"""Tests for the detached background dispatcher."""

import asyncio
import logging

import pytest

from kling_relay.errors import NotFoundError
from kling_relay.jobs.background import BackgroundDispatcher


class Gate:
    """Async run_fn that blocks until released."""

    def __init__(self):
        self.started = []
        self.release = asyncio.Event()

    async def __call__(self, record_id: str):
        self.started.append(record_id)
        await self.release.wait()


@pytest.mark.asyncio
async def test_runs_detached_and_cleans_up():
    gate = Gate()
    dispatcher = BackgroundDispatcher(run_fn=gate)
    await dispatcher.start()

    assert await dispatcher.submit("rec1") is True
    await asyncio.sleep(0)
    assert gate.started == ["rec1"]
    assert dispatcher.is_active("rec1")
    assert dispatcher.active_count() == 1

    gate.release.set()
    await asyncio.sleep(0.01)
    assert not dispatcher.is_active("rec1")
    assert dispatcher.active_count() == 0
    await dispatcher.stop()


@pytest.mark.asyncio
async def test_second_trigger_for_same_record_refused():
    gate = Gate()
    dispatcher = BackgroundDispatcher(run_fn=gate)
    await dispatcher.start()

    assert await dispatcher.submit("rec1") is True
    assert await dispatcher.submit("rec1") is False
    assert await dispatcher.submit("rec2") is True
    await asyncio.sleep(0)
    assert sorted(gate.started) == ["rec1", "rec2"]

    gate.release.set()
    await asyncio.sleep(0.01)
    assert await dispatcher.submit("rec1") is True
    await dispatcher.stop()


@pytest.mark.asyncio
async def test_crash_is_logged_not_raised(caplog):
    async def missing(record_id):
        raise NotFoundError(f"Record {record_id} not found")

    dispatcher = BackgroundDispatcher(run_fn=missing)
    await dispatcher.start()

    with caplog.at_level(logging.ERROR, logger="kling_relay.jobs.background"):
        await dispatcher.submit("recGone")
        await asyncio.sleep(0.01)

    assert "recGone" in caplog.text
    assert "NotFoundError" in caplog.text
    assert dispatcher.active_count() == 0
    await dispatcher.stop()


@pytest.mark.asyncio
async def test_stop_abandons_in_flight_runs():
    gate = Gate()
    dispatcher = BackgroundDispatcher(run_fn=gate)
    await dispatcher.start()
    await dispatcher.submit("rec1")
    await asyncio.sleep(0)

    await dispatcher.stop()

    assert dispatcher.active_count() == 0
    with pytest.raises(RuntimeError):
        await dispatcher.submit("rec2")


@pytest.mark.asyncio
async def test_end_to_end_with_lifecycle(lifecycle, store, kling_api):
    kling_api.poll_responses = ["processing", "completed"]
    dispatcher = BackgroundDispatcher(run_fn=lifecycle.run)
    await dispatcher.start()

    await dispatcher.submit("rec123")
    for _ in range(100):
        if not dispatcher.is_active("rec123"):
            break
        await asyncio.sleep(0.01)

    assert store.records["rec123"]["status"] == "Completed"
    assert store.records["rec123"]["job_id"] == "abcdef1234567890"
    await dispatcher.stop()
