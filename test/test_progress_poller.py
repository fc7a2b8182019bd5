import asyncio

import aiohttp
import pytest
from loguru import logger
from sync_progress_client.models import PollingStopped, ProgressData, ProgressUpdate
from sync_progress_client.progress_poller import ProgressPoller


def make_poller(endpoint, config, in_flight=False):
    updates, stops = [], []
    flag = {"in_flight": in_flight}
    poller = ProgressPoller(
        endpoint,
        in_flight=lambda: flag["in_flight"],
        config=config,
        on_update=updates.append,
        on_stopped=stops.append,
    )
    return poller, flag, updates, stops


@pytest.mark.asyncio
async def test_start_is_idempotent(fake_endpoint, config):
    """Starting twice leaves a single timer running."""
    poller, _, _, _ = make_poller(fake_endpoint, config, in_flight=True)

    poller.start()
    first_timer = poller.state.timer_handle
    poller.start()

    assert poller.active
    assert poller.state.timer_handle is first_timer
    assert sum(1 for t in asyncio.all_tasks() if t is first_timer) == 1

    poller.stop()
    await poller.wait_idle()


@pytest.mark.asyncio
async def test_stop_twice_is_safe(fake_endpoint, config):
    poller, _, _, _ = make_poller(fake_endpoint, config)

    poller.start()
    timer = poller.state.timer_handle
    poller.stop()
    poller.stop()
    await asyncio.sleep(0)

    assert not poller.active
    assert poller.state.timer_handle is None
    assert timer.cancelled()


@pytest.mark.asyncio
async def test_stop_without_start(fake_endpoint, config):
    poller, _, _, _ = make_poller(fake_endpoint, config)
    poller.stop()
    assert not poller.active


@pytest.mark.asyncio
async def test_tick_emits_exact_server_percentage(fake_endpoint, config):
    fake_endpoint.progress = [ProgressData(status="Processing 37/100", progress=37)]
    poller, _, updates, stops = make_poller(fake_endpoint, config)

    poller.start()
    await poller.tick()

    assert updates == [ProgressUpdate(status="Processing 37/100", progress=37)]
    assert stops == []
    assert poller.active
    poller.stop()


@pytest.mark.asyncio
async def test_idle_read_does_not_stop_while_job_in_flight(fake_endpoint, config):
    """An early idle reading must not end polling while the job request is outstanding."""
    fake_endpoint.progress = [ProgressData(), ProgressData(), ProgressData()]
    poller, flag, updates, stops = make_poller(fake_endpoint, config, in_flight=True)

    poller.start()
    await poller.tick()
    await poller.tick()

    assert poller.active
    assert stops == []

    flag["in_flight"] = False
    await poller.tick()

    assert not poller.active
    assert stops == [PollingStopped()]
    assert updates == []


@pytest.mark.asyncio
async def test_running_status_with_zero_progress_counts_as_idle(fake_endpoint, config):
    fake_endpoint.progress = [ProgressData(status="Starting", progress=0)]
    poller, _, updates, stops = make_poller(fake_endpoint, config)

    poller.start()
    await poller.tick()

    assert updates == []
    assert len(stops) == 1
    assert not poller.active


@pytest.mark.asyncio
async def test_transport_failure_is_swallowed(fake_endpoint, config):
    fake_endpoint.progress = [
        aiohttp.ClientConnectionError("connection reset"),
        asyncio.TimeoutError(),
    ]
    poller, _, updates, stops = make_poller(fake_endpoint, config)

    poller.start()
    await poller.tick()
    await poller.tick()

    assert poller.active
    assert updates == []
    assert stops == []
    poller.stop()


@pytest.mark.asyncio
async def test_failed_envelope_changes_nothing(fake_endpoint, config):
    fake_endpoint.progress = [None]
    poller, _, updates, stops = make_poller(fake_endpoint, config)

    poller.start()
    await poller.tick()

    assert poller.active
    assert updates == [] and stops == []
    poller.stop()


@pytest.mark.asyncio
async def test_timer_ticks_on_its_period(fake_endpoint, config):
    fake_endpoint.progress = [ProgressData(status="running", progress=p) for p in (10, 20, 30)]
    poller, _, updates, _ = make_poller(fake_endpoint, config, in_flight=True)

    poller.start()
    await asyncio.sleep(config.interval * 3.5)
    poller.stop()
    await poller.wait_idle()

    seen = [u.progress for u in updates]
    assert len(seen) >= 2
    assert seen == [10, 20, 30][: len(seen)]


@pytest.mark.asyncio
async def test_failing_callback_is_logged(fake_endpoint, config):
    fake_endpoint.progress = [ProgressData(status="running", progress=50)]
    errors = []
    sink_id = logger.add(errors.append, level="ERROR")

    def broken_update(update):
        raise ValueError("render failed")

    poller = ProgressPoller(
        fake_endpoint, in_flight=lambda: True, config=config, on_update=broken_update
    )
    try:
        poller.start()
        await asyncio.sleep(config.interval * 1.5)
        poller.stop()
        await poller.wait_idle()
    finally:
        logger.remove(sink_id)

    assert any("render failed" in str(message) for message in errors)
