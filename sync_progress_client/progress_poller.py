import asyncio
from typing import Any, Callable, Optional, Set

import aiohttp
from loguru import logger
from sync_progress_client.models import PollingConfig, PollingStopped, ProgressUpdate
from sync_progress_client.remote_endpoint import RemoteJobEndpoint


class PollState:
    def __init__(self):
        self.timer_handle: Optional[asyncio.Task] = None
        self.active = False


class ProgressPoller:
    """Queries the job progress on a fixed period while active.

    `in_flight` reports whether a client-triggered job is still awaiting its
    terminal response; while it is true an idle reading does not stop polling.
    """

    def __init__(
        self,
        endpoint: RemoteJobEndpoint,
        in_flight: Callable[[], bool],
        config: Optional[PollingConfig] = None,
        on_update: Optional[Callable[[ProgressUpdate], Any]] = None,
        on_stopped: Optional[Callable[[PollingStopped], Any]] = None,
    ):
        self.endpoint = endpoint
        self.in_flight = in_flight
        self.config = config or PollingConfig()
        self.on_update = on_update
        self.on_stopped = on_stopped
        self.state = PollState()
        self.logger = logger
        self._ticks: Set[asyncio.Task] = set()

    @property
    def active(self) -> bool:
        return self.state.active

    def start(self) -> None:
        if self.state.timer_handle is not None:
            return
        self.state.timer_handle = asyncio.get_running_loop().create_task(self._run())
        self.state.active = True
        self.logger.debug(f"Progress polling started every {self.config.interval}s")

    def stop(self) -> None:
        if self.state.timer_handle is not None:
            self.state.timer_handle.cancel()
            self.state.timer_handle = None
            self.logger.debug("Progress polling stopped")
        self.state.active = False

    async def _run(self) -> None:
        # A slow tick may still be running when the next one fires
        while True:
            await asyncio.sleep(self.config.interval)
            task = asyncio.create_task(self.tick())
            self._ticks.add(task)
            task.add_done_callback(self._tick_done)

    def _tick_done(self, task: asyncio.Task) -> None:
        self._ticks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.logger.error(f"Progress tick failed: {task.exception()!r}")

    async def tick(self) -> None:
        try:
            progress = await self.endpoint.query_progress()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.debug(f"Progress tick skipped: {e!r}")
            return

        if progress is None:
            return

        if progress.is_running:
            if self.on_update is not None:
                self.on_update(
                    ProgressUpdate(status=progress.status, progress=progress.progress)
                )
        elif not self.in_flight():
            self.stop()
            if self.on_stopped is not None:
                self.on_stopped(PollingStopped())

    async def wait_idle(self) -> None:
        """Waits for ticks that were already sent to resolve"""
        if self._ticks:
            await asyncio.gather(*list(self._ticks), return_exceptions=True)
