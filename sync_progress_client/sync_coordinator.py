import asyncio
from typing import Callable, Optional

from loguru import logger
from sync_progress_client.controls import ProgressIndicator
from sync_progress_client.models import (
    JobFailure,
    JobOutcome,
    PollingConfig,
    PollingStopped,
    ProgressUpdate,
    SyncState,
)
from sync_progress_client.progress_poller import ProgressPoller
from sync_progress_client.remote_endpoint import RemoteJobEndpoint


class SyncCoordinator:
    """Keeps the shared progress indicator and the poller in step with job triggers.

    Re-entrancy is guarded per control by the trigger adapters, not here: two
    different controls may run jobs at the same time, and whichever settles
    first clears `sync_in_flight` for both.
    """

    def __init__(
        self,
        endpoint: RemoteJobEndpoint,
        indicator: Optional[ProgressIndicator] = None,
        config: Optional[PollingConfig] = None,
    ):
        self.endpoint = endpoint
        self.indicator = indicator or ProgressIndicator()
        self.config = config or PollingConfig()
        self.sync_in_flight = False
        self.logger = logger
        self.poller = ProgressPoller(
            endpoint,
            in_flight=lambda: self.sync_in_flight,
            config=self.config,
            on_update=self.render_progress,
            on_stopped=self.on_polling_stopped,
        )

    @property
    def state(self) -> SyncState:
        if self.sync_in_flight:
            return SyncState.awaiting_terminal
        if self.poller.active:
            return SyncState.polling
        return SyncState.idle

    def _start_polling(self) -> None:
        if not self.poller.active:
            self.indicator.show(0, "Initializing...")
        self.poller.start()

    def begin(self) -> None:
        """A trigger has sent a job-start request and awaits its terminal response"""
        self.logger.debug(f"{self.state.value} -> awaiting_terminal")
        self.sync_in_flight = True
        self._start_polling()

    def begin_untracked(self) -> None:
        """A page-submitting trigger fired; only the poller will notice the end"""
        self.logger.debug(f"{self.state.value} -> polling")
        self._start_polling()

    def render_progress(self, update: ProgressUpdate) -> None:
        self.indicator.show(update.progress, f"{update.status} ({update.progress}%)")

    def on_polling_stopped(self, signal: PollingStopped) -> None:
        self.logger.debug(f"Polling stopped ({signal.reason})")
        self.indicator.hide()

    def _finish(self, restore: Callable[[], None]) -> None:
        restore()
        self.indicator.hide()
        self.poller.stop()

    def abort(self, restore: Callable[[], None]) -> None:
        """Leaves awaiting_terminal at once, without a grace delay"""
        self.sync_in_flight = False
        self._finish(restore)

    async def settle(
        self,
        outcome: JobOutcome,
        restore: Callable[[], None],
        grace_delay: Optional[float] = None,
    ) -> None:
        """Leaves awaiting_terminal once the triggering request has resolved.

        Failures restore immediately. Successes show 100% and keep it visible
        for `grace_delay` seconds before restoring and stopping the poller.
        """
        if isinstance(outcome, JobFailure):
            self.logger.info(f"Job failed: {outcome.message}")
            self.abort(restore)
            return

        self.sync_in_flight = False
        self.logger.info("Job completed")
        self.indicator.show(100, "Completed!")
        if grace_delay is None:
            grace_delay = self.config.success_reset_delay
        await asyncio.sleep(grace_delay)
        self._finish(restore)

    async def shutdown(self) -> None:
        self.poller.stop()
        await self.poller.wait_idle()
