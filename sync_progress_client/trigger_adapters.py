import asyncio
from typing import Any, Callable, Dict, Optional

from loguru import logger
from sync_progress_client.controls import AlertLog, ButtonControl
from sync_progress_client.models import (
    JobFailure,
    JobOutcome,
    JobResult,
    JobSuccess,
)
from sync_progress_client.sync_coordinator import SyncCoordinator

COMPLETED_MESSAGE = "Completed! ✅"
SINGLE_ITEM_MESSAGE = "Updated! ✅"
CONFIRM_MESSAGE = "Are you sure? This action cannot be undone."

_COUNTERS = ("created", "updated", "errors", "orphans_zeroed")


def compose_result_message(result: JobResult) -> str:
    """Builds the button label shown after a successful bulk job"""
    parts = [
        f"{getattr(result, field)} {field.replace('_', ' ')}"
        for field in _COUNTERS
        if getattr(result, field)
    ]
    if not parts:
        return COMPLETED_MESSAGE
    return f"Done: {', '.join(parts)} ✅"


def failure_alert(failure: JobFailure) -> str:
    if failure.transport:
        return f"AJAX Error: {failure.message}"
    return f"Error: {failure.message}"


class AsyncButtonAdapter:
    """Runs a bulk job from a button and tracks it through the shared poller"""

    def __init__(
        self,
        coordinator: SyncCoordinator,
        control: ButtonControl,
        action: str,
        alert: Optional[Callable[[str], None]] = None,
    ):
        self.coordinator = coordinator
        self.control = control
        self.action = action
        self.alert = alert or AlertLog()
        self.logger = logger

    async def activate(self) -> Optional[JobOutcome]:
        """Returns None when the control is already busy"""
        if self.control.disabled:
            self.logger.debug(f"{self.action} already running, click ignored")
            return None

        state = self.control.snapshot()

        def restore() -> None:
            self.control.restore(state)

        self.control.mark_loading(state)
        self.coordinator.begin()

        try:
            outcome = await self.coordinator.endpoint.start_job(self.action)
        except BaseException:
            self.coordinator.abort(restore)
            raise

        if isinstance(outcome, JobSuccess):
            self.control.show_result(compose_result_message(outcome.result))
            await self.coordinator.settle(
                outcome, restore, self.coordinator.config.success_reset_delay
            )
        else:
            await self.coordinator.settle(outcome, restore)
            self.alert(failure_alert(outcome))
        return outcome


class LegacyFormAdapter:
    """A plain form post; the page navigates away, so nothing is awaited.

    Destructive forms pass `confirm`; a declined confirmation sends nothing.
    """

    def __init__(
        self,
        coordinator: SyncCoordinator,
        action: str,
        confirm: Optional[Callable[[str], bool]] = None,
    ):
        self.coordinator = coordinator
        self.action = action
        self.confirm = confirm
        self.logger = logger

    async def submit(self, fields: Optional[Dict[str, Any]] = None) -> Optional[int]:
        """Returns the HTTP status, or None when the user declined"""
        if self.confirm is not None and not self.confirm(CONFIRM_MESSAGE):
            self.logger.debug(f"{self.action} not confirmed, form not sent")
            return None

        self.coordinator.begin_untracked()
        return await self.coordinator.endpoint.submit_form(self.action, fields)


class SingleItemAdapter:
    """Updates one entity; short-lived, so the shared progress bar is left alone"""

    def __init__(
        self,
        coordinator: SyncCoordinator,
        control: ButtonControl,
        action: str,
        entity_id: Any,
        alert: Optional[Callable[[str], None]] = None,
    ):
        self.coordinator = coordinator
        self.control = control
        self.action = action
        self.entity_id = entity_id
        self.alert = alert or AlertLog()
        self.logger = logger

    async def activate(self) -> Optional[JobOutcome]:
        if self.control.disabled:
            self.logger.debug(f"{self.action} for {self.entity_id} already running, click ignored")
            return None

        state = self.control.snapshot()
        self.control.mark_loading(state)

        try:
            outcome = await self.coordinator.endpoint.start_job(
                self.action, product_id=self.entity_id
            )
        except BaseException:
            self.control.restore(state)
            raise

        if isinstance(outcome, JobSuccess):
            self.control.show_result(SINGLE_ITEM_MESSAGE)
            await asyncio.sleep(self.coordinator.config.single_reset_delay)
            self.control.restore(state)
        else:
            self.control.restore(state)
            self.alert(failure_alert(outcome))
        return outcome
