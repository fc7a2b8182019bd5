import asyncio
from typing import Any, Callable, Optional

from loguru import logger
from sync_progress_client.controls import AlertLog
from sync_progress_client.models import JobSuccess
from sync_progress_client.remote_endpoint import UNKNOWN_ERROR, RemoteJobEndpoint

EDITABLE_FIELDS = ("base_discount", "is_deleted", "dob")


def display_value(field: str, value: str) -> str:
    if field == "base_discount":
        return f"{value}%"
    if field == "is_deleted":
        return "Yes" if value == "yes" else "No"
    return value


class QuickEditCell:
    def __init__(self, entity_id: Any, field: str, text: str):
        self.entity_id = entity_id
        self.field = field
        self.text = text
        self.original_text = text
        self.editing = False
        self.highlighted = False

    def begin_edit(self) -> bool:
        if self.editing or self.field not in EDITABLE_FIELDS:
            return False
        self.original_text = self.text.strip()
        self.editing = True
        return True

    def cancel(self) -> None:
        self.editing = False
        self.text = self.original_text


class QuickEditor:
    """Saves a single inline edit; a plain request/response round trip"""

    def __init__(
        self,
        endpoint: RemoteJobEndpoint,
        alert: Optional[Callable[[str], None]] = None,
    ):
        self.endpoint = endpoint
        self.alert = alert or AlertLog()
        self.logger = logger

    async def save(self, cell: QuickEditCell, value: str) -> bool:
        outcome = await self.endpoint.quick_edit(cell.entity_id, cell.field, value)

        if not isinstance(outcome, JobSuccess):
            if outcome.transport:
                self.alert("Failed to update. Please try again.")
            else:
                self.alert(f"Failed to update: {outcome.message or UNKNOWN_ERROR}")
            cell.cancel()
            return False

        cell.editing = False
        cell.text = display_value(cell.field, value)
        self.logger.info(f"Updated {cell.field} of {cell.entity_id}")

        cell.highlighted = True
        await asyncio.sleep(self.endpoint.config.highlight_delay)
        cell.highlighted = False
        return True
