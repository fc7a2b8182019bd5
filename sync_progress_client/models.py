from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

IDLE_STATUS = "idle"


class SyncState(str, Enum):
    idle = "idle"
    polling = "polling"
    awaiting_terminal = "awaiting_terminal"


class ProgressData(BaseModel):
    """Progress snapshot as stored by the server; extra keys are ignored"""

    model_config = ConfigDict(extra="ignore")

    status: str = IDLE_STATUS
    progress: int = 0

    @property
    def is_running(self) -> bool:
        return self.status != IDLE_STATUS and self.progress > 0


class ProgressUpdate(BaseModel):
    status: str
    progress: int


class PollingStopped(BaseModel):
    reason: str = IDLE_STATUS


class JobResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    created: Optional[int] = None
    updated: Optional[int] = None
    errors: Optional[int] = None
    orphans_zeroed: Optional[int] = None
    message: Optional[str] = None


class AjaxResponse(BaseModel):
    success: bool
    data: Optional[dict] = None

    @property
    def message(self) -> Optional[str]:
        if isinstance(self.data, dict):
            return self.data.get("message")
        return None


class JobSuccess(BaseModel):
    result: JobResult


class JobFailure(BaseModel):
    message: str
    transport: bool = False


JobOutcome = Union[JobSuccess, JobFailure]


class ButtonState(BaseModel):
    disabled: bool
    original_label: str
    original_width: int


class PollingConfig(BaseModel):
    interval: float = 1.0
    job_timeout: float = 1800.0  # 30 minutes, bulk jobs are slow
    progress_timeout: float = 30.0
    success_reset_delay: float = 3.0
    single_reset_delay: float = 2.0
    highlight_delay: float = 1.0


class EndpointConfig(BaseModel):
    ajax_url: str
    form_url: Optional[str] = None
    nonce: str = ""
    progress_action: str = "progress"
    quick_edit_action: str = "quick_edit"
