import asyncio
from typing import AsyncGenerator, Callable, List, Optional, Union

import pytest
import pytest_asyncio
from sync_progress_client.controls import ProgressIndicator
from sync_progress_client.models import (
    EndpointConfig,
    JobOutcome,
    JobResult,
    JobSuccess,
    PollingConfig,
    ProgressData,
)
from sync_progress_client.remote_endpoint import RemoteJobEndpoint
from sync_progress_client.sync_coordinator import SyncCoordinator
from sync_server import AJAX_PATH, FORM_PATH, SyncServer

BASE_URL_TEMPLATE = "http://localhost:{}"
NONCE = "test-nonce"


class RecordingIndicator(ProgressIndicator):
    def __init__(self):
        super().__init__()
        self.history: List[int] = []

    def show(self, percent: int, text: str) -> None:
        super().show(percent, text)
        self.history.append(percent)


class FakeEndpoint:
    """Scripted endpoint; job starts block on `gate` when one is set"""

    def __init__(
        self,
        config: PollingConfig,
        progress: Optional[List[Union[ProgressData, Exception, None]]] = None,
        outcome: Optional[JobOutcome] = None,
    ):
        self.config = config
        self.progress = list(progress or [])
        self.outcome = outcome or JobSuccess(result=JobResult())
        self.gate: Optional[asyncio.Event] = None
        self.error: Optional[BaseException] = None
        self.started: List[dict] = []
        self.progress_queries = 0

    async def start_job(self, action: str, **extra) -> JobOutcome:
        self.started.append({"action": action, **extra})
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.outcome

    async def query_progress(self) -> Optional[ProgressData]:
        self.progress_queries += 1
        item = self.progress.pop(0) if self.progress else ProgressData()
        if isinstance(item, Exception):
            raise item
        return item

    async def submit_form(self, action: str, fields=None) -> int:
        self.started.append({"action": action, **(fields or {})})
        return 302


@pytest.fixture
def config() -> PollingConfig:
    """Short delays so the state machine can be driven quickly."""
    return PollingConfig(
        interval=0.05,
        job_timeout=5.0,
        progress_timeout=2.0,
        success_reset_delay=0.1,
        single_reset_delay=0.05,
        highlight_delay=0.01,
    )


@pytest.fixture
def fake_endpoint(config) -> FakeEndpoint:
    return FakeEndpoint(config)


@pytest_asyncio.fixture
async def fake_coordinator(fake_endpoint, config) -> AsyncGenerator[SyncCoordinator, None]:
    coordinator = SyncCoordinator(fake_endpoint, RecordingIndicator(), config)
    try:
        yield coordinator
    finally:
        await coordinator.shutdown()


@pytest_asyncio.fixture
async def server(unused_tcp_port_factory) -> AsyncGenerator[SyncServer, None]:
    """Start and yield a test SyncServer instance on a random port."""
    port = unused_tcp_port_factory()
    server_instance = SyncServer(job_duration=0.5, steps=5, nonce=NONCE)
    await server_instance.start(port=port)
    try:
        yield server_instance, port
    finally:
        await server_instance.stop()


@pytest.fixture
def make_endpoint(server, config) -> Callable[..., RemoteJobEndpoint]:
    """Build endpoint clients for the running server, optionally with another nonce."""
    _, port = server
    base_url = BASE_URL_TEMPLATE.format(port)

    def factory(nonce: str = NONCE) -> RemoteJobEndpoint:
        endpoint = EndpointConfig(
            ajax_url=base_url + AJAX_PATH, form_url=base_url + FORM_PATH, nonce=nonce
        )
        return RemoteJobEndpoint(endpoint, config)

    return factory


@pytest.fixture
def remote_endpoint(make_endpoint) -> RemoteJobEndpoint:
    return make_endpoint()


@pytest_asyncio.fixture
async def coordinator(remote_endpoint, config) -> AsyncGenerator[SyncCoordinator, None]:
    coordinator = SyncCoordinator(remote_endpoint, RecordingIndicator(), config)
    try:
        yield coordinator
    finally:
        await coordinator.shutdown()
