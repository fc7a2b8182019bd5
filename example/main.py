import asyncio

from sync_progress_client.controls import ButtonControl, ProgressIndicator
from sync_progress_client.models import EndpointConfig, PollingConfig
from sync_progress_client.remote_endpoint import RemoteJobEndpoint
from sync_progress_client.sync_coordinator import SyncCoordinator
from sync_progress_client.trigger_adapters import AsyncButtonAdapter, SingleItemAdapter
from sync_server import AJAX_PATH, FORM_PATH, SyncServer


class PrintingIndicator(ProgressIndicator):
    def show(self, percent: int, text: str) -> None:
        super().show(percent, text)
        print(f"[{percent:3d}%] {text}")

    def hide(self) -> None:
        super().hide()
        print("progress hidden")


async def main():
    PORT = 8000
    server = SyncServer(job_duration=8.0, steps=8, progress_delay=1.5, error_rate=0.1)
    await server.start(port=PORT)
    print(f"Server started on http://localhost:{PORT}")

    base_url = f"http://localhost:{PORT}"
    config = PollingConfig(interval=1.0, success_reset_delay=3.0)
    endpoint = RemoteJobEndpoint(
        EndpointConfig(
            ajax_url=base_url + AJAX_PATH, form_url=base_url + FORM_PATH, nonce=server.nonce
        ),
        config,
    )
    coordinator = SyncCoordinator(endpoint, PrintingIndicator(), config)

    stock_button = ButtonControl("Sync stock")
    stock = AsyncButtonAdapter(coordinator, stock_button, "erp_sync_stock", alert=print)
    single = SingleItemAdapter(
        coordinator, ButtonControl("Update"), "erp_sync_single_update", 42, alert=print
    )

    try:
        # The second click lands while the first job runs and is ignored
        outcome, ignored = await asyncio.gather(stock.activate(), stock.activate())
        print(f"Outcome: {outcome!r}, second click: {ignored!r}")
        print(f"Button label back to: {stock_button.label}")

        print(f"Single item: {await single.activate()!r}")
    finally:
        await coordinator.shutdown()
        await server.stop()


if __name__ == "__main__":
    asyncio.run(main())
