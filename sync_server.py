import asyncio
import random
from typing import Any, Dict, List, Optional

from aiohttp import web
from loguru import logger

AJAX_PATH = "/wp-admin/admin-ajax.php"
FORM_PATH = "/wp-admin/admin-post.php"
JOB_ACTIONS = ("erp_sync_stock", "erp_sync_catalog", "erp_sync_coupons")
QUICK_EDIT_FIELDS = ("base_discount", "is_deleted", "dob")


class SyncServer:
    """Simulated admin-ajax endpoint running sync jobs and reporting their progress"""

    def __init__(
        self,
        job_duration: float = 2.0,
        steps: int = 10,
        progress_delay: float = 0.0,
        error_rate: float = 0.0,
        nonce: str = "test-nonce",
        result: Optional[Dict[str, Any]] = None,
        error_message: Any = "ERP connection failed",
    ):
        self.job_duration = job_duration
        self.steps = steps
        self.progress_delay = progress_delay
        self.error_rate = error_rate
        self.nonce = nonce
        self.result = result if result is not None else {"created": 3, "updated": 2}
        self.error_message = error_message
        self.progress: Optional[Dict] = None
        self.requests: List[Dict[str, str]] = []
        self.entities: Dict[str, Dict[str, str]] = {}
        self.background: List[asyncio.Task] = []
        self.runner: Optional[web.AppRunner] = None
        self.app = web.Application()
        self.app.router.add_post(AJAX_PATH, self.handle_ajax)
        self.app.router.add_post(FORM_PATH, self.handle_form)
        self.logger = logger

    def job_starts(self, action: str) -> int:
        return sum(1 for r in self.requests if r.get("action") == action)

    def _set_progress(self, current: int, total: int) -> None:
        self.progress = {
            "progress": round(current / total * 100) if total > 0 else 0,
            "current": current,
            "total": total,
            "status": f"Processing {current}/{total}",
        }

    async def _run_job(self, action: str) -> None:
        self.logger.info(f"Job {action} started")
        await asyncio.sleep(self.progress_delay)
        for step in range(1, self.steps + 1):
            await asyncio.sleep(self.job_duration / self.steps)
            self._set_progress(step, self.steps)
        self.progress = None
        self.logger.info(f"Job {action} finished")

    async def handle_ajax(self, request: web.Request) -> web.Response:
        form = await request.post()
        if form.get("nonce") != self.nonce:
            return web.Response(status=403, text="-1")

        action = form.get("action", "")
        self.requests.append(dict(form))

        if action == "progress":
            return web.json_response(
                {"success": True, "data": self.progress or {"progress": 0, "status": "idle"}}
            )
        if action == "quick_edit":
            return self._quick_edit(form)
        if action == "erp_sync_single_update":
            if not form.get("product_id"):
                return _error("Invalid product")
            return web.json_response({"success": True, "data": {"message": "Updated"}})
        if action in JOB_ACTIONS:
            if random.random() < self.error_rate:
                self.logger.info("Returning job error")
                return _error(self.error_message)
            await self._run_job(action)
            return web.json_response({"success": True, "data": self.result})

        return web.Response(status=400, text="0")

    def _quick_edit(self, form) -> web.Response:
        entity_id = form.get("entity_id", "")
        field = form.get("field", "")
        if not entity_id or not field:
            return _error("Invalid data")
        if field not in QUICK_EDIT_FIELDS:
            return _error("Invalid field")
        self.entities.setdefault(entity_id, {})[field] = form.get("value", "")
        return web.json_response({"success": True, "data": {"message": "Updated successfully"}})

    async def handle_form(self, request: web.Request) -> web.Response:
        form = await request.post()
        if form.get("nonce") != self.nonce:
            return web.Response(status=403, text="-1")
        action = form.get("action", "")
        self.requests.append(dict(form))
        self.background.append(asyncio.create_task(self._run_job(action)))
        raise web.HTTPFound(location=f"/wp-admin/admin.php?page=erp-sync-settings&{action}=1")

    async def start(self, port: int = 8080):
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, "localhost", port)
        await site.start()
        self.logger.info(f"Server started on port {port}")
        return site

    async def stop(self) -> None:
        for task in self.background:
            task.cancel()
        await asyncio.gather(*self.background, return_exceptions=True)
        if self.runner is not None:
            await self.runner.cleanup()


def _error(message: Any) -> web.Response:
    return web.json_response({"success": False, "data": {"message": message}})
