import asyncio
from typing import Any, Dict, Optional

import aiohttp
from loguru import logger
from pydantic import ValidationError
from sync_progress_client.models import (
    AjaxResponse,
    EndpointConfig,
    JobFailure,
    JobOutcome,
    JobResult,
    JobSuccess,
    PollingConfig,
    ProgressData,
)

UNKNOWN_ERROR = "Unknown error"


def _form_fields(data: Dict[str, Any]) -> Dict[str, str]:
    return {key: str(value) for key, value in data.items() if value is not None}


class RemoteJobEndpoint:
    """Thin client for the admin-ajax endpoint that runs and reports sync jobs"""

    def __init__(
        self,
        endpoint: EndpointConfig,
        config: Optional[PollingConfig] = None,
    ):
        self.endpoint = endpoint
        self.config = config or PollingConfig()
        self.logger = logger

    async def _post(
        self, url: str, data: Dict[str, Any], timeout: float
    ) -> AjaxResponse:
        """Posts form data and parses the {success, data} envelope"""
        payload = _form_fields({"nonce": self.endpoint.nonce, **data})
        client_timeout = aiohttp.ClientTimeout(total=timeout)

        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.post(url, data=payload) as response:
                response.raise_for_status()
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = None

        try:
            return AjaxResponse.model_validate(body)
        except ValidationError:
            self.logger.warning(f"Malformed response from {url}: {body!r}")
            return AjaxResponse(success=False, data={"message": UNKNOWN_ERROR})

    async def _request_outcome(
        self, data: Dict[str, Any], timeout: float
    ) -> JobOutcome:
        """Resolves a request into exactly one of JobSuccess or JobFailure"""
        url = self.endpoint.ajax_url
        action = data.get("action")

        try:
            response = await self._post(url, data, timeout)
        except aiohttp.ClientResponseError as e:
            self.logger.error(f"HTTP error {e.status} at {url} ({action}): {e.message}")
            return JobFailure(message=e.message or str(e.status), transport=True)
        except aiohttp.ClientError as e:
            self.logger.error(f"Transport error at {url} ({action}): {e}")
            return JobFailure(message=str(e) or type(e).__name__, transport=True)
        except asyncio.TimeoutError:
            self.logger.error(f"Request {action} timed out after {timeout}s")
            return JobFailure(message="timeout", transport=True)

        try:
            if not response.success:
                return JobFailure(message=response.message or UNKNOWN_ERROR)
            return JobSuccess(result=JobResult.model_validate(response.data or {}))
        except ValidationError:
            self.logger.warning(f"Unreadable {action} payload: {response.data!r}")
            return JobFailure(message=UNKNOWN_ERROR)

    async def start_job(self, action: str, **extra: Any) -> JobOutcome:
        self.logger.info(f"Starting job {action}")
        return await self._request_outcome(
            {"action": action, **extra}, self.config.job_timeout
        )

    async def query_progress(self) -> Optional[ProgressData]:
        """Returns the current progress, or None when the server reports a failure.

        Transport errors propagate; the poller decides what to do with them.
        """
        response = await self._post(
            self.endpoint.ajax_url,
            {"action": self.endpoint.progress_action},
            self.config.progress_timeout,
        )
        if not response.success or not response.data:
            return None
        try:
            return ProgressData.model_validate(response.data)
        except ValidationError:
            self.logger.warning(f"Unreadable progress payload: {response.data!r}")
            return None

    async def quick_edit(self, entity_id: Any, field: str, value: str) -> JobOutcome:
        return await self._request_outcome(
            {
                "action": self.endpoint.quick_edit_action,
                "entity_id": entity_id,
                "field": field,
                "value": value,
            },
            self.config.progress_timeout,
        )

    async def submit_form(self, action: str, fields: Optional[Dict[str, Any]] = None) -> int:
        """Submits a legacy admin form; only the HTTP status is of interest"""
        url = self.endpoint.form_url or self.endpoint.ajax_url
        payload = _form_fields(
            {"nonce": self.endpoint.nonce, "action": action, **(fields or {})}
        )

        async with aiohttp.ClientSession() as session:
            async with session.post(url, data=payload, allow_redirects=False) as response:
                self.logger.info(f"Form {action} submitted, server answered {response.status}")
                return response.status
