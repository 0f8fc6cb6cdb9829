"""
Flow runner client: run named flows and upload files on the external pipeline server.

The flow runner owns retrieval, reranking and generation. This client only knows
the HTTP contract: a JSON run request with per-node tweaks in, a nested envelope
out, from which a single chat message string is consumed.
"""

import logging
from typing import Any

import httpx

from sourcetrace.core.config import (
    FLOW_RUNNER_API_KEY,
    FLOW_RUNNER_AUTH,
    FLOW_RUNNER_URL,
    INGEST_TIMEOUT,
)

logger = logging.getLogger(__name__)


class FlowRunnerError(Exception):
    """Raised on network failure or non-2xx status from the flow runner."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def extract_message(envelope: Any) -> str:
    """Return outputs[0].outputs[0].artifacts.message, or "" when any level is missing."""
    try:
        message = envelope["outputs"][0]["outputs"][0]["artifacts"]["message"]
    except (KeyError, IndexError, TypeError):
        return ""
    return message if isinstance(message, str) else ""


class FlowRunnerClient:
    """Async HTTP client for the flow runner's run and file endpoints."""

    def __init__(
        self,
        base_url: str = FLOW_RUNNER_URL,
        api_key: str = FLOW_RUNNER_API_KEY,
        auth: str = FLOW_RUNNER_AUTH,
        timeout: float = INGEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.auth = auth
        self.timeout = timeout
        self._transport = transport

    def _auth_headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        if self.auth == "bearer":
            return {"Authorization": f"Bearer {self.api_key}"}
        return {"x-api-key": self.api_key}

    def _client(self, timeout: float | None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout if timeout is not None else self.timeout,
            transport=self._transport,
        )

    async def _post(self, url: str, timeout: float | None, **kwargs: Any) -> httpx.Response:
        try:
            async with self._client(timeout) as client:
                response = await client.post(url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("[flow_runner] request to %s failed: %s", url, e)
            raise FlowRunnerError(f"Flow runner unreachable: {e}") from e
        if response.is_error:
            logger.warning(
                "[flow_runner] %s returned %s: %s", url, response.status_code, response.text[:200]
            )
            raise FlowRunnerError(
                f"Flow runner returned {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response

    async def upload_file(
        self,
        filename: str,
        content: bytes,
        content_type: str = "application/pdf",
        timeout: float | None = None,
    ) -> str:
        """Upload a file to the flow runner's file store. Returns the server-side path."""
        url = f"{self.base_url}/api/v2/files/"
        logger.info("[flow_runner:upload_file] IN  filename=%s size=%d", filename, len(content))
        response = await self._post(
            url,
            timeout,
            headers=self._auth_headers(),
            files={"file": (filename, content, content_type)},
        )
        try:
            path = response.json().get("path")
        except (ValueError, AttributeError):
            path = None
        if not path:
            raise FlowRunnerError("Flow runner did not return a file path")
        logger.info("[flow_runner:upload_file] OUT path=%s", path)
        return path

    async def run_flow(
        self,
        flow: str,
        tweaks: dict[str, dict[str, Any]] | None = None,
        input_value: str = "",
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Run a named flow and return the decoded response envelope."""
        url = f"{self.base_url}/api/v1/run/{flow}"
        payload: dict[str, Any] = {
            "input_value": input_value,
            "input_type": "chat",
            "output_type": "chat",
        }
        if tweaks:
            payload["tweaks"] = tweaks
        logger.info("[flow_runner:run_flow] IN  flow=%s tweak_nodes=%s", flow, sorted(tweaks or {}))
        response = await self._post(
            url,
            timeout,
            headers={"Content-Type": "application/json", **self._auth_headers()},
            json=payload,
        )
        try:
            data = response.json()
        except ValueError as e:
            raise FlowRunnerError("Flow runner returned a non-JSON body") from e
        logger.info("[flow_runner:run_flow] OUT flow=%s", flow)
        return data if isinstance(data, dict) else {}
