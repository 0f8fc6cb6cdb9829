"""
Storage client: send a PDF to the upload server's POST /upload.

Used by the ingestion orchestrator when documents are stored rather than relayed
straight to the flow runner.
"""

import logging

import httpx
from pydantic import ValidationError as SchemaError

from sourcetrace.core.config import UPLOAD_SERVER_URL, UPLOAD_TIMEOUT
from sourcetrace.core.errors import UploadError
from sourcetrace.schemas.upload import UploadResponse

logger = logging.getLogger(__name__)


class StorageClient:
    """Async HTTP client for the upload server."""

    def __init__(
        self,
        base_url: str = UPLOAD_SERVER_URL,
        timeout: float = UPLOAD_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def upload_pdf(
        self,
        filename: str,
        content: bytes,
        overwrite: bool = False,
        relay: bool = False,
    ) -> UploadResponse:
        """
        Upload one PDF. Raises UploadError carrying the server's error message
        when available, or the transport error otherwise.
        """
        params = {}
        if overwrite:
            params["overwrite"] = "true"
        if relay:
            params["relay"] = "true"
        logger.info("[storage_client:upload_pdf] IN  filename=%s size=%d params=%s", filename, len(content), params)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/upload",
                    params=params,
                    files={"file": (filename, content, "application/pdf")},
                )
        except httpx.HTTPError as e:
            logger.warning("[storage_client:upload_pdf] request failed: %s", e)
            raise UploadError(f"Upload server unreachable: {e}", status_code=503) from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        if response.is_error or not data.get("success"):
            message = data.get("error")
            logger.warning("[storage_client:upload_pdf] rejected %s: %s", response.status_code, message)
            raise UploadError(message or "Upload failed", status_code=response.status_code)

        try:
            result = UploadResponse.model_validate(data)
        except SchemaError as e:
            logger.warning("[storage_client:upload_pdf] unexpected response body: %s", e)
            raise UploadError("Upload server returned an invalid response", status_code=502) from e
        logger.info("[storage_client:upload_pdf] OUT stored=%s", result.file.filename)
        return result
