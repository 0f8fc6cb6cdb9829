"""
API handlers: read request data (e.g. UploadFile), call services, map results/errors to HTTP.

Responsibility: Bridge HTTP types and services. Marshalling and exception-to-HTTP mapping.
Lives in the API layer so services stay free of FastAPI/HTTP types.
"""

import asyncio
import logging

from fastapi import UploadFile

from sourcetrace.core.config import MAX_UPLOAD_BYTES, PDF_CONTENT_TYPE
from sourcetrace.core.errors import UploadError
from sourcetrace.schemas.upload import UploadedFile, UploadResponse
from sourcetrace.services.flow_runner import FlowRunnerClient, FlowRunnerError
from sourcetrace.services.ingestion import send_pdf_to_flow
from sourcetrace.services.storage import save_pdf

logger = logging.getLogger(__name__)


def get_flow_runner() -> FlowRunnerClient:
    """Flow-runner client used for relay uploads."""
    return FlowRunnerClient()


async def handle_upload(
    file: UploadFile | None,
    overwrite: bool = False,
    relay: bool = False,
) -> UploadResponse:
    """
    Validate and store one uploaded PDF; with relay=True also hand it to the flow runner.

    Raises UploadError (400 for client mistakes, 500 for storage failure, 502 when
    the relay fails); the app turns it into {success: false, error}.
    """
    if file is None or not file.filename:
        raise UploadError("No file uploaded", status_code=400)
    if file.content_type != PDF_CONTENT_TYPE:
        raise UploadError("Only PDF files are allowed", status_code=400)

    content = await file.read(MAX_UPLOAD_BYTES + 1)
    if len(content) > MAX_UPLOAD_BYTES:
        raise UploadError("File too large. Maximum size is 10MB", status_code=400)

    try:
        saved = await asyncio.to_thread(save_pdf, file.filename, content, overwrite)
    except OSError as e:
        logger.exception("Upload error")
        raise UploadError("Internal server error while uploading file", status_code=500) from e

    flow_path = None
    if relay:
        try:
            flow_path = await send_pdf_to_flow(get_flow_runner(), saved.filename, content)
        except FlowRunnerError as e:
            raise UploadError(f"File stored but relay to flow runner failed: {e.message}", status_code=502) from e

    return UploadResponse(
        file=UploadedFile(
            filename=saved.filename,
            original_name=saved.original_name,
            size=saved.size,
            path=saved.path,
        ),
        flow_path=flow_path,
    )
