"""
API route aggregator: register endpoints; no logic, only delegate to handlers and services.
"""

import logging

from fastapi import APIRouter, File, HTTPException, Query, UploadFile
from fastapi.responses import FileResponse

from sourcetrace.api.handlers import handle_upload
from sourcetrace.core.config import PDF_CONTENT_TYPE
from sourcetrace.core.errors import UploadError
from sourcetrace.schemas.upload import FileListResponse, UploadResponse
from sourcetrace.services.storage import delete_pdf, list_pdfs, resolve_pdf

logger = logging.getLogger(__name__)
router = APIRouter()


# --- System ---

@router.get("/", tags=["system"])
def root():
    return {
        "message": "PDF Upload Server is running",
        "endpoints": {
            "upload": "POST /upload",
            "listFiles": "GET /files",
            "getFile": "GET /files/:filename",
            "deleteFile": "DELETE /files/:filename",
        },
    }


@router.get("/health", tags=["system"])
def health():
    return {"ok": True}


# --- Files ---

@router.post(
    "/upload",
    response_model=UploadResponse,
    tags=["files"],
    summary="Upload a PDF",
    description="Accept one PDF (multipart field 'file', max 10MB). overwrite=true stores it as file.pdf; relay=true also sends it to the flow runner for ingestion.",
)
async def upload_pdf(
    file: UploadFile | None = File(None, description="The PDF to store."),
    overwrite: bool = Query(False, description="Store under the fixed name file.pdf."),
    relay: bool = Query(False, description="Also run the flow runner's PDF ingestion flow."),
) -> UploadResponse:
    logger.info("[api:upload_pdf] IN  filename=%r overwrite=%s relay=%s", file.filename if file else None, overwrite, relay)
    result = await handle_upload(file, overwrite=overwrite, relay=relay)
    logger.info("[api:upload_pdf] OUT stored=%s", result.file.filename)
    return result


@router.get("/files", response_model=FileListResponse, tags=["files"], summary="List stored PDFs")
def get_files() -> FileListResponse:
    try:
        files = list_pdfs()
    except OSError as e:
        logger.exception("List files error")
        raise UploadError("Internal server error while listing files", status_code=500) from e
    return FileListResponse(files=files)


@router.get("/files/{filename}", tags=["files"], summary="Stream a stored PDF")
def get_file(filename: str) -> FileResponse:
    path = resolve_pdf(filename)
    if path is None:
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(
        path,
        media_type=PDF_CONTENT_TYPE,
        filename=filename,
        content_disposition_type="inline",
    )


@router.delete("/files/{filename}", tags=["files"], summary="Delete a stored PDF")
def remove_file(filename: str) -> dict:
    try:
        removed = delete_pdf(filename)
    except OSError as e:
        logger.exception("Delete file error")
        raise UploadError("Internal server error while deleting file", status_code=500) from e
    if not removed:
        raise HTTPException(status_code=404, detail="File not found")
    return {"success": True, "message": "File deleted", "filename": filename}
