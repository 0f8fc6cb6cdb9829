"""Schemas for the upload server endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UploadedFile(BaseModel):
    """Stored file as reported by POST /upload."""

    model_config = ConfigDict(populate_by_name=True)

    filename: str = Field(..., description="Name the file was stored under.")
    original_name: str = Field(..., alias="originalName", description="Name sent by the client.")
    size: int
    path: str = Field(..., description="Path of the stored file, relative to the server cwd.")


class UploadResponse(BaseModel):
    """Response after storing (and optionally relaying) an uploaded PDF."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "success": True,
                    "message": "File uploaded successfully",
                    "file": {
                        "filename": "paper.pdf",
                        "originalName": "paper.pdf",
                        "size": 48213,
                        "path": "data/paper.pdf",
                    },
                }
            ]
        },
    )

    success: bool = True
    message: str = "File uploaded successfully"
    file: UploadedFile
    flow_path: str | None = Field(
        None, alias="flowPath", description="Flow-runner file path when relay=true."
    )


class StoredFile(BaseModel):
    """Entry of GET /files."""

    filename: str
    size: int
    created: datetime
    modified: datetime


class FileListResponse(BaseModel):
    success: bool = True
    files: list[StoredFile]


class ErrorResponse(BaseModel):
    """Body of every failed upload-server response."""

    success: bool = False
    error: str
