"""
Application errors shared by the orchestrators, the HTTP clients and the upload server.

Services raise these; only the API layer and the UI turn them into HTTP responses
or user-facing messages.
"""


class SourceTraceError(Exception):
    """Base class for errors surfaced to the user."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(SourceTraceError):
    """Raised before any network call: empty question, missing file, wrong type, no source selected."""


class UploadError(SourceTraceError):
    """Raised when the storage service rejects or fails to store a PDF."""

    def __init__(self, message: str, status_code: int = 500) -> None:
        self.status_code = status_code
        super().__init__(message)


class IngestionError(SourceTraceError):
    """Raised when the flow runner fails while ingesting one source."""

    def __init__(self, message: str, source: str = "") -> None:
        self.source = source
        super().__init__(message)


class QueryError(SourceTraceError):
    """Raised when question submission to the flow runner fails."""
