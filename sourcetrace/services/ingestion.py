"""
Ingestion orchestration: per-source enabled/ingested state and the calls that
submit a PDF or a GitHub repository to the flow runner.

Responsibility: Own the IngestionState for one session. Input changes bump a
per-source generation and clear the ingested flag; an ingestion only sets the
flag if the generation it started with is still current.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace

from sourcetrace.core.config import (
    DEFAULT_BRANCH,
    DOCUMENT_INGEST_MODE,
    FILE_NODE_ID,
    GIT_NODE_ID,
    INGEST_GITHUB_FLOW,
    INGEST_PDF_FLOW,
    MAX_UPLOAD_BYTES,
    METADATA_NODE_ID,
    PDF_CONTENT_TYPE,
)
from sourcetrace.core.errors import IngestionError, SourceTraceError, UploadError, ValidationError
from sourcetrace.services.flow_runner import FlowRunnerClient, FlowRunnerError
from sourcetrace.services.storage_client import StorageClient

logger = logging.getLogger(__name__)

DOCUMENT = "document"
REPOSITORY = "repository"

# User-facing names per source kind
SOURCE_LABELS: dict[str, str] = {DOCUMENT: "PDF", REPOSITORY: "GitHub"}


@dataclass(frozen=True)
class DocumentSource:
    """A PDF selected by the user."""

    filename: str
    content: bytes = field(repr=False)
    content_type: str = PDF_CONTENT_TYPE


@dataclass(frozen=True)
class RepositorySource:
    """A GitHub repository URL (and branch) entered by the user."""

    url: str
    branch: str = DEFAULT_BRANCH


@dataclass(frozen=True)
class IngestionState:
    """Snapshot of per-source toggles and ingestion flags for one session."""

    document_enabled: bool = True
    repository_enabled: bool = True
    document_ingested: bool = False
    repository_ingested: bool = False
    document_generation: int = 0
    repository_generation: int = 0

    @property
    def use_document(self) -> bool:
        return self.document_enabled and self.document_ingested

    @property
    def use_repository(self) -> bool:
        return self.repository_enabled and self.repository_ingested


@dataclass
class Ack:
    """Successful ingestion of one source."""

    source: str
    detail: str
    # the input changed while the call was in flight; its flag was not set
    stale: bool = False


@dataclass
class IngestAllResult:
    """Outcome of ingest_all: one Ack or error per attempted source, in attempt order."""

    outcomes: dict[str, Ack | Exception]

    @property
    def succeeded(self) -> list[str]:
        return [name for name, out in self.outcomes.items() if isinstance(out, Ack) and not out.stale]

    @property
    def superseded(self) -> list[str]:
        return [name for name, out in self.outcomes.items() if isinstance(out, Ack) and out.stale]

    @property
    def failed(self) -> dict[str, Exception]:
        return {name: out for name, out in self.outcomes.items() if isinstance(out, Exception)}

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        """One-line notification text covering every source independently."""
        parts: list[str] = []
        if self.succeeded:
            names = " and ".join(SOURCE_LABELS[name] for name in self.succeeded)
            verb = "is" if len(self.succeeded) == 1 else "are"
            parts.append(f"{names} {verb} now ready for querying")
        for name in self.superseded:
            parts.append(f"{SOURCE_LABELS[name]} was superseded by a newer input; ingest it again")
        for name, error in self.failed.items():
            parts.append(f"{SOURCE_LABELS[name]} failed: {error}")
        return "; ".join(parts)


async def send_pdf_to_flow(
    flow_runner: FlowRunnerClient,
    filename: str,
    content: bytes,
    content_type: str = PDF_CONTENT_TYPE,
) -> str:
    """Upload a PDF to the flow runner and run the PDF ingestion flow on it. Returns the flow-runner path."""
    path = await flow_runner.upload_file(filename, content, content_type)
    await flow_runner.run_flow(
        INGEST_PDF_FLOW,
        tweaks={
            FILE_NODE_ID: {"path": path, "delete_server_file_after_processing": True},
            METADATA_NODE_ID: {"source_file_path": filename},
        },
    )
    return path


class IngestionOrchestrator:
    """Tracks document/repository inputs and drives their ingestion."""

    def __init__(
        self,
        flow_runner: FlowRunnerClient | None = None,
        storage: StorageClient | None = None,
        document_mode: str = DOCUMENT_INGEST_MODE,
    ) -> None:
        self.flow_runner = flow_runner or FlowRunnerClient()
        self.storage = storage or StorageClient()
        self.document_mode = document_mode
        self.document: DocumentSource | None = None
        self.repository: RepositorySource | None = None
        self._state = IngestionState()

    @property
    def state(self) -> IngestionState:
        return self._state

    # --- Inputs and toggles ---

    def set_document(self, document: DocumentSource | None) -> IngestionState:
        """Replace the selected PDF (None removes it). A change clears document_ingested."""
        if document == self.document:
            return self._state
        self.document = document
        self._state = replace(
            self._state,
            document_ingested=False,
            document_generation=self._state.document_generation + 1,
        )
        logger.info(
            "[ingestion:set_document] document=%s generation=%d ingested reset",
            document.filename if document else None,
            self._state.document_generation,
        )
        return self._state

    def set_repository(self, url: str, branch: str = DEFAULT_BRANCH) -> IngestionState:
        """Replace the repository URL/branch. A change clears repository_ingested."""
        repository = RepositorySource(url=url or "", branch=branch or DEFAULT_BRANCH)
        if repository == self.repository:
            return self._state
        self.repository = repository
        self._state = replace(
            self._state,
            repository_ingested=False,
            repository_generation=self._state.repository_generation + 1,
        )
        logger.info(
            "[ingestion:set_repository] url=%r branch=%s generation=%d ingested reset",
            repository.url,
            repository.branch,
            self._state.repository_generation,
        )
        return self._state

    def set_document_enabled(self, enabled: bool) -> IngestionState:
        self._state = replace(self._state, document_enabled=bool(enabled))
        return self._state

    def set_repository_enabled(self, enabled: bool) -> IngestionState:
        self._state = replace(self._state, repository_enabled=bool(enabled))
        return self._state

    def _mark_ingested(self, source: str, generation: int) -> bool:
        current = getattr(self._state, f"{source}_generation")
        if generation != current:
            logger.info(
                "[ingestion:%s] stale completion ignored generation=%d current=%d",
                source,
                generation,
                current,
            )
            return False
        self._state = replace(self._state, **{f"{source}_ingested": True})
        return True

    # --- Ingestion calls ---

    async def ingest_document(self) -> Ack:
        """
        Submit the selected PDF.

        In "flow" mode the PDF is uploaded to the flow runner and its ingestion flow
        is run with the returned path; in "storage" mode it is stored on the upload
        server.

        Raises:
            ValidationError: No PDF selected, or the file is not a PDF.
            UploadError: File too large, or the upload server rejected it.
            IngestionError: The flow runner failed.
        """
        document = self.document
        if document is None:
            raise ValidationError("No PDF selected. Please upload a PDF file first.")
        if document.content_type != PDF_CONTENT_TYPE:
            raise ValidationError("Invalid file. Please upload a PDF file.")
        if len(document.content) > MAX_UPLOAD_BYTES:
            raise UploadError("File too large. Maximum size is 10MB", status_code=400)

        generation = self._state.document_generation
        logger.info(
            "[ingestion:ingest_document] IN  filename=%s mode=%s generation=%d",
            document.filename,
            self.document_mode,
            generation,
        )
        if self.document_mode == "storage":
            result = await self.storage.upload_pdf(document.filename, document.content)
            ack = Ack(source=DOCUMENT, detail=f"{result.file.filename} saved in server.")
        else:
            try:
                await send_pdf_to_flow(
                    self.flow_runner, document.filename, document.content, document.content_type
                )
            except FlowRunnerError as e:
                raise IngestionError(f"Failed to ingest PDF: {e.message}", source=DOCUMENT) from e
            ack = Ack(source=DOCUMENT, detail=f"{document.filename} has been sent to the flow runner.")

        ack.stale = not self._mark_ingested(DOCUMENT, generation)
        logger.info("[ingestion:ingest_document] OUT %s", ack.detail)
        return ack

    async def ingest_repository(self) -> Ack:
        """
        Run the repository ingestion flow for the current URL.

        Raises:
            ValidationError: No repository URL.
            IngestionError: The flow runner failed.
        """
        repository = self.repository
        if repository is None or not repository.url.strip():
            raise ValidationError("No repository URL provided. Please enter a GitHub repository URL.")

        generation = self._state.repository_generation
        url = repository.url.strip()
        logger.info(
            "[ingestion:ingest_repository] IN  url=%s branch=%s generation=%d",
            url,
            repository.branch,
            generation,
        )
        try:
            await self.flow_runner.run_flow(
                INGEST_GITHUB_FLOW,
                tweaks={GIT_NODE_ID: {"repository_url": url, "branch": repository.branch}},
            )
        except FlowRunnerError as e:
            raise IngestionError(f"Error ingesting repository: {e.message}", source=REPOSITORY) from e

        applied = self._mark_ingested(REPOSITORY, generation)
        ack = Ack(
            source=REPOSITORY,
            detail=f'Repository from branch "{repository.branch}" is now ready for querying',
            stale=not applied,
        )
        logger.info("[ingestion:ingest_repository] OUT %s", ack.detail)
        return ack

    async def ingest_all(self) -> IngestAllResult:
        """
        Ingest every source that is both enabled and provided, concurrently.

        Waits for all calls to settle; one failure neither cancels nor hides the
        other's result.

        Raises:
            ValidationError: No source is both enabled and provided.
        """
        calls = {}
        if self.document is not None and self._state.document_enabled:
            calls[DOCUMENT] = self.ingest_document()
        if self.repository is not None and self.repository.url.strip() and self._state.repository_enabled:
            calls[REPOSITORY] = self.ingest_repository()
        if not calls:
            raise ValidationError(
                "No enabled data sources. Please enable at least one data source "
                "and provide the necessary files/URLs."
            )

        logger.info("[ingestion:ingest_all] IN  sources=%s", list(calls))
        results = await asyncio.gather(*calls.values(), return_exceptions=True)
        outcomes: dict[str, Ack | Exception] = {}
        for name, result in zip(calls, results):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            if isinstance(result, Exception) and not isinstance(result, SourceTraceError):
                logger.error("[ingestion:ingest_all] unexpected failure for %s", name, exc_info=result)
            outcomes[name] = result
        summary = IngestAllResult(outcomes=outcomes)
        logger.info("[ingestion:ingest_all] OUT succeeded=%s failed=%s", summary.succeeded, list(summary.failed))
        return summary
