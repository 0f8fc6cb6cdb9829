"""
Tests for the ingestion orchestrator: flags, invalidation on input change, concurrent ingest_all.
"""

import asyncio

import pytest

from fakes import FakeFlowRunner, FakeStorage
from sourcetrace.core.errors import IngestionError, UploadError, ValidationError
from sourcetrace.services.ingestion import (
    DOCUMENT,
    REPOSITORY,
    Ack,
    DocumentSource,
    IngestionOrchestrator,
)

PDF = DocumentSource(filename="paper.pdf", content=b"%PDF-1.4 test")
REPO = "https://github.com/octo/hello"


@pytest.fixture
def runner() -> FakeFlowRunner:
    return FakeFlowRunner()


@pytest.fixture
def orchestrator(runner: FakeFlowRunner) -> IngestionOrchestrator:
    return IngestionOrchestrator(flow_runner=runner, storage=FakeStorage(), document_mode="flow")


class TestIngestDocument:
    def test_success_sets_flag_and_runs_flow_with_uploaded_path(self, orchestrator, runner) -> None:
        orchestrator.set_document(PDF)
        ack = asyncio.run(orchestrator.ingest_document())

        assert ack.source == DOCUMENT
        assert orchestrator.state.document_ingested is True
        assert runner.calls[0] == ("upload", "paper.pdf")
        flow, tweaks = runner.calls[1]
        assert flow == "ingest_pdf_flow"
        assert tweaks["File-aDxd1"] == {"path": "flows/files/paper.pdf", "delete_server_file_after_processing": True}
        assert tweaks["MetadataTagger-Lyz8A"] == {"source_file_path": "paper.pdf"}

    def test_missing_document_rejected_without_network(self, orchestrator, runner) -> None:
        with pytest.raises(ValidationError):
            asyncio.run(orchestrator.ingest_document())
        assert runner.calls == []

    def test_non_pdf_rejected_without_network(self, orchestrator, runner) -> None:
        orchestrator.set_document(DocumentSource(filename="notes.txt", content=b"hi", content_type="text/plain"))
        with pytest.raises(ValidationError):
            asyncio.run(orchestrator.ingest_document())
        assert runner.calls == []

    def test_oversize_rejected(self, orchestrator, monkeypatch) -> None:
        monkeypatch.setattr("sourcetrace.services.ingestion.MAX_UPLOAD_BYTES", 4)
        orchestrator.set_document(PDF)
        with pytest.raises(UploadError, match="too large"):
            asyncio.run(orchestrator.ingest_document())

    def test_flow_failure_leaves_flag_false(self, runner) -> None:
        runner.fail_flows.add("ingest_pdf_flow")
        orchestrator = IngestionOrchestrator(flow_runner=runner, storage=FakeStorage())
        orchestrator.set_document(PDF)
        with pytest.raises(IngestionError) as exc:
            asyncio.run(orchestrator.ingest_document())
        assert exc.value.source == DOCUMENT
        assert orchestrator.state.document_ingested is False

    def test_storage_mode_uses_upload_server(self, runner) -> None:
        storage = FakeStorage()
        orchestrator = IngestionOrchestrator(flow_runner=runner, storage=storage, document_mode="storage")
        orchestrator.set_document(PDF)
        ack = asyncio.run(orchestrator.ingest_document())
        assert storage.uploads == ["paper.pdf"]
        assert runner.calls == []
        assert "saved in server" in ack.detail
        assert orchestrator.state.document_ingested is True

    def test_storage_mode_surfaces_server_message(self, runner) -> None:
        orchestrator = IngestionOrchestrator(
            flow_runner=runner, storage=FakeStorage(error="Only PDF files are allowed"), document_mode="storage"
        )
        orchestrator.set_document(PDF)
        with pytest.raises(UploadError, match="Only PDF files are allowed"):
            asyncio.run(orchestrator.ingest_document())
        assert orchestrator.state.document_ingested is False

    def test_failed_call_is_retryable(self, runner) -> None:
        runner.fail_flows.add("ingest_pdf_flow")
        orchestrator = IngestionOrchestrator(flow_runner=runner, storage=FakeStorage())
        orchestrator.set_document(PDF)
        with pytest.raises(IngestionError):
            asyncio.run(orchestrator.ingest_document())
        runner.fail_flows.clear()
        asyncio.run(orchestrator.ingest_document())
        assert orchestrator.state.document_ingested is True


class TestIngestRepository:
    def test_success_sends_url_and_branch(self, orchestrator, runner) -> None:
        orchestrator.set_repository(f"  {REPO} ", "dev")
        ack = asyncio.run(orchestrator.ingest_repository())
        assert ack.source == REPOSITORY
        assert '"dev"' in ack.detail
        assert orchestrator.state.repository_ingested is True
        flow, tweaks = runner.calls[0]
        assert flow == "ingest_github_flow"
        assert tweaks == {"GitExtractorComponent-PmJhm": {"repository_url": REPO, "branch": "dev"}}

    @pytest.mark.parametrize("url", ["", "   "])
    def test_blank_url_rejected(self, orchestrator, runner, url) -> None:
        orchestrator.set_repository(url)
        with pytest.raises(ValidationError):
            asyncio.run(orchestrator.ingest_repository())
        assert runner.calls == []

    def test_failure_raises_ingestion_error(self, orchestrator, runner) -> None:
        runner.fail_flows.add("ingest_github_flow")
        orchestrator.set_repository(REPO)
        with pytest.raises(IngestionError) as exc:
            asyncio.run(orchestrator.ingest_repository())
        assert exc.value.source == REPOSITORY
        assert orchestrator.state.repository_ingested is False


class TestInvalidation:
    def test_changing_repository_url_resets_flag(self, orchestrator) -> None:
        orchestrator.set_repository(REPO)
        asyncio.run(orchestrator.ingest_repository())
        assert orchestrator.state.repository_ingested is True

        state = orchestrator.set_repository(REPO + "-fork")
        assert state.repository_ingested is False
        assert orchestrator.state.repository_ingested is False

    def test_changing_branch_resets_flag(self, orchestrator) -> None:
        orchestrator.set_repository(REPO)
        asyncio.run(orchestrator.ingest_repository())
        orchestrator.set_repository(REPO, "dev")
        assert orchestrator.state.repository_ingested is False

    def test_same_repository_keeps_flag(self, orchestrator) -> None:
        orchestrator.set_repository(REPO)
        asyncio.run(orchestrator.ingest_repository())
        orchestrator.set_repository(REPO)
        assert orchestrator.state.repository_ingested is True

    def test_new_or_removed_document_resets_flag(self, orchestrator) -> None:
        orchestrator.set_document(PDF)
        asyncio.run(orchestrator.ingest_document())
        orchestrator.set_document(DocumentSource(filename="other.pdf", content=b"%PDF-1.7"))
        assert orchestrator.state.document_ingested is False

        asyncio.run(orchestrator.ingest_document())
        orchestrator.set_document(None)
        assert orchestrator.state.document_ingested is False

    def test_stale_completion_does_not_set_flag(self, orchestrator, runner) -> None:
        async def scenario() -> Ack:
            gate = asyncio.Event()
            runner.gates["ingest_github_flow"] = gate
            orchestrator.set_repository(REPO)
            task = asyncio.create_task(orchestrator.ingest_repository())
            await asyncio.sleep(0)
            orchestrator.set_repository(REPO + "-changed")
            gate.set()
            return await task

        ack = asyncio.run(scenario())
        assert ack.stale is True
        assert orchestrator.state.repository_ingested is False

    def test_stale_document_completion_is_marked_and_flag_stays_false(self, orchestrator, runner) -> None:
        async def scenario() -> Ack:
            gate = asyncio.Event()
            runner.gates["ingest_pdf_flow"] = gate
            orchestrator.set_document(PDF)
            task = asyncio.create_task(orchestrator.ingest_document())
            await asyncio.sleep(0)
            orchestrator.set_document(DocumentSource(filename="other.pdf", content=b"%PDF-1.7"))
            gate.set()
            return await task

        ack = asyncio.run(scenario())
        assert ack.source == DOCUMENT
        assert ack.stale is True
        assert orchestrator.state.document_ingested is False

    def test_toggles_do_not_touch_ingested_flags(self, orchestrator) -> None:
        orchestrator.set_repository(REPO)
        asyncio.run(orchestrator.ingest_repository())
        state = orchestrator.set_repository_enabled(False)
        assert state.repository_ingested is True
        assert state.use_repository is False


class TestIngestAll:
    def test_both_sources_succeed(self, orchestrator, runner) -> None:
        orchestrator.set_document(PDF)
        orchestrator.set_repository(REPO)
        result = asyncio.run(orchestrator.ingest_all())

        assert result.ok is True
        assert result.succeeded == [DOCUMENT, REPOSITORY]
        assert orchestrator.state.document_ingested is True
        assert orchestrator.state.repository_ingested is True
        assert result.summary() == "PDF and GitHub are now ready for querying"

    def test_one_failure_still_reports_other_success(self, orchestrator, runner) -> None:
        runner.fail_flows.add("ingest_github_flow")
        orchestrator.set_document(PDF)
        orchestrator.set_repository(REPO)
        result = asyncio.run(orchestrator.ingest_all())

        assert result.ok is False
        assert result.succeeded == [DOCUMENT]
        assert isinstance(result.failed[REPOSITORY], IngestionError)
        assert orchestrator.state.document_ingested is True
        assert orchestrator.state.repository_ingested is False
        assert "PDF is now ready for querying" in result.summary()
        assert "GitHub failed" in result.summary()

    def test_calls_run_concurrently(self, orchestrator, runner) -> None:
        async def scenario():
            gate = asyncio.Event()
            runner.gates["ingest_pdf_flow"] = gate
            task = asyncio.create_task(orchestrator.ingest_all())
            for _ in range(5):
                await asyncio.sleep(0)
            # repository finished while the document is still blocked
            assert orchestrator.state.repository_ingested is True
            assert orchestrator.state.document_ingested is False
            gate.set()
            return await task

        orchestrator.set_document(PDF)
        orchestrator.set_repository(REPO)
        result = asyncio.run(scenario())
        assert result.ok is True

    def test_superseded_source_not_reported_ready(self, orchestrator, runner) -> None:
        async def scenario():
            gate = asyncio.Event()
            runner.gates["ingest_pdf_flow"] = gate
            task = asyncio.create_task(orchestrator.ingest_all())
            for _ in range(5):
                await asyncio.sleep(0)
            orchestrator.set_document(DocumentSource(filename="other.pdf", content=b"%PDF-1.7"))
            gate.set()
            return await task

        orchestrator.set_document(PDF)
        orchestrator.set_repository(REPO)
        result = asyncio.run(scenario())

        assert result.succeeded == [REPOSITORY]
        assert result.superseded == [DOCUMENT]
        assert orchestrator.state.document_ingested is False
        assert result.summary() == (
            "GitHub is now ready for querying; PDF was superseded by a newer input; ingest it again"
        )

    def test_disabled_source_skipped(self, orchestrator, runner) -> None:
        orchestrator.set_document(PDF)
        orchestrator.set_repository(REPO)
        orchestrator.set_document_enabled(False)
        result = asyncio.run(orchestrator.ingest_all())
        assert list(result.outcomes) == [REPOSITORY]
        assert all(call[0] != "upload" for call in runner.calls)

    def test_nothing_enabled_and_provided_rejected(self, orchestrator, runner) -> None:
        orchestrator.set_repository("   ")
        with pytest.raises(ValidationError):
            asyncio.run(orchestrator.ingest_all())
        orchestrator.set_document(PDF)
        orchestrator.set_document_enabled(False)
        with pytest.raises(ValidationError):
            asyncio.run(orchestrator.ingest_all())
        assert runner.calls == []
