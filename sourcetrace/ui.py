# Run from project root: streamlit run sourcetrace/ui.py
# UI talks to the flow runner (ingestion, questions) and, in storage mode, to the upload server (POST /upload).
# Ingestion state lives in st.session_state for the page session only.

import asyncio
import os
import sys
from pathlib import Path

# Ensure project root is on path (Streamlit may run with cwd != project root)
_root_from_file = Path(__file__).resolve().parent.parent
_cwd = os.getcwd()
for _root in (_root_from_file, _cwd):
    _root = str(_root)
    if _root not in sys.path:
        sys.path.insert(0, _root)

import streamlit as st

from sourcetrace.core.config import DEFAULT_BRANCH
from sourcetrace.core.errors import SourceTraceError, ValidationError
from sourcetrace.services.ingestion import DocumentSource, IngestionOrchestrator
from sourcetrace.services.query import QueryOrchestrator

st.set_page_config(page_title="SourceTrace", layout="wide")
st.title("SourceTrace")
st.caption("Ask questions over a PDF, a GitHub repository and the web; every answer shows where it came from.")

if "ingestion" not in st.session_state:
    st.session_state.ingestion = IngestionOrchestrator()
    st.session_state.query = QueryOrchestrator(st.session_state.ingestion)
ingestion: IngestionOrchestrator = st.session_state.ingestion
query: QueryOrchestrator = st.session_state.query


def _run(coro):
    return asyncio.run(coro)


# --- Data sources ---

st.subheader("Data sources")
pdf_col, repo_col = st.columns(2)

with pdf_col:
    st.markdown("**PDF document**")
    ingestion.set_document_enabled(st.toggle("Enabled", value=ingestion.state.document_enabled, key="pdf_enabled"))
    uploaded = st.file_uploader("Upload a PDF document for analysis", type=["pdf"], key="pdf_file")
    if uploaded is not None:
        uploaded.seek(0)
        ingestion.set_document(
            DocumentSource(filename=uploaded.name, content=uploaded.read(), content_type=uploaded.type or "")
        )
    else:
        ingestion.set_document(None)
    if ingestion.document is not None:
        status = "ingested" if ingestion.state.document_ingested else "not ingested yet"
        st.caption(f"✓ {ingestion.document.filename} ({status})")
        if st.button("Ingest PDF", key="ingest_pdf", disabled=not ingestion.state.document_enabled):
            with st.spinner("Ingesting PDF..."):
                try:
                    ack = _run(ingestion.ingest_document())
                    if ack.stale:
                        st.warning("The PDF changed while it was being ingested. Ingest it again.")
                    else:
                        st.success(f"PDF ingested successfully. {ack.detail}")
                except SourceTraceError as e:
                    st.error(e.message)

with repo_col:
    st.markdown("**GitHub repository**")
    ingestion.set_repository_enabled(st.toggle("Enabled", value=ingestion.state.repository_enabled, key="repo_enabled"))
    repo_url = st.text_input("Repository URL", placeholder="https://github.com/username/repository", key="repo_url")
    branch = st.text_input("Branch", value=DEFAULT_BRANCH, key="repo_branch")
    ingestion.set_repository(repo_url, branch)
    if repo_url.strip():
        status = "ingested" if ingestion.state.repository_ingested else "not ingested yet"
        st.caption(f"{repo_url.strip()} ({status})")
        if st.button("Ingest repository", key="ingest_repo", disabled=not ingestion.state.repository_enabled):
            with st.spinner("Ingesting repository..."):
                try:
                    ack = _run(ingestion.ingest_repository())
                    if ack.stale:
                        st.warning("The repository changed while it was being ingested. Ingest it again.")
                    else:
                        st.success(f"Repository ingested successfully. {ack.detail}")
                except SourceTraceError as e:
                    st.error(e.message)

if st.button("Ingest all enabled sources", key="ingest_all"):
    with st.spinner("Ingesting enabled sources..."):
        try:
            result = _run(ingestion.ingest_all())
        except ValidationError as e:
            st.error(e.message)
        else:
            if result.ok and not result.superseded:
                st.success(result.summary())
            elif result.succeeded or result.superseded:
                st.warning(result.summary())
            else:
                st.error(result.summary())

st.divider()

# --- Question ---

st.subheader("Ask your question")
if "pending_suggestion" in st.session_state:
    st.session_state.question = st.session_state.pop("pending_suggestion")

with st.form("question_form"):
    question = st.text_area(
        "Question",
        placeholder="Enter your question about software architecture, computer architecture, or any technical topic...",
        key="question",
        height=120,
    )
    submitted = st.form_submit_button("Ask Question")

if submitted:
    try:
        pending = query.ask(question)
    except ValidationError as e:
        st.error(e.message)
    else:
        steps = ["Processing your query through the flow runner..."]
        if ingestion.state.use_document:
            steps.append("→ Analyzing PDF document")
        if ingestion.state.use_repository:
            steps.append("→ Searching GitHub repositories")
        steps += ["→ Gathering web sources", "→ Generating comprehensive answer"]
        with st.spinner("\n".join(steps)):
            try:
                _run(pending)
            except SourceTraceError as e:
                st.error(e.message)

# --- Results ---

response = query.last_response
if response is not None and (response.answer or response.sources):
    st.subheader("Analysis results")
    st.markdown(response.answer)

    if response.sources:
        st.markdown("**Source traceability**")
        for source in response.sources:
            line = f"`{source.type.value.upper()}` {source.title}"
            if source.score:
                line += f" · {round(source.score * 100)}% match"
            st.markdown(line)
            if source.reference:
                st.caption(source.reference)
            if source.content:
                st.caption(source.content)

    if response.suggested_questions:
        st.markdown("**Suggested questions**")
        for i, suggestion in enumerate(response.suggested_questions):
            if st.button(suggestion, key=f"suggestion_{i}"):
                st.session_state.pending_suggestion = suggestion
                st.rerun()
