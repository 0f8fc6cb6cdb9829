"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants for the upload server, the flow-runner client, and the UI.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


# Upload storage (upload server)
UPLOAD_DIR: str = os.getenv("DATA_FOLDER", "./data").strip() or "./data"
PDF_CONTENT_TYPE: str = "application/pdf"
MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
# Stored name when the client asks for overwrite mode
OVERWRITE_FILENAME: str = "file.pdf"

# Upload server
UPLOAD_SERVER_URL: str = (
    os.getenv("UPLOAD_SERVER_URL", "http://localhost:3001").strip().rstrip("/")
    or "http://localhost:3001"
)
CORS_ORIGINS: list[str] = _csv(
    os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:5173,http://localhost:8501",
    )
)

# Flow runner (Langflow-style server)
FLOW_RUNNER_URL: str = (
    os.getenv("FLOW_RUNNER_URL", "http://localhost:7860").strip().rstrip("/")
    or "http://localhost:7860"
)
FLOW_RUNNER_API_KEY: str = os.getenv("FLOW_RUNNER_API_KEY", "").strip()
# "api-key" sends x-api-key; "bearer" sends Authorization: Bearer
FLOW_RUNNER_AUTH: str = os.getenv("FLOW_RUNNER_AUTH", "api-key").strip().lower() or "api-key"

INGEST_PDF_FLOW: str = os.getenv("INGEST_PDF_FLOW", "ingest_pdf_flow").strip() or "ingest_pdf_flow"
INGEST_GITHUB_FLOW: str = os.getenv("INGEST_GITHUB_FLOW", "ingest_github_flow").strip() or "ingest_github_flow"
RETRIEVER_FLOW: str = os.getenv("RETRIEVER_FLOW", "retriever_flow").strip() or "retriever_flow"

# "flow" uploads the PDF to the flow runner and runs the ingestion flow;
# "storage" only stores it on the upload server.
DOCUMENT_INGEST_MODE: str = os.getenv("DOCUMENT_INGEST_MODE", "flow").strip().lower() or "flow"

# Tweak node identifiers (opaque ids of nodes inside the flows)
FILE_NODE_ID: str = os.getenv("FILE_NODE_ID", "File-aDxd1")
METADATA_NODE_ID: str = os.getenv("METADATA_NODE_ID", "MetadataTagger-Lyz8A")
GIT_NODE_ID: str = os.getenv("GIT_NODE_ID", "GitExtractorComponent-PmJhm")
CHAT_INPUT_NODE_ID: str = os.getenv("CHAT_INPUT_NODE_ID", "ChatInput-yVntr")
PDF_ROUTER_NODE_ID: str = os.getenv("PDF_ROUTER_NODE_ID", "ConditionalRouter-RZ4gB")
GITHUB_ROUTER_NODE_ID: str = os.getenv("GITHUB_ROUTER_NODE_ID", "ConditionalRouter-92JKj")
OPENAI_NODE_ID: str = os.getenv("OPENAI_NODE_ID", "OpenAIModel-4TVDv")
WEB_SEARCH_NODE_ID: str = os.getenv("WEB_SEARCH_NODE_ID", "JigsawStackAISearch-OqFI6")
RERANK_NODE_ID: str = os.getenv("RERANK_NODE_ID", "NvidiaRerankComponent-fRkUX")

# Router inputs that switch on a retrieval branch
PDF_INGESTED_SIGNAL: str = "PDF_INGESTED"
GITHUB_INGESTED_SIGNAL: str = "GITHUB_INGESTED"

DEFAULT_BRANCH: str = "main"

# Provider keys injected into flow nodes per call
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "").strip()
JIGSAW_API_KEY: str = os.getenv("JIGSAW_API_KEY", "").strip()
NVIDIA_API_KEY: str = os.getenv("NVIDIA_API_KEY", "").strip()

# API timeouts (seconds)
UPLOAD_TIMEOUT: float = 30.0
INGEST_TIMEOUT: float = 300.0
QUERY_TIMEOUT: float = 120.0
