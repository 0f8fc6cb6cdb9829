"""
PDF storage for the upload server: save, list, resolve and delete files under the data folder.

Called by the API layer; no HTTP or FastAPI here.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from sourcetrace.core.config import OVERWRITE_FILENAME, UPLOAD_DIR

logger = logging.getLogger(__name__)


@dataclass
class SavedFile:
    """A PDF written to the data folder."""

    filename: str
    original_name: str
    size: int
    path: str


def _upload_root() -> Path:
    """Data folder (DATA_FOLDER), relative to the server's working directory."""
    return Path(UPLOAD_DIR)


def ensure_upload_dir() -> Path:
    root = _upload_root()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _sanitize_filename(filename: str) -> str:
    """Sanitize filename to prevent path traversal (../). Returns safe basename."""
    if not filename or not filename.strip():
        return "unnamed.pdf"
    base = Path(filename).name
    safe = base.replace("..", "").replace("/", "").replace("\\", "")
    return safe.strip() or "unnamed.pdf"


def _existing_pdf(name: str) -> Path | None:
    """Resolve a client-supplied name to a stored PDF, or None when absent or unsafe."""
    if not name or Path(name).name != name:
        return None
    root = _upload_root()
    candidate = root / name
    if not str(candidate.resolve()).startswith(str(root.resolve())):
        return None
    if not candidate.is_file():
        return None
    return candidate


def save_pdf(filename: str, content: bytes, overwrite: bool = False) -> SavedFile:
    """
    Write a PDF to the data folder.

    With overwrite=True the file is always stored as file.pdf, replacing the
    previous upload; otherwise under its sanitized original name (an existing
    file of that name is replaced).

    Raises:
        OSError: If creating the folder or writing the file fails.
    """
    root = ensure_upload_dir()
    stored_name = OVERWRITE_FILENAME if overwrite else _sanitize_filename(filename)
    dest = root / stored_name
    dest.write_bytes(content)
    logger.info("[storage:save_pdf] stored %s as %s (%d bytes)", filename, stored_name, len(content))
    return SavedFile(
        filename=stored_name,
        original_name=filename,
        size=len(content),
        path=str(dest),
    )


def list_pdfs() -> list[dict]:
    """Return {filename, size, created, modified} for each stored PDF, sorted by name."""
    root = _upload_root()
    if not root.is_dir():
        return []
    files: list[dict] = []
    for p in sorted(root.iterdir()):
        if not p.is_file() or not p.name.endswith(".pdf"):
            continue
        stat = p.stat()
        files.append({
            "filename": p.name,
            "size": stat.st_size,
            "created": datetime.fromtimestamp(stat.st_ctime, tz=timezone.utc),
            "modified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        })
    return files


def resolve_pdf(name: str) -> Path | None:
    """Path of a stored PDF for streaming, or None."""
    return _existing_pdf(name)


def delete_pdf(name: str) -> bool:
    """Delete a stored PDF. Returns False when it does not exist."""
    path = _existing_pdf(name)
    if path is None:
        return False
    path.unlink()
    logger.info("[storage:delete_pdf] removed %s", name)
    return True
