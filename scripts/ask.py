#!/usr/bin/env python3
"""
Ingest a PDF and/or a GitHub repository, then ask one question from the terminal.

Talks to the flow runner configured in .env (FLOW_RUNNER_URL, FLOW_RUNNER_API_KEY).
Run from project root:

    python scripts/ask.py --pdf paper.pdf "What does the paper propose?"
    python scripts/ask.py --repo https://github.com/user/repo --branch dev "How is auth done?"
    python scripts/ask.py --skip-ingest "Follow-up question"

Ingestion of both sources runs concurrently; one failing does not stop the other.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Project root on path so "sourcetrace" resolves
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from sourcetrace.core.config import DEFAULT_BRANCH, PDF_CONTENT_TYPE
from sourcetrace.core.errors import SourceTraceError, ValidationError
from sourcetrace.schemas.response import ParsedResponse
from sourcetrace.services.ingestion import DocumentSource, IngestionOrchestrator
from sourcetrace.services.query import QueryOrchestrator


def print_response(response: ParsedResponse) -> None:
    print(response.answer or "(no answer)")
    if response.sources:
        print("\nSource traceability:")
        for source in response.sources:
            score = f"{round(source.score * 100)}%" if source.score is not None else "-"
            print(f"  {source.type.value:<7} {score:>5}  {source.title}")
    if response.suggested_questions:
        print("\nSuggested questions:")
        for suggestion in response.suggested_questions:
            print(f"  - {suggestion}")


async def run(args: argparse.Namespace) -> int:
    ingestion = IngestionOrchestrator()
    query = QueryOrchestrator(ingestion)

    if args.pdf:
        pdf = Path(args.pdf)
        ingestion.set_document(DocumentSource(filename=pdf.name, content=pdf.read_bytes(), content_type=PDF_CONTENT_TYPE))
    if args.repo:
        ingestion.set_repository(args.repo, args.branch)

    if args.pdf or args.repo:
        result = await ingestion.ingest_all()
        print(result.summary())
        if not result.succeeded:
            return 1
    elif not args.skip_ingest:
        print("Nothing to ingest; pass --pdf/--repo or --skip-ingest.")

    try:
        response = await query.ask(args.question)
    except SourceTraceError as e:
        print(f"Error: {e.message}")
        return 1
    print()
    print_response(response)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Ingest sources into the flow runner and ask a question.")
    parser.add_argument("question", help="Question to ask.")
    parser.add_argument("--pdf", help="Path to a PDF to ingest.")
    parser.add_argument("--repo", help="GitHub repository URL to ingest.")
    parser.add_argument("--branch", default=DEFAULT_BRANCH, help="Repository branch (default: main).")
    parser.add_argument(
        "--skip-ingest",
        action="store_true",
        help="Ask without ingesting anything (web and model knowledge only).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log HTTP calls.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    try:
        code = asyncio.run(run(args))
    except ValidationError as e:
        print(f"Error: {e.message}")
        code = 2
    except OSError as e:
        print(f"Error: cannot read {e.filename or 'input'}: {e.strerror or e}")
        code = 2
    sys.exit(code)


if __name__ == "__main__":
    main()
