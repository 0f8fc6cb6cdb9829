"""
Response parsing: split one free-text chat answer from the flow runner into
answer, source contributions and suggested follow-up questions.

The flow runner returns prose with literal markers rather than JSON. All knowledge
of that text contract lives here, so a move to structured output only touches
this module.
"""

import logging
import re

from sourcetrace.schemas.response import ParsedResponse, Source, SourceType

logger = logging.getLogger(__name__)

ANSWER_MARKER = "**Answer:**"
TRACEABILITY_MARKER = "**Source Traceability:**"
SUGGESTIONS_MARKER = "**Suggested Questions:**"

_LEADING_NOISE = re.compile(r"^[-\s]+")
_TRACE_LINE = re.compile(
    r"-?\s*(PDF|GitHub|Web|LLM prior knowledge):\s*(\d+)%",
    re.IGNORECASE,
)
_SUGGESTION_LINE = re.compile(r"^-\s*(.+)$")


def _split_once(text: str, marker: str) -> tuple[str, str | None]:
    """Return (text before marker, text between first and second marker or None)."""
    parts = text.split(marker)
    return parts[0], (parts[1] if len(parts) > 1 else None)


def _source_type(label: str) -> SourceType:
    lowered = label.lower()
    if "llm" in lowered:
        return SourceType.LLM
    return SourceType(lowered)


def parse_sources(block: str) -> list[Source]:
    """
    Parse a traceability block into sources, one per matching line.

    Lines that do not carry a known label and an integer percentage are skipped.
    Duplicate labels stay separate entries; percentages are not clamped.
    """
    sources: list[Source] = []
    for line in block.strip().split("\n"):
        match = _TRACE_LINE.search(line)
        if not match:
            continue
        label, percent = match.group(1), match.group(2)
        sources.append(
            Source(
                type=_source_type(label),
                title=f"{label} contribution",
                reference="",
                score=int(percent) / 100,
                content="",
            )
        )
    return sources


def parse_suggestions(block: str) -> list[str]:
    """Collect "- question" lines from the suggestions block."""
    suggestions: list[str] = []
    for line in block.strip().split("\n"):
        match = _SUGGESTION_LINE.match(line)
        if match:
            suggestions.append(match.group(1).strip())
    return suggestions


def parse_response(raw: str) -> ParsedResponse:
    """
    Parse a chat response into a ParsedResponse. Never raises.

    Missing markers degrade gracefully: no traceability marker gives no sources,
    no suggestions marker gives no suggestions, and the answer is whatever text
    remains with the answer marker removed.
    """
    if not isinstance(raw, str) or not raw:
        logger.info("[parser:parse_response] IN  empty or non-text response -> empty result")
        return ParsedResponse()

    body, suggestions_block = _split_once(raw, SUGGESTIONS_MARKER)
    answer_block, trace_block = _split_once(body, TRACEABILITY_MARKER)

    answer = _LEADING_NOISE.sub("", answer_block.replace(ANSWER_MARKER, "", 1)).strip()
    sources = parse_sources(trace_block) if trace_block is not None else []
    suggestions = parse_suggestions(suggestions_block) if suggestions_block is not None else []

    logger.info(
        "[parser:parse_response] OUT answer_len=%d sources=%d suggestions=%d",
        len(answer),
        len(sources),
        len(suggestions),
    )
    return ParsedResponse(answer=answer, sources=sources, suggested_questions=suggestions)
