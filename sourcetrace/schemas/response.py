"""Schemas for a parsed flow-runner chat response."""

from enum import Enum

from pydantic import BaseModel, Field


class SourceType(str, Enum):
    """Kind of source a part of the answer is attributed to."""

    PDF = "pdf"
    GITHUB = "github"
    WEB = "web"
    LLM = "llm"


class Source(BaseModel):
    """One attributed contribution to an answer."""

    type: SourceType
    title: str = Field(..., description='Display label, e.g. "PDF contribution".')
    reference: str = ""
    score: float | None = Field(None, description="Parsed percentage / 100. Not clamped.")
    content: str = ""


class ParsedResponse(BaseModel):
    """Answer text, per-source contributions and follow-up suggestions extracted from one chat string."""

    answer: str = ""
    sources: list[Source] = Field(default_factory=list)
    suggested_questions: list[str] = Field(default_factory=list)
