"""
Query orchestration: send a question to the retriever flow and parse the answer.

Which retrieval branches the flow consults is decided by the flow itself; this
module only switches its routers on for sources that are enabled and ingested,
and keeps the last successful answer for display.
"""

import logging
from collections.abc import Awaitable

from sourcetrace.core.config import (
    CHAT_INPUT_NODE_ID,
    GITHUB_INGESTED_SIGNAL,
    GITHUB_ROUTER_NODE_ID,
    JIGSAW_API_KEY,
    NVIDIA_API_KEY,
    OPENAI_API_KEY,
    OPENAI_NODE_ID,
    PDF_INGESTED_SIGNAL,
    PDF_ROUTER_NODE_ID,
    QUERY_TIMEOUT,
    RERANK_NODE_ID,
    RETRIEVER_FLOW,
    WEB_SEARCH_NODE_ID,
)
from sourcetrace.core.errors import QueryError, ValidationError
from sourcetrace.schemas.response import ParsedResponse
from sourcetrace.services.flow_runner import FlowRunnerClient, FlowRunnerError, extract_message
from sourcetrace.services.ingestion import IngestionOrchestrator, IngestionState
from sourcetrace.services.response_parser import parse_response

logger = logging.getLogger(__name__)

# node id -> provider key injected as that node's api_key
DEFAULT_PROVIDER_KEYS: dict[str, str] = {
    OPENAI_NODE_ID: OPENAI_API_KEY,
    WEB_SEARCH_NODE_ID: JIGSAW_API_KEY,
    RERANK_NODE_ID: NVIDIA_API_KEY,
}


def build_query_tweaks(
    question: str,
    state: IngestionState,
    provider_keys: dict[str, str] | None = None,
) -> dict[str, dict[str, str]]:
    """Tweaks for the retriever flow: the question, router signals, and provider keys."""
    tweaks: dict[str, dict[str, str]] = {CHAT_INPUT_NODE_ID: {"input_value": question}}
    if state.use_document:
        tweaks[PDF_ROUTER_NODE_ID] = {"input_text": PDF_INGESTED_SIGNAL}
    if state.use_repository:
        tweaks[GITHUB_ROUTER_NODE_ID] = {"input_text": GITHUB_INGESTED_SIGNAL}
    keys = DEFAULT_PROVIDER_KEYS if provider_keys is None else provider_keys
    for node_id, api_key in keys.items():
        if api_key:
            tweaks[node_id] = {"api_key": api_key}
    return tweaks


class QueryOrchestrator:
    """Submits questions and holds the answer currently on display."""

    def __init__(
        self,
        ingestion: IngestionOrchestrator,
        flow_runner: FlowRunnerClient | None = None,
        provider_keys: dict[str, str] | None = None,
        timeout: float = QUERY_TIMEOUT,
    ) -> None:
        self.ingestion = ingestion
        self.flow_runner = flow_runner or ingestion.flow_runner
        self.provider_keys = provider_keys
        self.timeout = timeout
        self.last_response: ParsedResponse | None = None
        self._generation = 0
        self._in_flight = 0

    @property
    def is_loading(self) -> bool:
        return self._in_flight > 0

    def ask(self, question: str) -> Awaitable[ParsedResponse]:
        """
        Validate the question and return the pending query.

        Validation happens here, before any coroutine exists, so an empty question
        raises ValidationError without touching the network. Await the returned
        object to get the ParsedResponse; it raises QueryError on failure.
        """
        if not isinstance(question, str) or not question.strip():
            raise ValidationError("Question required. Please enter a question to proceed.")
        self._generation += 1
        return self._submit(question.strip(), self.ingestion.state, self._generation)

    async def _submit(self, question: str, state: IngestionState, generation: int) -> ParsedResponse:
        tweaks = build_query_tweaks(question, state, self.provider_keys)
        logger.info(
            "[query:ask] IN  question=%r use_pdf=%s use_github=%s",
            question,
            state.use_document,
            state.use_repository,
        )
        self._in_flight += 1
        try:
            envelope = await self.flow_runner.run_flow(
                RETRIEVER_FLOW,
                tweaks=tweaks,
                input_value=question,
                timeout=self.timeout,
            )
        except FlowRunnerError as e:
            logger.warning("[query:ask] flow runner failed: %s", e.message)
            raise QueryError("Could not retrieve a valid response from the flow runner") from e
        finally:
            self._in_flight -= 1

        raw = extract_message(envelope)
        logger.debug("[query:ask] raw_response=%r", raw)
        parsed = parse_response(raw)
        if generation == self._generation:
            self.last_response = parsed
        else:
            logger.info("[query:ask] superseded answer not displayed generation=%d current=%d", generation, self._generation)
        logger.info(
            "[query:ask] OUT answer_len=%d sources=%d suggestions=%d",
            len(parsed.answer),
            len(parsed.sources),
            len(parsed.suggested_questions),
        )
        return parsed
