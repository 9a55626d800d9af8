"""LangChain-backed stage backends.

A backend takes a JSON-serializable payload and returns the decoded JSON
response of the model. Contract validation happens in the pipeline stages.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx
import structlog
from langchain_core.exceptions import OutputParserException
from langchain_core.language_models import BaseLanguageModel
from langchain_core.output_parsers import JsonOutputParser, StrOutputParser
from langchain_core.prompts import ChatPromptTemplate
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from claimgraph.config.prompts import (
    DECOMPOSITION_SYSTEM_PROMPT,
    GRAPH_EXTRACTION_SYSTEM_PROMPT,
    HUMAN_PAYLOAD_PROMPT,
    RELATION_LINKING_SYSTEM_PROMPT,
    SELECTION_SYSTEM_PROMPT,
    STANCE_VERIFICATION_SYSTEM_PROMPT,
)
from claimgraph.errors import ExternalCallError, SchemaValidationError
from claimgraph.llm.client import (
    LLMSettings,
    create_fallback_llm_client,
    create_llm_client,
    get_llm_settings,
)
from claimgraph.models import StageName

logger = structlog.get_logger(__name__)

# Transport failures worth retrying; anything else fails the call at once.
TRANSIENT_ERRORS = (httpx.TransportError, ConnectionError)


class StageBackend(Protocol):
    """One model-backed stage: JSON payload in, decoded JSON out."""

    async def run(self, payload: dict[str, Any]) -> Any: ...


# =============================================================================
# JSON extraction
# =============================================================================

def _extract_json_from_text(text: str) -> str | None:
    """Find the first balanced JSON object in text that may contain other content.

    Braces inside string literals are ignored.
    """
    brace_count = 0
    start_idx = None
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue
        if char == "\\" and in_string:
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if char == "{":
            if brace_count == 0:
                start_idx = i
            brace_count += 1
        elif char == "}" and brace_count:
            brace_count -= 1
            if brace_count == 0 and start_idx is not None:
                return text[start_idx:i + 1]

    return None


def _clean_json_string(text: str) -> str:
    """Strip BOM/zero-width characters and trailing commas."""
    text = text.strip("\ufeff\u200b\u200c\u200d")
    return re.sub(r",(\s*[}\]])", r"\1", text)


def parse_json_response(response: str, stage: str = "llm") -> dict:
    """Parse a JSON object from an LLM response, tolerating common noise.

    Handles markdown code fences, reasoning text before the object and
    trailing commas.

    Args:
        response: Raw LLM response string.
        stage: Stage name used in the raised error.

    Returns:
        Parsed JSON object.

    Raises:
        SchemaValidationError: If no JSON object can be recovered.
    """
    if not response or not response.strip():
        raise SchemaValidationError(stage, "Empty response from LLM")

    text = response.strip()

    # Strategy 1: markdown code block
    match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text, re.IGNORECASE)
    if match and match.group(1).strip().startswith("{"):
        text = match.group(1).strip()

    # Strategy 2: direct parse
    try:
        parsed = json.loads(_clean_json_string(text))
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError as e:
        logger.debug("direct_parse_failed", stage=stage, error=str(e))

    # Strategy 3: brace matching, on the narrowed text then the original
    for candidate_source in (text, response):
        extracted = _extract_json_from_text(candidate_source)
        if not extracted:
            continue
        try:
            return json.loads(_clean_json_string(extracted))
        except json.JSONDecodeError as e:
            logger.debug("extracted_parse_failed", stage=stage, error=str(e))

    logger.error(
        "json_parse_error",
        stage=stage,
        response_preview=text[:300],
    )
    raise SchemaValidationError(stage, f"Failed to parse LLM JSON response. Response preview: {text[:150]}")


# =============================================================================
# Backends
# =============================================================================

class LangChainBackend:
    """Runs one stage prompt through a LangChain model.

    Transport errors are retried with exponential backoff; every other
    failure surfaces as ``ExternalCallError``.
    """

    def __init__(
        self,
        stage: StageName,
        system_prompt: str,
        llm: BaseLanguageModel,
        max_retries: int = 3,
        wait_min: float = 2.0,
        wait_max: float = 30.0,
    ):
        self.stage = stage
        self.max_retries = max_retries
        self.wait_min = wait_min
        self.wait_max = wait_max
        prompt = ChatPromptTemplate.from_messages([
            ("system", system_prompt),
            ("human", HUMAN_PAYLOAD_PROMPT),
        ])
        self._chain = prompt | llm | StrOutputParser()
        self._json_parser = JsonOutputParser()

    async def run(self, payload: dict[str, Any]) -> Any:
        variables = {"payload": json.dumps(payload, ensure_ascii=False)}
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries),
                wait=wait_exponential(multiplier=1, min=self.wait_min, max=self.wait_max),
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
                reraise=True,
            ):
                with attempt:
                    response = await self._chain.ainvoke(variables)
        except Exception as exc:
            raise ExternalCallError(self.stage.value, f"{type(exc).__name__}: {exc}") from exc

        if not response or not response.strip():
            raise ExternalCallError(self.stage.value, "Empty response from LLM")

        logger.debug(
            "stage_raw_response",
            stage=self.stage.value,
            response_length=len(response),
            response_preview=response[:200],
        )

        try:
            return self._json_parser.parse(response)
        except OutputParserException as e:
            logger.debug("json_parser_failed", stage=self.stage.value, error=str(e))
            return parse_json_response(response, self.stage.value)


class FallbackBackend:
    """Tries the primary backend, then the fallback on transport failure."""

    def __init__(self, primary: StageBackend, fallback: StageBackend, stage: StageName):
        self.primary = primary
        self.fallback = fallback
        self.stage = stage

    async def run(self, payload: dict[str, Any]) -> Any:
        try:
            return await self.primary.run(payload)
        except ExternalCallError as exc:
            logger.warning("primary_backend_failed_trying_fallback", stage=self.stage.value, error=exc.message)
        return await self.fallback.run(payload)


@dataclass
class StageBackends:
    """The backend of every model-backed stage, built once and injected."""

    selection: StageBackend
    decomposition: StageBackend
    graph_extraction: StageBackend
    relation_linking: StageBackend
    stance_verification: StageBackend
    # Worst-case seconds per call including retries; None when unknown
    call_budget_seconds: Optional[float] = None


STAGE_PROMPTS: dict[StageName, str] = {
    StageName.SELECTION: SELECTION_SYSTEM_PROMPT,
    StageName.DECOMPOSITION: DECOMPOSITION_SYSTEM_PROMPT,
    StageName.GRAPH_EXTRACTION: GRAPH_EXTRACTION_SYSTEM_PROMPT,
    StageName.RELATION_LINKING: RELATION_LINKING_SYSTEM_PROMPT,
    StageName.STANCE_VERIFICATION: STANCE_VERIFICATION_SYSTEM_PROMPT,
}


def build_stage_backends(settings: LLMSettings | None = None) -> StageBackends:
    """Build LangChain backends for every stage from LLM settings.

    When a fallback endpoint is configured, each stage falls back to it after
    the primary model fails.
    """
    settings = settings or get_llm_settings()
    primary_llm = create_llm_client(settings)
    fallback_llm = create_fallback_llm_client(settings)
    retry_policy = (settings.max_retries, settings.retry_wait_min, settings.retry_wait_max)

    backends: dict[StageName, StageBackend] = {}
    for stage, system_prompt in STAGE_PROMPTS.items():
        backend: StageBackend = LangChainBackend(stage, system_prompt, primary_llm, *retry_policy)
        if fallback_llm is not None:
            backend = FallbackBackend(
                backend,
                LangChainBackend(stage, system_prompt, fallback_llm, *retry_policy),
                stage,
            )
        backends[stage] = backend

    logger.info(
        "stage_backends_built",
        model=settings.model_name,
        fallback_model=settings.fallback_model_name if fallback_llm is not None else None,
        call_budget_seconds=settings.call_budget_seconds,
    )
    return StageBackends(
        selection=backends[StageName.SELECTION],
        decomposition=backends[StageName.DECOMPOSITION],
        graph_extraction=backends[StageName.GRAPH_EXTRACTION],
        relation_linking=backends[StageName.RELATION_LINKING],
        stance_verification=backends[StageName.STANCE_VERIFICATION],
        call_budget_seconds=settings.call_budget_seconds,
    )
