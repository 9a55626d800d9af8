"""LLM client and stage backend configurations."""

from .client import LLMSettings, create_fallback_llm_client, create_llm_client, get_llm_settings
from .chains import (
    FallbackBackend,
    LangChainBackend,
    StageBackend,
    StageBackends,
    build_stage_backends,
    parse_json_response,
)

__all__ = [
    "LLMSettings",
    "get_llm_settings",
    "create_llm_client",
    "create_fallback_llm_client",
    "StageBackend",
    "StageBackends",
    "LangChainBackend",
    "FallbackBackend",
    "build_stage_backends",
    "parse_json_response",
]
