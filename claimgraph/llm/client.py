"""LLM client configuration: Ollama primary, OpenAI-compatible fallback."""

from functools import lru_cache

from langchain_ollama import OllamaLLM
from langchain_openai import ChatOpenAI
from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """LLM configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore",
    )

    ollama_base_url: str = "http://localhost:11434"
    model_name: str = "gpt-oss:20b"
    temperature: float = 0.0
    request_timeout: int = 60
    num_ctx: int = 8192
    num_predict: int = 2048  # Max tokens to generate
    max_retries: int = 3
    # Exponential backoff between transport retries, in seconds
    retry_wait_min: float = 2.0
    retry_wait_max: float = 30.0

    # OpenAI-compatible fallback (e.g. Groq); disabled when no base URL is set
    fallback_base_url: str | None = None
    fallback_api_key: SecretStr | None = None
    fallback_model_name: str = "llama-3.3-70b-versatile"

    @property
    def call_budget_seconds(self) -> float:
        """Worst-case wall time of one stage call.

        Every attempt runs into ``request_timeout`` and every backoff waits
        ``retry_wait_max``; a configured fallback model doubles it.
        """
        per_model = self.max_retries * self.request_timeout + (self.max_retries - 1) * self.retry_wait_max
        return per_model * (2 if self.fallback_base_url else 1)


@lru_cache
def get_llm_settings() -> LLMSettings:
    """Get cached LLM settings."""
    return LLMSettings()


def create_llm_client(settings: LLMSettings | None = None) -> OllamaLLM:
    """Create configured Ollama LLM client.

    Args:
        settings: Optional custom settings. Uses defaults if not provided.

    Returns:
        Configured OllamaLLM instance.
    """
    settings = settings or get_llm_settings()

    return OllamaLLM(
        model=settings.model_name,
        base_url=settings.ollama_base_url,
        temperature=settings.temperature,
        timeout=settings.request_timeout,
        num_ctx=settings.num_ctx,
        num_predict=settings.num_predict,
        # JSON extraction is handled by chains.parse_json_response; format="json"
        # truncates output on some models.
    )


def create_fallback_llm_client(settings: LLMSettings | None = None) -> ChatOpenAI | None:
    """Create the OpenAI-compatible fallback client, if one is configured.

    Returns:
        ChatOpenAI instance, or None when no fallback base URL is set.
    """
    settings = settings or get_llm_settings()
    if not settings.fallback_base_url:
        return None

    return ChatOpenAI(
        model=settings.fallback_model_name,
        base_url=settings.fallback_base_url,
        api_key=settings.fallback_api_key,
        temperature=settings.temperature,
        timeout=settings.request_timeout,
        max_retries=0,
    )
