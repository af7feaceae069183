"""Generation model configuration with environment variable loading.

Pydantic-based configuration for the Agno agent used by the search fallback.
Supports OpenAI and OpenAI-compatible APIs via custom base URL.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant with access to a knowledge base. "
    "Use the following context to answer questions. "
    "If the context doesn't contain relevant information, say so and provide a general response.\n\n"
    "Context from knowledge base:\n{context}"
)


class AgentConfig(BaseModel):
    """Configuration for the fallback generation agent.

    Attributes:
        api_key: API key for model access.
        base_url: API base URL (None for OpenAI default).
        model_name: Model identifier to use.
        temperature: Sampling temperature (0.0 = deterministic, 2.0 = creative).
        max_tokens: Maximum tokens in generated response.
        system_prompt: Instruction template; ``{context}`` receives the passages.
    """

    api_key: str = Field(
        default_factory=lambda: os.getenv("LLM_API_KEY", os.getenv("OPENAI_API_KEY", "")),
        validate_default=True,
        description="API key for LLM provider",
    )
    base_url: str | None = Field(
        default_factory=lambda: os.getenv("LLM_BASE_URL") or None,
        description="API base URL (None for OpenAI default)",
    )
    model_name: str = Field(
        default_factory=lambda: os.getenv("LLM_MODEL", "gpt-4o-mini"),
        description="Model to use",
    )
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1024, ge=1, le=128000)
    system_prompt: str = DEFAULT_SYSTEM_PROMPT

    @field_validator("system_prompt")
    @classmethod
    def require_context_slot(cls, v: str) -> str:
        if "{context}" not in v:
            raise ValueError("system_prompt must contain a {context} placeholder")
        return v

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """Validate that API key is provided and non-empty."""
        if not v or not v.strip():
            raise ValueError("API key required. Set LLM_API_KEY or OPENAI_API_KEY in .env")
        return v.strip()


def get_agent_config() -> AgentConfig:
    """Create agent configuration from environment.

    Raises:
        ValueError: If no API key is set.
    """
    return AgentConfig()
