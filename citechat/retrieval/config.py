"""Retrieval backend configuration with environment variable loading."""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()


class RetrievalConfig(BaseModel):
    """Configuration for the R2R-style retrieval backend.

    Attributes:
        base_url: Backend root URL.
        timeout: Request timeout in seconds.
        rag_model: Model the backend uses for RAG and agent generation.
        temperature: Sampling temperature passed in the generation config.
        search_limit: Number of passages fetched by the search fallback.
        use_hybrid_search: Ask the backend to combine keyword and vector search.
    """

    base_url: str = Field(
        default_factory=lambda: os.getenv("R2R_BASE_URL", "http://localhost:7272"),
        description="Retrieval backend base URL",
    )
    timeout: float = Field(
        default_factory=lambda: float(os.getenv("R2R_TIMEOUT", "60")),
        gt=0,
        description="Request timeout in seconds",
    )
    rag_model: str = Field(
        default_factory=lambda: os.getenv("R2R_RAG_MODEL", "openai/gpt-4o-mini"),
        description="Model used by the backend for generation",
    )
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    search_limit: int = Field(
        default_factory=lambda: int(os.getenv("R2R_SEARCH_LIMIT", "5")),
        ge=1,
        le=100,
    )
    use_hybrid_search: bool = True

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Retrieval base URL required. Set R2R_BASE_URL in .env")
        return v.rstrip("/")


def get_retrieval_config() -> RetrievalConfig:
    """Create retrieval configuration from environment."""
    return RetrievalConfig()
