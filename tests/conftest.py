"""Pytest fixtures and shared test configuration.

Fixtures:
    - passage_factory: Builds Passage records with sensible defaults
    - user_messages: Single-question conversation
    - encoder: Stream encoder without pacing delay
    - chat_app / async_client: API wired to in-memory backends
"""

from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from citechat.api.app import create_app
from citechat.chat.orchestrator import FallbackOrchestrator
from citechat.models.schemas import ChatMessage, Passage
from citechat.retrieval.responses import RetrievalAnswer
from citechat.streaming.encoder import StreamConfig, StreamEncoder
from tests.fakes import FakeGeneration, FakeRetrieval


@pytest.fixture
def passage_factory() -> Callable[..., Passage]:
    """Return a factory for Passage records."""

    def make(passage_id: str, text: str = "Passage text.", **overrides: Any) -> Passage:
        fields: dict[str, Any] = {
            "id": passage_id,
            "document_id": f"doc-{passage_id[:4]}",
            "score": 0.87,
            "text": text,
            "metadata": {"title": "Security Handbook"},
        }
        fields.update(overrides)
        return Passage(**fields)

    return make


@pytest.fixture
def user_messages() -> list[ChatMessage]:
    return [ChatMessage(role="user", content="What does the handbook say?")]


@pytest.fixture
def encoder() -> StreamEncoder:
    """Encoder with pacing disabled."""
    return StreamEncoder(StreamConfig(token_delay=0))


@pytest.fixture
def fake_retrieval(passage_factory: Callable[..., Passage]) -> FakeRetrieval:
    passage = passage_factory("8ec77961234", text="Passwords rotate every 90 days.")
    answer = RetrievalAnswer(mode="direct", text="See [8ec7796] for detail.", passages=[passage])
    return FakeRetrieval(answer)


@pytest.fixture
def fake_generation() -> FakeGeneration:
    return FakeGeneration()


@pytest.fixture
def chat_app(fake_retrieval: FakeRetrieval, fake_generation: FakeGeneration, encoder: StreamEncoder):
    orchestrator = FallbackOrchestrator(fake_retrieval, fake_generation, encoder)
    return create_app(orchestrator=orchestrator)


@pytest.fixture
async def async_client(chat_app) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for API testing.

    Yields:
        Configured AsyncClient for making test requests.
    """
    transport = ASGITransport(app=chat_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
