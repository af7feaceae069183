"""Integration tests for the streaming chat endpoint.

Tests real streaming behavior with httpx AsyncClient and ASGITransport:
the FastAPI app, the orchestrator and the encoder run for real, with the
retrieval and generation backends replaced by in-memory fakes. The UI's
stream client is driven against the same app, and against raw byte streams
served by httpx.MockTransport.
"""

import json

import httpx
import pytest
import pytest_check as check
from httpx import ASGITransport, AsyncClient

from citechat.api.app import create_app
from citechat.chat.orchestrator import FallbackOrchestrator
from citechat.errors import BackendUnavailable
from citechat.models.schemas import ChatMessage, SearchMode
from citechat.retrieval.client import SEARCH_PATH, RetrievalClient
from citechat.retrieval.config import RetrievalConfig
from citechat.streaming.short_ids import ShortIdTable
from citechat.ui.client import GENERIC_ERROR, stream_chat_response
from citechat.ui.session import ChatSession
from tests.fakes import FakeGeneration, FakeRetrieval

CHAT_PAYLOAD = {"messages": [{"role": "user", "content": "What does the handbook say?"}], "searchMode": "rag"}


class Recorder:
    """Collects stream client callbacks."""

    def __init__(self) -> None:
        self.tables: list[ShortIdTable] = []
        self.deltas: list[str] = []
        self.completed = 0
        self.errors: list[str] = []

    def kwargs(self) -> dict:
        return {
            "on_search_results": self.tables.append,
            "on_delta": self.deltas.append,
            "on_complete": self.on_complete,
            "on_error": self.errors.append,
        }

    def on_complete(self) -> None:
        self.completed += 1


def raw_stream_client(body: bytes, status_code: int = 200) -> AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=body)

    return AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")


class TestChatEndpoint:
    """POST /api/chat against in-memory backends."""

    async def test_stream_content_type_and_headers(self, async_client: AsyncClient) -> None:
        async with async_client.stream("POST", "/api/chat", json=CHAT_PAYLOAD) as response:
            assert response.status_code == 200
            check.equal(response.headers["content-type"], "text/plain; charset=utf-8")
            check.equal(response.headers["x-vercel-ai-data-stream"], "v1")
            check.equal(response.headers["cache-control"], "no-cache")

    async def test_frame_order(self, async_client: AsyncClient) -> None:
        """Metadata first, then text, then exactly one completion and terminator."""
        response = await async_client.post("/api/chat", json=CHAT_PAYLOAD)
        lines = response.text.splitlines()

        tags = [line.split(":", 1)[0] for line in lines]
        check.equal(tags[0], "8")
        check.equal(tags[-2:], ["3", "d"])
        check.equal(set(tags[1:-2]), {"0"})
        check.equal(tags.count("3"), 1)
        check.equal(lines[-1], "d:{}")

        text = "".join(json.loads(line[2:]) for line in lines if line.startswith("0:"))
        check.equal(text, "See [8ec7796] for detail.")
        data = json.loads(lines[0][2:])[0]["data"]
        check.equal(data["8ec7796"]["text"], "Passwords rotate every 90 days.")

    async def test_agent_mode_is_forwarded(self, async_client: AsyncClient, fake_retrieval: FakeRetrieval) -> None:
        payload = {**CHAT_PAYLOAD, "searchMode": "agent"}

        await async_client.post("/api/chat", json=payload)

        assert fake_retrieval.invocations == [("agent", "What does the handbook say?")]

    @pytest.mark.parametrize(
        "payload",
        [
            {"messages": []},
            {"messages": [{"role": "assistant", "content": "Hello"}]},
            {"messages": [{"role": "user", "content": "   "}]},
            {"messages": [{"role": "user", "content": "Hi"}], "searchMode": "web"},
            {"query": "old shape"},
        ],
    )
    async def test_invalid_requests_return_422(
        self, async_client: AsyncClient, fake_retrieval: FakeRetrieval, payload: dict
    ) -> None:
        response = await async_client.post("/api/chat", json=payload)

        check.equal(response.status_code, 422)
        check.equal(fake_retrieval.invocations, [])

    async def test_malformed_json_returns_422(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/api/chat", content=b"{not json", headers={"content-type": "application/json"}
        )

        assert response.status_code == 422

    async def test_get_is_not_allowed(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/api/chat")

        assert response.status_code == 405

    async def test_cors_preflight(self, async_client: AsyncClient) -> None:
        response = await async_client.options(
            "/api/chat",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "content-type",
            },
        )

        check.equal(response.status_code, 200)
        check.is_in("access-control-allow-origin", response.headers)
        check.is_in("POST", response.headers["access-control-allow-methods"])

    async def test_terminal_failure_is_an_error_frame(self, passage_factory, encoder) -> None:
        retrieval = FakeRetrieval(BackendUnavailable("down"), search_results=[passage_factory("8ec77961234")])
        generation = FakeGeneration(chunks=(), error=RuntimeError("LLM down"))
        app = create_app(orchestrator=FallbackOrchestrator(retrieval, generation, encoder))

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post("/api/chat", json=CHAT_PAYLOAD)

        lines = response.text.splitlines()
        check.equal(response.status_code, 200)
        check.equal(json.loads(lines[-2][2:])["finishReason"], "error")
        check.equal(lines[-1], "d:{}")

    async def test_health(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/health")

        assert response.json() == {"status": "healthy", "service": "citechat"}


class TestDefaultWiring:
    """App built from the environment with only the backend mocked."""

    @pytest.fixture
    def no_llm_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LLM_API_KEY", "")
        monkeypatch.setenv("OPENAI_API_KEY", "")
        monkeypatch.setenv("STREAM_TOKEN_DELAY", "0")

    @staticmethod
    def backend_app(handler) -> AsyncClient:
        config = RetrievalConfig(base_url="http://r2r.test")
        backend_http = AsyncClient(transport=httpx.MockTransport(handler), base_url=config.base_url)
        app = create_app(retrieval=RetrievalClient(backend_http, config))
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    async def test_primary_tier_needs_no_llm_key(self, no_llm_key: None) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"results": {"completion": "Hello world"}})

        async with self.backend_app(handler) as client:
            response = await client.post("/api/chat", json=CHAT_PAYLOAD)

        lines = response.text.splitlines()
        check.equal(response.status_code, 200)
        check.equal(lines[:2], ['0:"Hello"', '0:" world"'])
        check.equal(json.loads(lines[-2][2:])["finishReason"], "stop")
        check.equal(lines[-1], "d:{}")

    async def test_missing_llm_key_in_fallback_is_an_error_frame(self, no_llm_key: None) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == SEARCH_PATH:
                return httpx.Response(200, json={"results": {"chunk_search_results": []}})
            return httpx.Response(503, json={"detail": "unavailable"})

        async with self.backend_app(handler) as client:
            response = await client.post("/api/chat", json=CHAT_PAYLOAD)

        lines = response.text.splitlines()
        check.equal(response.status_code, 200)
        check.equal(len(lines), 2)
        check.equal(json.loads(lines[0][2:])["finishReason"], "error")
        check.equal(lines[1], "d:{}")


class TestStreamClientAgainstApi:
    """The UI stream client consuming the real endpoint."""

    async def test_end_to_end_resolution(self, async_client: AsyncClient) -> None:
        session = ChatSession()
        messages = session.begin_request("What does the handbook say?")
        recorder = Recorder()

        await stream_chat_response(
            messages,
            SearchMode.RAG,
            on_search_results=session.receive_search_results,
            on_delta=session.append_delta,
            on_complete=session.complete_response,
            on_error=recorder.errors.append,
            client=async_client,
            api_base_url="http://test",
        )

        check.equal(recorder.errors, [])
        turn = session.turns[-1]
        check.equal(turn.content, "See [8ec7796] for detail.")
        segments = list(turn.segments())
        check.equal(segments[0], "See ")
        check.equal(segments[1].passage.text, "Passwords rotate every 90 days.")
        check.equal(segments[2], " for detail.")

    async def test_terminal_failure_reaches_on_error(self, encoder) -> None:
        retrieval = FakeRetrieval(BackendUnavailable("down"), search_results=BackendUnavailable("down"))
        app = create_app(orchestrator=FallbackOrchestrator(retrieval, FakeGeneration(), encoder))
        recorder = Recorder()

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            await stream_chat_response(
                [ChatMessage(role="user", content="q")],
                SearchMode.AGENT,
                client=client,
                api_base_url="http://test",
                **recorder.kwargs(),
            )

        check.equal(recorder.errors, [GENERIC_ERROR])
        check.equal(recorder.completed, 0)

    async def test_validation_error_reaches_on_error(self, async_client: AsyncClient) -> None:
        recorder = Recorder()

        await stream_chat_response(
            [ChatMessage(role="assistant", content="not a question")],
            SearchMode.RAG,
            client=async_client,
            api_base_url="http://test",
            **recorder.kwargs(),
        )

        check.equal(recorder.errors, ["HTTP 422"])
        check.equal(recorder.deltas, [])


class TestStreamClientRepair:
    """The UI stream client consuming raw byte streams."""

    async def test_error_object_is_repaired_into_message(self) -> None:
        recorder = Recorder()

        async with raw_stream_client(b'0:"Hi"\n3:{"message":"backend timeout"}\nd:{}\n') as client:
            await stream_chat_response(
                [ChatMessage(role="user", content="q")],
                SearchMode.RAG,
                client=client,
                api_base_url="http://test",
                **recorder.kwargs(),
            )

        check.equal(recorder.deltas, ["Hi"])
        check.equal(recorder.errors, ["backend timeout"])
        check.equal(recorder.completed, 0)

    async def test_stream_without_completion_is_interrupted(self) -> None:
        recorder = Recorder()

        async with raw_stream_client(b'0:"Hi"\n') as client:
            await stream_chat_response(
                [ChatMessage(role="user", content="q")],
                SearchMode.RAG,
                client=client,
                api_base_url="http://test",
                **recorder.kwargs(),
            )

        assert recorder.errors == ["The response was interrupted."]

    async def test_garbage_lines_are_skipped(self) -> None:
        recorder = Recorder()
        body = (
            b'8:[{"type":"searchResults","data":{"8ec7796":{"id":"8ec77961234","text":"x"}}}]\n'
            b"garbage\n"
            b'0:"ok"\n'
            b'3:{"finishReason":"stop","usage":{"promptTokens":0,"completionTokens":0}}\n'
            b"d:{}\n"
        )

        async with raw_stream_client(body) as client:
            await stream_chat_response(
                [ChatMessage(role="user", content="q")],
                SearchMode.RAG,
                client=client,
                api_base_url="http://test",
                **recorder.kwargs(),
            )

        check.equal(recorder.deltas, ["ok"])
        check.equal(list(recorder.tables[0]), ["8ec7796"])
        check.equal(recorder.completed, 1)
        check.equal(recorder.errors, [])

    async def test_connection_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        recorder = Recorder()
        async with AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await stream_chat_response(
                [ChatMessage(role="user", content="q")],
                SearchMode.RAG,
                client=client,
                api_base_url="http://test",
                **recorder.kwargs(),
            )

        check.equal(len(recorder.errors), 1)
        check.is_true(recorder.errors[0].startswith("Connection failed"))
