"""HTTP adapter for the retrieval backend.

Normalizes the backend's RAG and agent endpoints into one ``RetrievalAnswer``
shape, and exposes plain search and document ingestion for the fallback tier
and the upload route.
"""

import json
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from citechat.errors import BackendUnavailable, MalformedResponse, RetrievalError
from citechat.models.schemas import Passage
from citechat.retrieval.config import RetrievalConfig, get_retrieval_config
from citechat.retrieval.responses import (
    AdapterMode,
    RetrievalAnswer,
    backend_response_adapter,
    parse_passages,
)

logger = logging.getLogger(__name__)

RAG_PATH = "/v3/retrieval/rag"
AGENT_PATH = "/v3/retrieval/agent"
SEARCH_PATH = "/v3/retrieval/search"
DOCUMENTS_PATH = "/v3/documents"


class RetrievalClient:
    """Client for the retrieval backend.

    The ``httpx.AsyncClient`` is passed in so tests can swap the transport and
    the application can own its lifecycle.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        config: RetrievalConfig | None = None,
    ) -> None:
        self._http = http_client
        self._config = config or get_retrieval_config()

    @classmethod
    def from_config(cls, config: RetrievalConfig | None = None) -> "RetrievalClient":
        """Build a client with its own connection pool."""
        config = config or get_retrieval_config()
        http_client = httpx.AsyncClient(base_url=config.base_url, timeout=config.timeout)
        return cls(http_client, config)

    @property
    def config(self) -> RetrievalConfig:
        return self._config

    async def aclose(self) -> None:
        await self._http.aclose()

    def _generation_config(self) -> dict[str, Any]:
        return {
            "model": self._config.rag_model,
            "temperature": self._config.temperature,
            "stream": False,
        }

    async def invoke(self, mode: AdapterMode, query: str) -> RetrievalAnswer | RetrievalError:
        """Run a generation request in the given mode.

        Failures are returned, never raised, so the caller can decide whether
        to try another tier.

        Args:
            mode: ``"agent"`` for the multi-turn agent, ``"direct"`` for RAG.
            query: The user's question.

        Returns:
            The normalized answer, or the error that prevented it.
        """
        try:
            return await self._invoke(mode, query)
        except RetrievalError as e:
            return e

    async def _invoke(self, mode: AdapterMode, query: str) -> RetrievalAnswer:
        if mode == "agent":
            path = AGENT_PATH
            body: dict[str, Any] = {
                "message": {"role": "user", "content": query},
                "rag_generation_config": self._generation_config(),
            }
        else:
            path = RAG_PATH
            body = {
                "query": query,
                "rag_generation_config": self._generation_config(),
            }

        payload = await self._post(path, json=body)

        try:
            response = backend_response_adapter.validate_python({**payload, "kind": mode})
        except ValidationError as e:
            raise MalformedResponse(f"Unexpected {mode} response shape: {e.error_count()} errors") from e

        text = response.answer_text()
        if not text:
            raise MalformedResponse(f"No answer text in {mode} response")

        passages = response.results.passages()
        logger.info(f"Backend {mode} call returned {len(text)} chars, {len(passages)} passages")
        return RetrievalAnswer(mode=mode, text=text, passages=passages)

    async def search(self, query: str, limit: int | None = None) -> list[Passage]:
        """Run a similarity search without generation.

        Raises:
            BackendUnavailable: If the backend cannot be reached.
            MalformedResponse: If the payload is not a JSON object.
        """
        body = {
            "query": query,
            "search_settings": {
                "limit": limit or self._config.search_limit,
                "use_hybrid_search": self._config.use_hybrid_search,
            },
        }
        payload = await self._post(SEARCH_PATH, json=body)

        results = payload.get("results")
        raw: Any
        if isinstance(results, dict):
            raw = results.get("chunk_search_results") or results.get("chunkSearchResults") or []
        elif isinstance(results, list):
            raw = results
        else:
            raw = []

        if not isinstance(raw, list):
            raise MalformedResponse("Search results are not a list")
        passages = parse_passages(raw)
        logger.info(f"Search returned {len(passages)} passages")
        return passages

    async def ingest_document(
        self,
        filename: str,
        content: bytes,
        content_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Forward a file to the backend for ingestion.

        Returns:
            The backend's document identifier.
        """
        files = {"file": (filename, content, content_type or "application/octet-stream")}
        data = {"metadata": json.dumps(metadata or {})}
        payload = await self._post(DOCUMENTS_PATH, files=files, data=data)

        results = payload.get("results")
        document_id = results.get("document_id") if isinstance(results, dict) else None
        if not document_id:
            raise MalformedResponse("Ingestion response carries no document_id")
        return str(document_id)

    async def _post(self, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._http.post(path, **kwargs)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise BackendUnavailable(f"Backend timeout on {path}") from e
        except httpx.HTTPStatusError as e:
            raise BackendUnavailable(f"Backend returned HTTP {e.response.status_code} on {path}") from e
        except httpx.RequestError as e:
            raise BackendUnavailable(f"Connection failed on {path}: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponse(f"Backend returned non-JSON body on {path}") from e

        if not isinstance(payload, dict):
            raise MalformedResponse(f"Backend returned {type(payload).__name__} on {path}")
        return payload
