"""Integration tests for components working together as a system.

Coverage:
    - POST /api/chat frame streams through the real FastAPI app
    - The UI stream client against the app and against raw byte streams
    - POST /api/upload forwarding to a mocked ingestion endpoint

Backends are in-memory fakes or httpx.MockTransport handlers, so no
retrieval server or LLM key is needed.
"""
