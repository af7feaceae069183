"""Unit tests for individual components in isolation.

Coverage:
    - models/: Pydantic validation and serialization
    - streaming/: Short-id tables, frame encoding, repair and decoding
    - retrieval/: Backend adapter against httpx.MockTransport
    - chat/: Fallback tiers with in-memory backends
    - agent/: Generation config and the Agno streaming call
    - ui/: Citation resolution and conversation state

Uses mocks for external services when needed. Leverages pytest-check for
multiple assertions per test.
"""
