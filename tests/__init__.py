"""Test package for citechat.

Structure:
    - unit/: Individual modules tested in isolation
    - integration/: API and client exercised together over ASGI

Backends are replaced by in-memory fakes (tests/fakes.py) or
httpx.MockTransport; no network access is needed.
Leverages pytest with pytest-check for soft assertions.
"""
