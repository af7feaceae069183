"""FastAPI endpoints for citechat.

Endpoints:
    - GET /health: Service health status
    - POST /api/chat: Streaming chat answers in the frame protocol
    - POST /api/upload: Document uploads forwarded to the retrieval backend
"""

from citechat.api.app import app, create_app

__all__ = ["app", "create_app"]
