"""FastAPI application factory and configuration.

Main application entry point with lifespan management, middleware,
and router registration.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from citechat.api.chat import router as chat_router
from citechat.api.upload import router as upload_router
from citechat.chat.orchestrator import FallbackOrchestrator
from citechat.retrieval.client import RetrievalClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Close the retrieval client's connection pool on shutdown."""
    logger.info("Starting citechat API...")
    yield
    retrieval: RetrievalClient | None = getattr(app.state, "retrieval", None)
    if retrieval is not None:
        await retrieval.aclose()
    logger.info("Shutting down citechat API...")


def create_app(
    orchestrator: FallbackOrchestrator | None = None,
    retrieval: RetrievalClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        orchestrator: Chat orchestrator; built from the environment on first
            request when omitted.
        retrieval: Retrieval client for uploads (and the default
            orchestrator); built from the environment when omitted.

    Returns:
        Configured FastAPI application instance.
    """
    application = FastAPI(
        title="citechat API",
        description=(
            "Chat over an ingested document set. Answers stream as tagged "
            "frames with an out-of-band passage table so inline citations "
            "can be resolved by the client."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    application.state.orchestrator = orchestrator
    application.state.retrieval = retrieval

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    application.include_router(chat_router)
    application.include_router(upload_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Check service health status."""
        return {"status": "healthy", "service": "citechat"}

    return application


app = create_app()
