"""Per-application service wiring.

Services live on ``app.state`` so each application instance (and each test)
owns its own clients. Missing services are built from the environment on
first use.
"""

import logging

from fastapi import Request

from citechat.agent.chat_agent import GenerationService
from citechat.chat.orchestrator import FallbackOrchestrator
from citechat.retrieval.client import RetrievalClient
from citechat.streaming.encoder import StreamEncoder

logger = logging.getLogger(__name__)


def get_retrieval_client(request: Request) -> RetrievalClient:
    state = request.app.state
    if getattr(state, "retrieval", None) is None:
        state.retrieval = RetrievalClient.from_config()
        logger.info(f"Retrieval backend at {state.retrieval.config.base_url}")
    return state.retrieval


def get_orchestrator(request: Request) -> FallbackOrchestrator:
    state = request.app.state
    if getattr(state, "orchestrator", None) is None:
        retrieval = get_retrieval_client(request)
        state.orchestrator = FallbackOrchestrator(
            retrieval=retrieval,
            generation=GenerationService(),
            encoder=StreamEncoder(),
            search_limit=retrieval.config.search_limit,
        )
    return state.orchestrator
