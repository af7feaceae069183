"""Retrieval backend adapter.

Wraps the backend's RAG, agent, search and ingestion endpoints behind one
client that returns normalized answers and passages.
"""

from citechat.retrieval.client import RetrievalClient
from citechat.retrieval.config import RetrievalConfig, get_retrieval_config
from citechat.retrieval.responses import AdapterMode, RetrievalAnswer

__all__ = [
    "AdapterMode",
    "RetrievalAnswer",
    "RetrievalClient",
    "RetrievalConfig",
    "get_retrieval_config",
]
