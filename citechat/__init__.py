"""citechat - streaming RAG chat with inline citation resolution.

Combines FastAPI for HTTP streaming, an R2R-style retrieval backend for
search and generation, Agno for the fallback LLM call, NiceGUI for the
chat interface, and Pydantic for data validation.

Components:
    - api: HTTP endpoints and the streaming chat route
    - retrieval: backend adapter normalizing RAG and agent responses
    - agent: LLM generation used when the backend modes fail
    - chat: fallback orchestration across operating modes
    - streaming: wire protocol encoder, decoder and frame repair
    - ui: chat client, conversation state and citation rendering
    - models: request, passage and frame schemas
"""

__version__ = "0.1.0"
