"""Agno-backed LLM generation for the search fallback tier.

Responsibilities:
    - Model initialization for OpenAI-compatible APIs
    - Injecting retrieved passages as a system context block
    - Replaying the caller's conversation history
    - Streaming token generation for the wire encoder
"""

from citechat.agent.chat_agent import GenerationService
from citechat.agent.config import AgentConfig, get_agent_config

__all__ = ["AgentConfig", "GenerationService", "get_agent_config"]
