"""Agno generation service for the search-plus-generation fallback.

When neither backend mode can answer, the orchestrator runs a plain search
and asks an LLM to answer from the retrieved passages. This module owns that
LLM call.

Notes:

1. **Fresh Agent per request** - the retrieved context goes into the system
   message, so each request gets its own Agent. The model object is shared
   and created on the first fallback, together with the configuration.

2. **Caller-supplied history** - no Agno storage is attached. The client sends
   the whole conversation with every request and it is replayed as input
   messages after the system message.

3. **Errors propagate** - a failure here is the last tier's failure and must
   reach the stream encoder, which turns it into an error frame.
"""

import logging
from collections.abc import AsyncGenerator, Sequence

from agno.agent import Agent
from agno.models.message import Message
from agno.models.openai import OpenAIChat

from citechat.agent.config import AgentConfig, get_agent_config
from citechat.models.schemas import ChatMessage

logger = logging.getLogger(__name__)


class GenerationService:
    """Streams answers grounded on an injected context block."""

    def __init__(self, config: AgentConfig | None = None) -> None:
        """Initialize the generation service.

        Args:
            config: Optional agent configuration.
                    Loaded from environment on first use if not provided,
                    so a missing API key only affects the fallback tier.
        """
        self._config = config
        self._model: OpenAIChat | None = None

    @property
    def config(self) -> AgentConfig:
        if self._config is None:
            self._config = get_agent_config()
        return self._config

    def _create_model(self) -> OpenAIChat:
        return OpenAIChat(
            id=self.config.model_name,
            api_key=self.config.api_key,
            base_url=self.config.base_url,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )

    def _get_model(self) -> OpenAIChat:
        if self._model is None:
            self._model = self._create_model()
        return self._model

    def _create_agent(self, context: str) -> Agent:
        return Agent(
            model=self._get_model(),
            system_message=self.config.system_prompt.format(context=context),
            markdown=True,
        )

    async def stream_answer(
        self,
        context: str,
        messages: Sequence[ChatMessage],
    ) -> AsyncGenerator[str]:
        """Stream an answer to the conversation using the given context.

        Args:
            context: Numbered passage block (or a "nothing found" notice).
            messages: Conversation history ending with the user's question.

        Yields:
            Response text chunks as they arrive.
        """
        agent = self._create_agent(context)
        history = [
            Message(role=message.role, content=message.content)
            for message in messages
            if message.role != "system"
        ]
        logger.info(f"Generating fallback answer with {self.config.model_name}")

        async for chunk in agent.arun(history, stream=True):
            # the completion event repeats the full text
            if getattr(chunk, "event", None) == "RunCompleted":
                continue
            content = getattr(chunk, "content", None)
            if isinstance(content, str) and content:
                yield content
