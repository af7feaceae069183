"""Unit tests for GenerationService and AgentConfig.

Tests configuration validation and the streaming call into Agno. The Agno
Agent and OpenAIChat classes are patched; no model is contacted.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from citechat.agent.config import DEFAULT_SYSTEM_PROMPT, AgentConfig
from citechat.models.schemas import ChatMessage


class TestAgentConfig:
    """Tests for AgentConfig validation."""

    def test_valid_config_with_all_fields(self) -> None:
        """Config accepts valid values for all fields."""
        config = AgentConfig(
            api_key="sk-test-key-12345",
            base_url="http://localhost:11434/v1",
            model_name="gpt-4o",
            temperature=0.5,
            max_tokens=2048,
        )

        assert config.api_key == "sk-test-key-12345"
        assert config.base_url == "http://localhost:11434/v1"
        assert config.model_name == "gpt-4o"
        assert config.temperature == 0.5
        assert config.max_tokens == 2048

    def test_config_with_default_values(self) -> None:
        """Config uses sensible defaults when only API key provided."""
        with patch.dict("os.environ", {"LLM_MODEL": "gpt-4o-mini"}):
            config = AgentConfig(api_key="sk-test-key")

        assert config.model_name == "gpt-4o-mini"
        assert config.temperature == 0.7
        assert config.max_tokens == 1024
        assert config.system_prompt == DEFAULT_SYSTEM_PROMPT

    @pytest.mark.parametrize("api_key", ["", "   "])
    def test_config_fails_with_blank_api_key(self, api_key: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            AgentConfig(api_key=api_key)

        assert "API key required" in str(exc_info.value)

    def test_config_fails_without_env_var(self) -> None:
        """Missing key in the environment fails at construction time."""
        with (
            patch.dict("os.environ", {"LLM_API_KEY": "", "OPENAI_API_KEY": ""}),
            pytest.raises(ValidationError),
        ):
            AgentConfig()

    def test_config_reads_openai_key_from_environment(self) -> None:
        with patch.dict("os.environ", {"OPENAI_API_KEY": "sk-env-key"}, clear=True):
            config = AgentConfig()

        assert config.api_key == "sk-env-key"

    def test_config_strips_api_key_whitespace(self) -> None:
        config = AgentConfig(api_key="  sk-test-key  ")

        assert config.api_key == "sk-test-key"

    @pytest.mark.parametrize("temperature", [-0.1, 2.5])
    def test_config_rejects_out_of_range_temperature(self, temperature: float) -> None:
        with pytest.raises(ValidationError) as exc_info:
            AgentConfig(api_key="sk-test", temperature=temperature)

        assert "temperature" in str(exc_info.value).lower()

    @pytest.mark.parametrize("max_tokens", [0, 200000])
    def test_config_rejects_out_of_range_max_tokens(self, max_tokens: int) -> None:
        with pytest.raises(ValidationError) as exc_info:
            AgentConfig(api_key="sk-test", max_tokens=max_tokens)

        assert "max_tokens" in str(exc_info.value).lower()

    def test_system_prompt_needs_context_placeholder(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            AgentConfig(api_key="sk-test", system_prompt="Answer briefly.")

        assert "{context}" in str(exc_info.value)


def _stream(*chunks):
    async def generator():
        for chunk in chunks:
            yield chunk

    return generator()


class TestGenerationService:
    """Tests for GenerationService with Agno patched out."""

    @patch("citechat.agent.chat_agent.OpenAIChat")
    @patch("citechat.agent.chat_agent.Agent")
    async def test_service_builds_model_on_first_use(
        self,
        mock_agent_class: MagicMock,
        mock_openai_chat: MagicMock,
    ) -> None:
        from citechat.agent.chat_agent import GenerationService

        config = AgentConfig(api_key="sk-custom-key", model_name="gpt-4o", temperature=0.3, max_tokens=4096)
        mock_agent_class.return_value.arun = MagicMock(side_effect=lambda *a, **kw: _stream())
        service = GenerationService(config=config)

        # nothing is built until the fallback tier runs
        mock_openai_chat.assert_not_called()
        mock_agent_class.assert_not_called()

        messages = [ChatMessage(role="user", content="q")]
        _ = [chunk async for chunk in service.stream_answer("ctx", messages)]
        _ = [chunk async for chunk in service.stream_answer("ctx", messages)]

        mock_openai_chat.assert_called_once_with(
            id="gpt-4o",
            api_key="sk-custom-key",
            base_url=None,
            temperature=0.3,
            max_tokens=4096,
        )
        # agents are created per request, the model is shared
        assert mock_agent_class.call_count == 2

    @patch("citechat.agent.chat_agent.OpenAIChat")
    @patch("citechat.agent.chat_agent.Agent")
    async def test_missing_api_key_fails_on_first_use(
        self,
        mock_agent_class: MagicMock,
        mock_openai_chat: MagicMock,
    ) -> None:
        """Construction succeeds without a key; streaming raises."""
        from citechat.agent.chat_agent import GenerationService

        with patch.dict("os.environ", {"LLM_API_KEY": "", "OPENAI_API_KEY": ""}):
            service = GenerationService()

            with pytest.raises(ValidationError):
                async for _ in service.stream_answer("ctx", [ChatMessage(role="user", content="q")]):
                    pass

        mock_openai_chat.assert_not_called()

    @patch("citechat.agent.chat_agent.OpenAIChat")
    @patch("citechat.agent.chat_agent.Agent")
    async def test_stream_answer_injects_context_and_history(
        self,
        mock_agent_class: MagicMock,
        mock_openai_chat: MagicMock,
    ) -> None:
        from citechat.agent.chat_agent import GenerationService

        agent = mock_agent_class.return_value
        agent.arun = MagicMock(
            return_value=_stream(
                SimpleNamespace(event="RunContent", content="Hello"),
                SimpleNamespace(event="RunContent", content=None),
                SimpleNamespace(event="RunContent", content=" there"),
                SimpleNamespace(event="RunCompleted", content="Hello there"),
            )
        )
        service = GenerationService(AgentConfig(api_key="sk-test"))
        messages = [
            ChatMessage(role="system", content="ignored"),
            ChatMessage(role="user", content="Hi"),
            ChatMessage(role="assistant", content="Hello!"),
            ChatMessage(role="user", content="What now?"),
        ]

        chunks = [chunk async for chunk in service.stream_answer("[1] alpha", messages)]

        assert chunks == ["Hello", " there"]

        agent_kwargs = mock_agent_class.call_args.kwargs
        assert agent_kwargs["model"] is mock_openai_chat.return_value
        assert agent_kwargs["system_message"].endswith("Context from knowledge base:\n[1] alpha")

        history = agent.arun.call_args.args[0]
        assert [(m.role, m.content) for m in history] == [
            ("user", "Hi"),
            ("assistant", "Hello!"),
            ("user", "What now?"),
        ]
        assert agent.arun.call_args.kwargs == {"stream": True}

    @patch("citechat.agent.chat_agent.OpenAIChat")
    @patch("citechat.agent.chat_agent.Agent")
    async def test_stream_answer_propagates_errors(
        self,
        mock_agent_class: MagicMock,
        mock_openai_chat: MagicMock,
    ) -> None:
        from citechat.agent.chat_agent import GenerationService

        async def failing():
            yield SimpleNamespace(event="RunContent", content="Part")
            raise RuntimeError("rate limited")

        mock_agent_class.return_value.arun = MagicMock(return_value=failing())
        service = GenerationService(AgentConfig(api_key="sk-test"))

        received = []
        with pytest.raises(RuntimeError, match="rate limited"):
            async for chunk in service.stream_answer("ctx", [ChatMessage(role="user", content="q")]):
                received.append(chunk)

        assert received == ["Part"]
