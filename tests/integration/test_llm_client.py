"""Integration tests for the LLM client and the JSON agent client.

LiteLLM is mocked, so no provider is contacted. The tests cover request
construction, error translation, fence stripping, truncated-JSON repair and
contract validation.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import litellm
import pytest

from archlens.errors import AgentInvocationError, SchemaValidationError
from archlens.llm.client import (
    AgentClient,
    LLMClient,
    LLMResponse,
    create_client,
    decode_agent_json,
)
from archlens.models.analysis import Severity
from archlens.models.llm_config import LLMConfig
from archlens.models.stages import CHAT_CONTRACT, RISK_CONTRACT


def _response(content: str | None, finish_reason: str = "stop") -> MagicMock:
    """Create a mock LiteLLM response."""
    mock_response = MagicMock()
    mock_response.choices = [
        MagicMock(message=MagicMock(content=content), finish_reason=finish_reason)
    ]
    mock_response.model = "llama3.2"
    mock_response.usage = MagicMock(prompt_tokens=10, completion_tokens=5, total_tokens=15)
    return mock_response


@pytest.fixture
def ollama_config() -> LLMConfig:
    return LLMConfig(provider="ollama", model="llama3.2", api_base="http://localhost:11434")


@pytest.fixture
def claude_config() -> LLMConfig:
    return LLMConfig(provider="claude", model="claude-sonnet-4", api_key="test-key")


class TestLLMClientCreation:
    """Tests for LLMClient creation."""

    def test_create_client(self, ollama_config: LLMConfig) -> None:
        """Test creating a client keeps the config."""
        assert create_client(ollama_config).config is ollama_config

    def test_create_client_disabled_raises_error(self) -> None:
        """Test creating client with disabled config raises error."""
        config = LLMConfig(provider="bedrock", model="m", enabled=False)

        with pytest.raises(ValueError, match="LLM is disabled"):
            create_client(config)


class TestLLMClientCompletion:
    """Tests for LLMClient.complete."""

    @pytest.mark.asyncio
    async def test_request_parameters(self, ollama_config: LLMConfig) -> None:
        """Test the request carries model, messages and deterministic sampling."""
        client = LLMClient(ollama_config)

        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_call:
            mock_call.return_value = _response("hi")
            result = await client.complete(
                "Hello!", system_prompt="Be brief", response_format={"type": "json_object"}
            )

        kwargs = mock_call.call_args.kwargs
        assert kwargs["model"] == "ollama/llama3.2"
        assert kwargs["messages"] == [
            {"role": "system", "content": "Be brief"},
            {"role": "user", "content": "Hello!"},
        ]
        assert kwargs["temperature"] == 0
        assert kwargs["top_k"] == 1
        assert kwargs["api_base"] == "http://localhost:11434"
        assert kwargs["timeout"] == 120.0
        assert kwargs["max_tokens"] == 8192
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "api_key" not in kwargs
        assert result == LLMResponse(
            content="hi",
            model="llama3.2",
            usage={"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
            finish_reason="stop",
        )

    @pytest.mark.asyncio
    async def test_cloud_request_uses_key(self, claude_config: LLMConfig) -> None:
        """Test hosted providers send their key and no api_base."""
        client = LLMClient(claude_config)

        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_call:
            mock_call.return_value = _response("ok")
            await client.complete("Hello!", max_tokens=50)

        kwargs = mock_call.call_args.kwargs
        assert kwargs["model"] == "anthropic/claude-sonnet-4"
        assert kwargs["api_key"] == "test-key"
        assert kwargs["max_tokens"] == 50
        assert "api_base" not in kwargs
        assert "response_format" not in kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "Hello!"}]

    @pytest.mark.asyncio
    async def test_bedrock_has_no_top_k(self) -> None:
        """Test Bedrock requests omit top_k."""
        client = LLMClient(LLMConfig(provider="bedrock", model="m"))

        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_call:
            mock_call.return_value = _response("ok")
            await client.complete("Hello!")

        assert "top_k" not in mock_call.call_args.kwargs

    @pytest.mark.asyncio
    async def test_empty_content(self, ollama_config: LLMConfig) -> None:
        """Test a null message content reads as empty text."""
        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_call:
            mock_call.return_value = _response(None, finish_reason="length")
            result = await LLMClient(ollama_config).complete("Hello!")

        assert result.content == ""
        assert result.truncated

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error", "match"),
        [
            (
                litellm.exceptions.AuthenticationError(
                    message="Invalid API key", llm_provider="anthropic", model="claude-sonnet-4"
                ),
                "Authentication failed for claude",
            ),
            (
                litellm.exceptions.RateLimitError(
                    message="Slow down", llm_provider="anthropic", model="claude-sonnet-4"
                ),
                "Rate limit exceeded for claude",
            ),
            (
                litellm.exceptions.Timeout(
                    message="Too slow", model="claude-sonnet-4", llm_provider="anthropic"
                ),
                "Timed out after 120.0s",
            ),
            (
                litellm.exceptions.APIConnectionError(
                    message="Connection refused", llm_provider="anthropic", model="claude-sonnet-4"
                ),
                "Connection failed to claude",
            ),
            (Exception("Unknown error"), "LLM completion failed"),
        ],
    )
    async def test_errors_translated(
        self, claude_config: LLMConfig, error: Exception, match: str
    ) -> None:
        """Test provider errors become AgentInvocationError tagged with the agent."""
        client = LLMClient(claude_config)

        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_call:
            mock_call.side_effect = error
            with pytest.raises(AgentInvocationError, match=match) as exc_info:
                await client.complete("Hello!", agent="risk")

        assert exc_info.value.agent == "risk"
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_check_available(self, ollama_config: LLMConfig) -> None:
        """Test the availability probe reports success and failure."""
        client = LLMClient(ollama_config)

        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_call:
            mock_call.return_value = _response("ok")
            assert await client.check_available() is True

            mock_call.side_effect = Exception("down")
            assert await client.check_available() is False


class TestDecodeAgentJson:
    """Tests for decode_agent_json."""

    def test_plain_json(self) -> None:
        """Test valid JSON decodes directly."""
        assert decode_agent_json('{"answer": "x"}', "chat") == {"answer": "x"}

    def test_fenced_json(self) -> None:
        """Test Markdown fences are stripped."""
        assert decode_agent_json('```json\n{"answer": "x"}\n```', "chat") == {"answer": "x"}

    def test_truncated_json_repaired(self) -> None:
        """Test a truncated response is repaired once."""
        assert decode_agent_json('{"risks": [{"id": "r1"', "risk") == {"risks": [{"id": "r1"}]}

    def test_empty_response(self) -> None:
        """Test an empty response is a schema violation."""
        with pytest.raises(SchemaValidationError, match="empty response"):
            decode_agent_json("```json\n```", "chat")

    def test_unrepairable(self) -> None:
        """Test prose is rejected with the raw text attached."""
        with pytest.raises(SchemaValidationError, match="invalid JSON after repair") as exc_info:
            decode_agent_json("I cannot help with that.", "chat")

        assert exc_info.value.raw_response == "I cannot help with that."


class TestAgentClient:
    """Tests for typed agent calls."""

    @pytest.mark.asyncio
    async def test_json_mode_by_default(self, ollama_config: LLMConfig) -> None:
        """Test plain JSON mode is requested unless structured output is on."""
        agent = AgentClient(LLMClient(ollama_config))

        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_call:
            mock_call.return_value = _response('{"answer": "42"}')
            answer = await agent.invoke("system", "context", CHAT_CONTRACT)

        assert answer.answer == "42"
        assert mock_call.call_args.kwargs["response_format"] == {"type": "json_object"}
        assert mock_call.call_args.kwargs["messages"][1] == {"role": "user", "content": "context"}

    @pytest.mark.asyncio
    async def test_structured_output_sends_schema(self) -> None:
        """Test structured output sends the contract schema."""
        config = LLMConfig(
            provider="gemini", model="gemini-1.5-pro", api_key="k", structured_output=True
        )
        agent = AgentClient(LLMClient(config))

        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_call:
            mock_call.return_value = _response('{"risks": []}')
            await agent.invoke("system", "context", RISK_CONTRACT)

        response_format = mock_call.call_args.kwargs["response_format"]
        assert response_format["type"] == "json_schema"
        assert response_format["json_schema"]["name"] == "risk"
        assert response_format["json_schema"]["schema"] == RISK_CONTRACT.schema

    @pytest.mark.asyncio
    async def test_truncated_response_parsed(self, ollama_config: LLMConfig) -> None:
        """Test a length-truncated response is repaired and validated."""
        agent = AgentClient(LLMClient(ollama_config))
        content = '```json\n{"risks": [{"id": "r1", "severity": "HIGH", "description": "cut'

        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_call:
            mock_call.return_value = _response(content, finish_reason="length")
            result = await agent.invoke("system", "context", RISK_CONTRACT)

        assert result.risks[0].severity is Severity.HIGH
        assert result.risks[0].description == "cut"

    @pytest.mark.asyncio
    async def test_contract_violation_keeps_raw_response(self, ollama_config: LLMConfig) -> None:
        """Test schema errors carry the offending response text."""
        agent = AgentClient(LLMClient(ollama_config))

        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_call:
            mock_call.return_value = _response('{"risks": "none"}')
            with pytest.raises(SchemaValidationError) as exc_info:
                await agent.invoke("system", "context", RISK_CONTRACT)

        assert exc_info.value.contract == "risk"
        assert "$.risks: expected array, got string" in exc_info.value.message
        assert exc_info.value.raw_response == '{"risks": "none"}'

    @pytest.mark.asyncio
    async def test_invocation_error_propagates(self, ollama_config: LLMConfig) -> None:
        """Test transport failures surface as AgentInvocationError for the contract."""
        agent = AgentClient(LLMClient(ollama_config))

        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_call:
            mock_call.side_effect = Exception("boom")
            with pytest.raises(AgentInvocationError) as exc_info:
                await agent.invoke("system", "context", CHAT_CONTRACT)

        assert exc_info.value.agent == "chat"
