"""Async LLM client wrapper using LiteLLM, and the JSON agent client on top.

LLMClient sends one chat completion to the configured provider. AgentClient
turns that into a typed agent call: it requests JSON, strips code fences,
parses (repairing truncated output once), and validates the result against
a response contract.

Temperature is fixed at 0 so repeated runs stay comparable.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

import litellm

from archlens.errors import AgentInvocationError, SchemaValidationError
from archlens.llm.repair import repair_truncated_json, strip_code_fences
from archlens.models.llm_config import LLMConfig
from archlens.models.schema import ResponseContract

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class LLMResponse:
    """Response from LLM completion.

    Attributes:
        content: Generated text content
        model: Model that generated the response
        usage: Token usage statistics
        finish_reason: Reason for completion (stop, length, etc.)
    """

    content: str
    model: str
    usage: dict[str, int]
    finish_reason: str | None = None

    @property
    def truncated(self) -> bool:
        """True when the provider stopped at the token limit."""
        return self.finish_reason == "length"


class LLMClient:
    """Async LLM client using LiteLLM.

    Supports multiple providers through a single interface:
    - Claude (Anthropic)
    - Gemini (Google)
    - Ollama (local)
    - Bedrock (AWS)

    Credentials travel with each call; no LiteLLM module state is touched.
    """

    def __init__(self, config: LLMConfig) -> None:
        """Initialize LLM client with configuration.

        Args:
            config: LLM configuration with provider, model, and credentials
        """
        self.config = config

    def _completion_kwargs(
        self,
        messages: list[dict[str, str]],
        max_tokens: int | None,
        response_format: dict[str, Any] | None,
    ) -> dict[str, Any]:
        completion_kwargs: dict[str, Any] = {
            "model": self.config.get_litellm_model_name(),
            "messages": messages,
            "temperature": 0,
            "max_tokens": max_tokens or self.config.max_tokens,
            "timeout": self.config.timeout,
        }
        if self.config.api_key:
            completion_kwargs["api_key"] = self.config.api_key
        if self.config.provider == "ollama":
            completion_kwargs["api_base"] = self.config.api_base
        if self.config.provider in {"ollama", "claude", "gemini"}:
            completion_kwargs["top_k"] = 1
        if response_format is not None:
            completion_kwargs["response_format"] = response_format
        return completion_kwargs

    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int | None = None,
        response_format: dict[str, Any] | None = None,
        agent: str = "llm",
    ) -> LLMResponse:
        """Generate a completion from the LLM.

        Args:
            prompt: User prompt for the LLM
            system_prompt: Optional system prompt
            max_tokens: Override max_tokens from config
            response_format: Provider response format (JSON mode or schema)
            agent: Name reported in errors

        Returns:
            LLMResponse with generated content

        Raises:
            AgentInvocationError: If the provider call fails
        """
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        provider = self.config.provider
        try:
            response = await litellm.acompletion(
                **self._completion_kwargs(messages, max_tokens, response_format)
            )
        except litellm.exceptions.AuthenticationError as e:
            raise AgentInvocationError(agent, f"Authentication failed for {provider}: {e}") from e
        except litellm.exceptions.RateLimitError as e:
            raise AgentInvocationError(agent, f"Rate limit exceeded for {provider}: {e}") from e
        except litellm.exceptions.Timeout as e:
            raise AgentInvocationError(
                agent, f"Timed out after {self.config.timeout}s waiting for {provider}: {e}"
            ) from e
        except litellm.exceptions.APIConnectionError as e:
            raise AgentInvocationError(agent, f"Connection failed to {provider}: {e}") from e
        except Exception as e:
            raise AgentInvocationError(agent, f"LLM completion failed: {e}") from e

        choice = response.choices[0]
        usage: dict[str, int] = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens or 0,
                "completion_tokens": response.usage.completion_tokens or 0,
                "total_tokens": response.usage.total_tokens or 0,
            }

        return LLMResponse(
            content=choice.message.content or "",
            model=response.model or self.config.model,
            usage=usage,
            finish_reason=choice.finish_reason,
        )

    async def check_available(self) -> bool:
        """Check if the LLM provider is available.

        Performs a minimal API call to verify connectivity.

        Returns:
            True if provider is reachable and credentials are valid
        """
        try:
            await self.complete("Say 'ok'", max_tokens=10, agent="check")
            return True
        except AgentInvocationError as e:
            logger.debug(f"Availability check failed: {e}")
            return False


def create_client(config: LLMConfig) -> LLMClient:
    """Create an LLM client from configuration.

    Args:
        config: LLM configuration

    Returns:
        Configured LLMClient instance

    Raises:
        ValueError: If LLM is disabled in config
    """
    if not config.enabled:
        raise ValueError("LLM is disabled in configuration")

    return LLMClient(config)


class AgentInvoker(Protocol):
    """Anything that can run one agent call against a response contract."""

    async def invoke(
        self,
        system_prompt: str,
        context: str,
        contract: ResponseContract[T],
    ) -> T: ...


def decode_agent_json(text: str, contract: str) -> Any:
    """Decode agent output, repairing truncated JSON once.

    Args:
        text: Raw response text
        contract: Contract name used in errors

    Returns:
        Decoded JSON value

    Raises:
        SchemaValidationError: If the text is empty or still invalid after repair
    """
    cleaned = strip_code_fences(text)
    if not cleaned:
        raise SchemaValidationError(contract, "empty response", raw_response=text)

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as first_error:
        logger.debug(f"Response for '{contract}' is not valid JSON ({first_error}); repairing")

    repaired = repair_truncated_json(cleaned)
    try:
        return json.loads(repaired)
    except json.JSONDecodeError as e:
        raise SchemaValidationError(
            contract, f"invalid JSON after repair: {e}", raw_response=text
        ) from e


class AgentClient:
    """Typed JSON agent calls over an LLMClient.

    Attributes:
        llm: Underlying LLM client
        structured_output: Send the contract schema as a json_schema
            response format rather than plain JSON mode
    """

    def __init__(self, llm: LLMClient, structured_output: bool | None = None) -> None:
        self.llm = llm
        if structured_output is None:
            structured_output = llm.config.structured_output
        self.structured_output = structured_output

    def _response_format(self, contract: ResponseContract[Any]) -> dict[str, Any]:
        if self.structured_output:
            return {
                "type": "json_schema",
                "json_schema": {"name": contract.name, "schema": contract.schema},
            }
        return {"type": "json_object"}

    async def invoke(
        self,
        system_prompt: str,
        context: str,
        contract: ResponseContract[T],
    ) -> T:
        """Run one agent call and return the typed result.

        Args:
            system_prompt: Agent instruction
            context: Context payload for the agent
            contract: Expected response shape

        Returns:
            Parsed result of the contract's type

        Raises:
            AgentInvocationError: On transport, auth or timeout failure
            SchemaValidationError: If the response is not conforming JSON
        """
        response = await self.llm.complete(
            context,
            system_prompt=system_prompt,
            response_format=self._response_format(contract),
            agent=contract.name,
        )
        if response.truncated:
            logger.warning(f"Response for '{contract.name}' hit the token limit")

        data = decode_agent_json(response.content, contract.name)
        try:
            return contract.parse(data)
        except SchemaValidationError as e:
            raise SchemaValidationError(
                e.contract, e.message, raw_response=response.content
            ) from e
