"""LLM integration for archlens.

Provides the async LiteLLM client, the typed JSON agent client and the
agent prompts. Supports Claude, Gemini, Ollama and Bedrock providers.

Temperature is fixed at 0 for every agent call.
"""

from archlens.llm.client import (
    AgentClient,
    AgentInvoker,
    LLMClient,
    LLMResponse,
    create_client,
    decode_agent_json,
)
from archlens.llm.prompts import SYSTEM_PROMPTS, get_system_prompt
from archlens.llm.repair import repair_truncated_json, strip_code_fences
from archlens.models.llm_config import VALID_PROVIDERS, LLMConfig

__all__ = [
    "AgentClient",
    "AgentInvoker",
    "LLMClient",
    "LLMConfig",
    "LLMResponse",
    "SYSTEM_PROMPTS",
    "VALID_PROVIDERS",
    "create_client",
    "decode_agent_json",
    "get_system_prompt",
    "repair_truncated_json",
    "strip_code_fences",
]
