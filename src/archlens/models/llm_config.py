"""LLM configuration entity for archlens.

Describes the provider that backs every analysis agent.
Supported providers: Claude, Gemini, Ollama and Bedrock (all via LiteLLM).
"""

from dataclasses import dataclass, field
from typing import Any

VALID_PROVIDERS = frozenset({"claude", "gemini", "ollama", "bedrock"})

# LiteLLM routing prefix per provider
_LITELLM_PREFIXES = {
    "claude": "anthropic",
    "gemini": "gemini",
    "ollama": "ollama",
    "bedrock": "bedrock",
}


@dataclass
class LLMConfig:
    """Configuration for the agent LLM provider.

    Attributes:
        provider: LLM provider (claude, gemini, ollama, bedrock)
        model: Model identifier (e.g., "claude-sonnet-4", "llama3.2")
        api_key: API key (not required for Ollama or Bedrock)
        api_base: API base URL (required for Ollama)
        temperature: Sampling temperature (must be 0 so runs are repeatable)
        max_tokens: Maximum response tokens per agent call
        timeout: Per-call timeout in seconds
        structured_output: Send the contract's JSON schema to the provider
            instead of requesting a bare JSON object
        enabled: Whether agent calls are allowed at all
    """

    provider: str
    model: str
    api_key: str | None = None
    api_base: str | None = None
    temperature: float = field(default=0.0)
    max_tokens: int = field(default=8192)
    timeout: float = field(default=120.0)
    structured_output: bool = field(default=False)
    enabled: bool = field(default=True)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self.provider = self.provider.lower().strip()

        if self.provider not in VALID_PROVIDERS:
            raise ValueError(
                f"Invalid provider '{self.provider}'. "
                f"Must be one of: {sorted(VALID_PROVIDERS)}"
            )

        if not self.model or not self.model.strip():
            raise ValueError("Model identifier cannot be empty")
        self.model = self.model.strip()

        if self.temperature != 0.0:
            raise ValueError(
                f"Temperature must be 0 for repeatable analyses. Got: {self.temperature}"
            )

        if self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive. Got: {self.max_tokens}")

        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive. Got: {self.timeout}")

        if self.provider == "ollama":
            if not self.api_base:
                raise ValueError("api_base is required for Ollama provider")
        elif self.provider in {"claude", "gemini"}:
            # Bedrock reads AWS credentials from the environment instead
            if not self.api_key:
                raise ValueError(f"api_key is required for {self.provider} provider")

    def validate(self) -> list[str]:
        """Validate configuration and return warnings.

        Returns:
            List of warning messages (empty if no warnings)
        """
        warnings: list[str] = []

        if self.max_tokens < 2000:
            warnings.append(
                f"max_tokens is set to {self.max_tokens}; agent responses will likely "
                "be truncated and rely on JSON repair"
            )

        if (
            self.provider == "ollama"
            and self.api_base
            and not self.api_base.startswith(("http://", "https://"))
        ):
            warnings.append(
                f"api_base '{self.api_base}' does not start with http:// or https://"
            )

        return warnings

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "provider": self.provider,
            "model": self.model,
            "api_key": self.api_key,
            "api_base": self.api_base,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "timeout": self.timeout,
            "structured_output": self.structured_output,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LLMConfig":
        """Create LLMConfig from dictionary.

        Args:
            data: Dictionary with configuration values

        Returns:
            LLMConfig instance
        """
        return cls(
            provider=str(data.get("provider", "")),
            model=str(data.get("model", "")),
            api_key=data.get("api_key") or None,
            api_base=data.get("api_base") or None,
            temperature=float(data.get("temperature", 0.0)),
            max_tokens=int(data.get("max_tokens", 8192)),
            timeout=float(data.get("timeout", 120.0)),
            structured_output=bool(data.get("structured_output", False)),
            enabled=bool(data.get("enabled", True)),
        )

    def get_litellm_model_name(self) -> str:
        """Get the model name in LiteLLM "<prefix>/<model>" format."""
        return f"{_LITELLM_PREFIXES[self.provider]}/{self.model}"
