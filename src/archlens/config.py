"""archlens configuration system.

Configuration is YAML-based with a few CLI overrides (--output, --map-files).
Supports environment variable substitution (${VAR}) in config files.

Configuration file discovery (in priority order):
1. CLI --config argument
2. ./.archlens/config.yaml
3. ./archlens.yaml
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from archlens.analyzers.chunker import DEFAULT_BLOCK_LANGUAGES, DEFAULT_BLOCK_THRESHOLD
from archlens.models.llm_config import LLMConfig
from archlens.sources.local import DEFAULT_MAX_FILE_BYTES

DEFAULT_PROVIDER = "ollama"
DEFAULT_MODEL = "llama3.2"
DEFAULT_OLLAMA_BASE = "http://localhost:11434"

# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass
class OutputConfig:
    """Output configuration.

    Attributes:
        path: Where `archlens analyze` writes the analysis JSON ("-" for stdout)
        indent: JSON indentation
    """

    path: str = "archlens-analysis.json"
    indent: int = 2

    def __post_init__(self) -> None:
        """Validate output configuration."""
        if self.indent < 0:
            raise ValueError(f"output.indent must be >= 0 (got {self.indent})")


@dataclass
class PipelineSettings:
    """Named limits of the analysis pipeline.

    Attributes:
        block_threshold: Files longer than this many lines are split into blocks
        block_languages: Language tags eligible for block splitting
        structure_excerpt_chars: Characters of each file sent to the structure agent
        behavior_chunk_limit: Chunks sent to the behavior agent
        semantic_chunk_limit: Chunks sent to the semantic agent
        risk_chunk_limit: Chunks sent to the risk agent (None = all)
        execution_chunk_limit: Chunks sent to the execution agent
        impact_chunk_limit: Chunks sent to the change impact agent
        map_files: Summarize every file before the structure stage
        map_excerpt_chars: Characters of each file sent to the mapping agent
        map_max_file_bytes: Larger files are not mapped
        pool_concurrency: Concurrent agent calls in the mapping pass
        max_file_bytes: Larger files are not loaded at all
        exclude_patterns: Glob patterns of relative paths to skip when loading
    """

    block_threshold: int = DEFAULT_BLOCK_THRESHOLD
    block_languages: tuple[str, ...] = tuple(sorted(DEFAULT_BLOCK_LANGUAGES))
    structure_excerpt_chars: int = 2000
    behavior_chunk_limit: int | None = 15
    semantic_chunk_limit: int | None = 15
    risk_chunk_limit: int | None = None
    execution_chunk_limit: int | None = 10
    impact_chunk_limit: int | None = 10
    map_files: bool = False
    map_excerpt_chars: int = 8000
    map_max_file_bytes: int = 100_000
    pool_concurrency: int = 3
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    exclude_patterns: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate limits."""
        if self.block_threshold < 0:
            raise ValueError(f"block_threshold must be >= 0 (got {self.block_threshold})")
        if self.pool_concurrency < 1:
            raise ValueError(f"pool_concurrency must be >= 1 (got {self.pool_concurrency})")
        for name in ("structure_excerpt_chars", "map_excerpt_chars", "map_max_file_bytes"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive (got {getattr(self, name)})")
        for name in (
            "behavior_chunk_limit",
            "semantic_chunk_limit",
            "risk_chunk_limit",
            "execution_chunk_limit",
            "impact_chunk_limit",
        ):
            value = getattr(self, name)
            if value is not None and value < 1:
                raise ValueError(f"{name} must be >= 1 or null (got {value})")


def default_llm_config() -> LLMConfig:
    """Local Ollama configuration used when no llm section is given."""
    return LLMConfig(provider=DEFAULT_PROVIDER, model=DEFAULT_MODEL, api_base=DEFAULT_OLLAMA_BASE)


@dataclass
class ArchlensConfig:
    """Top-level archlens configuration.

    Attributes:
        llm: Provider settings for every agent
        pipeline: Pipeline limits
        output: Output path and formatting
    """

    llm: LLMConfig = field(default_factory=default_llm_config)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    output: OutputConfig = field(default_factory=OutputConfig)

    # Set by load_config
    _config_path: Path | None = field(default=None, repr=False)

    @property
    def config_path(self) -> Path | None:
        """Get the path to the config file that was loaded."""
        return self._config_path


# =============================================================================
# Environment Variable Substitution
# =============================================================================

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def substitute_env_vars(value: Any) -> Any:
    """Substitute environment variables in config values.

    Supports ${VAR} syntax. Example: ${ANTHROPIC_API_KEY} -> value of
    ANTHROPIC_API_KEY.

    Args:
        value: Config value (string, dict, list, or other)

    Returns:
        Value with environment variables substituted

    Raises:
        ValueError: If a referenced variable is not set
    """
    if isinstance(value, str):

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(f"Environment variable not set: {var_name}")
            return env_value

        return _ENV_PATTERN.sub(replace_var, value)

    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [substitute_env_vars(v) for v in value]

    return value


# =============================================================================
# Config File Discovery
# =============================================================================


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find configuration file in standard locations.

    Search order:
    1. ./.archlens/config.yaml
    2. ./archlens.yaml

    Args:
        start_path: Starting directory for search (defaults to cwd)

    Returns:
        Path to config file if found, None otherwise
    """
    if start_path is None:
        start_path = Path.cwd()

    start_path = start_path.resolve()

    candidates = [
        start_path / ".archlens" / "config.yaml",
        start_path / "archlens.yaml",
    ]

    for candidate in candidates:
        if candidate.exists():
            return candidate

    return None


# =============================================================================
# Config Loading
# =============================================================================


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return section


def _load_llm(llm_data: dict[str, Any]) -> LLMConfig:
    provider = str(llm_data.get("provider", DEFAULT_PROVIDER)).lower()
    api_base = llm_data.get("api_base")
    if provider == "ollama" and not api_base:
        api_base = DEFAULT_OLLAMA_BASE
    merged = dict(llm_data)
    merged.setdefault("provider", DEFAULT_PROVIDER)
    merged.setdefault("model", DEFAULT_MODEL)
    merged["api_base"] = api_base
    return LLMConfig.from_dict(merged)


def _load_pipeline(pipeline_data: dict[str, Any]) -> PipelineSettings:
    defaults = PipelineSettings()
    values: dict[str, Any] = {}
    for name in defaults.__dataclass_fields__:
        if name not in pipeline_data:
            continue
        value = pipeline_data[name]
        if name in ("block_languages", "exclude_patterns"):
            if isinstance(value, str) or not isinstance(value, list):
                raise ValueError(f"pipeline.{name} must be a list")
            value = tuple(str(item) for item in value)
        values[name] = value
    unknown = set(pipeline_data) - set(defaults.__dataclass_fields__)
    if unknown:
        raise ValueError(f"Unknown pipeline settings: {sorted(unknown)}")
    return PipelineSettings(**values)


def load_config_from_dict(data: dict[str, Any]) -> ArchlensConfig:
    """Load configuration from a dictionary.

    Args:
        data: Configuration dictionary

    Returns:
        ArchlensConfig instance

    Raises:
        ValueError: If a value is invalid or an environment variable is missing
    """
    data = substitute_env_vars(data)

    config = ArchlensConfig()

    if "llm" in data:
        config.llm = _load_llm(_section(data, "llm"))

    if "pipeline" in data:
        config.pipeline = _load_pipeline(_section(data, "pipeline"))

    if "output" in data:
        output_data = _section(data, "output")
        config.output = OutputConfig(
            path=str(output_data.get("path", config.output.path)),
            indent=int(output_data.get("indent", config.output.indent)),
        )

    return config


def load_config(
    config_path: Path | None = None,
    auto_discover: bool = True,
) -> ArchlensConfig:
    """Load configuration from file.

    Args:
        config_path: Explicit path to config file
        auto_discover: Whether to search for config file if not specified

    Returns:
        ArchlensConfig instance

    Raises:
        FileNotFoundError: If config_path specified but doesn't exist
        ValueError: If the file content is invalid
    """
    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        found_path: Path | None = config_path
    elif auto_discover:
        found_path = find_config_file()
    else:
        found_path = None

    if found_path is not None:
        with open(found_path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {found_path} must contain a mapping")
        config = load_config_from_dict(data)
        config._config_path = found_path
    else:
        config = ArchlensConfig()

    return config


def _llm_section(
    provider: str,
    model: str,
    api_key: str | None,
    api_base: str | None,
) -> str:
    lines = [
        "llm:",
        f'  provider: "{provider}"     # ollama, claude, gemini, bedrock',
        f'  model: "{model}"',
    ]
    if provider == "ollama":
        lines.append(f'  api_base: "{api_base or DEFAULT_OLLAMA_BASE}"  # Ollama server URL')
    elif provider in {"claude", "gemini"}:
        env_var = "ANTHROPIC_API_KEY" if provider == "claude" else "GOOGLE_API_KEY"
        lines.append(f'  api_key: "{api_key or "${" + env_var + "}"}"')
    else:
        lines.append("  # AWS credentials are read from the environment or ~/.aws/credentials")
    lines.extend(
        [
            "  temperature: 0         # MUST be 0 for repeatable analyses",
            "  max_tokens: 8192",
            "  timeout: 120           # Seconds per agent call",
            "  structured_output: false  # Send JSON schemas (providers that support it)",
        ]
    )
    return "\n".join(lines)


def create_default_config(
    provider: str = DEFAULT_PROVIDER,
    model: str = DEFAULT_MODEL,
    api_key: str | None = None,
    api_base: str | None = None,
) -> str:
    """Create default configuration YAML content.

    Args:
        provider: LLM provider for the llm section
        model: Model identifier
        api_key: API key or ${VAR} reference (claude, gemini)
        api_base: Server URL (ollama)

    Returns:
        YAML string with default configuration and comments
    """
    return f'''# archlens configuration

# LLM settings for every analysis agent
# Default: Ollama (local, no code leaves the machine)
{_llm_section(provider, model, api_key, api_base)}

# Pipeline limits
pipeline:
  block_threshold: 50          # Files longer than this are split into blocks
  structure_excerpt_chars: 2000
  behavior_chunk_limit: 15
  semantic_chunk_limit: 15
  risk_chunk_limit: null       # null = every chunk
  execution_chunk_limit: 10
  impact_chunk_limit: 10
  map_files: false             # Summarize each file before the structure stage
  map_excerpt_chars: 8000
  map_max_file_bytes: 100000
  pool_concurrency: 3
  # exclude_patterns:
  #   - "tests/*"

# Output settings
output:
  path: "archlens-analysis.json"
  indent: 2
'''
