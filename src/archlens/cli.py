"""archlens CLI interface.

Commands:
- analyze: Run the multi-agent analysis over a directory
- impact: Predict the impact of a change using a saved analysis
- ask: Ask a question about a saved analysis
- check: Verify the configured LLM provider is reachable
- init: Write a default configuration file

Global options:
- --config: Path to configuration file
- --verbose: Enable verbose output with timestamps
- --quiet: Suppress info messages
- --ci: JSON log lines for CI/CD
- --version: Show version and exit
"""

import asyncio
import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import typer

from archlens import __version__
from archlens.config import (
    DEFAULT_MODEL,
    DEFAULT_OLLAMA_BASE,
    ArchlensConfig,
    create_default_config,
    load_config,
)
from archlens.errors import ArchlensError, PipelineAbort, SourceImportError
from archlens.models.analysis import CanonicalAnalysis
from archlens.models.events import AgentEvent, AgentStatus, StageEvent
from archlens.models.files import FileUnit
from archlens.models.llm_config import VALID_PROVIDERS
from archlens.utils.logging import configure_from_cli, get_logger

if TYPE_CHECKING:
    from archlens.pipeline import AnalysisOrchestrator

app = typer.Typer(
    name="archlens",
    help="Multi-agent architectural analysis of source code",
    add_completion=False,
    no_args_is_help=True,
)

# Global state
_config: ArchlensConfig | None = None
_logger = get_logger("archlens.cli")

# Model suggested by `init` for each provider
_DEFAULT_MODELS = {
    "ollama": DEFAULT_MODEL,
    "claude": "claude-sonnet-4-20250514",
    "gemini": "gemini-1.5-pro",
    "bedrock": "anthropic.claude-3-sonnet-20240229-v1:0",
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"archlens {__version__}")
        raise typer.Exit()


def _get_config() -> ArchlensConfig:
    return _config if _config is not None else ArchlensConfig()


@app.callback()
def main(
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output with timestamps",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress info messages (warnings and errors only)",
        ),
    ] = False,
    ci: Annotated[
        bool,
        typer.Option(
            "--ci",
            help="Enable CI mode with JSON log output",
        ),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """archlens - Multi-agent architectural analysis.

    Splits a code base into chunks, runs specialized LLM agents over them and
    merges their findings into one architectural analysis.
    """
    global _config

    configure_from_cli(verbose=verbose, quiet=quiet, ci=ci)

    try:
        _config = load_config(config_path=config)
        if _config.config_path:
            _logger.debug(f"Loaded config from: {_config.config_path}")
    except FileNotFoundError as e:
        _logger.error(str(e))
        raise typer.Exit(1)
    except Exception as e:
        _logger.error(f"Failed to load config: {e}")
        raise typer.Exit(1)


# =============================================================================
# Shared helpers
# =============================================================================


def _log_stage(event: StageEvent) -> None:
    if event.is_transition:
        _logger.info(f"Stage: {event.stage.value}")
    else:
        _logger.debug(
            f"  [{event.current_unit}/{event.total_units}] {event.stage.value}: {event.label}"
        )


def _log_agent(event: AgentEvent) -> None:
    verb = "started" if event.status is AgentStatus.STARTED else "finished"
    _logger.debug(f"Agent {event.agent} {verb}")


def _load_files(repo: Path) -> list[FileUnit]:
    from archlens.sources.local import load_directory

    settings = _get_config().pipeline
    try:
        return load_directory(
            repo,
            exclude_patterns=settings.exclude_patterns,
            max_file_bytes=settings.max_file_bytes,
        )
    except SourceImportError as e:
        _logger.error(str(e))
        raise typer.Exit(1)


def _load_analysis(path: Path) -> CanonicalAnalysis:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return CanonicalAnalysis.from_dict(data)
    except (OSError, json.JSONDecodeError, ArchlensError) as e:
        _logger.error(f"Cannot read analysis {path}: {e}")
        raise typer.Exit(1)


def _build_orchestrator(config: ArchlensConfig) -> "AnalysisOrchestrator":
    from archlens.pipeline import build_orchestrator

    try:
        return build_orchestrator(config)
    except ValueError as e:
        _logger.error(str(e))
        raise typer.Exit(1)


def _dump(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=_get_config().output.indent or None)


# =============================================================================
# analyze command
# =============================================================================


@app.command()
def analyze(
    repo: Annotated[
        Path,
        typer.Argument(
            help="Directory to analyze",
            exists=True,
            file_okay=False,
        ),
    ] = Path("."),
    output: Annotated[
        str | None,
        typer.Option(
            "--output",
            "-o",
            help="Output JSON path, or '-' for stdout (overrides config)",
        ),
    ] = None,
    map_files: Annotated[
        bool | None,
        typer.Option(
            "--map-files/--no-map-files",
            help="Summarize each file before the structure stage (overrides config)",
        ),
    ] = None,
) -> None:
    """Analyze a directory and write the canonical analysis as JSON.

    Exit codes:
        0: Analysis written
        1: Loading, configuration or any pipeline stage failed
    """
    config = _get_config()
    if map_files is not None:
        config.pipeline.map_files = map_files

    repo_path = repo.resolve()
    _logger.info(f"Analyzing: {repo_path}")
    files = _load_files(repo_path)
    orchestrator = _build_orchestrator(config)

    try:
        analysis = asyncio.run(
            orchestrator.run(files, on_stage=_log_stage, on_agent=_log_agent)
        )
    except PipelineAbort as e:
        _logger.error(str(e))
        raise typer.Exit(1)

    rendered = _dump(analysis.to_dict())
    output_path = output or config.output.path
    if output_path == "-":
        typer.echo(rendered)
    else:
        target = Path(output_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(rendered + "\n", encoding="utf-8")
        typer.echo(f"Analysis written to: {target}")
        typer.echo(
            f"  {len(analysis.risks)} risks, "
            f"{len(analysis.dependency_graph.nodes)} graph nodes, "
            f"{len(analysis.execution_flow)} execution steps"
        )


# =============================================================================
# impact / ask commands
# =============================================================================


@app.command()
def impact(
    analysis_file: Annotated[
        Path,
        typer.Argument(help="Saved analysis JSON", exists=True, dir_okay=False),
    ],
    change: Annotated[str, typer.Argument(help="Description of the proposed change")],
    repo: Annotated[
        Path,
        typer.Option(
            "--repo",
            "-r",
            help="Directory the analysis was made from",
            exists=True,
            file_okay=False,
        ),
    ] = Path("."),
) -> None:
    """Predict which files and tests a proposed change affects."""
    config = _get_config()
    analysis = _load_analysis(analysis_file)
    files = _load_files(repo.resolve())
    orchestrator = _build_orchestrator(config)

    try:
        prediction = asyncio.run(
            orchestrator.predict_impact(change, analysis, files, on_agent=_log_agent)
        )
    except (ArchlensError, ValueError) as e:
        _logger.error(f"Impact prediction failed: {e}")
        raise typer.Exit(1)

    typer.echo(_dump(prediction.to_dict()))


@app.command()
def ask(
    analysis_file: Annotated[
        Path,
        typer.Argument(help="Saved analysis JSON", exists=True, dir_okay=False),
    ],
    question: Annotated[str, typer.Argument(help="Question about the code base")],
) -> None:
    """Ask a question about a saved analysis."""
    config = _get_config()
    analysis = _load_analysis(analysis_file)
    orchestrator = _build_orchestrator(config)

    try:
        answer = asyncio.run(
            orchestrator.answer_question(question, analysis, on_agent=_log_agent)
        )
    except (ArchlensError, ValueError) as e:
        _logger.error(f"Question failed: {e}")
        raise typer.Exit(1)

    typer.echo(answer.answer)


# =============================================================================
# check command
# =============================================================================


@app.command()
def check() -> None:
    """Verify the configured LLM provider is reachable.

    Exit codes:
        0: Provider answered
        1: Provider disabled or unreachable
    """
    from archlens.llm.client import create_client

    llm_config = _get_config().llm
    for warning in llm_config.validate():
        _logger.warning(warning)

    try:
        client = create_client(llm_config)
    except ValueError as e:
        _logger.error(str(e))
        raise typer.Exit(1)

    target = f"{llm_config.provider}/{llm_config.model}"
    if asyncio.run(client.check_available()):
        typer.echo(f"LLM available: {target}")
        raise typer.Exit(0)

    typer.echo(f"LLM unavailable: {target}")
    raise typer.Exit(1)


# =============================================================================
# init command
# =============================================================================


@app.command()
def init(
    provider: Annotated[
        str,
        typer.Option("--provider", "-p", help="LLM provider: ollama, claude, gemini, bedrock"),
    ] = "ollama",
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Model identifier (provider default if omitted)"),
    ] = None,
    api_base: Annotated[
        str,
        typer.Option("--api-base", help="Ollama server URL"),
    ] = DEFAULT_OLLAMA_BASE,
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite existing config"),
    ] = False,
) -> None:
    """Write a default configuration to .archlens/config.yaml."""
    provider = provider.lower().strip()
    if provider not in VALID_PROVIDERS:
        _logger.error(f"Invalid provider: {provider}. Valid: {sorted(VALID_PROVIDERS)}")
        raise typer.Exit(1)

    config_dir = Path(".archlens")
    config_file = config_dir / "config.yaml"
    if config_file.exists() and not force:
        _logger.error(f"Config already exists: {config_file}")
        _logger.info("Use --force to overwrite")
        raise typer.Exit(1)

    config_dir.mkdir(exist_ok=True)
    config_file.write_text(
        create_default_config(
            provider=provider,
            model=model or _DEFAULT_MODELS[provider],
            api_base=api_base,
        )
    )
    _logger.info(f"Created config: {config_file}")
    typer.echo(f"archlens configuration initialized: {config_file}")
    raise typer.Exit(0)


if __name__ == "__main__":
    app()
