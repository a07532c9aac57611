"""Analysis pipeline orchestrator.

Runs the six analysis stages over one set of files:

    init -> chunking -> structure -> parallel reasoning (behavior, semantic,
    risk) -> execution simulation -> synthesis -> complete

Structure must be committed before execution simulation starts; synthesis
needs every earlier stage. The three reasoning agents run concurrently and
the first failure among them cancels the others. Any stage failure ends the
run with PipelineAbort; no partial analysis is returned.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Awaitable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from archlens.analyzers.chunker import Chunker
from archlens.config import ArchlensConfig, PipelineSettings
from archlens.errors import ChunkTaskFailure, PipelineAbort
from archlens.llm.client import AgentClient, AgentInvoker, create_client
from archlens.llm.prompts import (
    build_behavior_context,
    build_chat_context,
    build_execution_context,
    build_file_map_context,
    build_impact_context,
    build_risk_context,
    build_semantic_context,
    build_structure_context,
    build_synthesis_context,
    get_system_prompt,
)
from archlens.merge import merge
from archlens.models.analysis import CanonicalAnalysis
from archlens.models.events import (
    AgentEvent,
    AgentSink,
    AgentStatus,
    Stage,
    StageEvent,
    StageSink,
)
from archlens.models.files import Chunk, FileUnit
from archlens.models.schema import ResponseContract
from archlens.models.stages import (
    BEHAVIOR_CONTRACT,
    CHAT_CONTRACT,
    EXECUTION_CONTRACT,
    FILE_SUMMARY_CONTRACT,
    IMPACT_CONTRACT,
    RISK_CONTRACT,
    SEMANTIC_CONTRACT,
    STRUCTURE_CONTRACT,
    SYNTHESIS_CONTRACT,
    BehaviorResult,
    ChatAnswer,
    ExecutionResult,
    FileSummary,
    ImpactPrediction,
    RiskResult,
    SemanticResult,
    StructureResult,
    SynthesisResult,
)
from archlens.utils.best_effort import guarded
from archlens.utils.logging import get_logger
from archlens.utils.pool import run_bounded

logger = get_logger(__name__)

T = TypeVar("T")

# Agent names reported in AgentEvents
STRUCTURE_AGENT = "Structure"
BEHAVIOR_AGENT = "Behavior"
SEMANTIC_AGENT = "Semantic"
RISK_AGENT = "Risk"
EXECUTION_AGENT = "Execution"
SYNTHESIS_AGENT = "Synthesizer"
MAPPER_AGENT = "FileMapper"
IMPACT_AGENT = "Impact"
CHAT_AGENT = "Chat"


# =============================================================================
# Run state
# =============================================================================


@dataclass
class PipelineContext:
    """Accumulator owned by one run.

    Attributes:
        chunks: Chunk set of the run (never modified)
        outputs: Committed stage outputs by name
    """

    chunks: tuple[Chunk, ...]
    outputs: dict[str, Any] = field(default_factory=dict)

    def commit(self, name: str, output: Any) -> None:
        """Record a stage output.

        Raises:
            RuntimeError: If the output was already committed
        """
        if name in self.outputs:
            raise RuntimeError(f"Stage output '{name}' already committed")
        self.outputs[name] = output

    def require(self, name: str) -> Any:
        """Return a committed output.

        Raises:
            RuntimeError: If the output has not been committed
        """
        if name not in self.outputs:
            raise RuntimeError(f"Stage output '{name}' is not available yet")
        return self.outputs[name]

    @property
    def known_refs(self) -> set[str]:
        """File paths and chunk ids of the run."""
        refs = {chunk.id for chunk in self.chunks}
        refs.update(chunk.file_ref for chunk in self.chunks)
        return refs


class ProgressReporter:
    """Forwards stage and agent events to caller sinks.

    Sink failures are logged and ignored.
    """

    def __init__(
        self,
        on_stage: StageSink | None = None,
        on_agent: AgentSink | None = None,
    ) -> None:
        self._on_stage = guarded("stage progress sink", on_stage)
        self._on_agent = guarded("agent progress sink", on_agent)

    def stage(
        self,
        stage: Stage,
        current_unit: int | None = None,
        total_units: int | None = None,
        label: str | None = None,
    ) -> None:
        self._on_stage(StageEvent(stage, current_unit, total_units, label))

    def agent(self, name: str, status: AgentStatus) -> None:
        self._on_agent(AgentEvent(name, status))


async def fan_out(*calls: Awaitable[Any]) -> list[Any]:
    """Run awaitables concurrently and join on all of them.

    The first failure cancels the calls still running and is re-raised.

    Returns:
        Results in argument order
    """
    tasks = [asyncio.ensure_future(call) for call in calls]
    try:
        _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except BaseException:
        for task in tasks:
            task.cancel()
        raise

    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)

    for task in tasks:
        if task.done() and not task.cancelled() and task.exception() is not None:
            raise task.exception()  # type: ignore[misc]
    return [task.result() for task in tasks]


# =============================================================================
# Orchestrator
# =============================================================================


class AnalysisOrchestrator:
    """Runs the staged multi-agent analysis.

    Instances hold no per-run state and can be reused across runs.
    """

    def __init__(
        self,
        invoker: AgentInvoker,
        settings: PipelineSettings | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            invoker: Agent capability used for every call
            settings: Pipeline limits (defaults if None)
        """
        self.invoker = invoker
        self.settings = settings or PipelineSettings()
        self.chunker = Chunker(
            block_threshold=self.settings.block_threshold,
            block_languages=self.settings.block_languages,
        )

    async def _call(
        self,
        reporter: ProgressReporter,
        agent: str,
        prompt_key: str,
        context: str,
        contract: ResponseContract[T],
    ) -> T:
        reporter.agent(agent, AgentStatus.STARTED)
        logger.debug(f"{agent} agent: {len(context)} context chars")
        result = await self.invoker.invoke(get_system_prompt(prompt_key), context, contract)
        reporter.agent(agent, AgentStatus.COMPLETED)
        return result

    async def run(
        self,
        files: Iterable[FileUnit],
        on_stage: StageSink | None = None,
        on_agent: AgentSink | None = None,
    ) -> CanonicalAnalysis:
        """Analyze a set of files.

        Args:
            files: Files to analyze (paths must be unique)
            on_stage: Receives stage transitions and mapping progress
            on_agent: Receives agent start/completion events

        Returns:
            The canonical analysis

        Raises:
            PipelineAbort: If any stage fails; carries the failing stage
        """
        reporter = ProgressReporter(on_stage, on_agent)
        stage = Stage.INIT
        try:
            reporter.stage(stage)
            file_units = tuple(files)
            _check_unique_paths(file_units)

            stage = Stage.CHUNKING
            reporter.stage(stage)
            if not file_units:
                raise ValueError("No files to analyze")
            context = PipelineContext(chunks=tuple(self.chunker.chunk(file_units)))
            logger.structured(
                logging.INFO,
                f"Chunked {len(file_units)} files into {len(context.chunks)} chunks",
                files=len(file_units),
                chunks=len(context.chunks),
            )

            stage = Stage.STRUCTURE
            reporter.stage(stage)
            await self._run_structure(context, file_units, reporter)

            stage = Stage.PARALLEL_REASONING
            reporter.stage(stage)
            await self._run_parallel_reasoning(context, reporter)

            stage = Stage.EXECUTION_SIMULATION
            reporter.stage(stage)
            await self._run_execution(context, reporter)

            stage = Stage.SYNTHESIS
            reporter.stage(stage)
            await self._run_synthesis(context, reporter)

            analysis = merge(
                context.require("structure"),
                context.require("behavior"),
                context.require("semantic"),
                context.require("risk"),
                context.require("execution"),
                context.require("synthesis"),
                known_refs=context.known_refs,
            )
        except Exception as e:
            logger.structured(
                logging.ERROR,
                f"Pipeline failed during {stage.value}: {e}",
                stage=stage.value,
                error=type(e).__name__,
            )
            reporter.stage(Stage.ERROR)
            raise PipelineAbort(stage, e) from e

        reporter.stage(Stage.COMPLETE)
        logger.info(
            f"Analysis complete: {len(analysis.risks)} risks, "
            f"{len(analysis.execution_flow)} execution steps"
        )
        return analysis

    async def _run_structure(
        self,
        context: PipelineContext,
        files: Sequence[FileUnit],
        reporter: ProgressReporter,
    ) -> None:
        summaries: Sequence[FileSummary] = ()
        if self.settings.map_files:
            summaries = await self.map_files(context.chunks, files, reporter)

        structure: StructureResult = await self._call(
            reporter,
            STRUCTURE_AGENT,
            "structure",
            build_structure_context(
                context.chunks, self.settings.structure_excerpt_chars, summaries
            ),
            STRUCTURE_CONTRACT,
        )
        context.commit("structure", structure)

    async def map_files(
        self,
        chunks: Sequence[Chunk],
        files: Sequence[FileUnit],
        reporter: ProgressReporter,
    ) -> list[FileSummary]:
        """Summarize each whole file through the bounded pool.

        Files above ``map_max_file_bytes`` are skipped; failed summaries are
        dropped. Each finished file is reported as structure sub-progress.
        """
        sizes = {file.path: file.size or len(file.content.encode("utf-8")) for file in files}
        eligible = [
            chunk
            for chunk in chunks
            if chunk.is_full_file and sizes.get(chunk.file_ref, 0) <= self.settings.map_max_file_bytes
        ]

        async def map_one(chunk: Chunk) -> FileSummary:
            summary: FileSummary = await self.invoker.invoke(
                get_system_prompt("map_file"),
                build_file_map_context(chunk, self.settings.map_excerpt_chars),
                FILE_SUMMARY_CONTRACT,
            )
            return dataclasses.replace(summary, path=chunk.file_ref)

        def on_progress(completed: int, total: int, chunk: Chunk) -> None:
            reporter.stage(Stage.STRUCTURE, completed, total, chunk.file_ref)

        failures: list[ChunkTaskFailure] = []

        reporter.agent(MAPPER_AGENT, AgentStatus.STARTED)
        results = await run_bounded(
            self.settings.pool_concurrency,
            eligible,
            map_one,
            on_progress=on_progress,
            on_failure=failures.append,
            label=lambda chunk: chunk.file_ref,
        )
        reporter.agent(MAPPER_AGENT, AgentStatus.COMPLETED)

        summaries = [summary for summary in results if summary is not None]
        logger.info(f"Mapped {len(summaries)} of {len(eligible)} files")
        if failures:
            skipped = ", ".join(failure.label for failure in failures)
            logger.warning(f"Structure will run without summaries for: {skipped}")
        return summaries

    async def _run_parallel_reasoning(
        self,
        context: PipelineContext,
        reporter: ProgressReporter,
    ) -> None:
        settings = self.settings
        chunks = context.chunks
        behavior, semantic, risk = await fan_out(
            self._call(
                reporter,
                BEHAVIOR_AGENT,
                "behavior",
                build_behavior_context(chunks, settings.behavior_chunk_limit),
                BEHAVIOR_CONTRACT,
            ),
            self._call(
                reporter,
                SEMANTIC_AGENT,
                "semantic",
                build_semantic_context(chunks, settings.semantic_chunk_limit),
                SEMANTIC_CONTRACT,
            ),
            self._call(
                reporter,
                RISK_AGENT,
                "risk",
                build_risk_context(chunks, settings.risk_chunk_limit),
                RISK_CONTRACT,
            ),
        )
        context.commit("behavior", behavior)
        context.commit("semantic", semantic)
        context.commit("risk", risk)

    async def _run_execution(
        self,
        context: PipelineContext,
        reporter: ProgressReporter,
    ) -> None:
        structure: StructureResult = context.require("structure")
        execution: ExecutionResult = await self._call(
            reporter,
            EXECUTION_AGENT,
            "execution",
            build_execution_context(
                context.chunks,
                structure.module_summary(),
                self.settings.execution_chunk_limit,
            ),
            EXECUTION_CONTRACT,
        )
        context.commit("execution", execution)

    async def _run_synthesis(
        self,
        context: PipelineContext,
        reporter: ProgressReporter,
    ) -> None:
        structure: StructureResult = context.require("structure")
        behavior: BehaviorResult = context.require("behavior")
        semantic: SemanticResult = context.require("semantic")
        risk: RiskResult = context.require("risk")
        execution: ExecutionResult = context.require("execution")
        synthesis: SynthesisResult = await self._call(
            reporter,
            SYNTHESIS_AGENT,
            "synthesis",
            build_synthesis_context(structure, behavior, semantic, risk, execution),
            SYNTHESIS_CONTRACT,
        )
        context.commit("synthesis", synthesis)

    # -------------------------------------------------------------------------
    # Follow-up queries on a finished analysis
    # -------------------------------------------------------------------------

    async def predict_impact(
        self,
        change: str,
        analysis: CanonicalAnalysis,
        files: Iterable[FileUnit],
        on_agent: AgentSink | None = None,
    ) -> ImpactPrediction:
        """Predict the impact of a proposed change.

        Args:
            change: Description of the proposed change
            analysis: Finished analysis of the code base
            files: Current files (re-chunked for code context)
            on_agent: Receives agent start/completion events

        Returns:
            The impact prediction

        Raises:
            AgentInvocationError: If the agent call fails
            SchemaValidationError: If the response does not match the contract
        """
        if not change.strip():
            raise ValueError("Change description cannot be empty")
        chunks = self.chunker.chunk(files)
        return await self._call(
            ProgressReporter(on_agent=on_agent),
            IMPACT_AGENT,
            "impact",
            build_impact_context(change, analysis, chunks, self.settings.impact_chunk_limit),
            IMPACT_CONTRACT,
        )

    async def answer_question(
        self,
        question: str,
        analysis: CanonicalAnalysis,
        history: Sequence[tuple[str, str]] = (),
        on_agent: AgentSink | None = None,
    ) -> ChatAnswer:
        """Answer a question about a finished analysis.

        Args:
            question: The user's question
            analysis: Finished analysis to answer from
            history: Earlier (role, text) turns, oldest first
            on_agent: Receives agent start/completion events

        Returns:
            The answer

        Raises:
            AgentInvocationError: If the agent call fails
            SchemaValidationError: If the response does not match the contract
        """
        if not question.strip():
            raise ValueError("Question cannot be empty")
        return await self._call(
            ProgressReporter(on_agent=on_agent),
            CHAT_AGENT,
            "chat",
            build_chat_context(question, analysis, history),
            CHAT_CONTRACT,
        )


def _check_unique_paths(files: Sequence[FileUnit]) -> None:
    seen: set[str] = set()
    duplicates: list[str] = []
    for file in files:
        if file.path in seen:
            duplicates.append(file.path)
        seen.add(file.path)
    if duplicates:
        raise ValueError(f"Duplicate file paths: {sorted(set(duplicates))}")


def build_orchestrator(
    config: ArchlensConfig,
    invoker: AgentInvoker | None = None,
) -> AnalysisOrchestrator:
    """Create an orchestrator from one configuration value.

    Args:
        config: archlens configuration
        invoker: Agent capability to use instead of the configured LLM

    Returns:
        Configured AnalysisOrchestrator

    Raises:
        ValueError: If no invoker is given and the LLM is disabled
    """
    if invoker is None:
        invoker = AgentClient(create_client(config.llm))
    return AnalysisOrchestrator(invoker, config.pipeline)
