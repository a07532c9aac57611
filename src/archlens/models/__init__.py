"""archlens data models.

This module exports the core entities used throughout the pipeline:
- FileUnit / Chunk: Input files and the units cut from them
- Stage / StageEvent / AgentEvent: Pipeline states and progress events
- Stage results: StructureResult, BehaviorResult, SemanticResult,
  RiskResult, ExecutionResult, SynthesisResult
- CanonicalAnalysis: Merged output of a completed run
- LLMConfig: Provider configuration for the agents
"""

from archlens.models.analysis import (
    CanonicalAnalysis,
    DependencyGraph,
    ExecutionStep,
    GraphEdge,
    GraphNode,
    Risk,
    Severity,
)
from archlens.models.events import AgentEvent, AgentStatus, Stage, StageEvent
from archlens.models.files import Chunk, ChunkKind, FileUnit
from archlens.models.llm_config import LLMConfig
from archlens.models.stages import (
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

__all__ = [
    "AgentEvent",
    "AgentStatus",
    "BehaviorResult",
    "CanonicalAnalysis",
    "ChatAnswer",
    "Chunk",
    "ChunkKind",
    "DependencyGraph",
    "ExecutionResult",
    "ExecutionStep",
    "FileSummary",
    "FileUnit",
    "GraphEdge",
    "GraphNode",
    "ImpactPrediction",
    "LLMConfig",
    "Risk",
    "RiskResult",
    "SemanticResult",
    "Severity",
    "Stage",
    "StageEvent",
    "StructureResult",
    "SynthesisResult",
]
