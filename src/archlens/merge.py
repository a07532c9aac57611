"""Merge of stage outputs into the canonical analysis.

Field provenance:
- summary, architecture narrative, tech stack, dependency graph: synthesis
- risks: risk stage only (never the synthesizer's per-node risk tags)
- execution flow: execution stage only

When known references are supplied, every graph node id and file reference
is resolved against them. Unresolvable graph nodes are dropped together with
their edges, unresolvable step files are dropped, and a risk location that
does not resolve leaves ``file_ref`` empty.
"""

import logging
from collections.abc import Iterable

from archlens.models.analysis import (
    CanonicalAnalysis,
    DependencyGraph,
    ExecutionStep,
    GraphEdge,
    GraphNode,
    Risk,
)
from archlens.models.stages import (
    BehaviorResult,
    ExecutionResult,
    RiskResult,
    SemanticResult,
    StructureResult,
    SynthesisResult,
)

logger = logging.getLogger(__name__)


class RefResolver:
    """Maps free-form references reported by agents onto known refs.

    Resolution order:
    1. Exact match
    2. Leading "./" or "/" removed
    3. Path part before ":" (e.g., "src/a.ts:12" -> "src/a.ts")
    4. Unique suffix match against known file paths ("a.ts" -> "src/a.ts")
    """

    def __init__(self, known_refs: Iterable[str]) -> None:
        self.known = frozenset(known_refs)
        self._paths = sorted(ref for ref in self.known if ":" not in ref)

    @staticmethod
    def _normalize(ref: str) -> str:
        ref = ref.strip()
        while ref.startswith("./"):
            ref = ref[2:]
        return ref.lstrip("/")

    def resolve(self, ref: str) -> str | None:
        """Return the known ref for ``ref``, or None if it cannot be resolved."""
        if not ref or not ref.strip():
            return None
        if ref in self.known:
            return ref

        normalized = self._normalize(ref)
        if normalized in self.known:
            return normalized

        path = normalized.split(":", 1)[0]
        if path in self.known:
            return path

        if not path:
            return None
        matches = [known for known in self._paths if known.endswith("/" + path)]
        if len(matches) == 1:
            return matches[0]
        return None


def _unique(values: Iterable[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        value = value.strip()
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return tuple(result)


def _merge_graph(
    synthesis: SynthesisResult,
    resolver: RefResolver | None,
) -> DependencyGraph:
    nodes: list[GraphNode] = []
    node_ids: set[str] = set()
    for node in synthesis.nodes:
        node_id = resolver.resolve(node.id) if resolver else node.id
        if node_id is None:
            logger.debug(f"Dropping graph node '{node.id}': unknown reference")
            continue
        if node_id in node_ids:
            continue
        node_ids.add(node_id)
        nodes.append(
            GraphNode(id=node_id, group=node.group, weight=node.val, details=node.details)
        )

    edges: list[GraphEdge] = []
    for link in synthesis.links:
        if resolver:
            source = resolver.resolve(link.source)
            target = resolver.resolve(link.target)
        else:
            source, target = link.source, link.target
        if source not in node_ids or target not in node_ids:
            continue
        edge = GraphEdge(source=source, target=target, kind=link.type)
        if edge not in edges:
            edges.append(edge)

    return DependencyGraph(nodes=tuple(nodes), edges=tuple(edges))


def _merge_risks(risk: RiskResult, resolver: RefResolver | None) -> tuple[Risk, ...]:
    risks: list[Risk] = []
    for finding in risk.risks:
        if resolver:
            file_ref = resolver.resolve(finding.location)
        else:
            file_ref = finding.location or None
        risks.append(
            Risk(
                id=finding.id,
                title=finding.id,
                description=finding.description,
                severity=finding.severity,
                location=finding.location,
                mitigation=finding.mitigation,
                file_ref=file_ref,
            )
        )
    return tuple(risks)


def _merge_steps(
    execution: ExecutionResult,
    resolver: RefResolver | None,
) -> tuple[ExecutionStep, ...]:
    steps: list[ExecutionStep] = []
    for trace in execution.steps:
        if resolver:
            resolved = (resolver.resolve(name) for name in trace.files)
            files = _unique(ref for ref in resolved if ref is not None)
        else:
            files = trace.files
        steps.append(
            ExecutionStep(
                step=trace.step,
                location=trace.location,
                action=trace.action or trace.desc,
                state_changes=trace.state_changes,
                narrative=trace.narrative,
                files_involved=files,
                approx_time_ms=trace.approx_time_ms,
            )
        )
    return tuple(steps)


def merge(
    structure: StructureResult,
    behavior: BehaviorResult,
    semantic: SemanticResult,
    risk: RiskResult,
    execution: ExecutionResult,
    synthesis: SynthesisResult,
    known_refs: Iterable[str] | None = None,
) -> CanonicalAnalysis:
    """Combine every stage output into one CanonicalAnalysis.

    Pure and deterministic. The structure, behavior and semantic outputs
    reach the result only through the synthesizer, which already saw them.

    Args:
        structure: Structure stage output
        behavior: Behavior stage output
        semantic: Semantic stage output
        risk: Risk stage output (sole source of risks)
        execution: Execution stage output (sole source of the flow)
        synthesis: Synthesis stage output
        known_refs: File paths and chunk ids that references must resolve to

    Returns:
        The canonical analysis
    """
    resolver = RefResolver(known_refs) if known_refs is not None else None
    analysis = CanonicalAnalysis(
        summary=synthesis.summary,
        architecture_narrative=synthesis.architecture,
        tech_stack=_unique(synthesis.tech_stack),
        dependency_graph=_merge_graph(synthesis, resolver),
        risks=_merge_risks(risk, resolver),
        execution_flow=_merge_steps(execution, resolver),
    )
    logger.debug(
        f"Merged analysis: {len(analysis.dependency_graph.nodes)} nodes, "
        f"{len(analysis.risks)} risks, {len(analysis.execution_flow)} steps "
        f"({len(structure.modules)} modules, {len(behavior.call_graph)} calls, "
        f"{len(semantic.apis)} APIs reported upstream)"
    )
    return analysis
