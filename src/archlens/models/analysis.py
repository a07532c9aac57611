"""Canonical analysis entities.

This module contains the terminal artifact of a pipeline run:
- Severity: Totally ordered risk severity (low < medium < high < critical)
- GraphNode / GraphEdge / DependencyGraph: System topology
- Risk: One itemized risk, mapped from the risk agent
- ExecutionStep: One step of the simulated execution flow
- CanonicalAnalysis: Merged result handed back to the caller
"""

from dataclasses import dataclass, field
from enum import Enum
from functools import total_ordering
from typing import Any

from archlens.errors import SchemaValidationError
from archlens.models.schema import FieldReader


@total_ordering
class Severity(Enum):
    """Risk severity, declared from least to most severe."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Position in the total order (0 = low)."""
        return list(type(self)).index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    @classmethod
    def parse(cls, value: str) -> "Severity":
        """Parse a severity label case-insensitively.

        Raises:
            ValueError: If the label is not a known severity
        """
        normalized = value.strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(
            f"Invalid severity '{value}'. Must be one of: {[m.value for m in cls]}"
        )


@dataclass(frozen=True)
class GraphNode:
    """Node in the dependency graph.

    Attributes:
        id: File path or chunk id the node stands for
        group: Node category (file, module, external)
        weight: Relative importance used for sizing
        details: Short description
    """

    id: str
    group: str = "file"
    weight: float = 1.0
    details: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "group": self.group,
            "weight": self.weight,
            "details": self.details,
        }


@dataclass(frozen=True)
class GraphEdge:
    """Directed edge between two graph nodes."""

    source: str
    target: str
    kind: str = "import"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"source": self.source, "target": self.target, "kind": self.kind}


@dataclass(frozen=True)
class DependencyGraph:
    """System topology as nodes and edges."""

    nodes: tuple[GraphNode, ...] = ()
    edges: tuple[GraphEdge, ...] = ()

    @property
    def node_ids(self) -> set[str]:
        """Ids of all nodes."""
        return {node.id for node in self.nodes}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }


@dataclass(frozen=True)
class Risk:
    """Single risk in the canonical analysis.

    Attributes:
        id: Identifier assigned by the risk agent
        title: Display title
        description: What the risk is
        severity: Severity in the total order
        location: Free-text location reported by the agent
        mitigation: Suggested mitigations
        file_ref: Known file path or chunk id the location resolves to
    """

    id: str
    title: str
    description: str
    severity: Severity
    location: str = ""
    mitigation: tuple[str, ...] = ()
    file_ref: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
            "location": self.location,
            "mitigation": list(self.mitigation),
            "file_ref": self.file_ref,
        }


@dataclass(frozen=True)
class ExecutionStep:
    """Single step of the simulated execution flow."""

    step: int
    location: str = ""
    action: str = ""
    state_changes: str = ""
    narrative: str = ""
    files_involved: tuple[str, ...] = ()
    approx_time_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "step": self.step,
            "location": self.location,
            "action": self.action,
            "state_changes": self.state_changes,
            "narrative": self.narrative,
            "files_involved": list(self.files_involved),
            "approx_time_ms": self.approx_time_ms,
        }


@dataclass(frozen=True)
class CanonicalAnalysis:
    """Merged, typed output of a completed pipeline run.

    Attributes:
        summary: Executive summary
        architecture_narrative: Architecture description
        tech_stack: Detected technologies (unique, first-seen order)
        dependency_graph: Topology restricted to known files and chunks
        risks: Risks in the order the risk agent reported them
        execution_flow: Simulated execution steps in order
    """

    summary: str
    architecture_narrative: str
    tech_stack: tuple[str, ...] = ()
    dependency_graph: DependencyGraph = field(default_factory=DependencyGraph)
    risks: tuple[Risk, ...] = ()
    execution_flow: tuple[ExecutionStep, ...] = ()

    def risks_at_least(self, severity: Severity) -> list[Risk]:
        """Return risks at or above the given severity, most severe first."""
        selected = [risk for risk in self.risks if risk.severity >= severity]
        return sorted(selected, key=lambda risk: risk.severity, reverse=True)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "summary": self.summary,
            "architecture_narrative": self.architecture_narrative,
            "tech_stack": list(self.tech_stack),
            "dependency_graph": self.dependency_graph.to_dict(),
            "risks": [risk.to_dict() for risk in self.risks],
            "execution_flow": [step.to_dict() for step in self.execution_flow],
        }

    @classmethod
    def from_dict(
        cls,
        data: Any,
        contract: str = "canonical_analysis",
    ) -> "CanonicalAnalysis":
        """Rebuild a saved analysis (the output of ``to_dict``).

        Raises:
            SchemaValidationError: If the data is not a saved analysis
        """
        reader = FieldReader(contract, data)
        graph = reader.child("dependency_graph")
        return cls(
            summary=reader.text("summary"),
            architecture_narrative=reader.text("architecture_narrative"),
            tech_stack=reader.text_list("tech_stack"),
            dependency_graph=DependencyGraph(
                nodes=tuple(
                    GraphNode(
                        id=node.text("id"),
                        group=node.text("group", "file"),
                        weight=node.number("weight", 1.0),
                        details=node.text("details"),
                    )
                    for node in graph.objects("nodes")
                ),
                edges=tuple(
                    GraphEdge(
                        source=edge.text("source"),
                        target=edge.text("target"),
                        kind=edge.text("kind", "import"),
                    )
                    for edge in graph.objects("edges")
                ),
            ),
            risks=tuple(_read_risk(item) for item in reader.objects("risks")),
            execution_flow=tuple(
                ExecutionStep(
                    step=item.integer("step"),
                    location=item.text("location"),
                    action=item.text("action"),
                    state_changes=item.text("state_changes"),
                    narrative=item.text("narrative"),
                    files_involved=item.text_list("files_involved"),
                    approx_time_ms=item.number("approx_time_ms"),
                )
                for item in reader.objects("execution_flow")
            ),
        )


def read_severity(reader: FieldReader, key: str = "severity") -> Severity:
    """Read a severity field, raising SchemaValidationError on unknown labels."""
    label = reader.text(key, Severity.LOW.value)
    try:
        return Severity.parse(label)
    except ValueError as e:
        raise SchemaValidationError(reader.contract, f"{reader.path}.{key}: {e}") from e


def _read_risk(reader: FieldReader) -> Risk:
    return Risk(
        id=reader.text("id"),
        title=reader.text("title"),
        description=reader.text("description"),
        severity=read_severity(reader),
        location=reader.text("location"),
        mitigation=reader.text_list("mitigation"),
        file_ref=reader.text("file_ref") or None,
    )
