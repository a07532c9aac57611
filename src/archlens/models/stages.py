"""Typed outputs of each pipeline stage and of the follow-up queries.

Each result type is a closed, frozen dataclass built from agent JSON through
``from_dict`` and serialized back to the same wire keys with ``to_dict``.
The ``*_CONTRACT`` constants pair each type with the JSON schema sent to the
provider.
"""

from dataclasses import dataclass
from typing import Any

from archlens.models.analysis import Severity, read_severity
from archlens.models.schema import (
    NUMBER,
    STRING,
    FieldReader,
    ResponseContract,
    array_of,
    object_of,
)

STRING_LIST = array_of(STRING)


# =============================================================================
# Structure
# =============================================================================


@dataclass(frozen=True)
class FileOverview:
    """Per-file entry reported by the structure agent."""

    path: str
    language: str = ""
    summary: str = ""
    exports: tuple[str, ...] = ()
    imports: tuple[str, ...] = ()
    size_lines: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "language": self.language,
            "summary": self.summary,
            "exports": list(self.exports),
            "imports": list(self.imports),
            "size_lines": self.size_lines,
        }


@dataclass(frozen=True)
class ModuleInfo:
    """Logical module grouping one or more files."""

    name: str
    files: tuple[str, ...] = ()
    responsibility: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "files": list(self.files),
            "responsibility": self.responsibility,
        }


@dataclass(frozen=True)
class StructureResult:
    """File structure, modules and entry points.

    Attributes:
        files: Per-file overviews
        modules: Logical modules with their responsibilities
        entrypoints: Paths or symbols where execution starts
    """

    files: tuple[FileOverview, ...] = ()
    modules: tuple[ModuleInfo, ...] = ()
    entrypoints: tuple[str, ...] = ()

    def module_summary(self) -> str:
        """Comma-separated module names, as handed to the execution stage."""
        return ", ".join(module.name for module in self.modules)

    def to_dict(self) -> dict[str, Any]:
        return {
            "files": [item.to_dict() for item in self.files],
            "modules": [item.to_dict() for item in self.modules],
            "entrypoints": list(self.entrypoints),
        }

    @classmethod
    def from_dict(cls, data: Any, contract: str = "structure") -> "StructureResult":
        reader = FieldReader(contract, data)
        return cls(
            files=tuple(
                FileOverview(
                    path=item.text("path"),
                    language=item.text("language"),
                    summary=item.text("summary"),
                    exports=item.text_list("exports"),
                    imports=item.text_list("imports"),
                    size_lines=item.integer("size_lines"),
                )
                for item in reader.objects("files")
            ),
            modules=tuple(
                ModuleInfo(
                    name=item.text("name"),
                    files=item.text_list("files"),
                    responsibility=item.text("responsibility"),
                )
                for item in reader.objects("modules")
            ),
            entrypoints=reader.text_list("entrypoints"),
        )


# =============================================================================
# Behavior
# =============================================================================


@dataclass(frozen=True)
class CallEdge:
    """One caller -> callee relation."""

    source: str
    target: str
    kind: str = "call"

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.source, "to": self.target, "type": self.kind}


@dataclass(frozen=True)
class SideEffect:
    location: str
    kind: str = ""
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "location": self.location,
            "type": self.kind,
            "description": self.description,
        }


@dataclass(frozen=True)
class GlobalState:
    name: str
    defined_in: str = ""
    mutated_in: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "defined_in": self.defined_in,
            "mutated_in": list(self.mutated_in),
        }


@dataclass(frozen=True)
class BehaviorResult:
    """Call graph, side effects and global state usage."""

    call_graph: tuple[CallEdge, ...] = ()
    side_effects: tuple[SideEffect, ...] = ()
    global_state: tuple[GlobalState, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "call_graph": [item.to_dict() for item in self.call_graph],
            "side_effects": [item.to_dict() for item in self.side_effects],
            "global_state": [item.to_dict() for item in self.global_state],
        }

    @classmethod
    def from_dict(cls, data: Any, contract: str = "behavior") -> "BehaviorResult":
        reader = FieldReader(contract, data)
        return cls(
            call_graph=tuple(
                CallEdge(
                    source=item.text("from"),
                    target=item.text("to"),
                    kind=item.text("type", "call"),
                )
                for item in reader.objects("call_graph")
            ),
            side_effects=tuple(
                SideEffect(
                    location=item.text("location"),
                    kind=item.text("type"),
                    description=item.text("description"),
                )
                for item in reader.objects("side_effects")
            ),
            global_state=tuple(
                GlobalState(
                    name=item.text("name"),
                    defined_in=item.text("defined_in"),
                    mutated_in=item.text_list("mutated_in"),
                )
                for item in reader.objects("global_state")
            ),
        )


# =============================================================================
# Semantic
# =============================================================================


@dataclass(frozen=True)
class ApiInfo:
    name: str
    purpose: str = ""
    inputs: str = ""
    outputs: str = ""
    contracts: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "purpose": self.purpose,
            "inputs": self.inputs,
            "outputs": self.outputs,
            "contracts": self.contracts,
        }


@dataclass(frozen=True)
class Invariant:
    description: str
    evidence: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"description": self.description, "evidence": list(self.evidence)}


@dataclass(frozen=True)
class DesignPattern:
    pattern: str
    evidence: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"pattern": self.pattern, "evidence": self.evidence}


@dataclass(frozen=True)
class SemanticResult:
    """APIs, invariants and design patterns found in the code."""

    apis: tuple[ApiInfo, ...] = ()
    invariants: tuple[Invariant, ...] = ()
    patterns: tuple[DesignPattern, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "apis": [item.to_dict() for item in self.apis],
            "invariants": [item.to_dict() for item in self.invariants],
            "patterns": [item.to_dict() for item in self.patterns],
        }

    @classmethod
    def from_dict(cls, data: Any, contract: str = "semantic") -> "SemanticResult":
        reader = FieldReader(contract, data)
        return cls(
            apis=tuple(
                ApiInfo(
                    name=item.text("name"),
                    purpose=item.text("purpose"),
                    inputs=item.text("inputs"),
                    outputs=item.text("outputs"),
                    contracts=item.text("contracts"),
                )
                for item in reader.objects("apis")
            ),
            invariants=tuple(
                Invariant(
                    description=item.text("description"),
                    evidence=item.text_list("evidence"),
                )
                for item in reader.objects("invariants")
            ),
            patterns=tuple(
                DesignPattern(
                    pattern=item.text("pattern"),
                    evidence=item.text("evidence"),
                )
                for item in reader.objects("patterns")
            ),
        )


# =============================================================================
# Risk
# =============================================================================


@dataclass(frozen=True)
class RiskFinding:
    """Risk as reported by the risk agent.

    Attributes:
        id: Agent-assigned identifier
        severity: Parsed severity (unknown labels are rejected)
        location: Free-text location (usually a file path or chunk id)
        description: What the risk is
        why: Reasoning behind the finding
        confidence: Agent confidence, 0.0 to 1.0
        mitigation: Suggested mitigations
    """

    id: str
    severity: Severity
    location: str = ""
    description: str = ""
    why: str = ""
    confidence: float = 0.0
    mitigation: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "severity": self.severity.value,
            "location": self.location,
            "description": self.description,
            "why": self.why,
            "confidence": self.confidence,
            "mitigation": list(self.mitigation),
        }


@dataclass(frozen=True)
class RiskResult:
    """Itemized risks in the order the agent reported them."""

    risks: tuple[RiskFinding, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"risks": [item.to_dict() for item in self.risks]}

    @classmethod
    def from_dict(cls, data: Any, contract: str = "risk") -> "RiskResult":
        reader = FieldReader(contract, data)
        return cls(
            risks=tuple(
                RiskFinding(
                    id=item.text("id"),
                    severity=read_severity(item),
                    location=item.text("location"),
                    description=item.text("description"),
                    why=item.text("why"),
                    confidence=item.number("confidence"),
                    mitigation=item.text_list("mitigation"),
                )
                for item in reader.objects("risks")
            )
        )


# =============================================================================
# Execution
# =============================================================================


@dataclass(frozen=True)
class ExecutionTrace:
    """One simulated runtime step."""

    step: int
    desc: str = ""
    files: tuple[str, ...] = ()
    approx_time_ms: float = 0.0
    location: str = ""
    action: str = ""
    state_changes: str = ""
    narrative: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "desc": self.desc,
            "files": list(self.files),
            "approx_time_ms": self.approx_time_ms,
            "location": self.location,
            "action": self.action,
            "stateChanges": self.state_changes,
            "narrative": self.narrative,
        }


@dataclass(frozen=True)
class VisualFrame:
    frame: str
    highlights: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"frame": self.frame, "highlights": list(self.highlights)}


@dataclass(frozen=True)
class ExecutionResult:
    """Simulated execution steps plus an optional visual script."""

    steps: tuple[ExecutionTrace, ...] = ()
    visual_script: tuple[VisualFrame, ...] = ()

    def step_descriptions(self) -> list[str]:
        return [step.desc for step in self.steps]

    def to_dict(self) -> dict[str, Any]:
        return {
            "steps": [item.to_dict() for item in self.steps],
            "visual_script": [item.to_dict() for item in self.visual_script],
        }

    @classmethod
    def from_dict(cls, data: Any, contract: str = "execution") -> "ExecutionResult":
        reader = FieldReader(contract, data)
        return cls(
            steps=tuple(
                ExecutionTrace(
                    step=item.integer("step", index + 1),
                    desc=item.text("desc"),
                    files=item.text_list("files"),
                    approx_time_ms=item.number("approx_time_ms"),
                    location=item.text("location"),
                    action=item.text("action"),
                    state_changes=item.text("stateChanges"),
                    narrative=item.text("narrative"),
                )
                for index, item in enumerate(reader.objects("steps"))
            ),
            visual_script=tuple(
                VisualFrame(
                    frame=item.text("frame"),
                    highlights=item.text_list("highlights"),
                )
                for item in reader.objects("visual_script")
            ),
        )


# =============================================================================
# Synthesis
# =============================================================================


@dataclass(frozen=True)
class SynthesisNode:
    id: str
    group: str = "file"
    val: float = 1.0
    details: str = ""
    risks: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "group": self.group,
            "val": self.val,
            "details": self.details,
            "risks": list(self.risks),
        }


@dataclass(frozen=True)
class SynthesisLink:
    source: str
    target: str
    type: str = "import"

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.source, "target": self.target, "type": self.type}


@dataclass(frozen=True)
class SynthesisResult:
    """Architect-level summary over all prior stage outputs.

    Attributes:
        summary: Executive summary
        architecture: Architecture narrative
        tech_stack: Technologies as reported (may contain duplicates)
        nodes: Graph nodes (ids are expected to be file paths)
        links: Graph links between node ids
    """

    summary: str = ""
    architecture: str = ""
    tech_stack: tuple[str, ...] = ()
    nodes: tuple[SynthesisNode, ...] = ()
    links: tuple[SynthesisLink, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "architecture": self.architecture,
            "techStack": list(self.tech_stack),
            "graphData": {
                "nodes": [item.to_dict() for item in self.nodes],
                "links": [item.to_dict() for item in self.links],
            },
        }

    @classmethod
    def from_dict(cls, data: Any, contract: str = "synthesis") -> "SynthesisResult":
        reader = FieldReader(contract, data)
        graph = reader.child("graphData")
        return cls(
            summary=reader.text("summary"),
            architecture=reader.text("architecture"),
            tech_stack=reader.text_list("techStack"),
            nodes=tuple(
                SynthesisNode(
                    id=item.text("id"),
                    group=item.text("group", "file"),
                    val=item.number("val", 1.0),
                    details=item.text("details"),
                    risks=item.text_list("risks"),
                )
                for item in graph.objects("nodes")
            ),
            links=tuple(
                SynthesisLink(
                    source=item.text("source"),
                    target=item.text("target"),
                    type=item.text("type", "import"),
                )
                for item in graph.objects("links")
            ),
        )


# =============================================================================
# File mapping and follow-up queries
# =============================================================================


@dataclass(frozen=True)
class FileSummary:
    """Per-file summary produced by the optional mapping pass."""

    path: str
    purpose: str = ""
    exports: tuple[str, ...] = ()
    imports: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()
    complexity_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "purpose": self.purpose,
            "exports": list(self.exports),
            "imports": list(self.imports),
            "dependencies": list(self.dependencies),
            "complexity_score": self.complexity_score,
        }

    @classmethod
    def from_dict(cls, data: Any, contract: str = "file_summary") -> "FileSummary":
        reader = FieldReader(contract, data)
        return cls(
            path=reader.text("path"),
            purpose=reader.text("purpose"),
            exports=reader.text_list("exports"),
            imports=reader.text_list("imports"),
            dependencies=reader.text_list("dependencies"),
            complexity_score=reader.number("complexity_score"),
        )


@dataclass(frozen=True)
class AffectedFile:
    file: str
    why: str = ""
    confidence: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"file": self.file, "why": self.why, "confidence": self.confidence}


@dataclass(frozen=True)
class ImpactPrediction:
    """Predicted blast radius of a proposed change."""

    change: str
    affected: tuple[AffectedFile, ...] = ()
    tests_likely_to_break: tuple[str, ...] = ()
    severity_estimate: Severity = Severity.LOW
    recommended_mitigations: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "change": self.change,
            "affected": [item.to_dict() for item in self.affected],
            "tests_likely_to_break": list(self.tests_likely_to_break),
            "severity_estimate": self.severity_estimate.value,
            "recommended_mitigations": list(self.recommended_mitigations),
        }

    @classmethod
    def from_dict(cls, data: Any, contract: str = "impact") -> "ImpactPrediction":
        reader = FieldReader(contract, data)
        return cls(
            change=reader.text("change"),
            affected=tuple(
                AffectedFile(
                    file=item.text("file"),
                    why=item.text("why"),
                    confidence=item.number("confidence"),
                )
                for item in reader.objects("affected")
            ),
            tests_likely_to_break=reader.text_list("tests_likely_to_break"),
            severity_estimate=read_severity(reader, "severity_estimate"),
            recommended_mitigations=reader.text_list("recommended_mitigations"),
        )


@dataclass(frozen=True)
class ChatAnswer:
    answer: str

    def to_dict(self) -> dict[str, Any]:
        return {"answer": self.answer}

    @classmethod
    def from_dict(cls, data: Any, contract: str = "chat") -> "ChatAnswer":
        return cls(answer=FieldReader(contract, data).text("answer"))


# =============================================================================
# Contracts
# =============================================================================

SEVERITY_SCHEMA: dict[str, Any] = {
    "type": "string",
    "enum": [severity.value for severity in Severity],
}

STRUCTURE_CONTRACT: ResponseContract[StructureResult] = ResponseContract(
    name="structure",
    result_type=StructureResult,
    schema=object_of(
        {
            "files": array_of(
                object_of(
                    {
                        "path": STRING,
                        "language": STRING,
                        "summary": STRING,
                        "exports": STRING_LIST,
                        "imports": STRING_LIST,
                        "size_lines": NUMBER,
                    }
                )
            ),
            "modules": array_of(
                object_of(
                    {
                        "name": STRING,
                        "files": STRING_LIST,
                        "responsibility": STRING,
                    }
                )
            ),
            "entrypoints": STRING_LIST,
        }
    ),
)

BEHAVIOR_CONTRACT: ResponseContract[BehaviorResult] = ResponseContract(
    name="behavior",
    result_type=BehaviorResult,
    schema=object_of(
        {
            "call_graph": array_of(
                object_of({"from": STRING, "to": STRING, "type": STRING})
            ),
            "side_effects": array_of(
                object_of({"location": STRING, "type": STRING, "description": STRING})
            ),
            "global_state": array_of(
                object_of(
                    {"name": STRING, "defined_in": STRING, "mutated_in": STRING_LIST}
                )
            ),
        }
    ),
)

SEMANTIC_CONTRACT: ResponseContract[SemanticResult] = ResponseContract(
    name="semantic",
    result_type=SemanticResult,
    schema=object_of(
        {
            "apis": array_of(
                object_of(
                    {
                        "name": STRING,
                        "purpose": STRING,
                        "inputs": STRING,
                        "outputs": STRING,
                        "contracts": STRING,
                    }
                )
            ),
            "invariants": array_of(
                object_of({"description": STRING, "evidence": STRING_LIST})
            ),
            "patterns": array_of(object_of({"pattern": STRING, "evidence": STRING})),
        }
    ),
)

RISK_CONTRACT: ResponseContract[RiskResult] = ResponseContract(
    name="risk",
    result_type=RiskResult,
    schema=object_of(
        {
            "risks": array_of(
                object_of(
                    {
                        "id": STRING,
                        "severity": SEVERITY_SCHEMA,
                        "location": STRING,
                        "description": STRING,
                        "why": STRING,
                        "confidence": NUMBER,
                        "mitigation": STRING_LIST,
                    },
                    required=("id", "severity", "description"),
                )
            )
        }
    ),
)

EXECUTION_CONTRACT: ResponseContract[ExecutionResult] = ResponseContract(
    name="execution",
    result_type=ExecutionResult,
    schema=object_of(
        {
            "steps": array_of(
                object_of(
                    {
                        "step": NUMBER,
                        "desc": STRING,
                        "files": STRING_LIST,
                        "approx_time_ms": NUMBER,
                        "location": STRING,
                        "action": STRING,
                        "stateChanges": STRING,
                        "narrative": STRING,
                    }
                )
            ),
            "visual_script": array_of(
                object_of({"frame": STRING, "highlights": STRING_LIST})
            ),
        }
    ),
)

SYNTHESIS_CONTRACT: ResponseContract[SynthesisResult] = ResponseContract(
    name="synthesis",
    result_type=SynthesisResult,
    schema=object_of(
        {
            "summary": STRING,
            "architecture": STRING,
            "techStack": STRING_LIST,
            "graphData": object_of(
                {
                    "nodes": array_of(
                        object_of(
                            {
                                "id": STRING,
                                "group": STRING,
                                "val": NUMBER,
                                "details": STRING,
                                "risks": STRING_LIST,
                            }
                        )
                    ),
                    "links": array_of(
                        object_of({"source": STRING, "target": STRING, "type": STRING})
                    ),
                }
            ),
        },
        required=("summary", "architecture"),
    ),
)

FILE_SUMMARY_CONTRACT: ResponseContract[FileSummary] = ResponseContract(
    name="file_summary",
    result_type=FileSummary,
    schema=object_of(
        {
            "path": STRING,
            "purpose": STRING,
            "exports": STRING_LIST,
            "imports": STRING_LIST,
            "dependencies": STRING_LIST,
            "complexity_score": NUMBER,
        },
        required=("path", "purpose", "exports", "imports", "complexity_score"),
    ),
)

IMPACT_CONTRACT: ResponseContract[ImpactPrediction] = ResponseContract(
    name="impact",
    result_type=ImpactPrediction,
    schema=object_of(
        {
            "change": STRING,
            "affected": array_of(
                object_of({"file": STRING, "why": STRING, "confidence": NUMBER})
            ),
            "tests_likely_to_break": STRING_LIST,
            "severity_estimate": SEVERITY_SCHEMA,
            "recommended_mitigations": STRING_LIST,
        }
    ),
)

CHAT_CONTRACT: ResponseContract[ChatAnswer] = ResponseContract(
    name="chat",
    result_type=ChatAnswer,
    schema=object_of({"answer": STRING}, required=("answer",)),
)
