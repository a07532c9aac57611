"""Unit tests for merging stage outputs into the canonical analysis."""

from typing import Any

import pytest

from archlens.merge import RefResolver, merge
from archlens.models.analysis import Severity
from archlens.models.stages import (
    BEHAVIOR_CONTRACT,
    EXECUTION_CONTRACT,
    RISK_CONTRACT,
    SEMANTIC_CONTRACT,
    STRUCTURE_CONTRACT,
    SYNTHESIS_CONTRACT,
)

KNOWN_REFS = {
    "src/a.ts",
    "src/a.ts:full",
    "src/b.ts",
    "src/b.ts:full",
    "lib/b.ts",
    "lib/b.ts:full",
    "src/server.ts",
    "src/server.ts:full",
    "src/server.ts:7-12",
}


class TestRefResolver:
    """Tests for reference resolution."""

    @pytest.fixture
    def resolver(self) -> RefResolver:
        return RefResolver(KNOWN_REFS)

    @pytest.mark.parametrize(
        ("ref", "expected"),
        [
            ("src/a.ts", "src/a.ts"),
            ("src/server.ts:7-12", "src/server.ts:7-12"),
            ("./src/a.ts", "src/a.ts"),
            ("/src/a.ts", "src/a.ts"),
            ("src/a.ts:3", "src/a.ts"),
            ("server.ts", "src/server.ts"),
            ("a.ts:14", "src/a.ts"),
        ],
    )
    def test_resolves(self, resolver: RefResolver, ref: str, expected: str) -> None:
        """Test the resolution ladder maps agent references to known refs."""
        assert resolver.resolve(ref) == expected

    @pytest.mark.parametrize("ref", ["b.ts", "missing.ts", "", "   ", "lodash"])
    def test_unresolvable(self, resolver: RefResolver, ref: str) -> None:
        """Test ambiguous, unknown and blank references resolve to None."""
        assert resolver.resolve(ref) is None


def _stage_outputs(**overrides: Any) -> dict[str, Any]:
    payloads: dict[str, Any] = {
        "structure": {"modules": [{"name": "core"}]},
        "behavior": {},
        "semantic": {},
        "risk": {
            "risks": [
                {"id": "r1", "severity": "high", "location": "./src/a.ts:3", "description": "d1"},
                {"id": "r2", "severity": "low", "location": "somewhere else", "description": "d2"},
            ]
        },
        "execution": {
            "steps": [
                {"desc": "start", "files": ["a.ts", "src/a.ts", "ghost.ts"]},
                {"action": "respond", "desc": "ignored", "files": []},
            ]
        },
        "synthesis": {
            "summary": "sum",
            "architecture": "arch",
            "techStack": [" TypeScript ", "Node.js", "TypeScript", ""],
            "graphData": {
                "nodes": [
                    {"id": "./src/a.ts", "risks": ["tagged-by-synthesizer"]},
                    {"id": "src/a.ts"},
                    {"id": "src/b.ts", "val": 3},
                    {"id": "express", "group": "external"},
                ],
                "links": [
                    {"source": "src/a.ts", "target": "src/b.ts"},
                    {"source": "./src/a.ts", "target": "src/b.ts"},
                    {"source": "src/a.ts", "target": "express"},
                ],
            },
        },
    }
    payloads.update(overrides)
    return {
        "structure": STRUCTURE_CONTRACT.parse(payloads["structure"]),
        "behavior": BEHAVIOR_CONTRACT.parse(payloads["behavior"]),
        "semantic": SEMANTIC_CONTRACT.parse(payloads["semantic"]),
        "risk": RISK_CONTRACT.parse(payloads["risk"]),
        "execution": EXECUTION_CONTRACT.parse(payloads["execution"]),
        "synthesis": SYNTHESIS_CONTRACT.parse(payloads["synthesis"]),
    }


class TestMerge:
    """Tests for merge."""

    def test_narrative_fields_from_synthesis(self) -> None:
        """Test summary and narrative come from the synthesizer."""
        analysis = merge(**_stage_outputs(), known_refs=KNOWN_REFS)

        assert analysis.summary == "sum"
        assert analysis.architecture_narrative == "arch"

    def test_tech_stack_deduplicated_in_order(self) -> None:
        """Test the tech stack is trimmed, deduplicated and keeps first-seen order."""
        analysis = merge(**_stage_outputs(), known_refs=KNOWN_REFS)

        assert analysis.tech_stack == ("TypeScript", "Node.js")

    def test_graph_restricted_to_known_refs(self) -> None:
        """Test unknown nodes are dropped with their edges and duplicates collapse."""
        graph = merge(**_stage_outputs(), known_refs=KNOWN_REFS).dependency_graph

        assert [node.id for node in graph.nodes] == ["src/a.ts", "src/b.ts"]
        assert graph.nodes[1].weight == 3.0
        assert [(e.source, e.target) for e in graph.edges] == [("src/a.ts", "src/b.ts")]
        for edge in graph.edges:
            assert {edge.source, edge.target} <= graph.node_ids

    def test_risks_only_from_risk_stage(self) -> None:
        """Test risks come from the risk stage in order, not synthesizer tags."""
        risks = merge(**_stage_outputs(), known_refs=KNOWN_REFS).risks

        assert [r.id for r in risks] == ["r1", "r2"]
        assert risks[0].title == "r1"
        assert risks[0].severity is Severity.HIGH
        assert risks[0].file_ref == "src/a.ts"
        assert risks[0].location == "./src/a.ts:3"
        assert risks[1].file_ref is None

    def test_execution_flow_files_resolved(self) -> None:
        """Test step files are resolved, deduplicated and unknown ones dropped."""
        steps = merge(**_stage_outputs(), known_refs=KNOWN_REFS).execution_flow

        assert [s.step for s in steps] == [1, 2]
        assert steps[0].action == "start"
        assert steps[0].files_involved == ("src/a.ts",)
        assert steps[1].action == "respond"

    def test_without_known_refs_keeps_references(self) -> None:
        """Test references pass through unchanged when no refs are supplied."""
        analysis = merge(**_stage_outputs())

        assert [n.id for n in analysis.dependency_graph.nodes] == [
            "./src/a.ts",
            "src/a.ts",
            "src/b.ts",
            "express",
        ]
        assert analysis.risks[1].file_ref == "somewhere else"
        assert analysis.execution_flow[0].files_involved == ("a.ts", "src/a.ts", "ghost.ts")

    def test_deterministic(self) -> None:
        """Test merging the same outputs twice yields equal analyses."""
        outputs = _stage_outputs()

        assert merge(**outputs, known_refs=KNOWN_REFS) == merge(**outputs, known_refs=KNOWN_REFS)
