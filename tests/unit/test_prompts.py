"""Unit tests for agent prompts and context builders."""

import json

import pytest

from archlens.analyzers.chunker import Chunker
from archlens.llm.prompts import (
    CONTEXT_SEPARATOR,
    SYSTEM_PROMPTS,
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
from archlens.models.analysis import CanonicalAnalysis, Risk, Severity
from archlens.models.files import Chunk, FileUnit
from archlens.models.stages import (
    BEHAVIOR_CONTRACT,
    EXECUTION_CONTRACT,
    RISK_CONTRACT,
    SEMANTIC_CONTRACT,
    STRUCTURE_CONTRACT,
    FileSummary,
)


@pytest.fixture
def chunks() -> list[Chunk]:
    """Whole-file and block chunks of one long and one short file."""
    long_body = "\n".join(["export function big() {", "  return 1;", "}"] + ["// pad"] * 60)
    files = [
        FileUnit.from_text("src/long.ts", long_body, "typescript"),
        FileUnit.from_text("src/short.ts", "export const x = 1;\n", "typescript"),
    ]
    return Chunker().chunk(files)


@pytest.fixture
def analysis() -> CanonicalAnalysis:
    return CanonicalAnalysis(
        summary="A tiny service",
        architecture_narrative="Router dispatches to handlers",
        tech_stack=("TypeScript", "Node.js"),
        risks=(Risk("no-auth", "no-auth", "Routes are public", Severity.HIGH),),
    )


class TestSystemPrompts:
    """Tests for system prompt lookup."""

    @pytest.mark.parametrize("agent", sorted(SYSTEM_PROMPTS))
    def test_every_prompt_requests_json(self, agent: str) -> None:
        """Test every system prompt ends with the JSON-only instruction."""
        prompt = get_system_prompt(agent)

        assert prompt.startswith(SYSTEM_PROMPTS[agent])
        assert "JSON" in prompt[len(SYSTEM_PROMPTS[agent]) :]

    def test_unknown_agent(self) -> None:
        """Test an unknown agent name raises KeyError."""
        with pytest.raises(KeyError):
            get_system_prompt("poet")


class TestStageContexts:
    """Tests for per-stage context builders."""

    def test_structure_uses_whole_files_only(self, chunks: list[Chunk]) -> None:
        """Test the structure context holds truncated whole-file excerpts."""
        context = build_structure_context(chunks, excerpt_chars=10)
        sections = context.split(CONTEXT_SEPARATOR)

        assert len(sections) == 2
        assert sections[0] == "File: src/long.ts\nexport fun..."
        assert sections[1].startswith("File: src/short.ts\n")
        assert "FILE SUMMARIES" not in context

    def test_structure_appends_file_summaries(self, chunks: list[Chunk]) -> None:
        """Test mapping summaries are appended as JSON."""
        summary = FileSummary(path="src/long.ts", purpose="exports big")

        context = build_structure_context(chunks, 2000, [summary])
        _, summaries = context.split("\n\nFILE SUMMARIES:\n")

        assert json.loads(summaries)[0]["purpose"] == "exports big"

    def test_behavior_semantic_risk_labels(self, chunks: list[Chunk]) -> None:
        """Test each reasoning context labels chunks its own way."""
        assert build_behavior_context(chunks, None).startswith("Block: src/long.ts:full\n")
        assert "Block: src/long.ts:1-3\n" in build_behavior_context(chunks, None)
        assert build_semantic_context(chunks, None).startswith("Chunk: src/long.ts:full\n")
        assert build_risk_context(chunks, None).count("File: src/long.ts\n") == 2

    def test_chunk_limits(self, chunks: list[Chunk]) -> None:
        """Test limits keep only the first chunks and None keeps all."""
        assert len(chunks) == 3
        assert build_behavior_context(chunks, 1).count(CONTEXT_SEPARATOR) == 0
        assert build_semantic_context(chunks, 2).count(CONTEXT_SEPARATOR) == 1
        assert build_risk_context(chunks, None).count(CONTEXT_SEPARATOR) == 2

    def test_execution_context(self, chunks: list[Chunk]) -> None:
        """Test the execution context pairs the module summary with code."""
        context = build_execution_context(chunks, "api, core", 1)

        assert context.startswith("STRUCTURE SUMMARY: api, core\nCODE CONTEXT:\n")
        assert "export const x" not in context

    def test_file_map_context(self, chunks: list[Chunk]) -> None:
        """Test the mapping context names the file and truncates content."""
        context = build_file_map_context(chunks[0], 6)

        assert "src/long.ts" in context
        assert "export function" not in context

    def test_synthesis_context_has_no_code(self, chunks: list[Chunk]) -> None:
        """Test the synthesizer sees stage summaries but no chunk content."""
        context = build_synthesis_context(
            STRUCTURE_CONTRACT.parse({"modules": [{"name": "core"}]}),
            BEHAVIOR_CONTRACT.parse({"call_graph": [{"from": "a", "to": "b"}]}),
            SEMANTIC_CONTRACT.parse({"apis": [{"name": "big"}]}),
            RISK_CONTRACT.parse({"risks": [{"id": "r1", "severity": "HIGH"}]}),
            EXECUTION_CONTRACT.parse({"steps": [{"desc": "boot"}]}),
        )
        payload = json.loads(context)

        assert set(payload) == {
            "structure",
            "behavior_summary",
            "semantic_summary",
            "risk_summary",
            "execution_summary",
        }
        assert payload["risk_summary"] == [{"id": "r1", "title": "r1", "severity": "high"}]
        assert payload["execution_summary"] == ["boot"]
        assert "return 1;" not in context


class TestFollowUpContexts:
    """Tests for impact and chat contexts."""

    def test_impact_context(self, chunks: list[Chunk], analysis: CanonicalAnalysis) -> None:
        """Test the impact context carries architecture, change and code."""
        context = build_impact_context("rename big()", analysis, chunks, 10)

        assert context.startswith("CURRENT ARCHITECTURE: Router dispatches to handlers\n")
        assert "PROPOSED CHANGE: rename big()\n" in context
        assert "CODE CONTEXT:\nexport function big()" in context

    def test_chat_context(self, analysis: CanonicalAnalysis) -> None:
        """Test the chat context without history."""
        context = build_chat_context("Is it secure?", analysis)

        assert context.splitlines() == [
            "ARCHITECTURE SUMMARY: A tiny service",
            "TECH STACK: TypeScript, Node.js",
            "RISKS: no-auth",
            "QUESTION: Is it secure?",
        ]

    def test_chat_context_with_history(self, analysis: CanonicalAnalysis) -> None:
        """Test earlier turns are included oldest first."""
        context = build_chat_context(
            "And now?", analysis, [("user", "Is it secure?"), ("assistant", "No.")]
        )

        assert "CONVERSATION:\nuser: Is it secure?\nassistant: No.\nQUESTION: And now?" in context
