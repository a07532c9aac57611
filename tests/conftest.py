"""Shared pytest fixtures for archlens tests.

Fixtures are organized by category:
- Path fixtures: sample repositories on disk
- File fixtures: in-memory FileUnits
- Agent fixtures: canned agent responses and a scripted invoker that
  stands in for the LLM
"""

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from archlens.models.files import FileUnit
from archlens.models.schema import ResponseContract

# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_repos_dir(fixtures_dir: Path) -> Path:
    """Return the path to sample repository fixtures."""
    return fixtures_dir / "sample_repos"


@pytest.fixture
def ts_project(sample_repos_dir: Path) -> Path:
    """Return the path to the TypeScript sample repository."""
    return sample_repos_dir / "ts_project"


# =============================================================================
# File Fixtures
# =============================================================================


@pytest.fixture
def small_file() -> FileUnit:
    """A five-line TypeScript file (below the block threshold)."""
    content = (
        "import { b } from './b';\n"
        "export function a() {\n"
        "  return b();\n"
        "}\n"
        "a();\n"
    )
    return FileUnit.from_text("src/a.ts", content, "typescript")


@pytest.fixture
def two_files(small_file: FileUnit) -> list[FileUnit]:
    """Two small TypeScript files importing one another."""
    other = FileUnit.from_text(
        "src/b.ts",
        "export function b() {\n  return 42;\n}\n",
        "typescript",
    )
    return [small_file, other]


# =============================================================================
# Agent Fixtures
# =============================================================================


def canned_responses() -> dict[str, dict[str, Any]]:
    """Valid JSON payloads for every contract, keyed by contract name."""
    return {
        "structure": {
            "files": [
                {"path": "src/a.ts", "language": "typescript", "summary": "entry"},
                {"path": "src/b.ts", "language": "typescript", "summary": "helper"},
            ],
            "modules": [
                {"name": "core", "files": ["src/a.ts", "src/b.ts"], "responsibility": "all"}
            ],
            "entrypoints": ["src/a.ts"],
        },
        "behavior": {
            "call_graph": [{"from": "a", "to": "b", "type": "call"}],
            "side_effects": [],
            "global_state": [],
        },
        "semantic": {
            "apis": [{"name": "a", "purpose": "entry point"}],
            "invariants": [],
            "patterns": [],
        },
        "risk": {
            "risks": [
                {
                    "id": "unchecked-result",
                    "severity": "Medium",
                    "location": "./src/a.ts:3",
                    "description": "Result of b() is not validated",
                    "mitigation": ["validate the result"],
                }
            ]
        },
        "execution": {
            "steps": [
                {"desc": "a() is called", "files": ["a.ts"], "approx_time_ms": 1},
                {"desc": "b() returns 42", "files": ["src/b.ts", "src/missing.ts"]},
            ]
        },
        "synthesis": {
            "summary": "Two-file demo",
            "architecture": "a calls b",
            "techStack": ["TypeScript", "TypeScript", "Node.js"],
            "graphData": {
                "nodes": [
                    {"id": "src/a.ts", "group": "file", "val": 2},
                    {"id": "src/b.ts", "group": "file", "val": 1},
                    {"id": "lodash", "group": "external"},
                ],
                "links": [
                    {"source": "src/a.ts", "target": "src/b.ts", "type": "import"},
                    {"source": "src/a.ts", "target": "lodash", "type": "import"},
                ],
            },
        },
        "file_summary": {
            "path": "ignored.ts",
            "purpose": "summary",
            "exports": [],
            "imports": [],
            "complexity_score": 1,
        },
        "impact": {
            "change": "rename b",
            "affected": [{"file": "src/a.ts", "why": "imports b", "confidence": 0.9}],
            "tests_likely_to_break": [],
            "severity_estimate": "high",
            "recommended_mitigations": ["update the import"],
        },
        "chat": {"answer": "a calls b"},
    }


class ScriptedInvoker:
    """Agent invoker that answers from canned JSON instead of an LLM.

    Attributes:
        responses: Payload per contract name
        failures: Exception to raise per contract name
        delays: Seconds to sleep before answering, per contract name
        calls: (contract name, context) of every invocation, in call order
        cancelled: Contract names whose call was cancelled while running
    """

    def __init__(
        self,
        responses: dict[str, Any] | None = None,
        failures: dict[str, Exception] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.responses = canned_responses()
        self.responses.update(responses or {})
        self.failures = failures or {}
        self.delays = delays or {}
        self.calls: list[tuple[str, str]] = []
        self.cancelled: list[str] = []

    async def invoke(
        self,
        system_prompt: str,
        context: str,
        contract: ResponseContract[Any],
    ) -> Any:
        self.calls.append((contract.name, context))
        try:
            await asyncio.sleep(self.delays.get(contract.name, 0))
        except asyncio.CancelledError:
            self.cancelled.append(contract.name)
            raise
        if contract.name in self.failures:
            raise self.failures[contract.name]
        return contract.parse(self.responses[contract.name])

    def called(self, name: str) -> int:
        """Number of invocations against a contract."""
        return sum(1 for contract, _ in self.calls if contract == name)

    def context_for(self, name: str) -> str:
        """Context of the first invocation against a contract."""
        for contract, context in self.calls:
            if contract == name:
                return context
        raise AssertionError(f"No call against contract '{name}'")


@pytest.fixture
def invoker_factory() -> Callable[..., ScriptedInvoker]:
    """Return the ScriptedInvoker class for per-test configuration."""
    return ScriptedInvoker


@pytest.fixture
def invoker() -> ScriptedInvoker:
    """A ScriptedInvoker answering every contract successfully."""
    return ScriptedInvoker()
