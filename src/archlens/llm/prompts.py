"""Agent system prompts and context builders.

Each agent gets a fixed system prompt plus a context string assembled from
chunks or from earlier stage results. Builders here are pure functions so
the exact text an agent sees can be tested directly.
"""

import json
from collections.abc import Sequence
from typing import Any

from archlens.models.analysis import CanonicalAnalysis
from archlens.models.files import Chunk
from archlens.models.stages import (
    BehaviorResult,
    ExecutionResult,
    FileSummary,
    RiskResult,
    SemanticResult,
    StructureResult,
)

CONTEXT_SEPARATOR = "\n---\n"

# =============================================================================
# System prompts
# =============================================================================

# Appended to every agent prompt; JSON mode alone does not stop prose preambles
_JSON_ONLY = (
    "\n\nRespond with a single JSON object that matches the requested fields. "
    "Do not wrap it in Markdown and do not add commentary before or after it."
)

SYSTEM_PROMPTS = {
    "map_file": (
        "You are a code analysis unit. Read one source file and extract its "
        "structural metadata: a one-sentence purpose, the key exported symbols, "
        "the imported modules and libraries, the external dependencies, and a "
        "complexity score from 1 (trivial) to 10 (very complex)."
    ),
    "structure": (
        "You are a code structure analyst. From the file excerpts provided, "
        "identify each file's role, group files into logical modules, name the "
        "primary responsibility of every module, and list the entry points "
        "where execution starts."
    ),
    "behavior": (
        "You are a code behavior analyst. Trace how the provided blocks call "
        "each other, where they cause side effects (I/O, network, storage, "
        "global mutation), and which global or shared state they read and "
        "write. Use the block ids given in the context as locations."
    ),
    "semantic": (
        "You are a semantic code analyst. Identify the public APIs with their "
        "inputs, outputs and contracts, the invariants the code relies on with "
        "evidence, and the design patterns in use."
    ),
    "risk": (
        "You are a security and reliability engineer. Find security risks, "
        "likely bugs and maintainability problems in the provided files. For "
        "each risk give a short id, a severity (low, medium, high or critical), "
        "the file path it lives in as the location, why it matters, your "
        "confidence from 0 to 1, and concrete mitigations."
    ),
    "execution": (
        "You are a runtime simulation engine. Walk through a typical execution "
        "of the provided code step by step. For each step give the location, "
        "the action taken, the resulting state changes, a short narrative, the "
        "file paths involved and an approximate duration in milliseconds."
    ),
    "synthesis": (
        "You are a principal software architect. Combine the reports of the "
        "structure, behavior, semantic, risk and execution analysts into one "
        "architectural report: an executive summary, an architecture "
        "narrative, the technology stack, and a dependency graph whose node "
        "ids are the file paths from the structure report."
    ),
    "impact": (
        "You are a change impact analyst. Given the current architecture and a "
        "proposed change, predict which files are affected and why, which "
        "tests are likely to break, the overall severity (low, medium, high or "
        "critical), and mitigations to apply before merging."
    ),
    "chat": (
        "You are an assistant for this codebase. Answer the user's question "
        "using the architecture summary, technology stack and risk report "
        "provided. Be technical and concise. Put the answer in the 'answer' field."
    ),
}


def get_system_prompt(agent: str) -> str:
    """Get the system prompt for an agent, with the JSON-only instruction.

    Args:
        agent: Agent key (e.g., "structure", "risk")

    Returns:
        System prompt text

    Raises:
        KeyError: If the agent is unknown
    """
    return SYSTEM_PROMPTS[agent] + _JSON_ONLY


# =============================================================================
# Context builders
# =============================================================================


def _limited(chunks: Sequence[Chunk], limit: int | None) -> Sequence[Chunk]:
    return chunks if limit is None else chunks[:limit]


def build_file_map_context(chunk: Chunk, excerpt_chars: int) -> str:
    """Context for summarizing one file in the mapping pass."""
    return f"File: {chunk.file_ref}\n{chunk.content[:excerpt_chars]}"


def build_structure_context(
    chunks: Sequence[Chunk],
    excerpt_chars: int,
    summaries: Sequence[FileSummary] = (),
) -> str:
    """Context for the structure agent.

    Only whole-file chunks are used, each cut to ``excerpt_chars``. File
    summaries from the mapping pass are appended when present.
    """
    sections = [
        f"File: {chunk.file_ref}\n{chunk.content[:excerpt_chars]}..."
        for chunk in chunks
        if chunk.is_full_file
    ]
    context = CONTEXT_SEPARATOR.join(sections)
    if summaries:
        summary_json = json.dumps([summary.to_dict() for summary in summaries], indent=2)
        context = f"{context}\n\nFILE SUMMARIES:\n{summary_json}"
    return context


def build_behavior_context(chunks: Sequence[Chunk], limit: int | None) -> str:
    """Context for the behavior agent: block-labelled chunk bodies."""
    return CONTEXT_SEPARATOR.join(
        f"Block: {chunk.id}\n{chunk.content}" for chunk in _limited(chunks, limit)
    )


def build_semantic_context(chunks: Sequence[Chunk], limit: int | None) -> str:
    """Context for the semantic agent: chunk-labelled chunk bodies."""
    return CONTEXT_SEPARATOR.join(
        f"Chunk: {chunk.id}\n{chunk.content}" for chunk in _limited(chunks, limit)
    )


def build_risk_context(chunks: Sequence[Chunk], limit: int | None) -> str:
    """Context for the risk agent: file-labelled chunk bodies."""
    return CONTEXT_SEPARATOR.join(
        f"File: {chunk.file_ref}\n{chunk.content}" for chunk in _limited(chunks, limit)
    )


def build_execution_context(
    chunks: Sequence[Chunk],
    structure_summary: str,
    limit: int | None,
) -> str:
    """Context for the execution agent: module summary plus raw code."""
    code = "\n".join(chunk.content for chunk in _limited(chunks, limit))
    return f"STRUCTURE SUMMARY: {structure_summary}\nCODE CONTEXT:\n{code}"


def synthesis_payload(
    structure: StructureResult,
    behavior: BehaviorResult,
    semantic: SemanticResult,
    risk: RiskResult,
    execution: ExecutionResult,
) -> dict[str, Any]:
    """Reduced view of every prior stage handed to the synthesizer.

    No chunk content is included.
    """
    return {
        "structure": structure.to_dict(),
        "behavior_summary": [edge.to_dict() for edge in behavior.call_graph],
        "semantic_summary": [api.to_dict() for api in semantic.apis],
        "risk_summary": [
            {"id": finding.id, "title": finding.id, "severity": finding.severity.value}
            for finding in risk.risks
        ],
        "execution_summary": execution.step_descriptions(),
    }


def build_synthesis_context(
    structure: StructureResult,
    behavior: BehaviorResult,
    semantic: SemanticResult,
    risk: RiskResult,
    execution: ExecutionResult,
) -> str:
    """Context for the synthesizer: the reduced payload as indented JSON."""
    return json.dumps(
        synthesis_payload(structure, behavior, semantic, risk, execution), indent=2
    )


def build_impact_context(
    change: str,
    analysis: CanonicalAnalysis,
    chunks: Sequence[Chunk],
    limit: int | None,
) -> str:
    """Context for the change impact agent."""
    code = "\n".join(chunk.content for chunk in _limited(chunks, limit))
    return (
        f"CURRENT ARCHITECTURE: {analysis.architecture_narrative}\n"
        f"PROPOSED CHANGE: {change}\n"
        f"CODE CONTEXT:\n{code}"
    )


def build_chat_context(
    question: str,
    analysis: CanonicalAnalysis,
    history: Sequence[tuple[str, str]] = (),
) -> str:
    """Context for a follow-up question.

    Args:
        question: The user's question
        analysis: Finished analysis to answer from
        history: Earlier (role, text) turns, oldest first

    Returns:
        Context text
    """
    risk_titles = ", ".join(risk.title for risk in analysis.risks) or "none reported"
    lines = [
        f"ARCHITECTURE SUMMARY: {analysis.summary}",
        f"TECH STACK: {', '.join(analysis.tech_stack)}",
        f"RISKS: {risk_titles}",
    ]
    if history:
        lines.append("CONVERSATION:")
        lines.extend(f"{role}: {text}" for role, text in history)
    lines.append(f"QUESTION: {question}")
    return "\n".join(lines)
