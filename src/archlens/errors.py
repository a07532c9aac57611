"""Error taxonomy for archlens.

- SourceImportError: File acquisition failed (raised by source loaders)
- AgentInvocationError: Transport, auth or timeout failure from an agent
- SchemaValidationError: Agent response is not JSON matching its contract
- ChunkTaskFailure: One unit of a bounded batch failed (non-fatal)
- PipelineAbort: A stage-fatal error, tagged with the stage it came from
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from archlens.models.events import Stage


class ArchlensError(Exception):
    """Base class for all archlens errors."""


class SourceImportError(ArchlensError):
    """Raised when source files cannot be acquired."""

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        self.message = message
        super().__init__(f"Failed to import sources from {source}: {message}")


class AgentInvocationError(ArchlensError):
    """Raised when the agent capability cannot be reached or refuses the call."""

    def __init__(self, agent: str, message: str) -> None:
        self.agent = agent
        self.message = message
        super().__init__(f"Agent '{agent}' invocation failed: {message}")


class SchemaValidationError(ArchlensError):
    """Raised when a response does not conform to its response contract.

    Attributes:
        contract: Name of the response contract that was violated
        message: What was wrong (includes a field path where known)
        raw_response: The response text, truncated for logging
    """

    RAW_EXCERPT_CHARS = 500

    def __init__(
        self,
        contract: str,
        message: str,
        raw_response: str | None = None,
    ) -> None:
        self.contract = contract
        self.message = message
        self.raw_response = (
            raw_response[: self.RAW_EXCERPT_CHARS] if raw_response is not None else None
        )
        super().__init__(f"Response for '{contract}' failed validation: {message}")


class ChunkTaskFailure(ArchlensError):
    """One unit of work inside a bounded batch failed.

    Never propagates out of the pool; the unit's result is dropped.
    """

    def __init__(self, index: int, label: str, cause: BaseException) -> None:
        self.index = index
        self.label = label
        self.cause = cause
        super().__init__(f"Task {index} ({label}) failed: {cause}")


class PipelineAbort(ArchlensError):
    """Raised to the caller when any stage fails fatally."""

    def __init__(self, stage: "Stage", cause: BaseException) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"Pipeline aborted during '{stage.value}': {cause}")
