"""Pipeline stages and the progress events emitted while moving through them."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum


class Stage(Enum):
    """Orchestrator states, in pipeline order."""

    INIT = "init"
    CHUNKING = "chunking"
    STRUCTURE = "structure"
    PARALLEL_REASONING = "parallel_reasoning"
    EXECUTION_SIMULATION = "execution_simulation"
    SYNTHESIS = "synthesis"
    COMPLETE = "complete"
    ERROR = "error"


class AgentStatus(Enum):
    """Lifecycle of a single named agent invocation."""

    STARTED = "started"
    COMPLETED = "completed"


@dataclass(frozen=True)
class StageEvent:
    """Stage transition, optionally with per-unit sub-progress.

    Attributes:
        stage: Stage being entered or reported on
        current_unit: Units finished so far (per-chunk sub-work only)
        total_units: Total units in the sub-work batch
        label: Human-readable label of the unit just finished
    """

    stage: Stage
    current_unit: int | None = None
    total_units: int | None = None
    label: str | None = None

    @property
    def is_transition(self) -> bool:
        """True when the event marks entry into a stage rather than sub-progress."""
        return self.total_units is None


@dataclass(frozen=True)
class AgentEvent:
    """Start or completion of a named agent invocation."""

    agent: str
    status: AgentStatus


StageSink = Callable[[StageEvent], None]
AgentSink = Callable[[AgentEvent], None]
