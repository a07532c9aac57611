"""archlens utility modules.

- logging: Standardized logging with human/verbose/JSON modes
- pool: Bounded-concurrency batch execution
- best_effort: Failure-tolerant wrapper for side calls
"""

from archlens.utils.best_effort import Discarded, best_effort
from archlens.utils.logging import get_logger, setup_logging
from archlens.utils.pool import run_bounded

__all__ = [
    "Discarded",
    "best_effort",
    "get_logger",
    "run_bounded",
    "setup_logging",
]
