"""archlens - Multi-agent architectural analysis pipeline.

archlens splits a set of source files into analyzable chunks, hands them to a
series of specialized LLM agents, and merges their partial answers into one
canonical architectural analysis.

Core principles:
- Ordered Stages: Structure runs before execution simulation; synthesis runs last
- Bounded Fan-out: Independent agents run concurrently under explicit limits
- Repair Before Failing: Truncated JSON responses are rebalanced once
- All-or-Nothing: A run yields a complete analysis or a typed error
- Explicit Configuration: No process-wide clients or credentials
"""

__version__ = "0.1.0"
__author__ = "archlens Contributors"
