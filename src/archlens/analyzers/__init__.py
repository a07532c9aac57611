"""Source analyzers for archlens.

- Chunker: Splits files into whole-file and block chunks
"""

from archlens.analyzers.chunker import Chunker, chunk

__all__ = ["Chunker", "chunk"]
