"""Input entities: source files and the chunks cut from them.

- FileUnit: One decoded source file supplied by a source loader
- Chunk: A contiguous, 1-based inclusive line range of one file
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


def count_lines(content: str) -> int:
    """Return the line count used for chunk ranges.

    An empty file still spans one (empty) line.
    """
    return max(1, len(content.splitlines()))


@dataclass(frozen=True)
class FileUnit:
    """Single source file ingested for analysis.

    Attributes:
        path: Path relative to the analyzed root (unique within a run)
        content: Decoded text content
        language: Best-effort language tag (e.g., "typescript", "python")
        size: Size in bytes of the original file
    """

    path: str
    content: str
    language: str = ""
    size: int = 0

    @property
    def line_count(self) -> int:
        """Number of lines in the file content."""
        return count_lines(self.content)

    @classmethod
    def from_text(cls, path: str, content: str, language: str = "") -> "FileUnit":
        """Create a FileUnit, deriving size from the UTF-8 encoded content."""
        return cls(
            path=path,
            content=content,
            language=language,
            size=len(content.encode("utf-8")),
        )


class ChunkKind(Enum):
    """Kind of chunk."""

    FULL_FILE = "file"
    BLOCK = "block"


@dataclass(frozen=True)
class Chunk:
    """Analyzable slice of one file.

    Attributes:
        id: Stable identifier ("<path>:full" or "<path>:<start>-<end>")
        file_ref: Path of the FileUnit the chunk was cut from
        kind: FULL_FILE or BLOCK
        content: Text of the covered lines
        start_line: First line (1-based, inclusive)
        end_line: Last line (1-based, inclusive)
    """

    id: str
    file_ref: str
    kind: ChunkKind
    content: str
    start_line: int
    end_line: int

    @property
    def is_full_file(self) -> bool:
        """Return True for the whole-file chunk."""
        return self.kind is ChunkKind.FULL_FILE

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "file_ref": self.file_ref,
            "kind": self.kind.value,
            "start_line": self.start_line,
            "end_line": self.end_line,
        }
