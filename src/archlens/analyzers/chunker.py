"""Chunking of source files into analyzable units.

Every file yields one whole-file chunk. Files longer than the block
threshold, in a language with brace-delimited blocks, are additionally
scanned for top-level declarations which become block chunks.

The scan is a line-oriented heuristic, not a parser: it never fails on
malformed input, it only misses blocks.
"""

import logging
import re
from collections.abc import Iterable

from archlens.models.files import Chunk, ChunkKind, FileUnit, count_lines

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_THRESHOLD = 50

DEFAULT_BLOCK_LANGUAGES = frozenset(
    {"javascript", "typescript", "js", "jsx", "ts", "tsx", "mjs", "cjs"}
)

# Leading keywords that open a top-level block
BLOCK_OPENER = re.compile(r"^(export|function|class|const|async)\b")


def full_chunk_id(path: str) -> str:
    """Id of the whole-file chunk for a path."""
    return f"{path}:full"


def block_chunk_id(path: str, start_line: int, end_line: int) -> str:
    """Id of a block chunk covering an inclusive line range."""
    return f"{path}:{start_line}-{end_line}"


class _BraceScanner:
    """Tracks brace depth across lines, skipping strings and comments.

    Single and double quoted strings end at the line break; template
    literals and block comments carry over to the next line.
    """

    def __init__(self) -> None:
        self.depth = 0
        self._quote: str | None = None
        self._in_block_comment = False

    def feed(self, line: str) -> int:
        """Consume one line and return the resulting depth."""
        i = 0
        length = len(line)
        while i < length:
            char = line[i]
            nxt = line[i + 1] if i + 1 < length else ""

            if self._in_block_comment:
                if char == "*" and nxt == "/":
                    self._in_block_comment = False
                    i += 2
                    continue
                i += 1
                continue

            if self._quote is not None:
                if char == "\\":
                    i += 2
                    continue
                if char == self._quote:
                    self._quote = None
                i += 1
                continue

            if char == "/" and nxt == "/":
                break
            if char == "/" and nxt == "*":
                self._in_block_comment = True
                i += 2
                continue
            if char in "\"'`":
                self._quote = char
            elif char == "{":
                self.depth += 1
            elif char == "}":
                self.depth -= 1
            i += 1

        if self._quote in ("'", '"'):
            self._quote = None
        return self.depth


class Chunker:
    """Splits files into whole-file and block chunks.

    Attributes:
        block_threshold: Files with more lines than this are scanned for blocks
        block_languages: Language tags eligible for block scanning
    """

    def __init__(
        self,
        block_threshold: int = DEFAULT_BLOCK_THRESHOLD,
        block_languages: Iterable[str] = DEFAULT_BLOCK_LANGUAGES,
    ) -> None:
        if block_threshold < 0:
            raise ValueError(f"block_threshold must be >= 0. Got: {block_threshold}")
        self.block_threshold = block_threshold
        self.block_languages = frozenset(lang.lower() for lang in block_languages)

    def chunk(self, files: Iterable[FileUnit]) -> list[Chunk]:
        """Chunk every file, preserving input order.

        Args:
            files: Files to chunk

        Returns:
            For each file, its whole-file chunk followed by its blocks in
            line order
        """
        chunks: list[Chunk] = []
        for file in files:
            chunks.extend(self.chunk_file(file))
        logger.debug(f"Chunked files into {len(chunks)} chunks")
        return chunks

    def chunk_file(self, file: FileUnit) -> list[Chunk]:
        """Chunk a single file."""
        chunks = [
            Chunk(
                id=full_chunk_id(file.path),
                file_ref=file.path,
                kind=ChunkKind.FULL_FILE,
                content=file.content,
                start_line=1,
                end_line=count_lines(file.content),
            )
        ]
        if self._wants_blocks(file):
            chunks.extend(self._scan_blocks(file))
        return chunks

    def _wants_blocks(self, file: FileUnit) -> bool:
        return (
            file.line_count > self.block_threshold
            and file.language.lower() in self.block_languages
        )

    def _scan_blocks(self, file: FileUnit) -> list[Chunk]:
        lines = file.content.splitlines()
        blocks: list[Chunk] = []
        scanner: _BraceScanner | None = None
        start = 0

        for number, line in enumerate(lines, start=1):
            if scanner is None:
                if not BLOCK_OPENER.match(line.strip()):
                    continue
                scanner = _BraceScanner()
                start = number

            if scanner.feed(line) <= 0:
                blocks.append(
                    Chunk(
                        id=block_chunk_id(file.path, start, number),
                        file_ref=file.path,
                        kind=ChunkKind.BLOCK,
                        content="\n".join(lines[start - 1 : number]),
                        start_line=start,
                        end_line=number,
                    )
                )
                scanner = None

        if scanner is not None:
            logger.debug(f"Unterminated block at {file.path}:{start} dropped")
        return blocks


def chunk(
    files: Iterable[FileUnit],
    block_threshold: int = DEFAULT_BLOCK_THRESHOLD,
    block_languages: Iterable[str] = DEFAULT_BLOCK_LANGUAGES,
) -> list[Chunk]:
    """Chunk files with the given settings (see ``Chunker``)."""
    return Chunker(block_threshold, block_languages).chunk(files)
