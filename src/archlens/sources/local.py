"""Local filesystem source loader.

Walks a directory and produces FileUnits for recognised source files:
relative POSIX paths, sorted, UTF-8 text only, with a language tag taken
from the file extension. Common non-source directories are skipped.
"""

import fnmatch
import logging
from collections.abc import Iterable
from pathlib import Path

from archlens.errors import SourceImportError
from archlens.models.files import FileUnit

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_BYTES = 500_000

# Directories that never hold first-party source
SKIP_DIRS = frozenset(
    {
        ".git",
        ".venv",
        "venv",
        "vendor",
        "node_modules",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".ruff_cache",
        ".eggs",
        ".tox",
        ".nox",
        "dist",
        "build",
        "coverage",
        "htmlcov",
        ".idea",
        ".vscode",
        ".next",
        ".archlens",
    }
)

LANGUAGE_EXTENSIONS = {
    ".py": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".go": "go",
    ".java": "java",
    ".kt": "kotlin",
    ".rb": "ruby",
    ".rs": "rust",
    ".cs": "csharp",
    ".php": "php",
    ".swift": "swift",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".sh": "shell",
    ".sql": "sql",
    ".tf": "terraform",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".json": "json",
    ".toml": "toml",
    ".md": "markdown",
}


def detect_language(path: str) -> str:
    """Return the language tag for a path, or "" if the extension is unknown."""
    return LANGUAGE_EXTENSIONS.get(Path(path).suffix.lower(), "")


def _should_skip(rel_path: Path, exclude_patterns: Iterable[str]) -> bool:
    for part in rel_path.parts[:-1]:
        if part in SKIP_DIRS or part.endswith(".egg-info"):
            return True
    posix = rel_path.as_posix()
    return any(fnmatch.fnmatch(posix, pattern) for pattern in exclude_patterns)


def load_directory(
    root: Path | str,
    exclude_patterns: Iterable[str] = (),
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
) -> list[FileUnit]:
    """Load every recognised source file under a directory.

    Args:
        root: Directory to load
        exclude_patterns: Glob patterns matched against relative POSIX paths
        max_file_bytes: Larger files are skipped

    Returns:
        FileUnits sorted by path

    Raises:
        SourceImportError: If root is not a directory or holds no source files
    """
    root_path = Path(root)
    if not root_path.exists():
        raise SourceImportError(str(root), "path does not exist")
    if not root_path.is_dir():
        raise SourceImportError(str(root), "path is not a directory")

    patterns = list(exclude_patterns)
    files: list[FileUnit] = []

    for file_path in sorted(root_path.rglob("*")):
        if not file_path.is_file():
            continue
        rel_path = file_path.relative_to(root_path)
        if _should_skip(rel_path, patterns):
            continue
        language = detect_language(file_path.name)
        if not language:
            continue

        size = file_path.stat().st_size
        if size > max_file_bytes:
            logger.debug(f"Skipping {rel_path.as_posix()}: {size} bytes")
            continue

        try:
            content = file_path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.debug(f"Skipping {rel_path.as_posix()}: not UTF-8 text")
            continue
        except OSError as e:
            raise SourceImportError(str(root), f"cannot read {rel_path}: {e}") from e

        files.append(
            FileUnit(
                path=rel_path.as_posix(),
                content=content,
                language=language,
                size=size,
            )
        )

    if not files:
        raise SourceImportError(str(root), "no source files found")

    files.sort(key=lambda unit: unit.path)
    logger.info(f"Loaded {len(files)} source files from {root_path}")
    return files
