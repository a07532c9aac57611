"""Source loaders producing FileUnits.

- local: Load files from a directory on disk
"""

from archlens.sources.local import detect_language, load_directory

__all__ = ["detect_language", "load_directory"]
