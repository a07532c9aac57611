"""Test fixtures for archlens.

Sample Repositories:
- sample_repos/ts_project: A small TypeScript HTTP service (one file long
  enough to be split into blocks, one short helper module, a vendored
  node_modules package and a non-source file that the loader skips)
"""

from pathlib import Path

# Path to fixtures directory
FIXTURES_DIR = Path(__file__).parent

# Path to sample repositories
SAMPLE_REPOS_DIR = FIXTURES_DIR / "sample_repos"

TS_PROJECT_PATH = SAMPLE_REPOS_DIR / "ts_project"


def get_sample_repo(name: str) -> Path:
    """Get path to a sample repository.

    Args:
        name: Name of the sample repository

    Returns:
        Path to the sample repository

    Raises:
        ValueError: If repository doesn't exist
    """
    repo_path = SAMPLE_REPOS_DIR / name
    if not repo_path.exists():
        raise ValueError(f"Sample repository not found: {name}")
    return repo_path
