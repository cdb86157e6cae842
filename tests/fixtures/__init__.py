"""Test fixtures for Waffles.

This package provides sample repositories for language detection, file
selection, and CLI tests.

Sample Repositories:
- sample_repos/go_project: Go module with cmd/ and pkg/ layout
- sample_repos/python_project: src-layout Flask application with tests
- sample_repos/docs_only: Markdown files only (no detectable language)
"""

from pathlib import Path

# Path to fixtures directory
FIXTURES_DIR = Path(__file__).parent

# Path to sample repositories
SAMPLE_REPOS_DIR = FIXTURES_DIR / "sample_repos"

# Specific sample repository paths
GO_PROJECT_PATH = SAMPLE_REPOS_DIR / "go_project"
PYTHON_PROJECT_PATH = SAMPLE_REPOS_DIR / "python_project"
DOCS_ONLY_PATH = SAMPLE_REPOS_DIR / "docs_only"


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
