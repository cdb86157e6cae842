"""Shared pytest fixtures for Waffles tests.

Fixtures are organized by category:
- Repository fixtures: Sample and temporary repositories
- Configuration fixtures: Test configs for pipeline runs
- Process fixtures: Fake results for mocked subprocess calls
"""

import subprocess
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from waffles.config import WafflesConfig, load_config_from_dict

# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_repos_dir(fixtures_dir: Path) -> Path:
    """Return the path to sample repository fixtures."""
    return fixtures_dir / "sample_repos"


@pytest.fixture
def go_repo(sample_repos_dir: Path) -> Path:
    """Return the sample Go repository."""
    return sample_repos_dir / "go_project"


@pytest.fixture
def python_repo(sample_repos_dir: Path) -> Path:
    """Return the sample Python repository."""
    return sample_repos_dir / "python_project"


# =============================================================================
# Temporary Directory Fixtures
# =============================================================================


@pytest.fixture
def temp_repo(tmp_path: Path) -> Path:
    """Create a temporary directory that mimics a git repository.

    Creates basic structure with .git directory marker.
    """
    git_dir = tmp_path / ".git"
    git_dir.mkdir()
    (git_dir / "HEAD").write_text("ref: refs/heads/main\n")
    return tmp_path


@pytest.fixture
def make_files(temp_repo: Path) -> Callable[[dict[str, str]], Path]:
    """Return a helper that writes {relative path: content} into temp_repo."""

    def _make(files: dict[str, str]) -> Path:
        for rel_path, content in files.items():
            target = temp_repo / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        return temp_repo

    return _make


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def minimal_config() -> dict[str, Any]:
    """Return a minimal valid Waffles configuration."""
    return {"llm": {"model": "test-model"}}


@pytest.fixture
def full_config() -> dict[str, Any]:
    """Return a complete Waffles configuration with all options."""
    return {
        "llm": {
            "model": "claude-3-haiku",
            "provider": "anthropic",
            "max_input_tokens": 2000,
        },
        "tools": {
            "check_dependencies": False,
            "prompt": {"command": "wmp", "args": "--quiet", "timeout": 5},
            "context": {"command": "f2p", "args": "--format xml", "timeout": 10},
            "generation": {"command": "llm-cli", "args": "--no-stream", "timeout": 20},
        },
        "repository": {
            "language": "go",
            "include": ["docs"],
            "exclude": ["internal/*"],
            "ignore_gitignore": True,
            "max_files": 50,
            "max_file_size": 4096,
        },
    }


@pytest.fixture
def pipeline_config() -> WafflesConfig:
    """Return a config for pipeline tests (no PATH dependency check)."""
    return load_config_from_dict(
        {
            "llm": {"model": "test-model"},
            "tools": {"check_dependencies": False},
        }
    )


# =============================================================================
# Process Fixtures
# =============================================================================


@pytest.fixture
def completed() -> Callable[..., subprocess.CompletedProcess]:
    """Return a factory for fake subprocess.run results."""

    def _completed(stdout: str = "", returncode: int = 0) -> subprocess.CompletedProcess:
        return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout)

    return _completed
