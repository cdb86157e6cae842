"""Unit tests for repository scanning and analysis."""

from collections.abc import Callable
from pathlib import Path

import pytest

from waffles.analyzers.scanner import ScanError, analyze_repository, scan_files
from waffles.models import Language, RepositoryOverrides


class TestScanFiles:
    """Tests for the file walk and budgets."""

    def test_walk_order_and_reasons(self, make_files: Callable[[dict[str, str]], Path]) -> None:
        """Test files are listed in sorted walk order with reasons."""
        repo = make_files({"b.go": "", "a.go": "", "sub/c.go": "", "notes.md": ""})

        files = scan_files(repo, ["*.go"], [])

        assert [f.path for f in files] == ["a.go", "b.go", "notes.md", "sub/c.go"]
        assert files[2].included is False
        assert files[2].reason == "No matching include pattern"

    def test_hidden_and_build_dirs_skipped(
        self, make_files: Callable[[dict[str, str]], Path]
    ) -> None:
        """Test hidden, build, and dependency directories are not walked."""
        repo = make_files(
            {
                ".venv/lib.py": "",
                "build/gen.py": "",
                "dist/pkg.py": "",
                "node_modules/x.py": "",
                "app.py": "",
            }
        )

        files = scan_files(repo, ["*.py"], [])

        assert [f.path for f in files] == ["app.py"]

    def test_oversize_file_excluded(self, make_files: Callable[[dict[str, str]], Path]) -> None:
        """Test files above the size limit are excluded with a reason."""
        repo = make_files({"big.go": "x" * 200, "small.go": "x"})

        files = scan_files(repo, ["*.go"], [], max_file_size=100)

        big = next(f for f in files if f.path == "big.go")
        assert big.included is False
        assert big.reason == "File too large (200 bytes > 100 bytes)"
        assert next(f for f in files if f.path == "small.go").included is True

    def test_oversize_files_do_not_count_toward_budget(
        self, make_files: Callable[[dict[str, str]], Path]
    ) -> None:
        """Test only included files consume the file budget."""
        repo = make_files({"a.go": "x" * 50, "b.go": "x" * 50, "c.go": ""})

        files = scan_files(repo, ["*.go"], [], max_files=1, max_file_size=10)

        assert [f.path for f in files if f.included] == ["c.go"]

    def test_budget_exceeded(self, make_files: Callable[[dict[str, str]], Path]) -> None:
        """Test exceeding the budget raises ScanError."""
        repo = make_files({"a.go": "", "b.go": "", "c.go": ""})

        with pytest.raises(ScanError, match="too many files"):
            scan_files(repo, ["*.go"], [], max_files=2)

    def test_budget_exactly_met(self, make_files: Callable[[dict[str, str]], Path]) -> None:
        """Test a scan that fills the budget exactly succeeds."""
        repo = make_files({"a.go": "", "b.go": "", "readme.md": ""})

        files = scan_files(repo, ["*.go"], [], max_files=2)

        assert len([f for f in files if f.included]) == 2


class TestAnalyzeRepository:
    """Tests for full repository analysis."""

    def test_go_project(self, go_repo: Path) -> None:
        """Test Go sample selects sources and drops tests."""
        info = analyze_repository(go_repo)

        assert info.language == Language.GO
        assert info.root_path == go_repo.resolve()
        assert info.included_files == [
            "go.mod",
            "main.go",
            "cmd/waffled/main.go",
            "pkg/server/server.go",
        ]

    def test_python_project(self, python_repo: Path) -> None:
        """Test Python sample excludes __init__ and test modules."""
        info = analyze_repository(python_repo)

        assert info.language == Language.PYTHON
        assert info.included_files == [
            "pyproject.toml",
            "src/sample_project/app.py",
            "src/sample_project/utils.py",
        ]
        reasons = {f.path: f.reason for f in info.files}
        assert reasons["src/sample_project/__init__.py"] == "Excluded by pattern: __init__.py"
        assert reasons["tests/test_app.py"] == "Excluded by pattern: *test*.py"

    def test_missing_path(self, tmp_path: Path) -> None:
        """Test nonexistent repository raises ValueError."""
        with pytest.raises(ValueError, match="does not exist"):
            analyze_repository(tmp_path / "nope")

    def test_result_is_immutable(self, go_repo: Path) -> None:
        """Test RepositoryInfo cannot be modified after analysis."""
        info = analyze_repository(go_repo)

        with pytest.raises(AttributeError):
            info.language = Language.PYTHON  # type: ignore[misc]
        assert isinstance(info.files, tuple)

    def test_gitignore_negation(self, make_files: Callable[[dict[str, str]], Path]) -> None:
        """Test .gitignore negation re-includes a file the rules exclude."""
        repo = make_files(
            {
                ".gitignore": "*.log\n!important.log\n",
                "app.log": "",
                "important.log": "",
                "README.md": "",
            }
        )

        info = analyze_repository(repo, RepositoryOverrides(language=Language.UNKNOWN))

        decisions = {f.path: f.included for f in info.files}
        assert decisions["app.log"] is False
        assert decisions["important.log"] is True
        assert info.negation_patterns == ("important.log",)
        assert info.gitignore_rules == ("*.log", "!important.log")

    def test_gitignore_directory_rule(
        self, make_files: Callable[[dict[str, str]], Path]
    ) -> None:
        """Test directory rules from .gitignore exclude everything below."""
        repo = make_files({".gitignore": "generated/\n", "main.go": "", "generated/x.go": ""})

        info = analyze_repository(repo)

        assert info.included_files == ["main.go"]
        assert "generated/*" in info.exclude_patterns

    def test_ignore_gitignore(self, make_files: Callable[[dict[str, str]], Path]) -> None:
        """Test ignore_gitignore skips .gitignore rules."""
        repo = make_files({".gitignore": "skip.go\n", "main.go": "", "skip.go": ""})

        info = analyze_repository(repo, RepositoryOverrides(ignore_gitignore=True))

        assert "skip.go" in info.included_files
        assert info.gitignore_rules == ()

    def test_language_override(self, go_repo: Path) -> None:
        """Test language override bypasses detection."""
        info = analyze_repository(go_repo, RepositoryOverrides(language=Language.PYTHON))

        assert info.language == Language.PYTHON
        assert "*.py" in info.include_patterns

    def test_override_patterns_expand_aliases(
        self, make_files: Callable[[dict[str, str]], Path]
    ) -> None:
        """Test include aliases are expanded and merged."""
        repo = make_files({"main.go": "", "docs/guide.md": "", "internal/x.go": ""})

        info = analyze_repository(
            repo,
            RepositoryOverrides(include_patterns=["docs"], exclude_patterns=["internal/*"]),
        )

        assert "*.md" in info.include_patterns
        assert info.included_files == ["main.go", "docs/guide.md"]

    def test_invalid_override_pattern(self, go_repo: Path) -> None:
        """Test malformed override pattern raises ValueError."""
        with pytest.raises(ValueError):
            analyze_repository(go_repo, RepositoryOverrides(include_patterns=["[bad"]))

    def test_budget_from_overrides(self, go_repo: Path) -> None:
        """Test max_files override is enforced."""
        with pytest.raises(ScanError):
            analyze_repository(go_repo, RepositoryOverrides(max_files=2))
