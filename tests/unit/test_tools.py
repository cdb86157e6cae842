"""Unit tests for command construction and output handling."""

from pathlib import Path

import pytest

from waffles.models import FileInfo, Language, RepositoryInfo
from waffles.pipeline.tools import (
    MAX_EXPLICIT_FILES,
    TRUNCATION_MARKER,
    CommandValidationError,
    build_context_command,
    build_generation_command,
    build_prompt_command,
    estimate_tokens,
    extract_error_from_output,
    parse_custom_args,
    parse_tool_output,
    sanitize_args,
    truncate_if_needed,
    validate_command,
)


def _repo_info(file_count: int, language: Language = Language.GO) -> RepositoryInfo:
    files = tuple(
        FileInfo(path=f"f{i}.go", size=1, included=True, reason="Included by pattern: *.go")
        for i in range(file_count)
    )
    return RepositoryInfo(
        language=language,
        root_path=Path("/repo"),
        include_patterns=("*.go",),
        exclude_patterns=("*_test.go",),
        files=files,
    )


class TestCustomArgs:
    """Tests for passthrough argument parsing and sanitization."""

    def test_parse_shell_style(self) -> None:
        """Test quoted arguments stay together."""
        assert parse_custom_args('--system "be brief" -x') == ["--system", "be brief", "-x"]

    def test_parse_empty(self) -> None:
        """Test empty or missing strings give no arguments."""
        assert parse_custom_args("") == []
        assert parse_custom_args(None) == []

    def test_sanitize_drops_denylisted(self) -> None:
        """Test dangerous arguments are removed case-insensitively."""
        args = ["--temperature", "0", "SUDO", "--exec=ls", "curl", "--quiet"]

        assert sanitize_args(args) == ["--temperature", "0", "--quiet"]

    def test_sanitize_keeps_order(self) -> None:
        """Test surviving arguments keep their order."""
        assert sanitize_args(["-a", "-b", "-c"]) == ["-a", "-b", "-c"]


class TestValidateCommand:
    """Tests for argv validation."""

    def test_empty(self) -> None:
        """Test an empty argv is rejected."""
        with pytest.raises(CommandValidationError, match="empty command"):
            validate_command([])

    @pytest.mark.parametrize("arg", ["../etc/passwd", "a/../b", "..\\windows"])
    def test_path_traversal(self, arg: str) -> None:
        """Test traversal sequences are rejected."""
        with pytest.raises(CommandValidationError, match="path traversal"):
            validate_command(["tool", arg])

    def test_valid(self) -> None:
        """Test ordinary arguments pass."""
        validate_command(["tool", "..hidden", "./local", "a.b"])


class TestBuildCommands:
    """Tests for per-stage argv construction."""

    def test_prompt_command(self) -> None:
        """Test extra args precede the split query terms."""
        cmd = build_prompt_command("wheresmyprompt", "  review   error handling ", ["--raw"])

        assert cmd == ["wheresmyprompt", "--raw", "review", "error", "handling"]

    def test_context_command_with_files(self) -> None:
        """Test language, patterns, args, then explicit files."""
        cmd = build_context_command("files2prompt", _repo_info(2), ["--xml"])

        assert cmd == [
            "files2prompt",
            "--language", "go",
            "--include", "*.go",
            "--exclude", "*_test.go",
            "--xml",
            "f0.go", "f1.go",
        ]

    def test_context_command_unknown_language(self) -> None:
        """Test unknown language omits --language."""
        cmd = build_context_command("files2prompt", _repo_info(1, Language.UNKNOWN), [])

        assert "--language" not in cmd

    def test_context_command_many_files_uses_dot(self) -> None:
        """Test the file list collapses to "." at the explicit-file limit."""
        cmd = build_context_command("files2prompt", _repo_info(MAX_EXPLICIT_FILES), [])

        assert cmd[-1] == "."
        assert "f0.go" not in cmd

    def test_context_command_just_under_limit(self) -> None:
        """Test 99 files are passed explicitly."""
        cmd = build_context_command("files2prompt", _repo_info(MAX_EXPLICIT_FILES - 1), [])

        assert cmd[-1] == f"f{MAX_EXPLICIT_FILES - 2}.go"

    def test_context_command_no_files(self) -> None:
        """Test zero included files falls back to "."."""
        assert build_context_command("files2prompt", _repo_info(0), [])[-1] == "."

    def test_context_command_without_analysis(self) -> None:
        """Test missing analysis gives tool, args, and "."."""
        assert build_context_command("files2prompt", None, ["-v"]) == ["files2prompt", "-v", "."]

    def test_generation_command(self) -> None:
        """Test model, system prompt, args, then context last."""
        cmd = build_generation_command("llm", "You review code.", "CONTEXT", "m1", ["--no-stream"])

        assert cmd == ["llm", "-m", "m1", "--system", "You review code.", "--no-stream", "CONTEXT"]

    def test_generation_command_omits_empty_parts(self) -> None:
        """Test empty model, prompt, and context are left out."""
        assert build_generation_command("llm", "", "", None, []) == ["llm"]


class TestOutputHandling:
    """Tests for output cleanup and error extraction."""

    def test_parse_strips_noise(self) -> None:
        """Test blank lines and log-prefixed lines are removed."""
        raw = "DEBUG: loading\n\n  first line  \nINFO: ok\nWARN: careful\nsecond\n"

        assert parse_tool_output(raw) == "first line\nsecond"

    def test_extract_prefers_marker_line(self) -> None:
        """Test the first marker line wins over earlier text."""
        raw = "starting\nsomething happened\nError: bad thing\nFailed: other"

        assert extract_error_from_output(raw) == "Error: bad thing"

    def test_extract_first_nonblank(self) -> None:
        """Test fallback to the first non-blank line."""
        assert extract_error_from_output("\n\n  boom  \nmore") == "boom"

    def test_extract_unknown(self) -> None:
        """Test empty output gives a generic message."""
        assert extract_error_from_output("") == "Unknown error"


class TestTruncation:
    """Tests for token estimation and truncation."""

    def test_estimate_tokens(self) -> None:
        """Test four characters per token."""
        assert estimate_tokens("a" * 10) == 2

    def test_under_budget_unchanged(self) -> None:
        """Test text within budget is returned as-is."""
        text = "x" * 400

        assert truncate_if_needed(text, 100) is text

    def test_truncation_length(self) -> None:
        """Test 10,000 characters at a 900-token budget keeps 3240."""
        result = truncate_if_needed("x" * 10_000, 900)

        assert result == "x" * 3240 + TRUNCATION_MARKER

    def test_minimum_kept(self) -> None:
        """Test at least 100 characters are kept."""
        result = truncate_if_needed("y" * 10_000, 1)

        assert result == "y" * 100 + TRUNCATION_MARKER

    def test_truncated_text_fits_budget(self) -> None:
        """Test truncating again leaves the result unchanged."""
        once = truncate_if_needed("z" * 50_000, 2000)

        assert truncate_if_needed(once, 2000) == once
