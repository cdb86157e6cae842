"""Preflight validation of the pipeline tools.

The three external tools are checked before the first phase runs so a
missing executable fails fast with a clear message instead of mid-pipeline.
"""

import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Any

from waffles.config import ToolConfig

TOOL_HINTS = {
    "wheresmyprompt": "Prompt retrieval (stage 1)",
    "files2prompt": "Context extraction (stage 2)",
    "llm": "Generation backend (stage 3). Install via: pip install llm",
}


@dataclass
class ToolCheck:
    """Result of checking a single tool.

    Attributes:
        name: Tool name
        available: Whether tool is available
        version: Tool version if available
        required: Whether tool is required for this run
        path: Path to executable if available
        message: Status message (human-readable context)
    """

    name: str
    available: bool
    version: str | None = None
    required: bool = True
    path: str | None = None
    message: str = ""


@dataclass
class PreflightResult:
    """Result of preflight validation.

    Attributes:
        success: Whether all required tools are available
        checks: Individual tool check results
        errors: Error messages for missing required tools
        warnings: Warning messages for missing optional tools
    """

    success: bool = True
    checks: list[ToolCheck] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def missing(self) -> list[str]:
        """Names of required tools that were not found."""
        return [c.name for c in self.checks if c.required and not c.available]

    def add_check(self, check: ToolCheck) -> None:
        """Add a tool check result."""
        self.checks.append(check)

        if not check.available:
            if check.required:
                self.success = False
                self.errors.append(f"Required tool not found: {check.name}")
            else:
                self.warnings.append(f"Optional tool not found: {check.name}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "success": self.success,
            "checks": [
                {
                    "name": c.name,
                    "available": c.available,
                    "version": c.version,
                    "required": c.required,
                    "path": c.path,
                    "message": c.message,
                }
                for c in self.checks
            ],
            "errors": self.errors,
            "warnings": self.warnings,
        }


class PreflightChecker:
    """Validates external tool availability before a pipeline run.

    Usage:
        checker = PreflightChecker()
        result = checker.check_all(config.tools)
        if not result.success:
            sys.exit(1)
    """

    def __init__(self, timeout: int = 10, check_versions: bool = True) -> None:
        """Initialize preflight checker.

        Args:
            timeout: Timeout in seconds for version checks
            check_versions: Whether to run "<tool> --version" for found tools
        """
        self.timeout = timeout
        self.check_versions = check_versions

    def get_command_version(self, command: str) -> str | None:
        """Return the first line of "<command> --version", or None."""
        try:
            result = subprocess.run(
                [command, "--version"],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (subprocess.TimeoutExpired, OSError):
            return None

        if result.returncode != 0:
            return None
        output = result.stdout.strip() or result.stderr.strip()
        return output.splitlines()[0] if output else None

    def check_tool(self, name: str, command: str, required: bool = True) -> ToolCheck:
        """Check that a tool's executable can be found.

        Args:
            name: Display name
            command: Executable name or path
            required: Whether the tool is required for this run

        Returns:
            ToolCheck result
        """
        path = shutil.which(command)
        hint = TOOL_HINTS.get(name, "")

        if path is None:
            return ToolCheck(
                name=name,
                available=False,
                required=required,
                message=f"'{command}' not found on PATH. {hint}".strip(),
            )

        version = self.get_command_version(path) if self.check_versions else None
        return ToolCheck(
            name=name,
            available=True,
            version=version,
            required=required,
            path=path,
            message=hint,
        )

    def check_all(self, tools: ToolConfig) -> PreflightResult:
        """Check every pipeline tool.

        Args:
            tools: Tool configuration

        Returns:
            PreflightResult with one check per tool
        """
        result = PreflightResult()
        for name, spec in (
            ("wheresmyprompt", tools.prompt),
            ("files2prompt", tools.context),
            ("llm", tools.generation),
        ):
            result.add_check(self.check_tool(name, spec.command))
        return result
