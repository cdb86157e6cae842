"""Waffles configuration system.

Configuration is YAML-based with CLI overrides for per-run settings.
Supports environment variable substitution (${VAR}) in config files.

Configuration file discovery (in priority order):
1. CLI --config argument
2. ./.waffles/config.yaml
3. ./waffles.yaml
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from waffles.models.repository import (
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_MAX_FILES,
    Language,
    RepositoryOverrides,
)

# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass
class ToolSpec:
    """External tool invocation settings.

    Attributes:
        command: Executable name (looked up on PATH) or path
        args: Extra arguments, split shell-style before use
        timeout: Timeout in seconds
    """

    command: str
    args: str = ""
    timeout: int = 60

    def __post_init__(self) -> None:
        """Validate tool settings."""
        if not self.command:
            raise ValueError("Tool command must not be empty")
        if self.timeout <= 0:
            raise ValueError(f"Tool timeout must be positive (got {self.timeout})")


def _default_prompt_tool() -> ToolSpec:
    return ToolSpec(command="wheresmyprompt", timeout=30)


def _default_context_tool() -> ToolSpec:
    return ToolSpec(command="files2prompt", timeout=60)


def _default_generation_tool() -> ToolSpec:
    return ToolSpec(command="llm", timeout=300)


@dataclass
class ToolConfig:
    """Pipeline tool configuration.

    Attributes:
        prompt: Prompt retrieval tool (stage 1)
        context: Context extraction tool (stage 2)
        generation: Generation tool (stage 3)
        check_dependencies: Verify tools are on PATH before running
    """

    prompt: ToolSpec = field(default_factory=_default_prompt_tool)
    context: ToolSpec = field(default_factory=_default_context_tool)
    generation: ToolSpec = field(default_factory=_default_generation_tool)
    check_dependencies: bool = True


@dataclass
class LLMConfig:
    """Generation backend settings.

    Attributes:
        model: Model passed to the generation tool
        provider: Provider name (informational)
        max_input_tokens: Token budget for the generation input
    """

    model: str = "claude-3-sonnet"
    provider: str = "anthropic"
    max_input_tokens: int = 6000

    def __post_init__(self) -> None:
        """Validate LLM configuration."""
        if self.max_input_tokens <= 0:
            raise ValueError(
                f"max_input_tokens must be positive (got {self.max_input_tokens})"
            )


@dataclass
class RepositoryConfig:
    """Repository analysis settings.

    Attributes:
        language: Language override (None for auto-detection)
        include: Extra include patterns
        exclude: Extra exclude patterns
        ignore_gitignore: Do not apply .gitignore rules
        max_files: Maximum number of included files
        max_file_size: Maximum file size in bytes
    """

    language: Language | None = None
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    ignore_gitignore: bool = False
    max_files: int = DEFAULT_MAX_FILES
    max_file_size: int = DEFAULT_MAX_FILE_SIZE

    def __post_init__(self) -> None:
        """Validate repository configuration."""
        if isinstance(self.language, str):
            self.language = Language.parse(self.language)
        if self.max_files <= 0:
            raise ValueError(f"max_files must be positive (got {self.max_files})")
        if self.max_file_size <= 0:
            raise ValueError(f"max_file_size must be positive (got {self.max_file_size})")

    def to_overrides(self) -> RepositoryOverrides:
        """Convert to analysis overrides."""
        return RepositoryOverrides(
            language=self.language,
            include_patterns=list(self.include),
            exclude_patterns=list(self.exclude),
            ignore_gitignore=self.ignore_gitignore,
            max_files=self.max_files,
            max_file_size=self.max_file_size,
        )


@dataclass
class WafflesConfig:
    """Top-level Waffles configuration.

    Attributes:
        llm: Generation backend settings
        tools: External tool settings
        repository: Repository analysis settings
    """

    llm: LLMConfig = field(default_factory=LLMConfig)
    tools: ToolConfig = field(default_factory=ToolConfig)
    repository: RepositoryConfig = field(default_factory=RepositoryConfig)

    # Runtime overrides (set by CLI)
    _config_path: Path | None = field(default=None, repr=False)

    @property
    def config_path(self) -> Path | None:
        """Get the path to the config file that was loaded."""
        return self._config_path


# =============================================================================
# Environment Variable Substitution
# =============================================================================


def substitute_env_vars(value: Any) -> Any:
    """Substitute environment variables in config values.

    Supports ${VAR} syntax for environment variable substitution.

    Raises:
        ValueError: If a referenced variable is not set
    """
    if isinstance(value, str):
        pattern = re.compile(r"\$\{([^}]+)\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(f"Environment variable not set: {var_name}")
            return env_value

        return pattern.sub(replace_var, value)

    elif isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [substitute_env_vars(v) for v in value]

    return value


# =============================================================================
# Config File Discovery
# =============================================================================


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find configuration file in standard locations.

    Search order:
    1. ./.waffles/config.yaml
    2. ./waffles.yaml
    """
    if start_path is None:
        start_path = Path.cwd()

    start_path = start_path.resolve()

    candidates = [
        start_path / ".waffles" / "config.yaml",
        start_path / "waffles.yaml",
    ]

    for candidate in candidates:
        if candidate.exists():
            return candidate

    return None


# =============================================================================
# Config Loading
# =============================================================================


def _as_pattern_list(value: Any) -> list[str]:
    """Accept either a list or a comma-separated string of patterns."""
    if value is None:
        return []
    if isinstance(value, str):
        return [p.strip() for p in value.split(",") if p.strip()]
    return [str(p) for p in value]


def _load_tool_spec(data: dict[str, Any] | None, default: ToolSpec) -> ToolSpec:
    if not data:
        return default
    return ToolSpec(
        command=data.get("command", default.command),
        args=data.get("args", default.args) or "",
        timeout=int(data.get("timeout", default.timeout)),
    )


def load_config_from_dict(data: dict[str, Any]) -> WafflesConfig:
    """Load configuration from a dictionary.

    Raises:
        ValueError: If a value is invalid
    """
    data = substitute_env_vars(data)

    config = WafflesConfig()

    if "llm" in data:
        llm_data = data["llm"] or {}
        config.llm = LLMConfig(
            model=llm_data.get("model", config.llm.model),
            provider=llm_data.get("provider", config.llm.provider),
            max_input_tokens=int(llm_data.get("max_input_tokens", config.llm.max_input_tokens)),
        )

    if "tools" in data:
        tools_data = data["tools"] or {}
        config.tools = ToolConfig(
            prompt=_load_tool_spec(tools_data.get("prompt"), config.tools.prompt),
            context=_load_tool_spec(tools_data.get("context"), config.tools.context),
            generation=_load_tool_spec(tools_data.get("generation"), config.tools.generation),
            check_dependencies=tools_data.get(
                "check_dependencies", config.tools.check_dependencies
            ),
        )

    if "repository" in data:
        repo_data = data["repository"] or {}
        config.repository = RepositoryConfig(
            language=repo_data.get("language"),
            include=_as_pattern_list(repo_data.get("include")),
            exclude=_as_pattern_list(repo_data.get("exclude")),
            ignore_gitignore=repo_data.get("ignore_gitignore", False),
            max_files=int(repo_data.get("max_files", DEFAULT_MAX_FILES)),
            max_file_size=int(repo_data.get("max_file_size", DEFAULT_MAX_FILE_SIZE)),
        )

    return config


def load_config(
    config_path: Path | None = None,
    auto_discover: bool = True,
) -> WafflesConfig:
    """Load configuration from file.

    Args:
        config_path: Explicit path to config file
        auto_discover: Whether to search for config file if not specified

    Returns:
        WafflesConfig instance

    Raises:
        FileNotFoundError: If config_path specified but doesn't exist
    """
    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        found_path = config_path
    elif auto_discover:
        found_path = find_config_file()
    else:
        found_path = None

    if found_path is not None:
        with open(found_path) as f:
            data = yaml.safe_load(f) or {}
        config = load_config_from_dict(data)
        config._config_path = found_path
    else:
        config = WafflesConfig()

    return config


def create_default_config() -> str:
    """Create default configuration YAML content."""
    return '''# Waffles Configuration

# Generation backend
llm:
  model: "claude-3-sonnet"
  provider: "anthropic"
  max_input_tokens: 6000   # Context beyond this estimate is truncated

# Pipeline tools (located via PATH)
tools:
  check_dependencies: true
  prompt:
    command: "wheresmyprompt"
    args: ""
    timeout: 30
  context:
    command: "files2prompt"
    args: ""
    timeout: 60
  generation:
    command: "llm"
    args: ""
    timeout: 300
    # args: "--no-stream"

# Repository analysis
repository:
  # language: "python"     # go, python (auto-detected if unset)
  include: []              # Extra patterns; aliases: source, config, docs, tests
  exclude: []
  ignore_gitignore: false
  max_files: 1000
  max_file_size: 1048576   # bytes
'''
