"""Command construction and output handling for the external tools.

Commands are always built as argv lists and never passed through a shell.
The argument denylist is a secondary filter on passthrough arguments only.
"""

import shlex

from waffles.models.repository import Language, RepositoryInfo

# Above this many included files the context tool scans "." instead
MAX_EXPLICIT_FILES = 100

DANGEROUS_ARG_SUBSTRINGS: tuple[str, ...] = (
    "--exec",
    "--execute",
    "--eval",
    "--script",
    "rm",
    "del",
    "delete",
    "format",
    "mkfs",
    "sudo",
    "su",
    "chmod",
    "chown",
    "curl",
    "wget",
    "nc",
    "netcat",
)

NOISE_PREFIXES: tuple[str, ...] = ("DEBUG:", "INFO:", "WARN:")

ERROR_MARKERS: tuple[str, ...] = ("error:", "failed:", "exception:")

TRUNCATION_MARKER = "...\n[Content truncated due to length]"

# Minimum characters kept when truncating
MIN_KEEP_CHARS = 100


class CommandValidationError(ValueError):
    """Raised when a constructed command fails validation."""


def parse_custom_args(args: str | None) -> list[str]:
    """Split a per-tool argument string shell-style.

    Quoting is honoured; nothing is expanded or executed.
    """
    if not args:
        return []
    return shlex.split(args)


def sanitize_args(args: list[str]) -> list[str]:
    """Drop arguments containing a denylisted substring (case-insensitive)."""
    safe: list[str] = []
    for arg in args:
        lowered = arg.lower()
        if any(danger in lowered for danger in DANGEROUS_ARG_SUBSTRINGS):
            continue
        safe.append(arg)
    return safe


def validate_command(command: list[str]) -> None:
    """Validate an argv before it is spawned.

    Raises:
        CommandValidationError: If empty or any argument contains path traversal
    """
    if not command:
        raise CommandValidationError("empty command")

    for arg in command:
        if "../" in arg or "..\\" in arg:
            raise CommandValidationError(f"path traversal detected in argument: {arg}")


def build_prompt_command(tool: str, query: str, args: list[str]) -> list[str]:
    """Build the prompt-retrieval command.

    Format: <tool> [args...] <query terms...>
    """
    return [tool, *args, *query.split()]


def build_context_command(
    tool: str,
    repo_info: RepositoryInfo | None,
    args: list[str],
) -> list[str]:
    """Build the context-extraction command.

    Format: <tool> [--language L] [--include P]* [--exclude P]* [args...] <file...|.>
    """
    cmd = [tool]

    if repo_info is None:
        return [*cmd, *args, "."]

    if repo_info.language != Language.UNKNOWN:
        cmd.extend(["--language", repo_info.language.value])

    for pattern in repo_info.include_patterns:
        cmd.extend(["--include", pattern])

    for pattern in repo_info.exclude_patterns:
        cmd.extend(["--exclude", pattern])

    cmd.extend(args)

    included = repo_info.included_files
    if 0 < len(included) < MAX_EXPLICIT_FILES:
        cmd.extend(included)
    else:
        cmd.append(".")

    return cmd


def build_generation_command(
    tool: str,
    system_prompt: str,
    context: str,
    model: str | None,
    args: list[str],
) -> list[str]:
    """Build the generation command.

    Format: <tool> [-m model] [--system <prompt>] [args...] <context>
    """
    cmd = [tool]

    if model:
        cmd.extend(["-m", model])

    if system_prompt:
        cmd.extend(["--system", system_prompt])

    cmd.extend(args)

    if context:
        cmd.append(context)

    return cmd


def parse_tool_output(output: str) -> str:
    """Strip blank lines and debug/info/warn noise from tool output."""
    cleaned: list[str] = []
    for line in output.splitlines():
        line = line.strip()
        if not line or line.startswith(NOISE_PREFIXES):
            continue
        cleaned.append(line)
    return "\n".join(cleaned)


def extract_error_from_output(output: str) -> str:
    """Pick the most informative line from failed tool output.

    Prefers the first line carrying an error/failed/exception marker, then
    the first non-blank line.
    """
    lines = [line.strip() for line in output.splitlines()]

    for line in lines:
        lowered = line.lower()
        if any(marker in lowered for marker in ERROR_MARKERS):
            return line

    for line in lines:
        if line:
            return line

    return "Unknown error"


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four characters."""
    return len(text) // 4


def truncate_if_needed(text: str, max_tokens: int) -> str:
    """Shorten text whose estimated token count exceeds max_tokens.

    Keeps a 10% buffer below the budget and appends TRUNCATION_MARKER.
    Text already within budget is returned unchanged.
    """
    estimated = estimate_tokens(text)
    if estimated <= max_tokens:
        return text

    keep_chars = int(len(text) * max_tokens * 0.9 / estimated)
    keep_chars = max(keep_chars, MIN_KEEP_CHARS)

    return text[:keep_chars] + TRUNCATION_MARKER
