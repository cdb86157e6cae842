"""Glob pattern tables and gitignore-compatible matching.

Pattern vocabulary:
- "name" or "*.ext": matched against the basename
- "dir/*" or "dir/": matches everything below dir/
- patterns containing "/": also matched against the full relative path and
  each of its parent-directory prefixes

Globs use pathspec's gitwildmatch syntax, so wildcards never cross "/".
Malformed patterns fall back to substring search.
"""

import functools
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import cast

from pathspec import PathSpec

from waffles.models.repository import Language


@dataclass
class LanguagePatterns:
    """Default include and exclude globs for a language."""

    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)


LANGUAGE_PATTERNS: dict[Language, LanguagePatterns] = {
    Language.GO: LanguagePatterns(
        include=["*.go", "go.mod", "go.sum"],
        exclude=[
            "*_test.go",
            "pkg/version/*",
            "pkg/man/*",
            "vendor/*",
            ".git/*",
            "*.pb.go",
            "*_gen.go",
            "*_generated.go",
        ],
    ),
    Language.PYTHON: LanguagePatterns(
        include=[
            "*.py",
            "requirements.txt",
            "pyproject.toml",
            "setup.py",
            "setup.cfg",
            "Pipfile",
        ],
        exclude=[
            "*test*.py",
            "__init__.py",
            "__pycache__/*",
            ".pytest_cache/*",
            "*.pyc",
            "*.pyo",
            "*.pyd",
            ".git/*",
            "venv/*",
            "env/*",
            ".env/*",
            ".venv/*",
            "build/*",
            "dist/*",
            "*.egg-info/*",
        ],
    ),
}

GENERIC_PATTERNS = LanguagePatterns(
    include=["*"],
    exclude=[".git/*", "node_modules/*", "*.log"],
)

CONFIG_PATTERNS: dict[Language, list[str]] = {
    Language.GO: ["go.mod", "go.sum", ".goreleaser.yml", "Makefile"],
    Language.PYTHON: [
        "requirements.txt",
        "pyproject.toml",
        "setup.py",
        "setup.cfg",
        "Pipfile",
        "Pipfile.lock",
    ],
}
GENERIC_CONFIG_PATTERNS = ["*.json", "*.yaml", "*.yml", "*.toml", "*.ini"]

DOC_PATTERNS = ["*.md", "*.rst", "*.txt", "docs/*", "*.adoc"]

TEST_PATTERNS: dict[Language, list[str]] = {
    Language.GO: ["*_test.go"],
    Language.PYTHON: ["*test*.py", "test_*.py", "tests/*"],
}
GENERIC_TEST_PATTERNS = ["*test*", "test/*", "tests/*"]

_CONFIG_EXTENSIONS = (".mod", ".sum", ".txt", ".toml", ".cfg", ".yml", ".yaml", ".json", ".ini")
_CONFIG_FILES = ("Makefile", "Dockerfile", "Pipfile")


class PatternError(ValueError):
    """Raised when a glob pattern is malformed."""


@dataclass
class GitignoreRules:
    """Rules read from a .gitignore file.

    Attributes:
        raw: Rule lines as written (comments and blanks removed)
        exclude: Converted exclude globs
        negate: Converted globs from "!" lines
    """

    raw: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    negate: list[str] = field(default_factory=list)


# =============================================================================
# Pattern Tables
# =============================================================================


def get_patterns_for_language(language: Language) -> tuple[list[str], list[str]]:
    """Return copies of the default include and exclude globs for a language.

    Languages without a table get generic patterns.
    """
    patterns = LANGUAGE_PATTERNS.get(language, GENERIC_PATTERNS)
    return list(patterns.include), list(patterns.exclude)


def merge_patterns(*pattern_sets: LanguagePatterns) -> LanguagePatterns:
    """Combine pattern sets, dropping duplicates and keeping first-seen order."""
    merged = LanguagePatterns()
    for patterns in pattern_sets:
        merged.include.extend(patterns.include)
        merged.exclude.extend(patterns.exclude)

    merged.include = remove_duplicates(merged.include)
    merged.exclude = remove_duplicates(merged.exclude)
    return merged


def remove_duplicates(items: list[str]) -> list[str]:
    """Return items without duplicates, preserving order."""
    return list(dict.fromkeys(items))


def expand_patterns(patterns: list[str], language: Language) -> list[str]:
    """Expand pattern aliases ("source", "config", "docs", "tests").

    Args:
        patterns: Patterns possibly containing aliases
        language: Language used to resolve aliases

    Returns:
        Patterns with aliases replaced by their globs
    """
    aliases = {
        "source": _source_patterns(language),
        "config": CONFIG_PATTERNS.get(language, GENERIC_CONFIG_PATTERNS),
        "docs": DOC_PATTERNS,
        "tests": TEST_PATTERNS.get(language, GENERIC_TEST_PATTERNS),
    }

    expanded: list[str] = []
    for pattern in patterns:
        expanded.extend(aliases.get(pattern, [pattern]))
    return expanded


def _source_patterns(language: Language) -> list[str]:
    """Include globs that name source files rather than config files."""
    include, _ = get_patterns_for_language(language)
    return [p for p in include if "." in p and not _is_config_file(p)]


def _is_config_file(pattern: str) -> bool:
    if pattern.endswith(_CONFIG_EXTENSIONS):
        return True
    return any(name in pattern for name in _CONFIG_FILES)


# =============================================================================
# Gitignore
# =============================================================================


def convert_gitignore_pattern(pattern: str) -> str:
    """Convert a single gitignore pattern to the glob vocabulary.

    "dir/" becomes "dir/*"; a leading "/" (root-relative) is stripped.
    """
    if pattern.endswith("/"):
        return pattern.rstrip("/").lstrip("/") + "/*"
    return pattern.lstrip("/")


def parse_gitignore(content: str) -> GitignoreRules:
    """Parse .gitignore text into exclude and negation globs.

    Blank lines and comments are ignored. Negations ("!pattern") are kept
    separate and never merged into the exclude list.
    """
    rules = GitignoreRules()

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        rules.raw.append(line)

        if line.startswith("!"):
            pattern = convert_gitignore_pattern(line[1:])
            if pattern and pattern != "/*":
                rules.negate.append(pattern)
            continue

        pattern = convert_gitignore_pattern(line)
        if pattern and pattern != "/*":
            rules.exclude.append(pattern)

    return rules


def load_gitignore(root: Path | str) -> GitignoreRules:
    """Read the .gitignore at the repository root, if any."""
    gitignore_path = Path(root) / ".gitignore"
    try:
        content = gitignore_path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return GitignoreRules()
    return parse_gitignore(content)


# =============================================================================
# Matching
# =============================================================================


@functools.lru_cache(maxsize=1024)
def _compile_glob(pattern: str) -> PathSpec:
    """Compile a single glob with gitwildmatch semantics.

    gitwildmatch reads an unclosed "[" or a trailing "\\" literally; both are
    rejected here so malformed globs take the substring fallback.

    Raises:
        PatternError: On an unterminated character class or trailing escape
    """
    if pattern.rfind("[") > pattern.rfind("]"):
        raise PatternError(f"Unterminated character class in pattern: {pattern}")
    if pattern.endswith("\\") and not pattern.endswith("\\\\"):
        raise PatternError(f"Trailing escape in pattern: {pattern}")
    from_lines = cast("Callable[[str, Iterable[str]], PathSpec]", PathSpec.from_lines)
    try:
        return from_lines("gitwildmatch", [pattern])
    except ValueError as e:
        raise PatternError(f"Invalid pattern: {pattern}") from e


def glob_match(pattern: str, name: str) -> bool:
    """Match a name against a glob pattern.

    Raises:
        PatternError: If the pattern is malformed
    """
    return _compile_glob(pattern).match_file(name)


def match_pattern(file_path: str, pattern: str) -> bool:
    """Check whether a relative path matches a pattern.

    Args:
        file_path: Path relative to the repository root
        pattern: Glob pattern

    Returns:
        True if the path matches
    """
    file_path = file_path.replace("\\", "/")
    pattern = pattern.replace("\\", "/")

    if pattern.endswith("/*"):
        dir_pattern = pattern[:-2]
        if file_path.startswith(dir_pattern + "/"):
            return True
        if file_path.rpartition("/")[0] == dir_pattern:
            return True

    if pattern.endswith("/"):
        if file_path.startswith(pattern):
            return True

    base_name = file_path.rsplit("/", 1)[-1]
    try:
        if glob_match(pattern, base_name):
            return True
    except PatternError:
        return pattern.strip("*") in file_path

    if "/" in pattern:
        if glob_match(pattern, file_path):
            return True
        parts = file_path.split("/")
        for i in range(1, len(parts) + 1):
            if glob_match(pattern, "/".join(parts[:i])):
                return True

    return False


def validate_patterns(patterns: list[str]) -> None:
    """Check that every pattern is a well-formed glob.

    Raises:
        PatternError: On the first malformed pattern
    """
    for pattern in patterns:
        _compile_glob(pattern)


def should_include_file(
    file_path: str,
    include: list[str] | tuple[str, ...],
    exclude: list[str] | tuple[str, ...],
    negate: list[str] | tuple[str, ...] = (),
) -> tuple[bool, str]:
    """Decide whether a file is included and explain why.

    Exclude patterns take precedence over include patterns; a matching
    negation pattern re-includes an excluded path.

    Returns:
        Tuple of (included, reason)
    """
    file_path = file_path.replace("\\", "/")

    for pattern in exclude:
        if match_pattern(file_path, pattern):
            for negation in negate:
                if match_pattern(file_path, negation):
                    return True, f"Re-included by negation pattern: !{negation}"
            return False, f"Excluded by pattern: {pattern}"

    if not include:
        return True, "No include patterns specified"

    for pattern in include:
        if match_pattern(file_path, pattern):
            return True, f"Included by pattern: {pattern}"

    return False, "No matching include pattern"
