"""Repository entities produced by language detection and file selection.

The RepositoryInfo value is immutable once analysis finishes. Executions
receive it explicitly, so concurrent runs never share mutable state.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

DEFAULT_MAX_FILES = 1000
DEFAULT_MAX_FILE_SIZE = 1024 * 1024  # 1 MiB


class Language(Enum):
    """Primary implementation language of a repository."""

    GO = "go"
    PYTHON = "python"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value

    @property
    def is_supported(self) -> bool:
        """Return True if the language has a detection and pattern table."""
        return self in SUPPORTED_LANGUAGES

    @classmethod
    def parse(cls, value: "str | Language") -> "Language":
        """Parse a language name (case-insensitive).

        Raises:
            ValueError: If the name is not a known language
        """
        if isinstance(value, Language):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            valid = ", ".join(lang.value for lang in cls)
            raise ValueError(f"Unknown language: {value}. Valid: {valid}") from None


# Fixed iteration order; earlier entries win ties during detection
SUPPORTED_LANGUAGES: tuple[Language, ...] = (Language.GO, Language.PYTHON)


class IndicatorType(Enum):
    """Kind of evidence contributing to a language score."""

    MANIFEST_FILE = "manifest_file"
    SOURCE_FILE = "source_file"
    CONFIG_FILE = "config_file"
    DIRECTORY = "directory"
    FILE_COUNT = "file_count"


@dataclass
class DetectionIndicator:
    """Single piece of evidence for a language.

    Attributes:
        type: Indicator kind
        value: Matched value (relative path or directory marker)
        weight: Score contributed to the language
        description: Human-readable explanation
    """

    type: IndicatorType
    value: str
    weight: float
    description: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "type": self.type.value,
            "value": self.value,
            "weight": self.weight,
            "description": self.description,
        }


@dataclass
class LanguageDetectionResult:
    """Outcome of language detection.

    Attributes:
        language: Selected language (UNKNOWN when nothing matched)
        confidence: Winning score share of all scores, in [0, 1]
        indicators: Evidence in the order it was found
        scores: Aggregate weight per supported language
    """

    language: Language
    confidence: float
    indicators: list[DetectionIndicator] = field(default_factory=list)
    scores: dict[Language, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "language": self.language.value,
            "confidence": self.confidence,
            "indicators": [i.to_dict() for i in self.indicators],
            "scores": {lang.value: score for lang, score in self.scores.items()},
        }


@dataclass(frozen=True)
class FileInfo:
    """A file seen during scanning and the decision made about it.

    Attributes:
        path: Path relative to the repository root (forward slashes)
        size: Size in bytes
        included: Whether the file participates in context extraction
        reason: Why the file was included or excluded
    """

    path: str
    size: int
    included: bool
    reason: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "path": self.path,
            "size": self.size,
            "included": self.included,
            "reason": self.reason,
        }


@dataclass
class RepositoryOverrides:
    """User-supplied adjustments to repository analysis.

    Attributes:
        language: Skip detection and use this language
        include_patterns: Extra include globs (aliases are expanded)
        exclude_patterns: Extra exclude globs (aliases are expanded)
        ignore_gitignore: Do not read the root .gitignore
        max_files: Maximum number of included files
        max_file_size: Maximum size in bytes of a single file
    """

    language: Language | None = None
    include_patterns: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=list)
    ignore_gitignore: bool = False
    max_files: int = DEFAULT_MAX_FILES
    max_file_size: int = DEFAULT_MAX_FILE_SIZE


@dataclass(frozen=True)
class RepositoryInfo:
    """Immutable result of repository analysis.

    Attributes:
        language: Detected or overridden language
        root_path: Repository root
        include_patterns: Effective include globs
        exclude_patterns: Effective exclude globs (gitignore rules included)
        negation_patterns: Gitignore negations that re-include excluded paths
        files: Every scanned file with its inclusion decision
        gitignore_rules: Raw rule lines read from .gitignore
    """

    language: Language
    root_path: Path
    include_patterns: tuple[str, ...] = ()
    exclude_patterns: tuple[str, ...] = ()
    negation_patterns: tuple[str, ...] = ()
    files: tuple[FileInfo, ...] = ()
    gitignore_rules: tuple[str, ...] = ()

    @property
    def included_files(self) -> list[str]:
        """Relative paths of the included files, in scan order."""
        return [f.path for f in self.files if f.included]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "language": self.language.value,
            "root_path": str(self.root_path),
            "include_patterns": list(self.include_patterns),
            "exclude_patterns": list(self.exclude_patterns),
            "negation_patterns": list(self.negation_patterns),
            "files": [f.to_dict() for f in self.files],
            "gitignore_rules": list(self.gitignore_rules),
        }
