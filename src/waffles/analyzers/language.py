"""Language detection by weighted file indicators.

Walks the repository (bounded depth, noise directories pruned) and scores
each supported language from manifest files, source extensions, and
characteristic directory layout. The highest score wins; confidence is the
winner's share of all evidence.
"""

import logging
import os
from pathlib import Path

from waffles.models.repository import (
    SUPPORTED_LANGUAGES,
    DetectionIndicator,
    IndicatorType,
    Language,
    LanguageDetectionResult,
)

logger = logging.getLogger(__name__)

# Entries deeper than this many separators below the root are skipped
MAX_DEPTH = 3

# Directories never descended into (hidden directories are skipped too)
SKIP_DIRS = {"node_modules", "vendor", "__pycache__"}

# Exact filename indicators: filename -> (type, weight, description)
FILENAME_INDICATORS: dict[Language, dict[str, tuple[IndicatorType, float, str]]] = {
    Language.GO: {
        "go.mod": (IndicatorType.MANIFEST_FILE, 50.0, "Go module file"),
        "go.sum": (IndicatorType.MANIFEST_FILE, 20.0, "Go checksums file"),
        "main.go": (IndicatorType.SOURCE_FILE, 15.0, "Go main file"),
    },
    Language.PYTHON: {
        "pyproject.toml": (IndicatorType.MANIFEST_FILE, 45.0, "Python project file"),
        "requirements.txt": (IndicatorType.MANIFEST_FILE, 40.0, "Python requirements file"),
        "setup.py": (IndicatorType.MANIFEST_FILE, 35.0, "Python setup file"),
        "Pipfile": (IndicatorType.MANIFEST_FILE, 30.0, "Python Pipfile"),
        "__init__.py": (IndicatorType.SOURCE_FILE, 5.0, "Python package init file"),
    },
}

# Fallback extension indicators when no filename matched
EXTENSION_INDICATORS: dict[Language, tuple[str, float, str]] = {
    Language.GO: (".go", 10.0, "Go source file"),
    Language.PYTHON: (".py", 10.0, "Python source file"),
}

# Source files under these directories add a layout bonus
DIRECTORY_INDICATORS: dict[Language, list[tuple[str, str, float, str]]] = {
    Language.GO: [
        ("cmd/", ".go", 5.0, "Go command directory structure"),
        ("pkg/", ".go", 5.0, "Go package directory structure"),
    ],
}


class LanguageDetector:
    """Scores supported languages for a repository.

    Usage:
        detector = LanguageDetector()
        result = detector.detect(repo_path)
        print(result.language, result.confidence)
    """

    def __init__(self, max_depth: int = MAX_DEPTH) -> None:
        """Initialize the detector.

        Args:
            max_depth: Maximum number of separators in a relative path
        """
        self.max_depth = max_depth

    def detect(self, path: Path | str) -> LanguageDetectionResult:
        """Detect the primary language of a directory tree.

        Args:
            path: Repository root

        Returns:
            LanguageDetectionResult with language, confidence, and indicators

        Raises:
            ValueError: If the path does not exist
        """
        root = Path(path)
        if not root.exists():
            raise ValueError(f"Path does not exist: {root}")

        indicators: list[DetectionIndicator] = []
        scores: dict[Language, float] = {lang: 0.0 for lang in SUPPORTED_LANGUAGES}

        for rel_path in self._walk(root):
            self._score_file(rel_path, indicators, scores)

        language = Language.UNKNOWN
        max_score = 0.0
        for lang in SUPPORTED_LANGUAGES:
            if scores[lang] > max_score:
                max_score = scores[lang]
                language = lang

        confidence = calculate_confidence(max_score, scores)

        logger.debug(
            "Language detection for %s: %s (confidence %.2f, %d indicators)",
            root,
            language.value,
            confidence,
            len(indicators),
        )

        return LanguageDetectionResult(
            language=language,
            confidence=confidence,
            indicators=indicators,
            scores=scores,
        )

    def _walk(self, root: Path) -> list[str]:
        """Collect relative file paths within the depth limit.

        Unreadable entries are skipped silently so one bad directory does not
        abort detection.
        """
        files: list[str] = []
        for dirpath, dirnames, filenames in os.walk(root):
            rel_dir = Path(dirpath).relative_to(root).as_posix()
            depth = 0 if rel_dir == "." else rel_dir.count("/") + 1

            dirnames[:] = sorted(
                d
                for d in dirnames
                if not d.startswith(".") and d not in SKIP_DIRS and depth < self.max_depth
            )

            for name in sorted(filenames):
                rel_path = name if rel_dir == "." else f"{rel_dir}/{name}"
                if rel_path.count("/") > self.max_depth:
                    continue
                files.append(rel_path)
        return files

    def _score_file(
        self,
        rel_path: str,
        indicators: list[DetectionIndicator],
        scores: dict[Language, float],
    ) -> None:
        """Apply the indicator tables to a single file."""
        file_name = rel_path.rsplit("/", 1)[-1]

        for lang in SUPPORTED_LANGUAGES:
            match = FILENAME_INDICATORS.get(lang, {}).get(file_name)
            if match is not None:
                indicator_type, weight, description = match
                indicators.append(DetectionIndicator(indicator_type, rel_path, weight, description))
                scores[lang] += weight
            elif lang in EXTENSION_INDICATORS:
                suffix, weight, description = EXTENSION_INDICATORS[lang]
                if file_name.endswith(suffix):
                    indicators.append(
                        DetectionIndicator(IndicatorType.SOURCE_FILE, rel_path, weight, description)
                    )
                    scores[lang] += weight

            for directory, suffix, weight, description in DIRECTORY_INDICATORS.get(lang, []):
                if directory in rel_path and file_name.endswith(suffix):
                    indicators.append(
                        DetectionIndicator(IndicatorType.DIRECTORY, directory, weight, description)
                    )
                    scores[lang] += weight


def calculate_confidence(max_score: float, scores: dict[Language, float]) -> float:
    """Return the winning score's share of the total, clamped to [0, 1]."""
    if max_score <= 0:
        return 0.0

    total = sum(scores.values())
    if total <= 0:
        return 0.0

    return min(max_score / total, 1.0)


def detect_language_with_details(path: Path | str) -> LanguageDetectionResult:
    """Detect the primary language of a repository with full evidence.

    Args:
        path: Repository root

    Returns:
        LanguageDetectionResult
    """
    return LanguageDetector().detect(path)


def detect_language(path: Path | str) -> Language:
    """Detect the primary language of a repository.

    Args:
        path: Repository root

    Returns:
        Detected Language (UNKNOWN if no indicators matched)
    """
    return detect_language_with_details(path).language
