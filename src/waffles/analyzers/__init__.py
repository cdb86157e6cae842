"""Repository analyzers.

- language: Weighted-indicator language detection
- patterns: Pattern tables, gitignore translation, and matching
- scanner: File selection with budgets, producing RepositoryInfo
"""

from waffles.analyzers.language import (
    LanguageDetector,
    detect_language,
    detect_language_with_details,
)
from waffles.analyzers.patterns import (
    GitignoreRules,
    LanguagePatterns,
    PatternError,
    expand_patterns,
    get_patterns_for_language,
    load_gitignore,
    match_pattern,
    merge_patterns,
    parse_gitignore,
    should_include_file,
    validate_patterns,
)
from waffles.analyzers.scanner import ScanError, analyze_repository, scan_files

__all__ = [
    "GitignoreRules",
    "LanguageDetector",
    "LanguagePatterns",
    "PatternError",
    "ScanError",
    "analyze_repository",
    "detect_language",
    "detect_language_with_details",
    "expand_patterns",
    "get_patterns_for_language",
    "load_gitignore",
    "match_pattern",
    "merge_patterns",
    "parse_gitignore",
    "scan_files",
    "should_include_file",
    "validate_patterns",
]
