"""Repository scanning and analysis.

Combines language detection, per-language pattern tables, user overrides,
and .gitignore rules into an immutable RepositoryInfo. The scan enforces a
budget on included files and a per-file size limit.
"""

import logging
import os
from pathlib import Path

from waffles.analyzers.language import detect_language
from waffles.analyzers.patterns import (
    expand_patterns,
    get_patterns_for_language,
    load_gitignore,
    remove_duplicates,
    should_include_file,
    validate_patterns,
)
from waffles.models.repository import (
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_MAX_FILES,
    FileInfo,
    RepositoryInfo,
    RepositoryOverrides,
)

logger = logging.getLogger(__name__)

# Directories never descended into (hidden directories are skipped too)
SCAN_SKIP_DIRS = {"node_modules", "vendor", "__pycache__", "build", "dist"}


class ScanError(RuntimeError):
    """Raised when a scan exceeds its file budget."""


def scan_files(
    root: Path | str,
    include: list[str],
    exclude: list[str],
    negate: list[str] | None = None,
    max_files: int = DEFAULT_MAX_FILES,
    max_file_size: int = DEFAULT_MAX_FILE_SIZE,
) -> list[FileInfo]:
    """Scan a directory and decide inclusion for every file.

    Args:
        root: Repository root
        include: Include globs
        exclude: Exclude globs
        negate: Negation globs that re-include excluded paths
        max_files: Maximum number of included files
        max_file_size: Files larger than this (bytes) are excluded

    Returns:
        FileInfo for each scanned file, in walk order

    Raises:
        ScanError: If more than max_files files would be included
    """
    root = Path(root)
    negate = negate or []
    files: list[FileInfo] = []
    included_count = 0

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d for d in dirnames if not d.startswith(".") and d not in SCAN_SKIP_DIRS
        )

        rel_dir = Path(dirpath).relative_to(root).as_posix()
        for name in sorted(filenames):
            rel_path = name if rel_dir == "." else f"{rel_dir}/{name}"

            try:
                size = os.stat(os.path.join(dirpath, name)).st_size
            except OSError:
                continue

            if size > max_file_size:
                files.append(
                    FileInfo(
                        path=rel_path,
                        size=size,
                        included=False,
                        reason=f"File too large ({size} bytes > {max_file_size} bytes)",
                    )
                )
                continue

            included, reason = should_include_file(rel_path, include, exclude, negate)
            if included:
                if included_count >= max_files:
                    raise ScanError(f"too many files (limit: {max_files})")
                included_count += 1

            files.append(FileInfo(path=rel_path, size=size, included=included, reason=reason))

    return files


def analyze_repository(
    path: Path | str,
    overrides: RepositoryOverrides | None = None,
) -> RepositoryInfo:
    """Analyze a repository: language, effective patterns, and file selection.

    Args:
        path: Repository root
        overrides: User adjustments (defaults if None)

    Returns:
        Immutable RepositoryInfo

    Raises:
        ValueError: If the path does not exist or an override pattern is malformed
        ScanError: If the file budget is exceeded
    """
    overrides = overrides or RepositoryOverrides()
    root = Path(path).resolve()

    if not root.exists():
        raise ValueError(f"Repository path does not exist: {root}")

    language = overrides.language or detect_language(root)
    logger.info("Repository language: %s", language.value)

    include, exclude = get_patterns_for_language(language)

    if overrides.include_patterns:
        extra = expand_patterns(overrides.include_patterns, language)
        validate_patterns(extra)
        include = remove_duplicates(include + extra)
    if overrides.exclude_patterns:
        extra = expand_patterns(overrides.exclude_patterns, language)
        validate_patterns(extra)
        exclude = remove_duplicates(exclude + extra)

    gitignore_rules: list[str] = []
    negate: list[str] = []
    if not overrides.ignore_gitignore:
        rules = load_gitignore(root)
        gitignore_rules = rules.raw
        exclude = exclude + rules.exclude
        negate = rules.negate
        if rules.raw:
            logger.debug("Loaded %d .gitignore rules", len(rules.raw))

    files = scan_files(
        root,
        include,
        exclude,
        negate,
        max_files=overrides.max_files,
        max_file_size=overrides.max_file_size,
    )

    info = RepositoryInfo(
        language=language,
        root_path=root,
        include_patterns=tuple(include),
        exclude_patterns=tuple(exclude),
        negation_patterns=tuple(negate),
        files=tuple(files),
        gitignore_rules=tuple(gitignore_rules),
    )

    logger.info(
        "Scanned %d files (%d included)",
        len(info.files),
        len(info.included_files),
    )
    return info
