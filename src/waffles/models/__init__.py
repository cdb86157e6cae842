"""Waffles data models.

This module exports the core entities used throughout the application:
- Language / RepositoryInfo / FileInfo: Output of repository analysis
- LanguageDetectionResult / DetectionIndicator: Language classifier evidence
- RepositoryOverrides: User adjustments to analysis
- ExecutionContext / StepResult / ExecutionState: Pipeline run records
- ExecutionPhase / PipelineError: Phase-scoped error classification
"""

from waffles.models.execution import (
    ExecutionContext,
    ExecutionPhase,
    ExecutionState,
    PipelineError,
    StepResult,
)
from waffles.models.repository import (
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_MAX_FILES,
    SUPPORTED_LANGUAGES,
    DetectionIndicator,
    FileInfo,
    IndicatorType,
    Language,
    LanguageDetectionResult,
    RepositoryInfo,
    RepositoryOverrides,
)

__all__ = [
    "DEFAULT_MAX_FILES",
    "DEFAULT_MAX_FILE_SIZE",
    "SUPPORTED_LANGUAGES",
    "DetectionIndicator",
    "ExecutionContext",
    "ExecutionPhase",
    "ExecutionState",
    "FileInfo",
    "IndicatorType",
    "Language",
    "LanguageDetectionResult",
    "PipelineError",
    "RepositoryInfo",
    "RepositoryOverrides",
    "StepResult",
]
