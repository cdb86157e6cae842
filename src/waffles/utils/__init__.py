"""Waffles utility modules.

- logging: Standardized logging with human/verbose/JSON modes
- preflight: External tool availability checks
"""

from waffles.utils.logging import get_logger, setup_logging
from waffles.utils.preflight import PreflightChecker, PreflightResult

__all__ = [
    "get_logger",
    "setup_logging",
    "PreflightChecker",
    "PreflightResult",
]
