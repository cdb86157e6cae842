"""Three-stage tool pipeline.

- executor: Pipeline orchestration, timeouts, and error classification
- tools: Command construction, sanitization, output parsing, truncation
"""

from waffles.pipeline.executor import (
    DRY_RUN_OUTPUT,
    ExecutionRecorder,
    Pipeline,
    PipelineOptions,
)
from waffles.pipeline.tools import (
    CommandValidationError,
    estimate_tokens,
    sanitize_args,
    truncate_if_needed,
    validate_command,
)

__all__ = [
    "DRY_RUN_OUTPUT",
    "CommandValidationError",
    "ExecutionRecorder",
    "Pipeline",
    "PipelineOptions",
    "estimate_tokens",
    "sanitize_args",
    "truncate_if_needed",
    "validate_command",
]
