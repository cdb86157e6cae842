"""Execution record entities.

This module contains the types accumulated during one pipeline run:
- ExecutionPhase: Stages of a run, including terminal states
- StepResult: One attempt to run an external tool
- ExecutionContext: Ordered steps plus the final outcome
- ExecutionState: Progress view derived from an ExecutionContext
- PipelineError: Phase- and tool-scoped failure
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

# Retrieval, extraction, generation, completion
TOTAL_STEPS = 4


class ExecutionPhase(Enum):
    """Phase of a pipeline run."""

    INIT = "init"
    DEPENDENCY_CHECK = "dependency_check"
    REPO_ANALYSIS = "repo_analysis"
    PROMPT_RETRIEVAL = "prompt_retrieval"
    CONTEXT_EXTRACTION = "context_extraction"
    LLM_EXECUTION = "llm_execution"
    COMPLETE = "complete"
    ERROR = "error"


# Phase and message reported after a successful step of each tool phase
_NEXT_STATE: dict[ExecutionPhase, tuple[ExecutionPhase, str]] = {
    ExecutionPhase.PROMPT_RETRIEVAL: (
        ExecutionPhase.CONTEXT_EXTRACTION,
        "Retrieving file context",
    ),
    ExecutionPhase.CONTEXT_EXTRACTION: (
        ExecutionPhase.LLM_EXECUTION,
        "Executing LLM query",
    ),
    ExecutionPhase.LLM_EXECUTION: (
        ExecutionPhase.COMPLETE,
        "Pipeline completed successfully",
    ),
}

_FAILURE_MESSAGES: dict[ExecutionPhase, str] = {
    ExecutionPhase.PROMPT_RETRIEVAL: "Failed to retrieve prompt",
    ExecutionPhase.CONTEXT_EXTRACTION: "Failed to extract context",
    ExecutionPhase.LLM_EXECUTION: "LLM execution failed",
}


class PipelineError(Exception):
    """Raised when a pipeline phase fails.

    Attributes:
        phase: Phase in which the failure happened
        tool: Tool being run, if any
        message: Short description of the failure
        cause: Underlying exception
        context: Partially populated execution record (set by the pipeline)
    """

    def __init__(
        self,
        phase: ExecutionPhase,
        message: str,
        tool: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.phase = phase
        self.tool = tool
        self.message = message
        self.cause = cause
        self.context: ExecutionContext | None = None
        if tool:
            full_message = f"pipeline error in {phase.value} phase (tool: {tool}): {message}"
        else:
            full_message = f"pipeline error in {phase.value} phase: {message}"
        super().__init__(full_message)
        if cause is not None:
            self.__cause__ = cause


@dataclass
class StepResult:
    """Result of one external tool invocation.

    Attributes:
        phase: Pipeline phase the step belongs to
        tool: Tool name
        command: Constructed argv
        output: Cleaned combined output
        error: Error text when the step failed
        start_time: When the step started (UTC)
        end_time: When the step finished (UTC)
        success: Whether the tool exited cleanly
    """

    phase: ExecutionPhase
    tool: str
    command: list[str] = field(default_factory=list)
    output: str = ""
    error: str | None = None
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    success: bool = False

    @property
    def duration(self) -> timedelta:
        """Elapsed time of the step (zero while running)."""
        if self.end_time is None:
            return timedelta(0)
        return self.end_time - self.start_time

    def finish(self, success: bool, output: str = "", error: str | None = None) -> None:
        """Record the step outcome and end time."""
        self.end_time = datetime.now(UTC)
        self.success = success
        self.output = output
        self.error = error

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "phase": self.phase.value,
            "tool": self.tool,
            "command": list(self.command),
            "output": self.output,
            "error": self.error,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration": self.duration.total_seconds(),
            "success": self.success,
        }


@dataclass
class ExecutionState:
    """Progress snapshot derived from an ExecutionContext.

    Attributes:
        phase: Current phase
        current_step: Number of steps completed
        total_steps: Total number of steps
        message: Human-readable status
        progress: Fraction complete, in [0, 1]
    """

    phase: ExecutionPhase
    current_step: int
    total_steps: int
    message: str
    progress: float

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "phase": self.phase.value,
            "current_step": self.current_step,
            "total_steps": self.total_steps,
            "message": self.message,
            "progress": self.progress,
        }


def generate_execution_id() -> str:
    """Return a unique execution identifier."""
    return f"exec-{uuid.uuid4().hex}"


@dataclass
class ExecutionContext:
    """Record of one pipeline execution.

    Created once per run and mutated only by the pipeline. Once complete()
    has been called the record is frozen.

    Attributes:
        prompt_query: Query the run was started with
        id: Unique execution identifier
        start_time: When the run started (UTC)
        end_time: When the run finished (UTC)
        steps: Step results in execution order
        success: Whether the run succeeded
        error: Error text if the run failed
        final_output: Output of the generation stage
    """

    prompt_query: str
    id: str = field(default_factory=generate_execution_id)
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    steps: list[StepResult] = field(default_factory=list)
    success: bool = False
    error: str | None = None
    final_output: str = ""

    @property
    def duration(self) -> timedelta:
        """Elapsed time of the run (zero until complete)."""
        if self.end_time is None:
            return timedelta(0)
        return self.end_time - self.start_time

    @property
    def is_complete(self) -> bool:
        """Return True once complete() has been called."""
        return self.end_time is not None

    def add_step(self, step: StepResult) -> None:
        """Append a step result.

        Raises:
            RuntimeError: If the execution is already complete
        """
        if self.is_complete:
            raise RuntimeError(f"Execution {self.id} is already complete")
        self.steps.append(step)

    def complete(
        self,
        success: bool,
        output: str = "",
        error: BaseException | str | None = None,
    ) -> None:
        """Mark the execution finished.

        Raises:
            RuntimeError: If the execution is already complete
        """
        if self.is_complete:
            raise RuntimeError(f"Execution {self.id} is already complete")
        self.end_time = datetime.now(UTC)
        self.success = success
        self.final_output = output
        if error is not None:
            self.error = str(error)

    def get_state(self) -> ExecutionState:
        """Derive the current progress state from the recorded steps."""
        current_step = len(self.steps)
        phase = ExecutionPhase.INIT
        message = "Initializing pipeline"

        if self.steps:
            last = self.steps[-1]
            if last.success:
                phase, message = _NEXT_STATE.get(last.phase, (phase, message))
            else:
                phase = ExecutionPhase.ERROR
                message = last.error or _FAILURE_MESSAGES.get(
                    last.phase, "Pipeline execution failed"
                )

        if not self.is_complete:
            if current_step == 0:
                phase = ExecutionPhase.PROMPT_RETRIEVAL
                message = "Retrieving prompt"
        elif self.success:
            phase = ExecutionPhase.COMPLETE
            message = "Pipeline completed successfully"
            current_step = TOTAL_STEPS
        else:
            phase = ExecutionPhase.ERROR
            message = self.error or "Pipeline execution failed"

        progress = min(current_step / TOTAL_STEPS, 1.0)

        return ExecutionState(
            phase=phase,
            current_step=current_step,
            total_steps=TOTAL_STEPS,
            message=message,
            progress=progress,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "prompt_query": self.prompt_query,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration": self.duration.total_seconds(),
            "steps": [s.to_dict() for s in self.steps],
            "success": self.success,
            "error": self.error,
            "final_output": self.final_output,
        }
