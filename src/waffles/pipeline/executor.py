"""Pipeline orchestrator: prompt retrieval → context extraction → generation.

Each phase is one external process. The pipeline is fail-fast: the first
failed phase is recorded and no later phase runs. Every failure surfaces as
a PipelineError carrying the partially populated ExecutionContext.
"""

import logging
import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from waffles.analyzers.scanner import ScanError, analyze_repository
from waffles.config import ToolSpec, WafflesConfig
from waffles.models.execution import (
    ExecutionContext,
    ExecutionPhase,
    ExecutionState,
    PipelineError,
    StepResult,
)
from waffles.models.repository import RepositoryInfo
from waffles.pipeline.tools import (
    CommandValidationError,
    build_context_command,
    build_generation_command,
    build_prompt_command,
    extract_error_from_output,
    parse_custom_args,
    parse_tool_output,
    sanitize_args,
    truncate_if_needed,
    validate_command,
)
from waffles.utils.logging import get_logger
from waffles.utils.preflight import PreflightChecker

logger = get_logger(__name__)

DRY_RUN_OUTPUT = "[DRY RUN] Pipeline would execute successfully"


class ExecutionRecorder(Protocol):
    """Receives each finished ExecutionContext (e.g. for persistence)."""

    def record(self, context: ExecutionContext) -> None: ...


@dataclass
class PipelineOptions:
    """Options for a single pipeline execution.

    Attributes:
        dry_run: Analyze and build commands without spawning any tool
        skip_dependency_check: Do not verify tools are on PATH first
        custom_args: Extra passthrough arguments for the generation tool
    """

    dry_run: bool = False
    skip_dependency_check: bool = False
    custom_args: list[str] = field(default_factory=list)


class Pipeline:
    """Runs the three-stage tool pipeline for a repository.

    The most recent RepositoryInfo is kept as an immutable snapshot; callers
    may also pass one explicitly to execute() so concurrent runs each work
    on their own value.

    Usage:
        pipeline = Pipeline(config, repo_path=Path("."))
        context = pipeline.execute("review this code")
        print(context.final_output)
    """

    def __init__(
        self,
        config: WafflesConfig | None = None,
        repo_path: Path | str = ".",
        recorder: ExecutionRecorder | None = None,
        preflight: PreflightChecker | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Waffles configuration (defaults if None)
            repo_path: Repository root the tools run in
            recorder: Optional sink for finished executions
            preflight: Tool availability checker
        """
        self.config = config or WafflesConfig()
        self.repo_path = Path(repo_path)
        self.recorder = recorder
        self.preflight = preflight or PreflightChecker(check_versions=False)
        self._repo_info: RepositoryInfo | None = None
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Repository snapshot
    # -------------------------------------------------------------------------

    @property
    def repo_info(self) -> RepositoryInfo | None:
        """Most recently analyzed repository (immutable snapshot)."""
        with self._lock:
            return self._repo_info

    def set_repo_info(self, repo_info: RepositoryInfo) -> None:
        """Replace the stored repository snapshot."""
        with self._lock:
            self._repo_info = repo_info

    def analyze(self) -> RepositoryInfo:
        """Analyze the repository and store the result as the new snapshot.

        Raises:
            ValueError: If the repository path does not exist
            ScanError: If the file budget is exceeded
        """
        repo_info = analyze_repository(
            self.repo_path,
            self.config.repository.to_overrides(),
        )
        self.set_repo_info(repo_info)
        return repo_info

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def validate(self) -> None:
        """Check the pipeline is runnable with the current configuration.

        Raises:
            ValueError: If no model is configured
        """
        if not self.config.llm.model:
            raise ValueError("default model not specified")

    def execute(
        self,
        query: str,
        repo_info: RepositoryInfo | None = None,
        options: PipelineOptions | None = None,
    ) -> ExecutionContext:
        """Run the pipeline.

        Args:
            query: Free-text prompt query
            repo_info: Analysis to use (the repository is analyzed if None)
            options: Execution options

        Returns:
            Completed ExecutionContext

        Raises:
            PipelineError: On the first failing phase; ``error.context`` holds
                the steps recorded so far
        """
        options = options or PipelineOptions()
        context = ExecutionContext(prompt_query=query)
        logger.info("Starting pipeline execution %s", context.id)

        try:
            if self.config.tools.check_dependencies and not options.skip_dependency_check:
                self._check_dependencies()

            if repo_info is None:
                repo_info = self._analyze_for_run()

            if options.dry_run:
                self._dry_run(query, repo_info, options)
                context.complete(True, DRY_RUN_OUTPUT)
            else:
                output = self._run_phases(context, query, repo_info, options)
                context.complete(True, output)
        except PipelineError as e:
            logger.error("%s", e)
            context.complete(False, "", e)
            e.context = context
            self._record(context)
            raise

        logger.info(
            "Pipeline execution %s completed in %.2fs",
            context.id,
            context.duration.total_seconds(),
        )
        self._record(context)
        return context

    def execute_with_options(
        self,
        query: str,
        options: PipelineOptions | None = None,
    ) -> ExecutionContext:
        """Run the pipeline with options, analyzing the repository first."""
        return self.execute(query, options=options)

    def get_progress(self, context: ExecutionContext) -> ExecutionState:
        """Return the derived progress state of an execution."""
        return context.get_state()

    def _record(self, context: ExecutionContext) -> None:
        if self.recorder is not None:
            self.recorder.record(context)

    def _check_dependencies(self) -> None:
        result = self.preflight.check_all(self.config.tools)
        if not result.success:
            raise PipelineError(
                ExecutionPhase.DEPENDENCY_CHECK,
                f"Missing or invalid dependencies: {', '.join(result.missing)}",
            )

    def _analyze_for_run(self) -> RepositoryInfo:
        try:
            return self.analyze()
        except (ScanError, ValueError, OSError) as e:
            raise PipelineError(
                ExecutionPhase.REPO_ANALYSIS,
                "Failed to analyze repository",
                cause=e,
            ) from e

    def _run_phases(
        self,
        context: ExecutionContext,
        query: str,
        repo_info: RepositoryInfo,
        options: PipelineOptions,
    ) -> str:
        """Run the three tool phases in order and return the final output."""
        tools = self.config.tools
        cwd = repo_info.root_path

        phase = ExecutionPhase.PROMPT_RETRIEVAL
        prompt_cmd = build_prompt_command(
            tools.prompt.command,
            query,
            self._tool_args(phase, tools.prompt, context=context),
        )
        prompt_step = self._run_step(context, phase, tools.prompt, prompt_cmd, cwd)

        phase = ExecutionPhase.CONTEXT_EXTRACTION
        context_cmd = build_context_command(
            tools.context.command,
            repo_info,
            self._tool_args(phase, tools.context, context=context),
        )
        context_step = self._run_step(context, phase, tools.context, context_cmd, cwd)

        generation_input = truncate_if_needed(
            context_step.output, self.config.llm.max_input_tokens
        )
        if len(generation_input) != len(context_step.output):
            logger.warning(
                "Context truncated from %d to %d characters",
                len(context_step.output),
                len(generation_input),
            )

        phase = ExecutionPhase.LLM_EXECUTION
        generation_cmd = build_generation_command(
            tools.generation.command,
            prompt_step.output,
            generation_input,
            self.config.llm.model,
            self._tool_args(phase, tools.generation, options.custom_args, context),
        )
        generation_step = self._run_step(
            context,
            phase,
            tools.generation,
            generation_cmd,
            cwd,
            stdin=generation_input or None,
        )

        return generation_step.output

    def _dry_run(
        self,
        query: str,
        repo_info: RepositoryInfo,
        options: PipelineOptions,
    ) -> None:
        """Build and validate all three commands without spawning anything.

        Stage outputs are not available, so the generation command carries
        placeholders for the system prompt and context.
        """
        tools = self.config.tools
        commands = (
            (
                ExecutionPhase.PROMPT_RETRIEVAL,
                tools.prompt.command,
                build_prompt_command(
                    tools.prompt.command,
                    query,
                    self._tool_args(ExecutionPhase.PROMPT_RETRIEVAL, tools.prompt),
                ),
            ),
            (
                ExecutionPhase.CONTEXT_EXTRACTION,
                tools.context.command,
                build_context_command(
                    tools.context.command,
                    repo_info,
                    self._tool_args(ExecutionPhase.CONTEXT_EXTRACTION, tools.context),
                ),
            ),
            (
                ExecutionPhase.LLM_EXECUTION,
                tools.generation.command,
                build_generation_command(
                    tools.generation.command,
                    "<prompt>",
                    "<context>",
                    self.config.llm.model,
                    self._tool_args(
                        ExecutionPhase.LLM_EXECUTION, tools.generation, options.custom_args
                    ),
                ),
            ),
        )
        for phase, tool, cmd in commands:
            try:
                validate_command(cmd)
            except CommandValidationError as e:
                raise PipelineError(phase, "Invalid command", tool=tool, cause=e) from e
            logger.info("[dry run] %s: %s", phase.value, " ".join(cmd))

    def _tool_args(
        self,
        phase: ExecutionPhase,
        tool: ToolSpec,
        extra: list[str] | None = None,
        context: ExecutionContext | None = None,
    ) -> list[str]:
        """Parse and sanitize a tool's passthrough arguments.

        An unparseable argument string (e.g. an unbalanced quote) fails the
        phase as an invalid command. The failed step is recorded when a
        context is given.
        """
        try:
            args = parse_custom_args(tool.args)
        except ValueError as e:
            if context is not None:
                step = StepResult(phase=phase, tool=tool.command, command=[tool.command])
                step.finish(False, error=f"invalid arguments {tool.args!r}: {e}")
                context.add_step(step)
            raise PipelineError(phase, "Invalid command", tool=tool.command, cause=e) from e
        return sanitize_args(args + list(extra or []))

    def _run_step(
        self,
        context: ExecutionContext,
        phase: ExecutionPhase,
        tool: ToolSpec,
        command: list[str],
        cwd: Path,
        stdin: str | None = None,
    ) -> StepResult:
        """Validate and run one tool, recording the step.

        The step is appended to the context whether it succeeds or fails.

        Raises:
            PipelineError: If validation or execution fails
        """
        step = StepResult(phase=phase, tool=tool.command, command=command)
        logger.info("Stage %s: running %s", phase.value, tool.command)
        logger.debug("Command: %s", command)

        try:
            validate_command(command)
        except CommandValidationError as e:
            step.finish(False, error=str(e))
            context.add_step(step)
            raise PipelineError(phase, "Invalid command", tool=tool.command, cause=e) from e

        try:
            completed = subprocess.run(
                command,
                input=stdin,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                encoding="utf-8",
                errors="replace",
                cwd=str(cwd),
                timeout=tool.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raw = _decode_output(e.output)
            step.finish(False, parse_tool_output(raw), f"timed out after {tool.timeout}s")
            context.add_step(step)
            raise PipelineError(
                phase,
                f"Timed out after {tool.timeout}s",
                tool=tool.command,
                cause=e,
            ) from e
        except OSError as e:
            step.finish(False, error=str(e))
            context.add_step(step)
            raise PipelineError(
                phase,
                f"Execution failed: {e}",
                tool=tool.command,
                cause=e,
            ) from e

        raw = completed.stdout or ""
        output = parse_tool_output(raw)

        if completed.returncode != 0:
            error = subprocess.CalledProcessError(completed.returncode, command, output=raw)
            message = extract_error_from_output(raw)
            step.finish(False, output, f"exit status {completed.returncode}: {message}")
            context.add_step(step)
            raise PipelineError(
                phase,
                f"Execution failed: {message}",
                tool=tool.command,
                cause=error,
            ) from error

        step.finish(True, output)
        context.add_step(step)
        duration = step.duration.total_seconds()
        logger.structured(
            logging.INFO,
            f"Stage {phase.value} finished in {duration:.2f}s",
            phase=phase.value,
            tool=tool.command,
            duration=duration,
        )
        return step


def _decode_output(output: str | bytes | None) -> str:
    """Normalize captured output, which is bytes when a timeout interrupts it."""
    if output is None:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace")
    return output
