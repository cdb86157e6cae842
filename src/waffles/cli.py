"""Waffles CLI interface.

Commands:
- run: Run the prompt → context → generation pipeline
- detect: Show the detected language and file selection for a repository
- check: Validate external tool availability
- init: Write a default configuration file

Global options:
- --config: Path to configuration file
- --verbose: Enable verbose output with timestamps
- --quiet: Suppress info messages
- --ci: JSON log lines
- --version: Show version and exit
"""

import json
from dataclasses import replace
from pathlib import Path
from typing import Annotated

import typer

from waffles import __version__
from waffles.config import WafflesConfig, create_default_config, load_config
from waffles.models.execution import ExecutionContext, PipelineError
from waffles.models.repository import Language
from waffles.utils.logging import configure_from_cli, get_logger

app = typer.Typer(
    name="waffles",
    help="Run prompt retrieval, context extraction and LLM generation as one pipeline",
    add_completion=False,
    no_args_is_help=True,
)

# Global state
_config: WafflesConfig | None = None
_logger = get_logger()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"waffles {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output with timestamps",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress info messages (warnings and errors only)",
        ),
    ] = False,
    ci: Annotated[
        bool,
        typer.Option(
            "--ci",
            help="Enable CI mode with JSON log output",
        ),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """Waffles - chain wheresmyprompt, files2prompt and llm over a repository."""
    global _config

    configure_from_cli(verbose=verbose, quiet=quiet, ci=ci)

    try:
        _config = load_config(config_path=config)
        if _config.config_path:
            _logger.debug(f"Loaded config from: {_config.config_path}")
    except FileNotFoundError as e:
        _logger.error(str(e))
        raise typer.Exit(1)
    except (ValueError, OSError) as e:
        _logger.error(f"Failed to load config: {e}")
        raise typer.Exit(1)


def _current_config() -> WafflesConfig:
    return _config if _config is not None else WafflesConfig()


def _print_steps(context: ExecutionContext) -> None:
    for step in context.steps:
        status = "✅" if step.success else "❌"
        typer.echo(
            f"  {status} {step.phase.value} ({step.tool}) "
            f"{step.duration.total_seconds():.2f}s",
            err=True,
        )
        if step.error:
            typer.echo(f"     └─ {step.error}", err=True)


# =============================================================================
# run command
# =============================================================================


@app.command()
def run(
    query: Annotated[
        list[str],
        typer.Argument(help="Prompt query (words are joined with spaces)"),
    ],
    repo: Annotated[
        Path,
        typer.Option(
            "--repo",
            "-r",
            help="Repository path",
            exists=True,
            file_okay=False,
        ),
    ] = Path("."),
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Model for the generation tool"),
    ] = None,
    language: Annotated[
        str | None,
        typer.Option("--language", "-l", help="Override language detection (go, python)"),
    ] = None,
    include: Annotated[
        list[str] | None,
        typer.Option("--include", "-i", help="Extra include pattern (repeatable)"),
    ] = None,
    exclude: Annotated[
        list[str] | None,
        typer.Option("--exclude", "-e", help="Extra exclude pattern (repeatable)"),
    ] = None,
    ignore_gitignore: Annotated[
        bool,
        typer.Option("--ignore-gitignore", help="Do not apply .gitignore rules"),
    ] = False,
    prompt_args: Annotated[
        str | None,
        typer.Option("--prompt-args", help="Extra arguments for the prompt tool"),
    ] = None,
    context_args: Annotated[
        str | None,
        typer.Option("--context-args", help="Extra arguments for the context tool"),
    ] = None,
    llm_args: Annotated[
        str | None,
        typer.Option("--llm-args", help="Extra arguments for the generation tool"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Build commands without running any tool"),
    ] = False,
    skip_deps: Annotated[
        bool,
        typer.Option("--skip-deps", help="Skip the dependency check"),
    ] = False,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the final output to a file"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print the execution record as JSON"),
    ] = False,
) -> None:
    """Run the pipeline for a query.

    Exit codes:
        0: Pipeline completed
        1: A phase failed or the options were invalid
    """
    from waffles.pipeline import Pipeline, PipelineOptions
    from waffles.pipeline.tools import parse_custom_args

    base = _current_config()

    try:
        repository = replace(
            base.repository,
            language=Language.parse(language) if language else base.repository.language,
            include=[*base.repository.include, *(include or [])],
            exclude=[*base.repository.exclude, *(exclude or [])],
            ignore_gitignore=ignore_gitignore or base.repository.ignore_gitignore,
        )
        custom_args = parse_custom_args(llm_args)
    except ValueError as e:
        _logger.error(str(e))
        raise typer.Exit(1)

    tools = replace(
        base.tools,
        prompt=replace(base.tools.prompt, args=prompt_args or base.tools.prompt.args),
        context=replace(base.tools.context, args=context_args or base.tools.context.args),
    )
    llm = replace(base.llm, model=model) if model else base.llm
    config = replace(base, llm=llm, tools=tools, repository=repository)

    pipeline = Pipeline(config=config, repo_path=repo.resolve())
    try:
        pipeline.validate()
    except ValueError as e:
        _logger.error(str(e))
        raise typer.Exit(1)

    options = PipelineOptions(
        dry_run=dry_run,
        skip_dependency_check=skip_deps,
        custom_args=custom_args,
    )

    try:
        context = pipeline.execute_with_options(" ".join(query), options)
    except PipelineError as e:
        if e.context is not None:
            if json_output:
                typer.echo(json.dumps(e.context.to_dict(), indent=2))
            else:
                typer.echo(
                    f"\n❌ Pipeline failed after {len(e.context.steps)} step(s)\n", err=True
                )
                _print_steps(e.context)
        raise typer.Exit(1)

    if json_output:
        typer.echo(json.dumps(context.to_dict(), indent=2))
    else:
        _print_steps(context)
        typer.echo(context.final_output)

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(context.final_output)
        _logger.info(f"Output written to: {output}")


# =============================================================================
# detect command
# =============================================================================


@app.command()
def detect(
    repo: Annotated[
        Path,
        typer.Argument(
            help="Repository path",
            exists=True,
            file_okay=False,
        ),
    ] = Path("."),
    files: Annotated[
        bool,
        typer.Option("--files", help="List the file selection"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results as JSON"),
    ] = False,
) -> None:
    """Detect the repository language and show why."""
    from waffles.analyzers import ScanError, analyze_repository, detect_language_with_details

    result = detect_language_with_details(repo)

    repo_info = None
    if files:
        try:
            repo_info = analyze_repository(repo, _current_config().repository.to_overrides())
        except (ScanError, ValueError) as e:
            _logger.error(str(e))
            raise typer.Exit(1)

    if json_output:
        data = result.to_dict()
        if repo_info is not None:
            data["repository"] = repo_info.to_dict()
        typer.echo(json.dumps(data, indent=2))
        return

    typer.echo(f"Language: {result.language} (confidence {result.confidence:.2f})")
    for indicator in result.indicators:
        typer.echo(f"  +{indicator.weight:g} {indicator.description}")

    if repo_info is not None:
        included = repo_info.included_files
        typer.echo(f"\nFiles ({len(included)} included of {len(repo_info.files)}):")
        for info in repo_info.files:
            marker = "+" if info.included else "-"
            typer.echo(f"  {marker} {info.path}  [{info.reason}]")


# =============================================================================
# check command
# =============================================================================


@app.command()
def check(
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output results as JSON",
        ),
    ] = False,
) -> None:
    """Validate external tool availability.

    Exit codes:
        0: All required tools available
        1: One or more required tools missing
    """
    from waffles.utils.preflight import PreflightChecker

    checker = PreflightChecker()
    result = checker.check_all(_current_config().tools)

    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        if not result.success:
            raise typer.Exit(1)
        return

    typer.echo("\n🔍 Preflight Check Results\n")

    for check_result in result.checks:
        status = "✅" if check_result.available else "❌"
        version_str = f" ({check_result.version})" if check_result.version else ""
        typer.echo(f"  {status} {check_result.name}{version_str}")
        if check_result.available and check_result.path:
            typer.echo(f"     └─ {check_result.path}")
        elif not check_result.available:
            typer.echo(f"     └─ {check_result.message}")

    typer.echo()

    if result.errors:
        typer.echo("❌ Preflight check FAILED")
        for error in result.errors:
            typer.echo(f"   • {error}")
        raise typer.Exit(1)

    typer.echo("✅ All preflight checks passed")


# =============================================================================
# init command
# =============================================================================


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            help="Overwrite existing config",
        ),
    ] = False,
) -> None:
    """Write a default configuration to .waffles/config.yaml."""
    config_dir = Path(".waffles")
    config_file = config_dir / "config.yaml"

    if config_file.exists() and not force:
        _logger.error(f"Config already exists: {config_file}")
        _logger.info("Use --force to overwrite")
        raise typer.Exit(1)

    config_dir.mkdir(exist_ok=True)
    config_file.write_text(create_default_config())
    _logger.info(f"Created config: {config_file}")
    typer.echo(f"✅ Waffles configuration initialized: {config_file}")


if __name__ == "__main__":
    app()
