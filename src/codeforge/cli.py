"""CodeForge CLI interface.

Commands:
- init: Initialize CodeForge configuration
- check: Validate git and reviewer model availability
- add-repo: Connect a repository to a codebase (and ingest it)
- codebases: List codebases
- analyze: Run an analysis over a codebase
- status: Show an analysis
- stats: Show codebase statistics
- cancel: Cancel a queued or running analysis
- findings: List findings of an analysis or repository
- report: Render a completed analysis as markdown

Global options:
- --config: Path to configuration file
- --db: Override the SQLite database path
- --verbose: Enable verbose output with timestamps
- --quiet: Suppress info messages
- --ci: JSON log output
- --version: Show version and exit
"""

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated

import typer

from codeforge import __version__
from codeforge.acquisition import GitAcquirer
from codeforge.config import CodeforgeConfig, create_default_config, load_config
from codeforge.errors import PipelineError
from codeforge.ingestion import IngestionService
from codeforge.models import (
    AnalysisConfig,
    AnalysisStatus,
    AnalysisType,
    FindingStatus,
    ProgressEvent,
)
from codeforge.service import AnalysisService, build_orchestrator, codebase_statistics
from codeforge.store import Database, Stores, create_sqlite_stores
from codeforge.templates import ReportRenderer
from codeforge.utils.logging import configure_from_cli, get_logger

# Create Typer app
app = typer.Typer(
    name="codeforge",
    help="Codebase analysis: repository acquisition, LLM review and finding aggregation",
    add_completion=False,
    no_args_is_help=True,
)

# Global state
_config: CodeforgeConfig | None = None
_logger = get_logger()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"codeforge {__version__}")
        raise typer.Exit()


def _get_config() -> CodeforgeConfig:
    return _config if _config is not None else CodeforgeConfig()


@asynccontextmanager
async def _open_stores() -> AsyncIterator[Stores]:
    """Open the configured SQLite database for the duration of a command."""
    async with Database(_get_config().storage.database) as db:
        yield create_sqlite_stores(db)


def _print_progress(event: ProgressEvent) -> None:
    typer.echo(f"[{event.progress:3d}%] {event.current_step}", err=True)


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
    db: Annotated[
        str | None,
        typer.Option(
            "--db",
            help="SQLite database path (overrides storage.database)",
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
            help="Enable CI mode with JSON output",
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
    """CodeForge - Codebase Analysis Pipeline.

    Acquire repositories, review their code with an LLM, and aggregate the
    findings into scores and a summary.
    """
    global _config

    try:
        _config = load_config(config_path=config)
    except Exception as e:
        configure_from_cli(verbose=verbose, quiet=quiet, ci=ci)
        _logger.error(f"Failed to load config: {e}")
        raise typer.Exit(1)

    # Flags win over the logging section of the config file
    configure_from_cli(
        verbose=verbose,
        quiet=quiet,
        ci=ci,
        default_mode=_config.logging.mode,
        default_level=_config.logging.level,
    )
    if _config.config_path:
        _logger.debug(f"Loaded config from: {_config.config_path}")
    if db:
        _config.storage.database = db


# =============================================================================
# init command
# =============================================================================


@app.command()
def init(
    provider: Annotated[
        str,
        typer.Option(
            "--provider",
            "-p",
            help="Reviewer provider: claude, gemini, ollama or bedrock",
        ),
    ] = "claude",
    model: Annotated[
        str | None,
        typer.Option(
            "--model",
            "-m",
            help="Model identifier (provider default when omitted)",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            help="Overwrite existing config",
        ),
    ] = False,
) -> None:
    """Initialize CodeForge configuration in ./.codeforge."""
    if provider not in {"claude", "gemini", "ollama", "bedrock"}:
        _logger.error(f"Invalid provider: {provider}")
        raise typer.Exit(1)

    codeforge_dir = Path(".codeforge")
    codeforge_dir.mkdir(exist_ok=True)
    config_file = codeforge_dir / "config.yaml"

    if config_file.exists() and not force:
        _logger.error(f"Config already exists: {config_file}")
        _logger.info("Use --force to overwrite")
        raise typer.Exit(1)

    config_file.write_text(create_default_config(provider=provider, model=model), encoding="utf-8")
    typer.echo(f"Created {config_file}")


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
    live: Annotated[
        bool,
        typer.Option(
            "--live",
            help="Also send a test request to the reviewer model",
        ),
    ] = False,
) -> None:
    """Check that git and the reviewer model are usable.

    Exit codes:
        0: All required dependencies available
        1: One or more required dependencies unavailable
    """
    from codeforge.utils.preflight import PreflightChecker

    config = _get_config()
    checker = PreflightChecker(git_binary="git")
    result = asyncio.run(checker.check_all(config, live=live))

    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        typer.echo("\nPreflight Check Results\n")
        for check_result in result.checks:
            status = "ok" if check_result.available else "missing"
            version_str = f" ({check_result.version})" if check_result.version else ""
            required_str = " [required]" if check_result.required else " [optional]"
            typer.echo(f"  [{status}] {check_result.name}{version_str}{required_str}")
            if check_result.message:
                typer.echo(f"     └─ {check_result.message}")
        typer.echo()

        for warning in result.warnings:
            typer.echo(f"   • {warning}")
        if result.errors:
            typer.echo("Preflight check FAILED")
            for error in result.errors:
                typer.echo(f"   • {error}")
        else:
            typer.echo("All preflight checks passed")

    if not result.success:
        raise typer.Exit(1)


# =============================================================================
# add-repo command
# =============================================================================


@app.command("add-repo")
def add_repo(
    remote_url: Annotated[str, typer.Argument(help="Clone URL or local path")],
    codebase_id: Annotated[
        str | None,
        typer.Option(
            "--codebase",
            help="Existing codebase id",
        ),
    ] = None,
    name: Annotated[
        str | None,
        typer.Option(
            "--name",
            "-n",
            help="Name of a new codebase (when --codebase is not given)",
        ),
    ] = None,
    branch: Annotated[
        str | None,
        typer.Option(
            "--branch",
            "-b",
            help="Branch to acquire",
        ),
    ] = None,
    token: Annotated[
        str | None,
        typer.Option(
            "--token",
            envvar="CODEFORGE_REPO_TOKEN",
            help="Access token for private repositories",
        ),
    ] = None,
    ingest: Annotated[
        bool,
        typer.Option(
            "--ingest/--no-ingest",
            help="Clone and scan the repository right away",
        ),
    ] = True,
) -> None:
    """Connect a repository to a codebase, creating the codebase if needed."""
    if codebase_id is None and name is None:
        _logger.error("Either --codebase or --name is required")
        raise typer.Exit(1)

    config = _get_config()

    async def _run() -> bool:
        async with _open_stores() as stores:
            service = IngestionService(
                GitAcquirer(config.git), stores, max_file_size=config.analysis.max_file_size
            )
            target_id = codebase_id
            if target_id is None:
                codebase = await service.create_codebase(name)
                target_id = codebase.id
                typer.echo(f"Codebase: {codebase.id}")

            repository = await service.connect_repository(
                target_id, remote_url, branch=branch, token=token
            )
            typer.echo(f"Repository: {repository.id}")
            if not ingest:
                return True

            result = await service.ingest(target_id, repository.id)
            if not result.success:
                _logger.error(f"Ingestion failed: {result.error}")
                return False
            typer.echo(f"Ingested {result.files_count} files, {result.lines_count} lines")
            return True

    try:
        ok = asyncio.run(_run())
    except PipelineError as e:
        _logger.error(str(e))
        raise typer.Exit(1)
    if not ok:
        raise typer.Exit(1)


# =============================================================================
# codebases command
# =============================================================================


@app.command()
def codebases(
    tenant: Annotated[
        str | None,
        typer.Option(
            "--tenant",
            help="Only list codebases of this tenant",
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output results as JSON",
        ),
    ] = False,
) -> None:
    """List codebases."""

    async def _run():
        async with _open_stores() as stores:
            return await stores.codebases.list_all(tenant_id=tenant)

    found = asyncio.run(_run())
    if json_output:
        typer.echo(json.dumps([codebase.to_dict() for codebase in found], indent=2))
        return
    for codebase in found:
        typer.echo(f"{codebase.id}  {codebase.status.value:<10} {codebase.name}")


# =============================================================================
# analyze command
# =============================================================================


@app.command()
def analyze(
    codebase_id: Annotated[str, typer.Argument(help="Codebase to analyze")],
    analysis_type: Annotated[
        AnalysisType,
        typer.Option(
            "--type",
            "-t",
            help="Analysis focus",
        ),
    ] = AnalysisType.FULL,
    repositories: Annotated[
        list[str] | None,
        typer.Option(
            "--repo",
            "-r",
            help="Repository id to analyze (repeatable; default: all)",
        ),
    ] = None,
    depth: Annotated[
        str | None,
        typer.Option(
            "--depth",
            help="shallow, standard or deep (default: codebase setting)",
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Print the finished analysis as JSON",
        ),
    ] = False,
) -> None:
    """Run an analysis and wait for it to finish.

    Exit codes:
        0: Analysis completed
        1: Analysis failed, was cancelled, or could not start
    """
    config = _get_config()

    async def _run():
        async with _open_stores() as stores:
            orchestrator = build_orchestrator(config, stores)
            service = AnalysisService(orchestrator, stores)
            analysis_config = None
            if depth is not None or repositories:
                codebase = await stores.codebases.get(codebase_id)
                analysis_config = AnalysisConfig(
                    depth=depth or codebase.settings.analysis_depth,
                    target_repositories=list(repositories or []),
                )
            return await service.run(
                codebase_id,
                analysis_type,
                config=analysis_config,
                triggered_by="cli",
                on_progress=None if json_output else _print_progress,
            )

    try:
        analysis = asyncio.run(_run())
    except (PipelineError, ValueError) as e:
        _logger.error(str(e))
        raise typer.Exit(1)

    if json_output:
        typer.echo(json.dumps(analysis.to_dict(), indent=2))
    else:
        _echo_analysis(analysis)

    if analysis.status != AnalysisStatus.COMPLETED:
        raise typer.Exit(1)


def _echo_analysis(analysis) -> None:
    typer.echo(f"Analysis {analysis.id}: {analysis.status.value}")
    if analysis.error_message:
        typer.echo(f"  Error: {analysis.error_message}")
    if analysis.results is not None:
        results = analysis.results
        typer.echo(f"  Files analyzed: {results.files_analyzed}")
        typer.echo(f"  Findings: {results.findings_count}")
        typer.echo(f"  Security: {results.security_score}/100")
        typer.echo(f"  Maintainability: {results.maintainability_score}/100")
        typer.echo(f"  Technical debt: {results.tech_debt_score}/100")
    if analysis.summary is not None:
        typer.echo(f"\n{analysis.summary.overview}")


# =============================================================================
# status / stats / cancel commands
# =============================================================================


@app.command()
def status(
    analysis_id: Annotated[str, typer.Argument(help="Analysis id")],
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON",
        ),
    ] = False,
) -> None:
    """Show an analysis."""

    async def _run():
        async with _open_stores() as stores:
            return await stores.analyses.get(analysis_id)

    try:
        analysis = asyncio.run(_run())
    except PipelineError as e:
        _logger.error(str(e))
        raise typer.Exit(1)

    if json_output:
        typer.echo(json.dumps(analysis.to_dict(), indent=2))
    else:
        _echo_analysis(analysis)


@app.command()
def stats(
    codebase_id: Annotated[str, typer.Argument(help="Codebase id")],
) -> None:
    """Show repository, analysis and open-finding counts for a codebase."""
    async def _run():
        async with _open_stores() as stores:
            return await codebase_statistics(stores, codebase_id)

    try:
        result = asyncio.run(_run())
    except PipelineError as e:
        _logger.error(str(e))
        raise typer.Exit(1)
    typer.echo(json.dumps(result.to_dict(), indent=2))


@app.command()
def cancel(
    analysis_id: Annotated[str, typer.Argument(help="Analysis id")],
) -> None:
    """Cancel a queued or running analysis.

    A run in another process stops before its next repository or batch.
    """

    async def _run():
        async with _open_stores() as stores:
            return await stores.analyses.cancel(analysis_id)

    try:
        analysis = asyncio.run(_run())
    except PipelineError as e:
        _logger.error(str(e))
        raise typer.Exit(1)
    typer.echo(f"Analysis {analysis.id}: {analysis.status.value}")


# =============================================================================
# findings / report commands
# =============================================================================


@app.command()
def findings(
    analysis_id: Annotated[
        str | None,
        typer.Option(
            "--analysis",
            "-a",
            help="List findings of this analysis",
        ),
    ] = None,
    repository_id: Annotated[
        str | None,
        typer.Option(
            "--repository",
            "-r",
            help="List findings of this repository",
        ),
    ] = None,
    finding_status: Annotated[
        FindingStatus | None,
        typer.Option(
            "--status",
            help="Only findings in this status (repository listing)",
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON",
        ),
    ] = False,
) -> None:
    """List findings, most severe first."""
    if (analysis_id is None) == (repository_id is None):
        _logger.error("Exactly one of --analysis or --repository is required")
        raise typer.Exit(1)

    async def _run():
        async with _open_stores() as stores:
            if analysis_id is not None:
                return await stores.findings.list_by_analysis(analysis_id)
            return await stores.findings.list_by_repository(repository_id, status=finding_status)

    found = asyncio.run(_run())
    if json_output:
        typer.echo(json.dumps([finding.to_dict() for finding in found], indent=2))
        return
    for finding in found:
        location = f" {finding.file_path}" if finding.file_path else ""
        if finding.file_path and finding.line_start is not None:
            location += f":{finding.line_start}"
        typer.echo(
            f"[{finding.severity.value.upper():<8}] {finding.category.value:<16} "
            f"{finding.title}{location}"
        )


@app.command()
def report(
    analysis_id: Annotated[str, typer.Argument(help="Completed analysis id")],
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Write the report here instead of stdout",
        ),
    ] = None,
    top: Annotated[
        int,
        typer.Option(
            "--top",
            help="Number of findings listed in detail",
        ),
    ] = 10,
) -> None:
    """Render a completed analysis as markdown."""

    async def _run() -> str:
        async with _open_stores() as stores:
            analysis = await stores.analyses.get(analysis_id)
            codebase = await stores.codebases.get(analysis.codebase_id)
            repositories = await stores.repositories.list_by_codebase(codebase.id)
            analysis_findings = await stores.findings.list_by_analysis(analysis.id)
            return ReportRenderer(top_findings=top).render(
                analysis, codebase, repositories, analysis_findings
            )

    try:
        markdown = asyncio.run(_run())
    except (PipelineError, ValueError) as e:
        _logger.error(str(e))
        raise typer.Exit(1)

    if output is None:
        typer.echo(markdown, nl=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(markdown, encoding="utf-8")
    typer.echo(f"Report written to {output}")
