"""Command-line interface for reportflow."""

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any, NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from reportflow.config import ConfigError, LLMProfile, get_config_manager
from reportflow.llm.config import LLMProvider
from reportflow.observability.logging import configure_logging

app = typer.Typer(
    name="reportflow",
    help="AI report generation from pluggable data pipelines",
    add_completion=False,
)

profile_app = typer.Typer(name="profile", help="Manage LLM profiles")
jobs_app = typer.Typer(name="jobs", help="Submit and manage queued report jobs")
config_app = typer.Typer(name="config", help="Show and change configuration")
app.add_typer(profile_app, name="profile")
app.add_typer(jobs_app, name="jobs")
app.add_typer(config_app, name="config")

console = Console()

DEFAULT_MODELS = {
    LLMProvider.OPENAI.value: "gpt-4o-mini",
    LLMProvider.GEMINI.value: "gemini-2.0-flash-exp",
    LLMProvider.DEEPSEEK.value: "deepseek-chat",
}


def _fail(message: str) -> NoReturn:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1)


def parse_input_pairs(pairs: list[str] | None) -> dict[str, str]:
    """Turn ``key=value`` strings into a dict; values may contain ``=``."""
    inputs: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {pair!r}")
        inputs[key.strip()] = value
    return inputs


@app.callback()
def main_callback(
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Log level (debug, info, warning, error)"),
    ] = "warning",
    json_logs: Annotated[
        bool,
        typer.Option("--json-logs", help="Emit logs as JSON lines"),
    ] = False,
) -> None:
    configure_logging(level=log_level, format="json" if json_logs else "console")


# =============================================================================
# Profiles
# =============================================================================


@profile_app.command(name="add")
def profile_add_cmd(
    name: Annotated[str, typer.Option("--name", "-n", prompt="Profile name")],
    api_key: Annotated[
        str,
        typer.Option("--api-key", prompt="API key", hide_input=True),
    ],
    provider: Annotated[
        LLMProvider,
        typer.Option("--provider", "-p", help="LLM provider"),
    ] = LLMProvider.OPENAI,
    model: Annotated[
        Optional[str],
        typer.Option("--model", "-m", help="Model name (provider default if omitted)"),
    ] = None,
    base_url: Annotated[
        Optional[str],
        typer.Option("--base-url", help="Override the provider API URL"),
    ] = None,
    temperature: Annotated[
        float,
        typer.Option("--temperature", min=0.0, max=1.0),
    ] = 0.7,
    max_tokens: Annotated[int, typer.Option("--max-tokens", min=1)] = 4096,
) -> None:
    """Add an LLM profile. The first profile becomes the default."""
    manager = get_config_manager()
    try:
        profile = LLMProfile(
            name=name,
            provider=provider.value,
            model=model or DEFAULT_MODELS[provider.value],
            api_key=api_key,
            base_url=base_url,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        manager.add_profile(profile)
    except ConfigError as e:
        _fail(f"Failed to add profile: {e}")

    typer.echo(f"Profile '{name}' added")
    if manager.get_default_profile_name() == name:
        typer.echo("Set as default profile")


@profile_app.command(name="list")
def profile_list_cmd() -> None:
    """List configured profiles; the default is marked with *."""
    manager = get_config_manager()
    profiles = manager.list_profiles()
    if not profiles:
        typer.echo("No profiles configured. Run: reportflow profile add")
        return

    default = manager.get_default_profile_name()
    for profile in profiles:
        marker = "*" if profile.name == default else " "
        typer.echo(f"{marker} {profile.name} ({profile.provider}/{profile.model})")


@profile_app.command(name="remove")
def profile_remove_cmd(
    name: Annotated[str, typer.Argument(help="Profile to remove")],
) -> None:
    """Remove a profile."""
    try:
        get_config_manager().remove_profile(name)
    except ConfigError as e:
        _fail(str(e))
    typer.echo(f"Profile '{name}' removed")


@profile_app.command(name="default")
def profile_default_cmd(
    name: Annotated[str, typer.Argument(help="Profile to make the default")],
) -> None:
    """Set the default profile."""
    try:
        get_config_manager().set_default_profile(name)
    except ConfigError as e:
        _fail(str(e))
    typer.echo(f"Default profile set to '{name}'")


# =============================================================================
# Pipelines
# =============================================================================


@app.command(name="list")
def list_cmd() -> None:
    """List available pipelines."""
    from reportflow.plugins.manager import get_plugin_manager

    try:
        pipelines = asyncio.run(get_plugin_manager().list_pipelines())
    except Exception as e:
        _fail(str(e))

    if not pipelines:
        typer.echo(f"No pipelines found in {get_config_manager().get_plugins_dir()}")
        return

    table = Table(title="Pipelines")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Version")
    table.add_column("Formats")
    table.add_column("Report types")
    for p in pipelines:
        table.add_row(
            p["id"],
            p["name"],
            p["version"],
            ", ".join(p["output_formats"]),
            ", ".join(p["specifications"]),
        )
    console.print(table)


@app.command(name="inspect")
def inspect_cmd(
    pipeline_id: Annotated[str, typer.Argument(help="Pipeline ID")],
) -> None:
    """Show a pipeline's inputs, formats and report types."""
    from reportflow.plugins.base import PluginNotFoundError
    from reportflow.plugins.manager import get_plugin_manager

    try:
        meta = asyncio.run(get_plugin_manager().get_pipeline_metadata(pipeline_id))
    except PluginNotFoundError as e:
        _fail(str(e))

    console.print(f"[bold]{meta['name']}[/bold] ({meta['id']}) v{meta['version']}")
    if meta["description"]:
        console.print(meta["description"])

    table = Table(title="Inputs")
    table.add_column("Name", style="cyan")
    table.add_column("Type")
    table.add_column("Required")
    table.add_column("Label")
    for field in meta["inputs"]:
        table.add_row(
            field["name"],
            field["type"],
            "yes" if field.get("required") else "no",
            field.get("label", ""),
        )
    console.print(table)
    console.print(f"Output formats: {', '.join(meta['output_formats'])}")
    console.print(f"Report types: {', '.join(meta['specifications']) or 'none'}")


def _collect_inputs(plugin: Any, provided: dict[str, str]) -> dict[str, Any]:
    """Merge ``--input`` values with prompts for missing required inputs."""
    from reportflow.plugins.base import coerce_input_fields

    by_name = {k.lower(): v for k, v in provided.items()}
    inputs: dict[str, Any] = {}
    for field in coerce_input_fields(plugin.inputs):
        value = by_name.get(field.name.lower())
        if value is not None:
            inputs[field.name] = value
        elif field.required:
            prompt = field.label or field.name
            if field.options:
                prompt = f"{prompt} ({'/'.join(str(o) for o in field.options)})"
            inputs[field.name] = typer.prompt(prompt)
    return inputs


@app.command(name="run")
def run_cmd(
    pipeline_id: Annotated[str, typer.Argument(help="Pipeline ID")],
    output_format: Annotated[
        Optional[str],
        typer.Option("--format", "-f", help="Output format (html, pdf, mdx, pptx)"),
    ] = None,
    report_type: Annotated[
        Optional[str],
        typer.Option("--report-type", "-t", help="Report type to generate"),
    ] = None,
    input_pairs: Annotated[
        Optional[list[str]],
        typer.Option("--input", "-i", help="Input as key=value; repeatable"),
    ] = None,
    profile: Annotated[
        Optional[str],
        typer.Option("--profile", "-p", help="LLM profile (default profile if omitted)"),
    ] = None,
    name: Annotated[
        Optional[str],
        typer.Option("--name", "-n", help="Base name of the output file"),
    ] = None,
) -> None:
    """Run a pipeline and generate a report in the foreground."""
    from reportflow.plugins.base import PluginError
    from reportflow.plugins.manager import get_plugin_manager
    from reportflow.reports.errors import ReportError
    from reportflow.reports.generator import generate_report

    provided = parse_input_pairs(input_pairs)

    async def _run() -> Path:
        manager = get_plugin_manager()
        try:
            plugin = await manager.get_plugin(pipeline_id)
            inputs = _collect_inputs(plugin, provided)

            chosen_type = report_type
            if chosen_type is None:
                types = list(plugin.get_specifications().keys())
                if not types:
                    raise ReportError(f"Pipeline '{plugin.id}' defines no report types")
                chosen_type = types[0] if len(types) == 1 else typer.prompt(
                    f"Report type ({'/'.join(types)})"
                )

            chosen_format = output_format or typer.prompt(
                f"Output format ({'/'.join(plugin.output_formats)})"
            )
            return await generate_report(
                plugin, inputs, chosen_type, chosen_format, profile, name
            )
        finally:
            await manager.shutdown()

    try:
        path = asyncio.run(_run())
    except (PluginError, ReportError) as e:
        _fail(str(e))
    except typer.Abort:
        raise
    except Exception as e:
        _fail(f"Report generation failed: {e}")

    typer.echo(f"Report saved to {path}")


@app.command(name="worker")
def worker_cmd(
    concurrency: Annotated[
        Optional[int],
        typer.Option("--concurrency", "-c", min=1, help="Jobs processed at once"),
    ] = None,
) -> None:
    """Run a job worker until interrupted."""
    from reportflow.jobs.config import WorkerConfig
    from reportflow.jobs.worker import run_worker

    config = WorkerConfig.from_env()
    if concurrency is not None:
        config = WorkerConfig(
            concurrency=concurrency,
            limiter=config.limiter,
            poll_interval=config.poll_interval,
        )
    typer.echo(f"Worker starting with concurrency {config.concurrency} (Ctrl+C to stop)")
    asyncio.run(run_worker(config=config))


@app.command(name="serve")
def serve_cmd(
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", help="Bind port")] = 8000,
) -> None:
    """Serve the HTTP API."""
    import uvicorn

    from reportflow.api.app import create_app

    uvicorn.run(create_app(), host=host, port=port)


# =============================================================================
# Jobs
# =============================================================================


def _open_queue() -> Any:
    from reportflow.jobs.queue import ReportQueue
    from reportflow.jobs.stores import create_store_from_env

    return ReportQueue(create_store_from_env())


def _run_queue(operation: Any) -> Any:
    """Run ``operation(queue)`` and close the queue afterwards."""

    async def _run() -> Any:
        queue = _open_queue()
        try:
            return await operation(queue)
        finally:
            await queue.close()

    return asyncio.run(_run())


@jobs_app.command(name="submit")
def jobs_submit_cmd(
    pipeline_id: Annotated[str, typer.Argument(help="Pipeline ID")],
    report_type: Annotated[str, typer.Option("--report-type", "-t")],
    output_format: Annotated[str, typer.Option("--format", "-f")],
    input_pairs: Annotated[
        Optional[list[str]],
        typer.Option("--input", "-i", help="Input as key=value; repeatable"),
    ] = None,
    priority: Annotated[
        Optional[int],
        typer.Option("--priority", help="Lower runs first (default 5)"),
    ] = None,
    profile: Annotated[Optional[str], typer.Option("--profile", "-p")] = None,
    name: Annotated[Optional[str], typer.Option("--name", "-n")] = None,
) -> None:
    """Queue a report job for a worker."""
    from reportflow.jobs.types import JobError

    record = {
        "pipeline_id": pipeline_id,
        "report_type": report_type,
        "output_format": output_format,
        "inputs": parse_input_pairs(input_pairs),
        "profile_name": profile,
        "report_name": name,
    }
    try:
        ref = _run_queue(lambda q: q.add_job(record, priority=priority))
    except JobError as e:
        _fail(str(e))
    typer.echo(f"Job submitted: {ref.id}")


@jobs_app.command(name="status")
def jobs_status_cmd(
    job_id: Annotated[str, typer.Argument(help="Job ID")],
) -> None:
    """Show a job's status record as JSON."""
    record = _run_queue(lambda q: q.get_job_status(job_id))
    if record is None:
        _fail(f"Job not found: {job_id}")
    typer.echo(json.dumps(record, indent=2))


@jobs_app.command(name="list")
def jobs_list_cmd(
    status: Annotated[
        Optional[str],
        typer.Option("--status", "-s", help="waiting, active, completed, failed or delayed"),
    ] = None,
) -> None:
    """List jobs, newest first."""
    try:
        jobs = _run_queue(lambda q: q.get_all_jobs(status))
    except ValueError:
        _fail(f"Unknown status: {status}")

    if not jobs:
        typer.echo("No jobs")
        return

    table = Table(title="Jobs")
    table.add_column("ID", style="cyan")
    table.add_column("Pipeline")
    table.add_column("Type")
    table.add_column("Format")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Attempts", justify="right")
    for job in jobs:
        table.add_row(
            job.id,
            job.data.pipeline_id,
            job.data.report_type,
            job.data.output_format,
            job.status.value,
            f"{job.progress.percentage:g}%",
            str(job.attempts_made),
        )
    console.print(table)


@jobs_app.command(name="cancel")
def jobs_cancel_cmd(
    job_id: Annotated[str, typer.Argument(help="Job ID")],
) -> None:
    """Remove a job from the queue."""
    from reportflow.jobs.types import JobNotFoundError

    try:
        _run_queue(lambda q: q.remove_job(job_id))
    except JobNotFoundError as e:
        _fail(str(e))
    typer.echo(f"Job {job_id} removed")


@jobs_app.command(name="clean")
def jobs_clean_cmd(
    status: Annotated[
        str,
        typer.Option("--type", help="Which jobs to clean: completed or failed"),
    ] = "completed",
    hours: Annotated[
        Optional[float],
        typer.Option("--hours", help="Age threshold for completed jobs (default 24)"),
    ] = None,
    days: Annotated[
        Optional[float],
        typer.Option("--days", help="Age threshold for failed jobs (default 7)"),
    ] = None,
    obliterate: Annotated[
        bool,
        typer.Option("--obliterate", help="Delete every job in the queue"),
    ] = False,
    force: Annotated[bool, typer.Option("--force", help="Confirm --obliterate")] = False,
) -> None:
    """Delete old completed or failed jobs."""
    from reportflow.jobs.types import JobError

    if obliterate:
        try:
            _run_queue(lambda q: q.obliterate_all_jobs(force=force))
        except JobError as e:
            _fail(str(e))
        typer.echo("All jobs deleted")
        return

    if status == "completed":
        count = _run_queue(lambda q: q.clean_completed_jobs(24 if hours is None else hours))
    elif status == "failed":
        count = _run_queue(lambda q: q.clean_failed_jobs(7 if days is None else days))
    else:
        _fail(f"Unknown job type: {status}")
    typer.echo(f"Deleted {count} {status} jobs")


@jobs_app.command(name="stats")
def jobs_stats_cmd() -> None:
    """Show job counts per status."""
    stats = _run_queue(lambda q: q.get_queue_stats())
    table = Table(title="Queue")
    table.add_column("Status")
    table.add_column("Jobs", justify="right")
    for key, value in stats.items():
        table.add_row(key, str(value))
    console.print(table)


# =============================================================================
# Configuration
# =============================================================================


@config_app.command(name="show")
def config_show_cmd() -> None:
    """Show configuration with API keys masked."""
    manager = get_config_manager()
    config = manager.load()
    data = {
        "config_path": str(manager.config_path),
        "default_profile": config.default_profile or None,
        "plugins_dir": str(manager.get_plugins_dir()),
        "output_dir": str(manager.get_output_dir()),
        "profiles": [p.to_public_dict() for p in config.profiles],
    }
    typer.echo(json.dumps(data, indent=2))


@config_app.command(name="set-plugins-dir")
def config_set_plugins_dir_cmd(
    directory: Annotated[Path, typer.Argument(help="Plugins directory")],
) -> None:
    """Set the directory plugins are loaded from."""
    get_config_manager().set_plugins_dir(directory)
    typer.echo(f"Plugins directory set to: {directory}")


@config_app.command(name="set-output-dir")
def config_set_output_dir_cmd(
    directory: Annotated[Path, typer.Argument(help="Output directory")],
) -> None:
    """Set the directory reports are written to."""
    get_config_manager().set_output_dir(directory)
    typer.echo(f"Output directory set to: {directory}")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
