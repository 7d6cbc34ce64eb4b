"""
Admin CLI for flightcheck.

Provides commands for inspecting hook trees, running hooks locally against
a job file, showing the merged configuration and publishing jobs to the bus.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import click

from fc_bus.http import HTTPConnection
from fc_common.errors import FlightcheckError
from fc_common.models import Job
from fc_config.loader import get_config
from fc_hooks.aggregator import aggregate
from fc_hooks.base import hook_name
from fc_hooks.discovery import discover, find_hook_files
from fc_hooks.runner import FailurePolicy, HookRunner
from fc_worker.orchestrator import CYCLE_START
from fc_worker.settings import resolve_policy, resolve_timeout


def run_async(coro):
    """Helper to run async functions in CLI commands."""
    return asyncio.run(coro)


def load_job(path: str) -> Job:
    """Load a job from a JSON file, exiting with an error message on failure."""
    try:
        data = json.loads(Path(path).read_text())
        return Job.from_dict(data)
    except (OSError, ValueError, FlightcheckError) as e:
        click.echo(f"Error: Invalid job file {path}: {e}", err=True)
        sys.exit(1)


def load_settings(config_path: str | None) -> Any:
    try:
        return get_config(config_path)
    except FlightcheckError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option("--config", "config_path", default=None, help="Configuration file path")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None):
    """Flightcheck Admin - Inspect and run flightcheck hooks."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.group()
def hooks():
    """Inspect hook trees."""
    pass


@cli.group()
def config():
    """Inspect configuration."""
    pass


# ============================================================================
# Hook Commands
# ============================================================================


@hooks.command("list")
@click.option("--phase", default=None, help="Phase to list (default: flightcheck.phase or pre)")
@click.option("--hooks", "hooks_root", default=None, help="Hook tree root")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def hooks_list(ctx: click.Context, phase: str | None, hooks_root: str | None, json_output: bool):
    """List the hooks discovered for a phase."""
    settings = load_settings(ctx.obj["config_path"])
    phase = phase or settings.get("flightcheck.phase", "pre")
    hooks_root = hooks_root or settings.get("flightcheck.hooks", "hooks")

    try:
        files = find_hook_files(hooks_root, phase)
        classes = discover(hooks_root, phase)
    except FlightcheckError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    entries = [
        {"name": hook_name(cls), "class": cls.__name__, "path": path.as_posix()}
        for path, cls in zip(files, classes)
    ]

    if json_output:
        click.echo(json.dumps(entries, indent=2))
        return

    if not entries:
        click.echo(f"No {phase} hooks found in {hooks_root}.")
        return

    click.echo(f"{'NAME':<24} {'CLASS':<24} {'PATH'}")
    click.echo("-" * 72)
    for entry in entries:
        click.echo(f"{entry['name']:<24} {entry['class']:<24} {entry['path']}")


# ============================================================================
# Run Commands
# ============================================================================


@cli.command("run")
@click.argument("job_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--phase", default=None, help="Phase to run (default: flightcheck.phase or pre)")
@click.option("--hooks", "hooks_root", default=None, help="Hook tree root")
@click.option("--timeout", type=float, default=None, help="Seconds per hook")
@click.option(
    "--policy",
    type=click.Choice([p.value for p in FailurePolicy]),
    default=None,
    help="Failure policy (default: flightcheck.policy or isolate)",
)
@click.pass_context
def run(
    ctx: click.Context,
    job_file: str,
    phase: str | None,
    hooks_root: str | None,
    timeout: float | None,
    policy: str | None,
):
    """Run hooks locally for a job file and print the report as JSON."""
    settings = load_settings(ctx.obj["config_path"])
    job = load_job(job_file)
    phase = phase or settings.get("flightcheck.phase", "pre")
    hooks_root = hooks_root or settings.get("flightcheck.hooks", "hooks")
    runner = HookRunner(
        timeout=resolve_timeout(
            timeout if timeout is not None else settings.get("flightcheck.timeout")
        ),
        policy=resolve_policy(policy or settings.get("flightcheck.policy")),
    )

    async def run_hooks():
        results = await runner.run_all(discover(hooks_root, phase), job)
        return aggregate(results, job)

    try:
        report = run_async(run_hooks())
    except FlightcheckError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(json.dumps(report.to_dict(), indent=2))
    sys.exit(1 if report.errors else 0)


@cli.command("publish")
@click.argument("job_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--server-url", default=None, help="Bus endpoint (default: server.url)")
@click.option("--destination", default="flightcheck", help="Bus name to send the job to")
@click.pass_context
def publish(ctx: click.Context, job_file: str, server_url: str | None, destination: str):
    """Send a cycle:start event for a job file through the bus."""
    settings = load_settings(ctx.obj["config_path"])
    job = load_job(job_file)
    server_url = server_url or settings.get("server.url", "http://localhost:2000")

    async def send():
        connection = HTTPConnection("flightcheck-admin")
        await connection.connect(server_url)
        try:
            await connection.send(destination, CYCLE_START, job.to_dict())
        finally:
            await connection.close()

    try:
        run_async(send())
    except FlightcheckError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ Sent {CYCLE_START} for {job.project_name} to {destination}")


# ============================================================================
# Config Commands
# ============================================================================


@config.command("show")
@click.argument("key", required=False)
@click.pass_context
def config_show(ctx: click.Context, key: str | None):
    """Show the merged configuration, or a single KEY."""
    settings = load_settings(ctx.obj["config_path"])

    if key is None:
        click.echo(json.dumps(settings.get("."), indent=2, sort_keys=True))
        return

    if not settings.has(key):
        click.echo(f"Error: {key} is not set", err=True)
        sys.exit(1)

    click.echo(json.dumps(settings.get(key), indent=2, sort_keys=True))


if __name__ == "__main__":
    cli()
