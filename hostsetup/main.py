"""
hostsetup — CLI entrypoint.

Usage:
    sudo hostsetup                 # full bootstrap, no questions needed
    sudo hostsetup install         # dependencies only
    sudo hostsetup provision       # service + proxy only
    hostsetup check [--json]       # read-only probe
    python -m hostsetup.main --help
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Callable

import click

from hostsetup import __version__
from hostsetup.core.observability.logging_config import setup_logging


def _load_config(ctx: click.Context):
    from hostsetup.core.config.loader import load_config
    from hostsetup.core.errors import ConfigError

    try:
        return load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)


def _prompt() -> Callable[[str, str], str] | None:
    """Interactive domain prompt, only when a terminal is attached."""
    if not sys.stdin.isatty():
        return None
    return lambda text, default: click.prompt(text, default=default)


def _finish(result, as_json: bool = False) -> None:
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    sys.exit(0 if result.ok else 1)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="hostsetup")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Only report warnings and errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to hostsetup.yml (default: auto-detect).",
)
@click.option("--domain", "-d", default=None, help="Public domain routed to the service.")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    domain: str | None,
) -> None:
    """Bootstrap a Linux host into a running CaptainCore server.

    Without a command, runs the whole bootstrap (same as ``run``).
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["domain"] = domain

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "WARNING"
    else:
        level = os.environ.get("HOSTSETUP_LOG_LEVEL", "INFO")

    setup_logging(
        level=level,
        log_file=os.environ.get("HOSTSETUP_LOG_FILE"),
        log_file_level=os.environ.get("HOSTSETUP_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )

    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Print the result as JSON.")
@click.pass_context
def run(ctx: click.Context, as_json: bool = False) -> None:
    """Install dependencies, start the service and configure the proxy."""
    from hostsetup.core.use_cases.bootstrap import run_bootstrap

    config = _load_config(ctx)
    result = run_bootstrap(config, domain=ctx.obj.get("domain"), prompt=_prompt())
    _finish(result, as_json)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Print the result as JSON.")
@click.pass_context
def install(ctx: click.Context, as_json: bool) -> None:
    """Install or upgrade the dependencies only."""
    from hostsetup.core.use_cases.bootstrap import run_install

    config = _load_config(ctx)
    result = run_install(config)

    if not as_json and result.ok:
        click.secho("✅ Dependencies ready", fg="green", bold=True)
    _finish(result, as_json)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Print the result as JSON.")
@click.pass_context
def provision(ctx: click.Context, as_json: bool) -> None:
    """Write and start the service unit, then configure the proxy."""
    from hostsetup.core.use_cases.bootstrap import run_provision

    config = _load_config(ctx)
    result = run_provision(config, domain=ctx.obj.get("domain"), prompt=_prompt())

    if not as_json and result.ok and result.service:
        click.secho(f"✅ {result.service.service}: {result.service.action}", fg="green", bold=True)
    _finish(result, as_json)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def check(ctx: click.Context, as_json: bool) -> None:
    """Validate hostsetup.yml and probe the host without changing it."""
    from hostsetup.core.use_cases.check import check_host

    result = check_host(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)
        return

    if not result.valid:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")
        click.echo()
        sys.exit(1)

    source = result.config_path or "built-in defaults"
    click.secho("✅ Configuration is valid", fg="green", bold=True)
    click.echo(f"   Config: {source}")
    click.echo()

    click.secho("   Dependencies:", fg="white", bold=True)
    for dep in result.dependencies:
        installed = dep.installed or "—"
        minimum = f" (>= {dep.minimum})" if dep.minimum else ""
        optional = "" if dep.required else " [optional]"
        color = "green" if dep.action == "skip" else "yellow"
        marker = "✓" if dep.action == "skip" else "→"
        click.secho(f"     {marker} {dep.name:<12}", fg=color, nl=False)
        click.echo(f" {installed}{minimum}{optional}  {dep.action}: {dep.reason}")

    if result.service_state is not None:
        click.echo()
        color = "green" if result.service_state == "active" else "yellow"
        click.echo("   Service: ", nl=False)
        click.secho(result.service_state, fg=color)

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    click.echo()


if __name__ == "__main__":
    cli()
