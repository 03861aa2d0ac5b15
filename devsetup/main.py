"""
devsetup — CLI entrypoint.

Usage:
    devsetup --help
    devsetup tools install git fzf ripgrep
    devsetup config check
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from devsetup import __version__
from devsetup.core.observability.logging_config import (
    ENV_FILE,
    ENV_FILE_LEVEL,
    resolve_level,
    setup_logging,
)


@click.group()
@click.version_option(version=__version__, prog_name="devsetup")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to devsetup.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """devsetup — install developer tools with winget, Chocolatey or scoop."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(ENV_FILE),
        log_file_level=os.environ.get(ENV_FILE_LEVEL),
        quiet_third_party=not debug,
    )


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate devsetup.yml and show the effective settings."""
    from devsetup.core.config.loader import ConfigError, find_config_file, load_settings
    from devsetup.core.services.tool_install.domain.registry import (
        RegistryError,
        ToolRegistry,
    )

    path = ctx.obj.get("config_path") or find_config_file()
    try:
        settings = load_settings(path, search=False)
        registry = ToolRegistry.from_catalog(extra=settings.tools)
    except (ConfigError, RegistryError) as e:
        if as_json:
            click.echo(json.dumps({"valid": False, "error": str(e)}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps({
            "valid": True,
            "path": str(path) if path else None,
            "settings": settings.model_dump(mode="json"),
            "tool_count": len(registry),
        }, indent=2))
        return

    click.secho("✅ Configuration is valid", fg="green", bold=True)
    click.echo(f"   File: {path or '(none, using defaults)'}")
    click.echo(f"   Retries: {settings.retry_count} (max {settings.max_attempts} attempts)")
    click.echo(f"   Timeout: {settings.timeout:g}s per install")
    click.echo(f"   Tools: {len(registry)} ({len(settings.tools)} from config)")
    click.echo()


# ── Register command groups ─────────────────────────────────────

from devsetup.ui.cli.tools import tools  # noqa: E402

cli.add_command(tools)


def main() -> None:
    """Entry point for ``python -m devsetup.main``."""
    cli(obj={})


if __name__ == "__main__":
    main()
