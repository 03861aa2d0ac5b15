"""
CLI commands for installing developer tools.

Thin wrappers over ``devsetup.core.services.tool_install``.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

_ICON = {True: "✅", False: "❌"}
_SEVERITY_COLOR = {"low": "white", "medium": "yellow", "high": "red", "critical": "red"}


def _settings(ctx: click.Context, **overrides):
    """Load devsetup.yml and apply CLI overrides; exit 1 on bad config."""
    from devsetup.core.config.loader import ConfigError, apply_overrides, load_settings

    obj = ctx.obj or {}
    try:
        return apply_overrides(load_settings(obj.get("config_path")), **overrides)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


def _registry(settings):
    from devsetup.core.services.tool_install.domain.registry import RegistryError, ToolRegistry

    try:
        return ToolRegistry.from_catalog(extra=settings.tools)
    except RegistryError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


@click.group()
def tools() -> None:
    """Tools — install, list, backends, check, diagnose, history."""


# ── Install ─────────────────────────────────────────────────────


@tools.command()
@click.argument("names", nargs=-1, required=True)
@click.option("--dry-run", is_flag=True, help="Show what would be installed; run nothing.")
@click.option("--force", is_flag=True, help="Reinstall even if the tool already works.")
@click.option("--retry-count", type=int, default=None, help="Extra attempt rounds (default: 2).")
@click.option("--timeout", type=float, default=None, help="Seconds per install (default: 300).")
@click.option("--workers", type=int, default=None, help="Parallel installs (default: one per tool).")
@click.option("--audit-log", type=click.Path(), default=None, help="Append events to this NDJSON file.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(
    ctx: click.Context,
    names: tuple[str, ...],
    dry_run: bool,
    force: bool,
    retry_count: int | None,
    timeout: float | None,
    workers: int | None,
    audit_log: str | None,
    as_json: bool,
) -> None:
    """Install one or more tools."""
    from devsetup.core.context import set_audit_writer
    from devsetup.core.persistence.audit import AuditWriter
    from devsetup.core.services.tool_install.orchestration.orchestrator import InstallOrchestrator

    settings = _settings(
        ctx,
        dry_run=True if dry_run else None,
        retry_count=retry_count,
        timeout=timeout,
        max_workers=workers,
        audit_log=audit_log,
    )
    if settings.audit_log:
        set_audit_writer(AuditWriter(Path(settings.audit_log)))

    orchestrator = InstallOrchestrator(registry=_registry(settings), settings=settings)
    try:
        results = orchestrator.install_tools(names, force=force)
    finally:
        set_audit_writer(None)

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in results], indent=2))
        sys.exit(0 if all(r.success for r in results) else 1)

    quiet = (ctx.obj or {}).get("quiet", False)
    for r in results:
        icon = "⏭️ " if r.already_installed else _ICON[r.success]
        timing = f" ({r.attempts} attempt{'s' if r.attempts != 1 else ''}, {r.duration:.1f}s)"
        line = f"{icon} {r.tool}: {r.message}"
        if r.success:
            click.secho(line + ("" if r.already_installed or r.dry_run else timing), fg="green")
            continue

        click.secho(line, fg="red")
        if r.severity:
            click.secho(
                f"   severity: {r.severity.value} ({r.category})",
                fg=_SEVERITY_COLOR.get(r.severity.value, "white"),
            )
        if not quiet:
            for tip in r.suggestions:
                click.echo(f"   💡 {tip}")

    failed = [r for r in results if not r.success]
    click.echo()
    if failed:
        click.secho(f"❌ {len(failed)} of {len(results)} tool(s) failed", fg="red", bold=True)
        sys.exit(1)
    click.secho(f"✅ {len(results)} tool(s) ready", fg="green", bold=True)


# ── Observe ─────────────────────────────────────────────────────


@tools.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_tools(ctx: click.Context, as_json: bool) -> None:
    """List installable tools and their package identifiers."""
    registry = _registry(_settings(ctx))

    if as_json:
        click.echo(json.dumps([t.to_dict() for t in registry.all()], indent=2))
        return

    click.secho(f"🧰 Tools ({len(registry)}):", fg="cyan", bold=True)
    for tool in registry.all():
        backends = ", ".join(
            f"{kind.value}={'|'.join(ids)}" for kind, ids in tool.packages.items()
        ) or "(no package)"
        marker = " [built-in]" if tool.built_in else ""
        click.echo(f"   {tool.name:<18} {backends}{marker}")
    click.echo()


@tools.command()
@click.option("--reprobe", is_flag=True, help="Ignore the cached result and probe again.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def backends(ctx: click.Context, reprobe: bool, as_json: bool) -> None:
    """Show which package managers are available."""
    from devsetup.core.models.tool import BackendKind
    from devsetup.core.services.tool_install.detection.backend_probe import (
        DEFAULT_BACKEND_CACHE,
        BackendProber,
    )

    settings = _settings(ctx)
    prober = BackendProber(timeout=settings.probe_timeout)
    if reprobe:
        available = DEFAULT_BACKEND_CACHE.force_reprobe(prober)
    else:
        available = DEFAULT_BACKEND_CACHE.get(prober)

    rows = [
        {
            "backend": kind.value,
            "priority": kind.priority,
            "available": kind in available,
            "detail": prober.last_details.get(kind, ""),
        }
        for kind in BackendKind.ordered()
    ]

    if as_json:
        click.echo(json.dumps(rows, indent=2))
        return

    click.secho("📦 Package managers (priority order):", fg="cyan", bold=True)
    for row in rows:
        click.echo(f"   {_ICON[row['available']]} {row['backend']:<8} {row['detail']}")
    if not available:
        click.echo()
        click.secho("🚫 No package manager available; installs will fail.", fg="red")
        sys.exit(1)
    click.echo()


@tools.command()
@click.argument("names", nargs=-1, required=True)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def check(ctx: click.Context, names: tuple[str, ...], as_json: bool) -> None:
    """Check whether tools are installed and working (installs nothing)."""
    from devsetup.core.services.tool_install.detection.tool_version import ToolVerifier

    settings = _settings(ctx)
    registry = _registry(settings)
    verifier = ToolVerifier(settle_delay=0, timeout=settings.verify_timeout)

    rows = []
    for name in names:
        tool = registry.get(name)
        if tool is None:
            rows.append({"tool": name, "ok": False, "error": f"Unknown tool: {name}"})
            continue
        rows.append({"tool": tool.name, **verifier.verify(tool, settle=False).to_dict()})

    if as_json:
        click.echo(json.dumps(rows, indent=2))
    else:
        for row in rows:
            if row.get("skipped"):
                click.echo(f"   ➖ {row['tool']}: not a command, cannot be checked")
            elif row["ok"]:
                click.secho(f"   ✅ {row['tool']}: {row.get('version') or 'ok'}", fg="green")
            else:
                click.secho(f"   ❌ {row['tool']}: {row['error']}", fg="red")

    if not all(row["ok"] for row in rows):
        sys.exit(1)


@tools.command()
@click.argument("message")
@click.option("--tool", "tool_name", default=None, help="Tool the failure belongs to.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def diagnose(ctx: click.Context, message: str, tool_name: str | None, as_json: bool) -> None:
    """Classify an install failure message and suggest fixes."""
    from devsetup.core.services.tool_install.domain.error_classifier import classify_failure

    tool = None
    if tool_name:
        tool = _registry(_settings(ctx)).get(tool_name)
        if tool is None:
            click.secho(f"⚠️  Unknown tool: {tool_name}", fg="yellow")

    result = classify_failure(message, tool)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.secho(
        f"🔎 {result.label or result.category} (severity: {result.severity.value})",
        fg=_SEVERITY_COLOR.get(result.severity.value, "white"),
        bold=True,
    )
    for tip in result.suggestions:
        click.echo(f"   💡 {tip}")
    click.echo()


@tools.command()
@click.option("-n", "count", type=int, default=20, help="Number of entries (default: 20).")
@click.option("--tool", "tool_name", default=None, help="Only events for this tool.")
@click.option("--audit-log", type=click.Path(), default=None, help="NDJSON file to read.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def history(
    ctx: click.Context,
    count: int,
    tool_name: str | None,
    audit_log: str | None,
    as_json: bool,
) -> None:
    """Show recent install events from the audit log."""
    from devsetup.core.persistence.audit import AuditWriter

    settings = _settings(ctx, audit_log=audit_log)
    writer = AuditWriter(Path(settings.audit_log) if settings.audit_log else None)
    entries = writer.read_recent(count, target=tool_name.lower() if tool_name else None)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.secho(f"📭 No install events in {writer.path}", fg="yellow")
        return

    click.secho(f"📜 Recent install events ({len(entries)}):", fg="cyan", bold=True)
    for entry in entries:
        click.echo(f"   {entry.timestamp[:19]}  {entry.label}  {entry.summary}")
    click.echo()
