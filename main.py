#!/usr/bin/env python3
"""poolwatch alerting - CLI Entry Point."""
import sys
import time
from datetime import datetime, timezone
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

import click
from rich.console import Console
from rich.table import Table

from __version__ import __version__

console = Console()

SEVERITY_STYLE = {"critical": "bold red", "warning": "yellow", "info": "cyan"}


def _init_components(config_path=None, verbose=False):
    """Lazy initialization of all components."""
    from utils.logger import setup_logging
    from config import load_config
    from models.database import Database
    from alerts.engine import AlertEngine

    config = load_config(config_path)
    log_cfg = config.get("logging") or {}
    setup_logging("DEBUG" if verbose else log_cfg.get("level", "INFO"), log_cfg.get("file"))

    db_path = config["database"]["path"]
    db = Database(db_path)
    db.connect()

    engine = AlertEngine(db, config)

    return {"config": config, "db": db, "engine": engine, "rules": engine.rules_manager}


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="poolwatch")
@click.pass_context
def cli(ctx, config_path, verbose):
    """poolwatch - JVM pool alert rules, maintenance windows & notifications."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _get_components(ctx):
    if "_components" not in ctx.obj:
        ctx.obj["_components"] = _init_components(ctx.obj.get("config_path"), ctx.obj.get("verbose"))
    return ctx.obj["_components"]


def _severity(sev):
    style = SEVERITY_STYLE.get(str(sev).lower(), "white")
    return f"[{style}]{sev}[/{style}]"


def _fail(message):
    console.print(f"[red]Error:[/red] {message}")
    sys.exit(1)


# ──────────────────────────────────────────────────────
# CONDITIONS
# ──────────────────────────────────────────────────────
@cli.command("check-rule")
@click.argument("condition")
def check_rule(condition):
    """Validate a rule condition, e.g. 'usage > 80'."""
    from alerts.conditions import validate_condition
    from alerts.errors import ConditionError
    try:
        parsed = validate_condition(condition)
    except ConditionError as e:
        _fail(str(e))
    console.print(f"[green]✓[/green] valid: {parsed.field.value} {parsed.operator.value} {parsed.threshold:g}")


# ──────────────────────────────────────────────────────
# RULES
# ──────────────────────────────────────────────────────
@cli.group()
def rules():
    """Manage stored alert rules."""
    pass


@rules.command("list")
@click.pass_context
def rules_list(ctx):
    """List config and stored alert rules."""
    c = _get_components(ctx)
    table = Table(title="Alert Rules", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Condition")
    table.add_column("Severity")
    table.add_column("Enabled")
    for r in c["rules"].get_config_rules():
        table.add_row("config", r.name, r.condition, _severity(r.severity),
                      "[green]✓[/green]" if r.enabled else "[red]✗[/red]")
    for r in c["rules"].list_rules():
        table.add_row(str(r.id), r.name, r.condition, _severity(r.severity),
                      "[green]✓[/green]" if r.enabled else "[red]✗[/red]")
    console.print(table)


@rules.command("add")
@click.option("--name", required=True, help="Unique rule name")
@click.option("--condition", required=True, help="Condition, e.g. 'usage > 80'")
@click.option("--severity", default="warning", type=click.Choice(["info", "warning", "critical"], case_sensitive=False))
@click.option("--message", default="", help="Message template, e.g. 'Usage is {{Usage}}%'")
@click.option("--disabled", is_flag=True, help="Create the rule disabled")
@click.pass_context
def rules_add(ctx, name, condition, severity, message, disabled):
    """Create a stored alert rule."""
    from alerts.errors import ValidationError
    c = _get_components(ctx)
    try:
        rule = c["rules"].create_rule(name, condition, severity, message, enabled=not disabled)
    except ValidationError as e:
        _fail(str(e))
    console.print(f"[green]Created rule #{rule.id}[/green] {rule.name}: {rule.condition}")


@rules.command("delete")
@click.argument("rule_id", type=int)
@click.pass_context
def rules_delete(ctx, rule_id):
    """Delete a stored alert rule."""
    from alerts.errors import ValidationError
    c = _get_components(ctx)
    try:
        rule = c["rules"].delete_rule(rule_id)
    except ValidationError as e:
        _fail(str(e))
    console.print(f"[green]Deleted rule #{rule_id}[/green] {rule.name}")


@rules.command("toggle")
@click.argument("rule_id", type=int)
@click.pass_context
def rules_toggle(ctx, rule_id):
    """Enable or disable a stored alert rule."""
    from alerts.errors import ValidationError
    c = _get_components(ctx)
    try:
        rule = c["rules"].toggle_rule(rule_id)
    except ValidationError as e:
        _fail(str(e))
    state = "[green]enabled[/green]" if rule.enabled else "[red]disabled[/red]"
    console.print(f"Rule #{rule.id} {rule.name} {state}")


# ──────────────────────────────────────────────────────
# ALERTS
# ──────────────────────────────────────────────────────
@cli.group()
def alerts():
    """Inspect and resolve alerts."""
    pass


@alerts.command("list")
@click.option("--status", default=None, type=click.Choice(["fired", "resolved"]), help="Filter by status")
@click.option("--limit", default=50, help="Maximum rows")
@click.pass_context
def alerts_list(ctx, status, limit):
    """Show recent alerts."""
    from utils.formatters import format_timestamp, time_ago
    c = _get_components(ctx)
    rows = c["db"].get_alerts(status=status, limit=limit)
    if not rows:
        console.print("[dim]No alerts[/dim]")
        return
    table = Table(title="Alerts", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Fired", style="dim")
    table.add_column("Target")
    table.add_column("Rule")
    table.add_column("Severity")
    table.add_column("Status")
    table.add_column("Channels", style="dim")
    table.add_column("Message")
    for a in rows:
        status_str = "[red]fired[/red]" if a.is_fired else f"[green]resolved[/green] {time_ago(a.resolved_at)}"
        table.add_row(
            str(a.id), format_timestamp(a.fired_at), f"{a.target_name}/{a.instance_name}",
            a.rule_name, _severity(a.severity), status_str, a.channels_str(), (a.message or "")[:60],
        )
    console.print(table)


@alerts.command("resolve")
@click.argument("alert_id", type=int)
@click.pass_context
def alerts_resolve(ctx, alert_id):
    """Manually resolve an open alert."""
    c = _get_components(ctx)
    event = c["engine"].resolve_alert(alert_id)
    c["engine"].flush(timeout=60)
    if event is None:
        console.print(f"[yellow]Alert #{alert_id} is not open[/yellow]")
    else:
        console.print(f"[green]Resolved alert #{alert_id}[/green] {event.key}")


@alerts.command("stats")
@click.pass_context
def alerts_stats(ctx):
    """Alert counts by severity, target and rule."""
    c = _get_components(ctx)
    stats = c["engine"].stats()
    console.print(f"[bold]Total:[/bold] {stats.total_alerts}  "
                  f"[red]Active:[/red] {stats.active_alerts}  "
                  f"[green]Resolved:[/green] {stats.resolved_alerts}")
    for title, counts in (("Severity", stats.by_severity), ("Target", stats.by_target), ("Rule", stats.by_rule)):
        if not counts:
            continue
        table = Table(title=f"Active by {title.lower()}", show_header=True)
        table.add_column(title)
        table.add_column("Count", justify="right")
        for name, count in sorted(counts.items(), key=lambda kv: -kv[1]):
            table.add_row(_severity(name) if title == "Severity" else name, str(count))
        console.print(table)


# ──────────────────────────────────────────────────────
# MAINTENANCE WINDOWS
# ──────────────────────────────────────────────────────
def _parse_when(value, recurring):
    """ISO datetime, or HH:MM for recurring windows (today's date, UTC)."""
    if recurring and len(value) <= 5 and ":" in value:
        hour, minute = value.split(":")
        return datetime.now(timezone.utc).replace(hour=int(hour), minute=int(minute), second=0, microsecond=0)
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@cli.group()
def windows():
    """Manage maintenance windows."""
    pass


@windows.command("list")
@click.pass_context
def windows_list(ctx):
    """List maintenance windows."""
    c = _get_components(ctx)
    rows = c["db"].get_all_maintenance_windows()
    if not rows:
        console.print("[dim]No maintenance windows[/dim]")
        return
    now = datetime.now(timezone.utc)
    table = Table(title="Maintenance Windows", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Target")
    table.add_column("Schedule")
    table.add_column("Active")
    for w in rows:
        if w.recurring:
            schedule = f"{w.start_time:%H:%M}-{w.end_time:%H:%M} days={w.days_of_week or 'all'}"
        else:
            schedule = f"{w.start_time:%Y-%m-%d %H:%M} → {w.end_time:%Y-%m-%d %H:%M}"
        table.add_row(str(w.id), w.name, w.target_name or "[dim]all[/dim]", schedule,
                      "[yellow]●[/yellow]" if w.is_active(now) else "")
    console.print(table)


@windows.command("add")
@click.option("--name", required=True)
@click.option("--target", default="", help="Target name (empty = all targets)")
@click.option("--start", required=True, help="ISO datetime, or HH:MM for recurring windows")
@click.option("--end", required=True, help="ISO datetime, or HH:MM for recurring windows")
@click.option("--recurring", is_flag=True, help="Repeat daily / on --days")
@click.option("--days", default="", help="Weekdays, 0=Sunday, e.g. '1,2,3' or 'mon,tue'")
@click.option("--description", default="")
@click.pass_context
def windows_add(ctx, name, target, start, end, recurring, days, description):
    """Create a maintenance window."""
    from models.alerts import MaintenanceWindow, parse_days_of_week
    c = _get_components(ctx)
    try:
        start_time = _parse_when(start, recurring)
        end_time = _parse_when(end, recurring)
        parse_days_of_week(days)
    except ValueError as e:
        _fail(str(e))
    if not recurring and end_time <= start_time:
        _fail("end must be after start")

    window = MaintenanceWindow(
        name=name, description=description, target_name=target,
        start_time=start_time, end_time=end_time, recurring=recurring, days_of_week=days,
    )
    c["db"].save_maintenance_window(window)
    console.print(f"[green]Created maintenance window #{window.id}[/green] {name}")


@windows.command("delete")
@click.argument("window_id", type=int)
@click.pass_context
def windows_delete(ctx, window_id):
    """Delete a maintenance window."""
    c = _get_components(ctx)
    if c["db"].get_maintenance_window(window_id) is None:
        _fail(f"maintenance window {window_id} not found")
    c["db"].delete_maintenance_window(window_id)
    console.print(f"[green]Deleted maintenance window #{window_id}[/green]")


# ──────────────────────────────────────────────────────
# CHANNELS
# ──────────────────────────────────────────────────────
@cli.command("channels")
@click.pass_context
def channels_list(ctx):
    """List enabled notification channels."""
    c = _get_components(ctx)
    names = c["engine"].enabled_channels()
    if not names:
        console.print("[dim]No notification channels enabled[/dim]")
        return
    for name in names:
        console.print(f"[green]●[/green] {name}")


@cli.command("test-alert")
@click.option("--severity", default="warning", type=click.Choice(["info", "warning", "critical"], case_sensitive=False))
@click.option("--channel", "channels", multiple=True, help="Channel name (repeatable); default all enabled")
@click.option("--message", default=None, help="Custom test message")
@click.pass_context
def test_alert(ctx, severity, channels, message):
    """Send a synthetic alert through the notification channels."""
    c = _get_components(ctx)
    result = c["engine"].send_test_alert(severity=severity, channels=list(channels) or None, message=message)
    for name in result.unknown:
        console.print(f"[yellow]Unknown or disabled channel:[/yellow] {name}")
    if not result.targeted:
        console.print("[dim]No channels targeted[/dim]")
        return

    table = Table(title="Test Alert", show_header=True)
    table.add_column("Channel")
    table.add_column("Result")
    table.add_column("Attempts", justify="right")
    table.add_column("Error", style="dim")
    for o in result.outcomes:
        table.add_row(o.channel, "[green]sent[/green]" if o.success else "[red]failed[/red]",
                      str(o.attempts), o.error or "")
    console.print(table)
    if not result.success:
        sys.exit(1)


# ──────────────────────────────────────────────────────
# RUN
# ──────────────────────────────────────────────────────
@cli.command()
@click.pass_context
def run(ctx):
    """Run the alert sweep loop until interrupted."""
    from config import get_check_interval
    from monitor.scheduler import MonitorScheduler
    c = _get_components(ctx)
    interval = get_check_interval(c["config"]["alerting"])
    scheduler = MonitorScheduler(c["engine"], interval_seconds=interval)

    console.print(f"[bold]poolwatch {__version__}[/bold] sweeping every {interval:g}s "
                  f"({', '.join(c['engine'].enabled_channels()) or 'no channels'})")
    scheduler.start()
    try:
        while scheduler.running:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopping...[/dim]")
    finally:
        scheduler.stop()
        c["engine"].shutdown(wait=True)
        c["db"].close()


if __name__ == "__main__":
    cli()
