#!/usr/bin/env python3
"""nodealert - Puppet node alert rule evaluation CLI."""
import sys
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

import click
from rich.console import Console
from rich.table import Table

from __version__ import __version__

console = Console()
PROJECT_DIR = Path(__file__).parent

SEVERITY_STYLES = {
    "emergency": "bold magenta",
    "critical": "bold red",
    "warning": "yellow",
    "info": "blue",
}


def _resolve(path):
    path = Path(path)
    if path.is_absolute() or path.exists():
        return path
    return PROJECT_DIR / path


def _init_components(config_path=None, verbose=False, inventory=None):
    """Lazy initialization of all components."""
    from utils.logger import setup_logging
    from config import load_config
    from alerts.rules_manager import RulesManager
    from alerts.engine import AlertEngine
    from alerts.channels import ConsoleChannel, FileChannel
    from sources.base import GroupSource

    config = load_config(config_path)
    log_cfg = config.get("logging", {})
    setup_logging("DEBUG" if verbose else log_cfg.get("level", "INFO"), log_cfg.get("file"))

    if inventory:
        from sources.inventory import InventorySource
        source = InventorySource.from_file(inventory)
    else:
        from sources.puppetdb import PuppetDBSource
        source = PuppetDBSource.from_config(config)
    group_source = source if isinstance(source, GroupSource) else None

    rules = RulesManager(_resolve(config["alerts"]["rules_path"]))
    channels = [FileChannel(config["alerts"]["log_path"])]  # Always log to file

    # Console only if running interactively
    if sys.stdout.isatty():
        channels.append(ConsoleChannel(console))

    engine = AlertEngine.from_config(config, source, group_source=group_source, channels=channels)

    return {"config": config, "source": source, "rules": rules, "engine": engine}


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML")
@click.option("--inventory", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Static inventory YAML to use instead of PuppetDB")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="nodealert")
@click.pass_context
def cli(ctx, config_path, inventory, verbose):
    """nodealert - Evaluate alert rules against Puppet nodes and their reports."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["inventory"] = inventory
    ctx.obj["verbose"] = verbose


def _get_components(ctx):
    if "_components" not in ctx.obj:
        ctx.obj["_components"] = _init_components(
            ctx.obj.get("config_path"), ctx.obj.get("verbose"), ctx.obj.get("inventory"))
    return ctx.obj["_components"]


def _severity(sev):
    style = SEVERITY_STYLES.get(sev.value, "")
    return f"[{style}]{sev.value}[/{style}]" if style else sev.value


# ──────────────────────────────────────────────────────
# NODES
# ──────────────────────────────────────────────────────
@cli.command()
@click.pass_context
def nodes(ctx):
    """List nodes known to the node source."""
    from alerts.errors import OrchestratorError
    from utils.formatters import time_ago

    c = _get_components(ctx)
    try:
        node_list = c["engine"].list_nodes()
    except OrchestratorError as e:
        console.print(f"[red]✗[/red] {e}")
        sys.exit(1)

    table = Table(title=f"Nodes ({len(node_list)})", show_header=True)
    table.add_column("Certname")
    table.add_column("Environment")
    table.add_column("Status")
    table.add_column("Last Report", style="dim")
    for n in node_list:
        status = n.status.value
        if status == "failed":
            status = f"[red]{status}[/red]"
        last = time_ago(n.last_report_timestamp) if n.last_report_known else "unknown"
        table.add_row(n.certname, n.environment or "-", status, last)
    console.print(table)


# ──────────────────────────────────────────────────────
# ALERTS
# ──────────────────────────────────────────────────────
@cli.group()
def alerts():
    """Alert rule evaluation."""
    pass


@alerts.command("rules")
@click.pass_context
def alerts_rules(ctx):
    """List all valid alert rules."""
    c = _get_components(ctx)
    rules = c["rules"].get_all_rules()
    table = Table(title="Alert Rules", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Conditions")
    table.add_column("Severity")
    table.add_column("Debounce")
    table.add_column("Enabled")
    for r in rules:
        terms = [f"{cond.condition_type.value} {cond.operator.value}" for cond in r.enabled_conditions]
        table.add_row(r.id, r.name, f" {r.operator.value} ".join(terms) or "-", _severity(r.severity),
                      str(r.debounce_count), "[green]✓[/green]" if r.enabled else "[red]✗[/red]")
    console.print(table)

    if c["rules"].errors:
        console.print(f"\n[yellow]{len(c['rules'].errors)} rule problem(s) - "
                      f"run [bold]alerts validate[/bold] for details[/yellow]")


@alerts.command("validate")
@click.pass_context
def alerts_validate(ctx):
    """Validate the rules file and report every problem."""
    c = _get_components(ctx)
    errors = c["rules"].errors
    if not errors:
        console.print(f"[green]✓[/green] All {len(c['rules'].get_all_rules())} rules are valid")
        return
    console.print(f"[red]✗[/red] {len(errors)} problem(s) found:")
    for e in errors:
        console.print(f"  {e}", markup=False)
    sys.exit(1)


@alerts.command("check")
@click.pass_context
def alerts_check(ctx):
    """Evaluate all enabled alert rules against current node data."""
    from alerts.errors import OrchestratorError

    c = _get_components(ctx)
    try:
        triggered = c["engine"].check(c["rules"].get_enabled_rules())
    except OrchestratorError as e:
        console.print(f"[red]✗[/red] {e}")
        sys.exit(1)
    if triggered:
        console.print(f"[bold yellow]{len(triggered)} alert(s) triggered:[/bold yellow]")
        console.print(c["engine"].format_trigger_summary(triggered), markup=False)
    else:
        console.print("[green]All clear - no alerts triggered[/green]")


@alerts.command("test")
@click.argument("rule_id")
@click.pass_context
def alerts_test(ctx, rule_id):
    """Dry-run one rule, showing per-node results and timings."""
    from alerts.errors import OrchestratorError
    from utils.formatters import format_ms

    c = _get_components(ctx)
    rule = c["rules"].get_rule(rule_id)
    if rule is None:
        console.print(f"[red]✗[/red] Unknown rule: {rule_id}")
        sys.exit(1)
    try:
        result = c["engine"].test_rule(rule)
    except OrchestratorError as e:
        console.print(f"[red]✗[/red] {e}")
        sys.exit(1)

    table = Table(title=f"Rule Test: {rule.name}", show_header=True)
    table.add_column("Node")
    table.add_column("Match")
    table.add_column("Error")
    table.add_column("Time", justify="right")
    for r in result.node_results:
        if r.skipped is not None:
            match_str, err = "[dim]skipped[/dim]", r.skipped.message
        else:
            match_str = "[green]YES[/green]" if r.matched else "[dim]no[/dim]"
            err = r.error.message if r.error is not None else ""
        table.add_row(r.certname, match_str, err, format_ms(r.elapsed_ms))
    console.print(table)

    gate = "passed" if result.threshold_passed else "[red]failed[/red]"
    console.print(f"{len(result.matched)}/{len(result.node_results)} nodes matched, "
                  f"node count threshold {gate}, {len(result.triggers)} trigger(s) would fire "
                  f"({format_ms(result.elapsed_ms)})")


# ──────────────────────────────────────────────────────
# WATCH
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--interval", default=None, type=int, help="Seconds between passes")
@click.pass_context
def watch(ctx, interval):
    """Evaluate enabled rules periodically until interrupted."""
    from alerts.scheduler import EvaluationScheduler

    c = _get_components(ctx)
    interval = interval or c["config"]["evaluation"]["interval"]
    scheduler = EvaluationScheduler(c["engine"], c["rules"], interval_seconds=interval)
    scheduler.on_pass(lambda triggers: console.print(
        f"[dim]{time.strftime('%H:%M:%S')}[/dim] pass complete, {len(triggers)} trigger(s)"))
    scheduler.start()
    console.print(f"Watching {len(c['rules'].get_enabled_rules())} rules every {interval}s "
                  f"(Ctrl+C to stop)")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        scheduler.stop()


if __name__ == "__main__":
    cli()
