"""Processing CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from crm_rules.db.database import get_db
from crm_rules.core.actions.dispatcher import build_dispatcher
from crm_rules.core.rules.changes import build_change_data
from crm_rules.core.rules.engine import RuleProcessor
from crm_rules.core.rules.models import ProcessingContext
from crm_rules.core.rules.repository import RuleExecutionRepository, RuleRepository
from crm_rules.core.rules.results import ProcessingSummary
from crm_rules.core.rules.stats import DatabaseStatsCollector
from crm_rules.core.rules.validation import InvalidContextError, validate_context
from crm_rules.cli.rules import load_json_file, print_errors

console = Console()
app = typer.Typer()


@app.command("run")
def run_rules(
    path: Path = typer.Argument(..., help="JSON file with the processing context"),
    previous: Optional[Path] = typer.Option(
        None, "--previous", "-p", help="JSON file with the entity before the update"
    ),
    test_mode: bool = typer.Option(
        False, "--test-mode", "-t", help="Dispatch actions but record no statistics"
    ),
):
    """Evaluate matching rules for an entity event and dispatch their actions."""
    data = load_json_file(path)
    if previous is not None:
        data["change_data"] = build_change_data(
            data.get("entity_data") or {}, load_json_file(previous)
        )
    if test_mode:
        data["test_mode"] = True

    try:
        context = ProcessingContext.model_validate(data)
    except ValidationError as e:
        console.print(f"[red]Error:[/red] Malformed processing context:\n{e}")
        raise typer.Exit(1)

    errors = validate_context(context)
    if errors:
        console.print("[red]Error:[/red] Invalid processing context:")
        print_errors(errors)
        raise typer.Exit(1)

    with get_db() as db:
        rules = RuleRepository(db).get_matching_rules(context)
        if not rules:
            console.print("[yellow]No matching rules.[/yellow] Nothing to evaluate.")
            return

        processor = RuleProcessor(
            dispatcher=build_dispatcher(db),
            stats=DatabaseStatsCollector(db),
        )

        try:
            results = processor.process(context, rules)
        except InvalidContextError as e:
            console.print("[red]Error:[/red] Invalid processing context:")
            print_errors(e.errors)
            raise typer.Exit(1)

        summary = ProcessingSummary.from_results(results)

        table = Table(title=f"{context.entity_type.value} {context.entity_id} ({context.trigger_event})")
        table.add_column("Rule", style="cyan")
        table.add_column("Matched")
        table.add_column("Notifications", justify="right")
        table.add_column("Tasks", justify="right")
        table.add_column("Activities", justify="right")
        table.add_column("Notes")

        for result in results:
            table.add_row(
                result.rule_name,
                "[green]Yes[/green]" if result.matched else "[dim]No[/dim]",
                str(result.notifications_created),
                str(result.tasks_created),
                str(result.activities_created),
                "\n".join(result.notes) or "[dim]-[/dim]",
            )

        console.print(table)
        console.print(
            f"\n[bold]{summary.rules_matched}/{summary.rules_processed}[/bold] rule(s) matched"
        )
        if test_mode:
            console.print("[dim]Test mode: statistics were not recorded.[/dim]")


@app.command("executions")
def list_executions(
    rule: Optional[str] = typer.Option(None, "--rule", "-r", help="Filter by rule name"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of executions to show"),
):
    """Show recent rule executions."""
    with get_db() as db:
        rule_id = None
        if rule:
            stored = RuleRepository(db).get_by_name(rule)
            if not stored:
                console.print(f"[red]Error:[/red] Rule '{rule}' not found.")
                raise typer.Exit(1)
            rule_id = stored.id

        executions = RuleExecutionRepository(db).list_recent(rule_id=rule_id, limit=limit)

        if not executions:
            console.print("[yellow]No executions recorded.[/yellow]")
            return

        table = Table(title=f"Rule Executions (last {len(executions)})")
        table.add_column("Time", style="dim")
        table.add_column("Rule", style="cyan")
        table.add_column("Entity")
        table.add_column("Trigger")
        table.add_column("Matched")
        table.add_column("Created", justify="right")
        table.add_column("Errors", max_width=40)

        for e in executions:
            created = e.notifications_created + e.tasks_created + e.activities_created
            table.add_row(
                e.executed_at.strftime("%Y-%m-%d %H:%M:%S"),
                e.rule.name if e.rule else e.rule_id,
                f"{e.entity_type} {e.entity_id}",
                e.execution_trigger,
                "[green]Yes[/green]" if e.conditions_met else "[dim]No[/dim]",
                str(created),
                "; ".join(e.errors or []) or "[dim]-[/dim]",
            )

        console.print(table)


@app.command("analytics")
def show_analytics(
    entity: Optional[str] = typer.Option(None, "--entity", "-e", help="Filter by entity type"),
    days: int = typer.Option(30, "--days", "-d", help="Look-back window in days"),
):
    """Summarize rule executions over a time window."""
    if days <= 0:
        console.print("[red]Error:[/red] Days must be positive")
        raise typer.Exit(1)

    with get_db() as db:
        analytics = RuleExecutionRepository(db).get_analytics(
            entity_type=entity.upper() if entity else None, days=days
        )

    console.print(f"[bold]Rule analytics[/bold] [dim](last {days} days)[/dim]\n")
    console.print(f"  Rules: {analytics['active_rules']} active of {analytics['total_rules']}")
    console.print(f"  Executions: {analytics['total_executions']}")
    console.print(f"  Matches: {analytics['total_matches']} ({analytics['match_rate']:.1%})")
    console.print(f"  Notifications: {analytics['notifications_created']}")
    console.print(f"  Tasks: {analytics['tasks_created']}")
    console.print(f"  Activities: {analytics['activities_created']}")
    console.print(f"  Error rate: {analytics['error_rate']}%\n")

    if not analytics["rules"]:
        return

    table = Table(title="Per Rule")
    table.add_column("Rule", style="cyan")
    table.add_column("Executions", justify="right")
    table.add_column("Matches", justify="right")
    table.add_column("Errors", justify="right")
    for stats in analytics["rules"]:
        table.add_row(
            stats["rule_name"] or stats["rule_id"],
            str(stats["executions"]),
            str(stats["matches"]),
            str(stats["errors"]),
        )
    console.print(table)
