"""Rules CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from crm_rules.db.database import get_db
from crm_rules.core.rules.models import (
    ActionType,
    BusinessRuleInput,
    ConditionOperator,
    EntityType,
    RuleStatus,
)
from crm_rules.core.rules.repository import RuleRepository
from crm_rules.core.rules.validation import RuleValidationError, schema_errors, validate_rule

console = Console()
app = typer.Typer()


def load_json_file(path: Path) -> Dict[str, Any]:
    """Read a JSON object from disk, exiting with a message on failure."""
    try:
        data = json.loads(path.read_text())
    except FileNotFoundError:
        console.print(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(1)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] Invalid JSON in {path}: {e}")
        raise typer.Exit(1)

    if not isinstance(data, dict):
        console.print(f"[red]Error:[/red] {path} must contain a JSON object")
        raise typer.Exit(1)
    return data


def load_rule_file(path: Path) -> BusinessRuleInput:
    data = load_json_file(path)
    try:
        return BusinessRuleInput.model_validate(data)
    except ValidationError as e:
        console.print("[red]Error:[/red] Malformed rule definition:")
        print_errors(schema_errors(e))
        raise typer.Exit(1)


def print_errors(errors) -> None:
    for error in errors:
        console.print(f"  [red]-[/red] {error}")


@app.command("add")
def add_rule(
    path: Path = typer.Argument(..., help="JSON file with the rule definition"),
    activate: bool = typer.Option(False, "--activate", help="Store the rule as ACTIVE"),
    created_by: Optional[str] = typer.Option(None, "--created-by", help="User creating the rule"),
):
    """Add a rule from a JSON definition."""
    definition = load_rule_file(path)
    if activate:
        definition.status = RuleStatus.ACTIVE

    with get_db() as db:
        repo = RuleRepository(db)

        if definition.name and repo.get_by_name(definition.name.strip()):
            console.print(
                f"[yellow]Warning:[/yellow] Rule '{definition.name}' already exists. "
                f"Use a different name or remove the existing rule."
            )
            raise typer.Exit(1)

        try:
            rule = repo.create(definition, created_by=created_by)
        except RuleValidationError as e:
            console.print("[red]Error:[/red] Rule is invalid:")
            print_errors(e.errors)
            raise typer.Exit(1)

        console.print(
            f"[green]Added rule:[/green] {rule.name}\n"
            f"  Entity: {rule.entity_type}\n"
            f"  Trigger: {rule.trigger_type}\n"
            f"  Conditions: {len(rule.conditions)}\n"
            f"  Actions: {len(rule.actions)}\n"
            f"  Status: {rule.status}"
        )


@app.command("list")
def list_rules(
    all_rules: bool = typer.Option(False, "--all", "-a", help="Show draft and inactive rules too"),
    entity: Optional[str] = typer.Option(None, "--entity", "-e", help="Filter by entity type"),
):
    """List rules, highest priority first."""
    entity_type = entity.upper() if entity else None
    if entity_type and entity_type not in EntityType._value2member_map_:
        console.print(f"[red]Error:[/red] Invalid entity type: {entity}")
        console.print(f"Valid types: {', '.join(e.value for e in EntityType)}")
        raise typer.Exit(1)

    with get_db() as db:
        repo = RuleRepository(db)
        rules = repo.get_all(entity_type) if all_rules else repo.get_active(entity_type)

        if not rules:
            console.print("[yellow]No rules found.[/yellow] Use 'add' to create some.")
            return

        table = Table(title="Business Rules")
        table.add_column("Name", style="cyan")
        table.add_column("Entity")
        table.add_column("Trigger")
        table.add_column("Priority", justify="right")
        table.add_column("Status")
        table.add_column("Matches", justify="right")
        table.add_column("Last Match")

        status_styles = {"ACTIVE": "green", "INACTIVE": "red", "DRAFT": "yellow"}
        for r in rules:
            style = status_styles.get(r.status, "white")
            last_str = (
                r.last_execution.strftime("%Y-%m-%d %H:%M")
                if r.last_execution
                else "[dim]Never[/dim]"
            )
            table.add_row(
                r.name,
                r.entity_type,
                r.trigger_type,
                str(r.priority),
                f"[{style}]{r.status}[/{style}]",
                str(r.execution_count),
                last_str,
            )

        console.print(table)
        console.print(f"\n[dim]Total rules: {len(rules)}[/dim]")


@app.command("validate")
def validate_rule_file(
    path: Path = typer.Argument(..., help="JSON file with the rule definition"),
):
    """Check a rule definition without storing it."""
    data = load_json_file(path)
    errors = validate_rule(data)

    if errors:
        console.print(f"[red]Invalid rule[/red] ({len(errors)} error(s)):")
        print_errors(errors)
        raise typer.Exit(1)

    console.print(f"[green]Valid:[/green] {data.get('name')}")


def _set_status(name: str, activate: bool) -> None:
    with get_db() as db:
        repo = RuleRepository(db)
        rule = repo.get_by_name(name)

        if not rule:
            console.print(f"[red]Error:[/red] Rule '{name}' not found.")
            raise typer.Exit(1)

        target = "ACTIVE" if activate else "INACTIVE"
        if rule.status == target:
            console.print(f"[yellow]Rule '{name}' is already {target.lower()}.[/yellow]")
            return

        if activate:
            repo.activate(rule.id)
            console.print(f"[green]Activated:[/green] {name}")
        else:
            repo.deactivate(rule.id)
            console.print(f"[yellow]Deactivated:[/yellow] {name}")


@app.command("activate")
def activate_rule(
    name: str = typer.Argument(..., help="Rule name to activate"),
):
    """Make a rule take part in processing."""
    _set_status(name, activate=True)


@app.command("deactivate")
def deactivate_rule(
    name: str = typer.Argument(..., help="Rule name to deactivate"),
):
    """Stop a rule from being processed without removing it."""
    _set_status(name, activate=False)


@app.command("duplicate")
def duplicate_rule(
    name: str = typer.Argument(..., help="Rule to copy"),
    new_name: str = typer.Argument(..., help="Name for the copy"),
):
    """Copy a rule under a new name (the copy starts as DRAFT)."""
    with get_db() as db:
        repo = RuleRepository(db)
        rule = repo.get_by_name(name)

        if not rule:
            console.print(f"[red]Error:[/red] Rule '{name}' not found.")
            raise typer.Exit(1)

        if repo.get_by_name(new_name):
            console.print(f"[yellow]Warning:[/yellow] Rule '{new_name}' already exists.")
            raise typer.Exit(1)

        try:
            copy = repo.duplicate(rule.id, new_name)
        except RuleValidationError as e:
            console.print("[red]Error:[/red] Copy is invalid:")
            print_errors(e.errors)
            raise typer.Exit(1)

        console.print(f"[green]Duplicated:[/green] {name} -> {copy.name} [dim]({copy.status})[/dim]")


@app.command("remove")
def remove_rule(
    name: str = typer.Argument(..., help="Rule name to remove"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Remove a rule and its execution history."""
    with get_db() as db:
        repo = RuleRepository(db)
        rule = repo.get_by_name(name)

        if not rule:
            console.print(f"[red]Error:[/red] Rule '{name}' not found.")
            raise typer.Exit(1)

        if not force:
            confirm = typer.confirm(f"Remove rule '{name}'?")
            if not confirm:
                console.print("[yellow]Cancelled.[/yellow]")
                raise typer.Exit(0)

        repo.delete(rule.id)
        console.print(f"[green]Removed:[/green] {name}")


@app.command("operators")
def list_operators():
    """List condition operators and action types."""
    console.print("[bold]Condition Operators[/bold]\n")
    for operator in ConditionOperator:
        console.print(f"[cyan]{operator.value}[/cyan]")
        console.print(f"  {operator.description()}\n")

    console.print("[bold]Action Types[/bold]\n")
    for action_type in ActionType:
        note = " [dim](target required)[/dim]" if action_type.requires_target else ""
        console.print(f"[cyan]{action_type.value}[/cyan]{note}")
