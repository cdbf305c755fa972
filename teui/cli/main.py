# -*- coding: utf-8 -*-
"""
TEUI CLI
====================

Run a full calculation pass, inspect both scenarios, export the
documentation dependency graph and produce a QC report.

Examples:
    # Defaults, Target display
    teui run

    # Import values, then override a field and show Reference
    teui run --input building.yaml --set d_116="No Cooling" --mode reference

    # Dependency graph for the Reference scenario
    teui graph --mode reference --output graph.json

Author: TEUI Calculator Team
Date: October 2026
Status: Production Ready
"""

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
import yaml
from rich import box
from rich.console import Console
from rich.table import Table

from teui import __version__
from teui.exceptions import TEUIException
from teui.state.config import get_config
from teui.state.models import REFERENCE_PREFIX, GraphMode, Scenario, ValueSource
from teui.state.setup import CalculatorService

app = typer.Typer(
    name="teui",
    help="TEUI: dual-scenario building energy calculator",
    no_args_is_help=True,
    add_completion=False,
)
console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
    else:
        logging.basicConfig(level=logging.WARNING)


def _load_values(input_file: str) -> Dict[str, Any]:
    """Read a flat ``{store_key: value}`` mapping from JSON or YAML."""
    input_path = Path(input_file)
    if not input_path.exists():
        console.print(f"[red]Input file not found: {input_file}[/red]")
        raise typer.Exit(1)

    if input_path.suffix == ".json":
        with open(input_path, encoding="utf-8") as f:
            data = json.load(f)
    elif input_path.suffix in [".yaml", ".yml"]:
        with open(input_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    else:
        console.print(f"[red]Unsupported input format: {input_path.suffix}[/red]")
        console.print("[yellow]Use .json or .yaml files[/yellow]")
        raise typer.Exit(1)

    if not isinstance(data, dict):
        console.print("[red]Input must be a mapping of field keys to values[/red]")
        raise typer.Exit(1)
    return data


def _parse_assignment(assignment: str):
    if "=" not in assignment:
        console.print(f"[red]Expected FIELD=VALUE, got {assignment!r}[/red]")
        raise typer.Exit(1)
    key, value = assignment.split("=", 1)
    return key.strip(), value.strip()


def _build_service(qc: bool = False, mirror_target: bool = False) -> CalculatorService:
    base = get_config()
    config = replace(
        base,
        qc_enabled=qc or base.qc_enabled,
        qc_mirror_target=mirror_target or base.qc_mirror_target,
        qc_watch_fields=list(base.qc_watch_fields),
    )
    return CalculatorService(config=config)


def _scenario_table(service: CalculatorService, mode: Scenario) -> Table:
    values = service.snapshot()
    base_ids = sorted({k[len(REFERENCE_PREFIX):] if k.startswith(REFERENCE_PREFIX) else k
                       for k in values})

    table = Table(
        title=f"TEUI field store ({mode.value} displayed)",
        show_header=True,
        header_style="bold magenta",
        box=box.SIMPLE,
    )
    table.add_column("Field", style="cyan")
    table.add_column("Target", justify="right",
                     style="bold green" if mode is Scenario.TARGET else "dim")
    table.add_column("Reference", justify="right",
                     style="bold green" if mode is Scenario.REFERENCE else "dim")
    table.add_column("Source", style="yellow")

    for base_id in base_ids:
        ref_key = f"{REFERENCE_PREFIX}{base_id}"
        record = service.store.get_record(ref_key if mode is Scenario.REFERENCE else base_id)
        table.add_row(
            base_id,
            values.get(base_id, ""),
            values.get(ref_key, ""),
            record.source.value if record is not None else "",
        )
    return table


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.callback(invoke_without_command=True)
def _root(
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
):
    """
    TEUI - Target and Reference building energy calculations
    """
    if version:
        console.print(f"TEUI v{__version__}")
        raise typer.Exit(0)


@app.command()
def run(
    input_file: Optional[str] = typer.Option(
        None, "--input", "-i", help="Values to import (JSON/YAML, ref_ keys for Reference)"
    ),
    assignments: List[str] = typer.Option(
        [], "--set", "-s", help="FIELD=VALUE edit; prefix ref_ for Reference"
    ),
    mode: str = typer.Option("target", "--mode", "-m", help="Displayed scenario"),
    as_json: bool = typer.Option(False, "--json", help="Print the store as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
):
    """Run a full calculation pass and show both scenarios"""
    _configure_logging(verbose)
    service = _build_service()
    try:
        service.startup()
        if input_file:
            count = service.import_values(_load_values(input_file))
            if not as_json:
                console.print(f"[green][OK][/green] Imported {count} values from {input_file}")

        for assignment in assignments:
            key, value = _parse_assignment(assignment)
            scenario = Scenario.TARGET
            if key.startswith(REFERENCE_PREFIX):
                key, scenario = key[len(REFERENCE_PREFIX):], Scenario.REFERENCE
            module = service.field_owner(key)
            service.set_input(module.module_id, key, value, scenario)

        service.switch_mode(mode)
        display = service.modules[0].modes.current_mode if service.modules else Scenario.TARGET
    except KeyError as e:
        console.print(f"[red]Error: {e.args[0]}[/red]")
        raise typer.Exit(1)
    except TEUIException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)
    finally:
        service.shutdown()

    if as_json:
        console.print_json(json.dumps(service.snapshot(), sort_keys=True))
        return

    console.print(_scenario_table(service, display))
    for error in service.calculator.errors:
        console.print(f"[yellow][WARN][/yellow] {error}")
    user_edits = sum(
        1 for k in service.store.get_all_keys()
        if service.store.get_record(k).source is ValueSource.USER_MODIFIED
    )
    console.print(f"[blue][INFO][/blue] {len(service.store)} keys, {user_edits} user edits")


@app.command()
def graph(
    mode: str = typer.Option("both", "--mode", "-m", help="target, reference or both"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write JSON here"),
):
    """Export the documentation dependency graph"""
    try:
        graph_mode = GraphMode(mode.lower())
    except ValueError:
        console.print(f"[red]Unknown graph mode: {mode}[/red]")
        raise typer.Exit(1)

    service = _build_service()
    service.startup()
    payload = service.dependency_graph(graph_mode)
    payload["cycles"] = service.registry.detect_cycles()
    service.shutdown()

    text = json.dumps(payload, indent=2)
    if output:
        Path(output).write_text(text, encoding="utf-8")
        console.print(
            f"[green][OK][/green] Wrote {len(payload['nodes'])} nodes and "
            f"{len(payload['links'])} links to {output}"
        )
    else:
        console.print_json(text)


@app.command()
def qc(
    input_file: Optional[str] = typer.Option(
        None, "--input", "-i", help="Values to import before checking"
    ),
    mirror_target: bool = typer.Option(
        False, "--mirror-target", help="Expect Reference to mirror Target geometry/climate"
    ),
    strict: bool = typer.Option(False, "--strict", help="Exit 1 on any error violation"),
):
    """Run the QC observer over a full calculation pass"""
    service = _build_service(qc=True, mirror_target=mirror_target)
    try:
        service.startup()
        if input_file:
            service.import_values(_load_values(input_file))
        report = service.qc_report()
    except TEUIException as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)
    finally:
        service.shutdown()

    summary = report["summary"]
    table = Table(title="QC violations", show_header=True, header_style="bold magenta")
    table.add_column("Severity", style="red")
    table.add_column("Type", style="cyan")
    table.add_column("Key", style="yellow")
    table.add_column("Message")
    for violation in report["violations"]:
        table.add_row(
            violation["severity"], violation["violation_type"],
            violation["key"], violation["message"],
        )
    console.print(table)
    console.print(f"[blue][INFO][/blue] {summary['total']} violations")
    for violation_type, count in sorted(summary["by_type"].items()):
        console.print(f"  {violation_type}: {count}")

    if strict and summary["by_severity"].get("error"):
        raise typer.Exit(1)


@app.command()
def version():
    """Show TEUI version"""
    console.print(f"[bold green]TEUI v{__version__}[/bold green]")


def main() -> None:
    app()


if __name__ == "__main__":
    main()


__all__ = [
    "app",
    "main",
]
