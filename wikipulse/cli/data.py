# ==============================================================================
# Data Commands
# ==============================================================================
"""
Data management commands for the wikipulse CLI.

Commands for exporting, importing and resetting the analytics stores.
"""

import json
from pathlib import Path
from typing import Annotated, Optional

import typer

from wikipulse.cli.shared import C, I, get_tracking, print_json


# ==============================================================================
# Commands
# ==============================================================================


def data_export(
    output_file: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write the export to a file instead of stdout"),
    ] = None,
) -> None:
    """Export every store as one JSON document.

    Examples:
        wikipulse data export                   # Print to stdout
        wikipulse data export -o backup.json    # Write to a file
    """
    tracking = get_tracking()
    try:
        snapshot = tracking.reporter.export_analytics()
    finally:
        tracking.close()

    if output_file is None:
        print_json(snapshot)
        return

    try:
        output_file.write_text(json.dumps(snapshot, indent=2))
    except OSError as e:
        print(f"{C.BRIGHT_RED}{I.CROSS} Failed to write {output_file}: {e}{C.RESET}")
        raise typer.Exit(1)
    print(
        f"{C.BRIGHT_GREEN}{I.CHECK} Exported {C.WHITE}{len(snapshot['events']):,}{C.RESET}"
        f"{C.BRIGHT_GREEN} events to {output_file}{C.RESET}"
    )


def data_import(
    input_file: Annotated[Path, typer.Argument(help="File written by 'wikipulse data export'")],
    confirm: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")] = False,
) -> None:
    """Replace the stores with a previous export.

    The document is validated before anything is written.

    Examples:
        wikipulse data import backup.json
        wikipulse data import backup.json -y
    """
    try:
        payload = json.loads(input_file.read_text())
    except OSError as e:
        print(f"{C.BRIGHT_RED}{I.CROSS} Cannot read {input_file}: {e}{C.RESET}")
        raise typer.Exit(1)
    except json.JSONDecodeError as e:
        print(f"{C.BRIGHT_RED}{I.CROSS} {input_file} is not valid JSON{C.RESET}")
        print(f"    {C.DIM}{e}{C.RESET}")
        raise typer.Exit(1)

    if not isinstance(payload, dict):
        print(f"{C.BRIGHT_RED}{I.CROSS} {input_file} is not an analytics export{C.RESET}")
        raise typer.Exit(1)

    if not confirm:
        typer.confirm("This will REPLACE all stored analytics data. Are you sure?", abort=True)
        print()

    tracking = get_tracking()
    try:
        imported = tracking.reporter.import_analytics(payload)
    finally:
        tracking.close()

    if not imported:
        print(f"{C.BRIGHT_RED}{I.CROSS} Import failed, see log for details{C.RESET}")
        raise typer.Exit(1)
    print(f"{C.BRIGHT_GREEN}{I.CHECK} Imported {input_file}{C.RESET}")


def data_reset(
    confirm: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")] = False,
) -> None:
    """Delete all events, sessions, searches and content counters.

    Consent and the device user id are kept.

    Examples:
        wikipulse data reset       # With confirmation prompt
        wikipulse data reset -y    # Skip confirmation
    """
    if not confirm:
        typer.confirm("This will DELETE all stored analytics data. Are you sure?", abort=True)
        print()

    tracking = get_tracking()
    try:
        cleared = tracking.reporter.clear_analytics()
    finally:
        tracking.close()

    if not cleared:
        print(f"{C.BRIGHT_RED}{I.CROSS} Failed to clear some stores{C.RESET}")
        raise typer.Exit(1)
    print(f"{C.BRIGHT_GREEN}{I.CHECK} All analytics data reset{C.RESET}")
