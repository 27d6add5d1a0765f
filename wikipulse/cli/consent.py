# ==============================================================================
# Consent Commands
# ==============================================================================
"""
Tracking consent commands for the wikipulse CLI.

While consent is revoked every track call is a no-op.
"""

from typing import Annotated

import typer

from wikipulse.cli.shared import C, I, get_tracking, print_json


def consent_show(
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output consent state as JSON")
    ] = False,
) -> None:
    """Show the current consent state."""
    tracking = get_tracking()
    try:
        consent = tracking.recorder.get_consent()
    finally:
        tracking.close()

    if json_output:
        print_json(consent.model_dump(mode="json"))
        return

    if consent.granted:
        print(f"  {C.BRIGHT_GREEN}{I.CHECK}{C.RESET} Tracking allowed")
    else:
        print(f"  {C.BRIGHT_YELLOW}{I.WARN}{C.RESET} Tracking revoked")
    if consent.granted_at:
        print(f"    Granted:  {C.DIM}{consent.granted_at.isoformat()}{C.RESET}")
    if consent.revoked_at:
        print(f"    Revoked:  {C.DIM}{consent.revoked_at.isoformat()}{C.RESET}")


def _set_consent(granted: bool) -> None:
    tracking = get_tracking()
    try:
        saved = tracking.recorder.set_consent(granted)
    finally:
        tracking.close()

    if not saved:
        print(f"{C.BRIGHT_RED}{I.CROSS} Failed to save consent{C.RESET}")
        raise typer.Exit(1)
    state = "granted" if granted else "revoked"
    print(f"  {C.BRIGHT_GREEN}{I.CHECK}{C.RESET} Consent {state}")


def consent_grant() -> None:
    """Allow event tracking."""
    _set_consent(True)


def consent_revoke() -> None:
    """Stop event tracking. Stored data is kept."""
    _set_consent(False)
