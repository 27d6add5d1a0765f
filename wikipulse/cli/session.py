# ==============================================================================
# Session Commands
# ==============================================================================
"""
Session lifecycle commands for the wikipulse CLI.
"""

from typing import Annotated

import typer

from wikipulse.cli.shared import (
    BOX_WIDTH,
    C,
    I,
    _box_bottom,
    _box_header,
    _empty_line,
    _kv_line,
    _section_header_plain,
    get_tracking,
    print_json,
)
from wikipulse.core.models import Session


def _display_session(session: Session) -> None:
    W = BOX_WIDTH
    device = session.device_info

    print()
    print(_box_header("CURRENT SESSION", W))
    print(_empty_line(W))
    print(_kv_line("Session ID", session.session_id, W, 16))
    print(_kv_line("User", session.user_id, W, 16))
    print(_kv_line("Started", session.start_time.isoformat(), W, 16))
    if session.last_activity:
        print(_kv_line("Last activity", session.last_activity.isoformat(), W, 16))
    print(_kv_line("Page views", session.page_views, W, 16))
    print(_kv_line("Exit page", session.exit_page or "-", W, 16))
    print(_empty_line(W))
    print(_section_header_plain("Device", W))
    print(_empty_line(W))
    print(_kv_line("Type", device.device_type.value, W, 16))
    print(_kv_line("Browser", device.browser, W, 16))
    print(_kv_line("Viewport", device.viewport_size or "-", W, 16))
    print(_kv_line("Touch", "yes" if device.is_touch_device else "no", W, 16))
    print(_empty_line(W))
    print(_box_bottom(W))
    print()


# ==============================================================================
# Commands
# ==============================================================================


def session_show(
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output the session as JSON")
    ] = False,
) -> None:
    """Show the active session, if any."""
    tracking = get_tracking()
    try:
        session = tracking.sessions.current_session()
    finally:
        tracking.close()

    if json_output:
        print_json(session.model_dump(mode="json") if session else None)
        return

    if session is None:
        print(f"  {C.DIM}{I.STOP}{C.RESET} No active session")
        return
    _display_session(session)


def session_end() -> None:
    """End the active session and record a session_end event."""
    tracking = get_tracking()
    try:
        event = tracking.recorder.end_session()
    finally:
        tracking.close()

    if event is None:
        print(f"{C.BRIGHT_YELLOW}{I.WARN} Consent revoked, nothing recorded{C.RESET}")
        raise typer.Exit(1)

    if event.session_id is None:
        print(f"  {C.DIM}{I.STOP}{C.RESET} No active session, recorded session_end only")
    else:
        print(f"  {C.BRIGHT_GREEN}{I.CHECK}{C.RESET} Ended session {C.BOLD}{event.session_id}{C.RESET}")
