# ==============================================================================
# Status Command
# ==============================================================================
"""
Status command for the wikipulse CLI.

Displays storage health, store sizes, the current session and consent in
either formatted box output or JSON format for programmatic consumption.
"""

import json as json_module
from typing import Any

import typer

from wikipulse.cli.shared import (
    BOX_WIDTH,
    C,
    I,
    _box_bottom,
    _box_header,
    _box_line,
    _empty_line,
    _section_header_plain,
)
from wikipulse.infrastructure.cache.valkey import check_valkey_connection
from wikipulse.tracking import build_tracking
from wikipulse.utils.config import get_settings


# ==============================================================================
# Data Collection
# ==============================================================================


def _collect_status_data() -> dict[str, Any]:
    """Collect storage and tracking status."""
    settings = get_settings()
    backend = settings.storage.backend

    if backend == "valkey":
        reachable = check_valkey_connection()
        location = f"{settings.valkey.host}:{settings.valkey.port}/{settings.valkey.db}"
    else:
        location = str(settings.storage.data_dir_path)
        reachable = None

    data: dict[str, Any] = {
        "storage": {
            "backend": backend,
            "location": location,
            "key_prefix": settings.analytics.key_prefix,
            "status": "unknown",
        },
        "stores": None,
        "current_session": None,
        "consent": None,
        "user_id": None,
    }

    tracking = build_tracking(settings)
    try:
        if reachable is None:
            reachable = tracking.store.ping()
        data["storage"]["status"] = "connected" if reachable else "unreachable"
        if not reachable:
            return data

        store = tracking.store
        analytics = settings.analytics
        data["stores"] = {
            "events": {"count": len(store.events), "cap": analytics.max_events},
            "sessions": {"count": len(store.sessions), "cap": analytics.max_sessions},
            "searches": {"count": len(store.searches), "cap": analytics.max_searches},
            "content_metrics": {"count": len(store.content_metrics), "cap": None},
            "recommendations": {"count": len(store.recommendations), "cap": None},
        }

        session = tracking.sessions.current_session()
        if session is not None:
            data["current_session"] = {
                "session_id": session.session_id,
                "user_id": session.user_id,
                "start_time": session.start_time.isoformat(),
                "page_views": session.page_views,
                "exit_page": session.exit_page,
            }
        data["consent"] = tracking.recorder.get_consent().model_dump(mode="json")
        data["user_id"] = store.user_id.load()
    finally:
        tracking.close()
    return data


# ==============================================================================
# Display Functions
# ==============================================================================


def _display_status(data: dict[str, Any]) -> None:
    """Display status in formatted box output."""
    W = BOX_WIDTH

    print()
    print(_box_header("WIKIPULSE STATUS", W))
    print(_empty_line(W))

    # ── Storage ──────────────────────────────────────────
    print(_section_header_plain("Storage", W))
    print(_empty_line(W))

    storage = data["storage"]
    name = f"{C.BOLD}{storage['backend'].capitalize()}{C.RESET}"
    if storage["status"] == "connected":
        print(_box_line(f"  {C.BRIGHT_GREEN}{I.CHECK}{C.RESET} {name}", W))
    else:
        print(_box_line(f"  {C.BRIGHT_RED}{I.CROSS}{C.RESET} {name} {C.DIM}(unreachable){C.RESET}", W))
    print(_box_line(f"    Location: {C.WHITE}{storage['location']}{C.RESET}", W))
    print(_box_line(f"    Prefix:   {C.WHITE}{storage['key_prefix']}{C.RESET}", W))
    print(_empty_line(W))

    if data["stores"] is None:
        print(_box_bottom(W))
        print()
        return

    # ── Stores ──────────────────────────────────────────
    print(_section_header_plain("Stores", W))
    print(_empty_line(W))
    for store_name, info in data["stores"].items():
        label = store_name.replace("_", " ").capitalize()
        count = f"{info['count']:,}"
        cap = f" / {info['cap']:,}" if info["cap"] else ""
        print(_box_line(f"    {label + ':':<18}{C.WHITE}{count}{C.RESET}{C.DIM}{cap}{C.RESET}", W))
    print(_empty_line(W))

    # ── Session ──────────────────────────────────────────
    print(_section_header_plain("Session", W))
    print(_empty_line(W))
    session = data["current_session"]
    if session:
        print(_box_line(f"  {C.BRIGHT_GREEN}{I.CHECK}{C.RESET} Active", W))
        print(_box_line(f"    ID:       {C.WHITE}{session['session_id']}{C.RESET}", W))
        print(_box_line(f"    User:     {C.WHITE}{session['user_id']}{C.RESET}", W))
        print(_box_line(f"    Since:    {C.DIM}{session['start_time']}{C.RESET}", W))
        print(_box_line(f"    Pages:    {C.WHITE}{session['page_views']}{C.RESET}", W))
    else:
        print(_box_line(f"  {C.DIM}{I.STOP}{C.RESET} No active session", W))
    print(_empty_line(W))

    # ── Consent ──────────────────────────────────────────
    print(_section_header_plain("Consent", W))
    print(_empty_line(W))
    if data["consent"]["granted"]:
        print(_box_line(f"  {C.BRIGHT_GREEN}{I.CHECK}{C.RESET} Tracking allowed", W))
    else:
        print(_box_line(f"  {C.BRIGHT_YELLOW}{I.WARN}{C.RESET} Tracking revoked", W))
    if data["user_id"]:
        print(_box_line(f"    User ID:  {C.WHITE}{data['user_id']}{C.RESET}", W))

    print(_empty_line(W))
    print(_box_bottom(W))
    print()


# ==============================================================================
# Command
# ==============================================================================


def show_status(
    json_output: bool = typer.Option(False, "--json", help="Output status as JSON"),
) -> None:
    """Show storage health, store sizes and the current session."""
    data = _collect_status_data()

    if json_output:
        print(json_module.dumps(data, indent=2))
    else:
        _display_status(data)

    if data["storage"]["status"] != "connected":
        raise typer.Exit(1)
