# ==============================================================================
# Wikipulse CLI
# ==============================================================================
"""
Command-line interface for the wikipulse telemetry engine.

Usage:
    wikipulse --help
    wikipulse status
    wikipulse config show
    wikipulse track event article_view -c python-basics -t article
    wikipulse session show
    wikipulse session end
    wikipulse consent revoke
    wikipulse analytics report -t last_30_days
    wikipulse analytics funnel
    wikipulse data export -o backup.json
    wikipulse data reset -y
"""

import logging

# ==============================================================================
# App Configuration
# ==============================================================================
# Set consistent terminal width for help output formatting
import os

import typer

from wikipulse.utils.config import get_settings

if "COLUMNS" not in os.environ:
    os.environ["COLUMNS"] = "115"

app = typer.Typer(
    name="wikipulse",
    help="Client-side learning analytics CLI",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@app.callback()
def configure_logging() -> None:
    """Client-side learning analytics CLI."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.effective_log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("redis").setLevel(logging.WARNING)


track_app = typer.Typer(
    help="Record events",
    no_args_is_help=True,
)
app.add_typer(track_app, name="track")

# Register track commands from cli.track module
from wikipulse.cli.track import track_event, track_impression

track_app.command("event")(track_event)
track_app.command("impression")(track_impression)

session_app = typer.Typer(
    help="Session lifecycle",
    no_args_is_help=True,
)
app.add_typer(session_app, name="session")

from wikipulse.cli.session import session_end, session_show

session_app.command("show")(session_show)
session_app.command("end")(session_end)

consent_app = typer.Typer(
    help="Tracking consent",
    no_args_is_help=True,
)
app.add_typer(consent_app, name="consent")

from wikipulse.cli.consent import consent_grant, consent_revoke, consent_show

consent_app.command("show")(consent_show)
consent_app.command("grant")(consent_grant)
consent_app.command("revoke")(consent_revoke)

analytics_app = typer.Typer(
    help="Metrics, funnels and reports",
    no_args_is_help=True,
)
app.add_typer(analytics_app, name="analytics")

# Register analytics commands from cli.analytics module
from wikipulse.cli.analytics import (
    analytics_funnel,
    analytics_realtime,
    analytics_report,
    analytics_timeseries,
    analytics_top,
    analytics_user,
)

analytics_app.command("report")(analytics_report)
analytics_app.command("user")(analytics_user)
analytics_app.command("funnel")(analytics_funnel)
analytics_app.command("timeseries")(analytics_timeseries)
analytics_app.command("top")(analytics_top)
analytics_app.command("realtime")(analytics_realtime)

data_app = typer.Typer(
    help="Data management operations",
    no_args_is_help=True,
)
app.add_typer(data_app, name="data")

# Register data commands from cli.data module
from wikipulse.cli.data import data_export, data_import, data_reset

data_app.command("export")(data_export)
data_app.command("import")(data_import)
data_app.command("reset")(data_reset)

config_app = typer.Typer(
    help="Configuration management",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")

# Register config commands from cli.config module
from wikipulse.cli.config import config_show

config_app.command("show")(config_show)


# Status command is imported from wikipulse.cli.status
from wikipulse.cli.status import show_status

app.command("status")(show_status)


# ==============================================================================
# Entry Point
# ==============================================================================


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
