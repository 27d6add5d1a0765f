# ==============================================================================
# Config Commands
# ==============================================================================
"""
Configuration commands for the wikipulse CLI.

Shows the settings resolved from environment variables and .env files.
"""

import json
from typing import Annotated, Optional

import typer

from wikipulse.cli.shared import C
from wikipulse.utils.config import get_settings


def _dimensions(width: Optional[int], height: Optional[int]) -> str:
    if width is None or height is None:
        return "-"
    return f"{width}x{height}"


# ==============================================================================
# Commands
# ==============================================================================


def config_show(
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output configuration as JSON")
    ] = False,
) -> None:
    """Display current configuration (includes secrets in JSON mode)."""
    settings = get_settings()
    storage = settings.storage
    valkey = settings.valkey
    analytics = settings.analytics
    device = settings.device

    # JSON output mode
    if json_output:
        config = {
            "storage": {
                "backend": storage.backend,
                "data_dir": str(storage.data_dir_path),
            },
            "valkey": {
                "host": valkey.host,
                "port": valkey.port,
                "db": valkey.db,
                "ssl_enabled": valkey.ssl,
                "password": valkey.password,
            },
            "analytics": analytics.model_dump(),
            "device": device.model_dump(),
            "log_level": settings.effective_log_level,
        }
        print(json.dumps(config, indent=2))
        return

    # Human-readable output
    print()
    print(f"{C.BOLD}Configuration{C.RESET}")
    print()

    # Storage
    print(f"{C.CYAN}Storage{C.RESET}")
    print(f"  Backend:    {C.WHITE}{storage.backend}{C.RESET}")
    if storage.backend == "file":
        print(f"  Directory:  {C.WHITE}{storage.data_dir_path}{C.RESET}")
    print()

    # Valkey
    print(f"{C.CYAN}Valkey{C.RESET}")
    print(f"  Host:       {C.WHITE}{valkey.host}{C.RESET}")
    print(f"  Port:       {C.WHITE}{valkey.port}{C.RESET}")
    print(f"  Database:   {C.WHITE}{valkey.db}{C.RESET}")
    valkey_ssl = "enabled" if valkey.ssl else "disabled"
    print(f"  SSL:        {C.WHITE}{valkey_ssl}{C.RESET}")
    print()

    # Analytics
    print(f"{C.CYAN}Analytics{C.RESET}")
    print(f"  Prefix:     {C.WHITE}{analytics.key_prefix}{C.RESET}")
    caps = f"{analytics.max_events:,} events, {analytics.max_sessions:,} sessions, {analytics.max_searches:,} searches"
    print(f"  Caps:       {C.WHITE}{caps}{C.RESET}")
    print(f"  Timeout:    {C.WHITE}{analytics.session_timeout_minutes} minutes{C.RESET}")
    trending = f"{analytics.trending_threshold} views in {analytics.trending_window_hours}h"
    print(f"  Trending:   {C.WHITE}{trending}{C.RESET}")
    print(f"  Timezone:   {C.WHITE}{analytics.timezone}{C.RESET}")
    print()

    # Device
    print(f"{C.CYAN}Device{C.RESET}")
    print(f"  Agent:      {C.WHITE}{device.user_agent}{C.RESET}")
    print(f"  Platform:   {C.WHITE}{device.platform or '-'}{C.RESET}")
    print(f"  Screen:     {C.WHITE}{_dimensions(device.screen_width, device.screen_height)}{C.RESET}")
    print(f"  Viewport:   {C.WHITE}{_dimensions(device.viewport_width, device.viewport_height)}{C.RESET}")
    print()
