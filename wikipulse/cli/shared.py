# ==============================================================================
# Shared Utilities for CLI Commands
# ==============================================================================
"""
Shared utilities, constants, and helper functions used across CLI command modules.

This module provides:
- ANSI color codes and box-drawing characters
- Box drawing helpers for formatted output
- Construction of the tracking context from settings
- Parsing of enum-valued options
"""

import json
import logging
import re
from enum import Enum
from typing import Any, Type, TypeVar

import typer

from wikipulse.tracking import Tracking, build_tracking
from wikipulse.utils.config import get_settings

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

# ==============================================================================
# Constants
# ==============================================================================

# Box drawing width (unified for all commands)
BOX_WIDTH = 68


# ==============================================================================
# ANSI Colors and Box Drawing
# ==============================================================================


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    # Colors
    CYAN = "\033[36m"
    WHITE = "\033[37m"

    # Bright colors
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"


class Box:
    """Unicode box-drawing characters."""

    # Single line
    H = "─"  # horizontal
    V = "│"  # vertical
    TL = "┌"  # top-left
    TR = "┐"  # top-right
    BL = "└"  # bottom-left
    BR = "┘"  # bottom-right
    LT = "├"  # left-tee
    RT = "┤"  # right-tee


class Icons:
    """Status icons using Unicode symbols."""

    CHECK = "✓"
    CROSS = "✗"
    WARN = "!"
    CIRCLE = "●"
    BULLET = "•"
    ARROW = "→"
    UP = "▲"
    DOWN = "▼"
    STOP = "□"


# Module-level aliases for convenience
C, B, I = Colors, Box, Icons


# ==============================================================================
# Tracking Context
# ==============================================================================


def get_tracking() -> Tracking:
    """
    Build the tracking context for CLI commands, exiting if storage is unusable.

    Raises:
        typer.Exit: If the configured backend does not respond
    """
    settings = get_settings()
    tracking = build_tracking(settings)
    if not tracking.store.ping():
        backend = settings.storage.backend
        print(f"{C.BRIGHT_RED}{I.CROSS} Storage backend '{backend}' is not available{C.RESET}")
        raise typer.Exit(1)
    return tracking


def parse_choice(value: str, enum_type: Type[E], option: str) -> E:
    """
    Parse an option value into an enum member.

    Raises:
        typer.BadParameter: If the value is not a member
    """
    try:
        return enum_type(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_type)
        raise typer.BadParameter(f"Invalid {option}: '{value}'. Choose from: {choices}")


def print_json(data: Any) -> None:
    """Print JSON output for scripting."""
    print(json.dumps(data, indent=2))


# ==============================================================================
# Box Drawing Helpers
# ==============================================================================

_ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*m")


def _visible_len(s: str) -> int:
    """Calculate visible length of string, ignoring ANSI escape codes."""
    return len(_ANSI_ESCAPE_PATTERN.sub("", s))


def _box_header(title: str, width: int = BOX_WIDTH) -> str:
    """Create a single-line box header."""
    inner_width = width - 2
    title_padded = f" {title} "
    left_bar = (inner_width - len(title_padded)) // 2
    right_bar = inner_width - left_bar - len(title_padded)
    return (
        f"{C.CYAN}{B.TL}{B.H * left_bar}{C.BOLD}{C.WHITE}{title_padded}"
        f"{C.RESET}{C.CYAN}{B.H * right_bar}{B.TR}{C.RESET}"
    )


def _section_header_plain(title: str, width: int = BOX_WIDTH) -> str:
    """Create a section header without icon."""
    inner_width = width - 2
    title_padded = f" {title} "
    bar_len = inner_width - len(title_padded) - 1  # -1 for the first H after LT
    return (
        f"{C.CYAN}{B.LT}{B.H}{C.BOLD}{title_padded}{C.RESET}{C.CYAN}{B.H * bar_len}{B.RT}{C.RESET}"
    )


def _box_line(content: str, width: int = BOX_WIDTH) -> str:
    """Create a line inside the box with proper padding to right border."""
    inner_width = width - 2
    padding = max(0, inner_width - _visible_len(content))
    return f"{C.CYAN}{B.V}{C.RESET}{content}{' ' * padding}{C.CYAN}{B.V}{C.RESET}"


def _empty_line(width: int = BOX_WIDTH) -> str:
    """Create an empty line inside the box."""
    return f"{C.CYAN}{B.V}{' ' * (width - 2)}{B.V}{C.RESET}"


def _box_bottom(width: int = BOX_WIDTH) -> str:
    """Create a box bottom border."""
    return f"{C.CYAN}{B.BL}{B.H * (width - 2)}{B.BR}{C.RESET}"


def _kv_line(label: str, value: Any, width: int = BOX_WIDTH, label_width: int = 28) -> str:
    """Create a label/value line inside the box."""
    return _box_line(f"  {label:<{label_width}}{C.WHITE}{value}{C.RESET}", width)
