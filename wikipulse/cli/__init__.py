# ==============================================================================
# CLI Commands Module
# ==============================================================================
"""
CLI commands for wikipulse.

Commands are organized into separate modules for maintainability:
- shared.py: Common utilities, constants, and helpers
- status.py: Status command showing storage health
- track.py, session.py, consent.py: Recording side
- analytics.py, data.py: Reporting and data management
"""

from wikipulse.cli.shared import (
    # Constants
    BOX_WIDTH,
    # Classes
    Box,
    Colors,
    Icons,
    # Aliases
    B,
    C,
    I,
    # Box drawing helpers (private)
    _box_bottom,
    _box_header,
    _box_line,
    _empty_line,
    _kv_line,
    _section_header_plain,
    _visible_len,
    # Tracking helpers
    get_tracking,
    parse_choice,
    print_json,
)

__all__ = [
    # Constants
    "BOX_WIDTH",
    # Classes
    "Box",
    "Colors",
    "Icons",
    # Aliases
    "B",
    "C",
    "I",
    # Box drawing helpers (private - kept for internal use)
    "_box_bottom",
    "_box_header",
    "_box_line",
    "_empty_line",
    "_kv_line",
    "_section_header_plain",
    "_visible_len",
    # Tracking helpers
    "get_tracking",
    "parse_choice",
    "print_json",
]
