# ==============================================================================
# Identifier Generation
# ==============================================================================
"""
Record identifiers of the form `<prefix>_<epoch millis>_<random suffix>`.

The millisecond component keeps identifiers roughly time-ordered when read
by a human; the random suffix keeps them unique within a store.
"""

import secrets
from datetime import datetime

from wikipulse.core.models import utcnow


def generate_id(prefix: str, now: datetime | None = None) -> str:
    """
    Generate a record identifier.

    Args:
        prefix: Record kind, e.g. "event", "session", "user"
        now: Timestamp for the time component (default: current UTC time)

    Returns:
        Identifier string
    """
    moment = now or utcnow()
    return f"{prefix}_{int(moment.timestamp() * 1000)}_{secrets.token_hex(5)}"
