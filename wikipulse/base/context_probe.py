# ==============================================================================
# Context Probe Abstract Base Class
# ==============================================================================
"""
Abstract interface for reading the environment an event is recorded in.

The recorder never inspects the host directly; it asks a probe for the
device snapshot (captured once per session) and for the page context
attached to every event.

Implementations: StaticContextProbe (settings- or argument-driven)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from wikipulse.core.models import DeviceInfo, Viewport


@dataclass
class PageContext:
    """Environment details attached to each event.

    Attributes:
        path: Path of the current page (e.g. "/articles/python-basics")
        url: Full URL of the current page, if known
        referrer: Referring URL, if known
        user_agent: User agent string, if known
        viewport: Current viewport size, if known
    """

    path: str = "/"
    url: Optional[str] = None
    referrer: Optional[str] = None
    user_agent: Optional[str] = None
    viewport: Optional[Viewport] = None


class ContextProbe(ABC):
    """
    Read-only source of device and page context.

    Probes must not fail: when a value is unavailable they report a
    fallback ("unknown", empty string, None).
    """

    @abstractmethod
    def device_info(self) -> DeviceInfo:
        """
        Capture a device snapshot.

        Returns:
            DeviceInfo for the current device
        """
        ...

    @abstractmethod
    def page_context(self) -> PageContext:
        """
        Describe the page the user is currently on.

        Returns:
            PageContext with whatever details are available
        """
        ...
