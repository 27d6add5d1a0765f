# ==============================================================================
# Device Detection
# ==============================================================================
"""
Device classification from user agent and screen hints.

Provides:
- detect_browser / detect_device_type: user agent classification
- StaticContextProbe: a ContextProbe fed from explicit hints or settings
- get_context_probe: probe configured from DEVICE_* settings

Browser checks run most-specific first (Edge and Chrome both mention
"Chrome"; Chrome and Safari both mention "Safari"). Tablet patterns are
checked before the generic mobile pattern, and the viewport width is used
only when the user agent says nothing.
"""

import re
from typing import Optional

from wikipulse.base.context_probe import ContextProbe, PageContext
from wikipulse.core.models import DeviceInfo, DeviceType, Viewport
from wikipulse.utils.config import DeviceSettings, get_settings

# Viewport breakpoints in CSS pixels
TABLET_BREAKPOINT = 768
DESKTOP_BREAKPOINT = 1024

_TABLET_PATTERN = re.compile(r"iPad|Tablet|Android(?!.*Mobile)", re.IGNORECASE)
_MOBILE_PATTERN = re.compile(
    r"Android|webOS|iPhone|iPod|BlackBerry|IEMobile|Opera Mini|Mobile", re.IGNORECASE
)


def detect_browser(user_agent: str) -> str:
    """Classify a user agent as firefox, edge, chrome, safari or unknown."""
    if "Firefox" in user_agent:
        return "firefox"
    if "Edg" in user_agent:
        return "edge"
    if "Chrome" in user_agent or "CriOS" in user_agent:
        return "chrome"
    if "Safari" in user_agent:
        return "safari"
    return "unknown"


def detect_device_type(user_agent: str, viewport_width: Optional[int] = None) -> DeviceType:
    """
    Classify the device.

    Args:
        user_agent: User agent string
        viewport_width: Viewport width, used when the user agent is inconclusive

    Returns:
        DeviceType
    """
    if _TABLET_PATTERN.search(user_agent):
        return DeviceType.TABLET
    if _MOBILE_PATTERN.search(user_agent):
        return DeviceType.MOBILE
    if viewport_width is not None:
        if viewport_width < TABLET_BREAKPOINT:
            return DeviceType.MOBILE
        if viewport_width < DESKTOP_BREAKPOINT:
            return DeviceType.TABLET
    return DeviceType.DESKTOP


def _size(width: Optional[int], height: Optional[int]) -> str:
    if width is None or height is None:
        return ""
    return f"{width}x{height}"


class StaticContextProbe(ContextProbe):
    """
    ContextProbe built from explicit hints.

    Used by the CLI (hints from DEVICE_* settings) and by tests. The current
    page can be changed with navigate().
    """

    def __init__(
        self,
        user_agent: str = "",
        platform: str = "",
        screen_width: Optional[int] = None,
        screen_height: Optional[int] = None,
        viewport_width: Optional[int] = None,
        viewport_height: Optional[int] = None,
        max_touch_points: int = 0,
        connection_type: str = "unknown",
        effective_connection_type: str = "unknown",
        save_data: bool = False,
        path: str = "/",
        url: Optional[str] = None,
        referrer: Optional[str] = None,
    ):
        self.user_agent = user_agent
        self.platform = platform
        self.screen_width = screen_width
        self.screen_height = screen_height
        self.viewport_width = viewport_width
        self.viewport_height = viewport_height
        self.max_touch_points = max_touch_points
        self.connection_type = connection_type
        self.effective_connection_type = effective_connection_type
        self.save_data = save_data
        self.path = path
        self.url = url
        self.referrer = referrer

    @classmethod
    def from_settings(cls, settings: DeviceSettings) -> "StaticContextProbe":
        return cls(
            user_agent=settings.user_agent,
            platform=settings.platform,
            screen_width=settings.screen_width,
            screen_height=settings.screen_height,
            viewport_width=settings.viewport_width,
            viewport_height=settings.viewport_height,
            max_touch_points=settings.max_touch_points,
            connection_type=settings.connection_type,
            effective_connection_type=settings.effective_connection_type,
            save_data=settings.save_data,
            url=settings.url,
            referrer=settings.referrer,
        )

    def navigate(self, path: str, url: Optional[str] = None) -> None:
        """Move the probe to another page."""
        self.path = path
        self.url = url

    @property
    def viewport(self) -> Optional[Viewport]:
        if self.viewport_width is None or self.viewport_height is None:
            return None
        return Viewport(width=self.viewport_width, height=self.viewport_height)

    def device_info(self) -> DeviceInfo:
        return DeviceInfo(
            user_agent=self.user_agent,
            platform=self.platform,
            browser=detect_browser(self.user_agent),
            screen_resolution=_size(self.screen_width, self.screen_height),
            viewport_size=_size(self.viewport_width, self.viewport_height),
            device_type=detect_device_type(self.user_agent, self.viewport_width),
            is_touch_device=self.max_touch_points > 0,
            connection_type=self.connection_type or "unknown",
            effective_connection_type=self.effective_connection_type or "unknown",
            save_data=self.save_data,
        )

    def page_context(self) -> PageContext:
        return PageContext(
            path=self.path,
            url=self.url,
            referrer=self.referrer,
            user_agent=self.user_agent or None,
            viewport=self.viewport,
        )


def get_context_probe() -> StaticContextProbe:
    """Get a probe configured from DEVICE_* settings."""
    return StaticContextProbe.from_settings(get_settings().device)
