# ==============================================================================
# Tests for Device Detection
# ==============================================================================
"""
Tests for user agent classification and the static context probe.
"""

import pytest

from wikipulse.core.models import DeviceType
from wikipulse.infrastructure.device import (
    StaticContextProbe,
    detect_browser,
    detect_device_type,
)
from wikipulse.utils.config import DeviceSettings

CHROME = "Mozilla/5.0 (Windows NT 10.0) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36"
EDGE = CHROME + " Edg/124.0"
FIREFOX = "Mozilla/5.0 (X11; Linux x86_64; rv:125.0) Gecko/20100101 Firefox/125.0"
SAFARI = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15"
IPHONE = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148 Safari/604.1"
IPAD = "Mozilla/5.0 (iPad; CPU OS 17_4 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148 Safari/604.1"
ANDROID_PHONE = "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 Chrome/124.0 Mobile Safari/537.36"
ANDROID_TABLET = "Mozilla/5.0 (Linux; Android 14; SM-X710) AppleWebKit/537.36 Chrome/124.0 Safari/537.36"


class TestDetectBrowser:
    """Tests for browser classification."""

    @pytest.mark.parametrize(
        "user_agent, expected",
        [
            (CHROME, "chrome"),
            (EDGE, "edge"),
            (FIREFOX, "firefox"),
            (SAFARI, "safari"),
            ("curl/8.0", "unknown"),
        ],
    )
    def test_classification(self, user_agent, expected):
        assert detect_browser(user_agent) == expected


class TestDetectDeviceType:
    """Tests for device classification."""

    @pytest.mark.parametrize(
        "user_agent, expected",
        [
            (CHROME, DeviceType.DESKTOP),
            (IPHONE, DeviceType.MOBILE),
            (IPAD, DeviceType.TABLET),
            (ANDROID_PHONE, DeviceType.MOBILE),
            (ANDROID_TABLET, DeviceType.TABLET),
        ],
    )
    def test_user_agent(self, user_agent, expected):
        assert detect_device_type(user_agent) == expected

    def test_viewport_fallback(self):
        """The viewport decides only when the user agent is inconclusive."""
        assert detect_device_type("wikipulse-cli", viewport_width=375) == DeviceType.MOBILE
        assert detect_device_type("wikipulse-cli", viewport_width=800) == DeviceType.TABLET
        assert detect_device_type("wikipulse-cli", viewport_width=1440) == DeviceType.DESKTOP
        assert detect_device_type(IPHONE, viewport_width=1440) == DeviceType.MOBILE


class TestStaticContextProbe:
    """Tests for the probe used by the CLI and tests."""

    def test_device_info(self, probe):
        info = probe.device_info()
        assert info.browser == "chrome"
        assert info.device_type == DeviceType.DESKTOP
        assert info.screen_resolution == "1920x1080"
        assert info.viewport_size == "1280x800"
        assert info.is_touch_device is False

    def test_missing_hints_use_defaults(self):
        info = StaticContextProbe().device_info()
        assert info.screen_resolution == ""
        assert info.connection_type == "unknown"
        assert info.browser == "unknown"

    def test_touch_points(self):
        assert StaticContextProbe(max_touch_points=5).device_info().is_touch_device is True

    def test_navigate_changes_page_context(self, probe):
        probe.navigate("/articles/python-basics", url="https://wiki.example.com/articles/python-basics")
        context = probe.page_context()
        assert context.path == "/articles/python-basics"
        assert context.url.endswith("python-basics")
        assert context.viewport.width == 1280

    def test_from_settings(self):
        settings = DeviceSettings(user_agent=IPAD, viewport_width=820, viewport_height=1180)
        probe = StaticContextProbe.from_settings(settings)
        assert probe.device_info().device_type == DeviceType.TABLET
        assert probe.page_context().user_agent == IPAD
