from __future__ import annotations

from urllib.parse import urlencode


def build_signup_link(base_url: str, default_pin: str) -> str:
    """Deep link printed as a QR code next to the badge readers."""
    base = str(base_url or "").strip().rstrip("/")
    if not base:
        raise ValueError("base_url is required")
    if not default_pin:
        raise ValueError("default_pin is required")
    return f"{base}/auth?{urlencode({'badge_pin': default_pin})}"
