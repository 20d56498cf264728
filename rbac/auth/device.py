"""Client IP and user-agent helpers for session bookkeeping."""

from __future__ import annotations

from fastapi import Request

from rbac.auth.models import DeviceInfo

_BROWSERS = (
    ("Edg/", "Edge"),
    ("Firefox/", "Firefox"),
    ("Chrome/", "Chrome"),
    ("Safari/", "Safari"),
)

_OPERATING_SYSTEMS = (
    ("Windows", "Windows"),
    ("Android", "Android"),
    ("iPhone", "iOS"),
    ("iPad", "iOS"),
    ("Mac OS", "macOS"),
    ("Macintosh", "macOS"),
    ("Linux", "Linux"),
)


def parse_user_agent(user_agent: str) -> tuple[str, str]:
    """Return a coarse ``(browser, os)`` pair for a user-agent string."""
    browser = next((name for marker, name in _BROWSERS if marker in user_agent), "Unknown")
    os_name = next(
        (name for marker, name in _OPERATING_SYSTEMS if marker in user_agent), "Unknown"
    )
    return browser, os_name


def client_ip(request: Request, *, trust_proxy: bool = False) -> str:
    """Caller address; forwarding headers count only behind a trusted proxy."""
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "")
        first = forwarded.split(",", 1)[0].strip()
        if first:
            return first
        real_ip = request.headers.get("x-real-ip", "").strip()
        if real_ip:
            return real_ip
    return (request.client.host if request.client else "") or "unknown"


def device_info_from_request(request: Request, *, trust_proxy: bool = False) -> DeviceInfo:
    user_agent = request.headers.get("user-agent", "")
    browser, os_name = parse_user_agent(user_agent)
    return DeviceInfo(
        user_agent=user_agent,
        ip=client_ip(request, trust_proxy=trust_proxy),
        browser=browser,
        os=os_name,
    )
