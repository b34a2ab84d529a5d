"""
Route guard decisions for the admin panel

Each navigation is either allowed through unchanged or redirected:
- protected path without a session -> /login
- /login with a session -> /dashboard
"""

from __future__ import annotations

from dataclasses import dataclass
from http.cookies import CookieError, SimpleCookie

from admin_backend import config


@dataclass(frozen=True)
class RouteDecision:
    allowed: bool
    location: str | None = None

    @classmethod
    def allow(cls) -> "RouteDecision":
        return cls(allowed=True)

    @classmethod
    def redirect(cls, location: str) -> "RouteDecision":
        return cls(allowed=False, location=location)


def is_protected(pathname: str) -> bool:
    """True for a protected path or anything beneath it (/books/123/edit)."""
    return any(
        pathname == prefix or pathname.startswith(prefix + "/")
        for prefix in config.PROTECTED_PATHS
    )


def resolve_route(pathname: str, has_session: bool) -> RouteDecision:
    """
    Decide whether a navigation proceeds or is redirected.

    Args:
        pathname: Request path (no query string)
        has_session: Whether the request carries a valid session

    Returns:
        RouteDecision: allow, or redirect with the target location
    """
    if is_protected(pathname) and not has_session:
        return RouteDecision.redirect(config.LOGIN_PATH)

    if has_session and pathname == config.LOGIN_PATH:
        return RouteDecision.redirect(config.DASHBOARD_PATH)

    return RouteDecision.allow()


def get_cookie(cookie_header: str | None, name: str) -> str | None:
    """Read one cookie value from a Cookie header."""
    if not cookie_header:
        return None
    cookie = SimpleCookie()
    try:
        cookie.load(cookie_header)
    except CookieError:
        return None
    morsel = cookie.get(name)
    return morsel.value if morsel else None


def session_cookie(token: str, max_age: int) -> str:
    """Set-Cookie header value carrying the session access token."""
    return (
        f"{config.SESSION_COOKIE_NAME}={token}; Path=/; Max-Age={max_age}; "
        "HttpOnly; Secure; SameSite=Lax"
    )


def clear_session_cookie() -> str:
    """Set-Cookie header value that expires the session cookie."""
    return f"{config.SESSION_COOKIE_NAME}=; Path=/; Max-Age=0; HttpOnly; Secure; SameSite=Lax"
