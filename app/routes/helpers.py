"""Shared helpers for page routes."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from urllib.parse import quote

from fastapi import HTTPException, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from app.schemas.auth import AuthUser
from app.services.auth_service import SESSION_COOKIE_NAME, get_user_for_session_token

# Sidebar navigation - shared across all authenticated pages
NAV_ITEMS = [
    {"key": "dashboard", "text": "Dashboard", "url": "/"},
    {"key": "players", "text": "Players", "url": "/players"},
    {"key": "deals", "text": "Deals", "url": "/deals"},
    {"key": "contracts", "text": "Contracts", "url": "/contracts"},
    {"key": "payments", "text": "Payments", "url": "/payments"},
    {"key": "calendar", "text": "Calendar", "url": "/calendar"},
    {"key": "contacts", "text": "Contacts", "url": "/contacts"},
]


def base_context(request: Request, **extra: Any) -> dict[str, Any]:
    """Build base template context with common values.

    Args:
        request: The FastAPI request object.
        **extra: Additional context values to include.

    Returns:
        Dict with request, nav_items, current_year, and any extra values.
    """
    return {
        "request": request,
        "nav_items": NAV_ITEMS,
        "current_year": datetime.now().year,
        **extra,
    }


def redirect_to(url: str, *, success: str | None = None, error: str | None = None) -> RedirectResponse:
    """303 redirect carrying an optional flash message in the query string."""
    params = []
    if success:
        params.append(f"success={quote(success)}")
    if error:
        params.append(f"error={quote(error)}")
    if params:
        url = f"{url}{'&' if '?' in url else '?'}{'&'.join(params)}"
    return RedirectResponse(url=url, status_code=303)


async def get_current_user(
    request: Request,
    db: AsyncSession,
) -> AuthUser | None:
    """Get the current authenticated user from the session cookie.

    Args:
        request: The FastAPI request object.
        db: Database session.

    Returns:
        The authenticated user, or None if not logged in.
    """
    raw_token = request.cookies.get(SESSION_COOKIE_NAME)
    if not raw_token:
        return None
    user = await get_user_for_session_token(db, raw_token=raw_token)
    if user is not None:
        # Detached, so a rolled-back write later in the request cannot expire it.
        db.expunge(user)
    return user


async def require_user(
    request: Request,
    db: AsyncSession,
    next_path: str = "/",
) -> tuple[Response | None, AuthUser | None]:
    """Require authentication, redirecting to login if needed.

    Args:
        request: The FastAPI request object.
        db: Database session.
        next_path: Path to redirect back to after login.

    Returns:
        Tuple of (redirect_response, user). If redirect is not None, return it.
    """
    user = await get_current_user(request, db)
    if user is None or user.id is None:
        return (
            RedirectResponse(
                url=f"/login?next={quote(next_path, safe='/')}",
                status_code=303,
            ),
            None,
        )
    return None, user


async def require_api_user(request: Request, db: AsyncSession) -> AuthUser:
    """JSON endpoints answer 401 instead of redirecting to the login page."""
    user = await get_current_user(request, db)
    if user is None or user.id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def parse_optional_int(value: str | None) -> int | None:
    """Turn a query/form value into an int; empty or invalid becomes None."""
    if value is None or not value.strip():
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None
