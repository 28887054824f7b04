"""Agent authentication routes (login, sign-up, logout)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from app.config import settings
from app.routes.helpers import base_context
from app.services.auth_service import (
    REMEMBER_ME_TTL,
    SESSION_COOKIE_NAME,
    authenticate_user,
    issue_session,
    register_user,
    revoke_session,
    sanitize_next_path,
)
from app.utils.db_async import get_session

router = APIRouter(tags=["auth"])


def _set_session_cookie(response: Response, raw_token: str, remember_me: bool) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=raw_token,
        httponly=True,
        samesite="lax",
        secure=not settings.is_dev,
        path="/",
        max_age=int(REMEMBER_ME_TTL.total_seconds()) if remember_me else None,
    )


@router.get("/login", response_class=HTMLResponse)
async def login_page(
    request: Request,
    next: str | None = Query(default=None),
    success: str | None = Query(default=None),
) -> Response:
    """Render the login form."""
    return request.app.state.templates.TemplateResponse(
        "auth/login.html",
        base_context(request, next=sanitize_next_path(next), error=None, success=success),
    )


@router.post("/login", response_class=HTMLResponse)
async def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    remember: str | None = Form(default=None),
    next: str | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Handle agent login and set a session cookie on success."""
    user = await authenticate_user(db, email=email, password=password)
    if user is None or user.id is None:
        return request.app.state.templates.TemplateResponse(
            "auth/login.html",
            base_context(
                request,
                next=sanitize_next_path(next),
                error="Invalid email or password.",
                email=email,
            ),
            status_code=200,
        )

    remember_me = remember is not None and remember not in {"0", "", "false", "False"}
    raw_token, _session = await issue_session(
        db,
        user_id=user.id,
        remember_me=remember_me,
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )

    response = RedirectResponse(url=sanitize_next_path(next), status_code=303)
    _set_session_cookie(response, raw_token, remember_me)
    return response


@router.get("/signup", response_class=HTMLResponse)
async def signup_page(request: Request) -> Response:
    """Render the sign-up form."""
    return request.app.state.templates.TemplateResponse(
        "auth/signup.html",
        base_context(request, error=None),
    )


@router.post("/signup", response_class=HTMLResponse)
async def signup(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    confirm_password: str = Form(...),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Create an agent account and sign it in."""
    user, error = await register_user(
        db, email=email, password=password, confirm_password=confirm_password
    )
    if error or user is None or user.id is None:
        return request.app.state.templates.TemplateResponse(
            "auth/signup.html",
            base_context(request, error=error, email=email),
            status_code=200,
        )

    raw_token, _session = await issue_session(
        db,
        user_id=user.id,
        remember_me=False,
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    response = RedirectResponse(url="/", status_code=303)
    _set_session_cookie(response, raw_token, remember_me=False)
    return response


@router.post("/logout")
async def logout(
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> RedirectResponse:
    """Revoke the current session and clear the cookie."""
    raw_token = request.cookies.get(SESSION_COOKIE_NAME)
    if raw_token:
        await revoke_session(db, raw_token=raw_token)

    response = RedirectResponse(url="/login", status_code=303)
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return response
