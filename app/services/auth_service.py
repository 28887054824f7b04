"""Agent auth helpers: passwords, cookie sessions and calendar feed tokens."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import os
import secrets
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.schemas.auth import AuthSession, AuthUser, CalendarFeedToken

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "agentplay_session"

SESSION_TTL = timedelta(days=1)
REMEMBER_ME_TTL = timedelta(days=30)
IDLE_TIMEOUT = timedelta(days=1)
LAST_SEEN_UPDATE_THROTTLE = timedelta(minutes=5)

MIN_PASSWORD_LENGTH = 6


def normalize_email(email: str) -> str:
    """Normalize an email address for storage and comparisons."""
    return email.strip().casefold()


def _b64decode(raw: str) -> bytes:
    padding = "=" * (-len(raw) % 4)
    return base64.urlsafe_b64decode(raw + padding)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def hash_pbkdf2_sha256(password: str, *, iterations: int = 210_000) -> str:
    """Return a PBKDF2-SHA256 password hash string."""
    salt = os.urandom(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt,
        iterations,
    )
    return f"pbkdf2_sha256${iterations}${_b64encode(salt)}${_b64encode(digest)}"


def verify_pbkdf2_sha256(password: str, encoded_hash: str) -> bool:
    """Verify a password against a stored ``pbkdf2_sha256$...`` string."""
    try:
        algorithm, iterations_raw, salt_b64, digest_b64 = encoded_hash.split("$", 3)
    except ValueError:
        return False

    if algorithm != "pbkdf2_sha256":
        return False

    try:
        iterations = int(iterations_raw)
    except ValueError:
        return False

    try:
        salt = _b64decode(salt_b64)
        expected = _b64decode(digest_b64)
    except (binascii.Error, ValueError):
        return False

    actual = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt,
        iterations,
    )
    return hmac.compare_digest(actual, expected)


def _hash_token(token: str) -> str:
    key = settings.secret_key.encode("utf-8")
    return hmac.new(key, token.encode("utf-8"), hashlib.sha256).hexdigest()


def _hash_calendar_token(raw_token: str) -> str:
    return _hash_token(f"calendar:{raw_token}")


def generate_session_token() -> str:
    """Generate a raw cookie token (stored only as a hash server-side)."""
    return secrets.token_urlsafe(32)


def sanitize_next_path(next_path: str | None) -> str:
    """Allow only local redirect targets to avoid open redirects."""
    if not next_path:
        return "/"
    if not next_path.startswith("/"):
        return "/"
    if next_path.startswith("//"):
        return "/"
    return next_path


async def authenticate_user(
    db: AsyncSession,
    *,
    email: str,
    password: str,
) -> AuthUser | None:
    """Return an active AuthUser if credentials are valid."""
    normalized_email = normalize_email(email)
    async with db.begin():
        result = await db.execute(
            select(AuthUser).where(
                AuthUser.email == normalized_email,  # type: ignore[arg-type]
                AuthUser.is_active.is_(True),  # type: ignore[attr-defined]
            )
        )
        user = result.scalar_one_or_none()
        if user is None:
            return None
        if not verify_pbkdf2_sha256(password, user.password_hash):
            return None
        user.last_login_at = datetime.utcnow()
    return user


async def register_user(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    confirm_password: str,
) -> tuple[AuthUser | None, str | None]:
    """Create an agent account.

    Returns:
        A tuple of (user, error_message). Exactly one of them is None.
    """
    normalized_email = normalize_email(email)
    if not normalized_email or "@" not in normalized_email:
        return None, "Please enter a valid email address."
    if password != confirm_password:
        return None, "Passwords do not match."
    if len(password) < MIN_PASSWORD_LENGTH:
        return None, f"Password must be at least {MIN_PASSWORD_LENGTH} characters."

    async with db.begin():
        existing = await db.execute(
            select(AuthUser.id).where(  # type: ignore[call-overload]
                AuthUser.email == normalized_email  # type: ignore[arg-type]
            )
        )
        if existing.scalar_one_or_none() is not None:
            return None, "This email address is already registered."

        now = datetime.utcnow()
        user = AuthUser(
            email=normalized_email,
            password_hash=hash_pbkdf2_sha256(password),
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        db.add(user)
        await db.flush()

    logger.info("Registered agent account id=%s", user.id)
    return user, None


async def issue_session(
    db: AsyncSession,
    *,
    user_id: int,
    remember_me: bool,
    ip: str | None,
    user_agent: str | None,
) -> tuple[str, AuthSession]:
    """Create a new session row and return (raw_token, session)."""
    now = datetime.utcnow()
    ttl = REMEMBER_ME_TTL if remember_me else SESSION_TTL
    raw_token = generate_session_token()
    token_hash = _hash_token(raw_token)

    session = AuthSession(
        user_id=user_id,
        token_hash=token_hash,
        created_at=now,
        last_seen_at=now,
        expires_at=now + ttl,
        revoked_at=None,
        ip=ip,
        user_agent=user_agent,
        remember_me=remember_me,
    )

    async with db.begin():
        db.add(session)

    return raw_token, session


async def revoke_session(db: AsyncSession, *, raw_token: str) -> None:
    """Revoke a session token (idempotent)."""
    now = datetime.utcnow()
    token_hash = _hash_token(raw_token)
    async with db.begin():
        await db.execute(
            update(AuthSession)
            .where(
                AuthSession.token_hash == token_hash,  # type: ignore[arg-type]
                AuthSession.revoked_at.is_(None),  # type: ignore[union-attr]
            )
            .values(revoked_at=now)
        )


async def get_user_for_session_token(
    db: AsyncSession,
    *,
    raw_token: str,
) -> AuthUser | None:
    """Return the active user for a valid session token."""
    now = datetime.utcnow()
    token_hash = _hash_token(raw_token)
    async with db.begin():
        result = await db.execute(
            select(AuthSession, AuthUser)
            .join(AuthUser, AuthUser.id == AuthSession.user_id)  # type: ignore[arg-type]
            .where(
                AuthSession.token_hash == token_hash,  # type: ignore[arg-type]
                AuthSession.revoked_at.is_(None),  # type: ignore[union-attr]
                AuthSession.expires_at > now,  # type: ignore[operator,arg-type]
                AuthUser.is_active.is_(True),  # type: ignore[attr-defined]
            )
        )
        row = result.one_or_none()
        if row is None:
            return None

        session, user = row
        if not session.remember_me and session.last_seen_at < (now - IDLE_TIMEOUT):
            return None

        if now - session.last_seen_at > LAST_SEEN_UPDATE_THROTTLE:
            await db.execute(
                update(AuthSession)
                .where(AuthSession.token_hash == token_hash)  # type: ignore[arg-type]
                .values(last_seen_at=now)
            )

        return user


async def issue_calendar_token(db: AsyncSession, *, user_id: int) -> str:
    """Rotate the agent's calendar feed token and return the new raw token.

    Any previously issued token stops working immediately.
    """
    now = datetime.utcnow()
    raw_token = secrets.token_urlsafe(32)
    async with db.begin():
        await db.execute(
            update(CalendarFeedToken)
            .where(
                CalendarFeedToken.user_id == user_id,  # type: ignore[arg-type]
                CalendarFeedToken.revoked_at.is_(None),  # type: ignore[union-attr]
            )
            .values(revoked_at=now)
        )
        db.add(
            CalendarFeedToken(
                user_id=user_id,
                token_hash=_hash_calendar_token(raw_token),
                created_at=now,
            )
        )
    logger.info("Rotated calendar feed token for user id=%s", user_id)
    return raw_token


async def get_user_for_calendar_token(
    db: AsyncSession,
    *,
    raw_token: str,
) -> AuthUser | None:
    """Return the active owner of a live calendar feed token."""
    token_hash = _hash_calendar_token(raw_token)
    async with db.begin():
        result = await db.execute(
            select(CalendarFeedToken, AuthUser)
            .join(AuthUser, AuthUser.id == CalendarFeedToken.user_id)  # type: ignore[arg-type]
            .where(
                CalendarFeedToken.token_hash == token_hash,  # type: ignore[arg-type]
                CalendarFeedToken.revoked_at.is_(None),  # type: ignore[union-attr]
                AuthUser.is_active.is_(True),  # type: ignore[attr-defined]
            )
        )
        row = result.one_or_none()
        if row is None:
            return None
        feed_token, user = row
        feed_token.last_used_at = datetime.utcnow()
        return user
