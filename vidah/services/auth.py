"""
Admin authentication - bcrypt password checks and HS256 bearer tokens.

Token verification is pure computation (signature + expiry + claims); it never
touches the database. Login is the only path that reads admin_users.
"""
import logging
import secrets
from dataclasses import dataclass
from functools import lru_cache
from datetime import datetime, timezone, timedelta
from typing import Optional

import bcrypt
import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vidah.config import get_settings
from vidah.models.admin_user import AdminUser

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


class AuthenticationError(Exception):
    """Login rejected. `reason` is for logs only, never for the response."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class TokenError(Exception):
    """Bearer token rejected; `message` is safe to return to the caller."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class AdminIdentity:
    id: int
    username: str


def hash_password(password: str) -> str:
    rounds = get_settings().bcrypt_rounds
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Malformed stored hash
        return False


@lru_cache
def _dummy_password_hash() -> str:
    """Hash at the configured cost, checked against when the username is unknown."""
    return hash_password(secrets.token_urlsafe(16))


def create_admin_token(admin: AdminUser, now: Optional[datetime] = None) -> str:
    settings = get_settings()
    issued_at = now or datetime.now(timezone.utc)
    return jwt.encode(
        {
            "id": admin.id,
            "username": admin.username,
            "iat": issued_at,
            "exp": issued_at + timedelta(hours=settings.admin_jwt_expiry_hours),
        },
        settings.token_secret,
        algorithm=JWT_ALGORITHM,
    )


def decode_admin_token(token: str) -> AdminIdentity:
    """
    Verify signature, expiry and identity claims.

    Raises:
        TokenError: "Token expirado" or "Token inválido".
    """
    try:
        payload = jwt.decode(
            token,
            get_settings().token_secret,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token expirado")
    except jwt.InvalidTokenError:
        raise TokenError("Token inválido")

    admin_id = payload.get("id")
    username = payload.get("username")
    if not isinstance(admin_id, int) or isinstance(admin_id, bool) or not isinstance(username, str) or not username:
        raise TokenError("Token inválido")
    return AdminIdentity(id=admin_id, username=username)


async def authenticate_admin(db: AsyncSession, username: str, password: str) -> AdminUser:
    """
    Check credentials and stamp last_login_at.

    Raises:
        AuthenticationError: unknown user, inactive account or wrong password.
    """
    result = await db.execute(select(AdminUser).where(AdminUser.username == username))
    admin = result.scalar_one_or_none()

    # Every rejection pays one bcrypt check so timing can't reveal valid usernames
    if admin is None:
        verify_password(password, _dummy_password_hash())
        raise AuthenticationError("unknown_username")
    if not admin.is_active:
        verify_password(password, admin.password_hash)
        raise AuthenticationError("inactive_account")
    if not verify_password(password, admin.password_hash):
        raise AuthenticationError("wrong_password")

    admin.last_login_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("Admin login succeeded", extra={"admin_id": admin.id})
    return admin
