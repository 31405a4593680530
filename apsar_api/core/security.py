"""Password hashing and the bearer tokens handed to the mobile client.

Access tokens carry the caller's role so the client can branch its UI;
the server still reloads the user on every request and trusts only the
stored role.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Literal
from uuid import UUID

import jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from .config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

TokenType = Literal["access", "refresh"]

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.bcrypt_rounds,
)


# =============================================================================
# PASSWORDS
# =============================================================================


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def password_needs_rehash(hashed_password: str) -> bool:
    """True when the stored hash was made with a different bcrypt cost."""
    return pwd_context.needs_update(hashed_password)


# =============================================================================
# TOKENS
# =============================================================================


class TokenPayload(BaseModel):
    """Claims of a decoded APSAR token."""

    sub: str
    type: TokenType
    exp: datetime
    iat: datetime
    role: str | None = None


def _issue(user_id: UUID, token_type: TokenType, lifetime: timedelta, **claims) -> tuple[str, datetime]:
    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + lifetime
    claims.update(sub=str(user_id), type=token_type, iat=issued_at, exp=expires_at)
    return jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM), expires_at


def create_access_token(
    user_id: UUID,
    role: str,
    expires_delta: timedelta | None = None,
) -> tuple[str, datetime]:
    """Short-lived token for the ``Authorization: Bearer`` header, with its expiry."""
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    return _issue(user_id, "access", lifetime, role=role)


def create_refresh_token(user_id: UUID) -> str:
    token, _ = _issue(user_id, "refresh", timedelta(days=settings.refresh_token_expire_days))
    return token


def decode_token(token: str) -> TokenPayload | None:
    """Claims of a valid, unexpired token; None for anything else."""
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired token")
        return None
    except jwt.InvalidTokenError:
        return None

    if claims.get("type") not in ("access", "refresh"):
        return None
    return TokenPayload(**claims)
