import logging
from datetime import timedelta
from typing import NamedTuple

import jwt
from passlib.hash import pbkdf2_sha256
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from casamia.config import config
from casamia.database.core import utcnow
from casamia.database.models import User
from casamia.errors import AuthenticationError


class Principal(NamedTuple):
    """Authenticated caller of a request"""
    id: int
    role: str


def hash_password(password: str) -> str:
    return pbkdf2_sha256.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return pbkdf2_sha256.verify(password, password_hash)


def create_access_token(user: User) -> str:
    now = utcnow()
    payload = {
        "sub": str(user.id),
        "role": user.role,
        "iat": now,
        "exp": now + timedelta(hours=config.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> Principal:
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise AuthenticationError(f"Invalid token: {e}")

    try:
        return Principal(id=int(payload["sub"]), role=payload["role"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationError("Invalid token payload")


async def authenticate(session: AsyncSession, email: str, password: str) -> tuple[User, str]:
    """Check credentials and issue a token. Deleted and inactive accounts cannot log in."""
    stmt = select(User).where(func.lower(User.email) == email.strip().lower())
    result = await session.execute(stmt)
    user = result.scalar_one_or_none()

    if not user or user.is_deleted or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid email or password")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated. Please contact the administrator.")

    logging.info(f"User {user.id} ({user.role}) logged in")
    return user, create_access_token(user)
