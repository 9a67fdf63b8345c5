import time
from dataclasses import dataclass
from typing import Optional

import jwt
from passlib.context import CryptContext

from sweetshop.config import get_settings
from sweetshop.errors import Unauthorized

# pbkdf2_sha256 avoids the bcrypt 72-byte limit and backend quirks
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


@dataclass(frozen=True)
class Principal:
    """
    Claim set decoded from a verified access token.

    ``is_admin`` is a snapshot taken when the token was issued. It is not
    re-read from the users table on each request, so a change to a user's
    privilege takes effect only once a new token is issued (at the latest
    after ACCESS_TOKEN_EXPIRE_MINUTES).
    """
    user_id: str
    email: str
    name: str
    is_admin: bool


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def create_access_token(
    user_id: str,
    email: str,
    name: str,
    is_admin: bool,
    expires_delta: Optional[int] = None,
) -> str:
    """Issue a signed token; ``expires_delta`` is in seconds."""
    settings = get_settings()
    now = int(time.time())
    if expires_delta is None:
        expires_delta = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    payload = {
        "sub": str(user_id),
        "email": email,
        "name": name,
        "is_admin": bool(is_admin),
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Principal:
    """
    Verify signature and expiry and return the claims.

    Raises:
        Unauthorized: token is malformed, tampered with, expired or lacks claims
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token has expired")
    except jwt.PyJWTError:
        raise Unauthorized("Invalid token")

    is_admin = payload.get("is_admin")
    if not isinstance(is_admin, bool) or not payload.get("email"):
        raise Unauthorized("Invalid token")

    return Principal(
        user_id=payload["sub"],
        email=payload["email"],
        name=payload.get("name", ""),
        is_admin=is_admin,
    )
