"""Password hashing and access tokens for PropertyHub staff and tenants.

Tokens are HS256 JWTs carrying the user id in ``sub``, the role at issue
time in ``role``, and ``iat``/``exp``. Decoding failures surface as
``ValueError`` so callers decide which HTTP status to map them to.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from propertyhub.app.core.settings import get_settings

JWT_ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "exp", "iat"]

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: int, role: Optional[str] = None, expires_minutes: Optional[int] = None) -> str:
    settings = get_settings()
    lifetime = expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    issued_at = datetime.now(timezone.utc)
    claims: Dict[str, Any] = {
        "sub": str(user_id),
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=lifetime),
    }
    if role:
        claims["role"] = role
    return jwt.encode(claims, settings.secret_key, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[JWT_ALGORITHM],
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError as exc:
        raise ValueError("Expired token") from exc
    except jwt.InvalidTokenError as exc:
        raise ValueError("Invalid token") from exc


def user_id_from_token(token: str) -> int:
    """Return the integer user id a valid token was issued for."""
    subject = decode_access_token(token)["sub"]
    try:
        return int(subject)
    except (TypeError, ValueError) as exc:
        raise ValueError("Invalid token") from exc
