from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError

from examhub.core.config import get_settings

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"

pwd_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    return pwd_hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_hasher.verify(password_hash, password)
    except VerifyMismatchError:
        return False


def _encode(sub: UUID, ttl: timedelta, token_type: str, secret: str, extra: dict[str, Any] | None = None) -> str:
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": str(sub),
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
        "jti": uuid4().hex,
    }
    if extra:
        payload.update(extra)
    return jwt.encode(payload, secret, algorithm="HS256")


def create_access_token(user_id: UUID, email: str) -> str:
    settings = get_settings()
    return _encode(
        user_id,
        timedelta(minutes=settings.jwt_access_ttl_min),
        ACCESS_TOKEN,
        settings.jwt_secret_key,
        extra={"email": email},
    )


def create_refresh_token(user_id: UUID) -> str:
    settings = get_settings()
    return _encode(
        user_id,
        timedelta(days=settings.jwt_refresh_ttl_days),
        REFRESH_TOKEN,
        settings.jwt_refresh_secret_key,
    )


def decode_token(token: str, token_type: str) -> UUID:
    """Return the subject of a valid token of the given type.

    Raises ``jwt.InvalidTokenError`` for expired, malformed or mistyped tokens.
    """
    settings = get_settings()
    secret = settings.jwt_secret_key if token_type == ACCESS_TOKEN else settings.jwt_refresh_secret_key
    payload = jwt.decode(token, secret, algorithms=["HS256"])
    if payload.get("type") != token_type:
        raise jwt.InvalidTokenError("unexpected token type")
    try:
        return UUID(payload["sub"])
    except (KeyError, ValueError) as exc:
        raise jwt.InvalidTokenError("invalid subject") from exc
