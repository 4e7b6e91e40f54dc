from __future__ import annotations

import datetime as dt
import functools
import typing as t

import bcrypt
import jwt
from flask import current_app, g, request

from backend.errors import AuthError

JWT_ALGORITHM = "HS256"
BCRYPT_ROUNDS = 10


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def check_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def create_token(user_id: str, secret: str, expires_days: int = 30) -> str:
    now = dt.datetime.now(dt.timezone.utc)
    payload = {"id": user_id, "iat": now, "exp": now + dt.timedelta(days=expires_days)}
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def verify_token(token: str, secret: str) -> str:
    """Return the user id carried by ``token``.

    Raises ``AuthError`` for a bad signature, an expired token or a payload
    without an ``id``.
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        raise AuthError("Not authorized, token failed") from e
    user_id = payload.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise AuthError("Not authorized, token failed")
    return user_id


def bearer_token(header: str | None) -> str:
    if not header or not header.startswith("Bearer "):
        raise AuthError("Not authorized, no token")
    token = header.split(" ", 1)[1].strip()
    if not token:
        raise AuthError("Not authorized, no token")
    return token


def require_auth(view: t.Callable[..., t.Any]) -> t.Callable[..., t.Any]:
    @functools.wraps(view)
    def wrapper(*args: t.Any, **kwargs: t.Any) -> t.Any:
        token = bearer_token(request.headers.get("Authorization"))
        settings = current_app.extensions["settings"]
        g.user_id = verify_token(token, settings.jwt_secret)
        return view(*args, **kwargs)

    return wrapper
