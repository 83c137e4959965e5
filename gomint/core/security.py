"""Password hashing and bearer token helpers."""

from datetime import datetime, timedelta
from functools import wraps
from typing import Any, Dict

import bcrypt
from flask import current_app, g, request
from jose import jwt
from jose.exceptions import JWTError
from werkzeug.exceptions import Forbidden, Unauthorized


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def issue_token(user: Dict[str, Any], settings: Dict[str, Any]) -> str:
    now = datetime.utcnow()
    claims = {
        "sub": str(user["_id"]),
        "role": user.get("role", "operator"),
        "iat": now,
        "exp": now + timedelta(days=settings["expires_days"]),
    }
    return jwt.encode(claims, settings["secret"], algorithm=settings["algorithm"])


def decode_token(settings: Dict[str, Any]) -> Dict[str, Any]:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.lower().startswith("bearer "):
        raise Unauthorized("Authorization header must start with Bearer")
    parts = auth_header.split()
    if len(parts) != 2:
        raise Unauthorized("missing token")
    try:
        return jwt.decode(parts[1], settings["secret"], algorithms=[settings["algorithm"]])
    except JWTError as exc:
        raise Unauthorized(f"Token verification failed: {exc}")


def login_required(*roles: str):
    """
    Require a valid bearer token, optionally restricted to the given roles.

    The decoded claims are stored on ``g.current_token``.
    """

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            payload = decode_token(current_app.config["AUTH_SETTINGS"])
            if roles and payload.get("role") not in roles:
                raise Forbidden(f"role {payload.get('role')!r} may not perform this action")
            g.current_token = payload
            return view(*args, **kwargs)

        return wrapper

    return decorator
