import time
from typing import Optional, Dict, Any

import jwt
from flask import current_app

DEFAULT_TTL_SECONDS = 60 * 60 * 24


def _secret() -> str:
    return current_app.config.get("SECRET_KEY") or "dev-secret-change-me"


def create_access_token(user_id: int, username: str = "", role: str = "", ttl_seconds: Optional[int] = None) -> str:
    now = int(time.time())
    ttl = int(ttl_seconds or current_app.config.get("JWT_TTL_SECONDS") or DEFAULT_TTL_SECONDS)
    payload = {
        "sub": str(user_id),
        "username": username,
        "role": role,
        "iat": now,
        "exp": now + ttl,
        "type": "access",
    }
    return jwt.encode(payload, _secret(), algorithm="HS256")


def create_token_for(user) -> str:
    return create_access_token(user_id=user.id, username=user.username, role=user.role or "")


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    try:
        return jwt.decode(token, _secret(), algorithms=["HS256"])
    except jwt.PyJWTError:
        return None


def get_bearer_token(auth_header: str) -> Optional[str]:
    if not auth_header:
        return None
    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None
