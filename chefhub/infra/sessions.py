"""Opaque bearer sessions stored in Redis.

A token is a random URL-safe string; Redis holds `chefhub:session:{token}` ->
user id with the configured TTL. Logout deletes the key, refresh swaps it.
"""

import json
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .redis_client import get_redis
from ..settings import settings

TOKEN_BYTES = 32


@dataclass
class IssuedToken:
    access_token: str
    expires_in: int
    token_type: str = "bearer"

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
        }


def _session_key(token: str) -> str:
    return f"chefhub:session:{token}"


def ttl_seconds() -> int:
    return settings.session_ttl_minutes * 60


def issue_token(user_id: int) -> IssuedToken:
    token = secrets.token_urlsafe(TOKEN_BYTES)
    payload = {"user_id": user_id, "issued_at": datetime.now(timezone.utc).isoformat()}
    get_redis().set(_session_key(token), json.dumps(payload), ex=ttl_seconds())
    return IssuedToken(access_token=token, expires_in=ttl_seconds())


def resolve_token(token: str) -> Optional[int]:
    raw = get_redis().get(_session_key(token))
    if not raw:
        return None
    return int(json.loads(raw)["user_id"])


def revoke_token(token: str) -> bool:
    return bool(get_redis().delete(_session_key(token)))


def refresh_token(token: str) -> Optional[IssuedToken]:
    """Issue a fresh token for the same user and revoke the old one."""
    user_id = resolve_token(token)
    if user_id is None:
        return None
    issued = issue_token(user_id)
    revoke_token(token)
    return issued
