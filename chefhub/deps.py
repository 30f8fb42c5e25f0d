"""FastAPI dependencies for ChefHub API.

Provides:
- Database session dependency
- Bearer session resolution (Authorization header -> Redis -> User)
- Chef-only guard
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .db import get_db
from .errors import Forbidden, Unauthenticated
from .infra import sessions
from .models import User

bearer_scheme = HTTPBearer(auto_error=False)

__all__ = ["get_db", "get_bearer_token", "get_current_user", "require_chef"]


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None or not credentials.credentials:
        raise Unauthenticated()
    return credentials.credentials


def get_current_user(
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the session token to its user.

    Raises:
        Unauthenticated if the token is unknown, expired or its user is gone
    """
    user_id = sessions.resolve_token(token)
    if user_id is None:
        raise Unauthenticated()
    user = db.get(User, user_id)
    if user is None:
        sessions.revoke_token(token)
        raise Unauthenticated()
    return user


def require_chef(user: User = Depends(get_current_user)) -> User:
    if not user.is_chef:
        raise Forbidden("Only chefs can perform this action")
    return user
