import uuid

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.user import User
from app.services.auth import decode_token, get_user_by_id

security = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the writer behind an identity-provider session token.

    LemmeWrite does not sign users in itself. The identity provider issues an
    HS256 access token whose ``sub`` is the user's id; the matching row in
    ``users`` is what balances, history and subscriptions hang off.
    """
    try:
        payload = decode_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Session has expired")
    except jwt.PyJWTError:
        raise _unauthorized("Invalid session token")

    if payload.get("type") != "access":
        raise _unauthorized("Not an access token")

    try:
        user_id = uuid.UUID(str(payload["sub"]))
    except (KeyError, ValueError):
        raise _unauthorized("Session token has no user id")

    user = get_user_by_id(db, user_id)
    if user is None:
        raise _unauthorized("Unknown user")
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )
    return user


def get_admin_user(current_user: User = Depends(get_current_user)) -> User:
    """Gate for the points administration routes (manual credits, duplicate cleanup)."""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user
