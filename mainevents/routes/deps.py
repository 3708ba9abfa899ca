import jwt
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from mainevents.core.config import AUTH_COOKIE_NAME
from mainevents.core.errors import AuthenticationError, AuthorizationError
from mainevents.core.security import decode_access_token
from mainevents.database.db import get_db
from mainevents.models.users import User


def _token_from_request(request: Request) -> str | None:
    token = request.cookies.get(AUTH_COOKIE_NAME)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return None


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    token = _token_from_request(request)
    if not token:
        raise AuthenticationError("No token found - access denied")

    try:
        payload = decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired - please sign in again")
    except jwt.InvalidTokenError:
        raise AuthorizationError("Invalid token")

    user_id = payload.get("id")
    if not isinstance(user_id, int):
        raise AuthorizationError("Invalid token")

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("User no longer exists")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise AuthorizationError("Administrator role required")
    return user
