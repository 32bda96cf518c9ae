from typing import Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from models.auth import User
from models.common import get_session
from services.auth import user_from_token
from services.errors import Unauthenticated

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User | None:
    if not credentials or not credentials.credentials:
        return None
    return user_from_token(session, credentials.credentials)


def current_user(user: User | None = Depends(get_current_user)) -> User:
    if user is None:
        raise Unauthenticated("Access token required")
    return user


def envelope(message: str, data: Any = None) -> dict:
    """The response body every endpoint answers with."""
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return body
