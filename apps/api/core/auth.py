"""
Authentication dependencies.

Provides FastAPI dependencies for:
- Getting the current user from the session cookie
- Loading rows that must belong to the current user
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session
from typing import Optional, Type, TypeVar
from uuid import UUID

from core.config import settings
from core.database import get_db
from core.exceptions import NotFoundError, UnauthorizedError
from core.sessions import get_session_store
from models import User

T = TypeVar("T")


def get_session_id(request: Request) -> Optional[str]:
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def get_current_user(
    request: Request,
    db: Session = Depends(get_db)
) -> User:
    """
    Resolve the session cookie to a user.

    Raises 401 if the cookie is missing, the session expired, or the
    user no longer exists.
    """
    session_id = get_session_id(request)
    if not session_id:
        raise UnauthorizedError("Not authenticated")

    user_id = get_session_store().get(session_id)
    if not user_id:
        raise UnauthorizedError("Session expired")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        get_session_store().delete(session_id)
        raise UnauthorizedError("User not found")

    return user


def get_owned(db: Session, model: Type[T], object_id: UUID, user: User, label: Optional[str] = None) -> T:
    """
    Load a row by id that belongs to `user`.

    Rows owned by another user are reported exactly like missing ones.
    """
    obj = (
        db.query(model)
        .filter(model.id == object_id, model.user_id == user.id)
        .first()
    )
    if obj is None:
        raise NotFoundError(label or model.__name__, object_id)
    return obj
