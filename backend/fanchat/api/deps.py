"""FastAPI dependencies for the API layer."""

from functools import lru_cache

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session, sessionmaker

from fanchat.config import Settings, get_settings
from fanchat.core.clock import Clock, system_clock
from fanchat.core.errors import PermissionDenied
from fanchat.core.security import decode_access_token
from fanchat.database import SessionLocal, get_db
from fanchat.models import FanChat, User
from fanchat.services import (
    ChatEventHub,
    FanChatServices,
    NotificationDispatcher,
    build_notification_dispatcher,
    build_services,
    chat_event_hub,
)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Retrieve the current user from the JWT token."""

    return get_user_from_token(token, db)


def get_user_from_token(token: str, db: Session) -> User:
    """Resolve a user from a JWT token or raise an HTTP 401 error."""

    payload = decode_access_token(token)
    sub = payload.get("sub")
    if sub is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )

    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from None

    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return user


def get_clock() -> Clock:
    return system_clock


def get_event_hub() -> ChatEventHub:
    return chat_event_hub


@lru_cache
def get_notifier() -> NotificationDispatcher:
    return build_notification_dispatcher(get_settings())


def get_session_factory() -> sessionmaker:
    """Session factory for websocket handlers that open short-lived sessions."""

    return SessionLocal


def get_services(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
    notifier: NotificationDispatcher = Depends(get_notifier),
    events: ChatEventHub = Depends(get_event_hub),
) -> FanChatServices:
    """Build the request-scoped service graph."""

    return build_services(db, settings, clock=clock, notifier=notifier, events=events)


def require_moderator(services: FanChatServices, user: User, chat: FanChat) -> None:
    """Ensure the user currently moderates the chat, raising 403 otherwise."""

    if not services.permissions.is_moderator(user.id, chat):
        raise PermissionDenied("Only chat moderators can do this")
