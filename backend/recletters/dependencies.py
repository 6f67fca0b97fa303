"""Shared FastAPI dependencies."""

from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .auth.models import User
from .config import settings
from .database.base import get_db
from .integrations.cache import CacheService
from .notifications.transport import EmailTransport
from .recommendations.service import RecommendationService


class AuthRequired(Exception):
    """Raised when user is not authenticated. Handled by exception handler in main.py."""

    pass


def get_cache(request: Request) -> CacheService:
    """Get the cache service from app state."""
    return request.app.state.cache


def get_email_transport(request: Request) -> EmailTransport:
    return request.app.state.email_transport


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Get the authenticated user from session."""
    user_id_str = request.session.get("user_id")
    if not user_id_str:
        raise AuthRequired()
    try:
        user_id = UUID(user_id_str)
    except (ValueError, AttributeError):
        request.session.clear()
        raise AuthRequired()
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        request.session.clear()
        raise AuthRequired()
    return user


def get_recommendation_service(
    db: Session = Depends(get_db),
    transport: EmailTransport = Depends(get_email_transport),
    cache: CacheService = Depends(get_cache),
) -> RecommendationService:
    return RecommendationService(db, transport, settings, cache=cache)
