"""Audit log service."""

import contextlib
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from ..rate_limit import client_ip
from .models import AuditActor, AuditLog


def _session_user_id(request: Request) -> UUID | None:
    uid = request.session.get("user_id")
    if uid:
        with contextlib.suppress(ValueError, AttributeError):
            return UUID(uid)
    return None


def audit(
    db: Session,
    request: Request,
    action: str,
    detail: str = "",
    user_id: UUID | None = None,
    request_id: UUID | None = None,
    actor: AuditActor | None = None,
) -> None:
    """Write an audit log entry.

    The actor defaults to the logged-in requester, or anonymous when there is
    no session. Portal routes pass ``actor=RECOMMENDER`` with the request id
    resolved from the token; those rows never take a user from the session.
    """
    if user_id is None and actor != AuditActor.RECOMMENDER:
        user_id = _session_user_id(request)
    if actor is None:
        actor = AuditActor.REQUESTER if user_id else AuditActor.ANONYMOUS

    db.add(
        AuditLog(
            user_id=user_id,
            request_id=request_id,
            actor=actor,
            action=action,
            detail=detail,
            ip_address=client_ip(request),
        )
    )


def request_activity(db: Session, request_id: UUID, limit: int = 100) -> list[AuditLog]:
    """Actions recorded against one recommendation request, oldest first."""
    return (
        db.query(AuditLog)
        .filter(AuditLog.request_id == request_id)
        .order_by(AuditLog.created_at.asc())
        .limit(limit)
        .all()
    )
