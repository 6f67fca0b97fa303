"""Audit trail of requester and recommender actions."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID

from ..database.base import Base


class AuditActor(enum.StrEnum):
    REQUESTER = "requester"
    RECOMMENDER = "recommender"
    ANONYMOUS = "anonymous"


class AuditLog(Base):
    """One action. Recommenders never log in, so their rows carry no user_id
    and are tied to the request whose secure link they used."""

    __tablename__ = "audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    request_id = Column(
        UUID(as_uuid=True),
        ForeignKey("recommendation_requests.id", ondelete="SET NULL"),
        nullable=True,
    )
    actor = Column(
        SQLEnum(AuditActor, values_callable=lambda e: [s.value for s in e], native_enum=False),
        nullable=False,
        default=AuditActor.ANONYMOUS,
    )
    action = Column(String(50), nullable=False, index=True)
    detail = Column(Text, default="")
    ip_address = Column(String(45), default="")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        index=True,
    )

    __table_args__ = (Index("idx_audit_logs_request_created", "request_id", "created_at"),)
