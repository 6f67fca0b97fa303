"""Notification outbox model."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID

from ..database.base import Base


class NotificationStatus(enum.StrEnum):
    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"


class NotificationType(enum.StrEnum):
    INITIAL_REQUEST = "initial_request"
    REMINDER = "reminder"
    COMPLETION = "completion"


class NotificationLog(Base):
    """One outbound email. Written in the same transaction as the transition it belongs to."""

    __tablename__ = "notification_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    request_id = Column(
        UUID(as_uuid=True),
        ForeignKey("recommendation_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    notification_type = Column(String(50), nullable=False)
    recipient = Column(String(255), nullable=False)
    subject = Column(String(500), default="")
    html = Column(Text, default="")
    text = Column(Text, default="")
    status = Column(
        SQLEnum(NotificationStatus, values_callable=lambda e: [s.value for s in e], native_enum=False),
        nullable=False,
        default=NotificationStatus.QUEUED,
        index=True,
    )
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    sent_at = Column(DateTime(timezone=True), nullable=True)
