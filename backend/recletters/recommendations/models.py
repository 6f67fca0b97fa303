"""Recommendation request and letter models and enums."""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy import (
    Enum as SQLEnum,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database.base import Base


class RequestStatus(enum.StrEnum):
    """Lifecycle status. DRAFT never reaches the database."""

    DRAFT = "draft"
    PENDING = "pending"
    SENT = "sent"
    RECEIVED = "received"
    EXPIRED = "expired"


class RequestType(enum.StrEnum):
    DIRECT_PLATFORM = "direct_platform"
    SCHOOL_DIRECT = "school_direct"
    HYBRID = "hybrid"


class SubmissionMethod(enum.StrEnum):
    PLATFORM_ONLY = "platform_only"
    SCHOOL_ONLY = "school_only"
    BOTH = "both"


class CommunicationStyle(enum.StrEnum):
    FORMAL = "formal"
    POLITE = "polite"
    FRIENDLY = "friendly"


class Priority(enum.StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _enum_column(enum_cls, default):
    return Column(
        SQLEnum(enum_cls, values_callable=lambda e: [s.value for s in e], native_enum=False),
        nullable=False,
        default=default,
    )


class RecommendationRequest(Base):
    __tablename__ = "recommendation_requests"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    recipient_id = Column(
        UUID(as_uuid=True),
        ForeignKey("recipients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Request details
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    additional_context = Column(Text, nullable=True)
    relationship_context = Column(Text, nullable=True)
    communication_style = _enum_column(CommunicationStyle, CommunicationStyle.POLITE)
    priority = _enum_column(Priority, Priority.MEDIUM)

    # Routing
    request_type = _enum_column(RequestType, RequestType.DIRECT_PLATFORM)
    submission_method = _enum_column(SubmissionMethod, SubmissionMethod.PLATFORM_ONLY)
    institution_name = Column(String(255), nullable=True)
    school_email = Column(String(255), nullable=True)
    school_instructions = Column(Text, nullable=True)

    # Draft assist
    include_draft = Column(Boolean, default=False)
    draft_content = Column(Text, nullable=True)

    # Timing
    deadline = Column(DateTime(timezone=True), nullable=False)
    reminder_intervals = Column(JSON, default=list)
    next_reminder_date = Column(DateTime(timezone=True), nullable=True)
    last_reminder_sent_at = Column(DateTime(timezone=True), nullable=True)
    reminder_count = Column(Integer, default=0, nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=True)
    expired_at = Column(DateTime(timezone=True), nullable=True)

    # Token (issued once, after the row exists)
    secure_token = Column(String(128), nullable=True, unique=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)

    status = _enum_column(RequestStatus, RequestStatus.PENDING)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    student = relationship("User", back_populates="recommendation_requests")
    recipient = relationship("Recipient", back_populates="requests")
    letters = relationship(
        "RecommendationLetter",
        back_populates="request",
        order_by="RecommendationLetter.version.desc()",
    )

    __table_args__ = (
        Index("idx_recrequests_student_status", "student_id", "status"),
        Index("idx_recrequests_deadline_status", "deadline", "status"),
        Index("idx_recrequests_next_reminder_status", "next_reminder_date", "status"),
        Index("idx_recrequests_created", "created_at"),
    )

class RecommendationLetter(Base):
    """A submitted letter. Each resubmission would add a new version."""

    __tablename__ = "recommendation_letters"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    request_id = Column(
        UUID(as_uuid=True),
        ForeignKey("recommendation_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    recipient_id = Column(
        UUID(as_uuid=True),
        ForeignKey("recipients.id", ondelete="SET NULL"),
        nullable=True,
    )

    content = Column(Text, default="")
    file_name = Column(String(255), nullable=True)
    file_url = Column(String(1000), nullable=True)
    file_type = Column(String(100), nullable=True)
    file_size = Column(Integer, nullable=True)

    submitted_by = Column(String(255), nullable=False)
    submitted_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )
    version = Column(Integer, nullable=False, default=1)

    request = relationship("RecommendationRequest", back_populates="letters")

    __table_args__ = (UniqueConstraint("request_id", "version", name="uq_recletters_request_version"),)
