"""Recommender contact model."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database.base import Base


class Recipient(Base):
    """A person the requester can ask for letters (professor, manager, ...)."""

    __tablename__ = "recipients"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    title = Column(String(255), default="")
    institution = Column(String(255), default="")
    department = Column(String(255), default="")
    phone = Column(String(50), default="")
    prefers_drafts = Column(Boolean, default=False)
    notes = Column(Text, default="")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
    )

    owner = relationship("User", back_populates="recipients")
    requests = relationship("RecommendationRequest", back_populates="recipient")

    __table_args__ = (UniqueConstraint("owner_id", "email", name="uq_recipients_owner_email"),)
