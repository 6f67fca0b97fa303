"""Letter storage for submitted recommendations."""

from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from .models import RecommendationLetter, RecommendationRequest


@dataclass(frozen=True)
class LetterSubmission:
    """What a recommender hands in: text, an uploaded file reference, or both."""

    content: str = ""
    file_name: str | None = None
    file_url: str | None = None
    file_type: str | None = None
    file_size: int | None = None

    def __post_init__(self) -> None:
        if not (self.content or "").strip() and not (self.file_url or "").strip():
            raise ValueError("Either letter content or a file URL is required")
        if self.file_size is not None and self.file_size < 0:
            raise ValueError("File size cannot be negative")


class LetterStore(Protocol):
    def store(self, request: RecommendationRequest, submission: LetterSubmission) -> RecommendationLetter: ...


class SqlLetterStore:
    """Adds a new letter version in the caller's transaction."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def store(self, request: RecommendationRequest, submission: LetterSubmission) -> RecommendationLetter:
        latest = (
            self._db.query(func.max(RecommendationLetter.version))
            .filter(RecommendationLetter.request_id == request.id)
            .scalar()
        )
        recipient = request.recipient
        letter = RecommendationLetter(
            request_id=request.id,
            recipient_id=request.recipient_id,
            content=(submission.content or "").strip(),
            file_name=submission.file_name,
            file_url=submission.file_url,
            file_type=submission.file_type,
            file_size=submission.file_size,
            submitted_by=recipient.email if recipient is not None else "recommender",
            version=(latest or 0) + 1,
        )
        self._db.add(letter)
        self._db.flush()
        return letter


def latest_letter(db: Session, request_id: UUID) -> RecommendationLetter | None:
    return (
        db.query(RecommendationLetter)
        .filter(RecommendationLetter.request_id == request_id)
        .order_by(RecommendationLetter.version.desc())
        .first()
    )
