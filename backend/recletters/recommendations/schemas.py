"""Recommendation request/response schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from .models import CommunicationStyle, Priority, RequestType, SubmissionMethod


class RecommendationCreateRequest(BaseModel):
    recipient_id: str
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1, max_length=10_000)
    deadline: datetime
    request_type: RequestType = RequestType.DIRECT_PLATFORM
    submission_method: SubmissionMethod = SubmissionMethod.PLATFORM_ONLY
    communication_style: CommunicationStyle = CommunicationStyle.POLITE
    priority: Priority = Priority.MEDIUM
    relationship_context: str | None = Field(None, max_length=2_000)
    additional_context: str | None = Field(None, max_length=10_000)
    institution_name: str | None = Field(None, max_length=255)
    school_email: str | None = Field(None, max_length=255)
    school_instructions: str | None = Field(None, max_length=5_000)
    include_draft: bool = False
    draft_content: str | None = Field(None, max_length=50_000)
    # None means the configured default ladder
    reminder_intervals: list[int] | None = None


class LetterSubmitRequest(BaseModel):
    content: str = Field("", max_length=100_000)
    file_name: str | None = Field(None, max_length=255)
    file_url: str | None = Field(None, max_length=1000)
    file_type: str | None = Field(None, max_length=100)
    file_size: int | None = Field(None, ge=0)

    @model_validator(mode="after")
    def _content_or_file(self):
        if not self.content.strip() and not (self.file_url or "").strip():
            raise ValueError("Either letter content or a file URL is required")
        return self


class LetterResponse(BaseModel):
    id: str
    version: int
    content: str
    file_name: str | None = None
    file_url: str | None = None
    file_type: str | None = None
    file_size: int | None = None
    submitted_by: str
    submitted_at: str | None = None


class RecommendationResponse(BaseModel):
    id: str
    title: str
    description: str
    status: str
    request_type: str
    submission_method: str
    priority: str
    deadline: str
    recipient_id: str
    recipient_name: str = ""
    recipient_email: str = ""
    reminder_intervals: list[int] = Field(default_factory=list)
    reminder_count: int = 0
    next_reminder_date: str | None = None
    sent_at: str | None = None
    received_at: str | None = None
    expired_at: str | None = None
    created_at: str | None = None
    letter: LetterResponse | None = None


class PortalView(BaseModel):
    """What the recommender sees when opening the secure link."""

    title: str
    description: str
    deadline: str
    days_until_deadline: int
    student_name: str
    recipient_name: str
    institution_name: str | None = None
    school_instructions: str | None = None
    instruction_variant: str
    can_submit_here: bool
    status: str
    already_submitted: bool
    draft_content: str | None = None
    additional_context: str | None = None


class SweepResponse(BaseModel):
    skipped: bool = False
    expired: int = 0
    reminders_sent: int = 0
    reminders_failed: int = 0
    outbox_sent: int = 0
    outbox_failed: int = 0
    errors: int = 0


DraftTemplate = Literal["academic", "professional", "scholarship", "research", "leadership"]
DraftModel = Literal["haiku", "sonnet"]


class DraftGenerateRequest(BaseModel):
    recipient_id: str
    purpose: str = Field(..., min_length=1, max_length=2_000)
    highlights: list[str] = Field(default_factory=list, max_length=20)
    relationship: str = Field("student", max_length=500)
    template_type: DraftTemplate = "academic"
    custom_instructions: str | None = Field(None, max_length=2_000)
    model: DraftModel | None = None


class DraftRefineRequest(BaseModel):
    current_draft: str = Field(..., min_length=1, max_length=50_000)
    feedback: str = Field(..., min_length=1, max_length=5_000)
    additional_context: str | None = Field(None, max_length=5_000)
    recipient_id: str | None = None
    purpose: str | None = Field(None, max_length=2_000)
    template_type: DraftTemplate = "academic"
    model: DraftModel | None = None


class DraftResponse(BaseModel):
    draft: str
    model_used: str
    from_cache: bool
    tokens: dict[str, int] = Field(default_factory=dict)
    cost_usd: float = 0.0
