"""Lifecycle state machine for recommendation requests.

    draft -> pending -> sent -> (reminded)* -> received | expired

This is the only module that writes a request's status or reminder cursor.
Every transition is a conditional UPDATE on the status the caller expects, so
a transition that lost a race (or was already applied by an earlier sweep)
changes nothing and raises InvalidTransitionError.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from .errors import InvalidTransitionError, NotFoundError
from .models import (
    CommunicationStyle,
    Priority,
    RecommendationRequest,
    RequestStatus,
    RequestType,
    SubmissionMethod,
)
from .policy import DeliveryPolicy, resolve_delivery_policy
from .scheduler import next_reminder, validate_intervals
from .timeutils import Clock, as_utc, utcnow
from .tokens import TokenService

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.DRAFT: frozenset({RequestStatus.PENDING}),
    RequestStatus.PENDING: frozenset({RequestStatus.SENT}),
    RequestStatus.SENT: frozenset({RequestStatus.SENT, RequestStatus.RECEIVED, RequestStatus.EXPIRED}),
    RequestStatus.RECEIVED: frozenset(),
    RequestStatus.EXPIRED: frozenset(),
}


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(RequestStatus(current), frozenset())


@dataclass
class RequestDraft:
    """A validated, not yet persisted request (the ``draft`` state).

    Construction resolves the delivery policy, so an unroutable
    request_type/submission_method pair never gets past this point.
    """

    student_id: UUID
    recipient_id: UUID
    title: str
    description: str
    deadline: datetime
    request_type: RequestType = RequestType.DIRECT_PLATFORM
    submission_method: SubmissionMethod = SubmissionMethod.PLATFORM_ONLY
    communication_style: CommunicationStyle = CommunicationStyle.POLITE
    priority: Priority = Priority.MEDIUM
    relationship_context: str | None = None
    additional_context: str | None = None
    institution_name: str | None = None
    school_email: str | None = None
    school_instructions: str | None = None
    include_draft: bool = False
    draft_content: str | None = None
    reminder_intervals: list[int] = field(default_factory=lambda: [7, 3, 1])
    policy: DeliveryPolicy = field(init=False)

    def __post_init__(self) -> None:
        self.policy = resolve_delivery_policy(self.request_type, self.submission_method)
        self.request_type = RequestType(self.request_type)
        self.submission_method = SubmissionMethod(self.submission_method)
        self.communication_style = CommunicationStyle(self.communication_style)
        self.priority = Priority(self.priority)
        self.deadline = as_utc(self.deadline)
        self.reminder_intervals = validate_intervals(list(self.reminder_intervals))
        if not self.title.strip() or not self.description.strip():
            raise ValueError("Title and description are required")

    def validate_deadline(self, now: datetime) -> None:
        if self.deadline <= as_utc(now):
            raise ValueError("Deadline must be in the future")


class LifecycleStateMachine:
    def __init__(self, db: Session, clock: Clock = utcnow, token_grace: timedelta = timedelta(days=30)) -> None:
        self._db = db
        self._clock = clock
        self._token_grace = token_grace
        self._tokens = TokenService(db, clock)

    # ── draft -> pending ──────────────────────────────────────────────

    def initialize(self, draft: RequestDraft) -> RecommendationRequest:
        """Persist a draft as ``pending`` and issue its secure token.

        The token lives until the deadline plus the grace period, so the
        recommender can still open the page after the request closes.
        """
        now = self._clock()
        draft.validate_deadline(now)

        request = RecommendationRequest(
            student_id=draft.student_id,
            recipient_id=draft.recipient_id,
            title=draft.title.strip(),
            description=draft.description.strip(),
            deadline=draft.deadline,
            request_type=draft.request_type,
            submission_method=draft.submission_method,
            communication_style=draft.communication_style,
            priority=draft.priority,
            relationship_context=draft.relationship_context,
            additional_context=draft.additional_context,
            institution_name=draft.institution_name,
            school_email=draft.school_email,
            school_instructions=draft.school_instructions,
            include_draft=draft.include_draft,
            draft_content=draft.draft_content,
            reminder_intervals=draft.reminder_intervals,
            reminder_count=0,
            status=RequestStatus.PENDING,
        )
        self._db.add(request)
        self._db.flush()

        self._tokens.issue(request.id, (draft.deadline - now) + self._token_grace)
        logger.info("Request %s initialized (deadline %s)", request.id, draft.deadline.isoformat())
        return request

    # ── pending -> sent ───────────────────────────────────────────────

    def mark_sent(self, request_id: UUID) -> RecommendationRequest:
        now = self._clock()
        request = self._load(request_id)
        first_reminder = next_reminder(request, now)
        self._apply(
            request_id,
            RequestStatus.PENDING,
            {
                "status": RequestStatus.SENT,
                "sent_at": now,
                "next_reminder_date": first_reminder,
            },
        )
        logger.info(
            "Request %s sent, first reminder %s",
            request_id,
            first_reminder.isoformat() if first_reminder else "none",
        )
        return self._load(request_id, refresh=True)

    # ── sent -> sent (reminder fired) ─────────────────────────────────

    def advance_reminder(self, request_id: UUID, observed_cursor: datetime | None) -> RecommendationRequest:
        """Record a fired reminder and move the cursor to the next slot.

        Conditioned on the cursor value the caller saw, so two overlapping
        sweeps cannot both advance the same slot.
        """
        now = self._clock()
        request = self._load(request_id)
        if observed_cursor is None:
            raise InvalidTransitionError(f"Request {request_id} has no pending reminder")

        fired = _FiredReminder(request, now)
        following = next_reminder(fired, now)
        self._apply(
            request_id,
            RequestStatus.SENT,
            {
                "last_reminder_sent_at": now,
                "next_reminder_date": following,
                "reminder_count": RecommendationRequest.reminder_count + 1,
            },
            extra_criteria=(RecommendationRequest.next_reminder_date == observed_cursor,),
        )
        logger.info(
            "Request %s reminder recorded, next %s",
            request_id,
            following.isoformat() if following else "none",
        )
        return self._load(request_id, refresh=True)

    # ── sent -> received ──────────────────────────────────────────────

    def mark_received(self, request_id: UUID) -> RecommendationRequest:
        now = self._clock()
        self._apply(
            request_id,
            RequestStatus.SENT,
            {
                "status": RequestStatus.RECEIVED,
                "received_at": now,
                "next_reminder_date": None,
            },
        )
        logger.info("Request %s received", request_id)
        return self._load(request_id, refresh=True)

    # ── sent -> expired ───────────────────────────────────────────────

    def expire(self, request_id: UUID) -> RecommendationRequest:
        now = self._clock()
        self._apply(
            request_id,
            RequestStatus.SENT,
            {
                "status": RequestStatus.EXPIRED,
                "expired_at": now,
                "next_reminder_date": None,
            },
            extra_criteria=(RecommendationRequest.deadline < now,),
        )
        logger.info("Request %s expired", request_id)
        return self._load(request_id, refresh=True)

    # ── internals ─────────────────────────────────────────────────────

    def _load(self, request_id: UUID, refresh: bool = False) -> RecommendationRequest:
        request = self._db.get(RecommendationRequest, request_id)
        if request is None:
            raise NotFoundError(f"Recommendation request {request_id} not found")
        if refresh:
            self._db.refresh(request)
        return request

    def _apply(self, request_id: UUID, expected: RequestStatus, values: dict, extra_criteria: tuple = ()) -> None:
        """Check-and-set on status. Raises InvalidTransitionError when nothing matched."""
        target = values.get("status", expected)
        if not can_transition(expected, target):
            raise InvalidTransitionError(f"Illegal transition {expected.value} -> {RequestStatus(target).value}")
        self._db.flush()
        updated = (
            self._db.query(RecommendationRequest)
            .filter(
                RecommendationRequest.id == request_id,
                RecommendationRequest.status == expected,
                *extra_criteria,
            )
            .update(values, synchronize_session=False)
        )
        if updated:
            return

        current = (
            self._db.query(RecommendationRequest.status).filter(RecommendationRequest.id == request_id).scalar()
        )
        if current is None:
            raise NotFoundError(f"Recommendation request {request_id} not found")
        raise InvalidTransitionError(
            f"Cannot move request {request_id} from {RequestStatus(current).value} to {RequestStatus(target).value}"
        )


class _FiredReminder:
    """Read-only view of a request as it looks right after a reminder fired."""

    def __init__(self, request: RecommendationRequest, fired_at: datetime) -> None:
        self.deadline = request.deadline
        self.reminder_intervals = request.reminder_intervals
        self.last_reminder_sent_at = fired_at
