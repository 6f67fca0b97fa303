"""Recommendation service: request creation, the reminder sweep and portal reads.

Built per call site with an injected session, transport, settings and clock;
nothing in here holds process-wide state.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from ..config import Settings
from ..integrations.cache import CacheService
from ..notifications.models import NotificationLog, NotificationType
from ..notifications.service import deliver, enqueue, flush_outbox
from ..notifications.transport import EmailTransport
from ..recipients.service import get_recipient
from .composer import compose_initial, compose_reminder
from .errors import InvalidTransitionError, NotFoundError
from .intake import SubmissionIntake
from .letters import LetterSubmission
from .lifecycle import LifecycleStateMachine, RequestDraft
from .models import RecommendationRequest, RequestStatus
from .policy import Audience, resolve_delivery_policy
from .scheduler import days_until_deadline, urgency_of
from .timeutils import Clock, as_utc, utcnow
from .tokens import TokenService

logger = logging.getLogger(__name__)

SWEEP_LOCK_NAME = "recommendation-reminder-sweep"


@dataclass
class SweepResult:
    skipped: bool = False
    expired: int = 0
    reminders_sent: int = 0
    reminders_failed: int = 0
    outbox_sent: int = 0
    outbox_failed: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def _to_uuid(value: str | UUID) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(value)
    except (ValueError, AttributeError, TypeError) as exc:
        raise NotFoundError(f"Invalid id {value!r}") from exc


class RecommendationService:
    def __init__(
        self,
        db: Session,
        transport: EmailTransport,
        config: Settings,
        clock: Clock = utcnow,
        cache: CacheService | None = None,
    ) -> None:
        self._db = db
        self._transport = transport
        self._config = config
        self._clock = clock
        self._cache = cache

    def _lifecycle(self, clock: Clock | None = None) -> LifecycleStateMachine:
        return LifecycleStateMachine(
            self._db,
            clock or self._clock,
            token_grace=timedelta(days=self._config.token_grace_days),
        )

    # ── Requester side ────────────────────────────────────────────────

    def create_request(self, student_id: UUID, recipient_id: str | UUID, **fields) -> RecommendationRequest:
        """Validate, persist, issue the token and send the first email.

        The request leaves this call ``sent`` with its initial email queued
        in the same commit; delivery runs after the commit.
        """
        recipient = get_recipient(self._db, student_id, recipient_id)
        if recipient is None:
            raise NotFoundError("Recipient not found")

        if fields.get("reminder_intervals") is None:
            fields["reminder_intervals"] = list(self._config.default_reminder_intervals)
        draft = RequestDraft(student_id=student_id, recipient_id=recipient.id, **fields)

        lifecycle = self._lifecycle()
        request = lifecycle.initialize(draft)
        outbox = self._queue_initial(request)
        request = lifecycle.mark_sent(request.id)
        self._db.commit()
        logger.info("Recommendation request %s created for recipient %s", request.id, recipient.email)

        for log in outbox:
            deliver(self._db, log, self._transport)
        self._db.refresh(request)
        return request

    def _queue_initial(self, request: RecommendationRequest) -> list[NotificationLog]:
        policy = resolve_delivery_policy(request.request_type, request.submission_method)
        email = compose_initial(request, self._config.app_base_url)
        queued = []
        for audience in policy.recipients:
            address = self._address_for(request, audience)
            if not address:
                logger.warning("Request %s has no %s address, initial email not queued", request.id, audience)
                continue
            queued.append(
                enqueue(
                    self._db,
                    request_id=request.id,
                    notification_type=NotificationType.INITIAL_REQUEST,
                    recipient=address,
                    subject=email.subject,
                    html=email.html,
                    text=email.text,
                )
            )
        return queued

    @staticmethod
    def _address_for(request: RecommendationRequest, audience: Audience) -> str | None:
        if audience == Audience.RECOMMENDER:
            return request.recipient.email if request.recipient is not None else None
        return request.student.email if request.student is not None else None

    def list_requests(self, student_id: UUID, status: str | None = None) -> list[RecommendationRequest]:
        query = self._db.query(RecommendationRequest).filter(RecommendationRequest.student_id == student_id)
        if status:
            query = query.filter(RecommendationRequest.status == RequestStatus(status))
        return query.order_by(RecommendationRequest.created_at.desc()).all()

    def get_request(self, student_id: UUID, request_id: str | UUID) -> RecommendationRequest:
        request = (
            self._db.query(RecommendationRequest)
            .filter(
                RecommendationRequest.id == _to_uuid(request_id),
                RecommendationRequest.student_id == student_id,
            )
            .first()
        )
        if request is None:
            raise NotFoundError("Recommendation request not found")
        return request

    # ── Recommender side ──────────────────────────────────────────────

    def portal_view(self, token: str) -> dict:
        """Summary shown on the secure link. Resolving never extends the token.

        ``request_id`` is for the caller's audit trail and is not shown to the recommender.
        """
        request_id = TokenService(self._db, self._clock).resolve(token)
        request = self._db.get(RecommendationRequest, request_id)
        if request is None:
            raise NotFoundError()
        policy = resolve_delivery_policy(request.request_type, request.submission_method)
        student = request.student
        return {
            "request_id": request.id,
            "title": request.title,
            "description": request.description,
            "deadline": as_utc(request.deadline).isoformat(),
            "days_until_deadline": max(0, days_until_deadline(request.deadline, self._clock())),
            "student_name": student.display_name if student is not None else "",
            "recipient_name": request.recipient.name if request.recipient is not None else "",
            "institution_name": request.institution_name,
            "school_instructions": request.school_instructions,
            "instruction_variant": policy.instruction_variant.value,
            "can_submit_here": policy.include_portal_link,
            "status": RequestStatus(request.status).value,
            "already_submitted": request.status == RequestStatus.RECEIVED,
            "draft_content": request.draft_content if request.include_draft else None,
            "additional_context": request.additional_context,
        }

    def submit_letter(self, token: str, submission: LetterSubmission) -> UUID:
        intake = SubmissionIntake(self._db, self._transport, clock=self._clock)
        return intake.submit(token, submission)

    # ── Sweep ─────────────────────────────────────────────────────────

    def run_reminder_sweep(self, now: datetime | None = None) -> SweepResult:
        """Expire overdue requests, send due reminders, retry the outbox.

        Safe to run concurrently and to re-run after a crash: every write is
        a conditional transition, the lock only avoids duplicated work.
        """
        now = as_utc(now) if now is not None else self._clock()
        holder = "local"
        if self._cache is not None:
            holder = self._cache.acquire_lock(SWEEP_LOCK_NAME, self._config.sweep_lock_ttl_seconds)
            if holder is None:
                logger.info("Reminder sweep already running elsewhere, skipping")
                return SweepResult(skipped=True)

        result = SweepResult()
        try:
            lifecycle = self._lifecycle(lambda: now)
            self._expire_overdue(lifecycle, now, result)
            # Retry earlier failures before queueing new rows, so a fresh failure waits for the next sweep
            outbox = flush_outbox(self._db, self._transport, self._config.outbox_max_deliveries)
            result.outbox_sent = outbox.sent
            result.outbox_failed = outbox.failed
            self._send_due_reminders(lifecycle, now, result)
        finally:
            if self._cache is not None:
                self._cache.release_lock(SWEEP_LOCK_NAME, holder)

        logger.info(
            "Reminder sweep at %s: %d expired, %d reminders sent, %d failed, %d errors",
            now.isoformat(),
            result.expired,
            result.reminders_sent,
            result.reminders_failed,
            result.errors,
        )
        return result

    def _expire_overdue(self, lifecycle: LifecycleStateMachine, now: datetime, result: SweepResult) -> None:
        overdue = [
            row.id
            for row in self._db.query(RecommendationRequest.id)
            .filter(
                RecommendationRequest.status == RequestStatus.SENT,
                RecommendationRequest.deadline < now,
            )
            .all()
        ]
        for request_id in overdue:
            try:
                lifecycle.expire(request_id)
                self._db.commit()
                result.expired += 1
            except InvalidTransitionError:
                # Received or expired by someone else since the query
                self._db.rollback()
            except Exception:
                self._db.rollback()
                result.errors += 1
                logger.exception("Failed to expire request %s", request_id)

    def _send_due_reminders(self, lifecycle: LifecycleStateMachine, now: datetime, result: SweepResult) -> None:
        due = (
            self._db.query(RecommendationRequest)
            .filter(
                RecommendationRequest.status == RequestStatus.SENT,
                RecommendationRequest.next_reminder_date.isnot(None),
                RecommendationRequest.next_reminder_date <= now,
                RecommendationRequest.deadline > now,
            )
            .order_by(RecommendationRequest.next_reminder_date.asc())
            .all()
        )
        for request in due:
            request_id = request.id
            try:
                log = self._queue_reminder(request, now)
                lifecycle.advance_reminder(request_id, request.next_reminder_date)
                self._db.commit()
            except InvalidTransitionError:
                # Another sweep already advanced this slot
                self._db.rollback()
                continue
            except Exception:
                self._db.rollback()
                result.errors += 1
                logger.exception("Failed to process reminder for request %s", request_id)
                continue

            if log is None:
                continue
            if deliver(self._db, log, self._transport):
                result.reminders_sent += 1
            else:
                result.reminders_failed += 1

    def _queue_reminder(self, request: RecommendationRequest, now: datetime) -> NotificationLog | None:
        days = days_until_deadline(request.deadline, now)
        email = compose_reminder(request, days, urgency_of(days), self._config.app_base_url)
        address = self._address_for(request, Audience.RECOMMENDER)
        if not address:
            logger.warning("Request %s has no recommender address, reminder recorded without email", request.id)
            return None
        return enqueue(
            self._db,
            request_id=request.id,
            notification_type=NotificationType.REMINDER,
            recipient=address,
            subject=email.subject,
            html=email.html,
            text=email.text,
        )
