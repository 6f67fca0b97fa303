"""Submission intake: the recommender hands in a letter through the secure link."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from ..notifications.models import NotificationType
from ..notifications.service import deliver, enqueue
from ..notifications.transport import EmailTransport
from .composer import compose_completion
from .errors import (
    AlreadyCompletedError,
    DeadlinePassedError,
    InvalidTransitionError,
    NotFoundError,
    SubmissionNotAcceptedError,
)
from .letters import LetterStore, LetterSubmission, SqlLetterStore
from .lifecycle import LifecycleStateMachine
from .models import RecommendationLetter, RecommendationRequest, RequestStatus
from .policy import resolve_delivery_policy
from .timeutils import Clock, as_utc, utcnow
from .tokens import TokenService

logger = logging.getLogger(__name__)


def raise_for_closed(status: RequestStatus) -> None:
    """Map a terminal status to the error the recommender should see."""
    if status == RequestStatus.RECEIVED:
        raise AlreadyCompletedError()
    if status == RequestStatus.EXPIRED:
        raise DeadlinePassedError()


class SubmissionIntake:
    def __init__(
        self,
        db: Session,
        transport: EmailTransport,
        letters: LetterStore | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._db = db
        self._transport = transport
        self._letters = letters or SqlLetterStore(db)
        self._clock = clock
        self._tokens = TokenService(db, clock)
        self._lifecycle = LifecycleStateMachine(db, clock)
        self.last_letter: RecommendationLetter | None = None

    def submit(self, token: str, submission: LetterSubmission) -> UUID:
        """Accept a letter for the request behind ``token``.

        The received transition, the letter and the completion email are
        committed together; the email is delivered afterwards and a failed
        send does not undo the submission.
        """
        request_id = self._tokens.resolve(token)
        request = self._db.get(RecommendationRequest, request_id)
        if request is None:
            raise NotFoundError(f"Recommendation request {request_id} not found")
        raise_for_closed(request.status)
        if not resolve_delivery_policy(request.request_type, request.submission_method).include_portal_link:
            raise SubmissionNotAcceptedError(f"Request {request_id} is submitted to the institution directly")

        if as_utc(request.deadline) < self._clock():
            self._close_late(request)

        try:
            request = self._lifecycle.mark_received(request_id)
        except InvalidTransitionError:
            # Lost the race against another submission or the expiry sweep
            self._db.rollback()
            self._db.expire_all()
            current = self._db.get(RecommendationRequest, request_id)
            if current is not None:
                raise_for_closed(current.status)
            raise

        self.last_letter = self._letters.store(request, submission)

        student = request.student
        outbox = None
        if student is not None and student.email:
            email = compose_completion(request)
            outbox = enqueue(
                self._db,
                request_id=request.id,
                notification_type=NotificationType.COMPLETION,
                recipient=student.email,
                subject=email.subject,
                html=email.html,
                text=email.text,
            )
        self._db.commit()
        logger.info("Letter v%d received for request %s", self.last_letter.version, request_id)

        if outbox is not None:
            deliver(self._db, outbox, self._transport)
        return request_id

    def _close_late(self, request: RecommendationRequest) -> None:
        """Past the deadline but not yet swept: expire it now and refuse."""
        try:
            self._lifecycle.expire(request.id)
        except InvalidTransitionError:
            self._db.rollback()
            self._db.expire_all()
            current = self._db.get(RecommendationRequest, request.id)
            if current is not None:
                raise_for_closed(current.status)
            raise
        self._db.commit()
        logger.info("Request %s expired on late submission", request.id)
        raise DeadlinePassedError()
