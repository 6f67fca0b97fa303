"""Tests for letter submission through the secure link."""

import uuid
from datetime import timedelta

import pytest

from recletters.auth.models import User
from recletters.notifications.models import NotificationLog, NotificationStatus
from recletters.recipients.models import Recipient
from recletters.recommendations.errors import (
    AlreadyCompletedError,
    DeadlinePassedError,
    ExpiredError,
    NotFoundError,
    SubmissionNotAcceptedError,
)
from recletters.recommendations.intake import SubmissionIntake
from recletters.recommendations.letters import LetterSubmission
from recletters.recommendations.lifecycle import LifecycleStateMachine, RequestDraft
from recletters.recommendations.models import RecommendationLetter, RecommendationRequest, RequestStatus


class TestLetterSubmission:
    def test_requires_content_or_file(self):
        with pytest.raises(ValueError):
            LetterSubmission(content="  ")

    def test_file_only_is_enough(self):
        submission = LetterSubmission(file_url="https://files.example.com/letter.pdf", file_name="letter.pdf")
        assert submission.file_url


class TestSubmit:
    def test_success(self, db_session, make_request, transport, clock):
        request = make_request()
        intake = SubmissionIntake(db_session, transport, clock=clock)

        request_id = intake.submit(request.secure_token, LetterSubmission(content="Ada is outstanding."))

        stored = db_session.get(RecommendationRequest, request_id)
        assert stored.status == RequestStatus.RECEIVED
        assert stored.next_reminder_date is None
        letter = db_session.query(RecommendationLetter).filter_by(request_id=request_id).one()
        assert letter.version == 1
        assert letter.content == "Ada is outstanding."
        assert letter.submitted_by == "hopper@university.edu"
        assert transport.subjects()[-1] == "Recommendation Letter Received - Graduate School Application"
        assert transport.sent[-1]["to"] == "student@example.com"

    def test_double_submission(self, db_session, make_request, transport, clock):
        request = make_request()
        intake = SubmissionIntake(db_session, transport, clock=clock)
        intake.submit(request.secure_token, LetterSubmission(content="First"))

        with pytest.raises(AlreadyCompletedError):
            intake.submit(request.secure_token, LetterSubmission(content="Second"))
        assert db_session.query(RecommendationLetter).count() == 1

    def test_school_only_request_refuses_portal_submission(self, db_session, make_request, transport, clock):
        request = make_request(
            request_type="school_direct",
            submission_method="school_only",
            institution_name="MIT",
            school_email="admissions@mit.edu",
        )
        intake = SubmissionIntake(db_session, transport, clock=clock)

        with pytest.raises(SubmissionNotAcceptedError):
            intake.submit(request.secure_token, LetterSubmission(content="Ada is outstanding."))
        db_session.refresh(request)
        assert request.status == RequestStatus.SENT
        assert db_session.query(RecommendationLetter).count() == 0

    def test_hybrid_request_accepts_portal_submission(self, db_session, make_request, transport, clock):
        request = make_request(request_type="hybrid", submission_method="both", institution_name="MIT")
        intake = SubmissionIntake(db_session, transport, clock=clock)
        intake.submit(request.secure_token, LetterSubmission(content="Ada is outstanding."))
        db_session.refresh(request)
        assert request.status == RequestStatus.RECEIVED

    def test_unknown_token(self, db_session, transport, clock):
        with pytest.raises(NotFoundError):
            SubmissionIntake(db_session, transport, clock=clock).submit("nope", LetterSubmission(content="x"))

    def test_expired_request(self, db_session, make_request, service, transport, clock):
        request = make_request()
        clock.advance(days=10, hours=1)
        service.run_reminder_sweep()

        with pytest.raises(DeadlinePassedError):
            SubmissionIntake(db_session, transport, clock=clock).submit(
                request.secure_token, LetterSubmission(content="Late")
            )

    def test_late_submission_before_sweep_expires_request(self, db_session, make_request, transport, clock):
        request = make_request()
        clock.advance(days=10, minutes=5)

        with pytest.raises(DeadlinePassedError):
            SubmissionIntake(db_session, transport, clock=clock).submit(
                request.secure_token, LetterSubmission(content="Late")
            )
        assert db_session.get(RecommendationRequest, request.id).status == RequestStatus.EXPIRED

    def test_token_expired_even_after_received(self, db_session, make_request, transport, clock):
        request = make_request()
        intake = SubmissionIntake(db_session, transport, clock=clock)
        intake.submit(request.secure_token, LetterSubmission(content="Done"))

        clock.advance(days=41)
        with pytest.raises(ExpiredError):
            intake.submit(request.secure_token, LetterSubmission(content="Again"))

    def test_delivery_failure_keeps_submission(self, db_session, make_request, transport, clock):
        request = make_request()
        transport.fail = True

        request_id = SubmissionIntake(db_session, transport, clock=clock).submit(
            request.secure_token, LetterSubmission(content="Stored anyway")
        )

        assert db_session.get(RecommendationRequest, request_id).status == RequestStatus.RECEIVED
        completion = (
            db_session.query(NotificationLog)
            .filter_by(request_id=request_id, notification_type="completion")
            .one()
        )
        assert completion.status == NotificationStatus.FAILED
        assert completion.attempts == 1
        assert "smtp down" in completion.last_error


class TestConcurrentSubmission:
    def test_stale_session_loses_race(self, file_session_factory, clock, transport):
        setup = file_session_factory()
        student = User(id=uuid.uuid4(), email="race@example.com", name="Racer", password_hash="x")
        recipient = Recipient(id=uuid.uuid4(), owner_id=student.id, name="Prof. X", email="x@uni.edu")
        setup.add_all([student, recipient])
        setup.flush()
        lifecycle = LifecycleStateMachine(setup, clock)
        request = lifecycle.initialize(
            RequestDraft(
                student_id=student.id,
                recipient_id=recipient.id,
                title="Race",
                description="Two tabs",
                deadline=clock() + timedelta(days=5),
            )
        )
        lifecycle.mark_sent(request.id)
        setup.commit()
        token, request_id = request.secure_token, request.id
        setup.close()

        first, second = file_session_factory(), file_session_factory()
        try:
            # Both sessions have seen the request as "sent"
            assert second.get(RecommendationRequest, request_id).status == RequestStatus.SENT

            SubmissionIntake(first, transport, clock=clock).submit(token, LetterSubmission(content="A"))

            with pytest.raises(AlreadyCompletedError):
                SubmissionIntake(second, transport, clock=clock).submit(
                    token, LetterSubmission(content="B")
                )
        finally:
            first.close()
            second.close()

        check = file_session_factory()
        try:
            assert check.query(RecommendationLetter).filter_by(request_id=request_id).count() == 1
            assert check.get(RecommendationRequest, request_id).status == RequestStatus.RECEIVED
        finally:
            check.close()
