"""Tests for the request lifecycle state machine."""

from datetime import timedelta

import pytest

from recletters.recommendations.errors import InvalidPolicyError, InvalidTransitionError, NotFoundError
from recletters.recommendations.lifecycle import (
    ALLOWED_TRANSITIONS,
    LifecycleStateMachine,
    RequestDraft,
    can_transition,
)
from recletters.recommendations.models import RecommendationRequest, RequestStatus


def _draft(test_user, test_recipient, clock, **overrides):
    fields = {
        "student_id": test_user.id,
        "recipient_id": test_recipient.id,
        "title": "Graduate School",
        "description": "PhD application",
        "deadline": clock() + timedelta(days=10),
    }
    fields.update(overrides)
    return RequestDraft(**fields)


@pytest.fixture
def lifecycle(db_session, clock):
    return LifecycleStateMachine(db_session, clock)


@pytest.fixture
def sent_request(db_session, lifecycle, test_user, test_recipient, clock):
    request = lifecycle.initialize(_draft(test_user, test_recipient, clock))
    request = lifecycle.mark_sent(request.id)
    db_session.commit()
    return request


class TestRequestDraft:
    def test_resolves_policy(self, test_user, test_recipient, clock):
        draft = _draft(test_user, test_recipient, clock, request_type="hybrid", submission_method="both")
        assert draft.policy.include_portal_link is True

    def test_rejects_mismatched_routing(self, test_user, test_recipient, clock):
        with pytest.raises(InvalidPolicyError):
            _draft(test_user, test_recipient, clock, request_type="hybrid", submission_method="platform_only")

    def test_rejects_bad_intervals(self, test_user, test_recipient, clock):
        with pytest.raises(ValueError):
            _draft(test_user, test_recipient, clock, reminder_intervals=[1, 3])

    def test_requires_title(self, test_user, test_recipient, clock):
        with pytest.raises(ValueError):
            _draft(test_user, test_recipient, clock, title="   ")

    def test_past_deadline_rejected_on_initialize(self, lifecycle, test_user, test_recipient, clock):
        draft = _draft(test_user, test_recipient, clock, deadline=clock() - timedelta(hours=1))
        with pytest.raises(ValueError):
            lifecycle.initialize(draft)


class TestTransitionTable:
    def test_terminal_states_have_no_exits(self):
        assert ALLOWED_TRANSITIONS[RequestStatus.RECEIVED] == frozenset()
        assert ALLOWED_TRANSITIONS[RequestStatus.EXPIRED] == frozenset()

    def test_no_backward_moves(self):
        assert not can_transition(RequestStatus.SENT, RequestStatus.PENDING)
        assert not can_transition(RequestStatus.RECEIVED, RequestStatus.SENT)
        assert can_transition(RequestStatus.SENT, RequestStatus.SENT)


class TestLifecycle:
    def test_initialize_persists_pending(self, db_session, lifecycle, test_user, test_recipient, clock):
        request = lifecycle.initialize(_draft(test_user, test_recipient, clock))
        db_session.commit()
        assert request.status == RequestStatus.PENDING
        assert request.secure_token
        assert request.reminder_count == 0

    def test_mark_sent_sets_first_cursor(self, sent_request, clock):
        assert sent_request.status == RequestStatus.SENT
        assert sent_request.sent_at is not None
        expected = clock() + timedelta(days=3)  # deadline - 7 days
        assert sent_request.next_reminder_date.replace(tzinfo=None) == expected.replace(tzinfo=None)

    def test_mark_sent_twice_rejected(self, lifecycle, sent_request):
        with pytest.raises(InvalidTransitionError):
            lifecycle.mark_sent(sent_request.id)

    def test_advance_reminder(self, db_session, lifecycle, sent_request, clock):
        clock.advance(days=3)
        request = lifecycle.advance_reminder(sent_request.id, sent_request.next_reminder_date)
        db_session.commit()
        assert request.reminder_count == 1
        assert request.last_reminder_sent_at is not None
        expected = clock() + timedelta(days=4)  # deadline - 3 days
        assert request.next_reminder_date.replace(tzinfo=None) == expected.replace(tzinfo=None)

    def test_advance_with_stale_cursor_rejected(self, db_session, lifecycle, sent_request, clock):
        clock.advance(days=3)
        cursor = sent_request.next_reminder_date
        lifecycle.advance_reminder(sent_request.id, cursor)
        db_session.commit()
        with pytest.raises(InvalidTransitionError):
            lifecycle.advance_reminder(sent_request.id, cursor)
        db_session.rollback()
        assert db_session.get(RecommendationRequest, sent_request.id).reminder_count == 1

    def test_mark_received_clears_cursor(self, db_session, lifecycle, sent_request):
        request = lifecycle.mark_received(sent_request.id)
        db_session.commit()
        assert request.status == RequestStatus.RECEIVED
        assert request.received_at is not None
        assert request.next_reminder_date is None

    def test_received_is_terminal(self, db_session, lifecycle, sent_request, clock):
        lifecycle.mark_received(sent_request.id)
        db_session.commit()
        clock.advance(days=11)
        with pytest.raises(InvalidTransitionError):
            lifecycle.expire(sent_request.id)
        with pytest.raises(InvalidTransitionError):
            lifecycle.mark_received(sent_request.id)
        db_session.rollback()
        assert db_session.get(RecommendationRequest, sent_request.id).status == RequestStatus.RECEIVED

    def test_expire_before_deadline_rejected(self, lifecycle, sent_request):
        with pytest.raises(InvalidTransitionError):
            lifecycle.expire(sent_request.id)

    def test_expire_after_deadline(self, db_session, lifecycle, sent_request, clock):
        clock.advance(days=10, hours=1)
        request = lifecycle.expire(sent_request.id)
        db_session.commit()
        assert request.status == RequestStatus.EXPIRED
        assert request.expired_at is not None
        assert request.next_reminder_date is None

    def test_unknown_request(self, lifecycle):
        import uuid

        with pytest.raises(NotFoundError):
            lifecycle.mark_received(uuid.uuid4())
