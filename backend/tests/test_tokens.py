"""Tests for secure token issue and resolution."""

from datetime import timedelta

import pytest

from recletters.recommendations.errors import ConflictError, ExpiredError, NotFoundError
from recletters.recommendations.lifecycle import LifecycleStateMachine, RequestDraft
from recletters.recommendations.tokens import TokenService, generate_token


@pytest.fixture
def pending_request(db_session, test_user, test_recipient, clock):
    draft = RequestDraft(
        student_id=test_user.id,
        recipient_id=test_recipient.id,
        title="Scholarship",
        description="Fulbright",
        deadline=clock() + timedelta(days=10),
    )
    request = LifecycleStateMachine(db_session, clock).initialize(draft)
    db_session.commit()
    return request


class TestGenerateToken:
    def test_has_256_bits(self):
        assert len(generate_token()) == 64

    def test_unique(self):
        assert len({generate_token() for _ in range(100)}) == 100


class TestTokenService:
    def test_initialize_issues_token_until_deadline_plus_grace(self, pending_request, clock):
        assert pending_request.secure_token
        expected = clock() + timedelta(days=10) + timedelta(days=30)
        assert pending_request.token_expires_at.replace(tzinfo=None) == expected.replace(tzinfo=None)

    def test_resolve_returns_request_id(self, db_session, pending_request, clock):
        tokens = TokenService(db_session, clock)
        assert tokens.resolve(pending_request.secure_token) == pending_request.id

    def test_resolve_unknown_token(self, db_session, clock):
        with pytest.raises(NotFoundError):
            TokenService(db_session, clock).resolve("does-not-exist")

    def test_resolve_empty_token(self, db_session, clock):
        with pytest.raises(NotFoundError):
            TokenService(db_session, clock).resolve("")

    def test_resolve_after_expiry(self, db_session, pending_request, clock):
        clock.advance(days=41)
        with pytest.raises(ExpiredError):
            TokenService(db_session, clock).resolve(pending_request.secure_token)

    def test_resolve_does_not_extend_expiry(self, db_session, pending_request, clock):
        before = pending_request.token_expires_at
        TokenService(db_session, clock).resolve(pending_request.secure_token)
        db_session.refresh(pending_request)
        assert pending_request.token_expires_at == before

    def test_second_issue_conflicts(self, db_session, pending_request, clock):
        original = pending_request.secure_token
        with pytest.raises(ConflictError):
            TokenService(db_session, clock).issue(pending_request.id, timedelta(days=1))
        db_session.refresh(pending_request)
        assert pending_request.secure_token == original

    def test_issue_for_missing_request(self, db_session, clock):
        import uuid

        with pytest.raises(NotFoundError):
            TokenService(db_session, clock).issue(uuid.uuid4(), timedelta(days=1))
