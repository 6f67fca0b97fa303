"""Shared test fixtures."""

import uuid
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from recletters.audit.models import AuditLog
from recletters.auth.models import User
from recletters.config import Settings
from recletters.database.base import Base
from recletters.integrations.cache import NullCacheService
from recletters.notifications.models import NotificationLog
from recletters.notifications.transport import EmailDeliveryError
from recletters.recipients.models import Recipient
from recletters.recommendations.models import RecommendationLetter, RecommendationRequest
from recletters.recommendations.service import RecommendationService

# Models must be imported so Base.metadata.create_all() sees all tables.
_ALL_MODELS = [AuditLog, NotificationLog, Recipient, RecommendationLetter, RecommendationRequest]

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


class FixedClock:
    """Callable clock that tests move by hand."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingTransport:
    """Email transport that keeps sent messages in memory."""

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.fail = False

    def send(self, to: str, subject: str, html: str, text: str) -> None:
        if self.fail:
            raise EmailDeliveryError("smtp down")
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})

    def subjects(self) -> list[str]:
        return [m["subject"] for m in self.sent]


@pytest.fixture
def db_session():
    """In-memory SQLite database shared across threads (StaticPool)."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestSession = sessionmaker(bind=engine)
    session = TestSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def file_session_factory(tmp_path):
    """File-backed SQLite so two sessions really use two connections."""
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def test_settings():
    return Settings(
        database_url="sqlite://",
        secret_key="test-secret",
        app_base_url="https://letters.example.com",
        cron_secret="cron-secret",
        anthropic_api_key="",
        smtp_user="",
        smtp_password="",
        smtp_send_attempts=3,
        outbox_max_deliveries=3,
        smtp_retry_backoff_seconds=0,
        token_grace_days=30,
        default_reminder_intervals=[7, 3, 1],
    )


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def test_user(db_session):
    user = User(
        id=uuid.uuid4(),
        email="student@example.com",
        name="Ada Student",
        password_hash="$2b$12$fakehash",
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def test_recipient(db_session, test_user):
    recipient = Recipient(
        id=uuid.uuid4(),
        owner_id=test_user.id,
        name="Prof. Grace Hopper",
        email="hopper@university.edu",
        title="Professor",
        institution="State University",
    )
    db_session.add(recipient)
    db_session.commit()
    return recipient


@pytest.fixture
def service(db_session, transport, test_settings, clock):
    return RecommendationService(db_session, transport, test_settings, clock=clock, cache=NullCacheService())


@pytest.fixture
def make_request(service, test_user, test_recipient, clock):
    """Create a request through the service; deadline defaults to T0 + 10 days."""

    def _make(**overrides) -> RecommendationRequest:
        fields = {
            "title": "Graduate School Application",
            "description": "MSc in Computer Science, fall intake",
            "deadline": clock() + timedelta(days=10),
        }
        fields.update(overrides)
        return service.create_request(test_user.id, test_recipient.id, **fields)

    return _make


@pytest.fixture
def null_cache():
    """No-op cache for testing."""
    return NullCacheService()
