"""Tests for the notification outbox and SMTP transport."""

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from recletters.notifications.models import NotificationLog, NotificationStatus
from recletters.notifications.service import deliver, enqueue, flush_outbox
from recletters.notifications.transport import (
    EmailDeliveryError,
    NullEmailTransport,
    SmtpEmailTransport,
    create_email_transport,
    decrypt_value,
    encrypt_value,
)


class TestEncryptDecrypt:
    def test_roundtrip(self):
        encrypted = encrypt_value("my-secret-smtp-password", "k1")
        assert encrypted != "my-secret-smtp-password"
        assert decrypt_value(encrypted, "k1") == "my-secret-smtp-password"

    def test_encrypted_starts_with_gAAAAA(self):
        assert encrypt_value("test", "k1").startswith("gAAAAA")


@pytest.fixture
def queued(db_session, make_request):
    request = make_request()
    log = enqueue(
        db_session,
        request_id=request.id,
        notification_type="reminder",
        recipient="hopper@university.edu",
        subject="Reminder",
        html="<p>hi</p>",
        text="hi",
    )
    db_session.commit()
    return log


class TestOutbox:
    def test_enqueue_starts_queued(self, queued):
        assert queued.status == NotificationStatus.QUEUED
        assert queued.attempts == 0

    def test_deliver_success(self, db_session, queued, transport):
        assert deliver(db_session, queued, transport) is True
        assert queued.status == NotificationStatus.SENT
        assert queued.sent_at is not None
        assert transport.sent[-1]["subject"] == "Reminder"

    def test_deliver_failure_records_error(self, db_session, queued, transport):
        transport.fail = True
        assert deliver(db_session, queued, transport) is False
        assert queued.status == NotificationStatus.FAILED
        assert queued.attempts == 1
        assert queued.last_error == "smtp down"
        assert queued.sent_at is None

    def test_flush_retries_failed(self, db_session, queued, transport):
        transport.fail = True
        deliver(db_session, queued, transport)
        transport.fail = False

        result = flush_outbox(db_session, transport, max_deliveries=3)
        assert result.sent == 1
        assert db_session.get(NotificationLog, queued.id).status == NotificationStatus.SENT

    def test_attempts_count_deliveries_not_smtp_tries(self, db_session, queued, test_settings):
        transport = SmtpEmailTransport(
            test_settings.model_copy(
                update={"smtp_user": "sender@example.com", "smtp_password": "pw", "smtp_send_attempts": 2}
            ),
            sleep=MagicMock(),
        )
        with patch("recletters.notifications.transport.smtplib.SMTP") as mock_smtp:
            mock_smtp.side_effect = OSError("unreachable")
            assert deliver(db_session, queued, transport) is False
            assert mock_smtp.call_count == 2
        assert queued.attempts == 1

    def test_flush_skips_exhausted(self, db_session, queued, transport):
        queued.attempts = 3
        queued.status = NotificationStatus.FAILED
        db_session.commit()
        assert flush_outbox(db_session, transport, max_deliveries=3).sent == 0


class TestSmtpEmailTransport:
    def _config(self, test_settings, **overrides):
        values = {"smtp_user": "sender@example.com", "smtp_password": "pw"}
        values.update(overrides)
        return test_settings.model_copy(update=values)

    def test_builds_multipart_with_headers(self, test_settings):
        transport = SmtpEmailTransport(self._config(test_settings))
        msg = transport.build_message("to@example.com", "Subject", "<p>Hi</p>", "Hi")
        assert msg["To"] == "to@example.com"
        assert msg["Reply-To"] == "sender@example.com"
        assert "example.com" in msg["Message-ID"]
        assert [part.get_content_type() for part in msg.get_payload()] == ["text/plain", "text/html"]

    @patch("recletters.notifications.transport.smtplib.SMTP")
    def test_send(self, mock_smtp, test_settings):
        server = mock_smtp.return_value.__enter__.return_value
        SmtpEmailTransport(self._config(test_settings)).send("to@example.com", "S", "<p>h</p>", "h")
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("sender@example.com", "pw")
        server.send_message.assert_called_once()

    @patch("recletters.notifications.transport.smtplib.SMTP")
    def test_decrypts_encrypted_password(self, mock_smtp, test_settings):
        server = mock_smtp.return_value.__enter__.return_value
        encrypted = encrypt_value("real-password", test_settings.secret_key)
        SmtpEmailTransport(self._config(test_settings, smtp_password=encrypted)).send("a@b.c", "S", "h", "t")
        server.login.assert_called_once_with("sender@example.com", "real-password")

    @patch("recletters.notifications.transport.smtplib.SMTP")
    def test_retries_then_raises(self, mock_smtp, test_settings):
        mock_smtp.side_effect = smtplib.SMTPConnectError(421, "busy")
        sleep = MagicMock()
        transport = SmtpEmailTransport(
            self._config(test_settings, smtp_send_attempts=3, smtp_retry_backoff_seconds=2), sleep=sleep
        )
        with pytest.raises(EmailDeliveryError):
            transport.send("a@b.c", "S", "h", "t")
        assert mock_smtp.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [2, 4]

    @patch("recletters.notifications.transport.smtplib.SMTP")
    def test_recovers_on_retry(self, mock_smtp, test_settings):
        ok = MagicMock()
        mock_smtp.side_effect = [OSError("reset"), ok]
        SmtpEmailTransport(self._config(test_settings), sleep=MagicMock()).send("a@b.c", "S", "h", "t")
        ok.__enter__.return_value.send_message.assert_called_once()

    @patch("recletters.notifications.transport.smtplib.SMTP")
    def test_auth_failure_is_not_retried(self, mock_smtp, test_settings):
        server = mock_smtp.return_value.__enter__.return_value
        server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
        sleep = MagicMock()
        transport = SmtpEmailTransport(self._config(test_settings, smtp_send_attempts=3), sleep=sleep)
        with pytest.raises(EmailDeliveryError):
            transport.send("a@b.c", "S", "h", "t")
        assert mock_smtp.call_count == 1
        sleep.assert_not_called()

    @patch("recletters.notifications.transport.smtplib.SMTP")
    def test_uses_configured_timeout(self, mock_smtp, test_settings):
        SmtpEmailTransport(self._config(test_settings, smtp_timeout_seconds=7)).send("a@b.c", "S", "h", "t")
        assert mock_smtp.call_args.kwargs["timeout"] == 7

    def test_unconfigured_raises(self, test_settings):
        with pytest.raises(EmailDeliveryError):
            SmtpEmailTransport(test_settings).send("a@b.c", "S", "h", "t")


class TestFactory:
    def test_null_transport_when_unconfigured(self, test_settings):
        transport = create_email_transport(test_settings)
        assert isinstance(transport, NullEmailTransport)
        with pytest.raises(EmailDeliveryError):
            transport.send("a@b.c", "S", "h", "t")

    def test_smtp_when_configured(self, test_settings):
        config = test_settings.model_copy(update={"smtp_user": "u@example.com", "smtp_password": "p"})
        assert isinstance(create_email_transport(config), SmtpEmailTransport)
