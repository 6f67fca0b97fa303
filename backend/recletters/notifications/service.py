"""Notification outbox: queue inside the transaction, deliver after commit.

A row is queued in the same transaction as the lifecycle transition it
belongs to. Delivery happens after that commit and only ever touches the
outbox row, so a failed send never rolls a transition back and never leaves
a "sent" record for an email that did not go out.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.orm import Session

from .models import NotificationLog, NotificationStatus
from .transport import EmailTransport

logger = logging.getLogger(__name__)


@dataclass
class OutboxResult:
    sent: int = 0
    failed: int = 0


def enqueue(
    db: Session,
    *,
    request_id: UUID,
    notification_type: str,
    recipient: str,
    subject: str,
    html: str,
    text: str,
) -> NotificationLog:
    log = NotificationLog(
        request_id=request_id,
        notification_type=str(notification_type),
        recipient=recipient,
        subject=subject,
        html=html,
        text=text,
        status=NotificationStatus.QUEUED,
        attempts=0,
    )
    db.add(log)
    db.flush()
    return log


def deliver(db: Session, log: NotificationLog, transport: EmailTransport) -> bool:
    """Send one outbox row and record the outcome. Returns True when sent."""
    log.attempts = (log.attempts or 0) + 1
    try:
        transport.send(log.recipient, log.subject, log.html or "", log.text or "")
    except Exception as exc:
        logger.exception("Delivery of %s notification %s to %s failed", log.notification_type, log.id, log.recipient)
        log.status = NotificationStatus.FAILED
        log.last_error = str(exc)[:2000]
        db.commit()
        return False

    log.status = NotificationStatus.SENT
    log.sent_at = datetime.now(UTC)
    log.last_error = None
    db.commit()
    logger.info("Delivered %s notification %s to %s", log.notification_type, log.id, log.recipient)
    return True


def pending_notifications(db: Session, max_deliveries: int, limit: int = 100) -> list[NotificationLog]:
    return (
        db.query(NotificationLog)
        .filter(
            NotificationLog.status.in_([NotificationStatus.QUEUED, NotificationStatus.FAILED]),
            NotificationLog.attempts < max_deliveries,
        )
        .order_by(NotificationLog.created_at.asc())
        .limit(limit)
        .all()
    )


def flush_outbox(db: Session, transport: EmailTransport, max_deliveries: int, limit: int = 100) -> OutboxResult:
    """Retry every undelivered row handed to the transport fewer than max_deliveries times.

    ``attempts`` counts deliveries, not SMTP connections: the transport may
    try more than once inside a single delivery.
    """
    result = OutboxResult()
    for log in pending_notifications(db, max_deliveries, limit):
        if deliver(db, log, transport):
            result.sent += 1
        else:
            result.failed += 1
    if result.sent or result.failed:
        logger.info("Outbox flush: %d sent, %d failed", result.sent, result.failed)
    return result
