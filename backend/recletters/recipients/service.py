"""Recipient service: CRUD for recommender contacts."""

from uuid import UUID

from sqlalchemy.orm import Session

from .models import Recipient


class DuplicateRecipientError(Exception):
    """The owner already has another recipient with this email."""


def _to_uuid(value: str | UUID | None) -> UUID | None:
    """Convert string to UUID, returning None on failure."""
    if not value:
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(value)
    except (ValueError, AttributeError):
        return None


def find_recipient_by_email(db: Session, owner_id: UUID, email: str) -> Recipient | None:
    return (
        db.query(Recipient)
        .filter(Recipient.owner_id == owner_id, Recipient.email == email.strip().lower())
        .first()
    )


def create_recipient(
    db: Session,
    owner_id: UUID,
    *,
    name: str,
    email: str,
    title: str = "",
    institution: str = "",
    department: str = "",
    phone: str = "",
    prefers_drafts: bool = False,
    notes: str = "",
) -> Recipient | None:
    """Create a recipient. Returns None if the owner already has one with this email."""
    if find_recipient_by_email(db, owner_id, email):
        return None
    recipient = Recipient(
        owner_id=owner_id,
        name=name.strip(),
        email=email.strip().lower(),
        title=title,
        institution=institution,
        department=department,
        phone=phone,
        prefers_drafts=prefers_drafts,
        notes=notes,
    )
    db.add(recipient)
    db.flush()
    return recipient


def get_recipient(db: Session, owner_id: UUID, recipient_id: str | UUID) -> Recipient | None:
    uid = _to_uuid(recipient_id)
    if uid is None:
        return None
    return db.query(Recipient).filter(Recipient.id == uid, Recipient.owner_id == owner_id).first()


def list_recipients(db: Session, owner_id: UUID) -> list[Recipient]:
    return db.query(Recipient).filter(Recipient.owner_id == owner_id).order_by(Recipient.name.asc()).all()


def update_recipient(
    db: Session,
    owner_id: UUID,
    recipient_id: str | UUID,
    *,
    name: str,
    email: str,
    title: str = "",
    institution: str = "",
    department: str = "",
    phone: str = "",
    prefers_drafts: bool = False,
    notes: str = "",
) -> Recipient | None:
    """Replace a recipient's details. Returns None if it does not exist.

    Open requests follow the change: reminders read the address at send time.
    """
    recipient = get_recipient(db, owner_id, recipient_id)
    if recipient is None:
        return None
    normalized = email.strip().lower()
    if normalized != recipient.email:
        other = find_recipient_by_email(db, owner_id, normalized)
        if other is not None and other.id != recipient.id:
            raise DuplicateRecipientError(normalized)

    recipient.name = name.strip()
    recipient.email = normalized
    recipient.title = title
    recipient.institution = institution
    recipient.department = department
    recipient.phone = phone
    recipient.prefers_drafts = prefers_drafts
    recipient.notes = notes
    db.flush()
    return recipient


def delete_recipient(db: Session, owner_id: UUID, recipient_id: str) -> bool:
    """Delete a recipient that has no recommendation requests attached."""
    recipient = get_recipient(db, owner_id, recipient_id)
    if not recipient or recipient.requests:
        return False
    db.delete(recipient)
    db.flush()
    return True
