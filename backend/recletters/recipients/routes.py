"""Recipient routes."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..audit.service import audit
from ..auth.models import User
from ..database.base import get_db
from ..dependencies import get_current_user
from .models import Recipient
from .schemas import RecipientCreateRequest, RecipientResponse
from .service import (
    DuplicateRecipientError,
    create_recipient,
    delete_recipient,
    list_recipients,
    update_recipient,
)

router = APIRouter(prefix="/recipients", tags=["recipients"])


def _recipient_payload(recipient: Recipient) -> dict:
    return RecipientResponse(
        id=str(recipient.id),
        name=recipient.name,
        email=recipient.email,
        title=recipient.title or "",
        institution=recipient.institution or "",
        department=recipient.department or "",
        prefers_drafts=bool(recipient.prefers_drafts),
    ).model_dump()


@router.post("")
def add_recipient(
    request: Request,
    payload: RecipientCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    recipient = create_recipient(db, user.id, **payload.model_dump())
    if recipient is None:
        return JSONResponse({"error": "Recipient with this email already exists"}, status_code=409)
    audit(db, request, "recipient_create", f"email={recipient.email}", user_id=user.id)
    db.commit()
    return JSONResponse({"ok": True, "recipient": _recipient_payload(recipient)}, status_code=201)


@router.get("")
def get_recipients(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return JSONResponse({"recipients": [_recipient_payload(r) for r in list_recipients(db, user.id)]})


@router.put("/{recipient_id}")
def edit_recipient(
    request: Request,
    recipient_id: str,
    payload: RecipientCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        recipient = update_recipient(db, user.id, recipient_id, **payload.model_dump())
    except DuplicateRecipientError:
        return JSONResponse({"error": "Recipient with this email already exists"}, status_code=409)
    if recipient is None:
        return JSONResponse({"error": "Recipient not found"}, status_code=404)
    audit(db, request, "recipient_update", f"email={recipient.email}", user_id=user.id)
    db.commit()
    return JSONResponse({"ok": True, "recipient": _recipient_payload(recipient)})


@router.delete("/{recipient_id}")
def remove_recipient(
    recipient_id: str,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not delete_recipient(db, user.id, recipient_id):
        return JSONResponse({"error": "Recipient not found or still referenced"}, status_code=404)
    audit(db, request, "recipient_delete", f"recipient={recipient_id}", user_id=user.id)
    db.commit()
    return JSONResponse({"ok": True})
