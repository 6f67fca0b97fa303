"""Requester routes: create and track recommendation requests."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..audit.service import audit, request_activity
from ..auth.models import User
from ..database.base import get_db
from ..dependencies import get_current_user, get_recommendation_service
from .letters import latest_letter
from .models import RecommendationLetter, RecommendationRequest, RequestStatus
from .schemas import LetterResponse, RecommendationCreateRequest, RecommendationResponse
from .service import RecommendationService
from .timeutils import as_utc

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


def _iso(value) -> str | None:
    return as_utc(value).isoformat() if value else None


def _letter_payload(letter: RecommendationLetter) -> dict:
    return LetterResponse(
        id=str(letter.id),
        version=letter.version,
        content=letter.content or "",
        file_name=letter.file_name,
        file_url=letter.file_url,
        file_type=letter.file_type,
        file_size=letter.file_size,
        submitted_by=letter.submitted_by,
        submitted_at=_iso(letter.submitted_at),
    ).model_dump()


def _request_payload(request: RecommendationRequest, letter: RecommendationLetter | None = None) -> dict:
    recipient = request.recipient
    payload = RecommendationResponse(
        id=str(request.id),
        title=request.title,
        description=request.description,
        status=RequestStatus(request.status).value,
        request_type=str(request.request_type),
        submission_method=str(request.submission_method),
        priority=str(request.priority),
        deadline=_iso(request.deadline),
        recipient_id=str(request.recipient_id),
        recipient_name=recipient.name if recipient else "",
        recipient_email=recipient.email if recipient else "",
        reminder_intervals=list(request.reminder_intervals or []),
        reminder_count=request.reminder_count or 0,
        next_reminder_date=_iso(request.next_reminder_date),
        sent_at=_iso(request.sent_at),
        received_at=_iso(request.received_at),
        expired_at=_iso(request.expired_at),
        created_at=_iso(request.created_at),
    ).model_dump()
    payload["letter"] = _letter_payload(letter) if letter else None
    return payload


@router.post("")
def create_recommendation(
    request: Request,
    body: RecommendationCreateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    service: RecommendationService = Depends(get_recommendation_service),
):
    fields = body.model_dump(exclude={"recipient_id"})
    try:
        rec = service.create_request(user.id, body.recipient_id, **fields)
    except ValueError as exc:
        return JSONResponse({"error": "validation_error", "detail": str(exc)}, status_code=422)
    audit(db, request, "recommendation_create", f"recipient={rec.recipient_id}", user_id=user.id, request_id=rec.id)
    db.commit()
    return JSONResponse({"ok": True, "recommendation": _request_payload(rec)}, status_code=201)


@router.get("")
def list_recommendations(
    status: str | None = None,
    user: User = Depends(get_current_user),
    service: RecommendationService = Depends(get_recommendation_service),
):
    if status and status not in {s.value for s in RequestStatus}:
        return JSONResponse({"error": "validation_error", "detail": f"Unknown status {status!r}"}, status_code=422)
    requests = service.list_requests(user.id, status)
    return JSONResponse({"recommendations": [_request_payload(r) for r in requests]})


@router.get("/{request_id}")
def get_recommendation(
    request_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    service: RecommendationService = Depends(get_recommendation_service),
):
    rec = service.get_request(user.id, request_id)
    letter = latest_letter(db, rec.id) if rec.status == RequestStatus.RECEIVED else None
    return JSONResponse(_request_payload(rec, letter))


@router.get("/{request_id}/activity")
def get_recommendation_activity(
    request_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    service: RecommendationService = Depends(get_recommendation_service),
):
    rec = service.get_request(user.id, request_id)
    entries = [
        {
            "action": entry.action,
            "actor": str(entry.actor),
            "detail": entry.detail or "",
            "created_at": _iso(entry.created_at),
        }
        for entry in request_activity(db, rec.id)
    ]
    return JSONResponse({"request_id": str(rec.id), "activity": entries})
