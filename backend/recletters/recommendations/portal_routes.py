"""Recommender portal routes. Anonymous: the secure token is the only credential."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..audit.models import AuditActor
from ..audit.service import audit
from ..database.base import get_db
from ..dependencies import get_recommendation_service
from ..rate_limit import limiter, portal_submit_limit, portal_view_limit
from .letters import LetterSubmission
from .schemas import LetterSubmitRequest, PortalView
from .service import RecommendationService

router = APIRouter(prefix="/recommendation", tags=["portal"])


@router.get("/{token}")
@limiter.limit(portal_view_limit)
def view_request(
    request: Request,
    token: str,
    db: Session = Depends(get_db),
    service: RecommendationService = Depends(get_recommendation_service),
):
    view = service.portal_view(token)
    audit(db, request, "link_opened", request_id=view["request_id"], actor=AuditActor.RECOMMENDER)
    db.commit()
    return JSONResponse(PortalView(**view).model_dump())


@router.post("/{token}/submit")
@limiter.limit(portal_submit_limit)
def submit_letter(
    request: Request,
    token: str,
    body: LetterSubmitRequest,
    db: Session = Depends(get_db),
    service: RecommendationService = Depends(get_recommendation_service),
):
    submission = LetterSubmission(**body.model_dump())
    request_id = service.submit_letter(token, submission)
    audit(db, request, "letter_submitted", request_id=request_id, actor=AuditActor.RECOMMENDER)
    db.commit()
    return JSONResponse(
        {"ok": True, "request_id": str(request_id), "message": "Thank you! Your recommendation letter has been submitted."}
    )
