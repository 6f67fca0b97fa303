"""Draft assistant routes: generate and refine a letter draft for a recommender."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..audit.service import audit
from ..auth.models import User
from ..database.base import get_db
from ..dependencies import get_cache, get_current_user
from ..integrations.cache import CacheService
from ..prompts import DRAFT_TEMPLATES
from ..rate_limit import drafts_limit, limiter
from ..recipients.service import get_recipient
from .drafts import generate_draft, refine_draft
from .schemas import DraftGenerateRequest, DraftRefineRequest, DraftResponse

router = APIRouter(prefix="/recommendations/drafts", tags=["drafts"])


@router.get("/templates")
def list_templates(user: User = Depends(get_current_user)):
    templates = [
        {"id": key, "name": name, "description": description}
        for key, (name, description) in DRAFT_TEMPLATES.items()
    ]
    return JSONResponse({"templates": templates})


@router.post("")
@limiter.limit(drafts_limit)
def generate_draft_route(
    request: Request,
    body: DraftGenerateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    cache: CacheService = Depends(get_cache),
):
    recipient = get_recipient(db, user.id, body.recipient_id)
    if recipient is None:
        return JSONResponse({"error": "Recipient not found"}, status_code=404)

    result = generate_draft(
        user,
        recipient,
        purpose=body.purpose,
        highlights=body.highlights,
        relationship=body.relationship,
        template_type=body.template_type,
        custom_instructions=body.custom_instructions,
        model=body.model,
        cache=cache,
    )
    audit(
        db,
        request,
        "draft_generate",
        f"recipient={recipient.id}, template={body.template_type}, cached={result['from_cache']}",
        user_id=user.id,
    )
    db.commit()
    return JSONResponse({"ok": True, **DraftResponse(**result).model_dump()})


@router.post("/refine")
@limiter.limit(drafts_limit)
def refine_draft_route(
    request: Request,
    body: DraftRefineRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    cache: CacheService = Depends(get_cache),
):
    recipient = None
    if body.recipient_id:
        recipient = get_recipient(db, user.id, body.recipient_id)
        if recipient is None:
            return JSONResponse({"error": "Recipient not found"}, status_code=404)

    try:
        result = refine_draft(
            body.current_draft,
            body.feedback,
            additional_context=body.additional_context,
            student=user,
            recipient=recipient,
            purpose=body.purpose,
            template_type=body.template_type,
            model=body.model,
            cache=cache,
        )
    except ValueError as exc:
        return JSONResponse({"error": "validation_error", "detail": str(exc)}, status_code=422)
    audit(db, request, "draft_refine", f"template={body.template_type}", user_id=user.id)
    db.commit()
    return JSONResponse({"ok": True, **DraftResponse(**result).model_dump()})
