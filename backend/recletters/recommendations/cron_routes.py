"""Scheduled reminder sweep, triggered by an external cron."""

import hmac
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..config import settings
from ..dependencies import get_recommendation_service
from .schemas import SweepResponse
from .service import RecommendationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])


def _authorized(request: Request) -> bool:
    if not settings.cron_secret:
        return False
    expected = f"Bearer {settings.cron_secret}"
    return hmac.compare_digest(request.headers.get("Authorization", "").encode(), expected.encode())


@router.post("/recommendation-reminders")
def recommendation_reminders(
    request: Request,
    service: RecommendationService = Depends(get_recommendation_service),
):
    if not _authorized(request):
        logger.warning("Rejected cron call from %s", request.client.host if request.client else "unknown")
        return JSONResponse({"error": "Unauthorized"}, status_code=401)
    result = service.run_reminder_sweep()
    return JSONResponse({"ok": True, **SweepResponse(**result.to_dict()).model_dump()})
