"""API v1 router: all JSON endpoints under /api/v1 prefix."""

from fastapi import APIRouter

from .auth.routes import router as auth_router
from .recipients.routes import router as recipients_router
from .recommendations.cron_routes import router as cron_router
from .recommendations.draft_routes import router as drafts_router
from .recommendations.portal_routes import router as portal_router
from .recommendations.routes import router as recommendations_router

api_v1_router = APIRouter(prefix="/api/v1", tags=["api-v1"])

api_v1_router.include_router(auth_router)
api_v1_router.include_router(recipients_router)
api_v1_router.include_router(drafts_router)
api_v1_router.include_router(recommendations_router)
api_v1_router.include_router(portal_router)
api_v1_router.include_router(cron_router)
