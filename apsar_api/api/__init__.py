"""API routes for the APSAR coordination service."""

from fastapi import APIRouter

from .admin import router as admin_router
from .auth import router as auth_router
from .callout_reports import router as callout_reports_router
from .callouts import admin_router as admin_call_outs_router
from .callouts import router as call_outs_router
from .chat import router as chat_router
from .checklists import router as checklists_router
from .equipment import router as equipment_router
from .incidents import router as incidents_router
from .notifications import router as notifications_router
from .public import router as public_router
from .sar import admin_router as admin_sar_router
from .sar import router as sar_router
from .vehicles import router as vehicles_router

# Main API router
api_router = APIRouter()

# Identity gate
api_router.include_router(auth_router)

# Personnel routes (member+, individual operations gate further)
api_router.include_router(call_outs_router)
api_router.include_router(sar_router)
api_router.include_router(incidents_router)
api_router.include_router(chat_router)

# Admin routes (officer+ / command)
api_router.include_router(admin_call_outs_router)
api_router.include_router(admin_sar_router)
api_router.include_router(admin_router)

api_router.include_router(callout_reports_router)
api_router.include_router(checklists_router)
api_router.include_router(vehicles_router)
api_router.include_router(equipment_router)
api_router.include_router(notifications_router)

# Unauthenticated
api_router.include_router(public_router)

__all__ = ["api_router"]
