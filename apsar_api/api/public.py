"""Unauthenticated routes for the public-facing status page."""

from fastapi import APIRouter

from ..core import SessionDep
from ..schemas import PublicMission, PublicStatusResponse
from ..services import MissionEngine

router = APIRouter(prefix="/public", tags=["public"])


@router.get("/sar/status", response_model=PublicStatusResponse)
async def sar_status(session: SessionDep):
    """Active, publicly visible search operations."""
    result = await MissionEngine(session).public_status()
    return PublicStatusResponse(
        active=result.active,
        message=result.message,
        missions=[PublicMission.model_validate(m) for m in result.missions],
    )
