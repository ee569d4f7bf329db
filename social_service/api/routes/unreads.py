"""
Unread counter routes
"""
from fastapi import APIRouter, Depends

from ...domain.models import User
from ...application.unreads import UnreadsService
from ..dependencies import get_current_user, get_unreads_service, to_response


router = APIRouter(prefix="/api/v1/unreads", tags=["Unreads"])


@router.get("")
async def get_unreads(
    current_user: User = Depends(get_current_user),
    service: UnreadsService = Depends(get_unreads_service),
):
    return to_response(await service.get_total(current_user.id))


@router.post("/reset/{kind}")
async def reset_unreads(
    kind: str,
    current_user: User = Depends(get_current_user),
    service: UnreadsService = Depends(get_unreads_service),
):
    """kind is notifications or messages"""
    return to_response(await service.reset(current_user.id, kind))


@router.post("/reset")
async def reset_all_unreads(
    current_user: User = Depends(get_current_user),
    service: UnreadsService = Depends(get_unreads_service),
):
    return to_response(await service.reset_all(current_user.id))


@router.post("/sync")
async def sync_unreads(
    current_user: User = Depends(get_current_user),
    service: UnreadsService = Depends(get_unreads_service),
):
    """Recompute both counters from notifications and conversations"""
    return to_response(await service.sync(current_user.id))


@router.get("/verify")
async def verify_unreads(
    current_user: User = Depends(get_current_user),
    service: UnreadsService = Depends(get_unreads_service),
):
    return to_response(await service.verify(current_user.id))
