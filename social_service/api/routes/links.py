"""
Link request and link routes
"""
from fastapi import APIRouter, Depends, Query
from typing import Optional

from ...domain.models import User
from ...application.relationships import RelationshipService
from ..dependencies import get_current_user, get_relationship_service, page_size, to_response


router = APIRouter(prefix="/api/v1/links", tags=["Links"])


@router.get("")
async def list_links(
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    service: RelationshipService = Depends(get_relationship_service),
):
    """List the current user's links"""
    return to_response(await service.list_links(current_user, page_size(limit), offset))


@router.get("/requests/sent")
async def list_sent_requests(
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    service: RelationshipService = Depends(get_relationship_service),
):
    return to_response(await service.list_sent_requests(current_user, page_size(limit), offset))


@router.get("/requests/received")
async def list_received_requests(
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    service: RelationshipService = Depends(get_relationship_service),
):
    return to_response(await service.list_received_requests(current_user, page_size(limit), offset))


@router.get("/state/{user_id}")
async def get_link_state(
    user_id: str,
    current_user: User = Depends(get_current_user),
    service: RelationshipService = Depends(get_relationship_service),
):
    """none | sent | received | linked, from the current user's side"""
    return to_response(await service.get_link_state(current_user, user_id))


@router.post("/{target_id}/request")
async def send_link_request(
    target_id: str,
    current_user: User = Depends(get_current_user),
    service: RelationshipService = Depends(get_relationship_service),
):
    """
    Send a link request

    Requires authentication. The receiver gets a notification and both
    sides receive a linkRequestUpdated event.
    """
    return to_response(await service.send_link_request(current_user, target_id))


@router.delete("/{target_id}/request")
async def withdraw_link_request(
    target_id: str,
    current_user: User = Depends(get_current_user),
    service: RelationshipService = Depends(get_relationship_service),
):
    return to_response(await service.withdraw_link_request(current_user, target_id))


@router.post("/{sender_id}/accept")
async def accept_link_request(
    sender_id: str,
    current_user: User = Depends(get_current_user),
    service: RelationshipService = Depends(get_relationship_service),
):
    return to_response(await service.accept_link_request(current_user, sender_id))


@router.post("/{sender_id}/reject")
async def reject_link_request(
    sender_id: str,
    current_user: User = Depends(get_current_user),
    service: RelationshipService = Depends(get_relationship_service),
):
    return to_response(await service.reject_link_request(current_user, sender_id))


@router.delete("/{linked_user_id}")
async def remove_link(
    linked_user_id: str,
    current_user: User = Depends(get_current_user),
    service: RelationshipService = Depends(get_relationship_service),
):
    return to_response(await service.remove_link(current_user, linked_user_id))
