"""
Conversation and message routes
"""
from fastapi import APIRouter, Depends, Query
from typing import Optional

from ...domain.models import User
from ...schemas import MarkSeenRequest, SendMessageRequest
from ...application.messaging import MessagingService
from ..dependencies import get_current_user, get_messaging_service, page_size, to_response


router = APIRouter(prefix="/api/v1/conversations", tags=["Conversations"])


@router.get("")
async def my_conversations(
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """Conversations of the current user, most recently updated first"""
    return to_response(await service.my_conversations(current_user))


@router.get("/search")
async def search_conversations(
    query: str = Query(""),
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return to_response(
        await service.search_conversations(current_user, query, page_size(limit), offset)
    )


@router.post("/messages")
async def send_message(
    request: SendMessageRequest,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    """
    Send a message

    Creates the private conversation on first contact. For non-text
    message types the text is the uploaded attachment URL.
    """
    return to_response(
        await service.send_message(
            current_user, request.recipient_id, request.text, request.message_type
        )
    )


@router.delete("/messages/{message_id}")
async def delete_message_for_me(
    message_id: str,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return to_response(await service.delete_message_for_me(current_user, message_id))


@router.get("/{conversation_id}/messages")
async def get_messages(
    conversation_id: str,
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return to_response(
        await service.get_messages(current_user, conversation_id, page_size(limit), offset)
    )


@router.post("/{conversation_id}/seen")
async def mark_seen(
    conversation_id: str,
    request: Optional[MarkSeenRequest] = None,
    current_user: User = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    message_ids = request.message_ids if request else None
    return to_response(await service.mark_seen(current_user, conversation_id, message_ids))
