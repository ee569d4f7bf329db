"""
Post, like and comment routes
"""
from fastapi import APIRouter, Depends, Query
from typing import Optional

from ...config import settings
from ...domain.models import User
from ...schemas import CommentCreateRequest, CommentUpdateRequest
from ...application.interactions import InteractionService
from ..dependencies import get_current_user, get_interaction_service, page_size, to_response


router = APIRouter(prefix="/api/v1", tags=["Interactions"])


def comments_page_size(limit: Optional[int]) -> int:
    return page_size(limit) if limit else settings.COMMENTS_PAGE_SIZE


@router.get("/feed")
async def get_home_feed(
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    """Newest posts of every kind"""
    return to_response(await service.get_home_feed(current_user, page_size(limit), offset))


@router.get("/posts/{post_id}")
async def get_post(
    post_id: str,
    current_user: User = Depends(get_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    return to_response(await service.get_post(current_user, post_id))


@router.post("/posts/{post_id}/like")
async def toggle_like(
    post_id: str,
    current_user: User = Depends(get_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    """Like the post, or unlike it if already liked"""
    return to_response(await service.toggle_like(current_user, post_id))


@router.post("/posts/{post_id}/comments")
async def add_comment(
    post_id: str,
    request: CommentCreateRequest,
    current_user: User = Depends(get_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    return to_response(
        await service.add_comment(current_user, post_id, request.text, request.parent_comment_id)
    )


@router.get("/posts/{post_id}/comments")
async def get_comments(
    post_id: str,
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    return to_response(await service.get_comments(post_id, comments_page_size(limit), offset))


@router.get("/comments/{comment_id}/replies")
async def get_replies(
    comment_id: str,
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    return to_response(await service.get_replies(comment_id, comments_page_size(limit), offset))


@router.put("/comments/{comment_id}")
async def edit_comment(
    comment_id: str,
    request: CommentUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    return to_response(await service.edit_comment(current_user, comment_id, request.text))


@router.delete("/comments/{comment_id}")
async def delete_comment(
    comment_id: str,
    current_user: User = Depends(get_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    """Deletes the comment and, for a top-level comment, its replies"""
    return to_response(await service.delete_comment(current_user, comment_id))


@router.post("/comments/{comment_id}/like")
async def toggle_comment_like(
    comment_id: str,
    current_user: User = Depends(get_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    return to_response(await service.toggle_comment_like(current_user, comment_id))


@router.get("/posts/{post_id}/counters/verify")
async def verify_post_counters(
    post_id: str,
    current_user: User = Depends(get_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    return to_response(await service.verify_post_counters(post_id))


@router.post("/posts/{post_id}/counters/sync")
async def sync_post_counters(
    post_id: str,
    current_user: User = Depends(get_current_user),
    service: InteractionService = Depends(get_interaction_service),
):
    return to_response(await service.sync_post_counters(post_id))
