"""
Interaction engine - likes, comments and replies on posts
"""
from datetime import datetime
from typing import Optional
import logging

from ..config import settings
from ..errors import ErrorKind
from ..domain.models import Comment, Post, PostAction, User
from ..domain.repositories import Repositories
from ..pubsub import PubSubBroker, Topics
from ..schemas import (
    CommentPayload,
    CounterSnapshot,
    LikeRef,
    LikeTogglePayload,
    PostCounterReport,
    PostUpdatePayload,
    ServiceResult,
)
from .presenters import comment_payload, load_users, post_payload

logger = logging.getLogger(__name__)

LIKES = "likes_count"
COMMENTS = "comments_count"


class InteractionService:
    """Business logic for post interactions"""

    def __init__(self, repos: Repositories, pubsub: PubSubBroker,
                 clamp_counters: Optional[bool] = None):
        self.repos = repos
        self.pubsub = pubsub
        self.clamp_counters = settings.CLAMP_POST_COUNTERS if clamp_counters is None else clamp_counters

    async def _adjust(self, post_id: str, counter: str, delta: int) -> Optional[Post]:
        post = await self.repos.posts.increment_counter(post_id, counter, delta, self.clamp_counters)
        if post is not None and (post.likes_count < 0 or post.comments_count < 0):
            logger.error(
                f"Negative counter on post {post_id}: likes={post.likes_count}, "
                f"comments={post.comments_count}"
            )
        return post

    async def _publish(self, post: Post, action: PostAction, **extra) -> PostUpdatePayload:
        payload = PostUpdatePayload(
            post_id=post.id,
            action=action,
            total_likes=post.likes_count,
            total_comments=post.comments_count,
            updated_at=datetime.utcnow(),
            **extra,
        )
        await self.pubsub.publish(Topics.post_updated(post.id), {"postUpdated": payload.to_wire()})
        return payload

    async def is_liked(self, post_id: str, user_id: str) -> bool:
        return await self.repos.likes.find(post_id, user_id) is not None

    async def toggle_like(self, actor: User, post_id: str) -> ServiceResult:
        """Unlike when a Like row exists, like otherwise"""
        post = await self.repos.posts.find_by_id(post_id)
        if post is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Post not found")

        if await self.repos.likes.delete(post.id, actor.id):
            action = PostAction.UNLIKE
            post = await self._adjust(post.id, LIKES, -1) or post
        else:
            action = PostAction.LIKE
            if await self.repos.likes.create(post.id, actor.id):
                post = await self._adjust(post.id, LIKES, 1) or post
            else:
                # Lost a race with a concurrent like from the same user
                logger.warning(f"Duplicate like on post {post.id} by {actor.id}")

        await self._publish(post, action, like=LikeRef(user_id=actor.id))

        liked = action == PostAction.LIKE
        return ServiceResult.ok(
            "Post liked" if liked else "Post unliked",
            LikeTogglePayload(target_id=post.id, liked=liked, total_likes=post.likes_count),
        )

    async def _comment_view(self, comment: Comment, reply_count: Optional[int] = None) -> CommentPayload:
        users = await load_users(self.repos.users, [comment.user_id])
        like_count = await self.repos.comment_likes.count_for_comment(comment.id)
        return comment_payload(comment, users.get(comment.user_id), like_count, reply_count)

    async def add_comment(self, actor: User, post_id: str, text: str,
                          parent_comment_id: Optional[str] = None) -> ServiceResult:
        text = (text or "").strip()
        if not text:
            return ServiceResult.fail(ErrorKind.INVALID_ARGUMENT, "Comment text is required")

        post = await self.repos.posts.find_by_id(post_id)
        if post is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Post not found")

        if parent_comment_id:
            parent = await self.repos.comments.find_by_id(parent_comment_id)
            if parent is None or parent.post_id != post.id:
                return ServiceResult.fail(ErrorKind.NOT_FOUND, "Parent comment not found")
            if parent.is_reply:
                return ServiceResult.fail(ErrorKind.INVALID_ARGUMENT, "Cannot reply to a reply")

        comment = await self.repos.comments.create(post.id, actor.id, text, parent_comment_id)
        post = await self._adjust(post.id, COMMENTS, 1) or post

        view = await self._comment_view(comment, None if comment.is_reply else 0)
        await self._publish(post, PostAction.COMMENT_ADDED, comment=view, comment_id=comment.id)

        return ServiceResult.ok("Comment added successfully", view, status_code=201)

    async def _owned_comment(self, actor: User, comment_id: str):
        comment = await self.repos.comments.find_by_id(comment_id)
        if comment is None:
            return None, ServiceResult.fail(ErrorKind.NOT_FOUND, "Comment not found")
        if comment.user_id != actor.id:
            return None, ServiceResult.fail(
                ErrorKind.PERMISSION_DENIED, "You can only modify your own comments"
            )
        return comment, None

    async def edit_comment(self, actor: User, comment_id: str, text: str) -> ServiceResult:
        text = (text or "").strip()
        if not text:
            return ServiceResult.fail(ErrorKind.INVALID_ARGUMENT, "Comment text is required")

        comment, error = await self._owned_comment(actor, comment_id)
        if error:
            return error

        comment = await self.repos.comments.update_text(comment.id, text)
        if comment is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Comment not found")

        reply_count = None if comment.is_reply else await self.repos.comments.count_replies(comment.id)
        view = await self._comment_view(comment, reply_count)
        post = await self.repos.posts.find_by_id(comment.post_id)
        if post is not None:
            await self._publish(post, PostAction.COMMENT_UPDATED, comment=view, comment_id=comment.id)

        return ServiceResult.ok("Comment updated successfully", view)

    async def delete_comment(self, actor: User, comment_id: str) -> ServiceResult:
        """Deleting a top-level comment also deletes its replies"""
        comment, error = await self._owned_comment(actor, comment_id)
        if error:
            return error

        deleted_ids = await self.repos.comments.delete_with_replies(comment.id)
        if not deleted_ids:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Comment not found")
        await self.repos.comment_likes.delete_for_comments(deleted_ids)

        post = await self._adjust(comment.post_id, COMMENTS, -len(deleted_ids))
        payload = None
        if post is not None:
            payload = await self._publish(post, PostAction.COMMENT_DELETED, comment_id=comment.id)

        logger.info(f"User {actor.id} deleted comment {comment.id} ({len(deleted_ids)} rows)")
        return ServiceResult.ok("Comment deleted successfully", payload)

    async def toggle_comment_like(self, actor: User, comment_id: str) -> ServiceResult:
        comment = await self.repos.comments.find_by_id(comment_id)
        if comment is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Comment not found")

        if await self.repos.comment_likes.delete(comment.id, actor.id):
            liked = False
        else:
            await self.repos.comment_likes.create(comment.id, actor.id)
            liked = True

        total = await self.repos.comment_likes.count_for_comment(comment.id)
        return ServiceResult.ok(
            "Comment liked" if liked else "Comment unliked",
            LikeTogglePayload(target_id=comment.id, liked=liked, total_likes=total),
        )

    # Reads
    async def get_comments(self, post_id: str, limit: int = settings.COMMENTS_PAGE_SIZE,
                           offset: int = 0) -> ServiceResult:
        """Top-level comments, newest first"""
        post = await self.repos.posts.find_by_id(post_id)
        if post is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Post not found")

        comments = await self.repos.comments.list_top_level(post.id, limit, offset)
        users = await load_users(self.repos.users, [c.user_id for c in comments])
        views = []
        for comment in comments:
            views.append(comment_payload(
                comment,
                users.get(comment.user_id),
                like_count=await self.repos.comment_likes.count_for_comment(comment.id),
                reply_count=await self.repos.comments.count_replies(comment.id),
            ))
        return ServiceResult.ok("Comments fetched successfully", views)

    async def get_replies(self, comment_id: str, limit: int = settings.COMMENTS_PAGE_SIZE,
                          offset: int = 0) -> ServiceResult:
        """Replies, oldest first"""
        parent = await self.repos.comments.find_by_id(comment_id)
        if parent is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Comment not found")

        replies = await self.repos.comments.list_replies(parent.id, limit, offset)
        users = await load_users(self.repos.users, [r.user_id for r in replies])
        views = [
            comment_payload(
                reply,
                users.get(reply.user_id),
                like_count=await self.repos.comment_likes.count_for_comment(reply.id),
            )
            for reply in replies
        ]
        return ServiceResult.ok("Replies fetched successfully", views)

    async def get_post(self, actor: User, post_id: str) -> ServiceResult:
        post = await self.repos.posts.find_by_id(post_id)
        if post is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Post not found")
        users = await load_users(self.repos.users, [post.author_id])
        return ServiceResult.ok(
            "Post fetched successfully",
            post_payload(post, users.get(post.author_id), await self.is_liked(post.id, actor.id)),
        )

    async def get_home_feed(self, actor: User, limit: int = settings.DEFAULT_PAGE_SIZE,
                            offset: int = 0) -> ServiceResult:
        """Plain reverse-chronological feed across every post kind"""
        posts = await self.repos.posts.list_recent(limit, offset)
        authors = await load_users(self.repos.users, [p.author_id for p in posts])
        liked = await self.repos.likes.liked_post_ids(actor.id, [p.id for p in posts])
        return ServiceResult.ok(
            "Feed fetched successfully",
            [post_payload(p, authors.get(p.author_id), p.id in liked) for p in posts],
        )

    # Counter reconciliation
    async def _counter_report(self, post: Post) -> PostCounterReport:
        likes = await self.repos.likes.count_for_post(post.id)
        comments = await self.repos.comments.count_for_post(post.id)
        return PostCounterReport(
            post_id=post.id,
            is_accurate=post.likes_count == likes and post.comments_count == comments,
            stored=CounterSnapshot(likes=post.likes_count, comments=post.comments_count),
            actual=CounterSnapshot(likes=likes, comments=comments),
        )

    async def verify_post_counters(self, post_id: str) -> ServiceResult:
        post = await self.repos.posts.find_by_id(post_id)
        if post is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Post not found")
        report = await self._counter_report(post)
        if not report.is_accurate:
            logger.warning(f"Counter drift on post {post.id}: {report.stored} vs {report.actual}")
        return ServiceResult.ok("Post counters verified", report)

    async def sync_post_counters(self, post_id: str) -> ServiceResult:
        """Overwrite cached counters with the Like/Comment row counts"""
        post = await self.repos.posts.find_by_id(post_id)
        if post is None:
            return ServiceResult.fail(ErrorKind.NOT_FOUND, "Post not found")
        report = await self._counter_report(post)
        if not report.is_accurate:
            await self.repos.posts.set_counters(post.id, report.actual.likes, report.actual.comments)
            logger.info(f"Synced counters on post {post.id}: {report.actual}")
        return ServiceResult.ok("Post counters synced", report)
