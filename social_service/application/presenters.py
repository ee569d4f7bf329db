"""
Convert domain entities into viewer-relative wire payloads
"""
from typing import Dict, Iterable, List, Optional

from ..domain.models import (
    ArticleContent,
    Comment,
    Conversation,
    ConversationType,
    ImageContent,
    Message,
    Notification,
    NotificationUpdateType,
    Post,
    User,
    UserUnreads,
    VideoContent,
)
from ..domain.repositories import IUserRepository
from ..schemas import (
    AttachmentPayload,
    CommentPayload,
    ConversationPayload,
    LinkParty,
    MessagePayload,
    NotificationActionPayload,
    NotificationPayload,
    NotificationSourcePayload,
    PostPayload,
    UnreadCountEntry,
    UnreadsPayload,
    UserSummary,
)


async def load_users(repo: IUserRepository, user_ids: Iterable[str]) -> Dict[str, User]:
    """Fetch distinct users keyed by id"""
    unique = list(dict.fromkeys(uid for uid in user_ids if uid))
    users = await repo.find_by_ids(unique)
    return {user.id: user for user in users}


def user_summary(user: Optional[User], user_id: Optional[str] = None) -> Optional[UserSummary]:
    if user is None:
        if user_id is None:
            return None
        # Deleted account: keep the reference, drop the profile
        return UserSummary(id=user_id, username="unknown")
    return UserSummary(
        id=user.id,
        username=user.username,
        full_name=user.full_name,
        avatar_url=user.avatar_url,
    )


def link_party(user: User, with_total: bool = False) -> LinkParty:
    return LinkParty(
        id=user.id,
        name=user.full_name or user.username,
        avatar=user.avatar_url,
        total_links=user.total_links if with_total else None,
    )


def message_payload(message: Message, sender: Optional[User], viewer_id: Optional[str]) -> MessagePayload:
    return MessagePayload(
        id=message.id,
        conversation_id=message.conversation_id,
        sender=user_summary(sender, message.sender_id),
        text=message.text,
        attachments=[
            AttachmentPayload(
                url=a.url, file_type=a.file_type, file_name=a.file_name, size=a.size
            )
            for a in message.attachments
        ],
        seen_by=list(message.seen_by),
        created_at=message.created_at,
        is_sender_you=viewer_id is not None and message.sender_id == viewer_id,
    )


def conversation_payload(
    conversation: Conversation,
    viewer_id: str,
    users: Dict[str, User],
    last_message: Optional[Message] = None,
) -> ConversationPayload:
    """The same conversation looks different to each participant"""
    other_user = None
    if conversation.type == ConversationType.PRIVATE:
        other_id = conversation.other_participant(viewer_id)
        other_user = user_summary(users.get(other_id), other_id)

    last = None
    if last_message is not None:
        last = message_payload(last_message, users.get(last_message.sender_id), viewer_id)

    return ConversationPayload(
        id=conversation.id,
        type=conversation.type,
        participants=[user_summary(users.get(p), p) for p in conversation.participants],
        last_message=last,
        unread_counts=[
            UnreadCountEntry(user_id=p, count=conversation.unread_for(p))
            for p in conversation.participants
        ],
        my_unread_count=conversation.unread_for(viewer_id),
        other_user=other_user,
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
    )


def post_payload(post: Post, author: Optional[User], is_liked: bool = False) -> PostPayload:
    payload = PostPayload(
        id=post.id,
        kind=post.kind,
        author=user_summary(author, post.author_id),
        caption=post.caption,
        tags=list(post.tags),
        likes_count=post.likes_count,
        comments_count=post.comments_count,
        is_liked=is_liked,
        created_at=post.created_at,
        updated_at=post.updated_at,
    )
    variant = post.variant
    if isinstance(variant, ArticleContent):
        payload.title = variant.title
        payload.content = variant.content
    elif isinstance(variant, ImageContent):
        payload.images = list(variant.images)
    elif isinstance(variant, VideoContent):
        payload.video_url = variant.video_url
        payload.thumbnail_url = variant.thumbnail_url
    return payload


def comment_payload(
    comment: Comment,
    user: Optional[User],
    like_count: int = 0,
    reply_count: Optional[int] = None,
) -> CommentPayload:
    return CommentPayload(
        id=comment.id,
        post_id=comment.post_id,
        user=user_summary(user, comment.user_id),
        text=comment.text,
        parent_comment_id=comment.parent_comment_id,
        reply_count=reply_count,
        like_count=like_count,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
    )


def notification_payload(
    notification: Notification,
    update_type: Optional[NotificationUpdateType] = None,
) -> NotificationPayload:
    source = notification.source
    action = notification.action
    return NotificationPayload(
        id=notification.id,
        user_id=notification.user_id,
        type=notification.type,
        title=notification.title,
        description=notification.description,
        source=NotificationSourcePayload(
            id=source.id, name=source.name, avatar_url=source.avatar_url
        ) if source else None,
        image_url=notification.image_url,
        action=NotificationActionPayload(label=action.label, url=action.url) if action else None,
        status=notification.status,
        created_at=notification.created_at,
        notification_update=update_type,
    )


def unreads_payload(user_id: str, unreads: UserUnreads) -> UnreadsPayload:
    return UnreadsPayload(
        user_id=user_id,
        notifications_unreads=unreads.notifications_unreads,
        messages_unreads=unreads.messages_unreads,
        total_unreads=unreads.total,
    )


def summaries(users: List[User]) -> List[UserSummary]:
    return [user_summary(user) for user in users]
