"""
In-memory repository implementations (DATABASE_BACKEND=memory, tests)

Every read returns a copy, so callers must save to persist changes.
"""
from copy import deepcopy
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Set, Tuple
import itertools
import uuid

from ...errors import ConflictError
from ...domain.models import (
    LINK_REQUEST_TITLE,
    Attachment,
    Comment,
    Conversation,
    ConversationType,
    Like,
    Message,
    Notification,
    NotificationAction,
    NotificationSource,
    NotificationStatus,
    NotificationType,
    Post,
    PostKind,
    PostVariant,
    UnreadKind,
    User,
    UserUnreads,
    private_pair_key,
)
from ...domain.repositories import (
    ICommentLikeRepository,
    ICommentRepository,
    IConversationRepository,
    ILikeRepository,
    IMessageRepository,
    INotificationRepository,
    IPostRepository,
    IUserRepository,
    Repositories,
)

_sequence = itertools.count()


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryUserRepository(IUserRepository):

    def __init__(self):
        self._users: Dict[str, User] = {}

    async def create(self, username: str, email: str,
                     full_name: Optional[str] = None,
                     avatar_url: Optional[str] = None) -> User:
        for existing in self._users.values():
            if existing.username == username or existing.email == email:
                raise ConflictError("Username or email already registered")
        now = datetime.utcnow()
        user = User(
            id=_new_id(),
            username=username,
            email=email,
            full_name=full_name,
            avatar_url=avatar_url,
            created_at=now,
            updated_at=now,
        )
        self._users[user.id] = user
        return deepcopy(user)

    async def find_by_id(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        return deepcopy(user) if user else None

    async def find_by_ids(self, user_ids: Sequence[str]) -> List[User]:
        return [deepcopy(self._users[uid]) for uid in user_ids if uid in self._users]

    async def save_relationships(self, users: Sequence[User]) -> None:
        missing = [u.id for u in users if u.id not in self._users]
        if missing:
            raise KeyError(f"Unknown users: {missing}")
        now = datetime.utcnow()
        for user in users:
            stored = self._users[user.id]
            stored.sent_links = list(user.sent_links)
            stored.received_links = list(user.received_links)
            stored.links = list(user.links)
            stored.updated_at = now

    async def list_ids(self, limit: int, offset: int = 0) -> List[str]:
        return list(self._users.keys())[offset:offset + limit]

    async def count(self) -> int:
        return len(self._users)

    async def get_unreads(self, user_id: str) -> Optional[UserUnreads]:
        user = self._users.get(user_id)
        return deepcopy(user.unreads) if user else None

    async def increment_unreads(self, user_id: str, kind: UnreadKind,
                                delta: int) -> Optional[UserUnreads]:
        user = self._users.get(user_id)
        if not user:
            return None
        if kind == UnreadKind.NOTIFICATIONS:
            user.unreads.notifications_unreads = max(0, user.unreads.notifications_unreads + delta)
        else:
            user.unreads.messages_unreads = max(0, user.unreads.messages_unreads + delta)
        return deepcopy(user.unreads)

    async def set_unreads(self, user_id: str,
                          notifications: Optional[int] = None,
                          messages: Optional[int] = None) -> Optional[UserUnreads]:
        user = self._users.get(user_id)
        if not user:
            return None
        if notifications is not None:
            user.unreads.notifications_unreads = max(0, notifications)
        if messages is not None:
            user.unreads.messages_unreads = max(0, messages)
        return deepcopy(user.unreads)


class InMemoryConversationRepository(IConversationRepository):

    def __init__(self):
        self._conversations: Dict[str, Conversation] = {}
        self._order: Dict[str, int] = {}

    def _insert(self, type: ConversationType, participants: Sequence[str]) -> Conversation:
        unique = list(dict.fromkeys(participants))
        now = datetime.utcnow()
        conversation = Conversation(
            id=_new_id(),
            type=type,
            participants=unique,
            unread_counts={p: 0 for p in unique},
            created_at=now,
            updated_at=now,
        )
        self._conversations[conversation.id] = conversation
        self._order[conversation.id] = next(_sequence)
        return conversation

    def _stored(self, conversation_id: str) -> Conversation:
        stored = self._conversations.get(conversation_id)
        if not stored:
            raise KeyError(f"Unknown conversation: {conversation_id}")
        return stored

    def _touch(self, conversation: Conversation) -> None:
        conversation.updated_at = datetime.utcnow()
        self._order[conversation.id] = next(_sequence)

    async def create(self, type: ConversationType,
                     participants: Sequence[str]) -> Conversation:
        return deepcopy(self._insert(type, participants))

    async def find_by_id(self, conversation_id: str) -> Optional[Conversation]:
        conversation = self._conversations.get(conversation_id)
        return deepcopy(conversation) if conversation else None

    async def get_or_create_private(self, user_a: str,
                                    user_b: str) -> Tuple[Conversation, bool]:
        # No await between lookup and insert
        key = private_pair_key(user_a, user_b)
        for conversation in self._conversations.values():
            if (conversation.type == ConversationType.PRIVATE
                    and len(conversation.participants) == 2
                    and private_pair_key(*conversation.participants) == key):
                return deepcopy(conversation), False
        return deepcopy(self._insert(ConversationType.PRIVATE, [user_a, user_b])), True

    async def record_message(self, conversation_id: str, sender_id: str,
                             message_id: str) -> Tuple[Conversation, int]:
        stored = self._stored(conversation_id)
        cleared = stored.unread_for(sender_id)
        stored.record_message(sender_id, message_id)
        self._touch(stored)
        return deepcopy(stored), cleared

    async def reset_unread(self, conversation_id: str,
                           user_id: str) -> Tuple[Conversation, int]:
        stored = self._stored(conversation_id)
        previous = stored.reset_unread(user_id)
        self._touch(stored)
        return deepcopy(stored), previous

    async def list_for_user(self, user_id: str) -> List[Conversation]:
        mine = [c for c in self._conversations.values() if user_id in c.participants]
        mine.sort(key=lambda c: self._order[c.id], reverse=True)
        return [deepcopy(c) for c in mine]


class InMemoryMessageRepository(IMessageRepository):

    def __init__(self):
        self._messages: Dict[str, Message] = {}

    async def create(self, conversation_id: str, sender_id: str,
                     text: Optional[str],
                     attachments: Sequence[Attachment]) -> Message:
        now = datetime.utcnow()
        message = Message(
            id=_new_id(),
            conversation_id=conversation_id,
            sender_id=sender_id,
            text=text,
            attachments=list(attachments),
            seen_by=[sender_id],
            created_at=now,
            updated_at=now,
        )
        self._messages[message.id] = message
        return deepcopy(message)

    async def find_by_id(self, message_id: str) -> Optional[Message]:
        message = self._messages.get(message_id)
        return deepcopy(message) if message else None

    async def find_by_ids(self, message_ids: Sequence[str]) -> List[Message]:
        return [deepcopy(self._messages[mid]) for mid in message_ids if mid in self._messages]

    async def list_for_conversation(self, conversation_id: str, viewer_id: str,
                                    limit: int, offset: int = 0) -> List[Message]:
        visible = [
            m for m in reversed(list(self._messages.values()))
            if m.conversation_id == conversation_id and viewer_id not in m.deleted_for
        ]
        return [deepcopy(m) for m in visible[offset:offset + limit]]

    async def mark_seen(self, conversation_id: str, user_id: str,
                        message_ids: Optional[Sequence[str]] = None) -> int:
        scope = set(message_ids) if message_ids else None
        changed = 0
        for message in self._messages.values():
            if message.conversation_id != conversation_id or user_id in message.seen_by:
                continue
            if scope is not None and message.id not in scope:
                continue
            message.seen_by.append(user_id)
            message.updated_at = datetime.utcnow()
            changed += 1
        return changed

    async def delete_for_user(self, message_id: str, user_id: str) -> bool:
        message = self._messages.get(message_id)
        if not message or user_id in message.deleted_for:
            return False
        message.deleted_for.append(user_id)
        message.updated_at = datetime.utcnow()
        return True


class InMemoryPostRepository(IPostRepository):

    def __init__(self):
        self._posts: Dict[str, Post] = {}

    async def create(self, author_id: str, kind: PostKind, variant: PostVariant,
                     caption: Optional[str] = None,
                     tags: Optional[Sequence[str]] = None) -> Post:
        now = datetime.utcnow()
        post = Post(
            id=_new_id(),
            author_id=author_id,
            kind=kind,
            variant=variant,
            caption=caption,
            tags=list(tags or []),
            created_at=now,
            updated_at=now,
        )
        self._posts[post.id] = post
        return deepcopy(post)

    async def find_by_id(self, post_id: str) -> Optional[Post]:
        post = self._posts.get(post_id)
        return deepcopy(post) if post else None

    async def increment_counter(self, post_id: str, counter: str, delta: int,
                                clamp: bool = True) -> Optional[Post]:
        if counter not in ("likes_count", "comments_count"):
            raise ValueError(f"Unknown post counter: {counter}")
        post = self._posts.get(post_id)
        if not post:
            return None
        value = getattr(post, counter) + delta
        setattr(post, counter, max(0, value) if clamp else value)
        post.updated_at = datetime.utcnow()
        return deepcopy(post)

    async def set_counters(self, post_id: str, likes_count: int,
                           comments_count: int) -> Optional[Post]:
        post = self._posts.get(post_id)
        if not post:
            return None
        post.likes_count = likes_count
        post.comments_count = comments_count
        post.updated_at = datetime.utcnow()
        return deepcopy(post)

    async def list_recent(self, limit: int, offset: int = 0) -> List[Post]:
        newest_first = list(reversed(list(self._posts.values())))
        return [deepcopy(p) for p in newest_first[offset:offset + limit]]


class InMemoryLikeRepository(ILikeRepository):

    def __init__(self):
        self._likes: Dict[Tuple[str, str], Like] = {}

    async def find(self, post_id: str, user_id: str) -> Optional[Like]:
        like = self._likes.get((post_id, user_id))
        return deepcopy(like) if like else None

    async def create(self, post_id: str, user_id: str) -> bool:
        key = (post_id, user_id)
        if key in self._likes:
            return False
        self._likes[key] = Like(post_id=post_id, user_id=user_id, created_at=datetime.utcnow())
        return True

    async def delete(self, post_id: str, user_id: str) -> bool:
        return self._likes.pop((post_id, user_id), None) is not None

    async def count_for_post(self, post_id: str) -> int:
        return sum(1 for (pid, _) in self._likes if pid == post_id)

    async def liked_post_ids(self, user_id: str,
                             post_ids: Sequence[str]) -> Set[str]:
        return {pid for pid in post_ids if (pid, user_id) in self._likes}


class InMemoryCommentRepository(ICommentRepository):

    def __init__(self):
        self._comments: Dict[str, Comment] = {}

    async def create(self, post_id: str, user_id: str, text: str,
                     parent_comment_id: Optional[str] = None) -> Comment:
        now = datetime.utcnow()
        comment = Comment(
            id=_new_id(),
            post_id=post_id,
            user_id=user_id,
            text=text,
            parent_comment_id=parent_comment_id,
            created_at=now,
            updated_at=now,
        )
        self._comments[comment.id] = comment
        return deepcopy(comment)

    async def find_by_id(self, comment_id: str) -> Optional[Comment]:
        comment = self._comments.get(comment_id)
        return deepcopy(comment) if comment else None

    async def update_text(self, comment_id: str, text: str) -> Optional[Comment]:
        comment = self._comments.get(comment_id)
        if not comment:
            return None
        comment.text = text
        comment.updated_at = datetime.utcnow()
        return deepcopy(comment)

    async def delete_with_replies(self, comment_id: str) -> List[str]:
        if comment_id not in self._comments:
            return []
        deleted = [comment_id] + [
            c.id for c in self._comments.values() if c.parent_comment_id == comment_id
        ]
        for cid in deleted:
            del self._comments[cid]
        return deleted

    async def list_top_level(self, post_id: str, limit: int,
                             offset: int = 0) -> List[Comment]:
        top = [
            c for c in reversed(list(self._comments.values()))
            if c.post_id == post_id and c.parent_comment_id is None
        ]
        return [deepcopy(c) for c in top[offset:offset + limit]]

    async def list_replies(self, comment_id: str, limit: int,
                           offset: int = 0) -> List[Comment]:
        replies = [c for c in self._comments.values() if c.parent_comment_id == comment_id]
        return [deepcopy(c) for c in replies[offset:offset + limit]]

    async def count_replies(self, comment_id: str) -> int:
        return sum(1 for c in self._comments.values() if c.parent_comment_id == comment_id)

    async def count_for_post(self, post_id: str) -> int:
        return sum(1 for c in self._comments.values() if c.post_id == post_id)


class InMemoryCommentLikeRepository(ICommentLikeRepository):

    def __init__(self):
        self._likes: Set[Tuple[str, str]] = set()

    async def find(self, comment_id: str, user_id: str) -> bool:
        return (comment_id, user_id) in self._likes

    async def create(self, comment_id: str, user_id: str) -> bool:
        key = (comment_id, user_id)
        if key in self._likes:
            return False
        self._likes.add(key)
        return True

    async def delete(self, comment_id: str, user_id: str) -> bool:
        key = (comment_id, user_id)
        if key not in self._likes:
            return False
        self._likes.discard(key)
        return True

    async def count_for_comment(self, comment_id: str) -> int:
        return sum(1 for (cid, _) in self._likes if cid == comment_id)

    async def delete_for_comments(self, comment_ids: Sequence[str]) -> int:
        targets = set(comment_ids)
        doomed = {key for key in self._likes if key[0] in targets}
        self._likes -= doomed
        return len(doomed)


class InMemoryNotificationRepository(INotificationRepository):

    def __init__(self):
        self._notifications: Dict[str, Notification] = {}

    async def create(self, user_id: str, type: NotificationType, title: str,
                     description: Optional[str] = None,
                     source: Optional[NotificationSource] = None,
                     image_url: Optional[str] = None,
                     action: Optional[NotificationAction] = None) -> Notification:
        notification = Notification(
            id=_new_id(),
            user_id=user_id,
            type=type,
            title=title,
            description=description,
            source=deepcopy(source),
            image_url=image_url,
            action=deepcopy(action),
            created_at=datetime.utcnow(),
        )
        self._notifications[notification.id] = notification
        return deepcopy(notification)

    async def find_link_request(self, user_id: str,
                                actor_id: str) -> Optional[Notification]:
        for notification in reversed(list(self._notifications.values())):
            if (notification.user_id == user_id
                    and notification.type == NotificationType.SOCIAL_ACTIVITY
                    and notification.title == LINK_REQUEST_TITLE
                    and notification.source is not None
                    and notification.source.id == actor_id):
                return deepcopy(notification)
        return None

    async def delete(self, notification_id: str,
                     user_id: str) -> Optional[Notification]:
        notification = self._notifications.get(notification_id)
        if not notification or notification.user_id != user_id:
            return None
        del self._notifications[notification_id]
        return notification

    async def delete_all(self, user_id: str) -> Tuple[int, int]:
        mine = [n for n in self._notifications.values() if n.user_id == user_id]
        unread = sum(1 for n in mine if n.is_unread)
        for notification in mine:
            del self._notifications[notification.id]
        return len(mine), unread

    async def list_for_user(self, user_id: str, limit: int, offset: int = 0,
                            status: Optional[NotificationStatus] = None) -> List[Notification]:
        mine = [
            n for n in reversed(list(self._notifications.values()))
            if n.user_id == user_id and (status is None or n.status == status)
        ]
        return [deepcopy(n) for n in mine[offset:offset + limit]]

    async def mark_read(self, user_id: str,
                        notification_ids: Sequence[str]) -> List[str]:
        flipped = []
        for notification_id in dict.fromkeys(notification_ids):
            notification = self._notifications.get(notification_id)
            if notification and notification.user_id == user_id and notification.is_unread:
                notification.status = NotificationStatus.READ
                flipped.append(notification_id)
        return flipped

    async def mark_all_read(self, user_id: str) -> List[str]:
        flipped = []
        for notification in self._notifications.values():
            if notification.user_id == user_id and notification.is_unread:
                notification.status = NotificationStatus.READ
                flipped.append(notification.id)
        return flipped

    async def count_unread(self, user_id: str) -> int:
        return sum(
            1 for n in self._notifications.values()
            if n.user_id == user_id and n.is_unread
        )


def create_memory_repositories() -> Repositories:
    """Fresh, empty in-memory stores"""
    return Repositories(
        users=InMemoryUserRepository(),
        conversations=InMemoryConversationRepository(),
        messages=InMemoryMessageRepository(),
        posts=InMemoryPostRepository(),
        likes=InMemoryLikeRepository(),
        comments=InMemoryCommentRepository(),
        comment_likes=InMemoryCommentLikeRepository(),
        notifications=InMemoryNotificationRepository(),
    )
