"""
Repository implementations - PostgreSQL data access layer
"""
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple
import asyncpg
import uuid

from ...errors import ConflictError
from ...domain.models import (
    LINK_REQUEST_TITLE,
    VARIANT_BY_KIND,
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
from .connection import Database

USER_COLUMNS = """
    id, username, email, full_name, avatar_url, sent_links, received_links, links,
    notifications_unreads, messages_unreads, created_at, updated_at
"""

UNREAD_COLUMNS = {
    UnreadKind.NOTIFICATIONS: "notifications_unreads",
    UnreadKind.MESSAGES: "messages_unreads",
}

POST_COUNTERS = ("likes_count", "comments_count")


def _new_id() -> str:
    return uuid.uuid4().hex


def _affected(status: str) -> int:
    """Row count from an asyncpg status string such as 'DELETE 3'"""
    try:
        return int(status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


class UserRepository(IUserRepository):
    """User repository implementation using PostgreSQL"""

    def __init__(self, db: Database):
        self.db = db

    def _row_to_user(self, row: Optional[Dict[str, Any]]) -> Optional[User]:
        """Convert database row to User model"""
        if not row:
            return None
        return User(
            id=row["id"],
            username=row["username"],
            email=row["email"],
            full_name=row["full_name"],
            avatar_url=row["avatar_url"],
            sent_links=list(row["sent_links"] or []),
            received_links=list(row["received_links"] or []),
            links=list(row["links"] or []),
            unreads=UserUnreads(
                notifications_unreads=row["notifications_unreads"],
                messages_unreads=row["messages_unreads"],
            ),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def create(self, username: str, email: str,
                     full_name: Optional[str] = None,
                     avatar_url: Optional[str] = None) -> User:
        """Create a new user"""
        try:
            row = await self.db.fetch_one(
                f"""
                INSERT INTO users (id, username, email, full_name, avatar_url)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING {USER_COLUMNS}
                """,
                _new_id(), username, email, full_name, avatar_url
            )
        except asyncpg.UniqueViolationError:
            raise ConflictError("Username or email already registered")
        return self._row_to_user(row)

    async def find_by_id(self, user_id: str) -> Optional[User]:
        """Find user by ID"""
        row = await self.db.fetch_one(
            f"SELECT {USER_COLUMNS} FROM users WHERE id = $1", user_id
        )
        return self._row_to_user(row)

    async def find_by_ids(self, user_ids: Sequence[str]) -> List[User]:
        if not user_ids:
            return []
        rows = await self.db.fetch_all(
            f"SELECT {USER_COLUMNS} FROM users WHERE id = ANY($1::text[])",
            list(user_ids)
        )
        by_id = {row["id"]: self._row_to_user(row) for row in rows}
        return [by_id[uid] for uid in user_ids if uid in by_id]

    async def save_relationships(self, users: Sequence[User]) -> None:
        """Both sides of a relationship change commit together"""
        now = datetime.utcnow()
        async with self.db.transaction() as conn:
            for user in users:
                status = await conn.execute(
                    """
                    UPDATE users
                    SET sent_links = $2, received_links = $3, links = $4, updated_at = $5
                    WHERE id = $1
                    """,
                    user.id, list(user.sent_links), list(user.received_links),
                    list(user.links), now
                )
                if _affected(status) != 1:
                    raise KeyError(f"Unknown user: {user.id}")

    async def list_ids(self, limit: int, offset: int = 0) -> List[str]:
        rows = await self.db.fetch_all(
            "SELECT id FROM users ORDER BY created_at, id LIMIT $1 OFFSET $2",
            limit, offset
        )
        return [row["id"] for row in rows]

    async def count(self) -> int:
        return await self.db.fetch_value("SELECT COUNT(*) FROM users")

    async def get_unreads(self, user_id: str) -> Optional[UserUnreads]:
        row = await self.db.fetch_one(
            "SELECT notifications_unreads, messages_unreads FROM users WHERE id = $1",
            user_id
        )
        return UserUnreads(**row) if row else None

    async def increment_unreads(self, user_id: str, kind: UnreadKind,
                                delta: int) -> Optional[UserUnreads]:
        column = UNREAD_COLUMNS[kind]
        row = await self.db.fetch_one(
            f"""
            UPDATE users
            SET {column} = GREATEST(0, {column} + $2)
            WHERE id = $1
            RETURNING notifications_unreads, messages_unreads
            """,
            user_id, delta
        )
        return UserUnreads(**row) if row else None

    async def set_unreads(self, user_id: str,
                          notifications: Optional[int] = None,
                          messages: Optional[int] = None) -> Optional[UserUnreads]:
        row = await self.db.fetch_one(
            """
            UPDATE users
            SET notifications_unreads = CASE WHEN $2::int IS NULL
                    THEN notifications_unreads ELSE GREATEST(0, $2::int) END,
                messages_unreads = CASE WHEN $3::int IS NULL
                    THEN messages_unreads ELSE GREATEST(0, $3::int) END
            WHERE id = $1
            RETURNING notifications_unreads, messages_unreads
            """,
            user_id, notifications, messages
        )
        return UserUnreads(**row) if row else None


class ConversationRepository(IConversationRepository):
    """Conversation repository implementation using PostgreSQL"""

    def __init__(self, db: Database):
        self.db = db

    def _row_to_conversation(self, row: Optional[Dict[str, Any]]) -> Optional[Conversation]:
        if not row:
            return None
        participants = list(row["participants"])
        stored = row["unread_counts"] or {}
        return Conversation(
            id=row["id"],
            type=ConversationType(row["type"]),
            participants=participants,
            unread_counts={p: int(stored.get(p, 0)) for p in participants},
            last_message_id=row["last_message_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def create(self, type: ConversationType,
                     participants: Sequence[str]) -> Conversation:
        unique = list(dict.fromkeys(participants))
        pair_key = None
        if type == ConversationType.PRIVATE and len(unique) == 2:
            pair_key = private_pair_key(*unique)
        row = await self.db.fetch_one(
            """
            INSERT INTO conversations (id, type, participants, unread_counts, pair_key)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *
            """,
            _new_id(), type.value, unique, {p: 0 for p in unique}, pair_key
        )
        return self._row_to_conversation(row)

    async def find_by_id(self, conversation_id: str) -> Optional[Conversation]:
        row = await self.db.fetch_one(
            "SELECT * FROM conversations WHERE id = $1", conversation_id
        )
        return self._row_to_conversation(row)

    async def get_or_create_private(self, user_a: str,
                                    user_b: str) -> Tuple[Conversation, bool]:
        pair_key = private_pair_key(user_a, user_b)
        select = "SELECT * FROM conversations WHERE pair_key = $1"
        row = await self.db.fetch_one(select, pair_key)
        if row:
            return self._row_to_conversation(row), False

        # The unique pair_key index lets exactly one concurrent insert win
        row = await self.db.fetch_one(
            """
            INSERT INTO conversations (id, type, participants, unread_counts, pair_key)
            VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT (pair_key) WHERE pair_key IS NOT NULL DO NOTHING
            RETURNING *
            """,
            _new_id(), ConversationType.PRIVATE.value, [user_a, user_b],
            {user_a: 0, user_b: 0}, pair_key
        )
        if row:
            return self._row_to_conversation(row), True
        return self._row_to_conversation(await self.db.fetch_one(select, pair_key)), False

    async def _update_locked(self, conversation_id: str, apply) -> Tuple[Conversation, int]:
        """Run apply(conversation) -> int on the row while holding its lock"""
        async with self.db.transaction() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM conversations WHERE id = $1 FOR UPDATE", conversation_id
            )
            if not row:
                raise KeyError(f"Unknown conversation: {conversation_id}")
            conversation = self._row_to_conversation(dict(row))
            result = apply(conversation)
            row = await conn.fetchrow(
                """
                UPDATE conversations
                SET last_message_id = $2, unread_counts = $3, updated_at = $4
                WHERE id = $1
                RETURNING *
                """,
                conversation.id, conversation.last_message_id,
                dict(conversation.unread_counts), datetime.utcnow()
            )
            return self._row_to_conversation(dict(row)), result

    async def record_message(self, conversation_id: str, sender_id: str,
                             message_id: str) -> Tuple[Conversation, int]:
        def apply(conversation: Conversation) -> int:
            cleared = conversation.unread_for(sender_id)
            conversation.record_message(sender_id, message_id)
            return cleared

        return await self._update_locked(conversation_id, apply)

    async def reset_unread(self, conversation_id: str,
                           user_id: str) -> Tuple[Conversation, int]:
        return await self._update_locked(
            conversation_id, lambda conversation: conversation.reset_unread(user_id)
        )

    async def list_for_user(self, user_id: str) -> List[Conversation]:
        rows = await self.db.fetch_all(
            """
            SELECT * FROM conversations
            WHERE $1 = ANY(participants)
            ORDER BY updated_at DESC
            """,
            user_id
        )
        return [self._row_to_conversation(row) for row in rows]


class MessageRepository(IMessageRepository):
    """Message repository implementation using PostgreSQL"""

    def __init__(self, db: Database):
        self.db = db

    def _row_to_message(self, row: Optional[Dict[str, Any]]) -> Optional[Message]:
        if not row:
            return None
        return Message(
            id=row["id"],
            conversation_id=row["conversation_id"],
            sender_id=row["sender_id"],
            text=row["text"],
            attachments=[Attachment(**a) for a in (row["attachments"] or [])],
            seen_by=list(row["seen_by"] or []),
            deleted_for=list(row["deleted_for"] or []),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def create(self, conversation_id: str, sender_id: str,
                     text: Optional[str],
                     attachments: Sequence[Attachment]) -> Message:
        row = await self.db.fetch_one(
            """
            INSERT INTO messages (id, conversation_id, sender_id, text, attachments, seen_by)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *
            """,
            _new_id(), conversation_id, sender_id, text,
            [asdict(a) for a in attachments], [sender_id]
        )
        return self._row_to_message(row)

    async def find_by_id(self, message_id: str) -> Optional[Message]:
        row = await self.db.fetch_one("SELECT * FROM messages WHERE id = $1", message_id)
        return self._row_to_message(row)

    async def find_by_ids(self, message_ids: Sequence[str]) -> List[Message]:
        if not message_ids:
            return []
        rows = await self.db.fetch_all(
            "SELECT * FROM messages WHERE id = ANY($1::text[])", list(message_ids)
        )
        by_id = {row["id"]: self._row_to_message(row) for row in rows}
        return [by_id[mid] for mid in message_ids if mid in by_id]

    async def list_for_conversation(self, conversation_id: str, viewer_id: str,
                                    limit: int, offset: int = 0) -> List[Message]:
        rows = await self.db.fetch_all(
            """
            SELECT * FROM messages
            WHERE conversation_id = $1 AND NOT ($2 = ANY(deleted_for))
            ORDER BY created_at DESC, id DESC
            LIMIT $3 OFFSET $4
            """,
            conversation_id, viewer_id, limit, offset
        )
        return [self._row_to_message(row) for row in rows]

    async def mark_seen(self, conversation_id: str, user_id: str,
                        message_ids: Optional[Sequence[str]] = None) -> int:
        if message_ids:
            status = await self.db.execute(
                """
                UPDATE messages
                SET seen_by = array_append(seen_by, $2), updated_at = $4
                WHERE conversation_id = $1 AND NOT ($2 = ANY(seen_by))
                  AND id = ANY($3::text[])
                """,
                conversation_id, user_id, list(message_ids), datetime.utcnow()
            )
        else:
            status = await self.db.execute(
                """
                UPDATE messages
                SET seen_by = array_append(seen_by, $2), updated_at = $3
                WHERE conversation_id = $1 AND NOT ($2 = ANY(seen_by))
                """,
                conversation_id, user_id, datetime.utcnow()
            )
        return _affected(status)

    async def delete_for_user(self, message_id: str, user_id: str) -> bool:
        status = await self.db.execute(
            """
            UPDATE messages
            SET deleted_for = array_append(deleted_for, $2), updated_at = $3
            WHERE id = $1 AND NOT ($2 = ANY(deleted_for))
            """,
            message_id, user_id, datetime.utcnow()
        )
        return _affected(status) == 1


class PostRepository(IPostRepository):
    """Post repository: one table, kind discriminant plus JSONB variant"""

    def __init__(self, db: Database):
        self.db = db

    def _row_to_post(self, row: Optional[Dict[str, Any]]) -> Optional[Post]:
        if not row:
            return None
        kind = PostKind(row["kind"])
        return Post(
            id=row["id"],
            author_id=row["author_id"],
            kind=kind,
            variant=VARIANT_BY_KIND[kind](**row["variant"]),
            caption=row["caption"],
            tags=list(row["tags"] or []),
            likes_count=row["likes_count"],
            comments_count=row["comments_count"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def create(self, author_id: str, kind: PostKind, variant: PostVariant,
                     caption: Optional[str] = None,
                     tags: Optional[Sequence[str]] = None) -> Post:
        if not isinstance(variant, VARIANT_BY_KIND[kind]):
            raise ValueError(f"{kind.value} post requires {VARIANT_BY_KIND[kind].__name__}")
        row = await self.db.fetch_one(
            """
            INSERT INTO posts (id, author_id, kind, variant, caption, tags)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *
            """,
            _new_id(), author_id, kind.value, asdict(variant), caption, list(tags or [])
        )
        return self._row_to_post(row)

    async def find_by_id(self, post_id: str) -> Optional[Post]:
        row = await self.db.fetch_one("SELECT * FROM posts WHERE id = $1", post_id)
        return self._row_to_post(row)

    async def increment_counter(self, post_id: str, counter: str, delta: int,
                                clamp: bool = True) -> Optional[Post]:
        if counter not in POST_COUNTERS:
            raise ValueError(f"Unknown post counter: {counter}")
        expression = f"GREATEST(0, {counter} + $2)" if clamp else f"{counter} + $2"
        row = await self.db.fetch_one(
            f"""
            UPDATE posts
            SET {counter} = {expression}, updated_at = $3
            WHERE id = $1
            RETURNING *
            """,
            post_id, delta, datetime.utcnow()
        )
        return self._row_to_post(row)

    async def set_counters(self, post_id: str, likes_count: int,
                           comments_count: int) -> Optional[Post]:
        row = await self.db.fetch_one(
            """
            UPDATE posts
            SET likes_count = $2, comments_count = $3, updated_at = $4
            WHERE id = $1
            RETURNING *
            """,
            post_id, likes_count, comments_count, datetime.utcnow()
        )
        return self._row_to_post(row)

    async def list_recent(self, limit: int, offset: int = 0) -> List[Post]:
        rows = await self.db.fetch_all(
            "SELECT * FROM posts ORDER BY created_at DESC, id DESC LIMIT $1 OFFSET $2",
            limit, offset
        )
        return [self._row_to_post(row) for row in rows]


class LikeRepository(ILikeRepository):
    """Post likes; the primary key is the uniqueness guard"""

    def __init__(self, db: Database):
        self.db = db

    async def find(self, post_id: str, user_id: str) -> Optional[Like]:
        row = await self.db.fetch_one(
            "SELECT post_id, user_id, created_at FROM likes WHERE post_id = $1 AND user_id = $2",
            post_id, user_id
        )
        return Like(**row) if row else None

    async def create(self, post_id: str, user_id: str) -> bool:
        row = await self.db.fetch_one(
            """
            INSERT INTO likes (post_id, user_id, created_at)
            VALUES ($1, $2, $3)
            ON CONFLICT (post_id, user_id) DO NOTHING
            RETURNING post_id
            """,
            post_id, user_id, datetime.utcnow()
        )
        return row is not None

    async def delete(self, post_id: str, user_id: str) -> bool:
        row = await self.db.fetch_one(
            "DELETE FROM likes WHERE post_id = $1 AND user_id = $2 RETURNING post_id",
            post_id, user_id
        )
        return row is not None

    async def count_for_post(self, post_id: str) -> int:
        return await self.db.fetch_value(
            "SELECT COUNT(*) FROM likes WHERE post_id = $1", post_id
        )

    async def liked_post_ids(self, user_id: str,
                             post_ids: Sequence[str]) -> Set[str]:
        if not post_ids:
            return set()
        rows = await self.db.fetch_all(
            "SELECT post_id FROM likes WHERE user_id = $1 AND post_id = ANY($2::text[])",
            user_id, list(post_ids)
        )
        return {row["post_id"] for row in rows}


class CommentRepository(ICommentRepository):
    """Comment repository implementation using PostgreSQL"""

    def __init__(self, db: Database):
        self.db = db

    def _row_to_comment(self, row: Optional[Dict[str, Any]]) -> Optional[Comment]:
        return Comment(**row) if row else None

    async def create(self, post_id: str, user_id: str, text: str,
                     parent_comment_id: Optional[str] = None) -> Comment:
        row = await self.db.fetch_one(
            """
            INSERT INTO comments (id, post_id, user_id, text, parent_comment_id)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *
            """,
            _new_id(), post_id, user_id, text, parent_comment_id
        )
        return self._row_to_comment(row)

    async def find_by_id(self, comment_id: str) -> Optional[Comment]:
        row = await self.db.fetch_one("SELECT * FROM comments WHERE id = $1", comment_id)
        return self._row_to_comment(row)

    async def update_text(self, comment_id: str, text: str) -> Optional[Comment]:
        row = await self.db.fetch_one(
            """
            UPDATE comments SET text = $2, updated_at = $3
            WHERE id = $1
            RETURNING *
            """,
            comment_id, text, datetime.utcnow()
        )
        return self._row_to_comment(row)

    async def delete_with_replies(self, comment_id: str) -> List[str]:
        rows = await self.db.fetch_all(
            """
            DELETE FROM comments
            WHERE id = $1 OR parent_comment_id = $1
            RETURNING id
            """,
            comment_id
        )
        return [row["id"] for row in rows]

    async def list_top_level(self, post_id: str, limit: int,
                             offset: int = 0) -> List[Comment]:
        rows = await self.db.fetch_all(
            """
            SELECT * FROM comments
            WHERE post_id = $1 AND parent_comment_id IS NULL
            ORDER BY created_at DESC, id DESC
            LIMIT $2 OFFSET $3
            """,
            post_id, limit, offset
        )
        return [self._row_to_comment(row) for row in rows]

    async def list_replies(self, comment_id: str, limit: int,
                           offset: int = 0) -> List[Comment]:
        rows = await self.db.fetch_all(
            """
            SELECT * FROM comments
            WHERE parent_comment_id = $1
            ORDER BY created_at ASC, id ASC
            LIMIT $2 OFFSET $3
            """,
            comment_id, limit, offset
        )
        return [self._row_to_comment(row) for row in rows]

    async def count_replies(self, comment_id: str) -> int:
        return await self.db.fetch_value(
            "SELECT COUNT(*) FROM comments WHERE parent_comment_id = $1", comment_id
        )

    async def count_for_post(self, post_id: str) -> int:
        return await self.db.fetch_value(
            "SELECT COUNT(*) FROM comments WHERE post_id = $1", post_id
        )


class CommentLikeRepository(ICommentLikeRepository):

    def __init__(self, db: Database):
        self.db = db

    async def find(self, comment_id: str, user_id: str) -> bool:
        row = await self.db.fetch_one(
            "SELECT 1 AS found FROM comment_likes WHERE comment_id = $1 AND user_id = $2",
            comment_id, user_id
        )
        return row is not None

    async def create(self, comment_id: str, user_id: str) -> bool:
        row = await self.db.fetch_one(
            """
            INSERT INTO comment_likes (comment_id, user_id, created_at)
            VALUES ($1, $2, $3)
            ON CONFLICT (comment_id, user_id) DO NOTHING
            RETURNING comment_id
            """,
            comment_id, user_id, datetime.utcnow()
        )
        return row is not None

    async def delete(self, comment_id: str, user_id: str) -> bool:
        row = await self.db.fetch_one(
            "DELETE FROM comment_likes WHERE comment_id = $1 AND user_id = $2 RETURNING comment_id",
            comment_id, user_id
        )
        return row is not None

    async def count_for_comment(self, comment_id: str) -> int:
        return await self.db.fetch_value(
            "SELECT COUNT(*) FROM comment_likes WHERE comment_id = $1", comment_id
        )

    async def delete_for_comments(self, comment_ids: Sequence[str]) -> int:
        if not comment_ids:
            return 0
        status = await self.db.execute(
            "DELETE FROM comment_likes WHERE comment_id = ANY($1::text[])",
            list(comment_ids)
        )
        return _affected(status)


class NotificationRepository(INotificationRepository):
    """Notification repository implementation using PostgreSQL"""

    def __init__(self, db: Database):
        self.db = db

    def _row_to_notification(self, row: Optional[Dict[str, Any]]) -> Optional[Notification]:
        if not row:
            return None
        return Notification(
            id=row["id"],
            user_id=row["user_id"],
            type=NotificationType(row["type"]),
            title=row["title"],
            description=row["description"],
            source=NotificationSource(**row["source"]) if row["source"] else None,
            image_url=row["image_url"],
            action=NotificationAction(**row["action"]) if row["action"] else None,
            status=NotificationStatus(row["status"]),
            created_at=row["created_at"],
        )

    async def create(self, user_id: str, type: NotificationType, title: str,
                     description: Optional[str] = None,
                     source: Optional[NotificationSource] = None,
                     image_url: Optional[str] = None,
                     action: Optional[NotificationAction] = None) -> Notification:
        row = await self.db.fetch_one(
            """
            INSERT INTO notifications (id, user_id, type, title, description, source, image_url, action)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING *
            """,
            _new_id(), user_id, type.value, title, description,
            asdict(source) if source else None, image_url,
            asdict(action) if action else None
        )
        return self._row_to_notification(row)

    async def find_link_request(self, user_id: str,
                                actor_id: str) -> Optional[Notification]:
        row = await self.db.fetch_one(
            """
            SELECT * FROM notifications
            WHERE user_id = $1 AND type = $2 AND title = $3 AND source->>'id' = $4
            ORDER BY created_at DESC
            LIMIT 1
            """,
            user_id, NotificationType.SOCIAL_ACTIVITY.value, LINK_REQUEST_TITLE, actor_id
        )
        return self._row_to_notification(row)

    async def delete(self, notification_id: str,
                     user_id: str) -> Optional[Notification]:
        row = await self.db.fetch_one(
            "DELETE FROM notifications WHERE id = $1 AND user_id = $2 RETURNING *",
            notification_id, user_id
        )
        return self._row_to_notification(row)

    async def delete_all(self, user_id: str) -> Tuple[int, int]:
        rows = await self.db.fetch_all(
            "DELETE FROM notifications WHERE user_id = $1 RETURNING status", user_id
        )
        unread = sum(1 for row in rows if row["status"] == NotificationStatus.UNREAD.value)
        return len(rows), unread

    async def list_for_user(self, user_id: str, limit: int, offset: int = 0,
                            status: Optional[NotificationStatus] = None) -> List[Notification]:
        rows = await self.db.fetch_all(
            """
            SELECT * FROM notifications
            WHERE user_id = $1 AND ($2::text IS NULL OR status = $2)
            ORDER BY created_at DESC, id DESC
            LIMIT $3 OFFSET $4
            """,
            user_id, status.value if status else None, limit, offset
        )
        return [self._row_to_notification(row) for row in rows]

    async def mark_read(self, user_id: str,
                        notification_ids: Sequence[str]) -> List[str]:
        if not notification_ids:
            return []
        rows = await self.db.fetch_all(
            """
            UPDATE notifications SET status = 'READ'
            WHERE user_id = $1 AND status = 'UNREAD' AND id = ANY($2::text[])
            RETURNING id
            """,
            user_id, list(notification_ids)
        )
        return [row["id"] for row in rows]

    async def mark_all_read(self, user_id: str) -> List[str]:
        rows = await self.db.fetch_all(
            """
            UPDATE notifications SET status = 'READ'
            WHERE user_id = $1 AND status = 'UNREAD'
            RETURNING id
            """,
            user_id
        )
        return [row["id"] for row in rows]

    async def count_unread(self, user_id: str) -> int:
        return await self.db.fetch_value(
            "SELECT COUNT(*) FROM notifications WHERE user_id = $1 AND status = 'UNREAD'",
            user_id
        )


def create_postgres_repositories(db: Database) -> Repositories:
    """PostgreSQL-backed stores sharing one pool"""
    return Repositories(
        users=UserRepository(db),
        conversations=ConversationRepository(db),
        messages=MessageRepository(db),
        posts=PostRepository(db),
        likes=LikeRepository(db),
        comments=CommentRepository(db),
        comment_likes=CommentLikeRepository(db),
        notifications=NotificationRepository(db),
    )
