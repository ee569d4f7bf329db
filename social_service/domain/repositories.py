"""
Repository interfaces - Define contracts for data access
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set, Tuple

from .models import (
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
)


class IUserRepository(ABC):
    """Identity store"""

    @abstractmethod
    async def create(self, username: str, email: str,
                     full_name: Optional[str] = None,
                     avatar_url: Optional[str] = None) -> User:
        """Create a new user"""
        pass

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[User]:
        """Find user by ID"""
        pass

    @abstractmethod
    async def find_by_ids(self, user_ids: Sequence[str]) -> List[User]:
        """Find several users, preserving the requested order"""
        pass

    @abstractmethod
    async def save_relationships(self, users: Sequence[User]) -> None:
        """Persist the link arrays of every given user as one unit"""
        pass

    @abstractmethod
    async def list_ids(self, limit: int, offset: int = 0) -> List[str]:
        """Page through user IDs"""
        pass

    @abstractmethod
    async def count(self) -> int:
        """Count users"""
        pass

    @abstractmethod
    async def get_unreads(self, user_id: str) -> Optional[UserUnreads]:
        """Read the cached unread counters"""
        pass

    @abstractmethod
    async def increment_unreads(self, user_id: str, kind: UnreadKind,
                                delta: int) -> Optional[UserUnreads]:
        """Add delta (may be negative) to one counter, never going below zero"""
        pass

    @abstractmethod
    async def set_unreads(self, user_id: str,
                          notifications: Optional[int] = None,
                          messages: Optional[int] = None) -> Optional[UserUnreads]:
        """Overwrite one or both counters"""
        pass


class IConversationRepository(ABC):
    """Conversation store"""

    @abstractmethod
    async def create(self, type: ConversationType,
                     participants: Sequence[str]) -> Conversation:
        """Create a conversation with a zero counter per participant"""
        pass

    @abstractmethod
    async def find_by_id(self, conversation_id: str) -> Optional[Conversation]:
        pass

    @abstractmethod
    async def get_or_create_private(self, user_a: str,
                                    user_b: str) -> Tuple[Conversation, bool]:
        """
        Private conversation for the unordered pair, created when missing

        Returns:
            (conversation, created); concurrent callers for the same pair
            all receive the same conversation
        """
        pass

    @abstractmethod
    async def record_message(self, conversation_id: str, sender_id: str,
                             message_id: str) -> Tuple[Conversation, int]:
        """
        Atomically point last_message at message_id, zero the sender's
        counter and add one to every other participant's counter

        Returns:
            (updated conversation, the sender's counter before it was zeroed)
        """
        pass

    @abstractmethod
    async def reset_unread(self, conversation_id: str,
                           user_id: str) -> Tuple[Conversation, int]:
        """Atomically zero one participant's counter; returns the previous value"""
        pass

    @abstractmethod
    async def list_for_user(self, user_id: str) -> List[Conversation]:
        """Conversations the user participates in, most recently updated first"""
        pass


class IMessageRepository(ABC):
    """Message store"""

    @abstractmethod
    async def create(self, conversation_id: str, sender_id: str,
                     text: Optional[str],
                     attachments: Sequence[Attachment]) -> Message:
        pass

    @abstractmethod
    async def find_by_id(self, message_id: str) -> Optional[Message]:
        pass

    @abstractmethod
    async def find_by_ids(self, message_ids: Sequence[str]) -> List[Message]:
        pass

    @abstractmethod
    async def list_for_conversation(self, conversation_id: str, viewer_id: str,
                                    limit: int, offset: int = 0) -> List[Message]:
        """Newest first, excluding messages the viewer deleted for themselves"""
        pass

    @abstractmethod
    async def mark_seen(self, conversation_id: str, user_id: str,
                        message_ids: Optional[Sequence[str]] = None) -> int:
        """Add user to seen_by of not-yet-seen messages; returns count changed"""
        pass

    @abstractmethod
    async def delete_for_user(self, message_id: str, user_id: str) -> bool:
        """Append user to deleted_for; False if already there"""
        pass


class IPostRepository(ABC):
    """Post store (single logical entity for all kinds)"""

    @abstractmethod
    async def create(self, author_id: str, kind: PostKind, variant: PostVariant,
                     caption: Optional[str] = None,
                     tags: Optional[Sequence[str]] = None) -> Post:
        pass

    @abstractmethod
    async def find_by_id(self, post_id: str) -> Optional[Post]:
        pass

    @abstractmethod
    async def increment_counter(self, post_id: str, counter: str, delta: int,
                                clamp: bool = True) -> Optional[Post]:
        """Atomically add delta to likes_count or comments_count"""
        pass

    @abstractmethod
    async def set_counters(self, post_id: str, likes_count: int,
                           comments_count: int) -> Optional[Post]:
        pass

    @abstractmethod
    async def list_recent(self, limit: int, offset: int = 0) -> List[Post]:
        """All posts, newest first"""
        pass


class ILikeRepository(ABC):
    """Post likes, unique on (post_id, user_id)"""

    @abstractmethod
    async def find(self, post_id: str, user_id: str) -> Optional[Like]:
        pass

    @abstractmethod
    async def create(self, post_id: str, user_id: str) -> bool:
        """False when the pair already exists"""
        pass

    @abstractmethod
    async def delete(self, post_id: str, user_id: str) -> bool:
        """False when there was nothing to delete"""
        pass

    @abstractmethod
    async def count_for_post(self, post_id: str) -> int:
        pass

    @abstractmethod
    async def liked_post_ids(self, user_id: str,
                             post_ids: Sequence[str]) -> Set[str]:
        pass


class ICommentRepository(ABC):
    """Comments and replies"""

    @abstractmethod
    async def create(self, post_id: str, user_id: str, text: str,
                     parent_comment_id: Optional[str] = None) -> Comment:
        pass

    @abstractmethod
    async def find_by_id(self, comment_id: str) -> Optional[Comment]:
        pass

    @abstractmethod
    async def update_text(self, comment_id: str, text: str) -> Optional[Comment]:
        pass

    @abstractmethod
    async def delete_with_replies(self, comment_id: str) -> List[str]:
        """Delete the comment and its replies; returns deleted IDs"""
        pass

    @abstractmethod
    async def list_top_level(self, post_id: str, limit: int,
                             offset: int = 0) -> List[Comment]:
        """Top-level comments, newest first"""
        pass

    @abstractmethod
    async def list_replies(self, comment_id: str, limit: int,
                           offset: int = 0) -> List[Comment]:
        """Replies, oldest first"""
        pass

    @abstractmethod
    async def count_replies(self, comment_id: str) -> int:
        pass

    @abstractmethod
    async def count_for_post(self, post_id: str) -> int:
        pass


class ICommentLikeRepository(ABC):
    """Comment likes, unique on (comment_id, user_id)"""

    @abstractmethod
    async def find(self, comment_id: str, user_id: str) -> bool:
        pass

    @abstractmethod
    async def create(self, comment_id: str, user_id: str) -> bool:
        pass

    @abstractmethod
    async def delete(self, comment_id: str, user_id: str) -> bool:
        pass

    @abstractmethod
    async def count_for_comment(self, comment_id: str) -> int:
        pass

    @abstractmethod
    async def delete_for_comments(self, comment_ids: Sequence[str]) -> int:
        pass


class INotificationRepository(ABC):
    """Notification store"""

    @abstractmethod
    async def create(self, user_id: str, type: NotificationType, title: str,
                     description: Optional[str] = None,
                     source: Optional[NotificationSource] = None,
                     image_url: Optional[str] = None,
                     action: Optional[NotificationAction] = None) -> Notification:
        pass

    @abstractmethod
    async def find_link_request(self, user_id: str,
                                actor_id: str) -> Optional[Notification]:
        """The pending link-request notice sent by actor to user"""
        pass

    @abstractmethod
    async def delete(self, notification_id: str,
                     user_id: str) -> Optional[Notification]:
        """Delete one of the user's notifications, returning it"""
        pass

    @abstractmethod
    async def delete_all(self, user_id: str) -> Tuple[int, int]:
        """Returns (deleted, deleted_while_unread)"""
        pass

    @abstractmethod
    async def list_for_user(self, user_id: str, limit: int, offset: int = 0,
                            status: Optional[NotificationStatus] = None) -> List[Notification]:
        """Newest first"""
        pass

    @abstractmethod
    async def mark_read(self, user_id: str,
                        notification_ids: Sequence[str]) -> List[str]:
        """Flip the user's UNREAD rows among ids to READ; returns flipped ids"""
        pass

    @abstractmethod
    async def mark_all_read(self, user_id: str) -> List[str]:
        pass

    @abstractmethod
    async def count_unread(self, user_id: str) -> int:
        pass


@dataclass
class Repositories:
    """Every store the engines need, built together per backend"""
    users: IUserRepository
    conversations: IConversationRepository
    messages: IMessageRepository
    posts: IPostRepository
    likes: ILikeRepository
    comments: ICommentRepository
    comment_likes: ICommentLikeRepository
    notifications: INotificationRepository
