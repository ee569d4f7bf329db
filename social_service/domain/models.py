"""
Domain models - Core business entities
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union


class RelationshipState(str, Enum):
    """Relationship between a viewer and another user"""
    NONE = "none"
    SENT = "sent"
    RECEIVED = "received"
    LINKED = "linked"


class LinkStatus(str, Enum):
    """Status carried by link-update events"""
    SENT = "sent"
    ACCEPT = "accept"  # receiver-side view of a pending request
    WITHDRAWN = "WITHDRAWN"
    LINKED = "linked"
    REJECTED = "REJECTED"
    REMOVED = "REMOVED"


class UnreadKind(str, Enum):
    """Which aggregate unread counter"""
    NOTIFICATIONS = "notifications"
    MESSAGES = "messages"


class ConversationType(str, Enum):
    PRIVATE = "PRIVATE"
    GROUP = "GROUP"


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    FILE = "file"
    PDF = "pdf"
    OTHER = "other"

    @property
    def is_attachment(self) -> bool:
        return self != MessageType.TEXT


class PostKind(str, Enum):
    """Discriminant of the polymorphic post"""
    ARTICLE = "Article"
    IMAGE = "Image"
    VIDEO = "Video"


class PostAction(str, Enum):
    LIKE = "LIKE"
    UNLIKE = "UNLIKE"
    COMMENT_ADDED = "COMMENT_ADDED"
    COMMENT_UPDATED = "COMMENT_UPDATED"
    COMMENT_DELETED = "COMMENT_DELETED"


class NotificationType(str, Enum):
    PROMOTIONAL = "PROMOTIONAL"
    JOB_OPPORTUNITY = "JOB_OPPORTUNITY"
    CONTENT_RECOMMENDATION = "CONTENT_RECOMMENDATION"
    SOCIAL_ACTIVITY = "SOCIAL_ACTIVITY"
    PERSONALIZED_SUGGESTION = "PERSONALIZED_SUGGESTION"
    PROFILE_ACTIVITY = "PROFILE_ACTIVITY"


class NotificationStatus(str, Enum):
    UNREAD = "UNREAD"
    READ = "READ"


class NotificationUpdateType(str, Enum):
    """Tag attached to every notification event"""
    NEW = "NEW"
    DELETED = "DELETED"
    READ = "READ"
    UPDATED = "UPDATED"
    BATCH_DELETE = "BATCH_DELETE"


@dataclass
class UserUnreads:
    """Cached aggregate unread counters"""
    notifications_unreads: int = 0
    messages_unreads: int = 0

    @property
    def total(self) -> int:
        return self.notifications_unreads + self.messages_unreads

    def get(self, kind: UnreadKind) -> int:
        if kind == UnreadKind.NOTIFICATIONS:
            return self.notifications_unreads
        return self.messages_unreads


@dataclass
class User:
    """User domain model with relationship arrays"""
    id: str
    username: str
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    sent_links: List[str] = field(default_factory=list)
    received_links: List[str] = field(default_factory=list)
    links: List[str] = field(default_factory=list)
    unreads: UserUnreads = field(default_factory=UserUnreads)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.username or self.full_name or "Someone"

    @property
    def total_links(self) -> int:
        return len(self.links)

    def has_sent_to(self, user_id: str) -> bool:
        return user_id in self.sent_links

    def has_received_from(self, user_id: str) -> bool:
        return user_id in self.received_links

    def is_linked_to(self, user_id: str) -> bool:
        return user_id in self.links

    def relationship_with(self, user_id: str) -> RelationshipState:
        """Viewer-relative state; links win over any stale pending entry"""
        if self.is_linked_to(user_id):
            return RelationshipState.LINKED
        if self.has_sent_to(user_id):
            return RelationshipState.SENT
        if self.has_received_from(user_id):
            return RelationshipState.RECEIVED
        return RelationshipState.NONE


@dataclass
class Attachment:
    url: str
    file_type: str
    file_name: Optional[str] = None
    size: Optional[int] = None


@dataclass
class Message:
    """Message domain model"""
    id: str
    conversation_id: str
    sender_id: str
    text: Optional[str] = None
    attachments: List[Attachment] = field(default_factory=list)
    seen_by: List[str] = field(default_factory=list)
    deleted_for: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Conversation:
    """Conversation domain model

    ``unread_counts`` keeps one counter per participant, in participant order.
    """
    id: str
    type: ConversationType
    participants: List[str]
    unread_counts: Dict[str, int] = field(default_factory=dict)
    last_message_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_participant(self, user_id: str) -> bool:
        return user_id in self.participants

    def other_participant(self, viewer_id: str) -> Optional[str]:
        """Non-self participant of a private conversation"""
        for participant in self.participants:
            if participant != viewer_id:
                return participant
        return self.participants[0] if self.participants else None

    def unread_for(self, user_id: str) -> int:
        return self.unread_counts.get(user_id, 0)

    def record_message(self, sender_id: str, message_id: str) -> List[str]:
        """Apply a sent message to the counters; returns the recipients"""
        recipients = []
        self.last_message_id = message_id
        for participant in self.participants:
            if participant == sender_id:
                self.unread_counts[participant] = 0
            else:
                self.unread_counts[participant] = self.unread_for(participant) + 1
                recipients.append(participant)
        return recipients

    def reset_unread(self, user_id: str) -> int:
        """Zero the user's counter and return the value it had"""
        previous = self.unread_for(user_id)
        self.unread_counts[user_id] = 0
        return previous


def private_pair_key(user_a: str, user_b: str) -> str:
    """Order-independent key of a private conversation"""
    return ":".join(sorted((user_a, user_b)))


@dataclass
class ArticleContent:
    title: str
    content: str


@dataclass
class ImageContent:
    images: List[str] = field(default_factory=list)


@dataclass
class VideoContent:
    video_url: str
    thumbnail_url: Optional[str] = None


PostVariant = Union[ArticleContent, ImageContent, VideoContent]

VARIANT_BY_KIND = {
    PostKind.ARTICLE: ArticleContent,
    PostKind.IMAGE: ImageContent,
    PostKind.VIDEO: VideoContent,
}


@dataclass
class Post:
    """Post with common fields and a kind-specific variant"""
    id: str
    author_id: str
    kind: PostKind
    variant: PostVariant
    caption: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    likes_count: int = 0
    comments_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        expected = VARIANT_BY_KIND[self.kind]
        if not isinstance(self.variant, expected):
            raise ValueError(
                f"{self.kind.value} post requires {expected.__name__}, "
                f"got {type(self.variant).__name__}"
            )


@dataclass
class Like:
    post_id: str
    user_id: str
    created_at: Optional[datetime] = None


@dataclass
class Comment:
    """Comment domain model; replies point at a top-level comment"""
    id: str
    post_id: str
    user_id: str
    text: str
    parent_comment_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_reply(self) -> bool:
        return self.parent_comment_id is not None


@dataclass
class CommentLike:
    comment_id: str
    user_id: str
    created_at: Optional[datetime] = None


@dataclass
class NotificationSource:
    id: Optional[str] = None
    name: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass
class NotificationAction:
    label: Optional[str] = None
    url: Optional[str] = None


@dataclass
class Notification:
    """Notification domain model"""
    id: str
    user_id: str
    type: NotificationType
    title: str
    description: Optional[str] = None
    source: Optional[NotificationSource] = None
    image_url: Optional[str] = None
    action: Optional[NotificationAction] = None
    status: NotificationStatus = NotificationStatus.UNREAD
    created_at: Optional[datetime] = None

    @property
    def is_unread(self) -> bool:
        return self.status == NotificationStatus.UNREAD


# Title that identifies the pending link-request notice
LINK_REQUEST_TITLE = "New Link Request"
