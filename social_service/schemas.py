"""
Pydantic schemas for request/response validation and realtime payloads
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional
from datetime import datetime

from .errors import ErrorKind
from .domain.models import (
    ConversationType,
    LinkStatus,
    MessageType,
    NotificationStatus,
    NotificationType,
    NotificationUpdateType,
    PostAction,
    PostKind,
    RelationshipState,
)


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# Result envelope
class ServiceResult(CamelModel):
    """Structured result returned by every engine operation"""

    success: bool
    status_code: int = 200
    message: str
    data: Optional[Any] = None

    @classmethod
    def ok(cls, message: str, data: Any = None, status_code: int = 200) -> "ServiceResult":
        return cls(success=True, status_code=status_code, message=message, data=data)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "ServiceResult":
        return cls(success=False, status_code=kind.status_code, message=message)


# Users and links
class UserSummary(CamelModel):
    id: str
    username: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class LinkParty(CamelModel):
    id: str
    name: Optional[str] = None
    avatar: Optional[str] = None
    total_links: Optional[int] = None


class LinkRequestPayload(CamelModel):
    """Body of a linkRequestUpdated event"""

    id: str
    sender: LinkParty
    receiver: LinkParty
    status: LinkStatus
    created_at: datetime
    updated_at: datetime


class LinkStatePayload(CamelModel):
    user_id: str
    state: RelationshipState


class UserPage(CamelModel):
    users: List[UserSummary]
    total: int
    limit: int
    offset: int
    has_more: bool


# Conversations
class AttachmentPayload(CamelModel):
    url: str
    file_type: str
    file_name: Optional[str] = None
    size: Optional[int] = None


class MessagePayload(CamelModel):
    """Body of a messageReceived event, computed per viewer"""

    id: str
    conversation_id: str
    sender: UserSummary
    text: Optional[str] = None
    attachments: List[AttachmentPayload] = []
    seen_by: List[str] = []
    created_at: Optional[datetime] = None
    is_sender_you: bool = False


class UnreadCountEntry(CamelModel):
    user_id: str
    count: int


class ConversationPayload(CamelModel):
    """Body of a conversationUpdated event, computed per viewer"""

    id: str
    type: ConversationType
    participants: List[UserSummary]
    last_message: Optional[MessagePayload] = None
    unread_counts: List[UnreadCountEntry] = []
    my_unread_count: int = 0
    other_user: Optional[UserSummary] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SeenPayload(CamelModel):
    conversation_id: str
    seen_count: int


# Posts and comments
class PostPayload(CamelModel):
    """Post with its kind-specific fields flattened alongside the common ones"""

    id: str
    kind: PostKind
    author: Optional[UserSummary] = None
    caption: Optional[str] = None
    tags: List[str] = []
    likes_count: int = 0
    comments_count: int = 0
    is_liked: bool = False
    title: Optional[str] = None
    content: Optional[str] = None
    images: Optional[List[str]] = None
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CommentPayload(CamelModel):
    id: str
    post_id: str
    user: Optional[UserSummary] = None
    text: str
    parent_comment_id: Optional[str] = None
    reply_count: Optional[int] = None
    like_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LikeRef(CamelModel):
    user_id: str


class PostUpdatePayload(CamelModel):
    """Body of a postUpdated event"""

    post_id: str
    action: PostAction
    like: Optional[LikeRef] = None
    total_likes: int
    total_comments: int
    comment: Optional[CommentPayload] = None
    comment_id: Optional[str] = None
    updated_at: datetime
    is_liked: Optional[bool] = None


class LikeTogglePayload(CamelModel):
    target_id: str
    liked: bool
    total_likes: int


class CounterSnapshot(CamelModel):
    likes: int
    comments: int


class PostCounterReport(CamelModel):
    post_id: str
    is_accurate: bool
    stored: CounterSnapshot
    actual: CounterSnapshot


# Notifications
class NotificationSourcePayload(CamelModel):
    id: Optional[str] = None
    name: Optional[str] = None
    avatar_url: Optional[str] = None


class NotificationActionPayload(CamelModel):
    label: Optional[str] = None
    url: Optional[str] = None


class NotificationPayload(CamelModel):
    """Body of a notificationUpdateListen event"""

    id: str
    user_id: str
    type: NotificationType
    title: str
    description: Optional[str] = None
    source: Optional[NotificationSourcePayload] = None
    image_url: Optional[str] = None
    action: Optional[NotificationActionPayload] = None
    status: NotificationStatus = NotificationStatus.UNREAD
    created_at: Optional[datetime] = None
    notification_update: Optional[NotificationUpdateType] = None


class NotificationBatchPayload(CamelModel):
    """Event for bulk read/delete transitions"""

    user_id: str
    notification_ids: List[str]
    notification_update: NotificationUpdateType


class NotificationPage(CamelModel):
    notifications: List[NotificationPayload]
    limit: int
    offset: int
    has_more: bool


class BulkNotificationResult(CamelModel):
    affected: int
    unread_affected: int


# Unreads
class UnreadsPayload(CamelModel):
    """Body of an unreadsUpdated event"""

    user_id: str
    notifications_unreads: int
    messages_unreads: int
    total_unreads: int


class UnreadsCounts(CamelModel):
    notifications: int
    messages: int
    total: int


class UnreadsVerification(CamelModel):
    user_id: str
    is_accurate: bool
    stored: UnreadsCounts
    actual: UnreadsCounts
    differences: UnreadsCounts


class UnreadsBatchResult(CamelModel):
    total: int
    synced: int
    failed: int
    failed_user_ids: List[str] = []


# Uploads
class UploadPayload(CamelModel):
    key: str
    url: str
    file_name: str
    file_type: str
    size: int


# Request Schemas
class SendMessageRequest(CamelModel):
    recipient_id: str
    text: str = Field(..., min_length=1)
    message_type: str = Field(MessageType.TEXT.value, description="text, image, video, audio, file, pdf or other")


class MarkSeenRequest(CamelModel):
    message_ids: Optional[List[str]] = None


class CommentCreateRequest(CamelModel):
    text: str = Field(..., min_length=1, max_length=2200)
    parent_comment_id: Optional[str] = None

    @field_validator("text")
    @classmethod
    def strip_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Comment text cannot be empty")
        return v


class CommentUpdateRequest(CamelModel):
    text: str = Field(..., min_length=1, max_length=2200)

    @field_validator("text")
    @classmethod
    def strip_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Comment text cannot be empty")
        return v


class MarkNotificationsReadRequest(CamelModel):
    notification_ids: List[str] = Field(..., min_length=1)
