"""Data models for Edubridge.

Pydantic models for the rows returned by the backend data API and the
payloads returned by the authentication API. The client never treats these
as authoritative: they are render-only copies of backend state.

Models are organized into three sections:
1. Enumerations shared by rows and views
2. Row models (profiles, posts, likes, comments, messages, ...)
3. Authentication payloads
"""

from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from edubridge.utils import parse_datetime

# =============================================================================
# Section 1: Enumerations
# =============================================================================


class Role(StrEnum):
    """Account role chosen at sign-up."""

    STUDENT = "student"
    DONOR = "donor"


class VerificationStatus(StrEnum):
    """Student verification state of a profile."""

    UNVERIFIED = "unverified"
    PENDING = "pending"
    VERIFIED = "verified"


class PostType(StrEnum):
    """Kinds of feed posts."""

    WISDOM = "wisdom"
    DONATION = "donation"
    SEEKING = "seeking"


class NotificationType(StrEnum):
    """Kinds of notifications."""

    LIKE = "like"
    COMMENT = "comment"


class ResourceCategory(StrEnum):
    """Categories for donated or requested resources and wishlist items."""

    BOOKS = "books"
    ELECTRONICS = "electronics"
    COURSES = "courses"
    OTHER = "other"


RESOURCE_CATEGORY_LABELS: dict[ResourceCategory, str] = {
    ResourceCategory.BOOKS: "Books & Study Materials",
    ResourceCategory.ELECTRONICS: "Electronics & Gadgets",
    ResourceCategory.COURSES: "Online Courses & Mentorship",
    ResourceCategory.OTHER: "Other",
}


# =============================================================================
# Section 2: Row Models
# =============================================================================


class Row(BaseModel):
    """Base for backend rows: ignore unknown columns, accept numeric ids."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    @field_validator("created_at", mode="before", check_fields=False)
    @classmethod
    def _coerce_created_at(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v)


class Profile(Row):
    """Public profile of a user.

    Attributes:
        id: Auth user id (UUID)
        email: Account email
        username: Display handle
        role: student or donor
        verification_status: unverified, pending or verified
        avatar_url: Avatar image URL
        created_at: Profile creation timestamp (UTC)
    """

    id: str
    email: Optional[str] = None
    username: Optional[str] = None
    role: Role = Role.STUDENT
    verification_status: VerificationStatus = VerificationStatus.UNVERIFIED
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_student(self) -> bool:
        return self.role == Role.STUDENT

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.VERIFIED

    @property
    def initial(self) -> str:
        """First letter of the username, upper-cased (avatar fallback)."""
        return (self.username or "?")[:1].upper()


class Like(Row):
    """A like of a post by a user."""

    id: Optional[str] = None
    post_id: str
    user_id: str
    created_at: Optional[datetime] = None


class Comment(Row):
    """A comment on a post, with its author's profile embedded."""

    id: str
    post_id: str
    user_id: str
    content: str
    created_at: Optional[datetime] = None
    profiles: Optional[Profile] = None

    @property
    def author_username(self) -> Optional[str]:
        return self.profiles.username if self.profiles else None


class Post(Row):
    """A feed post with its author, likes and comments embedded.

    Attributes:
        id: Post id
        user_id: Author id
        post_type: wisdom, donation or seeking
        content: Free text
        resource_title: Title of the donated or requested resource
        resource_category: Category of the resource
        resource_contact: Donor contact details (donations only)
        link_url: First URL found in the content
        link_title: Link preview title
        link_description: Link preview description
        link_image: Link preview image URL
        image_url: Public URL of an attached image
        created_at: Creation timestamp (UTC)
        profiles: Author profile
        likes: Likes on the post
        comments: Comments on the post
    """

    id: str
    user_id: str
    post_type: PostType
    content: Optional[str] = None
    resource_title: Optional[str] = None
    resource_category: Optional[str] = None
    resource_contact: Optional[str] = None
    link_url: Optional[str] = None
    link_title: Optional[str] = None
    link_description: Optional[str] = None
    link_image: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    profiles: Optional[Profile] = None
    likes: list[Like] = Field(default_factory=list)
    comments: list[Comment] = Field(default_factory=list)

    @field_validator("likes", "comments", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def is_demo(self) -> bool:
        return self.id.startswith("demo-")

    @property
    def like_count(self) -> int:
        return len(self.likes)

    @property
    def comment_count(self) -> int:
        return len(self.comments)

    @property
    def author_username(self) -> Optional[str]:
        return self.profiles.username if self.profiles else None

    def is_liked_by(self, user_id: str | None) -> bool:
        """True if ``user_id`` has a like on this post."""
        return user_id is not None and any(like.user_id == user_id for like in self.likes)


class Message(Row):
    """A direct message between two users."""

    id: str
    sender_id: str
    recipient_id: str
    content: str
    created_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        """True for an optimistic message not yet confirmed by the backend."""
        return self.id.startswith("temp-")


class Notification(Row):
    """A notification for ``user_id`` about an action by ``actor_id``.

    ``profiles`` holds the actor's profile (joined on ``actor_id``).
    """

    id: str
    user_id: str
    actor_id: Optional[str] = None
    type: str
    post_id: Optional[str] = None
    is_read: bool = False
    created_at: Optional[datetime] = None
    profiles: Optional[Profile] = None

    @property
    def actor_username(self) -> str:
        if self.profiles and self.profiles.username:
            return self.profiles.username
        return "Someone"


class WishlistItem(Row):
    """An item on a student's wishlist."""

    id: str
    user_id: str
    item_description: str
    category: str
    created_at: Optional[datetime] = None


class LinkPreview(BaseModel):
    """Rich preview of a URL found in post content."""

    model_config = ConfigDict(extra="ignore")

    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None


# =============================================================================
# Section 3: Authentication Payloads
# =============================================================================


class AuthUser(BaseModel):
    """Authenticated account as returned by the auth API."""

    model_config = ConfigDict(extra="ignore")

    id: str
    email: Optional[str] = None
    email_confirmed_at: Optional[datetime] = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    @field_validator("email_confirmed_at", "created_at", mode="before")
    @classmethod
    def _coerce_dates(cls, v: Optional[str]) -> Optional[datetime]:
        return parse_datetime(v) if v else None

    @property
    def is_email_confirmed(self) -> bool:
        return self.email_confirmed_at is not None


class AuthSession(BaseModel):
    """Access/refresh token pair for a signed-in user."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    expires_at: Optional[int] = None
    user: AuthUser

    def is_expired(self, now_epoch: float) -> bool:
        """True when ``expires_at`` (epoch seconds) is in the past."""
        return self.expires_at is not None and self.expires_at <= now_epoch


class AuthResponse(BaseModel):
    """Result of sign-up or sign-in. ``session`` is None until email is confirmed."""

    user: Optional[AuthUser] = None
    session: Optional[AuthSession] = None
