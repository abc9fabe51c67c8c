"""Type definitions for Edubridge request payloads.

TypedDicts describing the row payloads sent to the backend data API and the
parameters of its remote procedures. Response rows are parsed with the
Pydantic models in :mod:`edubridge.models`.

Example:
    >>> from edubridge.types import MessageInsert
    >>> payload: MessageInsert = {
    ...     "sender_id": "user-a",
    ...     "recipient_id": "user-b",
    ...     "content": "Hi! Is the laptop still available?",
    ... }
"""

from typing import Any, NotRequired, Required, TypedDict


class PostInsert(TypedDict, total=False):
    """Row inserted into ``posts`` by the composer."""

    user_id: Required[str]
    post_type: Required[str]
    content: NotRequired[str | None]
    resource_title: NotRequired[str | None]
    resource_category: NotRequired[str | None]
    resource_contact: NotRequired[str | None]
    link_url: NotRequired[str | None]
    link_title: NotRequired[str | None]
    link_description: NotRequired[str | None]
    link_image: NotRequired[str | None]
    image_url: NotRequired[str | None]


class PostUpdate(TypedDict, total=False):
    """Columns changed when an author edits a post."""

    content: str
    link_url: str | None
    link_title: str | None
    link_description: str | None
    link_image: str | None


class CommentInsert(TypedDict):
    """Row inserted into ``comments``."""

    post_id: str
    user_id: str
    content: str


class LikeRow(TypedDict):
    """Row inserted into (or matched for deletion from) ``likes``."""

    post_id: str
    user_id: str


class MessageInsert(TypedDict):
    """Row inserted into ``messages``."""

    sender_id: str
    recipient_id: str
    content: str


class WishlistInsert(TypedDict):
    """Row inserted into ``wishlist_items``."""

    user_id: str
    item_description: str
    category: str


class CreateNotificationParams(TypedDict):
    """Parameters of the ``create_notification`` remote procedure."""

    p_user_id: str
    p_type: str
    p_actor_id: str
    p_post_id: str


class PostgresChangeData(TypedDict, total=False):
    """``data`` object of a realtime ``postgres_changes`` event."""

    type: Required[str]
    schema: Required[str]
    table: Required[str]
    commit_timestamp: NotRequired[str]
    record: NotRequired[dict[str, Any]]
    old_record: NotRequired[dict[str, Any]]
    errors: NotRequired[Any]


# Filters are column -> value equality matches, e.g. {"user_id": "abc"}
Filters = dict[str, Any]
