"""Edubridge - client for the Edubridgepeople student/donor community.

This package talks to the hosted backend (auth, data, storage, realtime)
and holds the state behind each screen of the app: the feed, comments,
direct messages, notifications, the student wishlist and verification.

Example:
    >>> import asyncio
    >>> from edubridge import AppShell, AsyncBackendClient
    >>>
    >>> async def main():
    ...     async with AsyncBackendClient() as client:
    ...         await client.sign_in_with_password("ada@example.com", "s3cret!")
    ...         shell = AppShell(client)
    ...         await shell.load_session()
    ...         feed = shell.feed_view()
    ...         await feed.fetch_posts()
    >>>
    >>> asyncio.run(main())
"""

from edubridge.api import AsyncBackendClient, BackendError, NotAuthenticatedError
from edubridge.auth import AuthForm, AuthService
from edubridge.comments import CommentSection
from edubridge.config import settings
from edubridge.feed import FeedView, filter_and_sort_posts
from edubridge.messaging import MessagesView
from edubridge.models import (
    AuthSession,
    AuthUser,
    Comment,
    Like,
    Message,
    Notification,
    Post,
    Profile,
    WishlistItem,
)
from edubridge.notifications import NotificationsView
from edubridge.realtime import RealtimeChannel
from edubridge.shell import AppShell
from edubridge.toasts import Toaster
from edubridge.verification import VerificationView
from edubridge.wishlist import WishlistView

__version__ = "0.1.0"

__all__ = [
    # Client
    "AsyncBackendClient",
    "BackendError",
    "NotAuthenticatedError",
    "RealtimeChannel",
    # Configuration
    "settings",
    # Views
    "AppShell",
    "AuthForm",
    "AuthService",
    "CommentSection",
    "FeedView",
    "MessagesView",
    "NotificationsView",
    "Toaster",
    "VerificationView",
    "WishlistView",
    "filter_and_sort_posts",
    # Models
    "AuthSession",
    "AuthUser",
    "Comment",
    "Like",
    "Message",
    "Notification",
    "Post",
    "Profile",
    "WishlistItem",
]
