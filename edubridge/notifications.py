"""Notifications page: likes and comments on the user's posts."""

from edubridge.api import BackendError
from edubridge.interfaces import IBackendClient
from edubridge.logging import logger
from edubridge.models import AuthUser, Notification, NotificationType
from edubridge.toasts import Toaster

NOTIFICATION_SELECT = "*, profiles:actor_id(*)"


def describe(notification: Notification) -> str:
    """One-line text for ``notification``."""
    actor = notification.actor_username
    if notification.type == NotificationType.LIKE:
        return f"{actor} liked your post."
    if notification.type == NotificationType.COMMENT:
        return f"{actor} commented on your post."
    return "New notification"


class NotificationsView:
    """Notifications of the signed-in user, newest first."""

    def __init__(self, client: IBackendClient, toaster: Toaster, user: AuthUser | None) -> None:
        self.client = client
        self.toaster = toaster
        self.user = user
        self.notifications: list[Notification] = []
        self.loading = False

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n.is_read)

    async def fetch_notifications(self) -> list[Notification]:
        if self.user is None:
            return []
        self.loading = True
        try:
            rows = await self.client.select(
                "notifications",
                NOTIFICATION_SELECT,
                filters={"user_id": self.user.id},
                order="created_at",
            )
            self.notifications = [Notification.model_validate(r) for r in rows or []]
        except BackendError as exc:
            logger.error(f"Error fetching notifications: {exc.message}")
            self.toaster.error("Could not fetch notifications.")
        finally:
            self.loading = False
        return self.notifications

    async def mark_as_read(self, notification_id: str) -> bool:
        try:
            await self.client.update(
                "notifications", {"is_read": True}, {"id": notification_id}, returning=None
            )
        except BackendError as exc:
            logger.error(f"Error marking notification {notification_id} read: {exc.message}")
            self.toaster.error("Failed to mark notification as read.")
            return False

        self.notifications = [
            n.model_copy(update={"is_read": True}) if n.id == notification_id else n
            for n in self.notifications
        ]
        return True

    async def open_notification(self, notification: Notification) -> str | None:
        """Mark ``notification`` read and return the post it points to, if any."""
        await self.mark_as_read(notification.id)
        return notification.post_id

    describe = staticmethod(describe)


__all__ = ["NOTIFICATION_SELECT", "NotificationsView", "describe"]
