"""Student wishlist: resources a student is looking for."""

from edubridge.api import BackendError
from edubridge.interfaces import IBackendClient
from edubridge.logging import logger
from edubridge.models import AuthUser, Profile, WishlistItem
from edubridge.toasts import Toaster
from edubridge.types import WishlistInsert


class WishlistView:
    """The signed-in student's wishlist.

    Only students have a wishlist; for anyone else every action is refused
    with ``ACCESS_DENIED``.
    """

    ACCESS_DENIED = "Only students can have a wishlist."

    def __init__(
        self,
        client: IBackendClient,
        toaster: Toaster,
        user: AuthUser | None,
        profile: Profile | None,
    ) -> None:
        self.client = client
        self.toaster = toaster
        self.user = user
        self.profile = profile
        self.items: list[WishlistItem] = []
        self.description = ""
        self.category = ""
        self.loading = False
        self.submitting = False

    @property
    def can_access(self) -> bool:
        return self.profile is not None and self.profile.is_student

    def _check_access(self) -> bool:
        if not self.can_access:
            self.toaster.error(self.ACCESS_DENIED)
            return False
        return True

    async def fetch_items(self) -> list[WishlistItem]:
        if self.user is None or not self._check_access():
            return []
        self.loading = True
        try:
            rows = await self.client.select(
                "wishlist_items", filters={"user_id": self.user.id}, order="created_at"
            )
            self.items = [WishlistItem.model_validate(r) for r in rows or []]
        except BackendError as exc:
            logger.error(f"Error fetching wishlist: {exc.message}")
            self.toaster.error("Could not fetch your wishlist.")
        finally:
            self.loading = False
        return self.items

    async def add_item(self) -> WishlistItem | None:
        """Add the item described by ``description`` and ``category``."""
        if not self._check_access():
            return None
        if not self.description or not self.category or self.user is None:
            self.toaster.error("Please fill out all fields.")
            return None

        payload: WishlistInsert = {
            "user_id": self.user.id,
            "item_description": self.description,
            "category": self.category,
        }
        self.submitting = True
        try:
            rows = await self.client.insert("wishlist_items", dict(payload))
            item = WishlistItem.model_validate(rows[0])
        except (BackendError, IndexError) as exc:
            logger.error(f"Error adding wishlist item: {exc}")
            self.toaster.error("Failed to add item to wishlist.")
            return None
        finally:
            self.submitting = False

        self.items.insert(0, item)
        self.description = ""
        self.category = ""
        self.toaster.success("Wishlist item added!")
        return item

    async def delete_item(self, item_id: str) -> bool:
        if not self._check_access():
            return False
        try:
            await self.client.delete("wishlist_items", {"id": item_id})
        except BackendError as exc:
            logger.error(f"Error removing wishlist item {item_id}: {exc.message}")
            self.toaster.error("Failed to remove item.")
            return False

        self.items = [i for i in self.items if i.id != item_id]
        self.toaster.success("Wishlist item removed.")
        return True


__all__ = ["WishlistView"]
