"""Direct messages: conversation list, open thread and realtime delivery.

Conversations and threads come from two remote procedures,
``get_conversations`` and ``get_messages``. Sending is optimistic: the
message appears at once with a ``temp-`` id and is withdrawn if the insert
fails. New messages addressed to the user arrive over a realtime channel.

Example:
    >>> view = MessagesView(client, toaster, user)
    >>> await view.open(recipient_id="a1b2...")
    >>> view.new_message = "Hi! Is the laptop still available?"
    >>> await view.send_message()
"""

from collections.abc import Callable
from typing import Any

from edubridge.api import BackendError
from edubridge.interfaces import IBackendClient, IRealtimeChannel
from edubridge.logging import logger
from edubridge.models import AuthUser, Message, Profile
from edubridge.toasts import Toaster
from edubridge.types import MessageInsert
from edubridge.utils import epoch_millis, utc_now

ChannelFactory = Callable[[str], IRealtimeChannel]


class MessagesView:
    """State and actions of the messages page.

    Args:
        client: Backend client
        toaster: Where outcome messages go
        user: Signed-in user (the view is inert without one)
    """

    def __init__(self, client: IBackendClient, toaster: Toaster, user: AuthUser | None) -> None:
        self.client = client
        self.toaster = toaster
        self.user = user
        self.conversations: list[Profile] = []
        self.selected: Profile | None = None
        self.messages: list[Message] = []
        self.new_message = ""
        self.loading_conversations = False
        self.loading_messages = False
        self.sending = False
        self._channel: IRealtimeChannel | None = None

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def fetch_conversations(self) -> list[Profile]:
        """Profiles the user has exchanged messages with."""
        if self.user is None:
            return []
        self.loading_conversations = True
        try:
            rows = await self.client.rpc("get_conversations", {"current_user_id": self.user.id})
            self.conversations = [Profile.model_validate(r) for r in rows or [] if r]
            return self.conversations
        except BackendError as exc:
            logger.error(f"Error fetching conversations: {exc.message}")
            self.toaster.error("Failed to load conversations.")
            return []
        finally:
            self.loading_conversations = False

    async def fetch_messages(self, recipient_id: str) -> list[Message]:
        """Thread between the user and ``recipient_id``, oldest first."""
        if self.user is None:
            return []
        self.loading_messages = True
        try:
            rows = await self.client.rpc(
                "get_messages", {"user1_id": self.user.id, "user2_id": recipient_id}
            )
            self.messages = [Message.model_validate(r) for r in rows or []]
        except BackendError as exc:
            logger.error(f"Error fetching messages: {exc.message}")
            self.toaster.error("Failed to load messages.")
        finally:
            self.loading_messages = False
        return self.messages

    async def open(self, recipient_id: str | None = None) -> None:
        """Load conversations and, if given, open the one with ``recipient_id``."""
        await self.fetch_conversations()
        if recipient_id:
            await self.select_recipient(recipient_id)

    async def select_recipient(self, recipient_id: str) -> Profile | None:
        """Open the conversation with ``recipient_id``.

        A recipient not yet in the list is fetched once and put at its head.
        """
        if self.selected is not None and self.selected.id == recipient_id:
            return self.selected

        profile = next((c for c in self.conversations if c.id == recipient_id), None)
        if profile is None:
            try:
                row = await self.client.select("profiles", filters={"id": recipient_id}, single=True)
            except BackendError as exc:
                logger.warning(f"Recipient {recipient_id} not found: {exc.message}")
                self.toaster.error("User not found.")
                return None
            profile = Profile.model_validate(row)
            if not any(c.id == profile.id for c in self.conversations):
                self.conversations.insert(0, profile)

        self.selected = profile
        await self.fetch_messages(profile.id)
        return profile

    async def select_conversation(self, profile: Profile) -> None:
        if self.selected is not None and self.selected.id == profile.id:
            return
        await self.select_recipient(profile.id)

    def close_conversation(self) -> None:
        self.selected = None
        self.messages = []

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    async def send_message(self) -> bool:
        """Send ``new_message`` to the open conversation.

        Returns:
            True when the backend accepted the message
        """
        content = self.new_message.strip()
        if not content or self.user is None or self.selected is None or self.sending:
            return False

        self.new_message = ""
        self.sending = True
        optimistic = Message(
            id=f"temp-{epoch_millis()}",
            sender_id=self.user.id,
            recipient_id=self.selected.id,
            content=content,
            created_at=utc_now(),
        )
        self.messages.append(optimistic)

        payload: MessageInsert = {
            "sender_id": self.user.id,
            "recipient_id": self.selected.id,
            "content": content,
        }
        try:
            row = await self.client.insert("messages", dict(payload), single=True)
        except BackendError as exc:
            logger.error(f"Error sending message: {exc.message}")
            self.messages = [m for m in self.messages if m.id != optimistic.id]
            self.toaster.error("Failed to send message.")
            return False
        finally:
            self.sending = False

        if row:
            confirmed = Message.model_validate(row)
            self.messages = [confirmed if m.id == optimistic.id else m for m in self.messages]
        return True

    # -------------------------------------------------------------------------
    # Realtime
    # -------------------------------------------------------------------------

    async def handle_incoming(self, record: dict[str, Any]) -> None:
        """React to a message inserted for the user."""
        message = Message.model_validate(record)
        if self.selected is not None and message.sender_id == self.selected.id:
            self.messages.append(message)
        else:
            self.toaster.info("You have a new message!")
            await self.fetch_conversations()

    async def subscribe(self, channel_factory: ChannelFactory) -> IRealtimeChannel | None:
        """Start receiving new messages through a channel from ``channel_factory``."""
        if self.user is None:
            return None
        await self.unsubscribe()
        channel = channel_factory(self.user.id)
        channel.on_insert(self.handle_incoming)
        await channel.subscribe()
        self._channel = channel
        return channel

    async def unsubscribe(self) -> None:
        if self._channel is not None:
            await self._channel.unsubscribe()
            self._channel = None


__all__ = ["ChannelFactory", "MessagesView"]
