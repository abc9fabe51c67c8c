"""Protocol interfaces for dependency injection.

Views depend on these protocols rather than on the concrete SDK-backed
implementations, so tests can hand them ``AsyncMock`` objects or
small fakes. ``@runtime_checkable`` allows ``isinstance`` checks by structure.

Example:
    >>> from edubridge.interfaces import IRealtimeChannel
    >>> class FakeChannel:
    ...     def on_insert(self, callback): ...
    ...     async def subscribe(self): ...
    ...     async def unsubscribe(self): ...
    >>> isinstance(FakeChannel(), IRealtimeChannel)
    True
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from edubridge.models import AuthResponse, AuthSession, AuthUser
from edubridge.types import Filters

InsertCallback = Callable[[dict[str, Any]], Awaitable[None] | None]


@runtime_checkable
class IBackendClient(Protocol):
    """Backend-as-a-service client: auth, data rows, procedures and storage.

    Every method is a single remote call. Failures raise
    :class:`edubridge.api.BackendError`.
    """

    @property
    def session(self) -> AuthSession | None:
        """Current session, if signed in."""
        ...

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any] | None = None,
        redirect_to: str | None = None,
    ) -> AuthResponse: ...

    async def sign_in_with_password(self, email: str, password: str) -> AuthResponse: ...

    async def oauth_url(self, provider: str, redirect_to: str | None = None) -> str: ...

    async def sign_out(self) -> None: ...

    async def get_user(self) -> AuthUser: ...

    async def get_session(self) -> AuthSession | None: ...

    async def resend_signup(self, email: str, redirect_to: str | None = None) -> None: ...

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Filters | None = None,
        order: str | None = None,
        descending: bool = True,
        single: bool = False,
        maybe_single: bool = False,
        limit: int | None = None,
    ) -> Any:
        """Select rows; see :meth:`edubridge.api.AsyncBackendClient.select`."""
        ...

    async def insert(
        self,
        table: str,
        values: dict[str, Any] | list[dict[str, Any]],
        returning: str | None = "*",
        single: bool = False,
    ) -> Any: ...

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        filters: Filters,
        returning: str | None = "*",
        single: bool = False,
    ) -> Any: ...

    async def delete(self, table: str, filters: Filters) -> None: ...

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any: ...

    async def upload(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str | None = None,
        upsert: bool = False,
    ) -> str: ...

    async def public_url(self, bucket: str, path: str) -> str: ...

    async def channel(self, topic: str) -> Any:
        """Realtime channel ``topic``, not yet subscribed."""
        ...

    async def remove_channel(self, channel: Any) -> None: ...

@runtime_checkable
class IRealtimeChannel(Protocol):
    """Subscription to row inserts pushed by the backend realtime service.

    Callbacks receive the inserted row and are invoked in arrival order.
    """

    def on_insert(self, callback: InsertCallback) -> None:
        """Register a callback for inserted rows."""
        ...

    async def subscribe(self) -> None:
        """Join the channel."""
        ...

    async def unsubscribe(self) -> None:
        """Leave the channel."""
        ...


__all__ = ["IBackendClient", "IRealtimeChannel", "InsertCallback"]
