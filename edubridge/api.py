"""Async client for the hosted backend.

This module wraps the backend's ``supabase`` async SDK behind the small
surface the views need:

- Auth: sign-up, password sign-in, OAuth, sign-out, user, token refresh,
  resend of the sign-up confirmation email
- Data: row-level select/insert/update/delete and remote procedure calls
- Storage: object upload and public URLs
- Realtime: channels for database change subscriptions

Each method is one SDK call. There is no retry loop: SDK errors (auth,
data, storage) and network failures surface as :class:`BackendError` for the
caller to turn into a user-facing message.

Example:
    >>> from edubridge.api import AsyncBackendClient
    >>>
    >>> async with AsyncBackendClient() as client:
    ...     await client.sign_in_with_password("ada@example.com", "s3cret!")
    ...     rows = await client.select("wishlist_items", filters={"user_id": "..."})
"""

from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from postgrest.types import ReturnMethod
from supabase import AsyncClient, AuthError, PostgrestAPIError, StorageException, acreate_client
from supabase.lib.client_options import AsyncClientOptions

from edubridge.config import settings
from edubridge.logging import logger
from edubridge.models import AuthResponse, AuthSession, AuthUser
from edubridge.session import SessionStore
from edubridge.types import Filters

ClientFactory = Callable[..., Awaitable[AsyncClient]]

# Statuses meaning the server no longer knows the session
REVOKED_SESSION_STATUSES = (401, 403, 404)


# =============================================================================
# Custom Exceptions
# =============================================================================


class BackendError(Exception):
    """A backend call failed.

    Attributes:
        message: Human-readable message from the backend (or the network layer)
        status_code: HTTP status, None for network failures
        code: Backend error code (e.g. ``PGRST116``, ``invalid_credentials``)
        details: Extra detail text from the backend
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details

    def __repr__(self) -> str:
        return f"BackendError({self.message!r}, status_code={self.status_code}, code={self.code!r})"


class NotAuthenticatedError(BackendError):
    """Raised when an operation needs a signed-in session."""


def _status(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def backend_error(exc: Exception) -> BackendError:
    """Translate an SDK or network exception into a BackendError.

    Auth errors carry ``message``/``status``/``code``; data errors carry
    ``message``/``code``/``details``/``hint``; storage errors carry a dict with
    ``message``/``statusCode``/``error``.
    """
    if isinstance(exc, PostgrestAPIError):
        code = exc.code
        return BackendError(
            exc.message or str(exc),
            status_code=406 if code == "PGRST116" else None,
            code=str(code) if code is not None else None,
            details=exc.details or exc.hint,
        )

    if isinstance(exc, AuthError):
        code = getattr(exc, "code", None)
        return BackendError(
            exc.message or str(exc),
            status_code=_status(getattr(exc, "status", None)),
            code=str(code) if code is not None else None,
        )

    if isinstance(exc, StorageException):
        info = exc.args[0] if exc.args and isinstance(exc.args[0], dict) else {}
        return BackendError(
            str(info.get("message") or exc),
            status_code=_status(info.get("statusCode")),
            code=info.get("error"),
        )

    return BackendError(f"Network error: {exc}")


def _apply_filters(query: Any, filters: Filters | None) -> Any:
    """Chain column equality filters onto a query builder."""
    for column, value in (filters or {}).items():
        if value is None:
            query = query.is_(column, "null")
        elif isinstance(value, bool):
            query = query.eq(column, "true" if value else "false")
        else:
            query = query.eq(column, value)
    return query


def _to_model(model: type[Any], value: Any) -> Any:
    """Validate an SDK model (or plain dict) into one of ours."""
    if value is None:
        return None
    if hasattr(value, "model_dump"):
        value = value.model_dump()
    return model.model_validate(value)


# =============================================================================
# Async Backend Client
# =============================================================================


class AsyncBackendClient:
    """Async client for the backend's auth, data, storage and realtime APIs.

    The SDK client is created on first use. The client holds at most one auth
    session, mirrored into ``session_store`` so the next process can restore
    it with :meth:`restore_session`.

    Args:
        url: Backend project URL (defaults to settings.supabase_url)
        anon_key: Public anon key (defaults to settings.supabase_anon_key)
        timeout: Data/storage request timeout in seconds
        session_store: Where to persist the session between runs
        client_factory: Coroutine function building the SDK client
            (defaults to ``supabase.acreate_client``; tests pass a fake)

    Example:
        >>> client = AsyncBackendClient()
        >>> posts = await client.select("posts", "*, profiles(*)", order="created_at")
        >>> await client.close()
    """

    def __init__(
        self,
        url: str | None = None,
        anon_key: str | None = None,
        timeout: float | None = None,
        session_store: SessionStore | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._url = (url or settings.supabase_url).rstrip("/")
        self._anon_key = anon_key or settings.supabase_anon_key
        self._timeout = timeout or settings.request_timeout
        self._session_store = session_store
        self._client_factory = client_factory or acreate_client
        self._session: AuthSession | None = None
        self._client: AsyncClient | None = None
        self._realtime_used = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def _ensure_client(self) -> AsyncClient:
        """Lazy initialization of the SDK client."""
        if self._client is None:
            options = AsyncClientOptions(
                auto_refresh_token=False,
                postgrest_client_timeout=self._timeout,
                storage_client_timeout=int(self._timeout),
            )
            self._client = await self._client_factory(self._url, self._anon_key, options=options)
            logger.debug(f"Backend client created for {self._url}")
        return self._client

    async def __aenter__(self) -> "AsyncBackendClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Leave any realtime channels and drop the SDK client."""
        if self._client is not None:
            if self._realtime_used:
                await self._client.remove_all_channels()
                self._realtime_used = False
            self._client = None

    async def _call(self, awaitable: Awaitable[Any], operation: str) -> Any:
        """Await one SDK call and raise BackendError on failure."""
        try:
            return await awaitable
        except (AuthError, PostgrestAPIError, StorageException, httpx.HTTPError) as exc:
            error = backend_error(exc)
            logger.warning(f"{operation} failed: {error.message}")
            raise error from exc

    # -------------------------------------------------------------------------
    # Session state
    # -------------------------------------------------------------------------

    @property
    def url(self) -> str:
        return self._url

    @property
    def session(self) -> AuthSession | None:
        """Current auth session, if signed in."""
        return self._session

    def set_session(self, session: AuthSession | None) -> None:
        """Replace the current session and persist the change."""
        self._session = session
        if self._session_store is not None:
            if session is None:
                self._session_store.clear()
            else:
                self._session_store.save(session)

    async def restore_session(self) -> AuthSession | None:
        """Hand a previously persisted session back to the SDK.

        The SDK refreshes an expired token and checks a live one against the
        auth API, so a session revoked elsewhere is dropped here.
        """
        if self._session_store is None:
            return None
        stored = self._session_store.load()
        if stored is None:
            return None
        if not stored.refresh_token:
            self.set_session(None)
            return None

        client = await self._ensure_client()
        try:
            result = await self._call(
                client.auth.set_session(stored.access_token, stored.refresh_token),
                "restore_session",
            )
        except BackendError as exc:
            logger.info(f"Stored session is no longer valid: {exc.message}")
            self.set_session(None)
            return None

        session = _to_model(AuthSession, result.session) if result is not None else None
        self.set_session(session)
        return session

    def _require_session(self) -> AuthSession:
        if self._session is None:
            raise NotAuthenticatedError("Not signed in", status_code=401)
        return self._session

    # -------------------------------------------------------------------------
    # Auth API
    # -------------------------------------------------------------------------

    def _auth_response(self, result: Any) -> AuthResponse:
        """Convert an SDK auth response and adopt any session it carries."""
        session = _to_model(AuthSession, getattr(result, "session", None))
        user = _to_model(AuthUser, getattr(result, "user", None))
        if session is not None:
            self.set_session(session)
            user = user or session.user
        return AuthResponse(user=user, session=session)

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any] | None = None,
        redirect_to: str | None = None,
    ) -> AuthResponse:
        """Create an account. The session is None until the email is confirmed."""
        client = await self._ensure_client()
        options: dict[str, Any] = {"data": metadata or {}}
        if redirect_to:
            options["email_redirect_to"] = redirect_to
        result = await self._call(
            client.auth.sign_up({"email": email, "password": password, "options": options}),
            "sign_up",
        )
        return self._auth_response(result)

    async def sign_in_with_password(self, email: str, password: str) -> AuthResponse:
        """Exchange email + password for a session."""
        client = await self._ensure_client()
        result = await self._call(
            client.auth.sign_in_with_password({"email": email, "password": password}),
            "sign_in_with_password",
        )
        return self._auth_response(result)

    async def oauth_url(self, provider: str, redirect_to: str | None = None) -> str:
        """URL that starts the OAuth flow for ``provider`` in a browser."""
        client = await self._ensure_client()
        credentials: dict[str, Any] = {"provider": provider}
        if redirect_to:
            credentials["options"] = {"redirect_to": redirect_to}
        result = await self._call(client.auth.sign_in_with_oauth(credentials), "oauth_url")
        return result.url

    async def sign_out(self) -> None:
        """Revoke the current session and forget it locally.

        The local session is cleared even when the revoke fails; a session the
        server has already revoked (401/403/404) is not an error.
        """
        try:
            if self._session is not None:
                client = await self._ensure_client()
                await self._call(client.auth.sign_out(), "sign_out")
        except BackendError as exc:
            if exc.status_code not in REVOKED_SESSION_STATUSES:
                raise
            logger.info(f"Session was already revoked: {exc.message}")
        finally:
            self.set_session(None)

    async def get_user(self) -> AuthUser:
        """Fetch the signed-in user from the auth API."""
        self._require_session()
        client = await self._ensure_client()
        result = await self._call(client.auth.get_user(), "get_user")
        if result is None or result.user is None:
            raise NotAuthenticatedError("Not signed in", status_code=401)
        return _to_model(AuthUser, result.user)

    async def refresh_session(self) -> AuthSession:
        """Exchange the refresh token for a new session."""
        session = self._require_session()
        if not session.refresh_token:
            raise NotAuthenticatedError("Session has no refresh token", status_code=401)
        client = await self._ensure_client()
        result = self._auth_response(
            await self._call(client.auth.refresh_session(session.refresh_token), "refresh_session")
        )
        if result.session is None:
            raise NotAuthenticatedError("Token refresh returned no session", status_code=401)
        return result.session

    async def get_session(self) -> AuthSession | None:
        """Current session; the SDK refreshes an expired access token first."""
        if self._session is None:
            return None
        client = await self._ensure_client()
        try:
            current = _to_model(AuthSession, await self._call(client.auth.get_session(), "get_session"))
        except BackendError as exc:
            logger.warning(f"Session refresh failed: {exc.message}")
            self.set_session(None)
            return None
        if current != self._session:
            self.set_session(current)
        return current

    async def resend_signup(self, email: str, redirect_to: str | None = None) -> None:
        """Resend the sign-up confirmation email."""
        client = await self._ensure_client()
        credentials: dict[str, Any] = {"type": "signup", "email": email}
        if redirect_to:
            credentials["options"] = {"email_redirect_to": redirect_to}
        await self._call(client.auth.resend(credentials), "resend_signup")

    # -------------------------------------------------------------------------
    # Data API
    # -------------------------------------------------------------------------

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
        """Select rows from ``table``.

        Args:
            table: Table name
            columns: Select expression, may embed related rows
                (e.g. ``"*, profiles(*), likes(*)"``)
            filters: Column equality filters
            order: Column to order by
            descending: Order direction
            single: Expect exactly one row and return it as a dict
            maybe_single: Return the only row, or None when there is none
            limit: Maximum number of rows

        Returns:
            List of row dicts, or a single dict/None for single/maybe_single

        Raises:
            BackendError: On failure, or when ``single`` matches no/many rows
        """
        client = await self._ensure_client()
        query = _apply_filters(client.table(table).select(columns), filters)
        if order:
            query = query.order(order, desc=descending)
        if limit is not None:
            query = query.limit(limit)
        if single:
            query = query.single()
        elif maybe_single:
            query = query.maybe_single()

        response = await self._call(query.execute(), f"select {table}")
        # maybe_single() yields no response at all for an empty result
        if response is None:
            return None
        return response.data

    async def _reselect(self, table: str, columns: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Read written rows back with embedded relations."""
        ids = [row["id"] for row in rows if row.get("id") is not None]
        if not ids:
            return rows
        client = await self._ensure_client()
        query = client.table(table).select(columns).in_("id", ids)
        response = await self._call(query.execute(), f"select {table}")
        return response.data or []

    async def insert(
        self,
        table: str,
        values: dict[str, Any] | list[dict[str, Any]],
        returning: str | None = "*",
        single: bool = False,
    ) -> Any:
        """Insert one or more rows and return them (with embeds from ``returning``)."""
        client = await self._ensure_client()
        method = ReturnMethod.representation if returning else ReturnMethod.minimal
        response = await self._call(
            client.table(table).insert(values, returning=method).execute(),
            f"insert {table}",
        )
        rows = (response.data or []) if returning else []
        if returning and returning != "*":
            rows = await self._reselect(table, returning, rows)
        return self._one(rows) if single else rows

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        filters: Filters,
        returning: str | None = "*",
        single: bool = False,
    ) -> Any:
        """Update rows matching ``filters``; returns the updated rows."""
        client = await self._ensure_client()
        method = ReturnMethod.representation if returning else ReturnMethod.minimal
        query = _apply_filters(client.table(table).update(values, returning=method), filters)
        response = await self._call(query.execute(), f"update {table}")
        rows = (response.data or []) if returning else []
        if returning and returning != "*":
            rows = await self._reselect(table, returning, rows)
        return self._one(rows) if single else rows

    async def delete(self, table: str, filters: Filters) -> None:
        """Delete rows matching ``filters``."""
        if not filters:
            raise ValueError("Refusing to delete without filters")
        client = await self._ensure_client()
        query = _apply_filters(client.table(table).delete(), filters)
        await self._call(query.execute(), f"delete {table}")

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        """Call a remote procedure and return its decoded result."""
        client = await self._ensure_client()
        response = await self._call(client.rpc(function, params or {}).execute(), f"rpc {function}")
        return response.data

    @staticmethod
    def _one(rows: list[dict[str, Any]]) -> dict[str, Any]:
        if len(rows) != 1:
            raise BackendError(
                "JSON object requested, multiple (or no) rows returned",
                status_code=406,
                code="PGRST116",
            )
        return rows[0]

    # -------------------------------------------------------------------------
    # Storage API
    # -------------------------------------------------------------------------

    async def upload(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str | None = None,
        upsert: bool = False,
    ) -> str:
        """Upload ``content`` to ``bucket/path``; returns the object key."""
        client = await self._ensure_client()
        file_options = {
            "content-type": content_type or "application/octet-stream",
            "upsert": "true" if upsert else "false",
        }
        result = await self._call(
            client.storage.from_(bucket).upload(path, content, file_options),
            f"upload {bucket}",
        )
        return getattr(result, "full_path", None) or f"{bucket}/{path}"

    async def public_url(self, bucket: str, path: str) -> str:
        """Public URL of an object in a public bucket."""
        client = await self._ensure_client()
        url = await self._call(client.storage.from_(bucket).get_public_url(path), f"public_url {bucket}")
        return url.rstrip("?")

    # -------------------------------------------------------------------------
    # Realtime
    # -------------------------------------------------------------------------

    async def channel(self, topic: str) -> Any:
        """Create (not yet subscribed) realtime channel ``topic``."""
        client = await self._ensure_client()
        self._realtime_used = True
        return client.channel(topic)

    async def remove_channel(self, channel: Any) -> None:
        """Unsubscribe ``channel`` and drop it from the SDK's socket."""
        client = await self._ensure_client()
        await client.remove_channel(channel)


# =============================================================================
# Export Public API
# =============================================================================

__all__ = [
    "AsyncBackendClient",
    "BackendError",
    "NotAuthenticatedError",
    "backend_error",
]
