"""Tests for the async backend client.

The SDK client is replaced by ``FakeSdk``: query builders record the chained
calls, and auth/storage methods are ``AsyncMock`` objects. These tests check
which SDK calls each client method makes and how SDK errors are mapped.
"""

from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from postgrest.types import ReturnMethod
from supabase import AuthApiError, PostgrestAPIError, StorageException

from edubridge.api import AsyncBackendClient, BackendError, NotAuthenticatedError
from edubridge.models import AuthSession
from edubridge.session import SessionStore

BASE_URL = "https://test-project.supabase.co"
ANON_KEY = "test-anon-key-0123456789abcdef"

NO_RESPONSE = object()


def _session_data(access_token: str = "user-access-token-abcdef") -> dict:
    return {
        "access_token": access_token,
        "refresh_token": "refresh-token-123",
        "token_type": "bearer",
        "expires_in": 3600,
        "expires_at": 4102444800,
        "provider_token": None,
        "user": {
            "id": "student-1",
            "email": "ada@example.com",
            "email_confirmed_at": "2024-09-01T08:05:00Z",
            "user_metadata": {"username": "ada", "role": "student"},
            "aud": "authenticated",
        },
    }


class FakeQuery:
    """Query builder double: every chained call is recorded and returns self."""

    def __init__(self, target: str, data: Any = None, error: Exception | None = None) -> None:
        self.target = target
        self.calls: list[tuple[str, tuple, dict]] = []
        self._data = data
        self._error = error

    def __getattr__(self, name: str):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return method

    def names(self) -> list[str]:
        return [name for name, _, _ in self.calls]

    def call(self, name: str) -> tuple[tuple, dict]:
        for called, args, kwargs in self.calls:
            if called == name:
                return args, kwargs
        raise AssertionError(f"{name} was not called on {self.target}")

    async def execute(self):
        if self._error is not None:
            raise self._error
        if self._data is NO_RESPONSE:
            return None
        return SimpleNamespace(data=self._data)


class FakeSdk:
    """Stand-in for ``supabase.AsyncClient``."""

    def __init__(self) -> None:
        self.auth = MagicMock()
        for name in (
            "sign_up",
            "sign_in_with_password",
            "sign_in_with_oauth",
            "sign_out",
            "get_user",
            "get_session",
            "refresh_session",
            "set_session",
            "resend",
        ):
            setattr(self.auth, name, AsyncMock(return_value=None))

        self.bucket = MagicMock()
        self.bucket.upload = AsyncMock(
            return_value=SimpleNamespace(path="u1/1_a.png", full_path="post-images/u1/1_a.png")
        )
        self.bucket.get_public_url = AsyncMock(
            return_value=f"{BASE_URL}/storage/v1/object/public/post-images/u1/1_a.png?"
        )
        self.storage = MagicMock()
        self.storage.from_.return_value = self.bucket

        self.remove_channel = AsyncMock()
        self.remove_all_channels = AsyncMock()

        self.queries: list[FakeQuery] = []
        self._responses: list[tuple[Any, Exception | None]] = []

    def respond(self, data: Any = None, error: Exception | None = None) -> None:
        """Queue the result of the next ``table()``/``rpc()`` query."""
        self._responses.append((data, error))

    def _query(self, target: str) -> FakeQuery:
        data, error = self._responses.pop(0) if self._responses else ([], None)
        query = FakeQuery(target, data, error)
        self.queries.append(query)
        return query

    def table(self, name: str) -> FakeQuery:
        return self._query(name)

    def rpc(self, function: str, params: dict) -> FakeQuery:
        query = self._query(f"rpc:{function}")
        query.calls.append(("rpc", (function, params), {}))
        return query

    def channel(self, topic: str) -> MagicMock:
        return MagicMock(name=f"channel:{topic}")


def make_client(
    sdk: FakeSdk, session_store: SessionStore | None = None
) -> tuple[AsyncBackendClient, AsyncMock]:
    factory = AsyncMock(return_value=sdk)
    client = AsyncBackendClient(
        url=BASE_URL,
        anon_key=ANON_KEY,
        session_store=session_store,
        client_factory=factory,
    )
    return client, factory


@pytest.fixture
def sdk() -> FakeSdk:
    return FakeSdk()


# =============================================================================
# Lifecycle & Errors
# =============================================================================


class TestClientLifecycle:
    """Tests for lazy SDK creation and shutdown."""

    @pytest.mark.asyncio
    async def test_sdk_client_is_created_once(self, sdk):
        client, factory = make_client(sdk)

        await client.select("posts")
        await client.select("likes")

        factory.assert_awaited_once()
        args, kwargs = factory.await_args
        assert args == (BASE_URL, ANON_KEY)
        assert kwargs["options"].auto_refresh_token is False

    @pytest.mark.asyncio
    async def test_context_manager_closes(self, sdk):
        client, factory = make_client(sdk)

        async with client:
            factory.assert_awaited_once()

        sdk.remove_all_channels.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close_removes_realtime_channels(self, sdk):
        client, _ = make_client(sdk)

        channel = await client.channel("messages-for-student-1")
        await client.remove_channel(channel)
        await client.close()
        await client.close()

        sdk.remove_channel.assert_awaited_once_with(channel)
        sdk.remove_all_channels.assert_awaited_once()


class TestErrorMapping:
    """SDK exceptions surface as BackendError."""

    @pytest.mark.asyncio
    async def test_auth_error(self, sdk):
        sdk.auth.sign_in_with_password.side_effect = AuthApiError(
            "Invalid login credentials", 400, "invalid_credentials"
        )
        client, _ = make_client(sdk)

        with pytest.raises(BackendError) as exc_info:
            await client.sign_in_with_password("ada@example.com", "wrong")

        assert exc_info.value.message == "Invalid login credentials"
        assert exc_info.value.status_code == 400
        assert exc_info.value.code == "invalid_credentials"
        assert client.session is None

    @pytest.mark.asyncio
    async def test_data_error(self, sdk):
        sdk.respond(
            error=PostgrestAPIError(
                {
                    "message": 'duplicate key value violates unique constraint "likes_pkey"',
                    "code": "23505",
                    "details": "Key (post_id, user_id) already exists.",
                    "hint": None,
                }
            )
        )
        client, _ = make_client(sdk)

        with pytest.raises(BackendError) as exc_info:
            await client.insert("likes", {"post_id": "p1", "user_id": "u1"}, returning=None)

        assert exc_info.value.code == "23505"
        assert "duplicate key" in exc_info.value.message
        assert exc_info.value.details == "Key (post_id, user_id) already exists."

    @pytest.mark.asyncio
    async def test_storage_error(self, sdk):
        sdk.bucket.upload.side_effect = StorageException(
            {"statusCode": "409", "error": "Duplicate", "message": "The resource already exists"}
        )
        client, _ = make_client(sdk)

        with pytest.raises(BackendError) as exc_info:
            await client.upload("post-images", "u1/1_a.png", b"png")

        assert exc_info.value.message == "The resource already exists"
        assert exc_info.value.status_code == 409
        assert exc_info.value.code == "Duplicate"

    @pytest.mark.asyncio
    async def test_network_error_is_not_retried(self, sdk):
        sdk.respond(error=httpx.ConnectError("connection refused"))
        client, _ = make_client(sdk)

        with pytest.raises(BackendError) as exc_info:
            await client.select("posts")

        assert exc_info.value.status_code is None
        assert exc_info.value.message.startswith("Network error")
        assert len(sdk.queries) == 1


# =============================================================================
# Data API
# =============================================================================


class TestDataApi:
    """Tests for select/insert/update/delete/rpc."""

    @pytest.mark.asyncio
    async def test_select_query(self, sdk):
        sdk.respond([{"id": "p1"}])
        client, _ = make_client(sdk)

        rows = await client.select(
            "posts",
            "*, profiles(*)",
            filters={"user_id": "u1"},
            order="created_at",
            limit=5,
        )

        query = sdk.queries[0]
        assert rows == [{"id": "p1"}]
        assert query.target == "posts"
        assert query.names() == ["select", "eq", "order", "limit"]
        assert query.call("select")[0] == ("*, profiles(*)",)
        assert query.call("eq")[0] == ("user_id", "u1")
        assert query.call("order") == (("created_at",), {"desc": True})
        assert query.call("limit")[0] == (5,)

    @pytest.mark.asyncio
    async def test_boolean_and_null_filters(self, sdk):
        client, _ = make_client(sdk)

        await client.select("notifications", filters={"is_read": False, "post_id": None})

        query = sdk.queries[0]
        assert query.call("eq")[0] == ("is_read", "false")
        assert query.call("is_")[0] == ("post_id", "null")

    @pytest.mark.asyncio
    async def test_single(self, sdk):
        sdk.respond({"id": "u1", "username": "ada"})
        client, _ = make_client(sdk)

        row = await client.select("profiles", filters={"id": "u1"}, single=True)

        assert row == {"id": "u1", "username": "ada"}
        assert sdk.queries[0].names()[-1] == "single"

    @pytest.mark.asyncio
    async def test_single_with_no_rows_raises(self, sdk):
        sdk.respond(
            error=PostgrestAPIError(
                {
                    "message": "JSON object requested, multiple (or no) rows returned",
                    "code": "PGRST116",
                    "details": "The result contains 0 rows",
                    "hint": None,
                }
            )
        )
        client, _ = make_client(sdk)

        with pytest.raises(BackendError) as exc_info:
            await client.select("profiles", filters={"id": "ghost"}, single=True)

        assert exc_info.value.code == "PGRST116"
        assert exc_info.value.status_code == 406

    @pytest.mark.asyncio
    async def test_maybe_single_without_rows(self, sdk):
        sdk.respond(NO_RESPONSE)
        client, _ = make_client(sdk)

        assert await client.select("profiles", filters={"id": "ghost"}, maybe_single=True) is None
        assert sdk.queries[0].names()[-1] == "maybe_single"

    @pytest.mark.asyncio
    async def test_insert_returns_representation(self, sdk):
        sdk.respond([{"id": "w1", "item_description": "Calculator"}])
        client, _ = make_client(sdk)

        row = await client.insert(
            "wishlist_items", {"item_description": "Calculator"}, single=True
        )

        assert row == {"id": "w1", "item_description": "Calculator"}
        args, kwargs = sdk.queries[0].call("insert")
        assert args == ({"item_description": "Calculator"},)
        assert kwargs["returning"] == ReturnMethod.representation

    @pytest.mark.asyncio
    async def test_insert_minimal(self, sdk):
        sdk.respond(None)
        client, _ = make_client(sdk)

        rows = await client.insert("likes", {"post_id": "p1", "user_id": "u1"}, returning=None)

        assert rows == []
        assert sdk.queries[0].call("insert")[1]["returning"] == ReturnMethod.minimal

    @pytest.mark.asyncio
    async def test_insert_reads_back_embedded_relations(self, sdk):
        sdk.respond([{"id": "c1", "content": "Thanks!"}])
        sdk.respond([{"id": "c1", "content": "Thanks!", "profiles": {"id": "u1", "username": "ada"}}])
        client, _ = make_client(sdk)

        row = await client.insert(
            "comments", {"content": "Thanks!"}, returning="*, profiles(*)", single=True
        )

        assert row["profiles"]["username"] == "ada"
        reread = sdk.queries[1]
        assert reread.target == "comments"
        assert reread.call("select")[0] == ("*, profiles(*)",)
        assert reread.call("in_")[0] == ("id", ["c1"])

    @pytest.mark.asyncio
    async def test_update_single_with_no_match_raises(self, sdk):
        sdk.respond([])
        client, _ = make_client(sdk)

        with pytest.raises(BackendError) as exc_info:
            await client.update("posts", {"content": "x"}, {"id": "gone"}, single=True)

        assert exc_info.value.code == "PGRST116"
        query = sdk.queries[0]
        assert query.call("update")[0] == ({"content": "x"},)
        assert query.call("eq")[0] == ("id", "gone")

    @pytest.mark.asyncio
    async def test_delete(self, sdk):
        client, _ = make_client(sdk)

        await client.delete("likes", {"post_id": "p1", "user_id": "u1"})

        query = sdk.queries[0]
        assert query.names() == ["delete", "eq", "eq"]

    @pytest.mark.asyncio
    async def test_delete_without_filters_is_refused(self, sdk):
        client, _ = make_client(sdk)

        with pytest.raises(ValueError):
            await client.delete("likes", {})

        assert sdk.queries == []

    @pytest.mark.asyncio
    async def test_rpc(self, sdk):
        sdk.respond([{"id": "donor-1", "username": "grace"}])
        client, _ = make_client(sdk)

        rows = await client.rpc("get_conversations", {"current_user_id": "student-1"})

        assert rows == [{"id": "donor-1", "username": "grace"}]
        assert sdk.queries[0].call("rpc")[0] == (
            "get_conversations",
            {"current_user_id": "student-1"},
        )


# =============================================================================
# Storage API
# =============================================================================


class TestStorageApi:
    """Tests for upload and public URLs."""

    @pytest.mark.asyncio
    async def test_upload(self, sdk):
        client, _ = make_client(sdk)

        key = await client.upload("post-images", "u1/1_a.png", b"png", content_type="image/png")

        assert key == "post-images/u1/1_a.png"
        sdk.storage.from_.assert_called_with("post-images")
        sdk.bucket.upload.assert_awaited_once_with(
            "u1/1_a.png", b"png", {"content-type": "image/png", "upsert": "false"}
        )

    @pytest.mark.asyncio
    async def test_public_url(self, sdk):
        client, _ = make_client(sdk)

        url = await client.public_url("post-images", "u1/1_a.png")

        assert url == f"{BASE_URL}/storage/v1/object/public/post-images/u1/1_a.png"
        sdk.bucket.get_public_url.assert_awaited_once_with("u1/1_a.png")


# =============================================================================
# Auth API
# =============================================================================


class TestAuthApi:
    """Tests for sign-in/sign-up/sign-out and session handling."""

    @pytest.mark.asyncio
    async def test_sign_in_adopts_and_persists_session(self, sdk, tmp_path):
        session = _session_data()
        sdk.auth.sign_in_with_password.return_value = SimpleNamespace(
            user=session["user"], session=session
        )
        store = SessionStore(path=tmp_path / "session.json", enabled=True)
        client, _ = make_client(sdk, session_store=store)

        result = await client.sign_in_with_password("ada@example.com", "s3cret!")

        sdk.auth.sign_in_with_password.assert_awaited_once_with(
            {"email": "ada@example.com", "password": "s3cret!"}
        )
        assert result.user is not None and result.user.id == "student-1"
        assert client.session is not None
        assert client.session.access_token == "user-access-token-abcdef"
        assert store.load() == client.session

    @pytest.mark.asyncio
    async def test_sign_up_without_confirmation_has_no_session(self, sdk):
        sdk.auth.sign_up.return_value = SimpleNamespace(
            user={"id": "new-1", "email": "new@example.com"}, session=None
        )
        client, _ = make_client(sdk)

        result = await client.sign_up(
            "new@example.com",
            "s3cret!",
            metadata={"username": "newbie", "role": "student"},
            redirect_to="https://edubridgepeople.test/?verified=true",
        )

        assert result.session is None
        assert result.user is not None and result.user.id == "new-1"
        sdk.auth.sign_up.assert_awaited_once_with(
            {
                "email": "new@example.com",
                "password": "s3cret!",
                "options": {
                    "data": {"username": "newbie", "role": "student"},
                    "email_redirect_to": "https://edubridgepeople.test/?verified=true",
                },
            }
        )

    @pytest.mark.asyncio
    async def test_sign_out_clears_session(self, sdk, tmp_path, auth_session):
        store = SessionStore(path=tmp_path / "session.json", enabled=True)
        client, _ = make_client(sdk, session_store=store)
        client.set_session(auth_session)

        await client.sign_out()

        sdk.auth.sign_out.assert_awaited_once()
        assert client.session is None
        assert not (tmp_path / "session.json").exists()

    @pytest.mark.asyncio
    async def test_sign_out_of_session_revoked_elsewhere(self, sdk, tmp_path, auth_session):
        sdk.auth.sign_out.side_effect = AuthApiError("Session not found", 403, "session_not_found")
        store = SessionStore(path=tmp_path / "session.json", enabled=True)
        client, _ = make_client(sdk, session_store=store)
        client.set_session(auth_session)

        await client.sign_out()

        assert client.session is None
        assert not (tmp_path / "session.json").exists()

    @pytest.mark.asyncio
    async def test_sign_out_network_failure_still_forgets_session(self, sdk, tmp_path, auth_session):
        sdk.auth.sign_out.side_effect = httpx.ConnectError("connection refused")
        store = SessionStore(path=tmp_path / "session.json", enabled=True)
        client, _ = make_client(sdk, session_store=store)
        client.set_session(auth_session)

        with pytest.raises(BackendError):
            await client.sign_out()

        assert client.session is None
        assert not (tmp_path / "session.json").exists()

    @pytest.mark.asyncio
    async def test_get_user_requires_session(self, sdk):
        client, _ = make_client(sdk)

        with pytest.raises(NotAuthenticatedError):
            await client.get_user()

        sdk.auth.get_user.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_session_adopts_refreshed_token(self, sdk, auth_session):
        sdk.auth.get_session.return_value = _session_data("refreshed-token")
        client, _ = make_client(sdk)
        client.set_session(auth_session)

        session = await client.get_session()

        assert session is not None
        assert session.access_token == "refreshed-token"
        assert client.session == session

    @pytest.mark.asyncio
    async def test_failed_refresh_signs_out(self, sdk, auth_session):
        sdk.auth.get_session.side_effect = AuthApiError(
            "Invalid Refresh Token: Refresh Token Not Found", 400, "refresh_token_not_found"
        )
        client, _ = make_client(sdk)
        client.set_session(auth_session)

        assert await client.get_session() is None
        assert client.session is None

    @pytest.mark.asyncio
    async def test_resend_signup(self, sdk):
        client, _ = make_client(sdk)

        await client.resend_signup(
            "new@example.com", redirect_to="https://edubridgepeople.test/?verified=true"
        )

        sdk.auth.resend.assert_awaited_once_with(
            {
                "type": "signup",
                "email": "new@example.com",
                "options": {"email_redirect_to": "https://edubridgepeople.test/?verified=true"},
            }
        )

    @pytest.mark.asyncio
    async def test_oauth_url(self, sdk):
        sdk.auth.sign_in_with_oauth.return_value = SimpleNamespace(
            provider="google", url=f"{BASE_URL}/auth/v1/authorize?provider=google"
        )
        client, _ = make_client(sdk)

        url = await client.oauth_url("google", redirect_to="https://edubridgepeople.test/?page=feed")

        assert url == f"{BASE_URL}/auth/v1/authorize?provider=google"
        sdk.auth.sign_in_with_oauth.assert_awaited_once_with(
            {"provider": "google", "options": {"redirect_to": "https://edubridgepeople.test/?page=feed"}}
        )

    @pytest.mark.asyncio
    async def test_restore_session(self, sdk, tmp_path, auth_session: AuthSession):
        store = SessionStore(path=tmp_path / "session.json", enabled=True)
        store.save(auth_session)
        sdk.auth.set_session.return_value = SimpleNamespace(user=auth_session.user, session=auth_session)
        client, _ = make_client(sdk, session_store=store)

        restored = await client.restore_session()

        assert restored == auth_session
        assert client.session == auth_session
        sdk.auth.set_session.assert_awaited_once_with("user-access-token-abcdef", "refresh-token-123")

    @pytest.mark.asyncio
    async def test_restore_revoked_session_forgets_it(self, sdk, tmp_path, auth_session):
        store = SessionStore(path=tmp_path / "session.json", enabled=True)
        store.save(auth_session)
        sdk.auth.set_session.side_effect = AuthApiError("Session not found", 403, "session_not_found")
        client, _ = make_client(sdk, session_store=store)

        assert await client.restore_session() is None
        assert client.session is None
        assert not (tmp_path / "session.json").exists()

    @pytest.mark.asyncio
    async def test_restore_without_store(self, sdk):
        client, factory = make_client(sdk)

        assert await client.restore_session() is None
        factory.assert_not_awaited()
