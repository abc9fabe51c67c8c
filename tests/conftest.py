"""Pytest configuration and shared fixtures for Edubridge tests."""

import os
import sys
import tempfile

# Settings and the logger are built at import time, so the test environment
# must be in place before anything from edubridge is imported.
os.environ["ENVIRONMENT"] = "testing"
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key-0123456789abcdef")
os.environ.setdefault("SITE_URL", "https://edubridgepeople.test")
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="edubridge-tests-"))

from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import Any  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
from loguru import logger  # noqa: E402

from edubridge.models import AuthSession, AuthUser, Profile  # noqa: E402
from edubridge.toasts import Toaster  # noqa: E402

BASE_URL = "https://test-project.supabase.co"
NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Test Configuration
# =============================================================================


@pytest.fixture(scope="function", autouse=True)
def reset_loguru():
    """Reset loguru handlers before each test to prevent I/O errors."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="ERROR",
        format="{time} {level} {message}",
        catch=True,
    )
    yield
    logger.remove()


# =============================================================================
# Row Builders
# =============================================================================


def profile_row(
    user_id: str = "student-1",
    username: str = "ada",
    role: str = "student",
    verification_status: str = "verified",
) -> dict[str, Any]:
    return {
        "id": user_id,
        "email": f"{username}@example.com",
        "username": username,
        "role": role,
        "verification_status": verification_status,
        "avatar_url": None,
        "created_at": "2024-09-01T08:00:00+00:00",
    }


def post_row(
    post_id: str,
    user_id: str = "donor-1",
    post_type: str = "donation",
    content: str | None = None,
    resource_title: str | None = None,
    username: str = "grace",
    likes: int | list[str] = 0,
    comments: int = 0,
    minutes_ago: int = 0,
) -> dict[str, Any]:
    """Build a ``posts`` row with embedded author, likes and comments.

    ``likes`` is either a count (anonymous likers) or a list of liker ids.
    """
    likers = likes if isinstance(likes, list) else [f"liker-{i}" for i in range(likes)]
    created = NOW - timedelta(minutes=minutes_ago)
    return {
        "id": post_id,
        "user_id": user_id,
        "post_type": post_type,
        "content": content,
        "resource_title": resource_title,
        "resource_category": "electronics" if post_type != "wisdom" else None,
        "resource_contact": "grace@example.com" if post_type == "donation" else None,
        "created_at": created.isoformat(),
        "profiles": profile_row(user_id, username, role="donor"),
        "likes": [
            {"id": f"{post_id}-like-{i}", "post_id": post_id, "user_id": uid}
            for i, uid in enumerate(likers)
        ],
        "comments": [
            {
                "id": f"{post_id}-comment-{i}",
                "post_id": post_id,
                "user_id": "commenter",
                "content": f"comment {i}",
                "created_at": created.isoformat(),
                "profiles": profile_row("commenter", "linus"),
            }
            for i in range(comments)
        ],
    }


# =============================================================================
# Domain Fixtures
# =============================================================================


@pytest.fixture
def auth_user() -> AuthUser:
    return AuthUser(
        id="student-1",
        email="ada@example.com",
        email_confirmed_at="2024-09-01T08:05:00Z",
    )


@pytest.fixture
def student_profile() -> Profile:
    return Profile.model_validate(profile_row())


@pytest.fixture
def unverified_profile() -> Profile:
    return Profile.model_validate(profile_row(verification_status="unverified"))


@pytest.fixture
def donor_user() -> AuthUser:
    return AuthUser(id="donor-1", email="grace@example.com")


@pytest.fixture
def donor_profile() -> Profile:
    return Profile.model_validate(profile_row("donor-1", "grace", role="donor"))


@pytest.fixture
def auth_session(auth_user: AuthUser) -> AuthSession:
    return AuthSession(
        access_token="user-access-token-abcdef",
        refresh_token="refresh-token-123",
        expires_in=3600,
        expires_at=4102444800,
        user=auth_user,
    )


@pytest.fixture
def toaster() -> Toaster:
    return Toaster()


# =============================================================================
# Mock Client Fixtures
# =============================================================================


@pytest.fixture
def mock_client() -> MagicMock:
    """Backend client double: async methods are AsyncMocks returning empty results."""
    client = MagicMock()
    client.session = None

    for name in (
        "sign_up",
        "sign_in_with_password",
        "sign_out",
        "get_user",
        "get_session",
        "refresh_session",
        "resend_signup",
        "restore_session",
        "remove_channel",
        "update",
        "delete",
        "rpc",
        "upload",
    ):
        setattr(client, name, AsyncMock(return_value=None))

    client.select = AsyncMock(return_value=[])
    client.insert = AsyncMock(return_value=[])
    client.oauth_url = AsyncMock(
        side_effect=lambda provider, redirect_to=None: (
            f"{BASE_URL}/auth/v1/authorize?provider={provider}&redirect_to={redirect_to}"
        )
    )
    client.public_url = AsyncMock(
        side_effect=lambda bucket, path: f"{BASE_URL}/storage/v1/object/public/{bucket}/{path}"
    )
    return client


@pytest.fixture
def make_post():
    """Factory for ``posts`` rows (see :func:`post_row`)."""
    return post_row


@pytest.fixture
def make_profile():
    """Factory for ``profiles`` rows (see :func:`profile_row`)."""
    return profile_row
