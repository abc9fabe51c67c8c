"""Application shell: session, current page and the views behind each page.

:class:`AppShell` plays the role of the root layout. It knows who is signed
in, which page is showing and the header search text, and builds the view
for each page with that context.

Example:
    >>> shell = AppShell(client)
    >>> await shell.load_session()
    >>> shell.handle_query_params({"page": "wishlist"})
    'wishlist'
    >>> view = shell.wishlist_view()
"""

from collections.abc import Mapping

from edubridge.api import BackendError
from edubridge.auth import AuthForm, AuthMode, AuthService
from edubridge.comments import CommentSection
from edubridge.feed import FeedView
from edubridge.interfaces import IBackendClient
from edubridge.logging import clear_request_context, logger, set_request_context
from edubridge.messaging import MessagesView
from edubridge.models import AuthUser, Post, Profile, Role, VerificationStatus
from edubridge.notifications import NotificationsView
from edubridge.toasts import Toaster
from edubridge.verification import VerificationView
from edubridge.wishlist import WishlistView

PAGES = ("feed", "messages", "notifications", "wishlist", "verification", "profile")
DEFAULT_PAGE = "feed"

# Static figures shown in the sidebar; not computed from backend data
COMMUNITY_STATS: dict[str, str] = {
    "Active Students": "250+",
    "Resources Shared": "1,200+",
    "Verified Donors": "150+",
    "Success Stories": "50+",
}

TRENDING_TOPICS: list[tuple[str, str]] = [
    ("#ExamTips", "1.2k"),
    ("#Scholarships2025", "890"),
    ("#CollegeLife", "2.5k"),
    ("#MentalHealth", "500"),
    ("#CodingHelp", "3.1k"),
]


def role_badges(profile: Profile | None) -> tuple[str, str] | None:
    """Role badge and verification badge for the sidebar profile card.

    Donors are always shown as verified. Unverified students get a
    "Get Verified" prompt instead of a status badge.
    """
    if profile is None:
        return None
    if profile.role == Role.DONOR:
        return ("Donor/Mentor", "Verified")
    status = {
        VerificationStatus.VERIFIED: "Verified",
        VerificationStatus.PENDING: "Pending",
    }.get(profile.verification_status, "Get Verified")
    return ("Student", status)


def normalize_page(page: str | None) -> str:
    return page if page in PAGES else DEFAULT_PAGE


class AppShell:
    """Root state shared by every page.

    Args:
        client: Backend client
        toaster: Where outcome messages go (a new one by default)
    """

    def __init__(self, client: IBackendClient, toaster: Toaster | None = None) -> None:
        self.client = client
        self.toaster = toaster or Toaster()
        self.auth = AuthService(client)
        self.user: AuthUser | None = None
        self.profile: Profile | None = None
        self.page = DEFAULT_PAGE
        self.page_params: dict[str, str] = {}
        self.search_query = ""
        self.loading = False

    @property
    def signed_in(self) -> bool:
        return self.user is not None

    def navigate(self, page: str, **params: str) -> str:
        self.page = normalize_page(page)
        self.page_params = dict(params)
        logger.debug(f"Navigated to {self.page} {self.page_params or ''}")
        return self.page

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    async def load_session(self) -> AuthUser | None:
        """Pick up the current session and load the user's profile."""
        self.loading = True
        try:
            session = await self.client.get_session()
            self.user = session.user if session else None
            if self.user is not None:
                set_request_context(user_id=self.user.id)
                self.profile = await self.auth.get_user_profile(self.user.id)
            else:
                self.profile = None
        finally:
            self.loading = False
        return self.user

    async def refresh_profile(self, user_id: str | None = None) -> Profile | None:
        """Reload the profile (e.g. after a verification upload)."""
        user_id = user_id or (self.user.id if self.user else None)
        if user_id is None:
            return None
        profile = await self.auth.get_user_profile(user_id)
        if profile is not None:
            self.profile = profile
        return self.profile

    def handle_query_params(self, params: Mapping[str, str]) -> str:
        """Apply ``?page=...`` style parameters from a redirect URL."""
        if params.get("verified") == "true":
            self.toaster.success("Email Verified! Welcome to Edubridgepeople.")
            return self.navigate("feed")
        extra = {k: v for k, v in params.items() if k != "page"}
        return self.navigate(params.get("page", DEFAULT_PAGE), **extra)

    async def sign_out(self) -> bool:
        try:
            await self.auth.sign_out()
        except BackendError as exc:
            logger.error(f"SignOut error: {exc.message}")
            self.toaster.error("Error signing out")
            return False
        self.user = None
        self.profile = None
        clear_request_context()
        self.navigate(DEFAULT_PAGE)
        self.toaster.success("Signed out successfully")
        return True

    def role_badges(self) -> tuple[str, str] | None:
        return role_badges(self.profile)

    # -------------------------------------------------------------------------
    # Page views
    # -------------------------------------------------------------------------

    def auth_form(self, mode: AuthMode = "signup") -> AuthForm:
        return AuthForm(self.auth, self.toaster, initial_mode=mode)

    def feed_view(self) -> FeedView:
        return FeedView(
            self.client,
            self.toaster,
            user=self.user,
            profile=self.profile,
            search_query=self.search_query,
            on_navigate=self.navigate,
        )

    def comment_section(self, post: Post) -> CommentSection:
        return CommentSection(
            self.client,
            self.toaster,
            post.id,
            comments=post.comments,
            user=self.user,
            profile=self.profile,
        )

    def messages_view(self) -> MessagesView:
        return MessagesView(self.client, self.toaster, self.user)

    def notifications_view(self) -> NotificationsView:
        return NotificationsView(self.client, self.toaster, self.user)

    def wishlist_view(self) -> WishlistView:
        return WishlistView(self.client, self.toaster, self.user, self.profile)

    def verification_view(self) -> VerificationView:
        return VerificationView(
            self.client,
            self.toaster,
            self.user,
            self.profile,
            on_verification_update=self.refresh_profile,
        )


__all__ = [
    "AppShell",
    "COMMUNITY_STATS",
    "DEFAULT_PAGE",
    "PAGES",
    "TRENDING_TOPICS",
    "normalize_page",
    "role_badges",
]
