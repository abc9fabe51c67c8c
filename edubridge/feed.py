"""Community feed: posts, composer, likes, editing, claiming and sharing.

:class:`FeedView` holds the feed's local state (fetched posts, composer
fields, edit state) and performs the backend calls behind each action.
Outcomes are reported through a :class:`~edubridge.toasts.Toaster`.

Signed-out visitors see a fixed set of demo posts; any interaction with a
demo post is refused with an info toast.

Example:
    >>> feed = FeedView(client, toaster, user=user, profile=profile)
    >>> await feed.fetch_posts()
    >>> feed.post_filter = PostFilter.ALL
    >>> for post in feed.visible_posts():
    ...     print(post.author_username, post.like_count)
"""

import mimetypes
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Literal
from urllib.parse import quote, urljoin

import httpx
from bs4 import BeautifulSoup, Tag

from edubridge.api import BackendError
from edubridge.config import PostFilter, PostSort, settings
from edubridge.interfaces import IBackendClient
from edubridge.logging import logger
from edubridge.models import AuthUser, LinkPreview, Post, PostType, Profile
from edubridge.toasts import Toaster
from edubridge.types import CreateNotificationParams, LikeRow, PostInsert, PostUpdate
from edubridge.utils import extract_first_url, storage_object_path, utc_now

POST_SELECT = "*, profiles(*), likes(*), comments(*, profiles(*))"

SharePlatform = Literal["twitter", "whatsapp", "copy"]


# =============================================================================
# Demo content
# =============================================================================


def _avatar(seed: str, color: str) -> str:
    return (
        f"https://api.dicebear.com/7.x/initials/svg?seed={seed}"
        f"&backgroundColor={color}&radius=50"
    )


def demo_profiles(now: datetime | None = None) -> list[Profile]:
    """Profiles used by the demo posts."""
    now = now or utc_now()
    return [
        Profile(
            id="demo-user-1",
            email="donor@example.com",
            username="GenerousDonor",
            role="donor",
            verification_status="verified",
            created_at=now - timedelta(days=5),
            avatar_url=_avatar("GenerousDonor", "22c55e"),
        ),
        Profile(
            id="demo-user-2",
            email="student@example.com",
            username="EagerStudent",
            role="student",
            verification_status="verified",
            created_at=now - timedelta(days=3),
            avatar_url=_avatar("EagerStudent", "3b82f6"),
        ),
        Profile(
            id="demo-user-3",
            email="mentor@example.com",
            username="WiseMentor",
            role="donor",
            verification_status="verified",
            created_at=now - timedelta(days=10),
            avatar_url=_avatar("WiseMentor", "8b5cf6"),
        ),
    ]


def demo_posts(now: datetime | None = None) -> list[Post]:
    """Posts shown to signed-out visitors, timestamped relative to ``now``."""
    now = now or utc_now()
    profiles = demo_profiles(now)
    return [
        Post(
            id="demo-post-1",
            user_id="demo-user-1",
            post_type=PostType.DONATION,
            resource_title="Complete Set of Physics Textbooks for College",
            content=(
                "I have a full set of Halliday, Resnick, and Walker textbooks that "
                "I'd love to pass on to a student in need."
            ),
            resource_category="books",
            resource_contact="Contact via platform message",
            created_at=now - timedelta(minutes=15),
            profiles=profiles[0],
        ),
        Post(
            id="demo-post-2",
            user_id="demo-user-2",
            post_type=PostType.WISDOM,
            content=(
                "Just discovered a great free resource for learning React! The new docs "
                "are amazing for beginners. Highly recommend checking them out if you "
                "are into web development. #react #webdev"
            ),
            link_url="https://react.dev",
            link_title="React - A JavaScript library for building user interfaces",
            link_description="The library for web and native user interfaces...",
            link_image="https://react.dev/images/og-home.png",
            created_at=now - timedelta(hours=2),
            profiles=profiles[1],
        ),
    ]


# =============================================================================
# Filtering & sorting
# =============================================================================


_EPOCH = datetime.min.replace(tzinfo=UTC)


def _matches(post: Post, needle: str) -> bool:
    haystacks = (post.content, post.resource_title, post.author_username)
    return any(h is not None and needle in h.lower() for h in haystacks)


def filter_and_sort_posts(
    posts: list[Post],
    search: str = "",
    post_filter: PostFilter | str = PostFilter.DONATION,
    sort: PostSort | str = PostSort.CREATED_AT,
) -> list[Post]:
    """Apply the search box, type filter and sort order to ``posts``.

    Args:
        posts: Posts in fetched order
        search: Case-insensitive substring matched against content, resource
            title and author username
        post_filter: Post type to keep, or ``all``
        sort: ``likes`` or ``comments`` (count, most first) or ``created_at``
            (newest first)

    Returns:
        New list; posts that compare equal keep their input order
    """
    result = list(posts)

    if search:
        needle = search.lower()
        result = [p for p in result if _matches(p, needle)]

    post_filter = PostFilter(post_filter)
    if post_filter != PostFilter.ALL:
        result = [p for p in result if p.post_type == post_filter]

    sort = PostSort(sort)
    if sort == PostSort.LIKES:
        result.sort(key=lambda p: p.like_count, reverse=True)
    elif sort == PostSort.COMMENTS:
        result.sort(key=lambda p: p.comment_count, reverse=True)
    else:
        result.sort(key=lambda p: p.created_at or _EPOCH, reverse=True)

    return result


# =============================================================================
# Link previews
# =============================================================================


PREVIEW_PARSER = "lxml"


def _meta_content(soup: BeautifulSoup, *keys: str) -> str | None:
    """Content of the first <meta> whose property (or name) is one of ``keys``."""
    for key in keys:
        tag = soup.find("meta", attrs={"property": key}) or soup.find("meta", attrs={"name": key})
        content = tag.get("content") if isinstance(tag, Tag) else None
        if isinstance(content, str) and content.strip():
            return content.strip()
    return None


def parse_link_preview(url: str, html: str | bytes) -> LinkPreview:
    """Build a preview from the Open Graph / Twitter card tags in ``html``."""
    soup = BeautifulSoup(html, PREVIEW_PARSER)

    page_title = soup.title.get_text(strip=True) if soup.title else None
    image = _meta_content(soup, "og:image", "twitter:image")
    return LinkPreview(
        url=url,
        title=_meta_content(soup, "og:title", "twitter:title") or page_title or url,
        description=_meta_content(soup, "og:description", "twitter:description", "description"),
        image=urljoin(url, image) if image else None,
    )


async def fetch_link_preview(url: str, client: httpx.AsyncClient | None = None) -> LinkPreview:
    """Fetch ``url`` and read its preview tags.

    Any failure (network, status, non-HTML body) yields a bare preview whose
    title is the URL itself.
    """
    owns_client = client is None
    http = client or httpx.AsyncClient(
        timeout=httpx.Timeout(10.0), follow_redirects=True
    )
    try:
        resp = await http.get(url, headers={"Accept": "text/html"})
        resp.raise_for_status()
        if "html" not in resp.headers.get("content-type", "text/html"):
            return LinkPreview(url=url, title=url)
        return parse_link_preview(url, resp.content)
    except httpx.HTTPError as exc:
        logger.warning(f"Failed to fetch rich link preview for {url}: {exc}")
        return LinkPreview(url=url, title=url)
    finally:
        if owns_client:
            await http.aclose()


# =============================================================================
# Feed view
# =============================================================================


@dataclass
class PostImage:
    """Image attached in the composer."""

    filename: str
    content: bytes
    content_type: str | None = None


class FeedView:
    """State and actions of the community feed.

    Args:
        client: Backend client
        toaster: Where outcome messages go
        user: Signed-in user (None when signed out)
        profile: Profile of the signed-in user
        search_query: Initial search text (shared with the header)
        on_navigate: Called as ``on_navigate(page, **params)`` to switch page
        link_preview_fetcher: Coroutine function producing link previews
    """

    def __init__(
        self,
        client: IBackendClient,
        toaster: Toaster,
        user: AuthUser | None = None,
        profile: Profile | None = None,
        search_query: str = "",
        on_navigate: Callable[..., None] | None = None,
        link_preview_fetcher: Callable[[str], Any] | None = None,
    ) -> None:
        self.client = client
        self.toaster = toaster
        self.user = user
        self.profile = profile
        self.on_navigate = on_navigate
        self._fetch_preview = link_preview_fetcher or fetch_link_preview

        self.posts: list[Post] = []
        self.loading = False
        self.search_query = search_query
        self.post_filter = PostFilter.DONATION
        self.sort = PostSort.CREATED_AT
        self.expanded_comments: dict[str, bool] = {}

        self.composer_type = PostType.WISDOM
        self.submitting = False
        self.clear_composer()

        self.editing_post: Post | None = None
        self.edited_content = ""
        self.edit_link_preview: LinkPreview | None = None

    @property
    def signed_in(self) -> bool:
        return self.user is not None and self.profile is not None

    def _navigate(self, page: str, **params: str) -> None:
        if self.on_navigate is not None:
            self.on_navigate(page, **params)

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    async def fetch_posts(self) -> list[Post]:
        """Load all posts (newest first), or the demo posts when signed out."""
        if self.user is None:
            self.posts = demo_posts()
            return self.posts

        self.loading = True
        try:
            rows = await self.client.select("posts", POST_SELECT, order="created_at")
            self.posts = [Post.model_validate(r) for r in rows or []]
            logger.debug(f"Fetched {len(self.posts)} posts")
        except BackendError as exc:
            logger.error(f"Error fetching posts: {exc.message}")
            self.toaster.error("Could not fetch posts.")
        finally:
            self.loading = False
        return self.posts

    def visible_posts(self) -> list[Post]:
        """Posts after the current search, filter and sort."""
        return filter_and_sort_posts(self.posts, self.search_query, self.post_filter, self.sort)

    def toggle_comments(self, post_id: str) -> bool:
        self.expanded_comments[post_id] = not self.expanded_comments.get(post_id, False)
        return self.expanded_comments[post_id]

    # -------------------------------------------------------------------------
    # Composer
    # -------------------------------------------------------------------------

    def clear_composer(self) -> None:
        self.content = ""
        self.resource_title = ""
        self.resource_category = ""
        self.resource_contact = ""
        self.image: PostImage | None = None
        self.link_preview: LinkPreview | None = None

    def set_composer_type(self, post_type: PostType | str) -> None:
        if not self.submitting:
            self.composer_type = PostType(post_type)

    async def refresh_link_preview(self) -> LinkPreview | None:
        """Fetch a preview for the first URL in the composer content."""
        url = extract_first_url(self.content)
        self.link_preview = await self._fetch_preview(url) if url else None
        return self.link_preview

    def _build_post(self, user_id: str) -> PostInsert | None:
        """Validate the composer fields; None (after a toast) when invalid."""
        post_type = self.composer_type
        content = self.content.strip()
        data: PostInsert = {
            "user_id": user_id,
            "post_type": str(post_type),
            "link_url": extract_first_url(self.content),
        }

        if post_type == PostType.WISDOM:
            if not content:
                return None
            data["content"] = content
            if self.link_preview is not None:
                data["link_title"] = self.link_preview.title
                data["link_description"] = self.link_preview.description
                data["link_image"] = self.link_preview.image
            return data

        if post_type == PostType.SEEKING and not (self.profile and self.profile.is_student):
            self.toaster.error("Only students can request resources.")
            return None

        title = self.resource_title.strip()
        if not title or not self.resource_category:
            self.toaster.error("Please fill out resource title and category.")
            return None
        data["resource_title"] = title
        data["resource_category"] = self.resource_category

        if post_type == PostType.DONATION:
            contact = self.resource_contact.strip()
            if not contact:
                self.toaster.error("Please provide contact info for donation.")
                return None
            data["resource_contact"] = contact

        if content:
            data["content"] = content
        return data

    async def _upload_image(self, user_id: str, image: PostImage) -> str:
        bucket = settings.post_images_bucket
        path = storage_object_path(user_id, image.filename)
        content_type = image.content_type or mimetypes.guess_type(image.filename)[0]
        await self.client.upload(bucket, path, image.content, content_type=content_type)
        return await self.client.public_url(bucket, path)

    async def submit_post(self) -> Post | None:
        """Create a post from the composer.

        Invalid input is rejected before any backend call. The composer is
        cleared once input is accepted; the image (if any) is uploaded first
        and the created post is prepended to the feed.

        Returns:
            The created post, or None
        """
        if self.user is None or not self.signed_in or self.submitting:
            return None

        self.submitting = True
        try:
            data = self._build_post(self.user.id)
            if data is None:
                return None

            image = self.image
            self.clear_composer()

            if image is not None:
                data["image_url"] = await self._upload_image(self.user.id, image)

            row = await self.client.insert("posts", data, returning=POST_SELECT, single=True)
            post = Post.model_validate(row)
            self.posts.insert(0, post)
            self.toaster.success("Post created successfully!")
            return post
        except BackendError as exc:
            logger.error(f"Post creation failed: {exc.message}")
            self.toaster.error(exc.message or "Failed to create post.")
            return None
        finally:
            self.submitting = False

    # -------------------------------------------------------------------------
    # Likes
    # -------------------------------------------------------------------------

    async def toggle_like(self, post: Post) -> bool:
        """Like ``post``, or remove the like if the user already liked it.

        Liking someone else's post also notifies its author. The feed is
        refetched afterwards so counts come from the backend.
        """
        if post.is_demo:
            self.toaster.info("Liking is disabled for demo posts. Sign up to interact!")
            return False
        if self.user is None or not self.signed_in:
            self.toaster.info("Please sign in to like posts.")
            return False

        like: LikeRow = {"post_id": post.id, "user_id": self.user.id}
        try:
            if post.is_liked_by(self.user.id):
                await self.client.delete("likes", dict(like))
            else:
                await self.client.insert("likes", dict(like), returning=None)
                if post.user_id != self.user.id:
                    params: CreateNotificationParams = {
                        "p_user_id": post.user_id,
                        "p_type": "like",
                        "p_actor_id": self.user.id,
                        "p_post_id": post.id,
                    }
                    await self.client.rpc("create_notification", dict(params))
        except BackendError as exc:
            logger.error(f"Like toggle failed for post {post.id}: {exc.message}")
            self.toaster.error("Failed to update like.")
            return False

        await self.fetch_posts()
        return True

    # -------------------------------------------------------------------------
    # Editing & deleting
    # -------------------------------------------------------------------------

    async def start_edit(self, post: Post) -> bool:
        if post.is_demo:
            self.toaster.info("Demo posts cannot be edited.")
            return False
        self.editing_post = post
        self.edited_content = post.content or ""
        url = extract_first_url(post.content)
        self.edit_link_preview = await self._fetch_preview(url) if url else None
        return True

    def cancel_edit(self) -> None:
        self.editing_post = None
        self.edited_content = ""
        self.edit_link_preview = None

    async def update_post(self) -> Post | None:
        """Save the edited content of the post being edited."""
        if self.editing_post is None or self.user is None:
            return None

        changes: PostUpdate = {"content": self.edited_content}
        link_url = extract_first_url(self.edited_content)
        if link_url:
            changes["link_url"] = link_url
        if self.edit_link_preview is not None:
            if self.edit_link_preview.title is not None:
                changes["link_title"] = self.edit_link_preview.title
            if self.edit_link_preview.description is not None:
                changes["link_description"] = self.edit_link_preview.description
            if self.edit_link_preview.image is not None:
                changes["link_image"] = self.edit_link_preview.image

        updated: Post | None = None
        try:
            row = await self.client.update(
                "posts",
                dict(changes),
                {"id": self.editing_post.id, "user_id": self.user.id},
                returning=POST_SELECT,
                single=True,
            )
            updated = Post.model_validate(row)
            self.posts = [updated if p.id == updated.id else p for p in self.posts]
            self.toaster.success("Post updated.")
        except BackendError as exc:
            logger.error(f"Post update failed: {exc.message}")
            self.toaster.error("Failed to update post.")
        finally:
            self.cancel_edit()
        return updated

    async def delete_post(self, post: Post) -> bool:
        """Delete one of the user's own posts."""
        if self.user is None:
            return False
        try:
            await self.client.delete("posts", {"id": post.id, "user_id": self.user.id})
        except BackendError as exc:
            logger.error(f"Post deletion failed: {exc.message}")
            self.toaster.error("Failed to delete post.")
            return False
        self.posts = [p for p in self.posts if p.id != post.id]
        self.toaster.success("Post deleted.")
        return True

    # -------------------------------------------------------------------------
    # Claiming donated resources
    # -------------------------------------------------------------------------

    def claim_tooltip(self, post: Post) -> str:
        """Hint shown on the claim button of ``post``."""
        if post.is_demo:
            return "Sign up or log in to interact with posts"
        if self.user is None:
            return "Sign in to claim resources"
        if not (self.profile and self.profile.is_student):
            return "Only students can claim resources"
        if not self.profile.is_verified:
            return "Verify your student profile to claim resources"
        if post.user_id == self.user.id:
            return "You cannot claim your own resource"
        return "Claim this resource"

    def claim_block_reason(self, post: Post) -> str | None:
        """Why the claim button is disabled, or None when it is enabled.

        Demo posts keep the button enabled so visitors are prompted to sign up.
        """
        if post.is_demo:
            return None
        tooltip = self.claim_tooltip(post)
        return None if tooltip == "Claim this resource" else tooltip

    def claim_resource(self, post: Post) -> Post | None:
        """Reveal the donor's contact details to a verified student.

        Returns:
            The post (with ``resource_contact``) when the claim is allowed
        """
        if post.is_demo:
            self.toaster.info("This is a demo post. Please sign up to interact!")
            return None
        if self.user is None:
            self.toaster.error("You must be signed in to claim resources.")
            return None
        if not (self.profile and self.profile.is_student):
            self.toaster.error("Only students can claim resources.")
            return None
        if not self.profile.is_verified:
            self.toaster.error(
                "You must be a verified student to claim resources. Please verify your profile."
            )
            self._navigate("verification")
            return None
        if post.user_id == self.user.id:
            self.toaster.error("You cannot claim your own resource")
            return None
        return post

    def message_author(self, post: Post) -> bool:
        """Open a conversation with the author of ``post``."""
        if post.is_demo:
            return False
        self._navigate("messages", recipient=post.user_id)
        return True

    # -------------------------------------------------------------------------
    # Sharing & reporting
    # -------------------------------------------------------------------------

    @staticmethod
    def post_url(post: Post, site_url: str | None = None) -> str:
        return f"{(site_url or settings.site_url).rstrip('/')}/?page=feed&post={post.id}"

    def share_url(self, post: Post, platform: SharePlatform) -> str:
        """Link that shares ``post`` on ``platform`` (``copy`` gives the post URL)."""
        url = self.post_url(post)
        if platform == "copy":
            self.toaster.success("Post link copied!")
            return url

        text = post.content or post.resource_title or "Check out this post on Edubridgepeople!"
        encoded_text = _encode_component(f'"{text}" - via @Edubridgepeople')
        encoded_url = _encode_component(url)
        if platform == "twitter":
            return f"https://twitter.com/intent/tweet?text={encoded_text}&url={encoded_url}"
        if platform == "whatsapp":
            return f"https://wa.me/?text={encoded_text}%20{encoded_url}"
        raise ValueError(f"Unknown share platform: {platform}")

    def report_url(self, post_id: str) -> str | None:
        """``mailto:`` link reporting ``post_id`` to the moderators."""
        if str(post_id).startswith("demo-"):
            self.toaster.info("This is a demo post.")
            return None
        subject = _encode_component(f"Report on Post ID: {post_id}")
        body = _encode_component(
            f"I would like to report Post ID: {post_id} for the following reason:"
            "\n\n[Please describe the issue here]\n\n"
        )
        self.toaster.info("Opening your email client...")
        return f"mailto:{settings.report_email}?subject={subject}&body={body}"


def _encode_component(value: str) -> str:
    """Percent-encode like a browser's encodeURIComponent."""
    return quote(value, safe="!~*'()")


__all__ = [
    "FeedView",
    "POST_SELECT",
    "PostImage",
    "demo_posts",
    "demo_profiles",
    "fetch_link_preview",
    "filter_and_sort_posts",
    "parse_link_preview",
]
