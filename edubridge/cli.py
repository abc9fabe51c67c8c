"""Command-line interface for Edubridge.

A Typer front end over the same view classes a graphical client would use.
The signed-in session is persisted between invocations (see
:mod:`edubridge.session`), so ``signin`` once and then use any command.

Commands:
- signup / signin / signout / oauth-url / resend / whoami: account
- feed / post / like / comment: community feed
- messages / send / listen: direct messages
- notifications / read: notifications
- wishlist: student wishlist
- verify: upload a student ID
- config: show configuration

Example:
    $ edubridge signin ada@example.com
    $ edubridge feed --filter all --sort likes --search laptop
    $ edubridge post --type donation --title "Physics books" --category books --contact ada@example.com
    $ edubridge send 4f1c... "Is the laptop still available?"
"""

import asyncio
import uuid
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from edubridge.api import AsyncBackendClient
from edubridge.config import PostFilter, PostSort, settings
from edubridge.feed import PostImage
from edubridge.logging import clear_request_context, set_request_context, setup_logging
from edubridge.models import RESOURCE_CATEGORY_LABELS, AuthUser, Post, PostType, Role
from edubridge.notifications import describe
from edubridge.realtime import RealtimeChannel
from edubridge.session import SessionStore
from edubridge.shell import COMMUNITY_STATS, TRENDING_TOPICS, AppShell
from edubridge.toasts import Toast, Toaster, ToastLevel
from edubridge.utils import time_ago
from edubridge.verification import VerificationFile

app = typer.Typer(
    name="edubridge",
    help="Edubridgepeople: connect students with donors and mentors",
    add_completion=False,
)
console = Console()

TOAST_STYLES = {
    ToastLevel.SUCCESS: ("✅", "green"),
    ToastLevel.ERROR: ("❌", "red"),
    ToastLevel.INFO: ("ℹ️ ", "blue"),
}


# =============================================================================
# Helper Functions
# =============================================================================


def configure_logging(verbose: bool = False) -> None:
    """Send logs to stderr, at DEBUG when ``verbose``."""
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_logs=settings.log_json,
        colorize=not settings.log_json,
        diagnose=not settings.is_production,
    )


def print_toast(toast: Toast) -> None:
    icon, style = TOAST_STYLES[toast.level]
    console.print(f"{icon} [{style}]{toast.message}[/{style}]")


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run ``coro`` in a fresh event loop."""
    return asyncio.run(coro)


@asynccontextmanager
async def open_shell(operation: str) -> AsyncIterator[AppShell]:
    """Backend client + shell with the persisted session loaded.

    Log records emitted inside carry ``operation`` and a fresh ``request_id``.
    """
    set_request_context(request_id=uuid.uuid4().hex, operation=operation)
    try:
        async with AsyncBackendClient(session_store=SessionStore()) as client:
            await client.restore_session()
            shell = AppShell(client, Toaster(listener=print_toast))
            await shell.load_session()
            yield shell
    finally:
        clear_request_context()


def require_user(shell: AppShell) -> AuthUser:
    """Signed-in user; exits with status 1 when signed out."""
    if shell.user is None:
        console.print("❌ [bold red]Not signed in. Run `edubridge signin` first.[/bold red]")
        raise typer.Exit(code=1)
    return shell.user


def exit_on_error(shell: AppShell) -> None:
    """Exit with status 1 if any error toast was shown."""
    if shell.toaster.messages(ToastLevel.ERROR):
        raise typer.Exit(code=1)


def posts_table(posts: list[Post], title: str = "Feed") -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim", overflow="fold")
    table.add_column("Type", style="cyan")
    table.add_column("Author", style="magenta")
    table.add_column("Post")
    table.add_column("♥", justify="right", style="red")
    table.add_column("💬", justify="right", style="blue")
    table.add_column("When", style="green")

    for post in posts:
        text = post.content or ""
        if post.resource_title:
            text = f"[bold]{post.resource_title}[/bold]" + (f"\n{text}" if text else "")
        if post.link_title:
            text += f"\n🔗 {post.link_title}"
        table.add_row(
            post.id,
            post.post_type,
            post.author_username or "?",
            text,
            str(post.like_count),
            str(post.comment_count),
            time_ago(post.created_at),
        )
    return table


def _find_post(posts: list[Post], post_id: str) -> Post:
    for post in posts:
        if post.id == post_id:
            return post
    console.print(f"❌ [bold red]Post {post_id} not found[/bold red]")
    raise typer.Exit(code=1)


# =============================================================================
# Account Commands
# =============================================================================


@app.command()
def signup(
    email: str = typer.Argument(..., help="Account email"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
    role: Role = typer.Option(Role.STUDENT, "--role", "-r", help="student or donor"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Create an account. A verification email is sent to EMAIL."""
    configure_logging(verbose)

    async def _signup() -> None:
        async with open_shell("signup") as shell:
            form = shell.auth_form("signup")
            form.email, form.password, form.role = email, password, role
            await form.submit()
            if form.show_email_verification:
                console.print(
                    f"📧 We've sent a link to [yellow]{form.user_email}[/yellow]. "
                    "Please click it to activate your account."
                )
            exit_on_error(shell)

    run_async(_signup())


@app.command()
def signin(
    email: str = typer.Argument(..., help="Account email"),
    password: str = typer.Option(..., prompt=True, hide_input=True),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Sign in with email and password."""
    configure_logging(verbose)

    async def _signin() -> None:
        async with open_shell("signin") as shell:
            form = shell.auth_form("signin")
            form.email, form.password = email, password
            await form.submit()
            if form.show_email_verification:
                console.print("📧 Run [cyan]edubridge resend EMAIL[/cyan] to get a new link.")
            exit_on_error(shell)

    run_async(_signin())


@app.command()
def signout(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Sign out and forget the stored session."""
    configure_logging(verbose)

    async def _signout() -> None:
        async with open_shell("signout") as shell:
            await shell.sign_out()
            exit_on_error(shell)

    run_async(_signout())


@app.command("oauth-url")
def oauth_url() -> None:
    """Print the URL that starts Google sign-in in a browser."""

    async def _oauth() -> None:
        async with open_shell("oauth-url") as shell:
            url = await shell.auth_form("signin").google_url()
            exit_on_error(shell)
            console.print(url)

    run_async(_oauth())


@app.command()
def resend(
    email: Optional[str] = typer.Argument(None, help="Address awaiting verification"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Resend the sign-up verification email."""
    configure_logging(verbose)

    async def _resend() -> None:
        async with open_shell("resend") as shell:
            form = shell.auth_form("signin")
            form.user_email = email or ""
            await form.resend()
            exit_on_error(shell)

    run_async(_resend())


@app.command()
def whoami() -> None:
    """Show the signed-in user and their profile."""

    async def _whoami() -> None:
        async with open_shell("whoami") as shell:
            user = require_user(shell)

            table = Table(title="Signed In", show_header=False)
            table.add_column("Field", style="cyan")
            table.add_column("Value", style="green")
            table.add_row("User ID", user.id)
            table.add_row("Email", user.email or "N/A")
            if shell.profile is not None:
                badges = shell.role_badges() or ("", "")
                table.add_row("Username", shell.profile.username or "N/A")
                table.add_row("Role", badges[0])
                table.add_row("Status", badges[1])
            console.print(table)

    run_async(_whoami())


# =============================================================================
# Feed Commands
# =============================================================================


@app.command()
def feed(
    post_filter: PostFilter = typer.Option(PostFilter.DONATION, "--filter", "-f"),
    sort: PostSort = typer.Option(PostSort.CREATED_AT, "--sort", "-s"),
    search: str = typer.Option("", "--search", "-q", help="Search content, titles and usernames"),
    limit: int = typer.Option(20, "--limit", "-n", min=1),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """List feed posts. Signed-out visitors see demo posts."""
    configure_logging(verbose)

    async def _feed() -> None:
        async with open_shell("feed") as shell:
            shell.search_query = search
            view = shell.feed_view()
            view.post_filter, view.sort = post_filter, sort
            await view.fetch_posts()
            exit_on_error(shell)

            posts = view.visible_posts()[:limit]
            if posts:
                console.print(posts_table(posts, title=f"Feed ({post_filter})"))
            else:
                console.print("📭 No posts match.")

            if shell.user is None:
                console.print("\n[dim]Sign up or log in to interact with posts.[/dim]")
                stats = ", ".join(f"{k}: {v}" for k, v in COMMUNITY_STATS.items())
                console.print(f"[dim]{stats}[/dim]")
                topics = "  ".join(f"{name} ({n})" for name, n in TRENDING_TOPICS)
                console.print(f"[dim]Trending: {topics}[/dim]")

    run_async(_feed())


@app.command()
def post(
    post_type: PostType = typer.Option(PostType.WISDOM, "--type", "-t"),
    content: str = typer.Option("", "--content", "-c"),
    title: str = typer.Option("", "--title", help="Resource title (donation/seeking)"),
    category: str = typer.Option("", "--category", help="books, electronics, courses or other"),
    contact: str = typer.Option("", "--contact", help="Contact info (donation)"),
    image: Optional[Path] = typer.Option(None, "--image", exists=True, dir_okay=False),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Share wisdom, donate a resource or request one."""
    configure_logging(verbose)

    if post_type == PostType.WISDOM and not content.strip():
        console.print("❌ [bold red]Wisdom posts need --content[/bold red]")
        raise typer.Exit(code=1)

    async def _post() -> None:
        async with open_shell("post") as shell:
            require_user(shell)
            view = shell.feed_view()
            view.set_composer_type(post_type)
            view.content = content
            view.resource_title = title
            view.resource_category = category
            view.resource_contact = contact
            if image is not None:
                view.image = PostImage(filename=image.name, content=image.read_bytes())
            if post_type == PostType.WISDOM:
                await view.refresh_link_preview()

            created = await view.submit_post()
            exit_on_error(shell)
            if created is not None:
                console.print(posts_table([created], title="New Post"))

    run_async(_post())


@app.command()
def like(
    post_id: str = typer.Argument(..., help="Post to like or unlike"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Like a post, or remove your like."""
    configure_logging(verbose)

    async def _like() -> None:
        async with open_shell("like") as shell:
            view = shell.feed_view()
            await view.fetch_posts()
            target = _find_post(view.posts, post_id)
            if await view.toggle_like(target):
                updated = _find_post(view.posts, post_id)
                state = "♥ Liked" if updated.is_liked_by(shell.user.id if shell.user else None) else "Unliked"
                console.print(f"{state} ({updated.like_count} likes)")
            exit_on_error(shell)

    run_async(_like())


@app.command()
def comment(
    post_id: str = typer.Argument(..., help="Post to comment on"),
    text: str = typer.Argument(..., help="Comment text"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Comment on a post."""
    configure_logging(verbose)

    async def _comment() -> None:
        async with open_shell("comment") as shell:
            require_user(shell)
            view = shell.feed_view()
            await view.fetch_posts()
            section = shell.comment_section(_find_post(view.posts, post_id))
            section.new_comment = text
            await section.add_comment()
            exit_on_error(shell)

    run_async(_comment())


# =============================================================================
# Messaging Commands
# =============================================================================


@app.command()
def messages(
    recipient: Optional[str] = typer.Option(None, "--with", "-w", help="Show the thread with a user"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """List conversations, or one conversation's messages."""
    configure_logging(verbose)

    async def _messages() -> None:
        async with open_shell("messages") as shell:
            user = require_user(shell)
            view = shell.messages_view()
            await view.open(recipient)
            exit_on_error(shell)

            if view.selected is None:
                table = Table(title="Conversations")
                table.add_column("User ID", style="dim")
                table.add_column("Username", style="magenta")
                for profile in view.conversations:
                    table.add_row(profile.id, profile.username or "?")
                console.print(table)
                return

            console.print(f"💬 [bold]{view.selected.username or view.selected.id}[/bold]\n")
            for message in view.messages:
                mine = message.sender_id == user.id
                who = "[cyan]You[/cyan]" if mine else f"[magenta]{view.selected.username}[/magenta]"
                console.print(f"{who} [dim]{time_ago(message.created_at)}[/dim]\n  {message.content}")

    run_async(_messages())


@app.command()
def send(
    recipient: str = typer.Argument(..., help="Recipient user ID"),
    text: str = typer.Argument(..., help="Message text"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Send a direct message."""
    configure_logging(verbose)

    async def _send() -> None:
        async with open_shell("send") as shell:
            require_user(shell)
            view = shell.messages_view()
            await view.open(recipient)
            view.new_message = text
            if await view.send_message():
                console.print("📨 [green]Message sent[/green]")
            exit_on_error(shell)

    run_async(_send())


@app.command()
def listen(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Print incoming messages as they arrive (Ctrl-C to stop)."""
    configure_logging(verbose)

    async def _listen() -> None:
        async with open_shell("listen") as shell:
            require_user(shell)
            client = shell.client
            view = shell.messages_view()
            await view.fetch_conversations()

            def factory(user_id: str) -> RealtimeChannel:
                channel = RealtimeChannel(client, user_id)
                channel.on_insert(
                    lambda row: console.print(f"📩 [magenta]{row.get('sender_id')}[/magenta]: {row.get('content')}")
                )
                return channel

            channel = await view.subscribe(factory)
            console.print("👂 Listening for messages... (Ctrl-C to stop)")
            try:
                if isinstance(channel, RealtimeChannel):
                    await channel.wait_closed()
            finally:
                await view.unsubscribe()

    try:
        run_async(_listen())
    except KeyboardInterrupt:
        console.print("\n👋 Stopped listening")


# =============================================================================
# Notification Commands
# =============================================================================


@app.command()
def notifications(
    unread: bool = typer.Option(False, "--unread", "-u", help="Only unread notifications"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """List notifications, newest first."""
    configure_logging(verbose)

    async def _notifications() -> None:
        async with open_shell("notifications") as shell:
            require_user(shell)
            view = shell.notifications_view()
            await view.fetch_notifications()
            exit_on_error(shell)

            table = Table(title=f"Notifications ({view.unread_count} unread)")
            table.add_column("ID", style="dim")
            table.add_column("", justify="center")
            table.add_column("Notification")
            table.add_column("When", style="green")
            for n in view.notifications:
                if unread and n.is_read:
                    continue
                table.add_row(n.id, "" if n.is_read else "●", describe(n), time_ago(n.created_at))
            console.print(table)

    run_async(_notifications())


@app.command()
def read(
    notification_id: str = typer.Argument(..., help="Notification to mark as read"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Mark a notification as read."""
    configure_logging(verbose)

    async def _read() -> None:
        async with open_shell("read") as shell:
            require_user(shell)
            view = shell.notifications_view()
            if await view.mark_as_read(notification_id):
                console.print("✅ [green]Marked as read[/green]")
            exit_on_error(shell)

    run_async(_read())


# =============================================================================
# Wishlist & Verification Commands
# =============================================================================


@app.command()
def wishlist(
    add: Optional[str] = typer.Option(None, "--add", "-a", help="Describe an item to add"),
    category: str = typer.Option("", "--category", "-c", help="Category of the added item"),
    remove: Optional[str] = typer.Option(None, "--remove", "-r", help="Item ID to remove"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Show, add to or remove from your wishlist (students only)."""
    configure_logging(verbose)

    async def _wishlist() -> None:
        async with open_shell("wishlist") as shell:
            require_user(shell)
            view = shell.wishlist_view()
            if add is not None:
                view.description, view.category = add, category
                await view.add_item()
            elif remove is not None:
                await view.delete_item(remove)
            else:
                await view.fetch_items()
                table = Table(title="My Wishlist")
                table.add_column("ID", style="dim")
                table.add_column("Item")
                table.add_column("Category", style="cyan")
                table.add_column("Added", style="green")
                for item in view.items:
                    label = RESOURCE_CATEGORY_LABELS.get(item.category, item.category)  # type: ignore[call-overload]
                    table.add_row(item.id, item.item_description, label, time_ago(item.created_at))
                console.print(table)
            exit_on_error(shell)

    run_async(_wishlist())


@app.command()
def verify(
    document: Optional[Path] = typer.Argument(None, exists=True, dir_okay=False, help="Student ID image"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Show verification status, or upload a student ID for review."""
    configure_logging(verbose)

    async def _verify() -> None:
        async with open_shell("verify") as shell:
            require_user(shell)
            view = shell.verification_view()
            if document is None:
                heading, text = view.status_summary()
                console.print(f"🎓 [bold]{heading}[/bold]\n{text}")
                return
            view.file = VerificationFile(filename=document.name, content=document.read_bytes())
            await view.submit()
            exit_on_error(shell)

    run_async(_verify())


@app.command()
def config() -> None:
    """Show the active configuration."""
    table = Table(title="Configuration", show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="yellow")

    table.add_row("Environment", str(settings.environment))
    table.add_row("Backend URL", settings.supabase_url)
    table.add_row("Anon Key", settings.redact_key())
    table.add_row("Site URL", settings.site_url)
    table.add_row("Session File", str(settings.session_path))
    table.add_row("Persist Session", str(settings.persist_session))
    table.add_row("Post Images Bucket", settings.post_images_bucket)
    table.add_row("Verification Bucket", settings.verification_bucket)
    table.add_row("Request Timeout", f"{settings.request_timeout}s")
    table.add_row("Log Level", settings.log_level)
    console.print(table)


def main() -> None:
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
