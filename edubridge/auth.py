"""Authentication service and the sign-up / sign-in form.

:class:`AuthService` performs single auth calls against the backend and logs
them; :class:`AuthForm` holds the state of the sign-up / sign-in dialog and
turns backend errors into friendly messages.

Example:
    >>> service = AuthService(client)
    >>> form = AuthForm(service, toaster)
    >>> form.email, form.password = "ada@example.com", "s3cret!"
    >>> await form.submit()
"""

from collections.abc import Callable
from typing import Literal

from edubridge.api import BackendError
from edubridge.config import settings
from edubridge.interfaces import IBackendClient
from edubridge.logging import clear_request_context, logger, set_request_context
from edubridge.models import AuthResponse, AuthUser, Profile, Role
from edubridge.toasts import Toaster

AuthMode = Literal["signup", "signin"]

INVALID_CREDENTIALS = "Invalid email or password."
EMAIL_NOT_CONFIRMED = "Please verify your email before signing in."
ALREADY_REGISTERED = "An account with this email already exists. Try signing in."


def translate_auth_error(message: str | None) -> str:
    """Map a backend auth error message to the text shown to the user."""
    if not message:
        return "Authentication failed"
    if "Invalid login credentials" in message:
        return INVALID_CREDENTIALS
    if "Email not confirmed" in message:
        return EMAIL_NOT_CONFIRMED
    if "User already registered" in message:
        return ALREADY_REGISTERED
    return message


class AuthService:
    """Thin wrapper over the backend auth API.

    Args:
        client: Backend client
        site_url: Public web URL used in email and OAuth redirects
    """

    def __init__(self, client: IBackendClient, site_url: str | None = None) -> None:
        self.client = client
        self.site_url = (site_url or settings.site_url).rstrip("/")

    @property
    def verified_redirect(self) -> str:
        return f"{self.site_url}/?verified=true"

    async def sign_up(
        self,
        email: str,
        password: str,
        role: Role | str = Role.STUDENT,
        username: str | None = None,
    ) -> AuthResponse:
        """Create an account with ``{username, role}`` profile metadata.

        The username defaults to the part of the email before ``@``.
        """
        logger.info(f"🚀 Starting signup for {email}")
        metadata = {
            "username": username or email.split("@", 1)[0],
            "role": str(Role(role)),
        }
        result = await self.client.sign_up(
            email, password, metadata=metadata, redirect_to=self.verified_redirect
        )
        logger.info("✅ Signup successful")
        return result

    async def sign_in_with_password(self, email: str, password: str) -> AuthResponse:
        logger.info(f"🔑 Signing in {email}")
        result = await self.client.sign_in_with_password(email, password)
        if result.user is not None:
            set_request_context(user_id=result.user.id)
        logger.info("✅ SignIn successful")
        return result

    async def sign_in_with_google(self) -> str:
        """URL that starts Google sign-in and returns to the feed."""
        return await self.client.oauth_url("google", redirect_to=f"{self.site_url}/?page=feed")

    async def sign_out(self) -> None:
        await self.client.sign_out()
        clear_request_context()
        logger.info("✅ SignOut successful")

    async def get_current_user(self) -> AuthUser | None:
        """Signed-in user, or None when signed out or on error."""
        if self.client.session is None:
            return None
        try:
            return await self.client.get_user()
        except BackendError as exc:
            logger.error(f"GetCurrentUser error: {exc.message}")
            return None

    async def get_user_profile(self, user_id: str) -> Profile | None:
        """Profile row for ``user_id``; None when missing or on error."""
        logger.debug(f"🔍 Fetching profile for {user_id}")
        try:
            row = await self.client.select("profiles", filters={"id": user_id}, maybe_single=True)
        except BackendError as exc:
            logger.error(f"Profile fetch error: {exc.message}")
            return None

        if row is None:
            logger.info(f"📝 No profile found for user {user_id}")
            return None
        return Profile.model_validate(row)

    async def resend_verification_email(self, email: str | None = None) -> None:
        """Resend the sign-up confirmation email.

        Raises:
            ValueError: When no email is given and none is known for the session
            BackendError: When the backend rejects the request
        """
        if not email:
            user = await self.get_current_user()
            email = user.email if user else None
        if not email:
            raise ValueError("No user found or email missing")
        await self.client.resend_signup(email, redirect_to=self.verified_redirect)
        logger.info("✅ Verification email resent")


class AuthForm:
    """State of the sign-up / sign-in dialog.

    Args:
        service: Auth service
        toaster: Where outcome messages go
        initial_mode: Mode the form starts (and resets) in
        on_success: Called after a successful sign-in or confirmed sign-up
    """

    def __init__(
        self,
        service: AuthService,
        toaster: Toaster,
        initial_mode: AuthMode = "signup",
        on_success: Callable[[], None] | None = None,
    ) -> None:
        self.service = service
        self.toaster = toaster
        self.initial_mode: AuthMode = initial_mode
        self.on_success = on_success
        self.reset()

    def reset(self) -> None:
        self.mode: AuthMode = self.initial_mode
        self.email = ""
        self.password = ""
        self.role = Role.STUDENT
        self.loading = False
        self.show_email_verification = False
        self.user_email = ""

    @property
    def is_sign_up(self) -> bool:
        return self.mode == "signup"

    def toggle_mode(self) -> None:
        self.mode = "signin" if self.is_sign_up else "signup"

    def back_to_sign_in(self) -> None:
        """Leave the verification notice for the sign-in form."""
        self.show_email_verification = False
        self.mode = "signin"

    def _succeeded(self) -> None:
        if self.on_success is not None:
            self.on_success()

    async def submit(self) -> bool:
        """Sign up or sign in with the current fields.

        Returns:
            True when the call succeeded
        """
        if not self.email or not self.password:
            self.toaster.error("Please fill in all fields")
            return False

        if self.is_sign_up and len(self.password) < settings.min_password_length:
            self.toaster.error(
                f"Password must be at least {settings.min_password_length} characters"
            )
            return False

        self.loading = True
        try:
            if self.is_sign_up:
                result = await self.service.sign_up(self.email, self.password, self.role)
                if result.user is not None and not result.user.is_email_confirmed:
                    self.user_email = self.email
                    self.show_email_verification = True
                    self.toaster.success("Check your email for a verification link!")
                else:
                    self.toaster.success("Registration successful!")
                    self._succeeded()
            else:
                await self.service.sign_in_with_password(self.email, self.password)
                self.toaster.success("Welcome back!")
                self._succeeded()
            return True
        except BackendError as exc:
            message = translate_auth_error(exc.message)
            if message == EMAIL_NOT_CONFIRMED:
                self.user_email = self.email
                self.show_email_verification = True
            elif message == ALREADY_REGISTERED:
                self.mode = "signin"
            self.toaster.error(message)
            return False
        finally:
            self.loading = False

    async def resend(self) -> bool:
        """Resend the confirmation email to the address awaiting verification."""
        self.loading = True
        try:
            await self.service.resend_verification_email(self.user_email or self.email or None)
            self.toaster.success("Verification email sent! Please check your inbox.")
            return True
        except (BackendError, ValueError) as exc:
            logger.error(f"Resend verification error: {exc}")
            self.toaster.error("Failed to resend verification email.")
            return False
        finally:
            self.loading = False

    async def google_url(self) -> str | None:
        """OAuth URL for Google sign-in, or None after an error toast."""
        try:
            return await self.service.sign_in_with_google()
        except BackendError as exc:
            logger.error(f"Google sign-in error: {exc}")
            self.toaster.error(translate_auth_error(exc.message))
            return None


__all__ = [
    "AuthForm",
    "AuthService",
    "translate_auth_error",
]
