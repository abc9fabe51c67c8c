"""Student verification: upload a student ID for review."""

import mimetypes
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from edubridge.api import BackendError
from edubridge.config import settings
from edubridge.interfaces import IBackendClient
from edubridge.logging import logger
from edubridge.models import AuthUser, Profile, VerificationStatus
from edubridge.toasts import Toaster
from edubridge.utils import storage_object_path

ProfileRefresh = Callable[[str], Awaitable[object] | None]

STATUS_SUMMARIES: dict[VerificationStatus, tuple[str, str]] = {
    VerificationStatus.VERIFIED: (
        "You are Verified!",
        "You have full access to all platform features.",
    ),
    VerificationStatus.PENDING: (
        "Verification Pending",
        "Your document has been submitted and is currently under review. "
        "This usually takes 24-48 hours.",
    ),
    VerificationStatus.UNVERIFIED: (
        "Verify Your Student Status",
        "Please upload a valid student ID to get access to all features, "
        "including claiming resources.",
    ),
}


@dataclass
class VerificationFile:
    filename: str
    content: bytes
    content_type: str | None = None


class VerificationView:
    """Upload of a verification document by the signed-in user.

    Args:
        client: Backend client
        toaster: Where outcome messages go
        user: Signed-in user
        profile: Their profile
        on_verification_update: Called with the user id after a successful
            upload so the caller can reload the profile
    """

    ACCESS_DENIED = "You must be logged in to view this page."

    def __init__(
        self,
        client: IBackendClient,
        toaster: Toaster,
        user: AuthUser | None,
        profile: Profile | None,
        on_verification_update: ProfileRefresh | None = None,
    ) -> None:
        self.client = client
        self.toaster = toaster
        self.user = user
        self.profile = profile
        self.on_verification_update = on_verification_update
        self.file: VerificationFile | None = None
        self.uploading = False

    @property
    def can_access(self) -> bool:
        return self.user is not None and self.profile is not None

    def status_summary(self) -> tuple[str, str]:
        """Heading and explanation for the profile's verification status."""
        if self.profile is None:
            return ("Access Denied", self.ACCESS_DENIED)
        return STATUS_SUMMARIES[self.profile.verification_status]

    async def submit(self) -> bool:
        """Upload the selected file and mark the profile as pending review."""
        if self.file is None:
            self.toaster.error("Please select a file to upload.")
            return False
        if self.user is None:
            return False

        bucket = settings.verification_bucket
        path = storage_object_path(self.user.id, self.file.filename)
        content_type = self.file.content_type or mimetypes.guess_type(self.file.filename)[0]

        self.uploading = True
        try:
            await self.client.upload(bucket, path, self.file.content, content_type=content_type)
            await self.client.update(
                "profiles",
                {"verification_status": str(VerificationStatus.PENDING)},
                {"id": self.user.id},
                returning=None,
            )
        except BackendError as exc:
            logger.error(f"Verification upload failed: {exc.message}")
            self.toaster.error(exc.message or "Failed to upload verification document.")
            return False
        finally:
            self.uploading = False

        logger.info(f"📄 Verification document stored at {bucket}/{path}")
        self.toaster.success(
            "Verification document uploaded! Your request is now pending review."
        )
        if self.on_verification_update is not None:
            result = self.on_verification_update(self.user.id)
            if result is not None:
                await result
        self.file = None
        return True


__all__ = ["STATUS_SUMMARIES", "VerificationFile", "VerificationView"]
