"""Persisted auth session storage.

The CLI runs one command per process, so the signed-in session is written to
``settings.session_path`` after sign-in and read back on the next invocation.
The file holds the raw session JSON and is readable by the owner only.
"""

import json
import os
from pathlib import Path

from pydantic import ValidationError

from edubridge.config import settings
from edubridge.logging import logger
from edubridge.models import AuthSession


class SessionStore:
    """Load, save and clear an :class:`AuthSession` on disk.

    Args:
        path: Session file (defaults to settings.session_path)
        enabled: When False nothing is read or written
    """

    def __init__(self, path: Path | None = None, enabled: bool | None = None) -> None:
        self.path = path or settings.session_path
        self.enabled = settings.persist_session if enabled is None else enabled

    def load(self) -> AuthSession | None:
        """Read the stored session. A missing or corrupt file yields None."""
        if not self.enabled or not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return AuthSession.model_validate(data)
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning(f"Ignoring unreadable session file {self.path}: {exc}")
            return None

    def save(self, session: AuthSession) -> None:
        """Write ``session`` to disk."""
        if not self.enabled:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        # a pre-existing file keeps its old mode unless tightened here
        os.fchmod(fd, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(session.model_dump_json())
        logger.debug(f"Session saved to {self.path}")

    def clear(self) -> None:
        """Remove the stored session, if any."""
        if self.enabled and self.path.exists():
            self.path.unlink()
            logger.debug(f"Session removed from {self.path}")


__all__ = ["SessionStore"]
