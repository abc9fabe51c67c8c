"""Transient user-facing notices.

Views report outcomes through a :class:`Toaster` rather than raising: every
toast is kept in order for the front end to render and is also logged.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from edubridge.logging import logger


class ToastLevel(StrEnum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class Toast:
    level: ToastLevel
    message: str


class Toaster:
    """Collects toasts and forwards each to an optional listener.

    Args:
        listener: Called with every new toast (the CLI prints them)
    """

    def __init__(self, listener: Callable[[Toast], None] | None = None) -> None:
        self.toasts: list[Toast] = []
        self._listener = listener

    def _push(self, level: ToastLevel, message: str) -> None:
        toast = Toast(level, message)
        self.toasts.append(toast)
        if self._listener is not None:
            self._listener(toast)

    def success(self, message: str) -> None:
        logger.info(f"✅ {message}")
        self._push(ToastLevel.SUCCESS, message)

    def error(self, message: str) -> None:
        logger.warning(f"❌ {message}")
        self._push(ToastLevel.ERROR, message)

    def info(self, message: str) -> None:
        logger.info(message)
        self._push(ToastLevel.INFO, message)

    @property
    def last(self) -> Toast | None:
        return self.toasts[-1] if self.toasts else None

    def messages(self, level: ToastLevel | None = None) -> list[str]:
        """Messages shown so far, optionally only those of ``level``."""
        return [t.message for t in self.toasts if level is None or t.level == level]

    def clear(self) -> None:
        self.toasts.clear()


__all__ = ["Toast", "ToastLevel", "Toaster"]
