"""
User-facing transient notices.

The session and the orchestrators report outcomes here instead of raising;
frontends (the CLI, a UI) subscribe and render them.
"""

import logging
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class NoticeLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notice(BaseModel):
    level: NoticeLevel
    text: str
    code: Optional[str] = None
    retryable: bool = False


NoticeHandler = Callable[[Notice], None]


class Notifier:
    def __init__(self) -> None:
        self._handlers: list[NoticeHandler] = []

    def add_handler(self, handler: NoticeHandler) -> Callable[[], None]:
        """Add a notice handler. Returns a cleanup function."""
        self._handlers.append(handler)
        def remove() -> None:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass
        return remove

    def notify(self, notice: Notice) -> None:
        for handler in list(self._handlers):
            try:
                handler(notice)
            except Exception:
                logger.exception("Notice handler failed")

    def info(self, text: str, code: Optional[str] = None) -> None:
        self.notify(Notice(level=NoticeLevel.INFO, text=text, code=code))

    def warning(self, text: str, code: Optional[str] = None, retryable: bool = False) -> None:
        self.notify(Notice(level=NoticeLevel.WARNING, text=text, code=code, retryable=retryable))

    def error(self, text: str, code: Optional[str] = None, retryable: bool = False) -> None:
        self.notify(Notice(level=NoticeLevel.ERROR, text=text, code=code, retryable=retryable))
