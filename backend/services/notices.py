"""
notices.py — Transient user-visible notices.
Operation boundaries turn failures into notices here instead of raising into
the view; AccessDenied / NotFound also request a redirect to the chat list.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Literal

from errors import ChatError

logger = logging.getLogger(__name__)


@dataclass
class Notice:
    level: Literal["info", "success", "error"]
    message: str
    redirect_to: str | None = None


@dataclass
class NoticeBoard:
    notices: list[Notice] = field(default_factory=list)
    listeners: list[Callable[[Notice], None]] = field(default_factory=list)

    def push(self, notice: Notice):
        self.notices.append(notice)
        for listener in list(self.listeners):
            listener(notice)

    def success(self, message: str):
        self.push(Notice("success", message))

    def report(self, exc: Exception, fallback: str = "Something went wrong") -> Notice:
        """Convert an exception caught at an operation boundary into a notice."""
        if isinstance(exc, ChatError):
            notice = Notice("error", exc.message, exc.redirect_to)
        else:
            logger.error(f"Unexpected error: {exc}")
            notice = Notice("error", fallback)
        self.push(notice)
        return notice

    def clear(self):
        self.notices.clear()
