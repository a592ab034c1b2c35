import logging
from dataclasses import dataclass
from typing import Callable, Literal, Optional


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notice:
    """A transient, non-blocking message for the user (a toast)."""

    kind: Literal["success", "error", "info"]
    title: str
    detail: Optional[str] = None


Notifier = Callable[[Notice], None]


def log_notice(notice: Notice) -> None:
    level = logging.WARNING if notice.kind == "error" else logging.INFO
    logger.log(level, "%s: %s", notice.title, notice.detail or "")
