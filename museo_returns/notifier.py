import logging
from collections import deque
from typing import Callable, Literal

from pydantic import BaseModel

logger = logging.getLogger(__name__)

Level = Literal["info", "success", "error"]

MAX_NOTICES = 200


class Notice(BaseModel):
    level: Level
    message: str
    source: str = ""


class Notifier:
    """
    Single error/notice dispatcher shared by every returns view, so failures
    surface the same way wherever they happen.
    """

    def __init__(self, max_notices: int = MAX_NOTICES):
        # oldest notices drop off once the cap is reached
        self.notices: deque[Notice] = deque(maxlen=max_notices)
        self._subscribers: list[Callable[[Notice], None]] = []

    def subscribe(self, callback: Callable[[Notice], None]):
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def notify(self, level: Level, message: str, source: str = "") -> Notice:
        notice = Notice(level=level, message=message, source=source)
        self.notices.append(notice)

        if level == "error":
            logger.warning("[%s] %s", source or "returns", message)
        else:
            logger.info("[%s] %s", source or "returns", message)

        for callback in list(self._subscribers):
            callback(notice)
        return notice

    def error(self, message: str, source: str = "") -> Notice:
        return self.notify("error", message, source)

    def info(self, message: str, source: str = "") -> Notice:
        return self.notify("info", message, source)

    def success(self, message: str, source: str = "") -> Notice:
        return self.notify("success", message, source)

    @property
    def last_error(self):
        for notice in reversed(self.notices):
            if notice.level == "error":
                return notice
        return None
