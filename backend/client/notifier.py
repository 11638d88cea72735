"""
User-facing notifications (the client's toast messages)
"""
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    level: str
    title: str
    description: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)


class Notifier:
    """
    Collects notifications and hands them to listeners (a UI layer, a CLI
    printer, a test). The most recent ones are kept in history.
    """

    def __init__(self, max_history: int = 100):
        self.history = deque(maxlen=max_history)
        self._listeners: List[Callable[[Notification], None]] = []

    def subscribe(self, listener: Callable[[Notification], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, level: str, title: str, description: Optional[str] = None) -> Notification:
        notification = Notification(level=level, title=title, description=description)
        self.history.append(notification)

        log = logger.warning if level == "error" else logger.info
        log(f"[{level}] {title}" + (f": {description}" if description else ""))

        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception as e:
                logger.warning(f"Notification listener failed: {e}")
        return notification

    def success(self, title: str, description: Optional[str] = None) -> Notification:
        return self.notify("success", title, description)

    def error(self, title: str, description: Optional[str] = None) -> Notification:
        return self.notify("error", title, description)

    def info(self, title: str, description: Optional[str] = None) -> Notification:
        return self.notify("info", title, description)

    def errors(self) -> List[Notification]:
        return [n for n in self.history if n.level == "error"]
