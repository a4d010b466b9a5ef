"""
Transient user notifications (toasts).
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, List
import time

from app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Toast:
    title: str
    description: str = ""
    variant: str = "default"  # "default" | "destructive"
    created_at: float = field(default_factory=time.monotonic)


class Notifier:
    """Keeps the most recent toasts and fans each one out to subscribers."""

    def __init__(self, max_toasts: int = 20):
        self.toasts: Deque[Toast] = deque(maxlen=max_toasts)
        self._listeners: List[Callable[[Toast], None]] = []

    def subscribe(self, listener: Callable[[Toast], None]) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def notify(self, title: str, description: str = "", variant: str = "default") -> Toast:
        toast = Toast(title=title, description=description, variant=variant)
        self.toasts.append(toast)
        if variant == "destructive":
            logger.warning(f"[Notifier] {title}: {description}")
        else:
            logger.info(f"[Notifier] {title}: {description}")
        for listener in list(self._listeners):
            listener(toast)
        return toast

    def success(self, title: str, description: str = "") -> Toast:
        return self.notify(title, description)

    def error(self, title: str, description: str = "") -> Toast:
        return self.notify(title, description, variant="destructive")

    @property
    def errors(self) -> List[Toast]:
        return [t for t in self.toasts if t.variant == "destructive"]

    def dismiss_all(self) -> None:
        self.toasts.clear()
