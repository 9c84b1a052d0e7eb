"""Latest-wins delivery of robot descriptions.

A DescriptionFeed stands in for the robot_description topic: producers
publish documents from any thread, and consumers receive them when the feed
is spun in their own thread. At most one document is outstanding; publishing
again before a spin replaces it. The last delivered document is kept and
replayed to subscribers that join later.
"""

import logging
import threading
from pathlib import Path
from typing import Callable, List, Optional, Union

logger = logging.getLogger(__name__)

Callback = Callable[[str], None]


class DescriptionFeed:
    """Single-slot mailbox for robot description documents."""

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Optional[str] = None
        self._latest: Optional[str] = None
        self._subscribers: List[Callback] = []
        self._needs_replay: List[Callback] = []

    def publish(self, description: str) -> None:
        """Queue ``description`` for delivery, replacing any undelivered one."""
        with self._lock:
            if self._pending is not None:
                logger.debug("Dropping undelivered robot description in favour of a newer one.")
            self._pending = description

    def publish_file(self, path: Union[str, Path]) -> None:
        self.publish(Path(path).read_text(encoding='utf-8'))

    def subscribe(self, callback: Callback) -> None:
        """Register ``callback``; it receives the last delivered document on the next spin."""
        with self._lock:
            self._subscribers.append(callback)
            if self._latest is not None:
                self._needs_replay.append(callback)

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return self._pending is not None or bool(self._needs_replay)

    def spin_some(self) -> bool:
        """Deliver pending work in the calling thread.

        Returns:
            True if any callback was invoked.
        """
        with self._lock:
            description, self._pending = self._pending, None
            replay, self._needs_replay = self._needs_replay, []
            if description is not None:
                self._latest = description
                targets = list(self._subscribers)
            else:
                description = self._latest
                targets = replay

        if description is None or not targets:
            return False
        for callback in targets:
            callback(description)
        return True
