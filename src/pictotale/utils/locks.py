"""
Per-story run registry.

Rejects a second in-process run on a story id while one is in flight. It
does not coordinate across RQ worker processes; the status preconditions
checked by the orchestrator and the continuation engine cover that case
on a best-effort basis.
"""

import logging
import threading
from contextlib import contextmanager

from .errors import InvalidStateError

logger = logging.getLogger(__name__)


class StoryLockRegistry:
    """Tracks which story ids have a run in progress."""

    def __init__(self):
        self._active = set()
        self._guard = threading.Lock()

    def acquire(self, story_id: str) -> bool:
        with self._guard:
            if story_id in self._active:
                return False
            self._active.add(story_id)
            return True

    def release(self, story_id: str) -> None:
        with self._guard:
            self._active.discard(story_id)

    def is_held(self, story_id: str) -> bool:
        with self._guard:
            return story_id in self._active

    @contextmanager
    def hold(self, story_id: str):
        """
        Hold the run slot for ``story_id`` for the duration of the block.

        Raises:
            InvalidStateError: If another run on the same story is active
        """
        if not self.acquire(story_id):
            logger.warning(f"Rejected concurrent run for story {story_id}")
            raise InvalidStateError(
                story_id, "running", f"Story '{story_id}' already has a run in progress."
            )
        try:
            yield
        finally:
            self.release(story_id)
