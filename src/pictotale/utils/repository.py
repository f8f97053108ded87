"""
Story repository abstraction layer.

Provides a unified interface for story record storage, abstracting away the
difference between the SQLite document store and the in-memory store used
by tests and local runs. Partial updates are merged recursively into the
stored document; the last write wins.
"""

import copy
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..models import StoryRecord, utc_now
from .errors import NotFoundError, PersistenceError

logger = logging.getLogger(__name__)


def deep_merge(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge ``updates`` into a copy of ``base``.

    Nested mappings are merged key by key; every other value (lists
    included) replaces the stored value.
    """
    merged = copy.deepcopy(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _apply_update(document: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """Merge, stamp ``updated_at`` and normalize through the record model."""
    if "id" in updates and updates["id"] != document["id"]:
        raise ValueError("Story id is immutable")
    merged = deep_merge(document, updates)
    merged["updated_at"] = utc_now()
    return StoryRecord.from_dict(merged).to_dict()


class StoryRepository(ABC):
    """
    Abstract interface for story record storage.

    Implementations raise ``PersistenceError`` when the backing store fails
    and ``NotFoundError`` when updating a record that does not exist.
    """

    @abstractmethod
    def create(self, record: StoryRecord) -> StoryRecord:
        """
        Persist a new story record.

        Args:
            record: Record to store

        Returns:
            The stored record
        """
        pass

    @abstractmethod
    def update(self, story_id: str, updates: Dict[str, Any]) -> StoryRecord:
        """
        Merge a partial update into a stored record.

        Args:
            story_id: ID of the story to update
            updates: Partial document; nested mappings are merged

        Returns:
            The record after the update
        """
        pass

    @abstractmethod
    def get_by_id(self, story_id: str) -> Optional[StoryRecord]:
        """
        Load a story record.

        Args:
            story_id: Unique identifier for the story

        Returns:
            StoryRecord if found, None otherwise
        """
        pass

    @abstractmethod
    def list_by_user(
        self,
        user_id: str,
        status: Optional[str] = None,
        story_type_id: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> List[StoryRecord]:
        """
        List a user's stories, newest first.

        Args:
            user_id: Owner of the stories
            status: Optional status filter
            story_type_id: Optional story type filter
            limit: Page size
            offset: Number of records to skip

        Returns:
            The matching records, ordered by ``created_at`` descending
        """
        pass

    @abstractmethod
    def delete(self, story_id: str) -> None:
        """
        Remove a story record.

        Raises:
            NotFoundError: If the story does not exist
        """
        pass

    def require(self, story_id: str) -> StoryRecord:
        """Load a story record or raise NotFoundError."""
        record = self.get_by_id(story_id)
        if record is None:
            raise NotFoundError("Story", story_id)
        return record


class DatabaseStoryRepository(StoryRepository):
    """
    Database-backed story repository.

    Wraps StoryStorage to provide the repository interface. Uses SQLite for
    persistence with optional Redis caching.
    """

    def __init__(self, db_path: str, use_cache: bool = False, redis_url: str = "redis://localhost:6379/0"):
        """
        Initialize database repository.

        Args:
            db_path: SQLite database file path
            use_cache: Whether to use Redis caching (default: False)
            redis_url: Redis URL for the cache
        """
        from .db_storage import StoryStorage

        try:
            self._storage = StoryStorage(db_path, use_cache=use_cache, redis_url=redis_url)
        except sqlite3.Error as e:
            raise PersistenceError("init", str(e)) from e

    def create(self, record: StoryRecord) -> StoryRecord:
        try:
            self._storage.insert_document(record.to_dict())
        except sqlite3.IntegrityError as e:
            raise PersistenceError("create", f"story {record.id} already exists") from e
        except sqlite3.Error as e:
            logger.error(f"Error creating story {record.id}: {e}", exc_info=True)
            raise PersistenceError("create", str(e)) from e
        return record

    def update(self, story_id: str, updates: Dict[str, Any]) -> StoryRecord:
        try:
            document = self._storage.modify_document(
                story_id, lambda stored: _apply_update(stored, updates)
            )
        except (ValueError, PydanticValidationError) as e:
            raise PersistenceError("update", f"invalid update for story {story_id}: {e}") from e
        except sqlite3.Error as e:
            logger.error(f"Error updating story {story_id}: {e}", exc_info=True)
            raise PersistenceError("update", str(e)) from e

        if document is None:
            raise NotFoundError("Story", story_id)
        return StoryRecord.from_dict(document)

    def get_by_id(self, story_id: str) -> Optional[StoryRecord]:
        try:
            document = self._storage.load_document(story_id)
        except sqlite3.Error as e:
            logger.error(f"Error loading story {story_id}: {e}", exc_info=True)
            raise PersistenceError("read", str(e)) from e
        return StoryRecord.from_dict(document) if document is not None else None

    def list_by_user(
        self,
        user_id: str,
        status: Optional[str] = None,
        story_type_id: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> List[StoryRecord]:
        try:
            documents = self._storage.list_documents_by_user(
                user_id, status=status, story_type_id=story_type_id, limit=limit, offset=offset
            )
        except sqlite3.Error as e:
            logger.error(f"Error listing stories for user {user_id}: {e}", exc_info=True)
            raise PersistenceError("list", str(e)) from e
        return [StoryRecord.from_dict(document) for document in documents]

    def delete(self, story_id: str) -> None:
        try:
            deleted = self._storage.delete_document(story_id)
        except sqlite3.Error as e:
            logger.error(f"Error deleting story {story_id}: {e}", exc_info=True)
            raise PersistenceError("delete", str(e)) from e
        if not deleted:
            raise NotFoundError("Story", story_id)

    def count(self, status: Optional[str] = None) -> int:
        try:
            return self._storage.count_documents(status)
        except sqlite3.Error as e:
            raise PersistenceError("count", str(e)) from e


class InMemoryStoryRepository(StoryRepository):
    """
    Dictionary-backed story repository.

    Thread-safe; intended for tests and single-process local runs.
    """

    def __init__(self):
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def create(self, record: StoryRecord) -> StoryRecord:
        with self._lock:
            if record.id in self._documents:
                raise PersistenceError("create", f"story {record.id} already exists")
            self._documents[record.id] = record.to_dict()
        return record

    def update(self, story_id: str, updates: Dict[str, Any]) -> StoryRecord:
        with self._lock:
            stored = self._documents.get(story_id)
            if stored is None:
                raise NotFoundError("Story", story_id)
            try:
                document = _apply_update(stored, updates)
            except (ValueError, PydanticValidationError) as e:
                raise PersistenceError("update", f"invalid update for story {story_id}: {e}") from e
            self._documents[story_id] = document
        return StoryRecord.from_dict(document)

    def get_by_id(self, story_id: str) -> Optional[StoryRecord]:
        with self._lock:
            document = self._documents.get(story_id)
            document = copy.deepcopy(document) if document is not None else None
        return StoryRecord.from_dict(document) if document is not None else None

    def list_by_user(
        self,
        user_id: str,
        status: Optional[str] = None,
        story_type_id: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> List[StoryRecord]:
        with self._lock:
            matches = [
                copy.deepcopy(doc) for doc in self._documents.values()
                if doc.get("user_id") == user_id
                and (not status or doc.get("status") == status)
                and (not story_type_id or doc.get("story_type_id") == story_type_id)
            ]
        matches.sort(key=lambda doc: (doc.get("created_at") or "", doc["id"]), reverse=True)
        return [StoryRecord.from_dict(doc) for doc in matches[offset:offset + limit]]

    def delete(self, story_id: str) -> None:
        with self._lock:
            if self._documents.pop(story_id, None) is None:
                raise NotFoundError("Story", story_id)

    def count(self, status: Optional[str] = None) -> int:
        with self._lock:
            if status is None:
                return len(self._documents)
            return sum(1 for doc in self._documents.values() if doc.get("status") == status)


def create_story_repository(settings) -> StoryRepository:
    """
    Create a story repository from settings.

    Args:
        settings: Settings instance (uses ``story_store``, ``db_path``,
            ``use_redis_cache`` and ``redis_url``)

    Returns:
        StoryRepository instance
    """
    if settings.story_store == "memory":
        logger.info("Using in-memory story repository")
        return InMemoryStoryRepository()

    logger.info(f"Using database story repository at {settings.db_path}")
    return DatabaseStoryRepository(
        settings.db_path,
        use_cache=settings.use_redis_cache,
        redis_url=settings.redis_url,
    )
