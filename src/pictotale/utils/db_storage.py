"""
Database-backed document storage for story records.

Stores each story as a JSON document in SQLite, with a few indexed columns
for lookups, and optionally caches documents in Redis.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import redis

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 3600


class StoryStorage:
    """
    SQLite document table with optional Redis read-through cache.

    Errors from SQLite propagate to the caller; cache failures are logged
    and ignored since the database stays authoritative.
    """

    def __init__(
        self,
        db_path: str,
        use_cache: bool = False,
        redis_url: str = "redis://localhost:6379/0",
        cache_ttl: int = DEFAULT_CACHE_TTL,
    ):
        """
        Initialize story storage.

        Args:
            db_path: SQLite database file path (":memory:" is not supported
                since every operation opens its own connection)
            use_cache: Whether to use Redis caching (default: False)
            redis_url: Redis connection URL for the cache
            cache_ttl: Cache time-to-live in seconds (default: 3600)
        """
        self.db_path = Path(db_path)
        self.use_cache = use_cache
        self.cache_ttl = cache_ttl
        self._cache = None

        if use_cache:
            try:
                self._cache = redis.from_url(redis_url, decode_responses=True)
                self._cache.ping()
                logger.info("Redis cache enabled")
            except redis.RedisError as e:
                logger.warning(f"Failed to connect to Redis: {e}, caching disabled")
                self._cache = None
                self.use_cache = False

        self.init_database()

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path), timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def transaction(self, immediate: bool = False):
        """Context manager for database transactions."""
        conn = self._connect()
        try:
            if immediate:
                # Take the write lock up front so read-modify-write is atomic
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_database(self):
        """Initialize the database schema."""
        with self.transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS stories (
                    id TEXT PRIMARY KEY,
                    status TEXT NOT NULL,
                    user_id TEXT,
                    story_type_id TEXT,
                    document TEXT NOT NULL,
                    created_at TEXT,
                    updated_at TEXT
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_stories_user_id
                ON stories(user_id)
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_stories_status
                ON stories(status)
            """)

    def _get_cache_key(self, story_id: str) -> str:
        """Get cache key for a story."""
        return f"story:{story_id}"

    def _cache_set(self, document: Dict[str, Any]):
        if not (self.use_cache and self._cache):
            return
        try:
            self._cache.setex(
                self._get_cache_key(document["id"]),
                self.cache_ttl,
                json.dumps(document),
            )
        except redis.RedisError as e:
            logger.warning(f"Failed to update cache for story {document.get('id')}: {e}")

    def _cache_get(self, story_id: str) -> Optional[Dict[str, Any]]:
        if not (self.use_cache and self._cache):
            return None
        try:
            cached = self._cache.get(self._get_cache_key(story_id))
        except redis.RedisError as e:
            logger.warning(f"Cache lookup failed for story {story_id}: {e}")
            return None
        return json.loads(cached) if cached else None

    def _cache_delete(self, story_id: str):
        if not (self.use_cache and self._cache):
            return
        try:
            self._cache.delete(self._get_cache_key(story_id))
        except redis.RedisError as e:
            logger.warning(f"Failed to invalidate cache for story {story_id}: {e}")

    def _row_values(self, document: Dict[str, Any]):
        return (
            document.get("status"),
            document.get("user_id"),
            document.get("story_type_id"),
            json.dumps(document),
            document.get("created_at"),
            document.get("updated_at"),
        )

    def insert_document(self, document: Dict[str, Any]) -> None:
        """
        Insert a new story document.

        Raises:
            sqlite3.IntegrityError: If a document with the same id exists
        """
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO stories (id, status, user_id, story_type_id, document, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (document["id"], *self._row_values(document)),
            )
        self._cache_set(document)

    def load_document(self, story_id: str) -> Optional[Dict[str, Any]]:
        """Load a story document (with cache lookup), or None if absent."""
        cached = self._cache_get(story_id)
        if cached is not None:
            return cached

        with self.transaction() as conn:
            row = conn.execute(
                "SELECT document FROM stories WHERE id = ?", (story_id,)
            ).fetchone()

        if row is None:
            return None
        document = json.loads(row["document"])
        self._cache_set(document)
        return document

    def modify_document(
        self,
        story_id: str,
        mutate: Callable[[Dict[str, Any]], Dict[str, Any]],
    ) -> Optional[Dict[str, Any]]:
        """
        Atomically read, transform and write back one document.

        The cached copy is dropped while the write lock is held rather than
        rewritten, so a slower writer can never leave its older document in
        the cache.

        Args:
            story_id: ID of the story to modify
            mutate: Receives the stored document, returns the new document

        Returns:
            The new document, or None if the story does not exist
        """
        with self.transaction(immediate=True) as conn:
            row = conn.execute(
                "SELECT document FROM stories WHERE id = ?", (story_id,)
            ).fetchone()
            if row is None:
                return None
            document = mutate(json.loads(row["document"]))
            conn.execute(
                """
                UPDATE stories SET
                    status = ?, user_id = ?, story_type_id = ?, document = ?,
                    created_at = ?, updated_at = ?
                WHERE id = ?
                """,
                (*self._row_values(document), story_id),
            )
            self._cache_delete(story_id)
        return document

    def delete_document(self, story_id: str) -> bool:
        """
        Delete a story document.

        Returns:
            True if a document was deleted, False if none existed
        """
        with self.transaction(immediate=True) as conn:
            cursor = conn.execute("DELETE FROM stories WHERE id = ?", (story_id,))
            self._cache_delete(story_id)
        return cursor.rowcount > 0

    def list_documents_by_user(
        self,
        user_id: str,
        status: Optional[str] = None,
        story_type_id: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        List a user's story documents, newest first.

        Args:
            user_id: Owner to filter on (uses idx_stories_user_id)
            status: Optional status filter
            story_type_id: Optional story type filter
            limit: Maximum number of documents
            offset: Number of documents to skip
        """
        query = "SELECT document FROM stories WHERE user_id = ?"
        params: List[Any] = [user_id]
        if status:
            query += " AND status = ?"
            params.append(status)
        if story_type_id:
            query += " AND story_type_id = ?"
            params.append(story_type_id)
        query += " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with self.transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [json.loads(row["document"]) for row in rows]

    def count_documents(self, status: Optional[str] = None) -> int:
        with self.transaction() as conn:
            if status:
                cursor = conn.execute("SELECT COUNT(*) FROM stories WHERE status = ?", (status,))
            else:
                cursor = conn.execute("SELECT COUNT(*) FROM stories")
            return cursor.fetchone()[0]
