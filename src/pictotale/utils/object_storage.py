"""
Binary asset storage (drawings, voice clips, narration, illustrations).

``put`` stores bytes and returns a public URL for them.
"""

import json
import logging
import mimetypes
import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .errors import PersistenceError

logger = logging.getLogger(__name__)

_EXTENSION_OVERRIDES = {
    "audio/mpeg": ".mp3",
    "audio/webm": ".webm",
    "audio/wav": ".wav",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


_MAGIC_NUMBERS = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\x1aE\xdf\xa3", "audio/webm"),
    (b"OggS", "audio/ogg"),
    (b"ID3", "audio/mpeg"),
    (b"\xff\xfb", "audio/mpeg"),
    (b"\xff\xf3", "audio/mpeg"),
)


def sniff_content_type(data: bytes, default: str = "application/octet-stream") -> str:
    """Guess a MIME type from the leading bytes of ``data``."""
    if not data:
        return default
    for magic, content_type in _MAGIC_NUMBERS:
        if data.startswith(magic):
            return content_type
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    if data[:4] == b"RIFF" and data[8:12] == b"WAVE":
        return "audio/wav"
    if data[4:8] == b"ftyp":
        return "audio/mp4"
    return default


def extension_for(content_type: str) -> str:
    """File extension for a content type, ``.bin`` when unknown."""
    if content_type in _EXTENSION_OVERRIDES:
        return _EXTENSION_OVERRIDES[content_type]
    return mimetypes.guess_extension(content_type or "") or ".bin"


def _object_key(content_type: str, metadata: Optional[Dict[str, Any]]) -> str:
    folder = (metadata or {}).get("folder", "assets")
    story_id = (metadata or {}).get("story_id")
    name = f"{uuid.uuid4().hex}{extension_for(content_type)}"
    if story_id:
        return f"{folder}/{story_id}/{name}"
    return f"{folder}/{name}"


class ObjectStorage(ABC):
    """Abstract interface for binary asset storage."""

    @abstractmethod
    def put(self, data: bytes, content_type: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        """
        Store bytes and return their public URL.

        Args:
            data: Raw bytes
            content_type: MIME type of the data
            metadata: Free-form metadata (``folder`` and ``story_id`` shape the key)

        Returns:
            Public URL of the stored object

        Raises:
            PersistenceError: If the object cannot be written
        """
        pass


class LocalObjectStorage(ObjectStorage):
    """
    Stores objects as files under a root directory.

    Each object gets a ``.json`` sidecar with its content type and metadata.
    URLs are built from ``public_base_url`` and the object key.
    """

    def __init__(self, root_dir: str, public_base_url: str):
        self.root_dir = Path(root_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def put(self, data: bytes, content_type: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        key = _object_key(content_type, metadata)
        path = self.root_dir / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            sidecar = path.with_name(path.name + ".json")
            sidecar.write_text(json.dumps({
                "content_type": content_type,
                "size": len(data),
                "metadata": metadata or {},
            }))
        except OSError as e:
            logger.error(f"Failed to store object {key}: {e}", exc_info=True)
            raise PersistenceError("object_put", str(e)) from e
        logger.debug(f"Stored {len(data)} bytes at {key}")
        return f"{self.public_base_url}/{key}"


class InMemoryObjectStorage(ObjectStorage):
    """Keeps objects in a dict keyed by URL. For tests and local runs."""

    def __init__(self, public_base_url: str = "memory://objects"):
        self.public_base_url = public_base_url.rstrip("/")
        self.objects: Dict[str, Tuple[bytes, str, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def put(self, data: bytes, content_type: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        url = f"{self.public_base_url}/{_object_key(content_type, metadata)}"
        with self._lock:
            self.objects[url] = (bytes(data), content_type, dict(metadata or {}))
        return url

    def get(self, url: str) -> Optional[bytes]:
        with self._lock:
            entry = self.objects.get(url)
        return entry[0] if entry else None


def create_object_storage(settings) -> ObjectStorage:
    """Create object storage from settings (memory store pairs with memory repository)."""
    if settings.story_store == "memory":
        return InMemoryObjectStorage()
    return LocalObjectStorage(settings.storage_dir, settings.public_base_url)
