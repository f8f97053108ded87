"""
Standardized story record model.

This module defines the canonical structure for story records using Pydantic
for validation and type safety. Records are stored as JSON documents; all
creation and manipulation go through these models to keep documents
consistent.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .utils.llm_constants import MAX_CHARACTERS

STORY_ID_PATTERN = r"^story_[a-f0-9]{12}$"


class StoryStatus(str, Enum):
    """Lifecycle states of a story record."""
    DRAFT = "draft"
    GENERATING = "generating"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    ARCHIVED = "archived"


class StoryLength(str, Enum):
    """Requested story lengths, mapped to word ceilings."""
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"
    EPIC = "epic"


PROGRESS_BY_STATUS = {
    StoryStatus.DRAFT: 10,
    StoryStatus.GENERATING: 30,
    StoryStatus.PROCESSING: 70,
    StoryStatus.COMPLETED: 100,
    StoryStatus.FAILED: 0,
    StoryStatus.ARCHIVED: 100,
}

TIME_REMAINING_BY_STATUS = {
    StoryStatus.DRAFT: "3-4 minutes",
    StoryStatus.GENERATING: "2-3 minutes",
    StoryStatus.PROCESSING: "1-2 minutes",
    StoryStatus.COMPLETED: "Complete",
    StoryStatus.FAILED: "Failed",
    StoryStatus.ARCHIVED: "Archived",
}

DEFAULT_VOICE_SETTINGS = {
    "stability": 0.5,
    "similarity_boost": 0.8,
    "style": 0.2,
    "use_speaker_boost": True,
}


def utc_now() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def new_story_id() -> str:
    return f"story_{uuid.uuid4().hex[:12]}"


class StoryPreferences(BaseModel):
    """Optional knobs a caller can set on creation."""
    generate_illustrations: bool = True
    illustration_count: Optional[int] = Field(default=None, ge=1, le=6)
    voice_id: Optional[str] = None
    voice_settings: Optional[Dict[str, Any]] = None


class UserInput(BaseModel):
    """Write-once capture of what the caller submitted."""
    drawing_provided: bool = False
    voice_provided: bool = False
    character_descriptions: Dict[str, str] = Field(default_factory=dict)
    user_prompt: str = ""
    preferences: StoryPreferences = Field(default_factory=StoryPreferences)
    length: StoryLength = StoryLength.MEDIUM
    language: str = "en"


class IllustrationAsset(BaseModel):
    """One generated (or placeholder) illustration."""
    index: int = Field(..., ge=0)
    url: str
    scene: str
    is_placeholder: bool = False


class StoryMedia(BaseModel):
    """Media assets attached to a story."""
    narration_url: Optional[str] = None
    narration_voice_id: Optional[str] = None
    narration_segments: List[Dict[str, Any]] = Field(default_factory=list)
    illustrations: List[IllustrationAsset] = Field(default_factory=list)
    background_music_url: Optional[str] = None
    total_duration: int = Field(default=0, ge=0)
    voice_settings: Dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_VOICE_SETTINGS))


class GenerationInfo(BaseModel):
    """Provider and model identifiers plus intermediate analysis text."""
    text_model: Optional[str] = None
    vision_model: Optional[str] = None
    voice_model: Optional[str] = None
    transcription_model: Optional[str] = None
    image_model: Optional[str] = None
    drawing_analysis: Optional[str] = None
    voice_transcription: Optional[str] = None
    generated_at: Optional[str] = None


class StoryMetadata(BaseModel):
    """Derived metadata for a story."""
    word_count: int = Field(default=0, ge=0)
    word_limit: Optional[int] = None
    sentence_count: int = Field(default=0, ge=0)
    reading_level: Optional[int] = Field(default=None, ge=1, le=3)
    estimated_reading_seconds: int = Field(default=0, ge=0)
    language: str = "en"
    is_age_appropriate: Optional[bool] = None
    safety_check: Optional[Dict[str, Any]] = None
    generation: GenerationInfo = Field(default_factory=GenerationInfo)
    estimated_cost: Optional[Dict[str, Any]] = None
    continuation_count: int = Field(default=0, ge=0)
    last_continuation_error: Optional[str] = None


class StoryRecord(BaseModel):
    """
    Canonical story record.

    ``id`` is immutable once created. ``completed_at`` is set once, on the
    first transition into ``completed``. ``error`` is only meaningful while
    ``status`` is ``failed``.
    """
    id: str = Field(default_factory=new_story_id, pattern=STORY_ID_PATTERN)
    status: StoryStatus = StoryStatus.DRAFT
    title: str = ""
    content: str = ""
    character_names: List[str] = Field(default_factory=list)
    story_type_id: str
    user_id: Optional[str] = None
    is_shared: bool = False
    user_input: UserInput = Field(default_factory=UserInput)
    drawing_image_url: Optional[str] = None
    voice_input_url: Optional[str] = None
    media: StoryMedia = Field(default_factory=StoryMedia)
    metadata: StoryMetadata = Field(default_factory=StoryMetadata)
    error: Optional[str] = None
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)
    completed_at: Optional[str] = None

    @field_validator("character_names")
    @classmethod
    def validate_character_names(cls, v):
        """Strip blanks and cap the list."""
        names = [name.strip() for name in v if name and name.strip()]
        if len(names) > MAX_CHARACTERS:
            raise ValueError(f"At most {MAX_CHARACTERS} characters are allowed, got {len(names)}")
        return names

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to a JSON-compatible dictionary for storage."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoryRecord":
        """Create model from a stored dictionary (with validation)."""
        return cls.model_validate(data)

    @property
    def progress_percent(self) -> int:
        return PROGRESS_BY_STATUS[self.status]

    @property
    def estimated_time_remaining(self) -> str:
        return TIME_REMAINING_BY_STATUS[self.status]
