"""
Story validation service.

Handles input validation for story operations, including:
- Story creation input (story type, modalities, characters, prompt)
- Base64 media payloads
- Continuation requests
- Story listing queries and sharing requests
"""

import base64
import binascii
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..models import StoryLength, StoryPreferences, StoryStatus
from ..story_types import get_available_story_types, get_story_type
from ..utils.errors import ValidationError
from ..utils.llm_constants import (
    MAX_CHARACTER_DESCRIPTION_CHARS,
    MAX_CHARACTERS,
    MAX_USER_PROMPT_CHARS,
)

logger = logging.getLogger(__name__)

LANGUAGE_CODE_PATTERN = re.compile(r"^[a-z]{2}(-[A-Z]{2})?$")
DATA_URL_PATTERN = re.compile(r"^data:[\w/+.-]+;base64,", re.IGNORECASE)


class StoryValidationService:
    """Service for validating story input parameters."""

    MAX_MEDIA_BYTES = 10 * 1024 * 1024
    MAX_CHARACTER_NAME_LENGTH = 50
    DEFAULT_PAGE_SIZE = 10
    MAX_PAGE_SIZE = 50

    def decode_media(self, value: Optional[str], field_name: str) -> Optional[bytes]:
        """
        Decode an optional base64 (or data URL) media payload.

        Raises:
            ValidationError: If the value is not valid base64 or too large
        """
        if value is None or value == "":
            return None
        if not isinstance(value, str):
            raise ValidationError(
                f"{field_name} must be a base64 string.",
                details={"field": field_name, "type": type(value).__name__}
            )

        encoded = DATA_URL_PATTERN.sub("", value.strip(), count=1)
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError(
                f"{field_name} is not valid base64.",
                details={"field": field_name}
            )

        if not data:
            return None
        if len(data) > self.MAX_MEDIA_BYTES:
            raise ValidationError(
                f"{field_name} is too large (maximum {self.MAX_MEDIA_BYTES // (1024 * 1024)} MB).",
                details={"field": field_name, "size": len(data), "max_size": self.MAX_MEDIA_BYTES}
            )
        return data

    def validate_character_names(self, names: Any, field_name: str = "character_names") -> List[str]:
        if names is None:
            return []
        if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
            raise ValidationError(
                f"{field_name} must be a list of strings.",
                details={"field": field_name}
            )
        cleaned = [n.strip() for n in names if n.strip()]
        if len(cleaned) > MAX_CHARACTERS:
            raise ValidationError(
                f"A story can have at most {MAX_CHARACTERS} characters.",
                details={"field": field_name, "count": len(cleaned), "max_count": MAX_CHARACTERS}
            )
        for name in cleaned:
            if len(name) > self.MAX_CHARACTER_NAME_LENGTH:
                raise ValidationError(
                    f"Character name '{name[:20]}...' is too long "
                    f"(maximum {self.MAX_CHARACTER_NAME_LENGTH} characters).",
                    details={"field": field_name}
                )
        return cleaned

    def validate_creation_input(self, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Validate a story creation request.

        Args:
            data: Request payload

        Returns:
            Dict with validated and normalized input:
            {
                "story_type": dict,
                "user_id": Optional[str],
                "drawing_bytes": Optional[bytes],
                "voice_bytes": Optional[bytes],
                "character_names": List[str],
                "character_descriptions": Dict[str, str],
                "user_prompt": str,
                "preferences": dict,
                "length": str,
                "language": str
            }

        Raises:
            ValidationError: If validation fails
        """
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object.")

        story_type_id = data.get("story_type_id")
        story_type = get_story_type(story_type_id) if isinstance(story_type_id, str) else None
        if story_type is None:
            raise ValidationError(
                f"Unknown story type: '{story_type_id}'.",
                details={"field": "story_type_id", "available": get_available_story_types()}
            )

        drawing_bytes = self.decode_media(data.get("drawing_base64"), "drawing_base64")
        voice_bytes = self.decode_media(data.get("voice_base64"), "voice_base64")

        user_prompt = data.get("user_prompt") or ""
        if not isinstance(user_prompt, str):
            raise ValidationError("user_prompt must be a string.", details={"field": "user_prompt"})
        user_prompt = user_prompt.strip()
        if len(user_prompt) > MAX_USER_PROMPT_CHARS:
            raise ValidationError(
                f"user_prompt is too long (maximum {MAX_USER_PROMPT_CHARS} characters).",
                details={"field": "user_prompt", "length": len(user_prompt), "max_length": MAX_USER_PROMPT_CHARS}
            )

        if drawing_bytes is None and voice_bytes is None and not user_prompt:
            raise ValidationError(
                "Provide at least one of a drawing, a voice recording or a text prompt.",
                details={"fields": ["drawing_base64", "voice_base64", "user_prompt"]}
            )

        character_names = self.validate_character_names(data.get("character_names"))

        descriptions = data.get("character_descriptions") or {}
        if not isinstance(descriptions, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in descriptions.items()
        ):
            raise ValidationError(
                "character_descriptions must map character names to strings.",
                details={"field": "character_descriptions"}
            )
        if len(descriptions) > MAX_CHARACTERS:
            raise ValidationError(
                f"At most {MAX_CHARACTERS} character descriptions are allowed.",
                details={"field": "character_descriptions"}
            )
        for name, description in descriptions.items():
            if len(description) > MAX_CHARACTER_DESCRIPTION_CHARS:
                raise ValidationError(
                    f"Description for '{name}' is too long (maximum {MAX_CHARACTER_DESCRIPTION_CHARS} characters).",
                    details={"field": "character_descriptions", "character": name}
                )

        length = data.get("length") or StoryLength.MEDIUM.value
        if length not in [item.value for item in StoryLength]:
            raise ValidationError(
                f"Unknown story length: '{length}'.",
                details={"field": "length", "allowed": [item.value for item in StoryLength]}
            )

        language = data.get("language") or "en"
        if not isinstance(language, str) or not LANGUAGE_CODE_PATTERN.match(language):
            raise ValidationError(
                "language must be a language code such as 'en' or 'pt-BR'.",
                details={"field": "language"}
            )

        try:
            preferences = StoryPreferences.model_validate(data.get("preferences") or {})
        except PydanticValidationError as e:
            raise ValidationError(
                "Invalid preferences.",
                details={"field": "preferences", "errors": e.errors(include_url=False, include_context=False)}
            )

        user_id = data.get("user_id")
        if user_id is not None and not isinstance(user_id, str):
            raise ValidationError("user_id must be a string.", details={"field": "user_id"})

        return {
            "story_type": story_type,
            "user_id": user_id,
            "drawing_bytes": drawing_bytes,
            "voice_bytes": voice_bytes,
            "character_names": character_names,
            "character_descriptions": {k.strip(): v.strip() for k, v in descriptions.items()},
            "user_prompt": user_prompt,
            "preferences": preferences.model_dump(exclude_none=True),
            "length": length,
            "language": language,
        }

    def validate_continuation_input(self, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Validate a continuation request.

        Returns:
            Dict with "additional_prompt" (str) and "new_characters" (List[str])

        Raises:
            ValidationError: If validation fails
        """
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object.")

        prompt = data.get("additional_prompt")
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValidationError(
                "additional_prompt is required to continue a story.",
                details={"field": "additional_prompt"}
            )
        prompt = prompt.strip()
        if len(prompt) > MAX_USER_PROMPT_CHARS:
            raise ValidationError(
                f"additional_prompt is too long (maximum {MAX_USER_PROMPT_CHARS} characters).",
                details={"field": "additional_prompt", "length": len(prompt), "max_length": MAX_USER_PROMPT_CHARS}
            )

        return {
            "additional_prompt": prompt,
            "new_characters": self.validate_character_names(data.get("new_characters"), "new_characters"),
        }

    def validate_listing_query(self, args: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate paging and filter query parameters for a story listing.

        Returns:
            Dict with "page", "limit", "status" and "story_type_id"

        Raises:
            ValidationError: If page or limit are not positive integers, or
                status is unknown
        """
        paging = {}
        for name, default in (("page", 1), ("limit", self.DEFAULT_PAGE_SIZE)):
            raw = args.get(name, default)
            try:
                value = int(raw)
            except (TypeError, ValueError):
                value = 0
            if value < 1:
                raise ValidationError(f"{name} must be a positive integer.", details={"field": name})
            paging[name] = value

        if paging["limit"] > self.MAX_PAGE_SIZE:
            raise ValidationError(
                f"limit must be at most {self.MAX_PAGE_SIZE}.",
                details={"field": "limit", "max": self.MAX_PAGE_SIZE}
            )

        status = args.get("status") or None
        if status is not None and status not in {s.value for s in StoryStatus}:
            raise ValidationError(
                f"Unknown status '{status}'.",
                details={"field": "status", "allowed": [s.value for s in StoryStatus]}
            )

        return {
            "page": paging["page"],
            "limit": paging["limit"],
            "status": status,
            "story_type_id": args.get("story_type") or None,
        }

    def validate_share_input(self, data: Optional[Dict[str, Any]]) -> bool:
        """
        Validate a sharing request body.

        Returns:
            The requested ``is_shared`` value

        Raises:
            ValidationError: If ``is_shared`` is missing or not a boolean
        """
        if not isinstance(data, dict) or not isinstance(data.get("is_shared"), bool):
            raise ValidationError("is_shared must be a boolean value.", details={"field": "is_shared"})
        return data["is_shared"]
