"""
Story service.

Entry points behind the HTTP routes: create a story and dispatch its run,
read status, list, continue, share, archive and delete stories.
"""

import logging
from typing import Any, Dict, Optional

from ..continuation import ContinuationEngine, ContinuationRequest
from ..models import StoryPreferences, StoryRecord, StoryStatus, UserInput
from ..pipeline import PipelineRunContext
from ..story_types import list_story_types
from ..utils.errors import APIError, InvalidStateError
from ..utils.repository import StoryRepository
from .job_service import JobService
from .story_validation_service import StoryValidationService

logger = logging.getLogger(__name__)


class StoryService:
    """Service for story lifecycle operations."""

    def __init__(
        self,
        repository: StoryRepository,
        job_service: JobService,
        continuation: ContinuationEngine,
        validation: Optional[StoryValidationService] = None,
    ):
        """
        Initialize story service.

        Args:
            repository: Story repository instance
            job_service: Dispatches generation and continuation runs
            continuation: Engine used to check and start continuations
            validation: Input validation service
        """
        self.repository = repository
        self.job_service = job_service
        self.continuation = continuation
        self.validation = validation or StoryValidationService()

    def create_story(self, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Validate input, persist a draft and dispatch the generation run.

        Returns:
            Dict containing:
                - story_id: new story id
                - status: "generating"
                - estimated_time: human-readable estimate
                - story_type: {"id", "name"}
                - job_id: background job id

        Raises:
            ValidationError: If input is invalid
            PersistenceError: If the draft cannot be stored
            ServiceUnavailableError: If the run cannot be dispatched
        """
        validated = self.validation.validate_creation_input(data)
        story_type = validated["story_type"]

        record = StoryRecord(
            story_type_id=story_type["id"],
            user_id=validated["user_id"],
            character_names=validated["character_names"],
            user_input=UserInput(
                drawing_provided=validated["drawing_bytes"] is not None,
                voice_provided=validated["voice_bytes"] is not None,
                character_descriptions=validated["character_descriptions"],
                user_prompt=validated["user_prompt"],
                preferences=StoryPreferences.model_validate(validated["preferences"]),
                length=validated["length"],
                language=validated["language"],
            ),
        )
        record = self.repository.create(record)
        logger.info(f"Created draft story {record.id} ({story_type['id']})")

        context = PipelineRunContext(
            story_type=story_type,
            drawing_bytes=validated["drawing_bytes"],
            voice_bytes=validated["voice_bytes"],
            character_names=validated["character_names"],
            character_descriptions=validated["character_descriptions"],
            user_prompt=validated["user_prompt"],
            preferences=validated["preferences"],
            length=validated["length"],
            language=validated["language"],
        )

        try:
            job = self.job_service.submit_generation(record.id, context)
        except APIError as e:
            self.repository.update(record.id, {"status": StoryStatus.FAILED.value, "error": e.message})
            raise

        return {
            "story_id": record.id,
            "status": StoryStatus.GENERATING.value,
            "estimated_time": record.estimated_time_remaining,
            "story_type": {"id": story_type["id"], "name": story_type["name"]},
            "job_id": job["job_id"],
        }

    def get_story(self, story_id: str) -> Dict[str, Any]:
        """
        Raises:
            NotFoundError: If story not found
        """
        return self.repository.require(story_id).to_dict()

    def get_status(self, story_id: str) -> Dict[str, Any]:
        """
        Get the progress view of a story.

        Raises:
            NotFoundError: If story not found
        """
        record = self.repository.require(story_id)
        return {
            "story_id": record.id,
            "status": record.status.value,
            "progress_percent": record.progress_percent,
            "estimated_time_remaining": record.estimated_time_remaining,
            "title": record.title or None,
            "error": record.error,
            "last_continuation_error": record.metadata.last_continuation_error,
            "created_at": record.created_at,
            "updated_at": record.updated_at,
            "completed_at": record.completed_at,
        }

    def continue_story(self, story_id: str, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Start a continuation and dispatch its run.

        Returns:
            Dict with "story_id", "status" ("generating") and "job_id"

        Raises:
            ValidationError: If input is invalid
            NotFoundError: If story not found
            InvalidStateError: If the story is not completed
            ServiceUnavailableError: If the run cannot be dispatched
        """
        validated = self.validation.validate_continuation_input(data)
        request = ContinuationRequest(
            additional_prompt=validated["additional_prompt"],
            new_characters=validated["new_characters"],
        )
        self.continuation.start(story_id, request)

        try:
            job = self.job_service.submit_continuation(story_id, request)
        except APIError as e:
            self.repository.update(story_id, {
                "status": StoryStatus.COMPLETED.value,
                "metadata": {"last_continuation_error": e.message},
            })
            raise

        return {"story_id": story_id, "status": StoryStatus.GENERATING.value, "job_id": job["job_id"]}

    def archive_story(self, story_id: str) -> Dict[str, Any]:
        """
        Move a completed story to archived.

        Raises:
            NotFoundError: If story not found
            InvalidStateError: If the story is not completed
        """
        record = self.repository.require(story_id)
        if record.status != StoryStatus.COMPLETED:
            raise InvalidStateError(
                story_id,
                record.status.value,
                f"Only completed stories can be archived; '{story_id}' is '{record.status.value}'.",
            )
        record = self.repository.update(story_id, {"status": StoryStatus.ARCHIVED.value})
        logger.info(f"Story {story_id}: archived")
        return {"story_id": story_id, "status": record.status.value}

    def list_user_stories(self, user_id: str, query: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        List one user's stories, newest first.

        Args:
            user_id: Owner whose stories are listed
            query: Optional "page", "limit", "status" and "story_type" values

        Returns:
            Dict with "stories" (full records) and "pagination"
            ({"page", "limit", "count"})

        Raises:
            ValidationError: If the paging or filter values are invalid
            PersistenceError: If the store cannot be read
        """
        filters = self.validation.validate_listing_query(query or {})
        records = self.repository.list_by_user(
            user_id,
            status=filters["status"],
            story_type_id=filters["story_type_id"],
            limit=filters["limit"],
            offset=(filters["page"] - 1) * filters["limit"],
        )
        return {
            "stories": [record.to_dict() for record in records],
            "pagination": {"page": filters["page"], "limit": filters["limit"], "count": len(records)},
        }

    def set_sharing(self, story_id: str, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Share or unshare a story.

        Returns:
            Dict with "story_id", "is_shared" and a "message"

        Raises:
            ValidationError: If ``is_shared`` is not a boolean
            NotFoundError: If story not found
        """
        is_shared = self.validation.validate_share_input(data)
        self.repository.require(story_id)
        self.repository.update(story_id, {"is_shared": is_shared})
        logger.info(f"Story {story_id}: {'shared' if is_shared else 'unshared'}")
        return {
            "story_id": story_id,
            "is_shared": is_shared,
            "message": f"Story {'shared' if is_shared else 'unshared'} successfully",
        }

    def delete_story(self, story_id: str) -> Dict[str, Any]:
        """
        Delete a story record.

        Stories with a run in flight cannot be deleted; the run would fail
        writing to a record that no longer exists.

        Raises:
            NotFoundError: If story not found
            InvalidStateError: If a generation or continuation is running
        """
        record = self.repository.require(story_id)
        if self.continuation.locks.is_held(story_id) or record.status in (
            StoryStatus.GENERATING, StoryStatus.PROCESSING,
        ):
            raise InvalidStateError(
                story_id,
                record.status.value,
                f"Cannot delete story '{story_id}' while it is '{record.status.value}'.",
            )
        self.repository.delete(story_id)
        logger.info(f"Story {story_id}: deleted")
        return {"story_id": story_id, "message": "Story deleted successfully"}

    def list_story_types(self):
        return list_story_types()
