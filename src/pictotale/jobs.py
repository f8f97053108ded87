"""
Background job tasks for PictoTale.

Entry points executed by RQ workers. Each worker process builds its
components once from the environment and reuses them across jobs. Jobs
return plain dicts so their results are readable through RQ.
"""

import logging
from typing import Any, Dict, List, Optional

from .components import Components, build_components
from .config import Settings
from .continuation import ContinuationRequest
from .pipeline import PipelineRunContext

logger = logging.getLogger(__name__)

_worker_components: Optional[Components] = None


def get_worker_components() -> Components:
    """Build (once per process) the components used by job functions."""
    global _worker_components
    if _worker_components is None:
        _worker_components = build_components(Settings.from_env())
        logger.info("Worker components initialized")
    return _worker_components


def reset_worker_components() -> None:
    global _worker_components
    _worker_components = None


def run_generation_job(story_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Background job running the generation pipeline for one story.

    Args:
        story_id: ID of a draft story
        payload: PipelineRunContext.to_payload() output

    Returns:
        Dict containing:
            - status: terminal story status ("completed" or "failed")
            - story_id: the story id
    """
    logger.info(f"Starting generation job for story {story_id}")
    components = get_worker_components()
    context = PipelineRunContext.from_payload(payload)
    status = components.orchestrator.run_generation(story_id, context)
    return {"status": status.value, "story_id": story_id}


def run_continuation_job(story_id: str, additional_prompt: str, new_characters: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Background job appending a continuation to a story already moved to
    ``generating`` by ContinuationEngine.start.
    """
    logger.info(f"Starting continuation job for story {story_id}")
    components = get_worker_components()
    request = ContinuationRequest(additional_prompt=additional_prompt, new_characters=list(new_characters or []))
    status = components.continuation.run(story_id, request)
    return {"status": status.value, "story_id": story_id}
