"""
Service layer for PictoTale.

Business logic kept apart from the HTTP route handlers so it can be used
by Flask routes, background jobs and tests alike:
- Input validation
- Story lifecycle (create, status, continue, archive)
- Job dispatch (RQ or thread pool)
"""

from .story_validation_service import StoryValidationService
from .job_service import JobService
from .story_service import StoryService

__all__ = [
    'StoryValidationService',
    'JobService',
    'StoryService',
]
