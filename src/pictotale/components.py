"""
Component wiring.

Builds the repository, object storage, providers and pipeline engines from
settings in one place, so the Flask app, the RQ worker and the tests all
assemble the same graph.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .config import Settings
from .continuation import ContinuationEngine
from .pipeline import PipelineOrchestrator
from .providers.factory import ProviderSet, create_providers
from .utils.locks import StoryLockRegistry
from .utils.object_storage import ObjectStorage, create_object_storage
from .utils.repository import StoryRepository, create_story_repository
from .utils.retry import RetryExecutor, RetryPolicy

logger = logging.getLogger(__name__)


@dataclass
class Components:
    settings: Settings
    repository: StoryRepository
    object_storage: ObjectStorage
    providers: ProviderSet
    retry: RetryExecutor
    locks: StoryLockRegistry
    orchestrator: PipelineOrchestrator
    continuation: ContinuationEngine


def build_components(
    settings: Settings,
    repository: Optional[StoryRepository] = None,
    object_storage: Optional[ObjectStorage] = None,
    providers: Optional[ProviderSet] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Components:
    """
    Assemble the pipeline from settings.

    Any of repository, object storage or providers can be passed in to
    override what the settings would build.
    """
    repository = repository or create_story_repository(settings)
    object_storage = object_storage or create_object_storage(settings)
    providers = providers or create_providers(settings)

    policy = RetryPolicy(
        max_attempts=settings.retry_max_attempts,
        base_delay=settings.retry_base_delay,
        max_delay=settings.retry_max_delay,
    )
    retry = RetryExecutor(policy, sleep=sleep)
    locks = StoryLockRegistry()

    orchestrator = PipelineOrchestrator(
        repository,
        object_storage,
        providers,
        retry_executor=retry,
        locks=locks,
        illustration_count=settings.illustration_count,
        music_base_url=settings.music_base_url,
        placeholder_illustration_url=settings.placeholder_illustration_url,
    )
    continuation = ContinuationEngine(
        repository,
        object_storage,
        providers,
        retry_executor=retry,
        locks=locks,
    )

    return Components(
        settings=settings,
        repository=repository,
        object_storage=object_storage,
        providers=providers,
        retry=retry,
        locks=locks,
        orchestrator=orchestrator,
        continuation=continuation,
    )
