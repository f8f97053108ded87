"""
Shared pytest fixtures for the test suite.

Everything runs against in-memory stores and simulated providers, with a
retry executor that never sleeps, so no test touches the network, Redis or
the real clock.
"""

import pytest
from unittest.mock import MagicMock

from pictotale.components import build_components
from pictotale.config import Settings
from pictotale.models import StoryRecord, StoryStatus, UserInput
from pictotale.pipeline import PipelineRunContext
from pictotale.providers.factory import simulated_providers
from pictotale.story_types import get_story_type
from pictotale.utils.object_storage import InMemoryObjectStorage
from pictotale.utils.repository import InMemoryStoryRepository
from pictotale.utils.retry import RetryExecutor, RetryPolicy


class RecordingRepository(InMemoryStoryRepository):
    """In-memory repository that remembers every status it was asked to write."""

    def __init__(self):
        super().__init__()
        self.status_history = {}

    def create(self, record):
        self.status_history.setdefault(record.id, []).append(record.status.value)
        return super().create(record)

    def update(self, story_id, updates):
        record = super().update(story_id, updates)
        if "status" in updates:
            self.status_history.setdefault(story_id, []).append(updates["status"])
        return record


class SleepRecorder:
    """Stand-in for time.sleep that records requested delays."""

    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def settings(tmp_path):
    """Settings for an isolated, fully simulated deployment."""
    return Settings(
        provider_mode="simulated",
        story_store="memory",
        storage_dir=str(tmp_path / "media"),
        db_path=str(tmp_path / "stories.db"),
        music_base_url="http://test/music",
        placeholder_illustration_url="http://test/placeholder.png",
        worker_threads=2,
    )


@pytest.fixture
def repository():
    return RecordingRepository()


@pytest.fixture
def object_storage():
    return InMemoryObjectStorage()


@pytest.fixture
def providers():
    """Simulated provider set; individual capabilities can be swapped per test."""
    return simulated_providers()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def retry_executor(sleep_recorder):
    return RetryExecutor(RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=10.0), sleep=sleep_recorder)


@pytest.fixture
def components(settings, repository, object_storage, providers, sleep_recorder):
    return build_components(
        settings,
        repository=repository,
        object_storage=object_storage,
        providers=providers,
        sleep=sleep_recorder,
    )


@pytest.fixture
def adventure_type():
    return get_story_type("adventure")


@pytest.fixture
def make_draft(repository):
    """Factory creating a draft story record in the repository."""
    def _make(story_type_id="adventure", **user_input):
        record = StoryRecord(
            story_type_id=story_type_id,
            character_names=user_input.pop("character_names", []),
            user_input=UserInput(**user_input),
        )
        return repository.create(record)
    return _make


@pytest.fixture
def text_only_context(adventure_type):
    return PipelineRunContext(
        story_type=adventure_type,
        user_prompt="A brave mouse looks for magic cheese",
        character_names=["Squeaky"],
        length="short",
        preferences={"generate_illustrations": False},
    )


@pytest.fixture
def completed_story(components, make_draft, text_only_context):
    """A story that has been through a successful generation run."""
    draft = make_draft(user_prompt=text_only_context.user_prompt, length="short", character_names=["Squeaky"])
    status = components.orchestrator.run_generation(draft.id, text_only_context)
    assert status == StoryStatus.COMPLETED
    return components.repository.require(draft.id)


@pytest.fixture
def failing_text_provider():
    """Text provider mock whose every call fails with a transient error."""
    from pictotale.utils.errors import TransientProviderError

    provider = MagicMock()
    provider.model_name = "mock-text"
    provider.complete.side_effect = TransientProviderError("mock", "upstream unavailable", status_code=503)
    return provider


@pytest.fixture
def app(settings, components):
    from pictotale.app import create_app

    flask_app = create_app(settings=settings, components=components)
    flask_app.config["TESTING"] = True
    yield flask_app
    flask_app.extensions["pictotale"]["job_service"].shutdown()


@pytest.fixture
def client(app):
    return app.test_client()
