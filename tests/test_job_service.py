"""
Tests for job dispatch (thread pool and RQ) and the RQ job entry points.
"""

import pytest
from unittest.mock import MagicMock, patch

from redis.exceptions import ConnectionError as RedisConnectionError

from pictotale import jobs
from pictotale.continuation import ContinuationRequest
from pictotale.models import StoryStatus
from pictotale.services.job_service import JobService
from pictotale.utils.errors import InvalidStateError, NotFoundError, ServiceUnavailableError


@pytest.fixture
def thread_jobs(components):
    service = JobService(components.orchestrator, components.continuation, max_workers=2)
    yield service
    service.shutdown()


@pytest.fixture
def rq_jobs(components):
    return JobService(
        components.orchestrator,
        components.continuation,
        use_background_jobs=True,
        redis_url="redis://test:6379/0",
    )


class TestThreadPoolJobs:

    def test_generation_runs_in_background(self, thread_jobs, components, make_draft, text_only_context):
        draft = make_draft()

        job = thread_jobs.submit_generation(draft.id, text_only_context)

        assert job["mode"] == "thread"
        assert job["job_id"].startswith("job_")
        assert thread_jobs.wait_for(job["job_id"], timeout=10) == StoryStatus.COMPLETED
        status = thread_jobs.get_job_status(job["job_id"])
        assert status["status"] == "finished"
        assert status["story_id"] == draft.id
        assert status["result"] == {"status": "completed", "story_id": draft.id}
        assert components.repository.require(draft.id).status == StoryStatus.COMPLETED

    def test_continuation_runs_in_background(self, thread_jobs, components, completed_story):
        request = ContinuationRequest("a picnic")
        components.continuation.start(completed_story.id, request)

        job = thread_jobs.submit_continuation(completed_story.id, request)

        thread_jobs.wait_for(job["job_id"], timeout=10)
        assert components.repository.require(completed_story.id).metadata.continuation_count == 1

    def test_raised_error_reported_as_failed(self, thread_jobs, completed_story, text_only_context):
        job = thread_jobs.submit_generation(completed_story.id, text_only_context)
        with pytest.raises(InvalidStateError):
            thread_jobs.wait_for(job["job_id"], timeout=10)
        status = thread_jobs.get_job_status(job["job_id"])
        assert status["status"] == "failed"
        assert "cannot be modified" in status["error"]

    def test_unknown_job(self, thread_jobs):
        with pytest.raises(NotFoundError):
            thread_jobs.get_job_status("job_missing")
        with pytest.raises(NotFoundError):
            thread_jobs.wait_for("job_missing")


class TestRqJobs:

    def test_generation_enqueued(self, rq_jobs, text_only_context):
        queue = MagicMock()
        queue.enqueue.return_value = MagicMock(id="rq-123")
        with patch("pictotale.services.job_service.get_queue", return_value=queue) as get_queue:
            job = rq_jobs.submit_generation("story_aaaaaaaaaaaa", text_only_context)

        assert job == {"job_id": "rq-123", "mode": "rq"}
        get_queue.assert_called_once_with("stories", "redis://test:6379/0")
        args, kwargs = queue.enqueue.call_args
        assert args == ("pictotale.jobs.run_generation_job",)
        assert kwargs["job_timeout"] == "15m"
        assert kwargs["story_id"] == "story_aaaaaaaaaaaa"
        assert kwargs["payload"] == text_only_context.to_payload()

    def test_continuation_enqueued(self, rq_jobs):
        queue = MagicMock()
        queue.enqueue.return_value = MagicMock(id="rq-9")
        with patch("pictotale.services.job_service.get_queue", return_value=queue):
            rq_jobs.submit_continuation("story_aaaaaaaaaaaa", ContinuationRequest("more", ["Bubbles"]))

        args, kwargs = queue.enqueue.call_args
        assert args == ("pictotale.jobs.run_continuation_job",)
        assert kwargs["additional_prompt"] == "more"
        assert kwargs["new_characters"] == ["Bubbles"]

    def test_redis_down_is_service_unavailable(self, rq_jobs, text_only_context):
        queue = MagicMock()
        queue.enqueue.side_effect = RedisConnectionError("refused")
        with patch("pictotale.services.job_service.get_queue", return_value=queue):
            with pytest.raises(ServiceUnavailableError):
                rq_jobs.submit_generation("story_aaaaaaaaaaaa", text_only_context)

    def test_finished_job_status(self, rq_jobs):
        job = MagicMock()
        job.get_status.return_value = "finished"
        job.is_finished = True
        job.kwargs = {"story_id": "story_aaaaaaaaaaaa"}
        job.created_at = job.started_at = job.ended_at = None
        job.return_value.return_value = {"status": "completed", "story_id": "story_aaaaaaaaaaaa"}
        with patch("pictotale.services.job_service.get_job", return_value=job):
            status = rq_jobs.get_job_status("rq-1")

        assert status["status"] == "finished"
        assert status["story_id"] == "story_aaaaaaaaaaaa"
        assert status["result"]["status"] == "completed"

    def test_failed_job_status(self, rq_jobs):
        job = MagicMock()
        job.get_status.return_value = "failed"
        job.is_finished = False
        job.is_failed = True
        job.kwargs = {}
        job.created_at = job.started_at = job.ended_at = None
        job.exc_info = "Traceback (most recent call last):\n  ...\nValueError: Unknown story type: x\n"
        with patch("pictotale.services.job_service.get_job", return_value=job):
            status = rq_jobs.get_job_status("rq-2")

        assert status["status"] == "failed"
        assert status["error"] == "ValueError: Unknown story type: x"

    def test_missing_job(self, rq_jobs):
        with patch("pictotale.services.job_service.get_job", return_value=None):
            with pytest.raises(NotFoundError):
                rq_jobs.get_job_status("rq-404")


class TestJobEntryPoints:

    @pytest.fixture(autouse=True)
    def worker_components(self, monkeypatch, components):
        monkeypatch.setattr(jobs, "_worker_components", components)
        return components

    def test_run_generation_job(self, make_draft, text_only_context, components):
        draft = make_draft()
        result = jobs.run_generation_job(draft.id, text_only_context.to_payload())
        assert result == {"status": "completed", "story_id": draft.id}
        assert components.repository.require(draft.id).title

    def test_run_continuation_job(self, completed_story, components):
        components.continuation.start(completed_story.id, ContinuationRequest("a song", ["Bubbles"]))
        result = jobs.run_continuation_job(completed_story.id, "a song", ["Bubbles"])
        assert result == {"status": "completed", "story_id": completed_story.id}
        assert "Bubbles" in components.repository.require(completed_story.id).character_names

    def test_components_built_from_env_once(self, monkeypatch, components):
        monkeypatch.setattr(jobs, "_worker_components", None)
        with patch("pictotale.jobs.build_components", return_value=components) as build:
            assert jobs.get_worker_components() is components
            assert jobs.get_worker_components() is components
        build.assert_called_once()
