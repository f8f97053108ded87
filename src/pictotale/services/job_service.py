"""
Background job service.

Dispatches pipeline runs so HTTP requests return immediately. Runs go to
an RQ queue when background jobs are enabled, otherwise to an in-process
thread pool. Handles:
- Submitting generation and continuation runs
- Checking job status
"""

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from redis.exceptions import RedisError

from ..continuation import ContinuationEngine, ContinuationRequest
from ..pipeline import PipelineOrchestrator, PipelineRunContext
from ..rq_config import DEFAULT_QUEUE_NAME, get_job, get_queue
from ..utils.errors import NotFoundError, ServiceUnavailableError

logger = logging.getLogger(__name__)

GENERATION_JOB_TIMEOUT = "15m"
CONTINUATION_JOB_TIMEOUT = "10m"


class JobService:
    """Service for dispatching and tracking background runs."""

    def __init__(
        self,
        orchestrator: PipelineOrchestrator,
        continuation: ContinuationEngine,
        use_background_jobs: bool = False,
        max_workers: int = 4,
        redis_url: Optional[str] = None,
        queue_name: str = DEFAULT_QUEUE_NAME,
    ):
        """
        Initialize job service.

        Args:
            orchestrator: Pipeline orchestrator (thread-pool mode)
            continuation: Continuation engine (thread-pool mode)
            use_background_jobs: Enqueue to RQ instead of the thread pool
            max_workers: Thread pool size
            redis_url: Redis URL for RQ
            queue_name: RQ queue name
        """
        self.orchestrator = orchestrator
        self.continuation = continuation
        self.use_background_jobs = use_background_jobs
        self.redis_url = redis_url
        self.queue_name = queue_name
        self._executor: Optional[ThreadPoolExecutor] = None
        self._max_workers = max_workers
        self._futures: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def is_background_jobs_enabled(self) -> bool:
        """Whether runs are dispatched to RQ."""
        return self.use_background_jobs

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="story-run"
                )
            return self._executor

    def _submit_local(self, kind: str, story_id: str, fn, *args) -> Dict[str, Any]:
        job_id = f"job_{uuid.uuid4().hex}"
        future = self._get_executor().submit(fn, *args)
        with self._lock:
            self._futures[job_id] = {
                "future": future,
                "story_id": story_id,
                "kind": kind,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }
        future.add_done_callback(lambda f: self._log_outcome(job_id, story_id, kind, f))
        logger.info(f"Submitted {kind} run {job_id} for story {story_id} to thread pool")
        return {"job_id": job_id, "mode": "thread"}

    @staticmethod
    def _log_outcome(job_id: str, story_id: str, kind: str, future: Future) -> None:
        error = future.exception()
        if error is not None:
            logger.error(f"{kind} run {job_id} for story {story_id} raised: {error}", exc_info=error)
        else:
            logger.info(f"{kind} run {job_id} for story {story_id} finished: {future.result()}")

    def _enqueue(self, kind: str, story_id: str, func_path: str, timeout: str, **kwargs) -> Dict[str, Any]:
        try:
            queue = get_queue(self.queue_name, self.redis_url)
            job = queue.enqueue(func_path, job_timeout=timeout, **kwargs)
        except RedisError as e:
            logger.error(f"Failed to enqueue {kind} run for story {story_id}: {e}")
            raise ServiceUnavailableError(
                "background_jobs", f"Background jobs are not available: {e}"
            ) from e
        logger.info(f"Enqueued {kind} job {job.id} for story {story_id}")
        return {"job_id": job.id, "mode": "rq"}

    def submit_generation(self, story_id: str, context: PipelineRunContext) -> Dict[str, Any]:
        """
        Dispatch a generation run.

        Returns:
            Dict with "job_id" and "mode" ("rq" or "thread")

        Raises:
            ServiceUnavailableError: If RQ is enabled but Redis is unreachable
        """
        if self.use_background_jobs:
            return self._enqueue(
                "generation",
                story_id,
                "pictotale.jobs.run_generation_job",
                GENERATION_JOB_TIMEOUT,
                story_id=story_id,
                payload=context.to_payload(),
            )
        return self._submit_local("generation", story_id, self.orchestrator.run_generation, story_id, context)

    def submit_continuation(self, story_id: str, request: ContinuationRequest) -> Dict[str, Any]:
        """Dispatch the background half of a continuation."""
        if self.use_background_jobs:
            return self._enqueue(
                "continuation",
                story_id,
                "pictotale.jobs.run_continuation_job",
                CONTINUATION_JOB_TIMEOUT,
                story_id=story_id,
                additional_prompt=request.additional_prompt,
                new_characters=list(request.new_characters),
            )
        return self._submit_local("continuation", story_id, self.continuation.run, story_id, request)

    def wait_for(self, job_id: str, timeout: Optional[float] = None) -> Any:
        """
        Block until a thread-pool job finishes and return its result.

        Raises:
            NotFoundError: If no local job has this id
        """
        with self._lock:
            entry = self._futures.get(job_id)
        if entry is None:
            raise NotFoundError("Job", job_id)
        return entry["future"].result(timeout=timeout)

    def get_job_status(self, job_id: str) -> Dict[str, Any]:
        """
        Get the status of a background job.

        Returns:
            Dict with job status:
            {
                "job_id": str,
                "status": str,   # queued | started | finished | failed
                "story_id": Optional[str],
                "result": Optional[Any],
                "error": Optional[str],
                ...
            }

        Raises:
            NotFoundError: If job with given ID does not exist
            ServiceUnavailableError: If Redis is unreachable
        """
        with self._lock:
            entry = self._futures.get(job_id)
        if entry is not None:
            return self._local_status(job_id, entry)

        if not self.use_background_jobs:
            raise NotFoundError("Job", job_id)

        try:
            job = get_job(job_id, self.redis_url)
        except RedisError as e:
            raise ServiceUnavailableError("background_jobs", f"Cannot reach job store: {e}") from e
        if job is None:
            raise NotFoundError("Job", job_id)

        status = {
            "job_id": job_id,
            "status": job.get_status(),
            "story_id": job.kwargs.get("story_id") if job.kwargs else None,
            "created_at": job.created_at.isoformat() if job.created_at else None,
            "started_at": job.started_at.isoformat() if job.started_at else None,
            "ended_at": job.ended_at.isoformat() if job.ended_at else None,
            "result": None,
            "error": None,
        }
        if job.is_finished:
            status["result"] = job.return_value()
        elif job.is_failed:
            status["error"] = job.exc_info.strip().splitlines()[-1] if job.exc_info else "Job failed"
        return status

    def _local_status(self, job_id: str, entry: Dict[str, Any]) -> Dict[str, Any]:
        future: Future = entry["future"]
        status = {
            "job_id": job_id,
            "story_id": entry["story_id"],
            "kind": entry["kind"],
            "created_at": entry["created_at"],
            "result": None,
            "error": None,
        }
        if future.running():
            status["status"] = "started"
        elif not future.done():
            status["status"] = "queued"
        elif future.exception() is not None:
            status["status"] = "failed"
            status["error"] = str(future.exception())
        else:
            status["status"] = "finished"
            result = future.result()
            status["result"] = {"status": getattr(result, "value", result), "story_id": entry["story_id"]}
        return status

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
