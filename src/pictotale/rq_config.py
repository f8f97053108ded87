"""
RQ (Redis Queue) configuration for background jobs.
"""

import logging
import os
from typing import Optional

from redis import Redis
from rq import Queue
from rq.exceptions import NoSuchJobError
from rq.job import Job

logger = logging.getLogger(__name__)

DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_QUEUE_NAME = "stories"


def get_redis_connection(redis_url: Optional[str] = None) -> Redis:
    """
    Get a Redis connection.

    Args:
        redis_url: Connection URL (default: REDIS_URL env var, then localhost)

    Returns:
        Redis: A Redis connection instance.
    """
    return Redis.from_url(redis_url or os.getenv("REDIS_URL", DEFAULT_REDIS_URL))


def get_queue(name: str = DEFAULT_QUEUE_NAME, redis_url: Optional[str] = None) -> Queue:
    """
    Get an RQ queue by name.

    Args:
        name: Queue name. Defaults to 'stories'.
        redis_url: Optional Redis URL override

    Returns:
        Queue: An RQ Queue instance connected to the specified queue.
    """
    return Queue(name, connection=get_redis_connection(redis_url))


def get_job(job_id: str, redis_url: Optional[str] = None) -> Optional[Job]:
    """
    Get a job by ID.

    Returns:
        Optional[Job]: The Job instance if found, None otherwise.
    """
    try:
        return Job.fetch(job_id, connection=get_redis_connection(redis_url))
    except NoSuchJobError:
        return None
