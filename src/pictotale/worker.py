"""
RQ Worker for background job processing.

This worker processes story generation and continuation jobs.
"""

import argparse
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv  # type: ignore[import-untyped]
from redis.exceptions import ConnectionError as RedisConnectionError
from rq import Worker

from .config import Settings
from .rq_config import DEFAULT_QUEUE_NAME, get_redis_connection

logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the RQ worker.

    Parses command-line arguments to determine which Redis queues to listen to
    and whether to run in burst mode, then starts an RQ worker.

    Returns:
        int: The exit code (0 for success, 1 for error).
    """
    parser = argparse.ArgumentParser(description='RQ worker for PictoTale story generation')
    parser.add_argument(
        '--queue',
        type=str,
        default=DEFAULT_QUEUE_NAME,
        help=f'Comma-separated list of queue names to listen on (default: {DEFAULT_QUEUE_NAME})'
    )
    parser.add_argument(
        '--burst',
        action='store_true',
        help='Run in burst mode (exit after processing all jobs)'
    )
    args = parser.parse_args(argv)

    load_dotenv()
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    queue_names: List[str] = [q.strip() for q in args.queue.split(',') if q.strip()]
    logger.info(f"Starting RQ worker for queues: {queue_names}")
    logger.info(f"Redis URL: {settings.redis_url}")

    try:
        redis_conn = get_redis_connection(settings.redis_url)
        worker = Worker(queue_names, connection=redis_conn)
        worker.work(burst=args.burst, logging_level=settings.log_level)
    except KeyboardInterrupt:
        logger.info("Worker stopped by user")
        return 0
    except RedisConnectionError as ce:
        logger.critical(f"Redis connection error: {ce}. Worker cannot connect.", exc_info=True)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
