"""
Tests for the RQ worker command.
"""

from unittest.mock import MagicMock, patch

from redis.exceptions import ConnectionError as RedisConnectionError

from pictotale import worker


class TestWorkerMain:

    def test_listens_on_requested_queues(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://test:6379/1")
        with patch("pictotale.worker.get_redis_connection") as get_conn, \
                patch("pictotale.worker.Worker") as worker_cls:
            assert worker.main(["--queue", "stories, priority", "--burst"]) == 0

        get_conn.assert_called_once_with("redis://test:6379/1")
        args, kwargs = worker_cls.call_args
        assert args == (["stories", "priority"],)
        assert kwargs["connection"] is get_conn.return_value
        assert worker_cls.return_value.work.call_args.kwargs["burst"] is True

    def test_redis_unreachable(self):
        failing = MagicMock()
        failing.work.side_effect = RedisConnectionError("refused")
        with patch("pictotale.worker.get_redis_connection"), \
                patch("pictotale.worker.Worker", return_value=failing):
            assert worker.main([]) == 1

    def test_interrupted(self):
        interrupted = MagicMock()
        interrupted.work.side_effect = KeyboardInterrupt
        with patch("pictotale.worker.get_redis_connection"), \
                patch("pictotale.worker.Worker", return_value=interrupted):
            assert worker.main([]) == 0
