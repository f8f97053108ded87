"""
Tests for the retry executor and error classification.
"""

import pytest
from unittest.mock import MagicMock

from pictotale.utils.errors import (
    ContentSafetyViolation,
    NonRetryableProviderError,
    PersistenceError,
    TransientProviderError,
)
from pictotale.utils.retry import RetryExecutor, RetryPolicy, is_non_retryable


class TestRetryExecutor:

    def test_fail_twice_then_succeed(self, retry_executor, sleep_recorder):
        operation = MagicMock(side_effect=[
            TransientProviderError("mock", "timeout"),
            TransientProviderError("mock", "timeout"),
            "story text",
        ])
        assert retry_executor.execute(operation, "Story Generation") == "story text"
        assert operation.call_count == 3
        assert sleep_recorder.delays == [1.0, 2.0]

    def test_non_retryable_invoked_once(self, retry_executor, sleep_recorder):
        operation = MagicMock(side_effect=NonRetryableProviderError("mock", "invalid key", status_code=401))
        with pytest.raises(NonRetryableProviderError):
            retry_executor.execute(operation, "Story Generation")
        assert operation.call_count == 1
        assert sleep_recorder.delays == []

    def test_gives_up_after_max_attempts(self, retry_executor, sleep_recorder):
        operation = MagicMock(side_effect=TransientProviderError("mock", "503"))
        with pytest.raises(TransientProviderError):
            retry_executor.execute(operation, "Narration")
        assert operation.call_count == 3
        assert sleep_recorder.delays == [1.0, 2.0]

    def test_success_first_time_does_not_sleep(self, retry_executor, sleep_recorder):
        assert retry_executor.execute(lambda: 42, "Answer") == 42
        assert sleep_recorder.delays == []

    def test_per_call_policy_override(self, retry_executor):
        operation = MagicMock(side_effect=TransientProviderError("mock", "busy"))
        with pytest.raises(TransientProviderError):
            retry_executor.execute(operation, "Title", policy=RetryPolicy(max_attempts=1))
        assert operation.call_count == 1

    def test_safety_violation_never_retried(self, retry_executor):
        operation = MagicMock(side_effect=ContentSafetyViolation(["scary"], "medium"))
        with pytest.raises(ContentSafetyViolation):
            retry_executor.execute(operation, "Safety")
        assert operation.call_count == 1

    def test_custom_is_retryable(self, sleep_recorder):
        policy = RetryPolicy(max_attempts=4, base_delay=0.5, is_retryable=lambda e: isinstance(e, KeyError))
        executor = RetryExecutor(policy, sleep=sleep_recorder)
        operation = MagicMock(side_effect=[KeyError("a"), ValueError("b")])
        with pytest.raises(ValueError):
            executor.execute(operation, "Custom")
        assert operation.call_count == 2
        assert sleep_recorder.delays == [0.5]


class TestRetryPolicy:

    def test_exponential_delays(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=10.0)
        assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]

    def test_delay_is_capped(self):
        policy = RetryPolicy(base_delay=4.0, max_delay=10.0)
        assert policy.delay_for(3) == 10.0

    def test_defaults(self):
        policy = RetryPolicy()
        assert (policy.max_attempts, policy.base_delay, policy.max_delay) == (3, 1.0, 10.0)


class TestIsNonRetryable:

    @pytest.mark.parametrize("error", [
        NonRetryableProviderError("x", "bad request"),
        ContentSafetyViolation(["kill"], "medium"),
        PersistenceError("update", "disk full"),
        ValueError("Invalid API key provided"),
        RuntimeError("Quota exceeded for project"),
        RuntimeError("Rate limit exceeded"),
    ])
    def test_non_retryable(self, error):
        assert is_non_retryable(error) is True

    @pytest.mark.parametrize("error", [
        TransientProviderError("x", "invalid api key in the message but typed transient"),
        ConnectionError("connection reset"),
        RuntimeError("something odd"),
    ])
    def test_retryable(self, error):
        assert is_non_retryable(error) is False

    def test_status_code_attribute(self):
        error = RuntimeError("denied")
        error.status_code = 403
        assert is_non_retryable(error) is True
        error.status_code = 500
        assert is_non_retryable(error) is False
