"""Tests for retry helpers."""

import pytest

from jobstep.shared.retry import RetryStrategy, retry_with_backoff


class Flaky:
    def __init__(self, failures, exc=OSError):
        self.failures = failures
        self.exc = exc
        self.calls = 0

    def __call__(self, value):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc(f"attempt {self.calls}")
        return value


def test_succeeds_after_retries():
    sleeps = []
    strategy = RetryStrategy(max_attempts=3, backoff_seconds=1.0, jitter=False, sleep=sleeps.append)
    func = Flaky(failures=2)

    assert strategy.execute(func, "ok") == "ok"
    assert func.calls == 3
    assert sleeps == [1.0, 2.0]


def test_linear_backoff():
    sleeps = []
    strategy = RetryStrategy(max_attempts=3, backoff_seconds=2.0, exponential=False,
                             jitter=False, sleep=sleeps.append)

    strategy.execute(Flaky(failures=2), "ok")

    assert sleeps == [2.0, 4.0]


def test_backoff_is_capped():
    sleeps = []
    strategy = RetryStrategy(max_attempts=4, backoff_seconds=10.0, max_backoff=15.0,
                             jitter=False, sleep=sleeps.append)

    strategy.execute(Flaky(failures=3), "ok")

    assert sleeps == [10.0, 15.0, 15.0]


def test_last_exception_is_raised():
    strategy = RetryStrategy(max_attempts=2, backoff_seconds=0, jitter=False, sleep=lambda s: None)
    func = Flaky(failures=5)

    with pytest.raises(OSError, match="attempt 2"):
        strategy.execute(func, "ok")
    assert func.calls == 2


def test_other_exceptions_are_not_retried():
    strategy = RetryStrategy(max_attempts=3, retry_on=(OSError,), sleep=lambda s: None)
    func = Flaky(failures=1, exc=ValueError)

    with pytest.raises(ValueError):
        strategy.execute(func, "ok")
    assert func.calls == 1


def test_invalid_max_attempts():
    with pytest.raises(ValueError):
        RetryStrategy(max_attempts=0)


def test_decorator_retries():
    func = Flaky(failures=1, exc=ConnectionError)

    @retry_with_backoff(max_attempts=2, backoff_seconds=0, exceptions=(ConnectionError,))
    def fetch(value):
        return func(value)

    assert fetch("data") == "data"
    assert func.calls == 2
