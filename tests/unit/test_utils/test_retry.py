"""
test_retry.py - 재시도 유틸리티 테스트
"""

import pytest

from src.utils.retry import RetryPolicy, retry_async


class Transient(Exception):
    pass


class Fatal(Exception):
    pass


class Recorder:
    """sleep 대체: 대기 시간만 기록."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def flaky(*outcomes):
    """outcomes를 순서대로 반환/발생하는 async 함수."""
    queue = list(outcomes)
    calls = []

    async def func():
        calls.append(1)
        outcome = queue.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return func, calls


class TestRetryPolicy:
    def test_default_no_retry(self):
        assert RetryPolicy().delays() == []

    def test_exponential_capped(self):
        policy = RetryPolicy(max_retries=4, initial_delay=1.0, max_delay=5.0)

        assert policy.delays() == [1.0, 2.0, 4.0, 5.0]

    def test_from_config(self):
        policy = RetryPolicy.from_config(
            {"ai": {"llm": {"max_retries": 2, "retry_initial_delay": 0.5}}}
        )

        assert policy.max_retries == 2
        assert policy.initial_delay == 0.5

    def test_from_empty_config(self):
        assert RetryPolicy.from_config({}).max_retries == 0


class TestRetryAsync:
    @pytest.mark.asyncio
    async def test_single_attempt_by_default(self):
        func, calls = flaky(Transient("503"))

        with pytest.raises(Transient):
            await retry_async(func, RetryPolicy(), (Transient,), sleep=Recorder())

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        func, calls = flaky(Transient("503"), Transient("429"), "ok")
        sleep = Recorder()

        result = await retry_async(
            func, RetryPolicy(max_retries=2, initial_delay=0.1), (Transient,), sleep=sleep
        )

        assert result == "ok"
        assert len(calls) == 3
        assert sleep.delays == [0.1, 0.2]

    @pytest.mark.asyncio
    async def test_last_error_propagates(self):
        func, calls = flaky(Transient("a"), Transient("b"))

        with pytest.raises(Transient, match="b"):
            await retry_async(func, RetryPolicy(max_retries=1), (Transient,), sleep=Recorder())

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_non_retryable_immediate(self):
        func, calls = flaky(Fatal("400"), "never")

        with pytest.raises(Fatal):
            await retry_async(func, RetryPolicy(max_retries=3), (Transient,), sleep=Recorder())

        assert len(calls) == 1
