"""
Upstream Test Factory

Controllable producers and connectivity probes. Every stub counts its
calls so tests can assert how much upstream work was done.
"""

import asyncio
from typing import Any


class CountingProducer:
    """
    Async producer that returns a value (or raises) and counts calls.

    Args:
        value: Value returned on success
        delay: Seconds to sleep before answering
        failures: Number of leading calls that raise
        error: Exception raised by failing calls
        always_fail: Raise on every call
    """

    def __init__(
        self,
        value: Any = "upstream-value",
        delay: float = 0.0,
        failures: int = 0,
        error: Exception | None = None,
        always_fail: bool = False,
    ):
        self.value = value
        self.delay = delay
        self.failures = failures
        self.error = error or ConnectionError("upstream unavailable")
        self.always_fail = always_fail
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.always_fail or self.calls <= self.failures:
            raise self.error
        return self.value


class GatedProducer:
    """Producer that blocks until release() so concurrency can be staged."""

    def __init__(self, value: Any = "gated-value"):
        self.value = value
        self.calls = 0
        self.started = asyncio.Event()
        self._gate = asyncio.Event()
        self._error: Exception | None = None

    def release(self, error: Exception | None = None) -> None:
        self._error = error
        self._gate.set()

    async def __call__(self) -> Any:
        self.calls += 1
        self.started.set()
        await self._gate.wait()
        if self._error is not None:
            raise self._error
        return self.value


class ScriptedProbe:
    """
    Connectivity probe answering from a script.

    Each call pops the next answer; the last answer repeats. An answer may
    be a bool or an exception instance to raise.
    """

    def __init__(self, *answers: Any):
        self.answers = list(answers) or [True]
        self.calls = 0

    def set(self, *answers: Any) -> None:
        self.answers = list(answers)

    async def __call__(self) -> bool:
        self.calls += 1
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, BaseException):
            raise answer
        return answer


class UpstreamTestFactory:
    """Factory for creating upstream stubs."""

    @staticmethod
    def producer(value: Any = "upstream-value", delay: float = 0.0) -> CountingProducer:
        return CountingProducer(value=value, delay=delay)

    @staticmethod
    def failing_producer(error: Exception | None = None) -> CountingProducer:
        return CountingProducer(error=error, always_fail=True)

    @staticmethod
    def flaky_producer(failures: int, value: Any = "recovered-value") -> CountingProducer:
        return CountingProducer(value=value, failures=failures)

    @staticmethod
    def gated_producer(value: Any = "gated-value") -> GatedProducer:
        return GatedProducer(value=value)

    @staticmethod
    def probe(*answers: Any) -> ScriptedProbe:
        return ScriptedProbe(*answers)
