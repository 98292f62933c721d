"""Fake Time implementation for testing.

FakeTime records sleep() calls without sleeping.
"""

from stackpr.core.time.abc import Time


class FakeTime(Time):
    """Fake implementation that tracks calls without sleeping.

    This class has NO public setup methods. All state is captured during
    execution.
    """

    def __init__(self) -> None:
        self._sleep_calls: list[float] = []

    @property
    def sleep_calls(self) -> list[float]:
        """Seconds values passed to sleep(), in call order."""
        return self._sleep_calls

    def sleep(self, seconds: float) -> None:
        self._sleep_calls.append(seconds)
