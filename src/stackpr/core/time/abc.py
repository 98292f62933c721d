"""Time operations abstraction.

Retry backoff sleeps through this interface so tests never actually wait.
"""

from abc import ABC, abstractmethod


class Time(ABC):
    """Abstract time operations for dependency injection."""

    @abstractmethod
    def sleep(self, seconds: float) -> None:
        """Sleep for the given number of seconds."""
        ...
