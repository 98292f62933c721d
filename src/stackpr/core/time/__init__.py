"""Time operations abstraction for testing."""

from stackpr.core.time.abc import Time
from stackpr.core.time.fake import FakeTime
from stackpr.core.time.real import RealTime

__all__ = ["FakeTime", "RealTime", "Time"]
