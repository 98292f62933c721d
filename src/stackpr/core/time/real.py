"""Real time implementation backed by time.sleep()."""

import time

from stackpr.core.time.abc import Time


class RealTime(Time):
    """Production implementation that really sleeps."""

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)
