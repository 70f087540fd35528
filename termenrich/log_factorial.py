import logging
import math
import threading
from typing import List

logger = logging.getLogger(__name__)


class LogFactorialCache:
    """
    Running table of natural-log factorials, ln(i!) for i = 0..extent.

    The table only ever grows. A request past the current extent fills the
    missing entries from the last cached value (ln(i!) = ln((i-1)!) + ln(i)),
    so every index is computed exactly once per cache instance.
    """

    def __init__(self) -> None:
        self._values: List[float] = [0.0]
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._values)

    def __call__(self, n: int) -> float:
        return self.log_factorial(n)

    def log_factorial(self, n: int) -> float:
        """
        Return ln(n!).

        Args:
            n: Non-negative integer. Values <= 1 (negative included) return 0.

        Returns:
            ln(n!) as a float
        """
        if n <= 1:
            return 0.0
        values = self._values
        if n < len(values):
            return values[n]
        self._extend(n)
        return self._values[n]

    def _extend(self, n: int) -> None:
        with self._lock:
            values = self._values
            last = len(values) - 1
            if n <= last:
                # Filled by another caller while we waited
                return
            value = values[last]
            for i in range(last + 1, n + 1):
                value += math.log(i)
                values.append(value)
            logger.debug(f"Extended log-factorial table from {last} to {n}")


# Process-wide cache shared by callers that do not inject their own
default_cache = LogFactorialCache()


def log_factorial(n: int) -> float:
    """Return ln(n!) from the process-wide cache."""
    return default_cache.log_factorial(n)
