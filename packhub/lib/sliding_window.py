"""Per-key sliding window counter using monotonic timestamps."""

import time


class SlidingWindowCounter:
    """Tracks per-key hit counts within a sliding time window.

    Periodically prunes stale entries to bound memory usage.
    """

    def __init__(self, window: float = 60.0, cleanup_interval: float = 60.0) -> None:
        self.window = window
        self._buckets: dict[str, list[float]] = {}
        self._last_cleanup = time.monotonic()
        self._cleanup_interval = cleanup_interval

    def _cleanup_stale(self, now: float) -> None:
        if now - self._last_cleanup < self._cleanup_interval:
            return
        self._last_cleanup = now
        cutoff = now - self.window
        stale_keys = []
        for key, timestamps in self._buckets.items():
            self._buckets[key] = [t for t in timestamps if t > cutoff]
            if not self._buckets[key]:
                stale_keys.append(key)
        for key in stale_keys:
            del self._buckets[key]

    def check_and_record(self, key: str, limit: int) -> tuple[bool, int]:
        """Check if *key* is within *limit* and record if allowed.

        Returns (allowed, retry_after_seconds). If allowed, retry_after is 0.
        """
        now = time.monotonic()
        self._cleanup_stale(now)
        cutoff = now - self.window

        timestamps = [t for t in self._buckets.get(key, []) if t > cutoff]
        self._buckets[key] = timestamps

        if len(timestamps) >= limit:
            retry_after = int(timestamps[0] - cutoff) + 1
            return False, max(retry_after, 1)

        timestamps.append(now)
        return True, 0
