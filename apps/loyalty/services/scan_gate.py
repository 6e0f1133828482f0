"""
Scanner re-arm flag.

One scan per operator at a time: the flag is taken before a scan is
processed and, once the scan resolves, held for a cool-down so the same
physical code held in front of the camera is not submitted again at once.
"""

from django.conf import settings
from django.core.cache import cache

# Upper bound for a scan in flight; the flag frees itself if a worker dies.
IN_FLIGHT_TIMEOUT = 30


class ScanGate:
    """Cache-backed re-arm flag for one scanning operator."""

    def __init__(self, operator_key, cooldown=None, cache_backend=None):
        self.key = f'loyalty:scan-gate:{operator_key}'
        self.cooldown = settings.LOYALTY_SCAN_COOLDOWN_SECONDS if cooldown is None else cooldown
        self.cache = cache_backend or cache

    def acquire(self) -> bool:
        """Take the flag; False while a scan is in flight or cooling down."""
        return self.cache.add(self.key, 'busy', timeout=IN_FLIGHT_TIMEOUT)

    def release(self) -> None:
        """Re-arm after the cool-down."""
        if self.cooldown > 0:
            self.cache.set(self.key, 'cooldown', timeout=self.cooldown)
        else:
            self.cache.delete(self.key)

    def is_armed(self) -> bool:
        return self.cache.get(self.key) is None
