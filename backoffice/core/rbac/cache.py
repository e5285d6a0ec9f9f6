"""Process-wide cache of the active permission module list.

Authorization checks run on every admin request, so the active module list is
kept in memory for a short time-to-live instead of being read from the
database each time. Writes to modules must call ``invalidate()``.

Two requests may both see an expired entry and both reload; the second store
simply replaces the first.
"""

import threading
import time
from typing import Callable, Iterable, Optional, Tuple

from .models import PermissionModule

DEFAULT_TTL_SECONDS = 300


class ModuleCache:
    """Single-slot TTL cache holding an immutable tuple of modules."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._modules: Optional[Tuple[PermissionModule, ...]] = None
        self._expires_at: Optional[float] = None
        self._lock = threading.Lock()

    def get(self) -> Optional[Tuple[PermissionModule, ...]]:
        """Cached modules, or None when empty or expired."""
        with self._lock:
            if self._modules is None or self._expires_at is None:
                return None
            if self._clock() >= self._expires_at:
                self._modules = None
                self._expires_at = None
                return None
            return self._modules

    def set(self, modules: Iterable[PermissionModule]) -> Tuple[PermissionModule, ...]:
        snapshot = tuple(modules)
        with self._lock:
            self._modules = snapshot
            self._expires_at = self._clock() + self.ttl_seconds
        return snapshot

    def invalidate(self) -> None:
        with self._lock:
            self._modules = None
            self._expires_at = None

    @property
    def is_warm(self) -> bool:
        return self.get() is not None


def _build_default_cache() -> ModuleCache:
    from backoffice.core.config import get_settings

    return ModuleCache(ttl_seconds=get_settings().module_cache_ttl_seconds)


# Global instance
module_cache = _build_default_cache()
