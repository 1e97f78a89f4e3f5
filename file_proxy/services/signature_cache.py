"""Short-lived cache of accepted pre-signed URL signatures."""
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict

logger = logging.getLogger(__name__)


class BaseSignatureCache(ABC):
    """Abstract base class for signature caches."""

    @abstractmethod
    def put_signature(self, signature: str) -> None:
        """Insert ``signature`` or refresh its timestamp if already present."""
        pass

    @abstractmethod
    def contains_with_refresh(self, signature: str) -> bool:
        """
        Check whether ``signature`` was accepted within the grace window.

        A hit slides the window forward by refreshing the entry. A miss
        never refreshes or creates an entry; a stale entry may be dropped.

        Returns:
            bool: True if the signature is present and still within the window
        """
        pass

    @abstractmethod
    def purge_expired(self) -> int:
        """Drop stale entries and return how many were removed."""
        pass


class SignatureCache(BaseSignatureCache):
    """
    In-memory signature cache with a sliding grace window.

    All operations run under a single lock so a refresh and an insert for the
    same signature never interleave. Stale entries are removed lazily when
    looked up and in bulk by :meth:`purge_expired`.
    """

    def __init__(self, grace_seconds: float = 60, clock: Callable[[], float] = time.monotonic):
        if grace_seconds < 0:
            raise ValueError("grace_seconds must not be negative")
        self.grace_seconds = grace_seconds
        self._clock = clock
        self._entries: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _is_fresh(self, last_refreshed_at: float, now: float) -> bool:
        return now - last_refreshed_at <= self.grace_seconds

    def put_signature(self, signature: str) -> None:
        with self._lock:
            self._entries[signature] = self._clock()

    def contains_with_refresh(self, signature: str) -> bool:
        with self._lock:
            last_refreshed_at = self._entries.get(signature)
            if last_refreshed_at is None:
                return False
            now = self._clock()
            if not self._is_fresh(last_refreshed_at, now):
                del self._entries[signature]
                return False
            self._entries[signature] = now
            return True

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            stale = [
                signature
                for signature, last_refreshed_at in self._entries.items()
                if not self._is_fresh(last_refreshed_at, now)
            ]
            for signature in stale:
                del self._entries[signature]
        if stale:
            logger.debug(f"Purged {len(stale)} expired signatures from cache")
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, signature: str) -> bool:
        """Membership check without refreshing, for introspection."""
        with self._lock:
            last_refreshed_at = self._entries.get(signature)
            return last_refreshed_at is not None and self._is_fresh(
                last_refreshed_at, self._clock()
            )
