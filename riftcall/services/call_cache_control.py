"""Short-lived store of raw response bodies keyed by request fingerprint."""

from dataclasses import dataclass
import hashlib
import time
from typing import Dict

from riftcall.core.logging import get_logger

logger = get_logger(__name__)


def fingerprint_of(url: str) -> str:
    """Deterministic fingerprint of a fully resolved request URL."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


@dataclass
class CachedCall:
    body: str
    expires_at: float

    def is_expired(self, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        return now >= self.expires_at


class CallCacheControl:
    """Fingerprint -> (raw body, expires_at) map with lazy expiry."""

    def __init__(self) -> None:
        self._calls: Dict[str, CachedCall] = {}

    def _live(self, fingerprint: str) -> CachedCall | None:
        entry = self._calls.get(fingerprint)
        if entry is None:
            return None
        if entry.is_expired():
            del self._calls[fingerprint]
            return None
        return entry

    def is_call_cached(self, fingerprint: str) -> bool:
        return self._live(fingerprint) is not None

    def save_call_data(self, fingerprint: str, raw_body: str, ttl_seconds: int | None) -> bool:
        """Store a body for ttl_seconds.

        Returns:
            False when ttl_seconds is None or not positive, True otherwise.
        """
        if ttl_seconds is None or ttl_seconds <= 0:
            return False
        self._calls[fingerprint] = CachedCall(
            body=raw_body, expires_at=time.time() + ttl_seconds
        )
        logger.debug(f"Cached call for {ttl_seconds}s", extra={"fingerprint": fingerprint})
        return True

    def load_call_data(self, fingerprint: str) -> str | None:
        entry = self._live(fingerprint)
        return entry.body if entry is not None else None

    def cleanup_expired(self) -> int:
        """Drop every expired entry.

        Returns:
            Number of entries removed.
        """
        now = time.time()
        expired = [fp for fp, entry in self._calls.items() if entry.is_expired(now)]
        for fp in expired:
            del self._calls[fp]
        return len(expired)

    def clear(self) -> None:
        self._calls.clear()

    def __len__(self) -> int:
        return len(self._calls)

    def to_dict(self) -> dict:
        now = time.time()
        return {
            fp: {"body": entry.body, "expires_at": entry.expires_at}
            for fp, entry in self._calls.items()
            if not entry.is_expired(now)
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CallCacheControl":
        control = cls()
        for fp, entry in data.items():
            control._calls[fp] = CachedCall(
                body=entry["body"], expires_at=float(entry["expires_at"])
            )
        control.cleanup_expired()
        return control
