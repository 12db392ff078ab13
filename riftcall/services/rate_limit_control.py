"""Client-side mirror of server-declared rate limits.

The server announces its limits and current usage on every response:

    X-App-Rate-Limit:          "20:1,100:120"   (limit:window seconds)
    X-App-Rate-Limit-Count:    "3:1,57:120"     (count:window seconds)
    X-Method-Rate-Limit:       "2000:10"
    X-Method-Rate-Limit-Count: "1:10"

Application limits apply per (credential, region); method limits apply per
(credential, region, resource). Counts are overwritten from the headers on
every response, never incremented locally, so the mirror converges on the
server's view even when other processes share the credential.

Credentials are only held as a SHA-256 digest so snapshots never contain
a usable key.
"""

from dataclasses import dataclass, field
import hashlib
import time
from typing import Dict, List

from riftcall.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class WindowBucket:
    """One rate-limit window as last reported by the server.

    Attributes:
        limit: Calls allowed inside the window
        window: Window length in seconds
        count: Calls already made inside the window
        observed_at: Unix timestamp of the last count update
    """
    limit: int
    window: int
    count: int = field(default=0)
    observed_at: float = field(default=0.0)

    def admits(self, now: float | None = None) -> bool:
        """Whether one more call fits into this window."""
        now = time.time() if now is None else now
        if now - self.observed_at >= self.window:
            # Window rolled over since the count was observed
            return True
        return self.count < self.limit

    def to_dict(self) -> dict:
        return {
            "limit": self.limit,
            "window": self.window,
            "count": self.count,
            "observed_at": self.observed_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WindowBucket":
        return cls(
            limit=int(data["limit"]),
            window=int(data["window"]),
            count=max(0, int(data.get("count", 0))),
            observed_at=float(data.get("observed_at", 0.0)),
        )


def parse_window_header(value: str | None) -> List[tuple[int, int]]:
    """Parse a "N:W,N:W" header into ordered (N, W) pairs.

    Malformed pairs are skipped.
    """
    if not value:
        return []
    pairs = []
    for item in value.split(","):
        text = item.strip()
        if not text:
            continue
        first, sep, second = text.partition(":")
        if not sep:
            logger.debug(f"Skipping malformed rate limit entry: {text!r}")
            continue
        try:
            pairs.append((int(first), int(second)))
        except ValueError:
            logger.debug(f"Skipping malformed rate limit entry: {text!r}")
    return pairs


def credential_digest(credential: str) -> str:
    return hashlib.sha256(credential.encode()).hexdigest()[:16]


Buckets = List[WindowBucket]


class RateLimitControl:
    """Admission control synchronized against server rate-limit headers."""

    def __init__(self) -> None:
        # digest -> region -> buckets
        self._app: Dict[str, Dict[str, Buckets]] = {}
        # digest -> region -> resource -> buckets
        self._method: Dict[str, Dict[str, Dict[str, Buckets]]] = {}

    def _app_buckets(self, credential: str, region: str) -> Buckets:
        return self._app.get(credential_digest(credential), {}).get(region, [])

    def _method_buckets(self, credential: str, region: str, resource: str) -> Buckets:
        return (
            self._method.get(credential_digest(credential), {})
            .get(region, {})
            .get(resource, [])
        )

    @staticmethod
    def _redefine(current: Buckets, header: str) -> Buckets:
        known = {(b.limit, b.window): b for b in current}
        buckets = []
        for limit, window in parse_window_header(header):
            # Keep the count of windows whose definition did not change
            buckets.append(known.get((limit, window)) or WindowBucket(limit, window))
        return buckets

    def register_limits(
        self,
        credential: str,
        region: str,
        resource: str,
        app_limit_header: str | None,
        method_limit_header: str | None,
    ) -> None:
        """Replace bucket definitions from the limit headers.

        A None header leaves its scope untouched.
        """
        digest = credential_digest(credential)
        if app_limit_header is not None:
            regions = self._app.setdefault(digest, {})
            regions[region] = self._redefine(regions.get(region, []), app_limit_header)
        if method_limit_header is not None:
            resources = self._method.setdefault(digest, {}).setdefault(region, {})
            resources[resource] = self._redefine(
                resources.get(resource, []), method_limit_header
            )

    @staticmethod
    def _synchronize(buckets: Buckets, header: str, now: float) -> None:
        by_window = {b.window: b for b in buckets}
        for count, window in parse_window_header(header):
            bucket = by_window.get(window)
            if bucket is None:
                continue
            bucket.count = max(0, count)
            bucket.observed_at = now

    def register_call(
        self,
        credential: str,
        region: str,
        resource: str,
        app_count_header: str | None,
        method_count_header: str | None,
    ) -> None:
        """Overwrite bucket counts from the count headers."""
        now = time.time()
        if app_count_header is not None:
            self._synchronize(self._app_buckets(credential, region), app_count_header, now)
        if method_count_header is not None:
            self._synchronize(
                self._method_buckets(credential, region, resource), method_count_header, now
            )

    def can_call(
        self,
        credential: str,
        region: str,
        resource: str,
        endpoint: str | None = None,
    ) -> bool:
        """Whether a call fits into every known app and method window.

        The endpoint is informational only; method limits are tracked per
        resource.
        """
        now = time.time()
        for bucket in self._app_buckets(credential, region):
            if not bucket.admits(now):
                logger.debug(
                    f"App limit {bucket.limit}:{bucket.window} exhausted",
                    extra={"region": region, "resource": resource, "endpoint": endpoint},
                )
                return False
        for bucket in self._method_buckets(credential, region, resource):
            if not bucket.admits(now):
                logger.debug(
                    f"Method limit {bucket.limit}:{bucket.window} exhausted",
                    extra={"region": region, "resource": resource, "endpoint": endpoint},
                )
                return False
        return True

    def get_current_status(self, credential: str, region: str, resource: str) -> dict:
        """Read-only snapshot of the buckets that apply to a call."""
        return {
            "app": [b.to_dict() for b in self._app_buckets(credential, region)],
            "method": [
                b.to_dict() for b in self._method_buckets(credential, region, resource)
            ],
        }

    def clear(self) -> None:
        self._app.clear()
        self._method.clear()

    def to_dict(self) -> dict:
        return {
            "app": {
                digest: {
                    region: [b.to_dict() for b in buckets]
                    for region, buckets in regions.items()
                }
                for digest, regions in self._app.items()
            },
            "method": {
                digest: {
                    region: {
                        resource: [b.to_dict() for b in buckets]
                        for resource, buckets in resources.items()
                    }
                    for region, resources in regions.items()
                }
                for digest, regions in self._method.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RateLimitControl":
        control = cls()
        for digest, regions in data.get("app", {}).items():
            control._app[digest] = {
                region: [WindowBucket.from_dict(b) for b in buckets]
                for region, buckets in regions.items()
            }
        for digest, regions in data.get("method", {}).items():
            control._method[digest] = {
                region: {
                    resource: [WindowBucket.from_dict(b) for b in buckets]
                    for resource, buckets in resources.items()
                }
                for region, resources in regions.items()
            }
        return control
