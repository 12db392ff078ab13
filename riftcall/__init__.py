"""riftcall: call orchestration for rate-limited, region-partitioned JSON APIs.

This package provides:
- Call pipeline with hooks (CallPipeline, CallResult)
- Rate-limit mirroring from server headers (RateLimitControl)
- Response caching per request fingerprint (CallCacheControl)
- Fixture replay and recording (FileFixtureStore)
- Named async call groups (AsyncBatcher)
"""

from riftcall.core.config import KeyInclude, Settings, settings
from riftcall.definitions.platform import Platform, Region
from riftcall.exceptions import ApiError, RequestAborted, RequestError, ServerError, SettingsError
from riftcall.services.pipeline import CallContext, CallPipeline, CallResult

__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "CallContext",
    "CallPipeline",
    "CallResult",
    "KeyInclude",
    "Platform",
    "Region",
    "RequestAborted",
    "RequestError",
    "ServerError",
    "Settings",
    "SettingsError",
    "settings",
]
