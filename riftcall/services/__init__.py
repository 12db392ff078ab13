"""Services package for the client.

This package provides:
- Rate limit mirroring (RateLimitControl)
- Call caching (CallCacheControl)
- Response classification
- Fixture replay and recording
- Transports, async groups and result extensions
- The call pipeline tying them together
"""

from riftcall.services.async_batcher import AsyncBatcher, PendingCall
from riftcall.services.call_cache_control import CallCacheControl, fingerprint_of
from riftcall.services.classifier import classify, error_for
from riftcall.services.extensions import (
    Extension,
    ExtensionRegistry,
    get_extension_registry,
    register_extension,
    reset_extension_registry,
)
from riftcall.services.fixtures import FileFixtureStore, Fixture, FixtureStore, fixture_signature
from riftcall.services.pipeline import CallContext, CallPipeline, CallResult
from riftcall.services.rate_limit_control import RateLimitControl, WindowBucket
from riftcall.services.transport import HttpTransport, Transport, TransportResponse

__all__ = [
    "AsyncBatcher",
    "PendingCall",
    "CallCacheControl",
    "fingerprint_of",
    "classify",
    "error_for",
    "Extension",
    "ExtensionRegistry",
    "get_extension_registry",
    "register_extension",
    "reset_extension_registry",
    "FileFixtureStore",
    "Fixture",
    "FixtureStore",
    "fixture_signature",
    "CallContext",
    "CallPipeline",
    "CallResult",
    "RateLimitControl",
    "WindowBucket",
    "HttpTransport",
    "Transport",
    "TransportResponse",
]
