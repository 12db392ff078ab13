"""Call pipeline.

Every outbound call goes through the same steps:

    before hooks -> dispatch (fixture | call cache | network) -> classify
                 -> after hooks -> result or error

The first before hook is the rate-limit admission check, the first after
hooks keep the rate-limit mirror, call cache, fixtures and the persisted
snapshots up to date. User hooks run after the built-in ones, in
registration order. After hooks always run before a classification error
is raised.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
import json
import time
from typing import Any, Callable, Dict, Iterable, Iterator, Optional, Type
from urllib.parse import urlencode
import warnings

import httpx

from riftcall.core.cache import CacheBackend, create_cache
from riftcall.core.config import KeyInclude, Settings, settings as default_settings
from riftcall.core.logging import get_log_context, get_logger
from riftcall.definitions.platform import Platform, RegionResolver
from riftcall.exceptions import (
    EndpointDeprecationWarning,
    FixtureMissing,
    RequestAborted,
    SettingsError,
)
from riftcall.services.async_batcher import AsyncBatcher, Callback, PendingCall
from riftcall.services.call_cache_control import CallCacheControl, fingerprint_of
from riftcall.services.classifier import error_for
from riftcall.services.extensions import (
    Extension,
    ExtensionRegistry,
    get_extension_registry,
)
from riftcall.services.fixtures import (
    FileFixtureStore,
    Fixture,
    FixtureStore,
    fixture_signature,
)
from riftcall.services.rate_limit_control import RateLimitControl
from riftcall.services.transport import HttpTransport, Transport, TransportResponse

logger = get_logger(__name__)

HEADER_APP_RATELIMIT = "X-App-Rate-Limit"
HEADER_APP_RATELIMIT_COUNT = "X-App-Rate-Limit-Count"
HEADER_METHOD_RATELIMIT = "X-Method-Rate-Limit"
HEADER_METHOD_RATELIMIT_COUNT = "X-Method-Rate-Limit-Count"
HEADER_DEPRECATION = "X-Riot-Deprecated"
HEADER_TOKEN = "X-Riot-Token"

RATE_LIMIT_CACHE_KEY = "rate-limit.cache"
CALL_CACHE_KEY = "api-calls.cache"

BeforeHook = Callable[["CallPipeline", "CallContext"], Optional[bool]]
AfterHook = Callable[["CallPipeline", "CallContext", "CallResult"], Any]


@dataclass
class CallContext:
    """Per-call state, built once before the hooks run."""
    method: str
    endpoint: str
    resource: str
    endpoint_template: str
    region: str
    platform: str
    url: str
    fingerprint: str
    signature: str
    credential: str = field(repr=False)
    query: Dict[str, Any] = field(default_factory=dict)
    body: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict, repr=False)
    key_type: Optional[str] = None
    object_type: Optional[str] = None
    group: Optional[str] = None
    source: Optional[str] = None  # fixture | cache | network, set on dispatch

    @property
    def rate_limit_resource(self) -> str:
        """Key that method limits are tracked under."""
        return f"{self.resource}{self.endpoint_template}"


@dataclass
class CallResult:
    status_code: int
    headers: Dict[str, str]
    body: str
    data: Any = None
    extension: Optional[Extension] = field(default=None, repr=False)

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        return httpx.Headers(self.headers).get(name)

    def invoke(self, capability: str, *args, **kwargs) -> Any:
        """Dispatch to a capability of the attached extension."""
        if self.extension is None:
            raise AttributeError("Result has no extension attached")
        return self.extension.dispatch(capability, *args, **kwargs)


def _decode(body: str) -> Any:
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None


class CallPipeline:
    """Orchestrates admission control, caching, fixtures and batching.

    Example:
        >>> async with CallPipeline(Settings(api_key="RGAPI-...", region="euw")) as api:
        ...     result = await api.call(
        ...         "/lol/status/v4/platform-data", resource="v4:lol-status"
        ...     )
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        *,
        transport: Optional[Transport] = None,
        transport_factory: Optional[Callable[[], Transport]] = None,
        cache: Optional[CacheBackend] = None,
        fixtures: Optional[FixtureStore] = None,
        resolver: Optional[RegionResolver] = None,
        before_call: Iterable[BeforeHook] = (),
        after_call: Iterable[AfterHook] = (),
        extensions: Optional[Dict[str, Type[Extension]]] = None,
    ):
        self.config = config or default_settings
        if not self.config.api_key:
            raise SettingsError("Required settings parameter 'api_key' is missing!")
        if not self.config.region:
            raise SettingsError("Required settings parameter 'region' is missing!")

        self.resolver = resolver or Platform()
        self._region = self.resolver.normalize(self.config.region)
        self._region_stack: list[str] = []

        self._before_call = self._validate_hooks("before_call", before_call)
        self._after_call = self._validate_hooks("after_call", after_call)

        self.rlc: Optional[RateLimitControl] = (
            RateLimitControl() if self.config.cache_ratelimit else None
        )
        self.ccc: Optional[CallCacheControl] = (
            CallCacheControl() if self.config.cache_calls else None
        )
        self._call_cache_ttl = self.config.call_cache_snapshot_ttl
        self._setup_call_lengths()

        self.cache: Optional[CacheBackend] = cache
        if self.cache is None and (self.rlc is not None or self.ccc is not None):
            self.cache = create_cache(self.config.cache_provider, self.config)

        self.fixtures: Optional[FixtureStore] = fixtures
        if self.fixtures is None and (self.config.use_fixtures or self.config.save_fixtures):
            self.fixtures = FileFixtureStore(self.config.fixtures_dir)

        self.extensions: ExtensionRegistry = (
            ExtensionRegistry(extensions) if extensions is not None else get_extension_registry()
        )

        self._transport_factory = transport_factory or (
            lambda: HttpTransport(config=self.config)
        )
        self._transport = transport
        self._owns_transport = transport is None
        self.batcher = AsyncBatcher(self._transport_factory)

    @staticmethod
    def _validate_hooks(name: str, hooks: Iterable[Any]) -> list:
        if callable(hooks):
            hooks = [hooks]
        validated = []
        for hook in hooks:
            if not callable(hook):
                raise SettingsError(f"Provided value of '{name}' option is not valid.")
            validated.append(hook)
        return validated

    def _setup_call_lengths(self) -> None:
        lengths = self.config.cache_calls_length
        if isinstance(lengths, dict):
            configured = [v for v in lengths.values() if v]
            if configured:
                self._call_cache_ttl = max(self._call_cache_ttl, *configured)
        elif isinstance(lengths, int) and lengths > 0:
            self._call_cache_ttl = max(self._call_cache_ttl, lengths)

    def call_length_of(self, resource: str) -> Optional[int]:
        """Seconds a successful call of a resource stays cached, or None."""
        lengths = self.config.cache_calls_length
        if isinstance(lengths, dict):
            return lengths.get(resource)
        return lengths

    # Region management

    @property
    def region(self) -> str:
        """The region calls go to when no per-call region is given."""
        return self._region_stack[-1] if self._region_stack else self._region

    def set_region(self, region: str) -> None:
        self._region = self.resolver.normalize(region)

    def set_temporary_region(self, region: str) -> None:
        self._region_stack.append(self.resolver.normalize(region))

    def unset_temporary_region(self) -> None:
        if self._region_stack:
            self._region_stack.pop()

    def set_temporary_continent_region(self, region: Optional[str] = None) -> None:
        """Temporarily route to the continent serving a region."""
        self._region_stack.append(self.resolver.continent_of(region or self.region))

    @contextmanager
    def temporary_region(self, region: str) -> Iterator[str]:
        self.set_temporary_region(region)
        try:
            yield self.region
        finally:
            self.unset_temporary_region()

    # Call construction

    def _credential(self, key_type: Optional[str]) -> str:
        if key_type and not self.config.extra_api_keys.get(key_type):
            raise SettingsError(f"Required settings parameter '{key_type}' is missing!")
        return self.config.credential(key_type)

    def build_context(
        self,
        endpoint: str,
        method: str = "GET",
        *,
        resource: str = "",
        endpoint_template: Optional[str] = None,
        query: Optional[Dict[str, Any]] = None,
        body: Any = None,
        region: Optional[str] = None,
        key_type: Optional[str] = None,
        object_type: Optional[str] = None,
    ) -> CallContext:
        """Resolve everything a call needs before any hook runs."""
        method = method.upper()
        active_region = self.resolver.normalize(region) if region else self.region
        platform = self.resolver.platform_of(active_region)
        credential = self._credential(key_type)

        params = {k: v for k, v in (query or {}).items() if v is not None}
        url_params = dict(params)
        headers: Dict[str, str] = {}
        if self.config.key_include == KeyInclude.QUERY:
            url_params["api_key"] = credential
        else:
            headers[HEADER_TOKEN] = credential

        if body is not None and not isinstance(body, (str, bytes)):
            body = json.dumps(body)
        if isinstance(body, bytes):
            body = body.decode("utf-8")
        if body is not None:
            headers["Content-Type"] = "application/json"

        url = f"https://{platform}{self.config.api_base_url}{endpoint}"
        if url_params:
            url = f"{url}?{urlencode(url_params, doseq=True)}"

        return CallContext(
            method=method,
            endpoint=endpoint,
            resource=resource,
            endpoint_template=endpoint_template or "",
            region=active_region,
            platform=platform,
            url=url,
            fingerprint=fingerprint_of(url),
            signature=fixture_signature(method, endpoint, params, body),
            credential=credential,
            query=params,
            body=body,
            headers=headers,
            key_type=key_type,
            object_type=object_type,
        )

    # Hooks

    def _before(self, ctx: CallContext) -> None:
        if self.rlc is not None and not self.rlc.can_call(
            ctx.credential, ctx.region, ctx.rate_limit_resource, ctx.endpoint
        ):
            logger.info(
                "Call rejected by rate limit admission",
                extra=get_log_context(
                    region=ctx.region, resource=ctx.rate_limit_resource, endpoint=ctx.endpoint
                ),
            )
            raise RequestAborted("API call rate limit would be exceeded by this call.")

        for hook in self._before_call:
            if hook(self, ctx) is False:
                raise RequestAborted("Request terminated by before-call hook.")

    async def _after(self, ctx: CallContext, result: CallResult) -> None:
        if self.rlc is not None:
            self.rlc.register_limits(
                ctx.credential,
                ctx.region,
                ctx.rate_limit_resource,
                result.header(HEADER_APP_RATELIMIT),
                result.header(HEADER_METHOD_RATELIMIT),
            )
            self.rlc.register_call(
                ctx.credential,
                ctx.region,
                ctx.rate_limit_resource,
                result.header(HEADER_APP_RATELIMIT_COUNT),
                result.header(HEADER_METHOD_RATELIMIT_COUNT),
            )

        if (
            self.ccc is not None
            and 200 <= result.status_code < 300
            and not self.ccc.is_call_cached(ctx.fingerprint)
        ):
            self.ccc.save_call_data(ctx.fingerprint, result.body, self.call_length_of(ctx.resource))

        if (
            self.fixtures is not None
            and self.config.save_fixtures
            and not self.fixtures.exists(ctx.signature)
        ):
            self.fixtures.save(
                ctx.signature,
                Fixture(status_code=result.status_code, headers=result.headers, body=result.body),
            )

        if self.rlc is not None or self.ccc is not None:
            await self.save_cache()

        for hook in self._after_call:
            hook(self, ctx, result)

    # Dispatch

    async def _fetch(self, ctx: CallContext, transport: Transport) -> TransportResponse:
        if self.fixtures is not None and self.config.use_fixtures:
            fixture = self.fixtures.load(ctx.signature)
            if fixture is not None:
                ctx.source = "fixture"
                return TransportResponse(fixture.status_code, fixture.headers, fixture.body)
            if not self.config.save_fixtures:
                raise FixtureMissing(f"No fixture available for call '{ctx.signature}'.")

        if self.ccc is not None and self.ccc.is_call_cached(ctx.fingerprint):
            ctx.source = "cache"
            return TransportResponse(200, {}, self.ccc.load_call_data(ctx.fingerprint) or "")

        ctx.source = "network"
        return await transport.send(ctx.method, ctx.url, ctx.headers, ctx.body)

    def _warn_deprecation(self, ctx: CallContext, result: CallResult) -> None:
        deprecated = result.header(HEADER_DEPRECATION)
        if not deprecated:
            return
        message = (
            f"Used endpoint '{ctx.endpoint}' is being deprecated! "
            f"This endpoint will stop working on {deprecated}."
        )
        logger.warning(message, extra=get_log_context(region=ctx.region, endpoint=ctx.endpoint))
        warnings.warn(message, EndpointDeprecationWarning, stacklevel=3)

    async def _dispatch(self, ctx: CallContext, transport: Transport) -> CallResult:
        started = time.perf_counter()
        response = await self._fetch(ctx, transport)
        result = CallResult(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.body,
            data=_decode(response.body),
        )
        error = error_for(result.status_code, result.body)

        self._warn_deprecation(ctx, result)
        await self._after(ctx, result)

        log_context = get_log_context(
            region=ctx.region,
            resource=ctx.resource,
            endpoint=ctx.endpoint,
            method=ctx.method,
            status_code=result.status_code,
            fingerprint=ctx.fingerprint,
            group=ctx.group,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            dispatch=ctx.source,
        )
        if error is not None:
            logger.info(f"Call failed: {error.message}", extra=log_context)
            raise error
        logger.debug("Call succeeded", extra=log_context)

        if ctx.object_type:
            result.extension = self.extensions.extend(ctx.object_type, result.data, self)
        return result

    def _get_transport(self) -> Transport:
        if self._transport is None:
            self._transport = self._transport_factory()
        return self._transport

    async def call(
        self,
        endpoint: str,
        method: str = "GET",
        *,
        resource: str = "",
        endpoint_template: Optional[str] = None,
        query: Optional[Dict[str, Any]] = None,
        body: Any = None,
        region: Optional[str] = None,
        key_type: Optional[str] = None,
        object_type: Optional[str] = None,
        batch: Optional[PendingCall] = None,
    ) -> CallResult | PendingCall:
        """Make one call.

        Args:
            endpoint: Literal endpoint path, e.g. "/lol/summoner/v4/summoners/abc"
            method: HTTP method
            resource: "version:resource" group of the endpoint, used for
                method limits and call cache lengths
            endpoint_template: Optional endpoint with placeholders that splits
                method limits of a resource further; by default method
                limits are kept per resource only
            query: Query parameters; lists repeat, None values are dropped
            body: Request body, JSON-encoded unless already a string
            region: Region for this call only
            key_type: Name of an alternative credential from extra_api_keys
            object_type: Result object type to attach a registered extension for
            batch: Handle from enqueue(); the call then runs in its group

        Returns:
            The CallResult, or the handle when batch is given.

        Raises:
            RequestAborted: A before hook or the rate-limit check vetoed the call.
            FixtureMissing: Replay is on and no fixture exists.
            ApiError: Any classified error status or transport failure.
        """
        ctx = self.build_context(
            endpoint,
            method,
            resource=resource,
            endpoint_template=endpoint_template,
            query=query,
            body=body,
            region=region,
            key_type=key_type,
            object_type=object_type,
        )

        if batch is not None:
            transport = self.batcher.transport_of(batch)
            if batch.attached:
                raise RuntimeError("PendingCall handles are single-use")
            ctx.group = batch.group
            self._before(ctx)
            return self.batcher.attach(batch, self._dispatch(ctx, transport))

        self._before(ctx)
        return await self._dispatch(ctx, self._get_transport())

    # Async groups

    def enqueue(
        self,
        group: str = "default",
        on_fulfilled: Optional[Callback] = None,
        on_rejected: Optional[Callback] = None,
    ) -> PendingCall:
        return self.batcher.enqueue(group, on_fulfilled, on_rejected)

    async def commit(self, group: str = "default") -> list:
        return await self.batcher.commit(group)

    # Cache persistence and diagnostics

    def get_current_limits(
        self,
        resource: str,
        endpoint_template: str = "",
        region: Optional[str] = None,
        key_type: Optional[str] = None,
    ) -> dict:
        if self.rlc is None:
            return {}
        return self.rlc.get_current_status(
            self._credential(key_type),
            self.resolver.normalize(region) if region else self.region,
            f"{resource}{endpoint_template}",
        )

    async def load_cache(self) -> bool:
        """Restore the control snapshots from the cache store.

        Returns:
            True if at least one snapshot was loaded.
        """
        if self.cache is None:
            return False
        loaded = False
        if self.rlc is not None:
            snapshot = await self._load_snapshot(RATE_LIMIT_CACHE_KEY)
            if snapshot is not None:
                self.rlc = RateLimitControl.from_dict(snapshot)
                loaded = True
        if self.ccc is not None:
            snapshot = await self._load_snapshot(CALL_CACHE_KEY)
            if snapshot is not None:
                self.ccc = CallCacheControl.from_dict(snapshot)
                loaded = True
        return loaded

    async def _load_snapshot(self, key: str) -> Optional[dict]:
        raw = await self.cache.get(key)
        if raw is None:
            return None
        try:
            snapshot = json.loads(raw)
        except ValueError:
            logger.warning(f"Ignoring unreadable cache snapshot '{key}'")
            return None
        if not isinstance(snapshot, dict):
            logger.warning(f"Ignoring unreadable cache snapshot '{key}'")
            return None
        return snapshot

    async def save_cache(self) -> bool:
        """Persist both control snapshots with one deferred commit."""
        if self.cache is None:
            return False
        if self.rlc is not None:
            self.cache.save_deferred(
                RATE_LIMIT_CACHE_KEY,
                json.dumps(self.rlc.to_dict()).encode("utf-8"),
                self.config.ratelimit_snapshot_ttl,
            )
        if self.ccc is not None:
            self.cache.save_deferred(
                CALL_CACHE_KEY,
                json.dumps(self.ccc.to_dict()).encode("utf-8"),
                self._call_cache_ttl,
            )
        return await self.cache.commit()

    async def clear_cache(self) -> None:
        if self.rlc is not None:
            self.rlc.clear()
        if self.ccc is not None:
            self.ccc.clear()
        if self.cache is not None:
            await self.cache.clear()

    async def aclose(self) -> None:
        await self.batcher.aclose()
        if self._transport is not None and self._owns_transport:
            await self._transport.aclose()
            self._transport = None
        if self.cache is not None:
            await self.cache.close()

    async def __aenter__(self) -> "CallPipeline":
        await self.load_cache()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if self.rlc is not None or self.ccc is not None:
                await self.save_cache()
        finally:
            await self.aclose()
