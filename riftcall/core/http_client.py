"""HTTP client construction for the transport layer.

Every transport owns one httpx.AsyncClient: the pipeline keeps a shared one
for direct calls and each async group gets its own, closed on commit.
"""

import logging

import httpx

from riftcall.core.config import Settings, settings


logger = logging.getLogger(__name__)


async def _log_request(request: httpx.Request) -> None:
    # The credential header is never logged
    logger.debug(f"Request: {request.method} {request.url.copy_remove_param('api_key')}")


async def _log_response(response: httpx.Response) -> None:
    request = response.request
    logger.debug(
        f"Response: {request.method} {request.url.path} -> {response.status_code}",
        extra={"status_code": response.status_code, "method": request.method},
    )


def create_http_client(config: Settings | None = None, **kwargs) -> httpx.AsyncClient:
    """Create a new HTTP client with granular timeouts and pool limits.

    The returned client should be closed when done:
        async with create_http_client() as client:
            ...

    Args:
        config: Settings to take defaults from, defaults to the global settings.
        **kwargs: Override default settings. Can include:
            - timeout: Single timeout value (overrides all granular timeouts)
            - connect_timeout, read_timeout, write_timeout, pool_timeout
            - max_connections, max_keepalive_connections, keepalive_expiry
            - verify: TLS verification flag
            - debug: Attach request/response logging event hooks
            - transport: Custom httpx transport (tests use httpx.MockTransport)

    Returns:
        A new httpx.AsyncClient instance.
    """
    config = config or settings

    timeout_override = kwargs.get("timeout")
    if timeout_override is not None:
        timeout = httpx.Timeout(timeout_override)
    else:
        timeout = httpx.Timeout(
            connect=kwargs.get("connect_timeout", config.httpx_connect_timeout),
            read=kwargs.get("read_timeout", config.httpx_read_timeout),
            write=kwargs.get("write_timeout", config.httpx_write_timeout),
            pool=kwargs.get("pool_timeout", config.httpx_pool_timeout),
        )

    client_kwargs = {
        "timeout": timeout,
        "limits": httpx.Limits(
            max_connections=kwargs.get(
                "max_connections", config.httpx_max_connections
            ),
            max_keepalive_connections=kwargs.get(
                "max_keepalive_connections", config.httpx_max_keepalive_connections
            ),
            keepalive_expiry=kwargs.get(
                "keepalive_expiry", config.httpx_keepalive_expiry
            ),
        ),
        "verify": kwargs.get("verify", config.verify_ssl),
    }
    if kwargs.get("transport") is not None:
        client_kwargs["transport"] = kwargs["transport"]
    if kwargs.get("debug", config.debug):
        client_kwargs["event_hooks"] = {
            "request": [_log_request],
            "response": [_log_response],
        }
    return httpx.AsyncClient(**client_kwargs)
