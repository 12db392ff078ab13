"""Network transport used by the call pipeline."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from riftcall.core.config import Settings
from riftcall.core.http_client import create_http_client
from riftcall.core.logging import get_logger
from riftcall.exceptions import TransportFailure

logger = get_logger(__name__)


@dataclass
class TransportResponse:
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""


class Transport(ABC):
    """Sends one request and returns whatever the server answered.

    Error status codes are returned, not raised; only a missing response
    raises TransportFailure.
    """

    @abstractmethod
    async def send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[str] = None,
    ) -> TransportResponse:
        pass

    async def aclose(self) -> None:
        return None


class HttpTransport(Transport):
    """Transport on top of an httpx.AsyncClient.

    Accepts an external client for connection pooling, or creates its own
    from settings. Only a client it created itself is closed by aclose().
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        config: Optional[Settings] = None,
    ):
        self._owns_client = http_client is None
        self._http_client = http_client or create_http_client(config)

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._http_client

    async def send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[str] = None,
    ) -> TransportResponse:
        try:
            response = await self._http_client.request(
                method, url, headers=headers, content=body
            )
        except httpx.HTTPError as e:
            logger.warning(f"Transport error for {method}: {type(e).__name__}: {e}")
            raise TransportFailure(f"Request error occured - {e}") from e

        return TransportResponse(
            status_code=response.status_code,
            # Multi-valued headers are joined with ", " by httpx
            headers={name: value for name, value in response.headers.items()},
            body=response.text,
        )

    async def aclose(self) -> None:
        if self._owns_client and not self._http_client.is_closed:
            await self._http_client.aclose()
