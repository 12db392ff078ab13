"""Recorded responses for offline replay.

A fixture is the (status, headers, body) triple of one response, stored
under a signature derived from the request. With replay enabled the
pipeline answers from fixtures; with recording enabled it stores every
response that has no fixture yet.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import hashlib
import json
import os
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlencode

from riftcall.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Fixture:
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""

    def to_dict(self) -> dict:
        return {
            "status_code": self.status_code,
            "headers": self.headers,
            "body": self.body,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Fixture":
        return cls(
            status_code=int(data["status_code"]),
            headers=dict(data.get("headers") or {}),
            body=data.get("body") or "",
        )


def fixture_signature(
    method: str,
    endpoint: str,
    query: Mapping[str, Any] | None = None,
    body: str | bytes | None = None,
) -> str:
    """Build a file-name safe signature for a request.

    Example:
        >>> fixture_signature("GET", "/lol/status/v4/platform-data", {"a": 1})
        'GET_lol-status-v4-platform-data_a-1'
    """
    path = endpoint.lstrip("/").replace("/", "-").replace(".", "")
    signature = f"{method.upper()}_{path}"

    params = {k: v for k, v in (query or {}).items() if v is not None}
    if params:
        encoded = urlencode(params, doseq=True)
        for old, new in (("&", "_"), ("%26", "_"), ("=", "-"), ("%3D", "-")):
            encoded = encoded.replace(old, new)
        signature = f"{signature}_{encoded}"

    if body:
        raw = body.encode("utf-8") if isinstance(body, str) else body
        signature = f"{signature}_{hashlib.sha256(raw).hexdigest()[:16]}"
    return signature


class FixtureStore(ABC):
    """Storage for recorded responses."""

    @abstractmethod
    def load(self, signature: str) -> Fixture | None:
        pass

    @abstractmethod
    def save(self, signature: str, fixture: Fixture) -> None:
        pass

    @abstractmethod
    def exists(self, signature: str) -> bool:
        pass


class FileFixtureStore(FixtureStore):
    """One JSON file per signature in a directory."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def path_of(self, signature: str) -> Path:
        return self.directory / f"{signature}.json"

    def load(self, signature: str) -> Fixture | None:
        path = self.path_of(signature)
        try:
            return Fixture.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except FileNotFoundError:
            return None
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Fixture file {path} failed to be parsed: {e}")
            return None

    def save(self, signature: str, fixture: Fixture) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_of(signature)
        temp_path = path.with_suffix(".tmp")
        temp_path.write_text(
            json.dumps(fixture.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8"
        )
        os.replace(temp_path, path)
        logger.debug(f"Saved fixture {path.name}")

    def exists(self, signature: str) -> bool:
        return self.path_of(signature).is_file()
