import json
from enum import Enum
from pathlib import Path
import tempfile
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class KeyInclude(str, Enum):
    """Where the API key travels on each request."""
    HEADER = "header"
    QUERY = "query"


def _parse_cache_lengths(raw: Any) -> int | dict[str, int | None] | None:
    if raw is None or isinstance(raw, (int, dict)):
        return raw

    raw = str(raw).strip()
    if not raw:
        return None
    if raw.isdigit():
        return int(raw)

    # Environment values arrive as text; accept a JSON object mapping
    # resources to lengths.
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"cache_calls_length is not valid: {raw!r}") from e
    if not isinstance(parsed, (int, dict)):
        raise ValueError(f"cache_calls_length is not valid: {raw!r}")
    return parsed


class Settings(BaseSettings):
    """Client settings loaded from environment variables.

    All settings can be configured via RIFTCALL_* environment variables
    or a .env file.
    """

    # Credentials and routing. Both are required before a pipeline is built.
    api_key: str = ""
    extra_api_keys: dict[str, str] = {}  # e.g. {"tournament": "RGAPI-..."}
    region: str = ""
    key_include: KeyInclude = KeyInclude.HEADER

    api_base_url: str = ".api.riotgames.com"
    verify_ssl: bool = True
    debug: bool = False  # Logs every request/response at DEBUG

    # Cache store
    cache_provider: str = "file"  # memory | redis | file, or a registered tag
    cache_namespace: str = "riftcall-default"
    cache_dir: Path = Path(tempfile.gettempdir()) / "riftcall"
    redis_url: str = "redis://localhost:6379/0"

    # Call pipeline features
    cache_ratelimit: bool = False  # Mirror server rate-limit headers and gate calls
    cache_calls: bool = False  # Keep raw response bodies per request fingerprint
    # Seconds to keep call results: one value for every resource, or a
    # mapping of "version:resource" to seconds (None disables caching).
    cache_calls_length: Annotated[
        int | dict[str, int | None] | None, NoDecode
    ] = None
    use_fixtures: bool = False  # Replay recorded responses
    save_fixtures: bool = False  # Record responses that have no fixture yet
    fixtures_dir: Path = Path("tests") / "fixtures"

    # Lifetime of the persisted control snapshots
    ratelimit_snapshot_ttl: int = 3600
    call_cache_snapshot_ttl: int = 60

    # HTTP Client connection pool settings
    httpx_connect_timeout: float = 10.0  # Time to establish connection
    httpx_read_timeout: float = 30.0  # Time to read response data
    httpx_write_timeout: float = 10.0  # Time to send request data
    httpx_pool_timeout: float = 5.0  # Time to acquire connection from pool
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    @field_validator("cache_calls_length", mode="before")
    @classmethod
    def decode_cache_calls_length(cls, v: Any) -> int | dict[str, int | None] | None:
        return _parse_cache_lengths(v)

    @field_validator("cache_calls_length")
    @classmethod
    def validate_cache_calls_length(
        cls, v: int | dict[str, int | None] | None
    ) -> int | dict[str, int | None] | None:
        """Validate per-resource lengths are keyed by "version:resource"."""
        if v is None:
            return v
        if isinstance(v, int):
            if v < 0:
                raise ValueError("cache_calls_length must not be negative")
            return v
        for resource, length in v.items():
            # The colon must separate a non-empty version from the resource name
            if resource.find(":") < 1:
                raise ValueError(
                    f"cache_calls_length key '{resource}' is not valid, expected 'version:resource'"
                )
            if length is not None and length < 0:
                raise ValueError("cache_calls_length must not be negative")
        return v

    @field_validator("ratelimit_snapshot_ttl", "call_cache_snapshot_ttl")
    @classmethod
    def validate_snapshot_ttl_positive(cls, v: int) -> int:
        """Validate snapshot lifetimes are positive."""
        if v < 1:
            raise ValueError("Snapshot TTL values must be at least 1")
        return v

    @field_validator("httpx_max_connections", "httpx_max_keepalive_connections")
    @classmethod
    def validate_pool_size_positive(cls, v: int) -> int:
        """Validate pool size values are positive."""
        if v < 1:
            raise ValueError("pool size values must be at least 1")
        return v

    @field_validator(
        "httpx_connect_timeout",
        "httpx_read_timeout",
        "httpx_write_timeout",
        "httpx_pool_timeout",
    )
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("text", "structured", "json"):
            raise ValueError("log_format must be one of: text, structured, json")
        return v

    model_config = SettingsConfigDict(
        env_prefix="RIFTCALL_", env_file=".env", extra="ignore"
    )

    def credential(self, key_type: str | None = None) -> str:
        """Return the API key for key_type, falling back to the default key."""
        if key_type and self.extra_api_keys.get(key_type):
            return self.extra_api_keys[key_type]
        return self.api_key


# Global settings instance
settings = Settings()
