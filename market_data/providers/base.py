"""
Base data source adapter: one uniform fetch contract over heterogeneous providers.

Every fetch follows the same path:
- build a deterministic cache key from the logical request
- return any live cache entry, including a cached None, without network I/O
- on a miss, call the provider once (per key, across threads)
- classify the payload and cache the outcome under its TTL tier
"""

import json
import numbers
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Mapping, Optional

import requests
from loguru import logger

from config.settings import Settings
from utils.net import NetworkClient

from ..cache import CacheService, CacheStatus
from ..errors import ConfigurationError, ProviderError, RateLimitError, TransportError

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS


class Outcome(Enum):
    """Classification of a provider response that reached us."""
    SUCCESS = "success"
    NO_DATA = "no_data"
    RATE_LIMITED = "rate_limited"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class TTLPolicy:
    """Per-provider TTL tiers in milliseconds."""
    success_ms: int = DAY_MS
    no_data_ms: int = HOUR_MS
    rate_limit_ms: int = 15 * 60 * 1000

    def for_outcome(self, outcome: Outcome) -> int:
        if outcome is Outcome.SUCCESS:
            return self.success_ms
        if outcome is Outcome.RATE_LIMITED:
            return self.rate_limit_ms
        # NO_DATA and MALFORMED share the short tier
        return self.no_data_ms


@dataclass(frozen=True)
class FetchResult:
    """A classified provider response. ``data`` is only set on success."""
    outcome: Outcome
    data: Any = None
    detail: str = ""

    @classmethod
    def success(cls, data: Any) -> "FetchResult":
        return cls(Outcome.SUCCESS, data)

    @classmethod
    def no_data(cls, detail: str = "") -> "FetchResult":
        return cls(Outcome.NO_DATA, None, detail)

    @classmethod
    def rate_limited(cls, detail: str = "") -> "FetchResult":
        return cls(Outcome.RATE_LIMITED, None, detail)

    @classmethod
    def malformed(cls, detail: str = "") -> "FetchResult":
        return cls(Outcome.MALFORMED, None, detail)


def build_cache_key(provider: str, resource: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Deterministic cache key for a logical request.

    Parameters are serialized with sorted keys, so identical requests produce
    identical keys regardless of argument order. None-valued parameters are
    dropped. Credentials must never be passed in here.
    """
    clean = {k: v for k, v in (params or {}).items() if v is not None}
    encoded = json.dumps(clean, sort_keys=True, separators=(",", ":"), default=str)
    return f"{provider}:{resource}:{encoded}"


_DATE_FIELD = re.compile(r"(date|time|period|year|month|quarter|day)", re.IGNORECASE)
_IDENTIFIER_FIELD = re.compile(r"(^id$|_id$|^code$|_code$|^symbol$|^name$|label)", re.IGNORECASE)


def _is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, numbers.Number):
        return True
    if isinstance(value, str):
        try:
            float(value)
        except ValueError:
            return False
        return True
    return False


def resolve_value_field(record: Mapping[str, Any], preferred: Optional[str] = None) -> Optional[str]:
    """
    Pick the field of a normalized record that holds "the value".

    With ``preferred`` the field must exist or None is returned. Otherwise:
    1. a field literally named "value" (any case)
    2. the first numeric field that is neither an identifier nor a date
    3. the first non-date field by position
    """
    if preferred:
        return preferred if preferred in record else None

    for field in record:
        if field.lower() == "value":
            return field

    for field, value in record.items():
        if _DATE_FIELD.search(field) or _IDENTIFIER_FIELD.search(field):
            continue
        if _is_numeric(value):
            return field

    for field in record:
        if not _DATE_FIELD.search(field):
            return field
    return None


def to_number(value: Any) -> Any:
    """Coerce numeric strings to float; leave everything else as-is."""
    if isinstance(value, str):
        try:
            return float(value.replace(",", ""))
        except ValueError:
            return value
    return value


class DataSourceAdapter(ABC):
    """
    Abstract base class for provider adapters.

    Provides:
    - Credential resolution and availability reporting
    - Per-provider TTL tiers with environment overrides
    - The shared cached-fetch decision path
    - Freshness lookups and cache statistics
    """

    name: str = ""
    label: str = ""
    base_url: str = ""
    ttl_prefix: str = ""
    api_key_field: Optional[str] = None
    requires_api_key: bool = False
    default_ttls: TTLPolicy = TTLPolicy()

    def __init__(
        self,
        cache: CacheService,
        api_key: Optional[str] = None,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize adapter.

        Args:
            cache: Shared cache service
            api_key: Credential (falls back to the provider's settings field)
            settings: Resolved settings (read from the environment if omitted)
            session: HTTP session (a retrying session is created if omitted)
        """
        settings = settings or Settings()
        self.cache = cache

        if api_key is None and self.api_key_field:
            api_key = settings.api_key(self.api_key_field)
        self.api_key = api_key or None

        defaults = self.default_ttls
        self.ttls = TTLPolicy(
            success_ms=settings.ttl_ms(f"CACHE_TTL_{self.ttl_prefix}_MS", defaults.success_ms),
            no_data_ms=settings.ttl_ms(f"CACHE_TTL_{self.ttl_prefix}_NODATA_MS", defaults.no_data_ms),
            rate_limit_ms=settings.ttl_ms(f"CACHE_TTL_{self.ttl_prefix}_RATELIMIT_MS", defaults.rate_limit_ms),
        )

        self.client = NetworkClient(
            self.base_url,
            provider=self.name,
            session=session,
            max_retries=settings.HTTP_MAX_RETRIES,
            timeout=settings.HTTP_TIMEOUT,
        )

        self._log_startup()

    def _log_startup(self) -> None:
        if self.api_key:
            logger.info(f"{self.label}: service enabled")
        elif self.requires_api_key:
            logger.warning(f"{self.label}: {self.api_key_field} not configured, adapter unavailable")
        elif self.api_key_field:
            logger.info(f"{self.label}: {self.api_key_field} not configured, using anonymous access with reduced limits")
        else:
            logger.info(f"{self.label}: service enabled (public access)")

    # --------------------------------------------------------------- contract

    @abstractmethod
    def fetch_market_size(self, industry_id: str, region: Optional[str] = None, **options: Any) -> Any:
        """Fetch a single normalized "size" figure for a logical request, or None."""

    @abstractmethod
    def fetch_industry_data(self, industry_id: Any, region: Optional[str] = None, **options: Any) -> Any:
        """Fetch the normalized dataset for a logical request, or None."""

    @abstractmethod
    def market_size_key(self, industry_id: str, region: Optional[str] = None, **options: Any) -> str:
        """Cache key that ``fetch_market_size`` reads and writes."""

    @abstractmethod
    def industry_data_key(self, industry_id: Any, region: Optional[str] = None, **options: Any) -> str:
        """Cache key that ``fetch_industry_data`` reads and writes."""

    def is_available(self) -> bool:
        """Whether the adapter can serve real data."""
        return bool(self.api_key) or not self.requires_api_key

    def get_data_freshness(
        self,
        industry_id: Any,
        region: Optional[str] = None,
        operation: str = "market_size",
        **options: Any,
    ) -> Optional[datetime]:
        """
        When the data behind a request was fetched, regardless of staleness.

        Args:
            industry_id, region, **options: Same arguments as the fetch call
            operation: "market_size" or "industry_data"

        Returns:
            UTC timestamp of the cache entry, or None if never fetched
        """
        if operation == "market_size":
            key = self.market_size_key(industry_id, region, **options)
        elif operation == "industry_data":
            key = self.industry_data_key(industry_id, region, **options)
        else:
            raise ValueError(f"Unknown operation {operation!r}")

        entry = self.cache.get_entry(key)
        if entry is None:
            return None
        return datetime.fromtimestamp(entry.timestamp / 1000, tz=timezone.utc)

    def get_cache_status(self) -> CacheStatus:
        return self.cache.get_stats()

    # ---------------------------------------------------------------- helpers

    def cache_key(self, resource: str, params: Optional[Mapping[str, Any]] = None) -> str:
        return build_cache_key(self.name, resource, params)

    def require_credentials(self) -> None:
        """Fail fast when a required credential is missing."""
        if not self.is_available():
            raise ConfigurationError(
                f"{self.api_key_field} is not configured; {self.label} adapter is unavailable"
            )

    def _fetch_cached(
        self,
        key: str,
        request: Callable[[], tuple[int, Any]],
        classify: Callable[[int, Any], FetchResult],
    ) -> Any:
        """
        Shared decision path for every cached fetch.

        Args:
            key: Cache key of the logical request
            request: Performs exactly one upstream call, returning (status, body)
            classify: Maps (status, body) to a FetchResult; may raise ProviderError.
                Any other error while reading the body is treated as MALFORMED

        Returns:
            Normalized data, or None for a cached or fresh negative outcome

        Raises:
            ConfigurationError: Required credential missing
            TransportError: Network failure, error status or provider error
        """
        self.require_credentials()

        entry = self.cache.lookup(key)
        if entry is not None:
            return entry.data

        with self.cache.single_flight(key):
            # Another thread may have filled the key while we waited
            entry = self.cache.peek(key)
            if entry is not None:
                return entry.data

            try:
                status, payload = request()
            except RateLimitError:
                result = FetchResult.rate_limited("HTTP 429")
            except ProviderError:
                raise
            except TransportError as e:
                logger.error(f"{self.label}: request failed for {key}: {e} (status={e.status_code}, url={e.url})")
                if e.status_code is not None and isinstance(e.body, (dict, list)):
                    raise ProviderError(
                        f"{self.label} API Error: {e.status_code} - {json.dumps(e.body, separators=(',', ':'))}",
                        provider=self.name,
                        status_code=e.status_code,
                        url=e.url,
                        body=e.body,
                    ) from e
                raise
            else:
                try:
                    result = classify(status, payload)
                except ProviderError:
                    raise
                except (AttributeError, TypeError, KeyError, IndexError, ValueError) as e:
                    result = FetchResult.malformed(f"unreadable payload: {e}")

            self._store(key, result)
            return result.data

    def _store(self, key: str, result: FetchResult) -> None:
        ttl = self.ttls.for_outcome(result.outcome)
        if result.outcome is Outcome.SUCCESS:
            logger.info(f"{self.label}: fetched {key} (ttl={ttl}ms)")
        elif result.outcome is Outcome.MALFORMED:
            logger.error(f"{self.label}: unexpected response shape for {key}: {result.detail} (caching None for {ttl}ms)")
        else:
            logger.warning(f"{self.label}: {result.outcome.value} for {key}: {result.detail} (caching None for {ttl}ms)")
        self.cache.set(key, result.data if result.outcome is Outcome.SUCCESS else None, ttl)

    def _provider_error(self, message: str, body: Any = None) -> ProviderError:
        return ProviderError(f"{self.label} API Error: {message}", provider=self.name, body=body)
