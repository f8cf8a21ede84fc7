"""
Composition root: build the cache and the adapters once and hand them out.
"""

from typing import Iterable, Optional

import requests
from loguru import logger

from config.settings import Settings

from .cache import CacheService, PersistenceService
from .providers import (
    AlphaVantageAdapter,
    BLSAdapter,
    CensusAdapter,
    DataSourceAdapter,
    FREDAdapter,
    IMFAdapter,
    NasdaqDataLinkAdapter,
    OECDAdapter,
    WorldBankAdapter,
)

ADAPTER_CLASSES: tuple[type[DataSourceAdapter], ...] = (
    AlphaVantageAdapter,
    FREDAdapter,
    WorldBankAdapter,
    BLSAdapter,
    CensusAdapter,
    OECDAdapter,
    IMFAdapter,
    NasdaqDataLinkAdapter,
)


def build_cache(settings: Settings, write_behind: bool = True) -> CacheService:
    """Create the persistence tier under CACHE_DIR and the cache in front of it."""
    return CacheService(PersistenceService(settings.CACHE_DIR), write_behind=write_behind)


def build_adapters(
    settings: Settings,
    cache: CacheService,
    session: Optional[requests.Session] = None,
) -> dict[str, DataSourceAdapter]:
    """
    Construct every adapter against one shared cache.

    Args:
        settings: Resolved configuration
        cache: Shared cache service
        session: Optional HTTP session shared by all adapters

    Returns:
        Adapters keyed by provider name
    """
    adapters = {cls.name: cls(cache, settings=settings, session=session) for cls in ADAPTER_CLASSES}
    available = [name for name, adapter in adapters.items() if adapter.is_available()]
    logger.info(f"Adapters ready: {len(available)}/{len(adapters)} available ({', '.join(available)})")
    return adapters


def availability_report(adapters: Iterable[DataSourceAdapter] | dict[str, DataSourceAdapter]) -> list[dict]:
    """One row per adapter: name, availability, credential field and whether it is required."""
    if isinstance(adapters, dict):
        adapters = adapters.values()
    return [
        {
            "name": adapter.name,
            "available": adapter.is_available(),
            "credential": adapter.api_key_field,
            "required": adapter.requires_api_key,
        }
        for adapter in adapters
    ]
