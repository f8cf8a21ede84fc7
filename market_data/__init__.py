"""
Market statistics from multiple public data providers.

Integrates eight provider adapters with a two-tier (memory + JSON file) cache.
"""

from .cache import CacheService, PersistenceService
from .errors import ConfigurationError, ProviderError, TransportError
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
from .registry import availability_report, build_adapters, build_cache

__all__ = [
    "CacheService",
    "PersistenceService",
    "ConfigurationError",
    "ProviderError",
    "TransportError",
    "DataSourceAdapter",
    "AlphaVantageAdapter",
    "BLSAdapter",
    "CensusAdapter",
    "FREDAdapter",
    "IMFAdapter",
    "NasdaqDataLinkAdapter",
    "OECDAdapter",
    "WorldBankAdapter",
    "availability_report",
    "build_adapters",
    "build_cache",
]
