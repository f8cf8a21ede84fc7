"""
Provider adapters sharing the DataSourceAdapter contract.
"""

from .alpha_vantage_adapter import AlphaVantageAdapter
from .base import DataSourceAdapter, FetchResult, Outcome, TTLPolicy, build_cache_key, resolve_value_field
from .bls_adapter import BLSAdapter
from .census_adapter import CensusAdapter
from .fred_adapter import FREDAdapter
from .imf_adapter import IMFAdapter
from .nasdaq_adapter import NasdaqDataLinkAdapter
from .oecd_adapter import OECDAdapter
from .world_bank_adapter import WorldBankAdapter

__all__ = [
    "DataSourceAdapter",
    "FetchResult",
    "Outcome",
    "TTLPolicy",
    "build_cache_key",
    "resolve_value_field",
    "AlphaVantageAdapter",
    "BLSAdapter",
    "CensusAdapter",
    "FREDAdapter",
    "IMFAdapter",
    "NasdaqDataLinkAdapter",
    "OECDAdapter",
    "WorldBankAdapter",
]
