"""
FRED (Federal Reserve Economic Data) adapter.

Access to economic data: GDP, industrial production, employment, prices, etc.
Free API key with generous rate limits.
"""

from typing import Any, Optional

from .base import DataSourceAdapter, FetchResult

# FRED uses "." for a missing observation
MISSING_VALUE = "."


class FREDAdapter(DataSourceAdapter):
    """
    FRED data provider for macroeconomic series.

    Features:
    - 800,000+ economic time series
    - Latest observation as market-size figure
    - Full observation history as industry data

    Series IDs (e.g. "GDP", "INDPRO", "CES3000000001") stand in for
    industry identifiers.
    """

    name = "fred"
    label = "FRED"
    base_url = "https://api.stlouisfed.org/fred"
    ttl_prefix = "FRED"
    api_key_field = "FRED_API_KEY"
    requires_api_key = True

    _OBSERVATION_OPTIONS = (
        "observation_start",
        "observation_end",
        "realtime_start",
        "realtime_end",
        "frequency",
        "units",
        "aggregation_method",
        "limit",
        "offset",
        "sort_order",
    )

    # ------------------------------------------------------------------ keys

    def market_size_key(self, industry_id: str, region: Optional[str] = None, **options: Any) -> str:
        return self.cache_key("series/observations/latest", {"series_id": self._require_series(industry_id)})

    def industry_data_key(self, industry_id: str, region: Optional[str] = None, **options: Any) -> str:
        return self.cache_key("series/observations", {"series_id": self._require_series(industry_id), **self._observation_params(options)})

    # --------------------------------------------------------------- fetches

    def fetch_market_size(self, industry_id: str, region: Optional[str] = None, **options: Any) -> Optional[list[dict]]:
        """
        Get latest observation for a series.

        Args:
            industry_id: FRED series ID
            region: Ignored (FRED series are region-specific by ID)

        Returns:
            Single-element list with realtime_start, realtime_end, date, value
        """
        series_id = self._require_series(industry_id)
        params = {"series_id": series_id, "sort_order": "desc", "limit": 1}
        return self._fetch_cached(
            self.market_size_key(series_id),
            lambda: self._get("series/observations", params),
            self._classify_observations,
        )

    def fetch_industry_data(self, industry_id: str, region: Optional[str] = None, **options: Any) -> Optional[list[dict]]:
        """
        Fetch economic time series from FRED.

        Args:
            industry_id: FRED series ID (e.g., "INDPRO", "CES3000000001")
            region: Ignored
            **options: observation_start, observation_end, frequency, units, limit, ...

        Returns:
            List of observations with date and value
        """
        series_id = self._require_series(industry_id)
        params = {"series_id": series_id, **self._observation_params(options)}
        return self._fetch_cached(
            self.industry_data_key(series_id, **options),
            lambda: self._get("series/observations", params),
            self._classify_observations,
        )

    def search_series(self, search_text: str, limit: int = 25) -> Optional[list[dict]]:
        """
        Search FRED series by keyword.

        Returns:
            List of series metadata dictionaries
        """
        if not search_text:
            raise ValueError("Search text is required for FRED series search")
        params = {"search_text": search_text, "limit": limit}
        return self._fetch_cached(
            self.cache_key("series/search", params),
            lambda: self._get("series/search", params),
            self._classify_search,
        )

    # ------------------------------------------------------------- internals

    def _get(self, endpoint: str, params: dict[str, Any]) -> tuple[int, Any]:
        return self.client.get(endpoint, params={**params, "api_key": self.api_key, "file_type": "json"})

    def _require_series(self, series_id: str) -> str:
        if not series_id:
            raise ValueError("Series ID is required for FRED requests")
        return series_id.upper()

    def _observation_params(self, options: dict[str, Any]) -> dict[str, Any]:
        return {k: options[k] for k in self._OBSERVATION_OPTIONS if options.get(k) is not None}

    def _check_error(self, data: Any) -> None:
        if isinstance(data, dict) and data.get("error_message"):
            raise self._provider_error(str(data["error_message"]), body=data)

    def _classify_observations(self, status: int, data: Any) -> FetchResult:
        self._check_error(data)
        if not isinstance(data, dict) or "observations" not in data:
            return FetchResult.malformed("missing observations")

        observations = data["observations"]
        if not isinstance(observations, list):
            return FetchResult.malformed("observations is not a list")
        if not observations:
            return FetchResult.no_data("no observations")

        return FetchResult.success([
            {
                "realtime_start": obs.get("realtime_start"),
                "realtime_end": obs.get("realtime_end"),
                "date": obs.get("date"),
                "value": self._parse_value(obs.get("value")),
            }
            for obs in observations
        ])

    def _classify_search(self, status: int, data: Any) -> FetchResult:
        self._check_error(data)
        if not isinstance(data, dict) or not isinstance(data.get("seriess"), list):
            return FetchResult.malformed("missing seriess")
        if not data["seriess"]:
            return FetchResult.no_data("no matching series")
        return FetchResult.success(data["seriess"])

    @staticmethod
    def _parse_value(raw: Any) -> Optional[float]:
        if raw is None or raw == MISSING_VALUE:
            return None
        try:
            return float(raw)
        except (TypeError, ValueError):
            return None
