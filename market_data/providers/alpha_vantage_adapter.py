"""
Alpha Vantage data provider adapter.

Free tier: 25 API calls per day; over-quota answers arrive as HTTP 200 with a
"Note" or "Information" message instead of data.
Company overview serves as the market-size figure (market capitalization),
adjusted time series as the industry dataset.
"""

from typing import Any, Optional

from loguru import logger

from .base import HOUR_MS, DataSourceAdapter, FetchResult, TTLPolicy

OVERVIEW_FUNCTION = "OVERVIEW"
DEFAULT_SERIES_TYPE = "DAILY"

_RATE_LIMIT_MARKERS = ("rate limit", "call frequency", "api call volume", "premium")


class AlphaVantageAdapter(DataSourceAdapter):
    """
    Alpha Vantage provider for company fundamentals and price history.

    Features:
    - Company overview with market capitalization
    - Adjusted daily/weekly/monthly time series
    - Symbol search and financial statements
    """

    name = "alphavantage"
    label = "Alpha Vantage"
    base_url = "https://www.alphavantage.co/query"
    ttl_prefix = "ALPHA_VANTAGE"
    api_key_field = "ALPHA_VANTAGE_API_KEY"
    requires_api_key = True
    default_ttls = TTLPolicy(success_ms=HOUR_MS, no_data_ms=5 * 60 * 1000, rate_limit_ms=60 * 1000)

    # ------------------------------------------------------------------ keys

    def market_size_key(self, industry_id: str, region: Optional[str] = None, **options: Any) -> str:
        return self.cache_key(OVERVIEW_FUNCTION, {"symbol": industry_id.upper()})

    def industry_data_key(self, industry_id: str, region: Optional[str] = None, **options: Any) -> str:
        function = self._series_function(options.get("series_type", DEFAULT_SERIES_TYPE))
        return self.cache_key(function, {"symbol": industry_id.upper()})

    # --------------------------------------------------------------- fetches

    def fetch_market_size(self, industry_id: str, region: Optional[str] = None, **options: Any) -> Optional[dict]:
        """
        Fetch company overview and normalize it around market capitalization.

        Args:
            industry_id: Ticker symbol
            region: Ignored (Alpha Vantage reports in the listing currency)

        Returns:
            Dictionary with symbol, marketCapitalization and company metadata
        """
        symbol = self._require_symbol(industry_id)
        return self._fetch_cached(
            self.market_size_key(symbol),
            lambda: self._query(OVERVIEW_FUNCTION, symbol=symbol),
            self._classify_overview,
        )

    def fetch_industry_data(self, industry_id: str, region: Optional[str] = None, **options: Any) -> Optional[dict]:
        """
        Fetch an adjusted time series.

        Args:
            industry_id: Ticker symbol
            region: Ignored
            series_type: "DAILY", "WEEKLY", "MONTHLY" or a full TIME_SERIES_* function

        Returns:
            Dictionary with metaData and timeSeries
        """
        symbol = self._require_symbol(industry_id)
        series_type = options.get("series_type", DEFAULT_SERIES_TYPE)
        function = self._series_function(series_type)
        return self._fetch_cached(
            self.industry_data_key(symbol, series_type=series_type),
            lambda: self._query(function, symbol=symbol),
            self._classify_time_series,
        )

    def search_symbols(self, keywords: str) -> Optional[list[dict]]:
        """Search ticker symbols by keyword; returns the bestMatches list."""
        if not keywords:
            raise ValueError("Keywords are required for Alpha Vantage symbol search")
        return self._fetch_cached(
            self.cache_key("SYMBOL_SEARCH", {"keywords": keywords}),
            lambda: self._query("SYMBOL_SEARCH", keywords=keywords),
            self._classify_list("bestMatches"),
        )

    def get_income_statement(self, symbol: str, period: str = "annual") -> Optional[list[dict]]:
        return self._financial_statement("INCOME_STATEMENT", symbol, period)

    def get_balance_sheet(self, symbol: str, period: str = "annual") -> Optional[list[dict]]:
        return self._financial_statement("BALANCE_SHEET", symbol, period)

    def get_cash_flow(self, symbol: str, period: str = "annual") -> Optional[list[dict]]:
        return self._financial_statement("CASH_FLOW", symbol, period)

    def _financial_statement(self, function: str, symbol: str, period: str) -> Optional[list[dict]]:
        if period not in ("annual", "quarterly"):
            raise ValueError(f"period must be 'annual' or 'quarterly', got {period!r}")
        symbol = self._require_symbol(symbol)
        field = "annualReports" if period == "annual" else "quarterlyReports"
        return self._fetch_cached(
            self.cache_key(function, {"symbol": symbol, "period": period}),
            lambda: self._query(function, symbol=symbol),
            self._classify_list(field),
        )

    # ------------------------------------------------------------- internals

    def _query(self, function: str, **params: str) -> tuple[int, Any]:
        return self.client.get("", params={"function": function, **params, "apikey": self.api_key})

    def _require_symbol(self, symbol: str) -> str:
        if not symbol:
            raise ValueError("Symbol is required for Alpha Vantage requests")
        return symbol.upper()

    def _series_function(self, series_type: str) -> str:
        series_type = series_type.upper()
        if series_type.startswith("TIME_SERIES_"):
            return series_type
        return f"TIME_SERIES_{series_type}_ADJUSTED"

    def _check_envelope(self, data: Any) -> Optional[FetchResult]:
        """
        Classify the provider-wide envelope shared by every function.

        Returns a FetchResult for rate-limit/empty/malformed bodies, None when
        the body should be parsed by the caller.
        """
        if not isinstance(data, dict):
            return FetchResult.malformed(f"expected an object, got {type(data).__name__}")

        for marker_key in ("Note", "Information"):
            message = data.get(marker_key)
            if isinstance(message, str) and any(m in message.lower() for m in _RATE_LIMIT_MARKERS):
                return FetchResult.rate_limited(message[:120])

        if "Error Message" in data:
            raise self._provider_error(str(data["Error Message"]), body=data)

        if not data:
            return FetchResult.no_data("empty response (unknown symbol)")
        return None

    def _classify_overview(self, status: int, data: Any) -> FetchResult:
        verdict = self._check_envelope(data)
        if verdict is not None:
            return verdict

        market_cap = data.get("MarketCapitalization")
        if market_cap in (None, "None", "", "-"):
            return FetchResult.no_data("no market capitalization")
        try:
            market_cap_value = float(market_cap)
        except (TypeError, ValueError):
            return FetchResult.malformed(f"MarketCapitalization={market_cap!r}")

        return FetchResult.success({
            "symbol": data.get("Symbol"),
            "marketCapitalization": market_cap_value,
            "name": data.get("Name"),
            "sector": data.get("Sector"),
            "industry": data.get("Industry"),
            "description": data.get("Description"),
            "currency": data.get("Currency") or "USD",
            "country": data.get("Country"),
            "exchange": data.get("Exchange"),
            "EPS": data.get("EPS"),
            "PERatio": data.get("PERatio"),
        })

    def _classify_time_series(self, status: int, data: Any) -> FetchResult:
        verdict = self._check_envelope(data)
        if verdict is not None:
            return verdict

        series_key = self._get_time_series_key(data)
        if series_key is None:
            return FetchResult.no_data("no time series in response")

        time_series = data[series_key]
        if not isinstance(time_series, dict):
            return FetchResult.malformed(f"{series_key} is not an object")
        if not time_series:
            return FetchResult.no_data("empty time series")

        return FetchResult.success({
            "metaData": data.get("Meta Data", {}),
            "timeSeries": time_series,
        })

    def _classify_list(self, field: str):
        def classify(status: int, data: Any) -> FetchResult:
            verdict = self._check_envelope(data)
            if verdict is not None:
                return verdict
            if field not in data:
                logger.debug(f"Alpha Vantage: response keys {list(data)[:5]}")
                return FetchResult.malformed(f"missing {field}")
            items = data[field]
            if not isinstance(items, list):
                return FetchResult.malformed(f"{field} is not a list")
            if not items:
                return FetchResult.no_data(f"empty {field}")
            return FetchResult.success(items)
        return classify

    def _get_time_series_key(self, data: dict[str, Any]) -> Optional[str]:
        """
        Find the time series key in response data.

        Args:
            data: API response data

        Returns:
            Time series key or None
        """
        for key in data.keys():
            if "Time Series" in key or "Weekly" in key or "Monthly" in key:
                return key
        return None
