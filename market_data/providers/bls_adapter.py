"""
Bureau of Labor Statistics (BLS) Public Data API v2 adapter.

The registration key is optional. Without it BLS serves anonymous requests
with tighter limits, and the catalog/calculation options are ignored.
"""

from typing import Any, Optional, Sequence, Union

from loguru import logger

from .base import DataSourceAdapter, FetchResult, to_number

SUCCESS_STATUS = "REQUEST_SUCCEEDED"

# Per-request limits published by BLS for v2 (registered) and anonymous access
MAX_SERIES_REGISTERED = 50
MAX_SERIES_ANONYMOUS = 25
MAX_YEARS_REGISTERED = 20
MAX_YEARS_ANONYMOUS = 10

_RATE_LIMIT_MARKERS = ("threshold", "daily query limit")

SeriesIds = Union[str, Sequence[str]]


class BLSAdapter(DataSourceAdapter):
    """
    BLS time series provider.

    ``fetch_industry_data`` accepts one or more series IDs; ``fetch_market_size``
    reads the all-employees CES series for a supersector/industry code as the
    size proxy.
    """

    name = "bls"
    label = "BLS"
    base_url = "https://api.bls.gov/publicAPI/v2/timeseries/data/"
    ttl_prefix = "BLS"
    api_key_field = "BLS_API_KEY"
    requires_api_key = False

    @property
    def registered(self) -> bool:
        return bool(self.api_key)

    @property
    def max_series(self) -> int:
        return MAX_SERIES_REGISTERED if self.registered else MAX_SERIES_ANONYMOUS

    @property
    def max_years(self) -> int:
        return MAX_YEARS_REGISTERED if self.registered else MAX_YEARS_ANONYMOUS

    # ------------------------------------------------------------------ keys

    def market_size_key(self, industry_id: str, region: Optional[str] = None, **options: Any) -> str:
        return self.cache_key("employment/latest", {
            "series_id": self._employment_series(industry_id),
            "region": region or "US",
        })

    def industry_data_key(self, industry_id: SeriesIds, region: Optional[str] = None, **options: Any) -> str:
        body = self._request_body(self._series_list(industry_id), options)
        body.pop("registrationkey", None)
        return self.cache_key("timeseries", body)

    # --------------------------------------------------------------- fetches

    def fetch_market_size(self, industry_id: str, region: Optional[str] = "US", **options: Any) -> Optional[dict]:
        """
        Latest employment level for an industry.

        Args:
            industry_id: CES supersector/industry code (e.g. "30000000")
            region: Reported back as-is; CES national series are US-wide

        Returns:
            Dictionary with value, period, year, seriesId, region, source, title
        """
        series_id = self._employment_series(industry_id)
        region = region or "US"

        def classify(status: int, data: Any) -> FetchResult:
            result = self._classify(status, data)
            if result.data is None:
                return result
            series = result.data["series"][0]
            points = series.get("data") or []
            if not points:
                return FetchResult.no_data(f"no observations for {series_id}")
            latest = points[0]
            value = to_number(latest.get("value"))
            if not isinstance(value, float):
                return FetchResult.malformed(f"non-numeric value {latest.get('value')!r}")
            return FetchResult.success({
                "value": value,
                "period": latest.get("period"),
                "year": latest.get("year"),
                "seriesId": series_id,
                "region": region,
                "source": "BLS",
                "title": (series.get("catalog") or {}).get("series_title") or series.get("title"),
            })

        return self._fetch_cached(
            self.market_size_key(industry_id, region),
            lambda: self._post(self._request_body([series_id], {})),
            classify,
        )

    def fetch_industry_data(self, industry_id: SeriesIds, region: Optional[str] = None, **options: Any) -> Optional[dict]:
        """
        Fetch one or more BLS series.

        Args:
            industry_id: Series ID or list of series IDs
            region: Ignored (region is encoded in the series ID)
            start_year, end_year: Year bounds as strings or ints
            catalog, calculations, annual_average: Registered-only flags

        Returns:
            The ``Results`` object with its ``series`` list
        """
        series_ids = self._series_list(industry_id)
        if len(series_ids) > self.max_series:
            logger.warning(
                f"BLS: {len(series_ids)} series requested, limit is {self.max_series} per request "
                f"({'registered' if self.registered else 'anonymous'} access)"
            )
        self._check_year_window(options.get("start_year"), options.get("end_year"))
        body = self._request_body(series_ids, options)
        return self._fetch_cached(
            self.industry_data_key(series_ids, **options),
            lambda: self._post(body),
            self._classify,
        )

    # ------------------------------------------------------------- internals

    def _post(self, body: dict[str, Any]) -> tuple[int, Any]:
        return self.client.post("", json=body)

    def _employment_series(self, industry_id: str) -> str:
        if not industry_id:
            raise ValueError("Industry code is required for BLS market size")
        return f"CES{industry_id}0001"

    def _series_list(self, series_ids: SeriesIds) -> list[str]:
        if isinstance(series_ids, str):
            series_ids = [series_ids]
        series_ids = [s.strip().upper() for s in series_ids if s and s.strip()]
        if not series_ids:
            raise ValueError("series_ids must be a non-empty list")
        return series_ids

    def _check_year_window(self, start_year: Any, end_year: Any) -> None:
        if start_year is None or end_year is None:
            return
        try:
            span = int(end_year) - int(start_year) + 1
        except (TypeError, ValueError):
            return
        if span > self.max_years:
            logger.warning(f"BLS: {span}-year window exceeds the {self.max_years}-year limit; BLS will truncate")

    def _request_body(self, series_ids: list[str], options: dict[str, Any]) -> dict[str, Any]:
        body: dict[str, Any] = {"seriesid": series_ids}
        if options.get("start_year") is not None:
            body["startyear"] = str(options["start_year"])
        if options.get("end_year") is not None:
            body["endyear"] = str(options["end_year"])
        if self.registered:
            body["registrationkey"] = self.api_key
            if options.get("catalog"):
                body["catalog"] = True
            if options.get("calculations"):
                body["calculations"] = True
            if options.get("annual_average"):
                body["annualaverage"] = True
        return body

    def _classify(self, status: int, data: Any) -> FetchResult:
        if not isinstance(data, dict) or "status" not in data:
            return FetchResult.malformed("missing status field")

        messages = [str(m) for m in data.get("message") or []]
        text = "; ".join(messages)

        if data["status"] != SUCCESS_STATUS:
            if any(marker in text.lower() for marker in _RATE_LIMIT_MARKERS):
                return FetchResult.rate_limited(text[:120])
            raise self._provider_error(f"{text or 'request failed'} (Status: {data['status']})", body=data)

        if any(marker in text.lower() for marker in _RATE_LIMIT_MARKERS):
            return FetchResult.rate_limited(text[:120])
        if messages:
            logger.debug(f"BLS: {text}")

        results = data.get("Results")
        if results is None:
            return FetchResult.no_data("no Results")
        if not isinstance(results, dict):
            return FetchResult.malformed("Results is not an object")

        series = results.get("series")
        if series is None or series == []:
            return FetchResult.no_data("no series returned")
        if not isinstance(series, list):
            return FetchResult.malformed("series is not a list")
        if all(not (s.get("data") if isinstance(s, dict) else None) for s in series):
            return FetchResult.no_data("all series empty")

        return FetchResult.success(results)
