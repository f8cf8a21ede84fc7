"""
World Bank Indicators API adapter.

Public access, no key. Responses are a two-element array: paging metadata
followed by the data rows (or null when the query matched nothing).
"""

from typing import Any, Optional

from .base import DataSourceAdapter, FetchResult

DEFAULT_GDP_INDICATOR = "NY.GDP.MKTP.CD"
DEFAULT_COUNTRY = "WLD"


class WorldBankAdapter(DataSourceAdapter):
    """World Bank development indicators by country."""

    name = "worldbank"
    label = "World Bank"
    base_url = "https://api.worldbank.org/v2"
    ttl_prefix = "WORLD_BANK"

    def market_size_key(self, industry_id: str = DEFAULT_GDP_INDICATOR, region: Optional[str] = None, **options: Any) -> str:
        return self.cache_key("indicator/latest", {
            "indicator": industry_id or DEFAULT_GDP_INDICATOR,
            "country": (region or DEFAULT_COUNTRY).upper(),
        })

    def industry_data_key(self, industry_id: str = DEFAULT_GDP_INDICATOR, region: Optional[str] = None, **options: Any) -> str:
        return self.cache_key("indicator", {
            "indicator": industry_id or DEFAULT_GDP_INDICATOR,
            "country": (region or DEFAULT_COUNTRY).upper(),
            "date": options.get("date"),
            "per_page": options.get("per_page"),
        })

    def fetch_market_size(
        self,
        industry_id: str = DEFAULT_GDP_INDICATOR,
        region: Optional[str] = None,
        **options: Any,
    ) -> Optional[list[dict]]:
        """
        Most recent value of an indicator for a country (mrv=1).

        Args:
            industry_id: Indicator code, GDP in current US$ by default
            region: ISO2/ISO3 country or aggregate code, world by default
        """
        indicator = industry_id or DEFAULT_GDP_INDICATOR
        country = (region or DEFAULT_COUNTRY).upper()
        return self._fetch_cached(
            self.market_size_key(indicator, country),
            lambda: self._get(country, indicator, {"mrv": 1}),
            self._classify,
        )

    def fetch_industry_data(
        self,
        industry_id: str = DEFAULT_GDP_INDICATOR,
        region: Optional[str] = None,
        **options: Any,
    ) -> Optional[list[dict]]:
        """
        Indicator history for a country.

        Args:
            industry_id: Indicator code
            region: Country code
            date: Year or range such as "2015:2023"
            per_page: Page size (the API defaults to 50)
        """
        indicator = industry_id or DEFAULT_GDP_INDICATOR
        country = (region or DEFAULT_COUNTRY).upper()
        params = {k: options[k] for k in ("date", "per_page") if options.get(k) is not None}
        return self._fetch_cached(
            self.industry_data_key(indicator, country, **options),
            lambda: self._get(country, indicator, params),
            self._classify,
        )

    def _get(self, country: str, indicator: str, params: dict[str, Any]) -> tuple[int, Any]:
        return self.client.get(f"country/{country}/indicator/{indicator}", params={"format": "json", **params})

    def _classify(self, status: int, data: Any) -> FetchResult:
        if not isinstance(data, list) or not data:
            return FetchResult.malformed("expected a [metadata, rows] array")

        # Errors come back as [{"message": [{"id": ..., "key": ..., "value": ...}]}]
        if len(data) == 1 and isinstance(data[0], dict) and "message" in data[0]:
            messages = data[0]["message"]
            text = "; ".join(
                str(m.get("value") or m.get("key")) for m in messages if isinstance(m, dict)
            ) or str(messages)
            raise self._provider_error(text, body=data)

        if len(data) < 2:
            return FetchResult.malformed("missing data rows")

        rows = data[1]
        if rows is None or rows == []:
            return FetchResult.no_data("no rows for indicator")
        if not isinstance(rows, list):
            return FetchResult.malformed("rows is not a list")

        records = [
            {
                "country": (row.get("country") or {}).get("value"),
                "countryISO3Code": row.get("countryiso3code"),
                "date": row.get("date"),
                "value": row.get("value"),
                "unit": row.get("unit"),
                "indicator": (row.get("indicator") or {}).get("value"),
            }
            for row in rows
            if isinstance(row, dict)
        ]
        if not records:
            return FetchResult.malformed("no readable rows")
        return FetchResult.success(records)
