"""
U.S. Census Bureau Data API adapter.

Responses are arrays of arrays whose first row holds the column names.
A key is optional; anonymous access works with a lower daily allowance.
"""

from typing import Any, Optional, Sequence

from .base import DataSourceAdapter, FetchResult, to_number

DEFAULT_YEAR = "2021"
DEFAULT_DATASET = "cbp"
DEFAULT_GEOGRAPHY = "us:*"
DEFAULT_VARIABLES = ("NAME", "NAICS2017_LABEL", "EMP", "PAYANN", "ESTAB")
MEASURES = ("EMP", "PAYANN", "ESTAB")


class CensusAdapter(DataSourceAdapter):
    """
    Census provider built around County Business Patterns.

    NAICS codes stand in for industry identifiers and Census geography
    clauses (e.g. "us:*", "state:06") for regions.
    """

    name = "census"
    label = "Census Bureau"
    base_url = "https://api.census.gov/data"
    ttl_prefix = "CENSUS"
    api_key_field = "CENSUS_API_KEY"
    requires_api_key = False

    # ------------------------------------------------------------------ keys

    def market_size_key(self, industry_id: str, region: Optional[str] = None, **options: Any) -> str:
        return self.cache_key("cbp/market_size", {
            "naics": industry_id,
            "for": region or DEFAULT_GEOGRAPHY,
            "measure": options.get("measure", "EMP").upper(),
            "year": str(options.get("year") or DEFAULT_YEAR),
        })

    def industry_data_key(self, industry_id: str, region: Optional[str] = None, **options: Any) -> str:
        dataset = options.get("dataset") or DEFAULT_DATASET
        year = str(options.get("year") or DEFAULT_YEAR)
        params = self._query(self._variables(options.get("variables")), region or DEFAULT_GEOGRAPHY, industry_id)
        return self.cache_key(f"{year}/{dataset}", params)

    # --------------------------------------------------------------- fetches

    def fetch_market_size(self, industry_id: str, region: Optional[str] = None, **options: Any) -> Optional[dict]:
        """
        Sum a CBP measure across the rows for a NAICS code.

        Args:
            industry_id: NAICS 2017 code
            region: Census geography clause, national by default
            measure: "EMP" (employment), "PAYANN" (annual payroll) or "ESTAB"
            year: Data vintage

        Returns:
            Dictionary with value, measure, naicsCode, geography, recordCount,
            source, dataset and year
        """
        naics = self._require_naics(industry_id)
        geography = region or DEFAULT_GEOGRAPHY
        measure = options.get("measure", "EMP").upper()
        if measure not in MEASURES:
            raise ValueError(f"measure must be one of {MEASURES}, got {measure!r}")
        year = str(options.get("year") or DEFAULT_YEAR)

        def classify(status: int, data: Any) -> FetchResult:
            result = self._classify_rows(status, data)
            if result.data is None:
                return result
            rows = result.data
            if measure not in rows[0]:
                return FetchResult.malformed(f"measure column {measure} not in response")
            # Suppressed cells ("D", "N", ...) are skipped
            values = [v for v in (to_number(r.get(measure)) for r in rows) if isinstance(v, float)]
            if not values:
                return FetchResult.no_data(f"no numeric {measure} values")
            return FetchResult.success({
                "value": sum(values),
                "measure": measure,
                "naicsCode": naics,
                "geography": geography,
                "recordCount": len(rows),
                "source": "Census Bureau",
                "dataset": "County Business Patterns",
                "year": year,
            })

        return self._fetch_cached(
            self.market_size_key(naics, geography, measure=measure, year=year),
            lambda: self._get(year, DEFAULT_DATASET, self._query((measure,), geography, naics)),
            classify,
        )

    def fetch_industry_data(self, industry_id: str, region: Optional[str] = None, **options: Any) -> Optional[list[dict]]:
        """
        Fetch rows for a NAICS code as dictionaries keyed by column name.

        Args:
            industry_id: NAICS 2017 code
            region: Census geography clause
            year: Data vintage
            dataset: Dataset path under the year, "cbp" by default
            variables: Columns to request
        """
        naics = self._require_naics(industry_id)
        geography = region or DEFAULT_GEOGRAPHY
        dataset = options.get("dataset") or DEFAULT_DATASET
        year = str(options.get("year") or DEFAULT_YEAR)
        params = self._query(self._variables(options.get("variables")), geography, naics)
        return self._fetch_cached(
            self.industry_data_key(naics, geography, **options),
            lambda: self._get(year, dataset, params),
            self._classify_rows,
        )

    def get_data(
        self,
        dataset: str,
        variables: Sequence[str],
        geography: str,
        year: Optional[str] = None,
        **predicates: str,
    ) -> Optional[list[list]]:
        """Generic query returning the raw array (header row first)."""
        if not dataset or not variables:
            raise ValueError("dataset and variables are required for Census queries")
        year = str(year or DEFAULT_YEAR)
        params = {"get": ",".join(variables), "for": geography, **predicates}
        return self._fetch_cached(
            self.cache_key(f"{year}/{dataset}", params),
            lambda: self._get(year, dataset, params),
            self._classify_raw,
        )

    # ------------------------------------------------------------- internals

    def _get(self, year: str, dataset: str, params: dict[str, Any]) -> tuple[int, Any]:
        if self.api_key:
            params = {**params, "key": self.api_key}
        return self.client.get(f"{year}/{dataset}", params=params)

    def _require_naics(self, naics: str) -> str:
        if not naics:
            raise ValueError("NAICS code is required for Census requests")
        return str(naics)

    @staticmethod
    def _variables(variables: Optional[Sequence[str]]) -> tuple[str, ...]:
        return tuple(variables) if variables else DEFAULT_VARIABLES

    @staticmethod
    def _query(variables: Sequence[str], geography: str, naics: str) -> dict[str, str]:
        return {"get": ",".join(variables), "for": geography, "NAICS2017": naics}

    def _classify_raw(self, status: int, data: Any) -> FetchResult:
        if status == 204 or data is None:
            return FetchResult.no_data("no content")
        if not isinstance(data, list) or not all(isinstance(row, list) for row in data):
            return FetchResult.malformed("expected an array of rows")
        if len(data) < 2:
            return FetchResult.no_data("header only")
        return FetchResult.success(data)

    def _classify_rows(self, status: int, data: Any) -> FetchResult:
        result = self._classify_raw(status, data)
        if result.data is None:
            return result
        header, *rows = result.data
        return FetchResult.success([dict(zip(header, row)) for row in rows])
