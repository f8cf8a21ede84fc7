"""
OECD SDMX REST API adapter.

Public data, no key. Datasets are addressed as "<agency>,<dataflow>" with a
dot-separated dimension filter (e.g. "USA.B1GQ.." or "all").
"""

from typing import Any, Optional

from loguru import logger

from .base import DataSourceAdapter, FetchResult, resolve_value_field
from .sdmx import classify_sdmx, dimensions_of, latest_record

DEFAULT_AGENCY = "OECD"
DEFAULT_DIMENSION_AT_OBSERVATION = "AllDimensions"


class OECDAdapter(DataSourceAdapter):
    """OECD statistics provider returning flattened SDMX observations."""

    name = "oecd"
    label = "OECD"
    base_url = "https://sdmx.oecd.org/public/rest/data"
    ttl_prefix = "OECD"

    def _request(self, industry_id: str, region: Optional[str], options: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        if not industry_id:
            raise ValueError("Dataset ID is required for OECD requests")
        agency = options.get("agency_id") or DEFAULT_AGENCY
        flt = options.get("filter_expression") or region or "all"
        params = {
            "startPeriod": options.get("start_time"),
            "endPeriod": options.get("end_time"),
            "dimensionAtObservation": options.get("dimension_at_observation") or DEFAULT_DIMENSION_AT_OBSERVATION,
        }
        return f"{agency},{industry_id}/{flt}", {k: v for k, v in params.items() if v is not None}

    # ------------------------------------------------------------------ keys

    def market_size_key(self, industry_id: str, region: Optional[str] = None, **options: Any) -> str:
        path, params = self._request(industry_id, region, options)
        return self.cache_key(f"{path}/latest", {**params, "value_attribute": options.get("value_attribute")})

    def industry_data_key(self, industry_id: str, region: Optional[str] = None, **options: Any) -> str:
        path, params = self._request(industry_id, region, options)
        return self.cache_key(path, params)

    # --------------------------------------------------------------- fetches

    def fetch_industry_data(self, industry_id: str, region: Optional[str] = None, **options: Any) -> Optional[list[dict]]:
        """
        Fetch an OECD dataset as flattened observation records.

        Args:
            industry_id: Dataflow ID (e.g. "DSD_NAMAIN1@DF_QNA")
            region: Used as the filter expression when ``filter_expression`` is absent
            agency_id, filter_expression, start_time, end_time, dimension_at_observation
        """
        path, params = self._request(industry_id, region, options)
        return self._fetch_cached(
            self.industry_data_key(industry_id, region, **options),
            lambda: self._get(path, params),
            lambda status, data: classify_sdmx(data),
        )

    def fetch_market_size(self, industry_id: str, region: Optional[str] = None, **options: Any) -> Optional[dict]:
        """
        Latest observation of a dataset slice.

        Args:
            value_attribute: Field holding the figure; resolved automatically when omitted

        Returns:
            Dictionary with value, dimensions, source, dataset and filter
        """
        path, params = self._request(industry_id, region, options)
        value_attribute = options.get("value_attribute")
        flt = path.split("/", 1)[1]

        def classify(status: int, data: Any) -> FetchResult:
            result = classify_sdmx(data)
            if result.data is None:
                return result
            record = latest_record(result.data)
            field = resolve_value_field(record, value_attribute)
            if field is None:
                logger.warning(f"OECD: value field {value_attribute!r} not in record; available: {list(record)}")
                return FetchResult.no_data(f"value field {value_attribute!r} missing")
            return FetchResult.success({
                "value": record[field],
                "dimensions": dimensions_of(record, field),
                "source": "OECD",
                "dataset": industry_id,
                "filter": flt,
            })

        return self._fetch_cached(
            self.market_size_key(industry_id, region, **options),
            lambda: self._get(path, params),
            classify,
        )

    def _get(self, path: str, params: dict[str, Any]) -> tuple[int, Any]:
        return self.client.get(path, params={**params, "format": "jsondata"})
