"""
IMF SDMX JSON service adapter (CompactData endpoint).

Public data, no key. Series are selected by a dataflow (e.g. "IFS") and a
dot-separated key such as "A.US.NGDP_R_XDC".
"""

from typing import Any, Optional

from loguru import logger

from .base import DataSourceAdapter, FetchResult, resolve_value_field
from .sdmx import classify_sdmx, dimensions_of, latest_record


class IMFAdapter(DataSourceAdapter):
    """IMF dataflows flattened into observation records."""

    name = "imf"
    label = "IMF"
    base_url = "https://dataservices.imf.org/REST/SDMX_JSON.svc"
    ttl_prefix = "IMF"

    def _request(self, industry_id: str, region: Optional[str], options: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        if not industry_id:
            raise ValueError("Dataflow ID is required for IMF requests")
        key = options.get("key") or region
        if not key:
            raise ValueError("Series key is required for IMF requests")
        params = {"startPeriod": options.get("start_period"), "endPeriod": options.get("end_period")}
        return f"CompactData/{industry_id}/{key}", {k: v for k, v in params.items() if v is not None}

    def market_size_key(self, industry_id: str, region: Optional[str] = None, **options: Any) -> str:
        path, params = self._request(industry_id, region, options)
        return self.cache_key(f"{path}/latest", {**params, "value_attribute": options.get("value_attribute")})

    def industry_data_key(self, industry_id: str, region: Optional[str] = None, **options: Any) -> str:
        path, params = self._request(industry_id, region, options)
        return self.cache_key(path, params)

    def fetch_industry_data(self, industry_id: str, region: Optional[str] = None, **options: Any) -> Optional[list[dict]]:
        """
        Fetch IMF series observations.

        Args:
            industry_id: Dataflow ID (e.g. "IFS")
            region: Series key when ``key`` is not given
            key, start_period, end_period
        """
        path, params = self._request(industry_id, region, options)
        return self._fetch_cached(
            self.industry_data_key(industry_id, region, **options),
            lambda: self.client.get(path, params=params),
            lambda status, data: classify_sdmx(data),
        )

    def fetch_market_size(self, industry_id: str, region: Optional[str] = None, **options: Any) -> Optional[dict]:
        """
        Latest observation of an IMF series.

        Args:
            key: Series key; ``region`` is used when absent
            value_attribute: Field holding the figure; resolved automatically when omitted

        Returns:
            Dictionary with value, dimensions, source, dataset and key
        """
        path, params = self._request(industry_id, region, options)
        value_attribute = options.get("value_attribute")
        series_key = path.rsplit("/", 1)[1]

        def classify(status: int, data: Any) -> FetchResult:
            result = classify_sdmx(data)
            if result.data is None:
                return result
            record = latest_record(result.data)
            field = resolve_value_field(record, value_attribute)
            if field is None:
                logger.warning(f"IMF: value field {value_attribute!r} not in record; available: {list(record)}")
                return FetchResult.no_data(f"value field {value_attribute!r} missing")
            return FetchResult.success({
                "value": record[field],
                "dimensions": dimensions_of(record, field),
                "source": "IMF",
                "dataset": industry_id,
                "key": series_key,
            })

        return self._fetch_cached(
            self.market_size_key(industry_id, region, **options),
            lambda: self.client.get(path, params=params),
            classify,
        )
