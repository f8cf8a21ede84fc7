"""
Nasdaq Data Link (formerly Quandl) time-series adapter.

Datasets are addressed as "DATABASE/DATASET" (e.g. "FRED/GDP"). Errors come
back as {"quandl_error": {"code": "QE..", "message": ...}}; QELx codes are
rate-limit and quota responses.
"""

from typing import Any, Optional

from loguru import logger

from .base import DataSourceAdapter, FetchResult, resolve_value_field

_QUERY_OPTIONS = ("start_date", "end_date", "order", "limit", "collapse", "transform", "column_index", "rows")


class NasdaqDataLinkAdapter(DataSourceAdapter):
    """
    Nasdaq Data Link provider.

    Rows are returned as dictionaries keyed by the dataset's column names.
    """

    name = "nasdaq"
    label = "Nasdaq Data Link"
    base_url = "https://data.nasdaq.com/api/v3"
    ttl_prefix = "NASDAQ"
    api_key_field = "NASDAQ_DATA_LINK_API_KEY"
    requires_api_key = True

    # ------------------------------------------------------------------ keys

    def market_size_key(self, industry_id: str, region: Optional[str] = None, **options: Any) -> str:
        return self.cache_key(f"{self._dataset_path(industry_id)}/latest", {
            "value_column": options.get("value_column"),
            "date": options.get("date"),
        })

    def industry_data_key(self, industry_id: str, region: Optional[str] = None, **options: Any) -> str:
        return self.cache_key(self._dataset_path(industry_id), self._query(options))

    # --------------------------------------------------------------- fetches

    def fetch_industry_data(self, industry_id: str, region: Optional[str] = None, **options: Any) -> Optional[list[dict]]:
        """
        Fetch dataset rows.

        Args:
            industry_id: "DATABASE/DATASET" code
            region: Ignored
            start_date, end_date, order, limit, collapse, transform, column_index, rows

        Returns:
            List of row dictionaries
        """
        path = self._dataset_path(industry_id)
        params = self._query(options)
        return self._fetch_cached(
            self.industry_data_key(industry_id, **options),
            lambda: self._get(path, params),
            self._classify_rows,
        )

    def fetch_market_size(self, industry_id: str, region: Optional[str] = None, **options: Any) -> Optional[dict]:
        """
        Latest row of a dataset (or the row for ``date``).

        Args:
            industry_id: "DATABASE/DATASET" code
            value_column: Column holding the figure; resolved automatically when omitted
            date: Restrict to a single date (YYYY-MM-DD)

        Returns:
            Dictionary with date, value, sourceDataset, valueColumn and fullRecord
        """
        path = self._dataset_path(industry_id)
        value_column = options.get("value_column")
        date = options.get("date")
        params: dict[str, Any] = {"order": "desc", "limit": 1}
        if date:
            params.update(start_date=date, end_date=date)

        def classify(status: int, data: Any) -> FetchResult:
            result = self._classify_rows(status, data)
            if result.data is None:
                return result
            record = result.data[0]
            column = resolve_value_field(record, value_column)
            if column is None:
                logger.warning(
                    f"Nasdaq Data Link: value column {value_column!r} not found in {industry_id}. "
                    f"Available columns: {', '.join(record)}"
                )
                return FetchResult.no_data(f"value column {value_column!r} missing")
            return FetchResult.success({
                "date": record.get("Date") or record.get("date"),
                "value": record[column],
                "sourceDataset": industry_id,
                "valueColumn": column,
                "fullRecord": record,
            })

        return self._fetch_cached(
            self.market_size_key(industry_id, **options),
            lambda: self._get(path, params),
            classify,
        )

    # ------------------------------------------------------------- internals

    def _get(self, path: str, params: dict[str, Any]) -> tuple[int, Any]:
        return self.client.get(f"{path}/data.json", params={**params, "api_key": self.api_key})

    @staticmethod
    def _dataset_path(code: str) -> str:
        if not code or code.count("/") != 1:
            raise ValueError(f"Dataset code must look like DATABASE/DATASET, got {code!r}")
        database, dataset = code.split("/")
        return f"datasets/{database.upper()}/{dataset.upper()}"

    @staticmethod
    def _query(options: dict[str, Any]) -> dict[str, Any]:
        return {k: options[k] for k in _QUERY_OPTIONS if options.get(k) is not None}

    def _check_error(self, data: Any) -> Optional[FetchResult]:
        error = data.get("quandl_error") if isinstance(data, dict) else None
        if not error:
            return None
        code = str(error.get("code", ""))
        message = str(error.get("message", ""))
        if code.startswith("QEL"):
            return FetchResult.rate_limited(f"{code}: {message}")
        raise self._provider_error(f"{message} (Code: {code})", body=data)

    def _classify_rows(self, status: int, data: Any) -> FetchResult:
        verdict = self._check_error(data)
        if verdict is not None:
            return verdict
        dataset_data = data.get("dataset_data") if isinstance(data, dict) else None
        if not isinstance(dataset_data, dict):
            return FetchResult.malformed("missing dataset_data")
        columns = dataset_data.get("column_names")
        rows = dataset_data.get("data")
        if not isinstance(columns, list) or not isinstance(rows, list):
            return FetchResult.malformed("missing column_names or data")
        if not rows:
            return FetchResult.no_data("empty dataset")
        return FetchResult.success([dict(zip(columns, row)) for row in rows])
