"""
Tests for the FRED adapter.
"""

from unittest.mock import MagicMock

import pytest

from market_data.errors import ProviderError
from market_data.providers import FREDAdapter


@pytest.fixture
def adapter(make_adapter):
    return make_adapter(FREDAdapter, api_key="fred-key")


def test_fetch_market_size_latest_observation(adapter, session, make_response, load_payload):
    """Test latest-observation request and "." handling."""
    payload = load_payload("fred_observations.json")
    payload["observations"] = payload["observations"][:1]
    session.request.return_value = make_response(payload)

    result = adapter.fetch_market_size("gdp")

    assert result == [{
        "realtime_start": "2024-05-01",
        "realtime_end": "2024-05-01",
        "date": "2024-01-01",
        "value": 28284.498,
    }]
    params = session.request.call_args.kwargs["params"]
    assert params["series_id"] == "GDP"
    assert params["sort_order"] == "desc"
    assert params["limit"] == 1
    assert params["file_type"] == "json"
    assert params["api_key"] == "fred-key"


def test_fetch_industry_data(adapter, session, make_response, load_payload):
    """Test observation history with missing values mapped to None."""
    session.request.return_value = make_response(load_payload("fred_observations.json"))

    result = adapter.fetch_industry_data("GDP", observation_start="2023-01-01", frequency="q")

    assert len(result) == 3
    assert result[2]["value"] is None
    params = session.request.call_args.kwargs["params"]
    assert params["observation_start"] == "2023-01-01"
    assert params["frequency"] == "q"


def test_options_change_cache_key(adapter):
    """Test that observation options are part of the key but the API key is not."""
    plain = adapter.industry_data_key("GDP")
    ranged = adapter.industry_data_key("GDP", observation_start="2020-01-01")

    assert plain != ranged
    assert "fred-key" not in ranged
    assert adapter.industry_data_key("GDP", units=None) == plain


def test_empty_observations_no_data_then_no_upstream_call(adapter, cache, session, make_response):
    """Test that zero rows returns None and a repeat call stays in cache."""
    session.request.return_value = make_response({"observations": []})

    assert adapter.fetch_industry_data("NODATA") is None
    assert adapter.fetch_industry_data("NODATA") is None

    assert session.request.call_count == 1
    entry = cache.get_entry(adapter.industry_data_key("NODATA"))
    assert entry.data is None
    assert entry.ttl == adapter.ttls.no_data_ms


def test_missing_observations_is_malformed(adapter, cache, session, make_response):
    """Test an unrecognized body shape."""
    session.request.return_value = make_response({"seriess": []})

    assert adapter.fetch_industry_data("GDP") is None
    assert cache.get_entry(adapter.industry_data_key("GDP")).ttl == adapter.ttls.no_data_ms


def test_error_status_raises_provider_error(adapter, session, make_response):
    """Test FRED's 400 error document."""
    session.request.return_value = make_response(
        {"error_code": 400, "error_message": "Bad Request.  The series does not exist."},
        status=400,
    )

    with pytest.raises(ProviderError, match="FRED API Error: 400"):
        adapter.fetch_industry_data("BOGUS")


def test_search_series(adapter, session, make_response):
    """Test keyword search."""
    session.request.return_value = make_response({"seriess": [{"id": "INDPRO", "title": "Industrial Production"}]})

    assert adapter.search_series("industrial production", limit=5)[0]["id"] == "INDPRO"
    assert session.request.call_args.kwargs["params"]["limit"] == 5
    with pytest.raises(ValueError):
        adapter.search_series("")


def test_series_id_required(adapter):
    with pytest.raises(ValueError):
        adapter.fetch_market_size("")


def test_zero_rows_store_none_with_no_data_ttl(adapter, cache, session, make_response, monkeypatch):
    """Test the exact cache write for an empty observation list."""
    set_spy = MagicMock(wraps=cache.set)
    monkeypatch.setattr(cache, "set", set_spy)
    session.request.return_value = make_response({"observations": []})

    adapter.fetch_industry_data("EMPTY")

    set_spy.assert_called_once_with(adapter.industry_data_key("EMPTY"), None, adapter.ttls.no_data_ms)


def test_non_object_observation_is_malformed(adapter, cache, session, make_response):
    """Test that an observation that is not an object is cached as None on the short tier."""
    session.request.return_value = make_response({"observations": ["oops"]})

    assert adapter.fetch_market_size("GDP") is None

    entry = cache.get_entry(adapter.market_size_key("GDP"))
    assert entry.data is None
    assert entry.ttl == adapter.ttls.no_data_ms
