"""
Tests for SDMX flattening and the OECD and IMF adapters built on it.
"""

import pytest

from market_data.providers import IMFAdapter, OECDAdapter, Outcome
from market_data.providers.sdmx import (
    classify_sdmx,
    flatten_compact_data,
    flatten_sdmx_json,
    latest_record,
)


def test_flatten_all_dimensions(load_payload):
    """Test colon-keyed observations with attribute omission."""
    records = flatten_sdmx_json(load_payload("oecd_all_dimensions.json"))

    assert len(records) == 3
    first = records[0]
    assert first["REF_AREA"] == "United States"
    assert first["REF_AREA_ID"] == "USA"
    assert first["TRANSACTION_ID"] == "B1GQ"
    assert first["TIME_PERIOD"] == "2020"
    assert first["value"] == 21060474.0
    assert first["OBS_STATUS"] == "Estimated value"
    # null and missing attribute positions are omitted
    assert "OBS_STATUS" not in records[1]
    assert "OBS_STATUS" not in records[2]


def test_flatten_series_layout(load_payload):
    """Test series-keyed observations with series attributes."""
    records = flatten_sdmx_json(load_payload("oecd_series.json"))

    assert len(records) == 4
    germany = [r for r in records if r["LOCATION_ID"] == "DEU"]
    france = [r for r in records if r["LOCATION_ID"] == "FRA"]
    assert [r["TIME_PERIOD"] for r in germany] == ["2022", "2023"]
    assert germany[1]["value"] == 103.9
    assert germany[0]["UNIT"] == "Index"
    assert "UNIT" not in france[0]
    assert france[0]["SUBJECT"] == "Industrial production"


def test_unmapped_time_key_used_verbatim():
    """Test a series observation key without a time dimension definition."""
    payload = {
        "dataSets": [{"series": {"0": {"observations": {"2023-Q4": [5.0]}}}}],
        "structure": {"dimensions": {"series": [{"id": "REF_AREA", "values": [{"id": "JPN", "name": "Japan"}]}], "observation": []}},
    }

    records = flatten_sdmx_json(payload)

    assert records == [{"REF_AREA": "Japan", "REF_AREA_ID": "JPN", "TIME_PERIOD": "2023-Q4", "value": 5.0}]


def test_flatten_compact_data(load_payload):
    records = flatten_compact_data(load_payload("imf_compact.json"))

    assert len(records) == 3
    assert records[0]["REF_AREA"] == "US"
    assert records[0]["TIME_PERIOD"] == "2021"
    assert records[0]["value"] == 20194.1


def test_classify_outcomes():
    """Test no-data and malformed verdicts."""
    assert classify_sdmx({"data": {"dataSets": []}}).outcome is Outcome.NO_DATA
    assert classify_sdmx({"dataSets": [{"observations": {}}]}).outcome is Outcome.NO_DATA
    assert classify_sdmx({"CompactData": {"DataSet": {}}}).outcome is Outcome.NO_DATA

    missing = classify_sdmx({"dataSets": [{"observations": {"0": [1.0]}}]})
    assert missing.outcome is Outcome.MALFORMED
    assert "Series structure definition not found" in missing.detail

    assert classify_sdmx("NoRecordsFound").outcome is Outcome.MALFORMED


def test_latest_record_by_time_period():
    records = [{"TIME_PERIOD": "2021", "v": 1}, {"TIME_PERIOD": "2023", "v": 3}, {"TIME_PERIOD": "2022", "v": 2}]
    assert latest_record(records)["v"] == 3


# ------------------------------------------------------------------- OECD


@pytest.fixture
def oecd(make_adapter):
    return make_adapter(OECDAdapter)


def test_oecd_fetch_industry_data(oecd, session, make_response, load_payload):
    session.request.return_value = make_response(load_payload("oecd_all_dimensions.json"))

    records = oecd.fetch_industry_data("DSD_NAMAIN1@DF_QNA", filter_expression="USA.B1GQ", start_time="2020")

    assert len(records) == 3
    assert session.request.call_args.args[1] == "https://sdmx.oecd.org/public/rest/data/OECD,DSD_NAMAIN1@DF_QNA/USA.B1GQ"
    params = session.request.call_args.kwargs["params"]
    assert params["startPeriod"] == "2020"
    assert params["dimensionAtObservation"] == "AllDimensions"


def test_oecd_fetch_market_size_latest(oecd, session, make_response, load_payload):
    """Test the latest observation with an automatically resolved value field."""
    session.request.return_value = make_response(load_payload("oecd_all_dimensions.json"))

    result = oecd.fetch_market_size("DSD_NAMAIN1@DF_QNA", "USA.B1GQ")

    assert result["value"] == 25744108.0
    assert result["dimensions"]["TIME_PERIOD"] == "2022"
    assert result["source"] == "OECD"
    assert result["dataset"] == "DSD_NAMAIN1@DF_QNA"
    assert result["filter"] == "USA.B1GQ"


def test_oecd_explicit_value_attribute_missing(oecd, session, make_response, load_payload, log_records):
    session.request.return_value = make_response(load_payload("oecd_all_dimensions.json"))

    assert oecd.fetch_market_size("DSD_NAMAIN1@DF_QNA", "USA.B1GQ", value_attribute="OBS_VALUE") is None
    assert any(r["level"].name == "WARNING" and "OBS_VALUE" in r["message"] for r in log_records)


def test_oecd_no_observations(oecd, session, make_response):
    session.request.return_value = make_response({"data": {"dataSets": [{"observations": {}}], "structures": []}})

    assert oecd.fetch_industry_data("DF_X") is None
    assert oecd.fetch_industry_data("DF_X") is None
    assert session.request.call_count == 1


# -------------------------------------------------------------------- IMF


@pytest.fixture
def imf(make_adapter):
    return make_adapter(IMFAdapter)


def test_imf_fetch_industry_data(imf, session, make_response, load_payload):
    session.request.return_value = make_response(load_payload("imf_compact.json"))

    records = imf.fetch_industry_data("IFS", key="A.US.NGDP_R_XDC", start_period="2021")

    assert [r["TIME_PERIOD"] for r in records] == ["2021", "2022", "2023"]
    assert session.request.call_args.args[1].endswith("/CompactData/IFS/A.US.NGDP_R_XDC")
    assert session.request.call_args.kwargs["params"]["startPeriod"] == "2021"


def test_imf_fetch_market_size(imf, session, make_response, load_payload):
    session.request.return_value = make_response(load_payload("imf_compact.json"))

    result = imf.fetch_market_size("IFS", "A.US.NGDP_R_XDC")

    assert result["value"] == 21102.6
    assert result["key"] == "A.US.NGDP_R_XDC"
    assert result["dataset"] == "IFS"
    assert result["source"] == "IMF"
    assert result["dimensions"]["REF_AREA"] == "US"


def test_imf_requires_key(imf):
    with pytest.raises(ValueError):
        imf.fetch_industry_data("IFS")
