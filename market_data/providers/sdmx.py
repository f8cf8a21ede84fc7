"""
SDMX payload flattening shared by the OECD and IMF adapters.

Two encodings are understood:
- SDMX-JSON, with observations either keyed by the full colon-joined
  dimension index ("AllDimensions") or nested under series keys
- IMF CompactData, where series and observations carry "@"-prefixed fields

Both produce flat records: every dimension contributes ``<DIM>`` (display
name) and ``<DIM>_ID`` (code), attributes contribute ``<ATTR>``, and the
observation itself lands in ``value``.
"""

from typing import Any, Optional

from .base import FetchResult, to_number

TIME_PERIOD = "TIME_PERIOD"


class SDMXStructureError(ValueError):
    """The payload has data but no usable structure definition."""


def _structure(root: dict[str, Any]) -> Optional[dict[str, Any]]:
    if isinstance(root.get("structure"), dict):
        return root["structure"]
    structures = root.get("structures")
    if isinstance(structures, list) and structures and isinstance(structures[0], dict):
        return structures[0]
    return None


def _component_value(component: dict[str, Any], index: Any) -> Optional[dict[str, Any]]:
    values = component.get("values") or []
    try:
        position = int(index)
    except (TypeError, ValueError):
        return None
    if 0 <= position < len(values):
        return values[position]
    return None


def _display(value: dict[str, Any]) -> Any:
    name = value.get("name")
    if isinstance(name, dict):
        # Localized names: {"en": "..."}
        name = name.get("en") or next(iter(name.values()), None)
    return name if name is not None else value.get("id")


def _apply_dimensions(record: dict[str, Any], dimensions: list[dict], key: str) -> None:
    indices = key.split(":") if key != "" else []
    for dimension, index in zip(dimensions, indices):
        dim_id = dimension.get("id")
        value = _component_value(dimension, index)
        if value is None:
            if dim_id == TIME_PERIOD:
                record[TIME_PERIOD] = index
            continue
        record[dim_id] = _display(value)
        record[f"{dim_id}_ID"] = value.get("id")


def _apply_attributes(record: dict[str, Any], attributes: list[dict], indices: list[Any]) -> None:
    for attribute, index in zip(attributes, indices):
        if index is None:
            continue
        value = _component_value(attribute, index)
        if value is not None:
            record[attribute.get("id")] = _display(value)


def flatten_sdmx_json(payload: dict[str, Any]) -> list[dict[str, Any]]:
    """
    Flatten an SDMX-JSON data message into records.

    Raises:
        SDMXStructureError: Observations are present but dimensions are not
    """
    root = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    data_sets = [ds for ds in root.get("dataSets") or [] if ds.get("observations") or ds.get("series")]
    if not data_sets:
        return []

    structure = _structure(root)
    dimensions = (structure or {}).get("dimensions")
    if not isinstance(dimensions, dict):
        raise SDMXStructureError("Series structure definition not found")
    series_dims = dimensions.get("series") or []
    obs_dims = dimensions.get("observation") or []
    attributes = (structure.get("attributes") or {}) if structure else {}
    series_attrs = attributes.get("series") or []
    obs_attrs = attributes.get("observation") or []

    records: list[dict[str, Any]] = []
    for data_set in data_sets:
        # AllDimensions: "0:1:2" indexes every dimension at observation level
        for obs_key, obs in (data_set.get("observations") or {}).items():
            record: dict[str, Any] = {}
            _apply_dimensions(record, obs_dims, obs_key)
            record["value"] = to_number(obs[0]) if obs else None
            _apply_attributes(record, obs_attrs, list(obs[1:]))
            records.append(record)

        for series_key, series in (data_set.get("series") or {}).items():
            base: dict[str, Any] = {}
            _apply_dimensions(base, series_dims, series_key)
            _apply_attributes(base, series_attrs, list(series.get("attributes") or []))
            for obs_key, obs in (series.get("observations") or {}).items():
                record = dict(base)
                if obs_dims:
                    _apply_dimensions(record, obs_dims, obs_key)
                else:
                    record[TIME_PERIOD] = obs_key
                record["value"] = to_number(obs[0]) if obs else None
                _apply_attributes(record, obs_attrs, list(obs[1:]))
                records.append(record)
    return records


def _as_list(value: Any) -> list:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def flatten_compact_data(payload: dict[str, Any]) -> list[dict[str, Any]]:
    """Flatten an IMF CompactData message ({"CompactData": {"DataSet": {"Series": ...}}})."""
    data_set = (payload.get("CompactData") or {}).get("DataSet") or {}
    records: list[dict[str, Any]] = []
    for series in _as_list(data_set.get("Series")):
        base = {k.lstrip("@"): v for k, v in series.items() if k.startswith("@")}
        for obs in _as_list(series.get("Obs")):
            record = dict(base)
            for field, raw in obs.items():
                name = field.lstrip("@")
                if name == "OBS_VALUE":
                    record["value"] = to_number(raw)
                else:
                    record[name] = raw
            records.append(record)
    return records


def classify_sdmx(payload: Any) -> FetchResult:
    """Classify an SDMX response body as flattened records."""
    if not isinstance(payload, dict):
        return FetchResult.malformed(f"expected an object, got {type(payload).__name__}")
    try:
        if "CompactData" in payload:
            records = flatten_compact_data(payload)
        else:
            records = flatten_sdmx_json(payload)
    except SDMXStructureError as e:
        return FetchResult.malformed(str(e))
    except (AttributeError, TypeError) as e:
        return FetchResult.malformed(f"unreadable SDMX payload: {e}")
    if not records:
        return FetchResult.no_data("no observations")
    return FetchResult.success(records)


def latest_record(records: list[dict[str, Any]]) -> dict[str, Any]:
    """Record with the greatest TIME_PERIOD; position breaks ties and fills gaps."""
    return max(enumerate(records), key=lambda item: (str(item[1].get(TIME_PERIOD) or ""), item[0]))[1]


def dimensions_of(record: dict[str, Any], value_field: str) -> dict[str, Any]:
    return {k: v for k, v in record.items() if k != value_field}
