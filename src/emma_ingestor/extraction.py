"""Path-based extraction of data points from JSON documents."""

import json
import logging
import re
import threading
import time
from functools import lru_cache
from itertools import product
from typing import Any, Mapping, Optional

from jsonpath_ng import parse as jsonpath_parse
from jsonpath_ng.exceptions import JSONPathError

from .errors import FetchError
from .models import DataPoint

logger = logging.getLogger(__name__)

LAT_RANGE = (-90.0, 90.0)
LON_RANGE = (-180.0, 180.0)

DEFAULT_VARIABLE = "unknown"
DEFAULT_UNITS = "unknown"
DEFAULT_RESOLUTION = "point"

_NUMERIC_SEGMENT = re.compile(r"\.(\d+)(?=\.|$)")

_token_lock = threading.Lock()
_last_token_ns = 0


def canonicalize(document: Any) -> bytes:
    """
    Serialize a parsed JSON document to its canonical byte form.

    Non-ASCII text is escaped, so lone surrogates from "\\uXXXX" escapes in the
    response survive the round trip.
    """
    try:
        return json.dumps(document, separators=(",", ":"), sort_keys=True).encode("ascii")
    except (TypeError, ValueError) as e:
        raise FetchError(f"failed to serialize response: {e}") from e


def _root(path: str) -> str:
    path = path.strip()
    if not path.startswith("$"):
        path = "$." + path
    return path


def normalize_path(path: str) -> str:
    """
    Turn a path query into JSONPath.

    Bare dotted paths ("main.temp") are rooted at "$", and numeric segments
    ("list.0.temp") become array indexes.
    """
    return _NUMERIC_SEGMENT.sub(r"[\1]", _root(path))


def path_variants(path: str) -> list[str]:
    """
    All JSONPath readings of a path query, array indexes first.

    A numeric dotted segment ("data.2024") may be an array index or an object
    key, so each one is tried both ways.
    """
    parts = _NUMERIC_SEGMENT.split(_root(path))
    text, numbers = parts[0::2], parts[1::2]

    variants = []
    for choice in product((False, True), repeat=len(numbers)):
        rendered = [text[0]]
        for number, as_key, tail in zip(numbers, choice, text[1:]):
            rendered.append(f'["{number}"]' if as_key else f"[{number}]")
            rendered.append(tail)
        variants.append("".join(rendered))
    return variants


@lru_cache(maxsize=256)
def _compile(path: str) -> tuple:
    return tuple(jsonpath_parse(variant) for variant in path_variants(path))


def _next_timestamp_ns() -> int:
    """Nanosecond wall-clock time, strictly increasing within the process."""
    global _last_token_ns
    with _token_lock:
        now = time.time_ns()
        if now <= _last_token_ns:
            now = _last_token_ns + 1
        _last_token_ns = now
        return now


def make_token(source: str, variable: str, station_id: Optional[str] = None) -> str:
    """Build the identifying token for a data point."""
    ns = _next_timestamp_ns()
    if station_id:
        return f"{source}_{variable}_{station_id}_{ns}"
    return f"{source}_{variable}_{ns}"


def _check_range(name: str, value: float, bounds: tuple[float, float]):
    low, high = bounds
    if not low <= value <= high:
        raise FetchError(f"{name} {value} out of range [{low:g}, {high:g}]")


class PathExtractor:
    """
    Extracts typed data points from one JSON document.

    Config for a single point:
        response_path: str - path to the value (required)
        variable: str - variable name (default: "unknown")
        units: str - unit string (default: "unknown")
        resolution: str - spatial resolution label (default: "point")
        coordinates: dict - {lat, lon} literals or {lat_path, lon_path}
        station_id: str - optional station identifier

    If the config has a ``data_points`` list, every entry is a single-point
    config and yields one point. Entries without their own coordinates or
    station_id use the enclosing config's. Any failing entry fails the whole
    extraction.
    """

    def __init__(self, document: Any):
        self.document = document

    @classmethod
    def from_bytes(cls, raw: bytes | str) -> "PathExtractor":
        try:
            return cls(json.loads(raw))
        except ValueError as e:
            raise FetchError(f"failed to parse JSON: {e}") from e

    def find(self, path: str) -> Any:
        """
        Evaluate a path query and return the first match.

        Raises:
            FetchError: if the path is invalid or resolves to nothing
        """
        if not isinstance(path, str) or not path.strip():
            raise FetchError("path query must be a non-empty string")
        try:
            expressions = _compile(path)
        except JSONPathError as e:
            raise FetchError(f"invalid path {path!r}: {e}") from e

        for expr in expressions:
            try:
                matches = expr.find(self.document)
            except (KeyError, IndexError, TypeError, AttributeError):
                # index form applied to an object, or key form to an array
                continue
            if matches:
                return matches[0].value
        raise FetchError(f"path not found: {path}")

    def find_float(self, path: str) -> float:
        value = self.find(path)
        return self._to_float(value, path)

    @staticmethod
    def _to_float(value: Any, path: str) -> float:
        if isinstance(value, (dict, list)) or value is None:
            raise FetchError(f"value at {path} is not numeric: {value!r}")
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise FetchError(f"value at {path} is not numeric: {value!r}") from e

    def extract_points(self, config: Mapping[str, Any]) -> list[DataPoint]:
        """Extract one point per ``data_points`` entry, or one point from the config itself."""
        entries = config.get("data_points")
        if entries is None:
            return [self.extract_point(config, config)]

        if not isinstance(entries, list):
            raise FetchError("data_points must be a list")

        points = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, Mapping):
                raise FetchError(f"data_points[{index}] must be a mapping")
            points.append(self.extract_point(entry, config))
        return points

    def extract_point(self, entry: Mapping[str, Any], parent: Mapping[str, Any]) -> DataPoint:
        """Extract a single point; ``parent`` supplies source, category and inherited fields."""
        response_path = entry.get("response_path")
        if not response_path:
            raise FetchError("response_path is required")

        value = self.find_float(response_path)
        lat, lon = self._coordinates(entry, parent)

        source = parent.get("source") or "unknown"
        variable = entry.get("variable") or DEFAULT_VARIABLE
        station_id = entry.get("station_id", parent.get("station_id"))
        if station_id is not None:
            station_id = str(station_id)

        return DataPoint(
            source=source,
            epoch_ms=time.time_ns() // 1_000_000,
            value=value,
            lat=lat,
            lon=lon,
            variable=variable,
            units=entry.get("units") or DEFAULT_UNITS,
            resolution=entry.get("resolution") or DEFAULT_RESOLUTION,
            uuid=make_token(source, variable, station_id),
            category=parent.get("category") or "",
        )

    def _coordinates(self, entry: Mapping[str, Any], parent: Mapping[str, Any]) -> tuple[float, float]:
        coords = entry.get("coordinates")
        if coords is None and entry is not parent:
            coords = parent.get("coordinates")
        if coords is None:
            # Allow lat/lon keys directly on the point config
            coords = entry
        if not isinstance(coords, Mapping):
            raise FetchError("coordinates must be a mapping")

        lat = self._axis(coords, "lat")
        lon = self._axis(coords, "lon")
        _check_range("latitude", lat, LAT_RANGE)
        _check_range("longitude", lon, LON_RANGE)
        return lat, lon

    def _axis(self, coords: Mapping[str, Any], axis: str) -> float:
        path = coords.get(f"{axis}_path")
        if path is not None:
            return self.find_float(path)

        literal = coords.get(axis)
        if literal is None:
            raise FetchError(f"coordinates require {axis} or {axis}_path")
        if isinstance(literal, bool) or not isinstance(literal, (int, float)):
            raise FetchError(f"coordinate {axis} must be numeric, got {literal!r}")
        return float(literal)
