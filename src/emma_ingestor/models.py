"""Data model shared by handlers, extraction and publishing."""

from dataclasses import asdict, dataclass
from typing import Any, Mapping


@dataclass
class DataPoint:
    """A single timestamped, geolocated measurement ready for publication."""

    source: str
    epoch_ms: int
    value: float
    lat: float
    lon: float
    variable: str = "unknown"
    units: str = "unknown"
    resolution: str = "point"
    uuid: str = ""  # unique token, see extraction.make_token
    category: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON encoding."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DataPoint":
        return cls(
            source=data.get("source", ""),
            epoch_ms=int(data.get("epoch_ms", 0)),
            value=float(data.get("value", 0.0)),
            lat=float(data.get("lat", 0.0)),
            lon=float(data.get("lon", 0.0)),
            variable=data.get("variable", ""),
            units=data.get("units", ""),
            resolution=data.get("resolution", ""),
            uuid=data.get("uuid", ""),
            category=data.get("category", ""),
        )
