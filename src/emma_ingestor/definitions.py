"""Source definitions - declarative descriptions of external data origins."""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFINITION_EXTENSIONS = (".yaml", ".yml")

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


class SourceCategory(str, Enum):
    """Categories of collected data."""
    ENVIRONMENTAL = "environmental"
    HEALTH = "health"
    INFRASTRUCTURE = "infrastructure"
    ECONOMIC = "economic"
    SOCIAL = "social"

    @classmethod
    def values(cls) -> list[str]:
        return [c.value for c in cls]


def is_valid_category(category: str) -> bool:
    """Check if the category is one of the known categories."""
    return category in SourceCategory.values()


def parse_duration(text: str) -> float:
    """
    Parse a duration string such as "15s", "1h30m" or "500ms".

    Returns:
        The duration in seconds (may be zero or negative; callers decide)

    Raises:
        ValueError: if the string is not a valid duration
    """
    s = text.strip()
    if not s:
        raise ValueError("empty duration")

    sign = 1.0
    if s[0] in "+-":
        sign = -1.0 if s[0] == "-" else 1.0
        s = s[1:]

    # A bare zero is the only unit-less duration accepted
    if s == "0":
        return 0.0

    total = 0.0
    pos = 0
    while pos < len(s):
        match = _DURATION_PART.match(s, pos)
        if match is None:
            raise ValueError(f"invalid duration {text!r}")
        number, unit = match.groups()
        total += float(number) * _DURATION_UNITS[unit]
        pos = match.end()

    if pos == 0:
        raise ValueError(f"invalid duration {text!r}")
    return sign * total


@dataclass(frozen=True)
class SourceDefinition:
    """One external data origin loaded from a definition file."""

    name: str
    type: str  # selects the handler, e.g. "http_fetch"
    category: str
    frequency: str  # duration string, e.g. "15s"
    config: Mapping[str, Any] = field(default_factory=dict)
    path: str = ""  # file this definition was loaded from

    @property
    def interval(self) -> float:
        """Polling interval in seconds."""
        return parse_duration(self.frequency)

    def handler_config(self) -> Mapping[str, Any]:
        """
        Build the read-only config passed to the handler on each tick.

        The definition's category and name are merged over the type-specific
        config as "category" and "source".
        """
        merged = dict(self.config)
        merged["category"] = self.category
        merged["source"] = self.name
        return MappingProxyType(merged)

    def validate(self):
        """Validate all fields, raising ConfigError on the first violation."""
        for field_name in ("name", "type", "category", "frequency"):
            value = getattr(self, field_name)
            if value is not None and not isinstance(value, str):
                raise ConfigError(
                    f"source {field_name} must be a string, got {type(value).__name__}",
                    path=self.path or None,
                    field=field_name,
                )
            if not value or not value.strip():
                raise ConfigError(
                    f"source {field_name} cannot be empty",
                    path=self.path or None,
                    field=field_name,
                )

        if not is_valid_category(self.category):
            raise ConfigError(
                f"invalid category '{self.category}'. "
                f"Valid categories are: {', '.join(SourceCategory.values())}",
                path=self.path or None,
                field="category",
            )

        try:
            seconds = parse_duration(self.frequency)
        except ValueError as e:
            raise ConfigError(
                f"invalid frequency format '{self.frequency}': {e}",
                path=self.path or None,
                field="frequency",
            ) from e
        if seconds <= 0:
            raise ConfigError(
                f"frequency must be positive, got '{self.frequency}'",
                path=self.path or None,
                field="frequency",
            )

        if not isinstance(self.config, Mapping):
            raise ConfigError(
                "config must be a mapping",
                path=self.path or None,
                field="config",
            )

    @classmethod
    def from_dict(cls, data: dict, path: str = "") -> "SourceDefinition":
        """Create a definition from a parsed YAML document."""
        if not isinstance(data, dict):
            raise ConfigError("document must be a mapping", path=path or None)

        config = data.get("config")
        if config is None:
            config = {}

        definition = cls(
            name=data.get("name", ""),
            type=data.get("type", ""),
            category=data.get("category", ""),
            frequency=data.get("frequency", ""),
            config=config,
            path=path,
        )
        definition.validate()
        return definition

    @classmethod
    def from_file(cls, path: str | Path) -> "SourceDefinition":
        """Load and validate a definition from a YAML file."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"failed to read: {e}", path=str(path)) from e
        except yaml.YAMLError as e:
            raise ConfigError(f"failed to parse: {e}", path=str(path)) from e
        return cls.from_dict(data, path=str(path))


def load_definitions(directory: str | Path) -> list[SourceDefinition]:
    """
    Load every source definition under a directory (recursively).

    Any invalid file aborts the whole load.

    Raises:
        ConfigError: naming the offending file and field
    """
    root = Path(directory)
    if not root.is_dir():
        raise ConfigError(f"sources directory not found: {root}")

    definitions: list[SourceDefinition] = []
    seen: dict[str, str] = {}

    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.suffix not in DEFINITION_EXTENSIONS:
            continue

        definition = SourceDefinition.from_file(path)

        if definition.name in seen:
            raise ConfigError(
                f"duplicate source name '{definition.name}' (also defined in {seen[definition.name]})",
                path=str(path),
                field="name",
            )
        seen[definition.name] = str(path)

        logger.debug(f"Loaded source definition {definition.name} from {path}")
        definitions.append(definition)

    return definitions
