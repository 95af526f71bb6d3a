"""Exception hierarchy for the ingestor."""

from typing import Optional


class IngestorError(Exception):
    """Base class for all ingestor errors."""


class ConfigError(IngestorError):
    """A source definition is malformed. Fatal at startup."""

    def __init__(self, message: str, path: Optional[str] = None, field: Optional[str] = None):
        self.path = path
        self.field = field
        if path:
            message = f"invalid configuration in {path}: {message}"
        super().__init__(message)


class CapabilityError(IngestorError):
    """Unknown or unimplemented handler type."""


class ValidationError(IngestorError):
    """Handler-specific config is missing required fields."""


class FetchError(IngestorError):
    """A single fetch tick failed (network, status, JSON, path, coordinates)."""


class PublishError(IngestorError):
    """Encoding or bus submission failed for a batch."""
