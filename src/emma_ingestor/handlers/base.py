"""Base interface for all source handlers."""

from abc import ABC, abstractmethod
from typing import Any, Mapping

from ..models import DataPoint


class Handler(ABC):
    """
    Abstract base class for all source handlers.

    Implement this interface to support a new source type.

    Example:
        @register_handler("web_scraper")
        class WebScraperHandler(Handler):

            def validate(self, config):
                ...

            async def fetch(self, config) -> list[DataPoint]:
                ...
    """

    # Set by @register_handler
    handler_type: str = "base"

    # Declared-but-unimplemented handlers set this to False; the registry
    # refuses to create them.
    implemented: bool = True

    @abstractmethod
    def validate(self, config: Mapping[str, Any]):
        """
        Check that the config has everything fetch() needs.

        Raises:
            ValidationError: if a required field is missing
        """
        pass

    @abstractmethod
    async def fetch(self, config: Mapping[str, Any]) -> list[DataPoint]:
        """
        Fetch and extract data points for one tick.

        Raises:
            FetchError: on any failure; the tick is aborted
        """
        pass

    async def close(self):
        """Clean up resources. Override if needed."""
        pass

    @classmethod
    def description(cls) -> str:
        doc = (cls.__doc__ or "").strip()
        return doc.splitlines()[0] if doc else ""
