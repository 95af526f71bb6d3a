"""Web scraper handler - declared, not implemented yet."""

from typing import Any, Mapping

from ..errors import CapabilityError
from ..models import DataPoint
from .base import Handler
from .registry import register_handler


@register_handler("web_scraper")
class WebScraperHandler(Handler):
    """Scrape data points from HTML pages (not implemented)."""

    implemented = False

    def validate(self, config: Mapping[str, Any]):
        raise CapabilityError("web_scraper not implemented yet")

    async def fetch(self, config: Mapping[str, Any]) -> list[DataPoint]:
        raise CapabilityError("web_scraper not implemented yet")
