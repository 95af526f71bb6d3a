"""HTTP fetch handler - polls a JSON endpoint and extracts data points by path."""

import logging
import time
from typing import Any, Mapping, Optional

import httpx

from ..errors import FetchError, ValidationError
from ..extraction import PathExtractor, canonicalize
from ..interpolation import interpolate_env
from ..models import DataPoint
from .base import Handler
from .registry import register_handler

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def _pairs(config: Mapping[str, Any], key: str) -> list[tuple[str, str]]:
    """Read an ordered list of {key, value} entries from the config."""
    entries = config.get(key) or []
    if not isinstance(entries, list):
        raise FetchError(f"{key} must be a list of key/value entries")

    pairs = []
    for entry in entries:
        if not isinstance(entry, Mapping) or "key" not in entry:
            raise FetchError(f"{key} entries need a key and a value: {entry!r}")
        value = entry.get("value")
        pairs.append((str(entry["key"]), "" if value is None else str(value)))
    return pairs


@register_handler("http_fetch")
class HttpFetchHandler(Handler):
    """
    Fetch JSON from an HTTP endpoint and extract data points by path query.

    Config:
        url: str - endpoint URL (required)
        method: str - HTTP method (default: "GET")
        headers: list[{key, value}] - "${NAME}" values read from the environment
        params: list[{key, value}] - appended to the URL query string
        response_path / data_points - see extraction.PathExtractor
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def validate(self, config: Mapping[str, Any]):
        if not config.get("url"):
            raise ValidationError("url is required for http_fetch")

    def build_request(self, config: Mapping[str, Any]) -> httpx.Request:
        """Build the outgoing request from the config."""
        method = str(config.get("method") or "GET").upper()
        headers = [(key, interpolate_env(value)) for key, value in _pairs(config, "headers")]
        params = _pairs(config, "params")

        try:
            url = httpx.URL(str(config["url"]))
            if params:
                # Append to the URL's own query, keeping repeated keys
                url = url.copy_with(params=httpx.QueryParams(url.params.multi_items() + params))
            return self._get_client().build_request(method, url, headers=headers)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise FetchError(f"failed to create request: {e}") from e

    async def fetch(self, config: Mapping[str, Any]) -> list[DataPoint]:
        """Execute the request and extract the configured points."""
        request = self.build_request(config)
        start = time.time()

        try:
            response = await self._get_client().send(request, follow_redirects=True)
        except httpx.HTTPError as e:
            raise FetchError(f"failed to fetch data: {e}") from e

        if not response.is_success:
            raise FetchError(f"HTTP {response.status_code}: {response.reason_phrase}")

        try:
            document = response.json()
        except ValueError as e:
            raise FetchError(f"failed to parse JSON: {e}") from e

        logger.debug(
            f"Fetched {request.url} in {(time.time() - start) * 1000:.1f}ms "
            f"({len(response.content)} bytes)"
        )

        extractor = PathExtractor.from_bytes(canonicalize(document))
        return extractor.extract_points(config)
