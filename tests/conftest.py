"""Shared fixtures for Emma Ingestor tests."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
import yaml

from emma_ingestor.models import DataPoint


@pytest.fixture
def write_source(tmp_path):
    """Write a source definition file and return its path."""
    def _write(filename: str, data: dict | str, directory: Path | None = None) -> Path:
        target = (directory or tmp_path) / filename
        target.parent.mkdir(parents=True, exist_ok=True)
        text = data if isinstance(data, str) else yaml.safe_dump(data, sort_keys=False)
        target.write_text(text)
        return target
    return _write


@pytest.fixture
def source_data():
    """A valid http_fetch source definition document."""
    return {
        "name": "weather-station",
        "type": "http_fetch",
        "category": "environmental",
        "frequency": "15s",
        "config": {
            "url": "https://api.example.com/weather",
            "response_path": "$.main.temp",
            "variable": "temperature",
            "units": "celsius",
            "coordinates": {"lat": 51.5, "lon": -0.12},
        },
    }


def make_point(source: str = "weather-station", **overrides) -> DataPoint:
    fields = dict(
        source=source,
        epoch_ms=1_700_000_000_123,
        value=21.5,
        lat=51.5,
        lon=-0.12,
        variable="temperature",
        units="celsius",
        resolution="point",
        uuid=f"{source}_temperature_1700000000123000000",
        category="environmental",
    )
    fields.update(overrides)
    return DataPoint(**fields)


@pytest.fixture
def point():
    return make_point()


@pytest.fixture
def mock_aiokafka_producer():
    """
    Mock AIOKafkaProducer.

    send() records the message and returns an already-resolved delivery
    future; set ``producer.delivery_error`` to make deliveries fail.
    """
    producer = MagicMock()
    producer.start = AsyncMock()
    producer.stop = AsyncMock()
    producer.flush = AsyncMock()
    producer.sent = []
    producer.delivery_error = None

    async def _send(topic, value=None, key=None, headers=None):
        producer.sent.append({"topic": topic, "key": key, "value": value, "headers": dict(headers or [])})
        # Yield so concurrent publishers interleave
        await asyncio.sleep(0)
        future = asyncio.get_running_loop().create_future()
        if producer.delivery_error is not None:
            future.set_exception(producer.delivery_error)
        else:
            future.set_result(None)
        return future

    producer.send = AsyncMock(side_effect=_send)
    return producer
