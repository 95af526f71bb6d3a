"""Kafka publisher for extracted data points."""

import asyncio
import logging
from typing import Optional, Sequence

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

from .encoding import encode
from .errors import PublishError
from .models import DataPoint

logger = logging.getLogger(__name__)


def _bytes(value: str) -> bytes:
    return value.encode("utf-8", errors="replace")


class Publisher:
    """
    Publishes batches of data points to a Kafka topic.

    One instance is shared by every source worker. AIOKafkaProducer is safe
    for concurrent use from tasks on the same event loop; start/stop are
    serialized with a lock.
    """

    def __init__(
        self,
        brokers: list[str],
        topic: str,
        timeout: float = 30.0,
        producer: Optional[AIOKafkaProducer] = None,
    ):
        self.brokers = brokers
        self.topic = topic
        self.timeout = timeout
        self._producer = producer
        self._started = False
        self._lock = asyncio.Lock()

    @property
    def is_started(self) -> bool:
        return self._started and self._producer is not None

    async def start(self):
        """Connect the underlying producer."""
        async with self._lock:
            if self._started:
                logger.warning("Publisher already started, ignoring duplicate start call")
                return

            if self._producer is None:
                self._producer = AIOKafkaProducer(
                    bootstrap_servers=",".join(self.brokers),
                    request_timeout_ms=int(self.timeout * 1000),
                )

            try:
                await self._producer.start()
            except KafkaError as e:
                raise PublishError(f"failed to connect to Kafka brokers {self.brokers}: {e}") from e

            self._started = True
            logger.info(f"Connected to Kafka brokers: {self.brokers}, topic: {self.topic}")

    async def stop(self):
        """Flush and close the producer."""
        async with self._lock:
            if self._producer is None:
                return
            try:
                if self._started:
                    await self._producer.flush()
                await self._producer.stop()
                logger.info("Publisher stopped")
            except KafkaError as e:
                logger.error(f"Error stopping publisher: {e}")
            finally:
                self._producer = None
                self._started = False

    async def publish(self, points: Sequence[DataPoint]):
        """
        Encode and submit a batch of points.

        Each point becomes one message keyed by its source. The whole batch is
        submitted together and bounded by the publisher timeout.

        Raises:
            PublishError: encoding or submission failed; nothing is reported
                about which messages, if any, were accepted
        """
        if not points:
            return

        if not self.is_started:
            raise PublishError("publisher not started")

        messages = []
        for point in points:
            encoded = encode(point)
            messages.append((
                _bytes(point.source),
                encoded.payload,
                [
                    ("source", _bytes(point.source)),
                    ("variable", _bytes(point.variable)),
                    ("category", _bytes(point.category)),
                    ("format", _bytes(encoded.format)),
                ],
            ))

        try:
            await asyncio.wait_for(self._submit(messages), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise PublishError(
                f"timed out after {self.timeout}s writing {len(messages)} messages to {self.topic}"
            ) from e
        except KafkaError as e:
            raise PublishError(f"failed to write messages to Kafka: {e}") from e

        logger.info(f"Published {len(messages)} messages to Kafka topic: {self.topic}")

    async def _submit(self, messages: list[tuple[bytes, bytes, list]]):
        futures = []
        for key, value, headers in messages:
            future = await self._producer.send(self.topic, value=value, key=key, headers=headers)
            futures.append(future)
        await asyncio.gather(*futures)
