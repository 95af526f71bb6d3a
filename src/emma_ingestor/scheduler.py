"""Scheduler - runs one periodic fetch-then-publish task per source."""

import asyncio
import logging
import signal
import time
from dataclasses import dataclass, field
from typing import Optional, Type

from .definitions import SourceDefinition
from .errors import CapabilityError, FetchError, PublishError, ValidationError
from .handlers import Handler, HandlerRegistry
from .models import DataPoint
from .publisher import Publisher

logger = logging.getLogger(__name__)


@dataclass
class TickResult:
    """Outcome of one fetch-then-publish cycle."""

    source: str
    success: bool
    points: list[DataPoint] = field(default_factory=list)
    published: bool = False
    error: Optional[str] = None
    duration_ms: float = 0.0


class SourceWorker:
    """
    Owns one source's handler, interval timer and asyncio task.

    Ticks run at a fixed rate: immediately on start, then every
    ``definition.interval`` seconds. A tick that overruns its slot skips the
    missed slots instead of bursting.
    """

    def __init__(self, definition: SourceDefinition, handler: Handler, publisher: Optional[Publisher]):
        self.definition = definition
        self.handler = handler
        self.publisher = publisher
        self.name = definition.name
        self.interval = definition.interval
        self.ticks = 0
        self._task: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        self._stopping.clear()
        self._task = asyncio.create_task(self._run(), name=f"source:{self.name}")
        return self._task

    async def stop(self):
        """Let any in-flight tick finish, then close the handler."""
        self._stopping.set()
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        try:
            await self.handler.close()
        except Exception as e:
            logger.warning(f"Error closing handler for {self.name}: {e}")

    async def _run(self):
        loop = asyncio.get_running_loop()
        next_tick = loop.time()

        while not self._stopping.is_set():
            await self.tick()

            next_tick += self.interval
            now = loop.time()
            if next_tick < now:
                missed = int((now - next_tick) // self.interval) + 1
                logger.debug(f"{self.name} overran its interval, skipping {missed} tick(s)")
                next_tick += missed * self.interval

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=next_tick - now)
            except asyncio.TimeoutError:
                pass

    async def tick(self, publish: bool = True) -> TickResult:
        """Run one fetch-then-publish cycle. Errors are logged, never raised."""
        start = time.time()
        self.ticks += 1
        result = TickResult(source=self.name, success=False)

        logger.info(f"Fetching data for source: {self.name}")
        try:
            # Fresh read-only snapshot per tick
            result.points = await self.handler.fetch(self.definition.handler_config())
        except FetchError as e:
            result.error = str(e)
            logger.error(f"Error fetching data for {self.name}: {e}")
            return self._finish(result, start)
        except Exception as e:
            result.error = str(e)
            logger.exception(f"Unexpected error fetching data for {self.name}: {e}")
            return self._finish(result, start)

        if not result.points:
            result.success = True
            logger.warning(f"No data points received for {self.name}")
            return self._finish(result, start)

        logger.info(f"Successfully fetched {len(result.points)} data points for {self.name}")
        for point in result.points:
            logger.debug(
                f"{point.source} ({point.category}): {point.variable} = {point.value:.2f} "
                f"{point.units} at ({point.lat:.4f}, {point.lon:.4f})"
            )

        if not publish or self.publisher is None:
            result.success = True
            return self._finish(result, start)

        try:
            await self.publisher.publish(result.points)
        except PublishError as e:
            result.error = str(e)
            logger.error(f"Failed to publish data for {self.name}: {e}")
            return self._finish(result, start)
        except Exception as e:
            result.error = str(e)
            logger.exception(f"Unexpected error publishing data for {self.name}: {e}")
            return self._finish(result, start)

        result.success = True
        result.published = True
        logger.info(f"Successfully published {len(result.points)} points for {self.name}")
        return self._finish(result, start)

    @staticmethod
    def _finish(result: TickResult, start: float) -> TickResult:
        result.duration_ms = (time.time() - start) * 1000
        return result


class Scheduler:
    """
    Runs every loaded source definition on its own schedule.

    Sources whose handler cannot be resolved or whose config does not
    validate are logged and skipped for the lifetime of the process.
    """

    def __init__(
        self,
        definitions: list[SourceDefinition],
        publisher: Optional[Publisher] = None,
        registry: Type[HandlerRegistry] = HandlerRegistry,
    ):
        self.definitions = definitions
        self.publisher = publisher
        self.registry = registry
        self.workers: list[SourceWorker] = []
        self.skipped: dict[str, str] = {}
        self._running = False
        self._stopped = asyncio.Event()
        self._stop_task: Optional[asyncio.Task] = None

    def setup(self):
        """Resolve and validate a handler for each definition."""
        for definition in self.definitions:
            try:
                handler = self.registry.create(definition.type)
                handler.validate(definition.handler_config())
            except (CapabilityError, ValidationError) as e:
                self.skipped[definition.name] = str(e)
                logger.error(f"Skipping source {definition.name}: {e}")
                continue

            self.workers.append(SourceWorker(definition, handler, self.publisher))
            logger.info(
                f"Starting worker for source: {definition.name} "
                f"(type: {definition.type}, category: {definition.category}, every {definition.frequency})"
            )

        logger.info(f"Scheduler initialized with {len(self.workers)} sources ({len(self.skipped)} skipped)")

    async def run(self):
        """Start all workers and block until stop() is called or a signal arrives."""
        self._running = True
        self._stopped.clear()
        self._stop_task = None

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._on_signal)
            except (NotImplementedError, RuntimeError):
                # Windows / non-main thread
                pass

        for worker in self.workers:
            worker.start()

        await self._stopped.wait()

    def _on_signal(self):
        if self._stop_task is None:
            self._stop_task = asyncio.create_task(self.stop())

    async def stop(self):
        """Stop all workers, close the publisher."""
        if not self._running:
            return
        self._running = False
        logger.info("Shutting down gracefully...")

        await asyncio.gather(*(worker.stop() for worker in self.workers))

        if self.publisher is not None:
            await self.publisher.stop()

        self._stopped.set()

    async def run_once(self, publish: bool = True) -> list[TickResult]:
        """Run a single tick for every worker concurrently."""
        results = await asyncio.gather(*(worker.tick(publish=publish) for worker in self.workers))
        return list(results)

    async def close(self):
        """Release handler resources without running the loop."""
        for worker in self.workers:
            await worker.handler.close()
