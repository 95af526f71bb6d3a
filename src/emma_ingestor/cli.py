"""Emma Ingestor CLI - declarative multi-source data ingestion."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .config import IngestorConfig, load_config
from .definitions import SourceDefinition, load_definitions
from .errors import CapabilityError, ConfigError, PublishError, ValidationError
from .handlers import HandlerRegistry
from .publisher import Publisher
from .scheduler import Scheduler, TickResult

console = Console()


def setup_logging(level: str):
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


def _load_or_exit(sources_dir: str) -> list[SourceDefinition]:
    """Load definitions; any failure ends the process."""
    try:
        definitions = load_definitions(sources_dir)
    except ConfigError as e:
        console.print(f"[red]x Failed to load source configs: {e}[/red]")
        sys.exit(1)

    if not definitions:
        console.print(f"[red]x No source configurations found in {sources_dir}[/red]")
        sys.exit(1)

    return definitions


def _resolve_config(
    config_path: Optional[str],
    sources_dir: Optional[str],
    brokers: Optional[str],
    topic: Optional[str],
) -> IngestorConfig:
    config = load_config(config_path)
    if sources_dir:
        config.sources_dir = sources_dir
    if brokers:
        config.kafka.brokers = [b.strip() for b in brokers.split(",") if b.strip()]
    if topic:
        config.kafka.topic = topic
    return config


@click.group()
@click.version_option(version=__version__, prog_name="emma-ingestor")
def main():
    """Emma Ingestor - poll declared sources and publish data points to Kafka."""
    pass


@main.command()
@click.option("--config", "-c", "config_path", help="Path to ingestor config file")
@click.option("--sources-dir", "-s", help="Directory of source definition files")
@click.option("--brokers", help="Comma separated Kafka brokers")
@click.option("--topic", help="Kafka topic")
@click.option("--log-level", default=None, help="Log level")
@click.option("--once", is_flag=True, help="Fetch every source once, print the points and exit without publishing")
def run(
    config_path: Optional[str],
    sources_dir: Optional[str],
    brokers: Optional[str],
    topic: Optional[str],
    log_level: Optional[str],
    once: bool,
):
    """Run the ingestion worker."""
    config = _resolve_config(config_path, sources_dir, brokers, topic)
    if log_level:
        config.log_level = log_level
    setup_logging(config.log_level)

    definitions = _load_or_exit(config.sources_dir)
    logging.getLogger(__name__).info(f"Loaded {len(definitions)} source configurations")

    async def _run():
        if once:
            scheduler = Scheduler(definitions)
            scheduler.setup()
            try:
                results = await scheduler.run_once(publish=False)
            finally:
                await scheduler.close()
            _display_results(results)
            return

        publisher = Publisher(config.kafka.brokers, config.kafka.topic, timeout=config.kafka.timeout)
        try:
            await publisher.start()
        except PublishError as e:
            console.print(f"[red]x Failed to create Kafka producer: {e}[/red]")
            sys.exit(1)

        scheduler = Scheduler(definitions, publisher)
        scheduler.setup()

        console.print(Panel(
            f"[bold green]Emma Ingestor v{__version__}[/bold green]\n"
            f"Brokers: {', '.join(config.kafka.brokers)}\n"
            f"Topic: {config.kafka.topic}\n"
            f"Sources: {', '.join(w.name for w in scheduler.workers) or 'none'}",
            title="Starting",
        ))

        try:
            await scheduler.run()
        finally:
            await scheduler.stop()

    asyncio.run(_run())


def _display_results(results: list[TickResult]):
    """Display fetched points in a table."""
    points = [p for r in results for p in r.points]

    for result in results:
        if not result.success:
            console.print(f"[red]x {result.source}: {result.error}[/red]")

    if not points:
        console.print("[yellow]No data points fetched[/yellow]")
        return

    table = Table(title=f"Fetched {len(points)} Data Points", show_lines=True)
    table.add_column("Source", style="green")
    table.add_column("Category", style="dim")
    table.add_column("Variable", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("Units")
    table.add_column("Location", style="dim")

    for point in points:
        table.add_row(
            point.source,
            point.category,
            point.variable,
            f"{point.value:.2f}",
            point.units,
            f"({point.lat:.4f}, {point.lon:.4f})",
        )

    console.print(table)


@main.command()
@click.option("--sources-dir", "-s", default=None, help="Directory of source definition files")
@click.option("--config", "-c", "config_path", help="Path to ingestor config file")
def validate(sources_dir: Optional[str], config_path: Optional[str]):
    """Validate source definitions and their handler configs without fetching."""
    config = _resolve_config(config_path, sources_dir, None, None)
    definitions = _load_or_exit(config.sources_dir)

    table = Table(title=f"Source Definitions ({config.sources_dir})")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Type")
    table.add_column("Category")
    table.add_column("Frequency", justify="right")
    table.add_column("Status")

    failed = 0
    for definition in definitions:
        try:
            handler = HandlerRegistry.create(definition.type)
            handler.validate(definition.handler_config())
            status = "[green]+ ok[/green]"
        except (CapabilityError, ValidationError) as e:
            failed += 1
            status = f"[red]x {e}[/red]"
        table.add_row(definition.name, definition.type, definition.category, definition.frequency, status)

    console.print(table)

    if failed:
        console.print(f"\n[red]{failed} of {len(definitions)} sources would be skipped[/red]")
        sys.exit(1)
    console.print(f"\n[green]+ All {len(definitions)} sources are valid[/green]")


@main.command()
def handlers():
    """List available handler types."""
    console.print("[bold]Available Handlers:[/bold]\n")

    table = Table(show_header=True)
    table.add_column("Type", style="cyan", no_wrap=True)
    table.add_column("Description")

    for handler_type in HandlerRegistry.list_types():
        handler_class = HandlerRegistry.get(handler_type)
        status = "[green]+" if handler_class.implemented else "[red]x"
        table.add_row(f"{status} {handler_type}", handler_class.description())

    console.print(table)
    console.print("\n[dim]+ = implemented, x = declared but not implemented yet[/dim]")


SAMPLE_SOURCE = """# Emma Ingestor source definition
# One file per source; every *.yaml / *.yml file in the sources directory is loaded.

name: openweather-london
type: http_fetch
category: environmental   # environmental, health, infrastructure, economic, social
frequency: 15m            # Go-style duration: 30s, 15m, 1h30m

config:
  url: https://api.openweathermap.org/data/2.5/weather
  method: GET
  headers:
    - key: Accept
      value: application/json
    - key: X-Api-Key
      value: ${WEATHER_API_KEY}   # substituted from the environment
  params:
    - key: q
      value: London
    - key: units
      value: metric

  # Several points from one response; drop data_points and put
  # response_path/variable/units at this level for a single point.
  coordinates:
    lat_path: $.coord.lat
    lon_path: $.coord.lon
  station_id: london
  data_points:
    - response_path: $.main.temp
      variable: temperature
      units: celsius
    - response_path: $.main.humidity
      variable: humidity
      units: percent
"""


@main.command()
@click.option("--output", "-o", type=click.Path(), help="Output file path")
def init(output: Optional[str]):
    """Generate a sample source definition file."""
    output_path = output or "sources/openweather-london.yaml"

    Path(output_path).parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w") as f:
        f.write(SAMPLE_SOURCE)

    console.print(f"[green]+ Created source definition: {output_path}[/green]")
    console.print("\nCheck it, then run:")
    console.print(f"  [cyan]emma-ingestor validate -s {Path(output_path).parent}[/cyan]")


if __name__ == "__main__":
    main()
