"""Configuration management for the Emma Ingestor process."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_BROKERS = "localhost:9092"
DEFAULT_TOPIC = "data.raw"
DEFAULT_SOURCES_DIR = "./sources"


def _split_brokers(value: str | list) -> list[str]:
    if isinstance(value, list):
        return [str(b).strip() for b in value if str(b).strip()]
    return [b.strip() for b in value.split(",") if b.strip()]


@dataclass
class KafkaSettings:
    """Kafka producer configuration."""

    brokers: list[str] = field(default_factory=lambda: [DEFAULT_BROKERS])
    topic: str = DEFAULT_TOPIC
    timeout: float = 30.0  # seconds, bounds one batch submission


@dataclass
class IngestorConfig:
    """Main ingestor configuration."""

    kafka: KafkaSettings = field(default_factory=KafkaSettings)

    # Directory scanned for source definition files
    sources_dir: str = DEFAULT_SOURCES_DIR

    log_level: str = "INFO"

    @classmethod
    def from_file(cls, path: str | Path) -> "IngestorConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: dict) -> "IngestorConfig":
        """Create config from dictionary. Environment variables win over file values."""
        config = cls()

        if "kafka" in data:
            k = data["kafka"] or {}
            config.kafka = KafkaSettings(
                brokers=_split_brokers(k.get("brokers", DEFAULT_BROKERS)),
                topic=k.get("topic", config.kafka.topic),
                timeout=float(k.get("timeout", config.kafka.timeout)),
            )

        config.sources_dir = data.get("sources_dir", config.sources_dir)
        config.log_level = data.get("log_level", config.log_level)

        config.apply_env()
        return config

    @classmethod
    def from_env(cls) -> "IngestorConfig":
        """Create config from environment variables."""
        config = cls()
        config.apply_env()
        return config

    def apply_env(self):
        """Override settings from KAFKA_BROKERS, KAFKA_TOPIC, SOURCES_DIR and LOG_LEVEL."""
        if os.environ.get("KAFKA_BROKERS"):
            self.kafka.brokers = _split_brokers(os.environ["KAFKA_BROKERS"])
        if os.environ.get("KAFKA_TOPIC"):
            self.kafka.topic = os.environ["KAFKA_TOPIC"]
        if os.environ.get("SOURCES_DIR"):
            self.sources_dir = os.environ["SOURCES_DIR"]
        if os.environ.get("LOG_LEVEL"):
            self.log_level = os.environ["LOG_LEVEL"]


def load_config(config_path: Optional[str] = None) -> IngestorConfig:
    """Load configuration from file or environment."""
    if config_path and Path(config_path).exists():
        return IngestorConfig.from_file(config_path)

    default_paths = [
        Path("emma-ingestor.yaml"),
        Path("emma-ingestor.yml"),
        Path("/etc/emma/ingestor.yaml"),
    ]

    for path in default_paths:
        if path.exists():
            return IngestorConfig.from_file(path)

    return IngestorConfig.from_env()
