"""Emma Ingestor - declarative multi-source data ingestion worker."""

__version__ = "0.1.0"
