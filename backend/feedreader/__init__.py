"""Feed reader backend: feed ingestion pipeline and API."""

__version__ = "1.0.0"
