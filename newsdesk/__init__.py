"""News ingestion pipeline: feeds in, translated and illustrated articles out."""

__version__ = "0.1.0"
