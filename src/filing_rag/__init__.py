"""Financial filing ingestion and retrieval service."""

__version__ = "0.1.0"
