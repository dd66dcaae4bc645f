"""Database metadata fetcher: relations, fields and keys as one stored document."""

__version__ = "0.1.0"
