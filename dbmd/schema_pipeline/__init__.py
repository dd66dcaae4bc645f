"""Metadata extraction pipeline package."""

from .pipeline import IntrospectionFetcher
from .predefined import PredefinedQueryFetcher
from .orchestrator import DbmdFetcher, DbmdFetchOrchestrator, select_fetcher

__all__ = [
    "IntrospectionFetcher",
    "PredefinedQueryFetcher",
    "DbmdFetcher",
    "DbmdFetchOrchestrator",
    "select_fetcher",
]
