"""Fetchers package for retrieving legacy book trees."""

from .base_fetcher import BaseFetcher, BookNotFoundError, FetcherError
from .legacy_fetcher import LegacyApiFetcher

__all__ = [
    'BaseFetcher',
    'BookNotFoundError',
    'FetcherError',
    'LegacyApiFetcher'
]
