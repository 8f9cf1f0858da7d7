"""Abstract base fetcher interface and common functionality."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from ..models import LegacyBook


class FetcherError(Exception):
    """Base exception for fetcher-related errors."""
    pass


class BookNotFoundError(FetcherError):
    """The legacy API does not know the requested book."""
    pass


class BaseFetcher(ABC):
    """Abstract base class for legacy content fetchers."""

    def __init__(self, config: Dict[str, Any], logger: Optional[logging.Logger] = None):
        """
        Initialize base fetcher with configuration and logger.

        Args:
            config: Configuration dictionary
            logger: Logger instance (optional, uses module logger if not provided)
        """
        self.config = config
        self.logger = logger or logging.getLogger('vividbooks_migrator.fetcher')

    @abstractmethod
    def fetch_book(self, book_id: int) -> LegacyBook:
        """
        Fetch one legacy book tree.

        Raises:
            FetcherError: If the book cannot be retrieved or parsed
        """
        pass

    def fetch_books(self, book_ids: Iterable[int]) -> List[LegacyBook]:
        """
        Fetch several books in order, skipping the ones that fail.

        A failing book is logged and left out; the remaining books are still
        returned so the run can continue with what could be read.
        """
        books = []
        for book_id in book_ids:
            try:
                books.append(self.fetch_book(book_id))
            except FetcherError as e:
                self.logger.error(f"Skipping book {book_id}: {e}")
        self.logger.info(f"Fetched {len(books)} book(s)")
        return books


__all__ = ['BaseFetcher', 'FetcherError', 'BookNotFoundError']
