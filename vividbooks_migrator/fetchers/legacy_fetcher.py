"""Fetcher that reads book trees from the legacy Vividbooks REST API."""

import logging
from typing import Any, Dict, Optional

import requests

from ..legacy_client import LegacyApiClient, LegacyApiError
from ..models import LegacyBook
from .base_fetcher import BaseFetcher, BookNotFoundError, FetcherError


class LegacyApiFetcher(BaseFetcher):
    """Fetches and parses ``GET /books/{id}`` responses into ``LegacyBook`` trees."""

    def __init__(
        self,
        config: Dict[str, Any],
        logger: Optional[logging.Logger] = None,
        client: Optional[LegacyApiClient] = None
    ):
        super().__init__(config, logger)
        self.client = client or LegacyApiClient.from_config(config)

    def fetch_book(self, book_id: int) -> LegacyBook:
        self.logger.info(f"Fetching legacy book {book_id}")
        try:
            data = self.client.get_book(book_id)
        except LegacyApiError as e:
            if e.status_code == 404:
                raise BookNotFoundError(f"Book {book_id} not found") from e
            raise FetcherError(f"Legacy API error for book {book_id}: {e}") from e
        except requests.RequestException as e:
            raise FetcherError(f"Legacy API unreachable for book {book_id}: {e}") from e

        try:
            book = LegacyBook.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise FetcherError(f"Malformed payload for book {book_id}: {e}") from e

        knowledge_count = sum(len(c.knowledge) for c in book.chapters)
        document_count = sum(len(b.documents) for c in book.chapters for b in c.content_blocks)
        self.logger.info(
            f"Book '{book.name}': {len(book.chapters)} chapters, "
            f"{knowledge_count} lessons, {document_count} worksheet documents"
        )
        return book
