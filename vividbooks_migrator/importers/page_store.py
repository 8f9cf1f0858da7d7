"""
Page and menu persistence on top of the platform client.

``PageStore.save`` implements create-or-conflict semantics: POST first, and on
a 409 either update the existing page once (overwrite enabled) or raise
``PageExistsError``. ``MenuStore`` reads and replaces whole category trees.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from ..models import MenuItem, TargetPage
from .platform_client import PageConflictError, PlatformApiError, PlatformClient

logger = logging.getLogger('vividbooks_migrator.importers.page_store')

ALREADY_EXISTS_MARKERS = ('already exists', '409')


class PageExistsError(PlatformApiError):
    """Page slug is taken and overwriting was not authorized."""

    def __init__(self, slug: str, category: str):
        super().__init__(f"Page '{slug}' already exists (409) in category '{category}'", 409)
        self.slug = slug
        self.category = category


class MenuUpdateError(Exception):
    """The merged menu tree could not be read or written."""
    pass


def is_already_exists(error: BaseException) -> bool:
    """True when an error message carries the page-conflict signature."""
    if isinstance(error, PageExistsError):
        return True
    message = str(error).lower()
    return any(marker in message for marker in ALREADY_EXISTS_MARKERS)


class PageStore:
    """Create-or-update access to page documents keyed by ``(slug, category)``."""

    def __init__(self, client: PlatformClient):
        self.client = client

    def save(self, page: TargetPage, overwrite: bool = False) -> Dict[str, Any]:
        """
        Persist a page.

        Args:
            page: Page to store
            overwrite: Replace an existing page with the same slug

        Returns:
            The page store's response body

        Raises:
            PageExistsError: Slug taken and overwrite disabled
            PlatformApiError: Any other non-2xx answer
        """
        payload = page.to_dict()
        try:
            result = self.client.create_page(payload)
            logger.debug(f"Created page '{page.slug}' ({page.document_type.value})")
            return result
        except PageConflictError:
            if not overwrite:
                raise PageExistsError(page.slug, page.category)

        logger.info(f"Page '{page.slug}' exists, overwriting")
        return self.client.update_page(page.slug, payload)

    def save_best_effort(self, page: TargetPage, overwrite: bool = False) -> bool:
        """Save a page whose failure must not affect the caller. Returns success."""
        try:
            self.save(page, overwrite)
            return True
        except PageExistsError:
            logger.debug(f"Page '{page.slug}' already exists, keeping it")
            return True
        except (PlatformApiError, requests.RequestException) as e:
            logger.warning(f"Could not save page '{page.slug}': {e}")
            return False

    def get(self, slug: str, category: str) -> Optional[Dict[str, Any]]:
        return self.client.get_page(slug, category)

    def delete(self, slug: str, category: str) -> bool:
        return self.client.delete_page(slug, category)

    def list(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        return self.client.list_pages(category)


class MenuStore:
    """Whole-tree access to a category menu. Last writer wins."""

    def __init__(self, client: PlatformClient):
        self.client = client

    def load(self, category: str) -> List[MenuItem]:
        try:
            raw = self.client.get_menu(category)
        except (PlatformApiError, requests.RequestException) as e:
            raise MenuUpdateError(f"Could not load menu for '{category}': {e}") from e
        try:
            return [MenuItem.from_dict(item) for item in raw]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise MenuUpdateError(f"Menu for '{category}' is malformed: {e}") from e

    def replace(self, category: str, menu: List[MenuItem]) -> None:
        try:
            self.client.put_menu([item.to_dict() for item in menu], category)
        except (PlatformApiError, requests.RequestException) as e:
            raise MenuUpdateError(f"Could not save menu for '{category}': {e}") from e
        logger.info(f"Menu for '{category}' saved ({len(menu)} root items)")


__all__ = ['PageStore', 'MenuStore', 'PageExistsError', 'MenuUpdateError', 'is_already_exists']
