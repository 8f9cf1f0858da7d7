"""
Shared asset catalog indexing.

The content transformer appends ``AssetDiscovered`` events to its outbox; the
orchestrator hands each batch to ``AssetIndexer.submit`` which writes them to
the catalog table on a background worker. Nothing in the import sequence waits
for the result; outcomes are only logged.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, List, Optional

import requests

from ..config_loader import DEFAULT_ASSET_TABLE
from ..models import AssetDiscovered, CatalogProbe
from .platform_client import PlatformApiError, PlatformClient

logger = logging.getLogger('vividbooks_migrator.importers.asset_indexer')

# PostgREST / Postgres codes for "relation does not exist"
MISSING_TABLE_CODES = ('PGRST205', '42P01')
PROBE_URL = 'probe://vividbooks-migrator'


def _is_missing_table(error: PlatformApiError) -> bool:
    return error.code in MISSING_TABLE_CODES or error.status_code == 404


def build_tags(asset: AssetDiscovered) -> List[str]:
    """Catalog tags: lesson, category, media kind, intro/step marker, then extras."""
    tags = [
        asset.lesson_name,
        asset.category,
        'lottie' if asset.asset_type == 'animation' else 'image',
        'intro' if asset.is_intro else None,
        f"krok-{asset.step_index + 1}" if asset.step_index is not None else None,
    ]
    tags.extend(asset.tags)
    return [tag for tag in tags if tag]


def build_record(asset: AssetDiscovered) -> Dict[str, Any]:
    return {
        'name': asset.name,
        'description': f'Animace z lekce "{asset.lesson_name}"',
        'asset_type': asset.asset_type,
        'file_url': asset.url,
        'thumbnail_url': asset.thumbnail_url,
        'category': asset.category,
        'tags': build_tags(asset),
        'license_required': True,
        'license_tier': 'basic',
        'is_active': True
    }


def assets_from_page(page: Dict[str, Any]) -> List[AssetDiscovered]:
    """Recover asset events from the ``sectionImages`` of a stored page."""
    title = page.get('title') or page.get('slug') or ''
    slug = page.get('slug') or ''
    legacy_ids = page.get('legacyIds') or {}
    category = page.get('category') or (legacy_ids.get('subjectName') or '').lower() or 'obecne'

    assets: List[AssetDiscovered] = []
    for section in page.get('sectionImages') or []:
        if section.get('type') == 'lottie' and section.get('lottieConfig'):
            lottie = section['lottieConfig']
            background = lottie.get('backgroundImage')
            if lottie.get('introUrl'):
                assets.append(AssetDiscovered(
                    name=f"{title} - Intro",
                    url=lottie['introUrl'],
                    category=category,
                    lesson_name=title,
                    lesson_slug=slug,
                    is_intro=True,
                    thumbnail_url=background
                ))
            for index, step in enumerate(lottie.get('steps') or []):
                if not step.get('url'):
                    continue
                assets.append(AssetDiscovered(
                    name=step.get('title') or f"{title} - Krok {index + 1}",
                    url=step['url'],
                    category=category,
                    lesson_name=title,
                    lesson_slug=slug,
                    step_index=index,
                    thumbnail_url=background
                ))
        elif section.get('type') == 'image' and section.get('imageUrl'):
            assets.append(AssetDiscovered(
                name=f"{title} - Obrázek",
                url=section['imageUrl'],
                category=category,
                lesson_name=title,
                lesson_slug=slug,
                asset_type='image'
            ))
    return assets


class AssetIndexer:
    """Writes discovered assets to the catalog table, skipping known URLs."""

    def __init__(
        self,
        client: PlatformClient,
        table: str = DEFAULT_ASSET_TABLE,
        timeout: float = 3.0,
        enabled: bool = True,
        max_workers: int = 1
    ):
        self.client = client
        self.table = table
        self.timeout = timeout
        self.enabled = enabled
        self._executor: Optional[ThreadPoolExecutor] = None
        self._max_workers = max_workers
        self._pending: List[Future] = []

    @classmethod
    def from_config(cls, config: Dict[str, Any], client: PlatformClient) -> 'AssetIndexer':
        catalog_config = config.get('asset_catalog', {})
        return cls(
            client,
            table=catalog_config.get('table', DEFAULT_ASSET_TABLE),
            timeout=catalog_config.get('timeout', 3.0),
            enabled=catalog_config.get('enabled', True)
        )

    def probe(self) -> CatalogProbe:
        """Check once per run whether the catalog table can be used."""
        if not self.enabled:
            return CatalogProbe(False, "disabled in configuration")
        if not self.client.rest_url:
            return CatalogProbe(False, "platform.rest_url not configured")
        try:
            self.client.find_catalog_asset(self.table, PROBE_URL, self.timeout)
        except PlatformApiError as e:
            if _is_missing_table(e):
                logger.info(f"Asset table '{self.table}' does not exist, asset indexing disabled")
                return CatalogProbe(False, f"table '{self.table}' missing")
            logger.warning(f"Asset catalog probe failed: {e}")
            return CatalogProbe(False, str(e))
        except requests.RequestException as e:
            logger.warning(f"Asset catalog unreachable: {e}")
            return CatalogProbe(False, str(e))
        return CatalogProbe(True)

    def save(self, asset: AssetDiscovered, probe: CatalogProbe) -> bool:
        """
        Index one asset.

        Returns:
            True when the asset is in the catalog afterwards (new or known)
        """
        if not probe.available:
            return False
        try:
            if self.client.find_catalog_asset(self.table, asset.url, self.timeout):
                return True
            self.client.insert_catalog_asset(self.table, build_record(asset), self.timeout)
            return True
        except requests.Timeout:
            logger.debug(f"Asset save timed out: {asset.url}")
            return False
        except (PlatformApiError, requests.RequestException) as e:
            logger.debug(f"Could not index asset {asset.url}: {e}")
            return False

    def index_batch(self, assets: List[AssetDiscovered], probe: CatalogProbe) -> int:
        """Index a batch synchronously and return how many are now cataloged."""
        saved = sum(1 for asset in assets if self.save(asset, probe))
        if saved:
            logger.info(f"Saved {saved}/{len(assets)} animations to {self.table}")
        return saved

    def submit(self, assets: List[AssetDiscovered], probe: CatalogProbe) -> Optional[Future]:
        """Index a batch on the background worker without waiting for it."""
        if not assets or not probe.available:
            return None
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix='asset-indexer')
        future = self._executor.submit(self.index_batch, list(assets), probe)
        future.add_done_callback(self._log_outcome)
        self._pending.append(future)
        return future

    @staticmethod
    def _log_outcome(future: Future) -> None:
        error = future.exception()
        if error is not None:
            logger.warning(f"Background asset indexing failed: {error}")

    def shutdown(self, wait: bool = True) -> None:
        """Stop the worker. With ``wait`` the queued batches finish first."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
        self._pending = []

    def backfill_from_pages(self, pages: List[Dict[str, Any]]) -> Dict[str, int]:
        """
        Index the animations and images referenced by already stored pages.

        Returns:
            Counts of extracted, saved and failed assets
        """
        probe = self.probe()
        assets = [asset for page in pages for asset in assets_from_page(page)]
        stats = {'pages': len(pages), 'extracted': len(assets), 'saved': 0, 'failed': 0}
        if not probe.available:
            logger.warning(f"Asset catalog unavailable: {probe.reason}")
            stats['failed'] = len(assets)
            return stats

        for asset in assets:
            if self.save(asset, probe):
                stats['saved'] += 1
            else:
                stats['failed'] += 1
        logger.info(f"Backfill: {stats['saved']} saved, {stats['failed']} failed of {stats['extracted']} assets")
        return stats


__all__ = ['AssetIndexer', 'build_tags', 'build_record', 'assets_from_page', 'MISSING_TABLE_CODES']
