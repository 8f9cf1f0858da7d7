"""
Asset rehoming: copy externally hosted files into platform storage.

Every operation degrades instead of raising. A ``None`` result tells the
caller to keep the original URL and carry on with the import.
"""

import io
import logging
import time
from typing import Any, Dict, List, Optional

import pdfplumber
import requests
from bs4 import BeautifulSoup

from .platform_client import PlatformApiError, PlatformClient
from .slug_generator import file_extension, sanitize_filename

logger = logging.getLogger('vividbooks_migrator.importers.asset_rehoster')

MIGRATION_PREFIX = 'migrations'
PLATFORM_STORAGE_MARKER = 'supabase.co/storage'
DEFAULT_MIN_ASSET_BYTES = 100

# pdfplumber renders at 72 dpi for scale 1.0
THUMBNAIL_SCALE = 1.5
THUMBNAIL_JPEG_QUALITY = 85


class AssetRehoster:
    """
    Downloads external files and uploads them under ``migrations/{folder}``.

    Files already served from platform storage are returned unchanged, so
    rehosting is safe to repeat on content that was partly migrated before.
    """

    def __init__(
        self,
        client: PlatformClient,
        min_bytes: int = DEFAULT_MIN_ASSET_BYTES,
        storage_marker: str = PLATFORM_STORAGE_MARKER
    ):
        """
        Args:
            client: Platform client used for download and upload
            min_bytes: Bodies smaller than this are treated as error pages
            storage_marker: URL fragment identifying platform storage
        """
        self.client = client
        self.min_bytes = min_bytes
        self.storage_marker = storage_marker
        self.stats = {
            'rehosted': 0,
            'skipped': 0,
            'failed': 0,
            'thumbnails': 0,
            'errors': []
        }

    @classmethod
    def from_config(cls, config: Dict[str, Any], client: PlatformClient) -> 'AssetRehoster':
        advanced_config = config.get('advanced', {})
        return cls(
            client,
            min_bytes=advanced_config.get('min_asset_bytes', DEFAULT_MIN_ASSET_BYTES)
        )

    def is_platform_url(self, url: str) -> bool:
        return bool(url) and self.storage_marker in url

    @staticmethod
    def _timestamp() -> int:
        return int(time.time() * 1000)

    def _record_failure(self, url: str, reason: str) -> None:
        self.stats['failed'] += 1
        self.stats['errors'].append({'url': url, 'error': reason})

    def rehost(self, source_url: str, file_name: str, folder: str) -> Optional[str]:
        """
        Copy one file into platform storage.

        Args:
            source_url: External URL to download
            file_name: Target file name, sanitized before upload
            folder: Destination folder below the migration prefix

        Returns:
            Public URL of the stored copy, the input for URLs already in
            platform storage, or None on any failure
        """
        if not source_url:
            return None

        if self.is_platform_url(source_url):
            logger.debug(f"Already in platform storage: {source_url}")
            self.stats['skipped'] += 1
            return source_url

        logger.debug(f"Downloading: {source_url}")
        try:
            status_code, body, content_type = self.client.download(source_url)
        except requests.RequestException as e:
            logger.warning(f"Download failed for {source_url}: {e}")
            self._record_failure(source_url, str(e))
            return None

        if not 200 <= status_code < 300:
            logger.warning(f"Download failed for {source_url}: HTTP {status_code}")
            self._record_failure(source_url, f"HTTP {status_code}")
            return None

        if len(body) < self.min_bytes:
            logger.warning(f"File too small ({len(body)} bytes), skipping: {source_url}")
            self._record_failure(source_url, f"too small ({len(body)} bytes)")
            return None

        path = f"{MIGRATION_PREFIX}/{folder}/{self._timestamp()}_{sanitize_filename(file_name)}"
        try:
            public_url = self.client.upload_object(path, body, content_type)
        except (PlatformApiError, requests.RequestException) as e:
            logger.warning(f"Upload failed for {path}: {e}")
            self._record_failure(source_url, str(e))
            return None

        logger.debug(f"Uploaded {len(body)} bytes to {path}")
        self.stats['rehosted'] += 1
        return public_url

    def rehost_inline_images(self, html: str, name_prefix: str, folder: str) -> str:
        """
        Rehost every ``<img src>`` in an HTML fragment and substitute the URLs.

        Images are named ``{name_prefix}_{i}.{ext}`` in document order. Failed
        images keep their original URL.
        """
        if not html:
            return html

        soup = BeautifulSoup(html, 'lxml')
        sources: List[str] = [img.get('src') for img in soup.find_all('img') if img.get('src')]

        replacements = []
        for index, src in enumerate(sources):
            file_name = f"{name_prefix}_{index}.{file_extension(src) or 'jpg'}"
            new_url = self.rehost(src, file_name, folder)
            if new_url and new_url != src:
                replacements.append((src, new_url))

        # substitute in the original markup so the fragment is not re-serialized
        for original, new_url in replacements:
            html = html.replace(original, new_url, 1)
        return html

    def render_pdf_thumbnail(self, pdf_url: str, folder: str) -> Optional[str]:
        """
        Render the first PDF page as a JPEG and upload it as a thumbnail.

        Returns:
            Public URL of ``migrations/{folder}/pdf_preview_{ts}.jpg`` or None
        """
        if not pdf_url:
            return None

        try:
            status_code, body, _ = self.client.download(pdf_url)
        except requests.RequestException as e:
            logger.warning(f"Could not download PDF for preview {pdf_url}: {e}")
            return None
        if not 200 <= status_code < 300 or len(body) < self.min_bytes:
            logger.warning(f"Could not download PDF for preview {pdf_url}: HTTP {status_code}")
            return None

        try:
            image_bytes = self._render_first_page(body)
        except Exception as e:
            # pdfminer and Pillow raise a wide range of parser errors on broken files
            logger.warning(f"Could not render PDF preview for {pdf_url}: {e}")
            return None
        if image_bytes is None:
            return None

        path = f"{MIGRATION_PREFIX}/{folder}/pdf_preview_{self._timestamp()}.jpg"
        try:
            public_url = self.client.upload_object(path, image_bytes, 'image/jpeg')
        except (PlatformApiError, requests.RequestException) as e:
            logger.warning(f"PDF preview upload failed for {path}: {e}")
            return None

        self.stats['thumbnails'] += 1
        logger.debug(f"PDF preview uploaded: {public_url}")
        return public_url

    @staticmethod
    def _render_first_page(pdf_bytes: bytes) -> Optional[bytes]:
        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            if not pdf.pages:
                return None
            page_image = pdf.pages[0].to_image(resolution=int(72 * THUMBNAIL_SCALE))
            output = io.BytesIO()
            page_image.original.convert('RGB').save(output, format='JPEG', quality=THUMBNAIL_JPEG_QUALITY)
            return output.getvalue()


__all__ = ['AssetRehoster', 'MIGRATION_PREFIX', 'PLATFORM_STORAGE_MARKER']
