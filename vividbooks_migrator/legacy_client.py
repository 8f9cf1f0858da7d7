"""
Legacy Vividbooks REST API client.

Read-only access to the pre-migration content service. The only resource the
migrator needs is a full book tree, fetched with the customer's user code.
"""

import logging
import time
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config_loader import DEFAULT_LEGACY_API_URL

logger = logging.getLogger('vividbooks_migrator.legacy_client')


class LegacyApiError(Exception):
    """Raised when the legacy API answers with a non-2xx status or invalid JSON."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LegacyApiClient:
    """Legacy content API client with retry logic and rate limiting."""

    DEFAULT_TIMEOUT = 30
    DEFAULT_MAX_RETRIES = 3
    DEFAULT_RETRY_BACKOFF = 0.5
    DEFAULT_RATE_LIMIT = 0.0

    def __init__(
        self,
        base_url: str = DEFAULT_LEGACY_API_URL,
        user_code: str = '',
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_backoff_factor: float = DEFAULT_RETRY_BACKOFF,
        rate_limit: float = DEFAULT_RATE_LIMIT,
        verify_ssl: bool = True
    ):
        """
        Initialize legacy API client.

        Args:
            base_url: API root, e.g. https://api.vividbooks.com/v1
            user_code: Customer code sent as the ``user-code`` query parameter
            timeout: Request timeout in seconds
            max_retries: Maximum number of retries for failed requests
            retry_backoff_factor: Backoff factor for retries
            rate_limit: Minimum seconds between requests (0 = no limit)
            verify_ssl: Whether to verify SSL certificates
        """
        self.base_url = base_url.rstrip('/')
        self.user_code = user_code
        self.timeout = timeout
        self.rate_limit = rate_limit
        self.verify_ssl = verify_ssl
        self._last_request_time = 0.0

        self.session = requests.Session()
        self.session.headers.update({'Accept': 'application/json'})

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=retry_backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=['GET'],
            raise_on_status=False
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount('http://', adapter)
        self.session.mount('https://', adapter)

        logger.debug(f"Initialized legacy API client for {self.base_url}")

    def _handle_rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        if self.rate_limit <= 0:
            return

        time_since_last = time.time() - self._last_request_time
        if time_since_last < self.rate_limit:
            sleep_time = self.rate_limit - time_since_last
            logger.debug(f"Rate limiting: sleeping {sleep_time:.2f}s")
            time.sleep(sleep_time)

        self._last_request_time = time.time()

    def _make_request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET an endpoint and decode its JSON body.

        Raises:
            LegacyApiError: For non-2xx responses or undecodable bodies
            requests.RequestException: For transport failures
        """
        self._handle_rate_limit()

        url = f"{self.base_url}{endpoint}"
        logger.debug(f"GET {url}")

        response = self.session.get(url, params=params, timeout=self.timeout, verify=self.verify_ssl)
        logger.debug(f"Response status: {response.status_code}")

        if not response.ok:
            raise LegacyApiError(f"HTTP {response.status_code} for {endpoint}", response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise LegacyApiError(f"Invalid JSON from {endpoint}: {e}", response.status_code)

    def get_book(self, book_id: int) -> Dict[str, Any]:
        """Fetch the full chapter/knowledge/content-block tree of one book."""
        data = self._make_request(f'/books/{book_id}', params={'user-code': self.user_code})
        if not isinstance(data, dict):
            raise LegacyApiError(f"Unexpected payload for book {book_id}")
        return data

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'LegacyApiClient':
        """
        Create client from configuration dictionary.

        Args:
            config: Configuration dict with 'legacy_api' section
        """
        legacy_config = config.get('legacy_api', {})
        advanced_config = config.get('advanced', {})

        return cls(
            base_url=legacy_config.get('base_url', DEFAULT_LEGACY_API_URL),
            user_code=legacy_config.get('user_code', ''),
            timeout=advanced_config.get('request_timeout', cls.DEFAULT_TIMEOUT),
            max_retries=advanced_config.get('max_retries', cls.DEFAULT_MAX_RETRIES),
            retry_backoff_factor=advanced_config.get('retry_backoff_factor', cls.DEFAULT_RETRY_BACKOFF),
            rate_limit=advanced_config.get('rate_limit', cls.DEFAULT_RATE_LIMIT),
            verify_ssl=advanced_config.get('verify_ssl', True)
        )
