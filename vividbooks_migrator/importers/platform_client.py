"""
Platform API client for the Vividbooks content backend.

Wraps the four collaborators the migrator writes to: the page store and menu
store (JSON edge-function API), object storage for rehosted files, the
PostgREST endpoint holding the shared asset catalog, and the auth endpoint used
to refresh an expired session. Also proxies legacy board downloads.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config_loader import DEFAULT_STORAGE_BUCKET, resolved

logger = logging.getLogger('vividbooks_migrator.importers.platform_client')


class PlatformApiError(Exception):
    """Non-2xx answer from one of the platform APIs."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class PageConflictError(PlatformApiError):
    """The page store already holds a page with this slug (HTTP 409)."""
    pass


class AuthenticationError(PlatformApiError):
    """No usable access token could be obtained."""
    pass


class PlatformClient:
    """Platform REST client with retry logic and rate limiting."""

    DEFAULT_TIMEOUT = 30
    DEFAULT_MAX_RETRIES = 3
    DEFAULT_RETRY_BACKOFF = 0.5
    DEFAULT_RATE_LIMIT = 0.0

    def __init__(
        self,
        api_url: str,
        storage_url: str,
        rest_url: Optional[str] = None,
        auth_url: Optional[str] = None,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        anon_key: Optional[str] = None,
        storage_bucket: str = DEFAULT_STORAGE_BUCKET,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_backoff_factor: float = DEFAULT_RETRY_BACKOFF,
        rate_limit: float = DEFAULT_RATE_LIMIT,
        verify_ssl: bool = True
    ):
        """
        Initialize platform client.

        Args:
            api_url: Edge-function root serving /pages, /menu and /vividboard-proxy
            storage_url: Object storage root, e.g. https://<project>.supabase.co/storage/v1
            rest_url: PostgREST root for the asset catalog table
            auth_url: Auth root used for refresh-token grants
            access_token: Bearer token of the operator session
            refresh_token: Refresh token used once when the access token is missing
            anon_key: Public API key sent as ``apikey`` to REST and auth endpoints
            storage_bucket: Bucket receiving migrated files
            timeout: Request timeout in seconds
            max_retries: Maximum number of retries for failed requests
            retry_backoff_factor: Backoff factor for retries
            rate_limit: Minimum seconds between requests (0 = no limit)
            verify_ssl: Whether to verify SSL certificates
        """
        self.api_url = api_url.rstrip('/')
        self.storage_url = storage_url.rstrip('/')
        self.rest_url = rest_url.rstrip('/') if rest_url else None
        self.auth_url = auth_url.rstrip('/') if auth_url else None
        self.access_token = access_token or None
        self.refresh_token = refresh_token or None
        self.anon_key = anon_key
        self.storage_bucket = storage_bucket
        self.timeout = timeout
        self.rate_limit = rate_limit
        self.verify_ssl = verify_ssl
        self._last_request_time = 0.0

        self.session = requests.Session()
        self.session.headers.update({'Accept': 'application/json'})

        # POST is not idempotent for /pages, so only reads and PUTs are retried
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=retry_backoff_factor,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=['GET', 'PUT', 'DELETE', 'HEAD'],
            raise_on_status=False
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount('http://', adapter)
        self.session.mount('https://', adapter)

        logger.debug(f"Initialized platform client for {self.api_url}")

    # ------------------------------------------------------------------
    # transport
    # ------------------------------------------------------------------

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

    def _auth_headers(self, token: Optional[str] = None) -> Dict[str, str]:
        headers = {}
        bearer = token or self.access_token or self.anon_key
        if bearer:
            headers['Authorization'] = f'Bearer {bearer}'
        if self.anon_key:
            headers['apikey'] = self.anon_key
        return headers

    def _make_request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        data: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        authenticated: bool = True
    ) -> requests.Response:
        """
        Send a request and return the raw response.

        429 answers are retried after the server's Retry-After delay. Other
        statuses are returned to the caller, which decides what an error is.

        Raises:
            requests.RequestException: For transport failures
        """
        self._handle_rate_limit()

        request_headers = self._auth_headers() if authenticated else {}
        if headers:
            request_headers.update(headers)

        logger.debug(f"{method} {url}")

        response = self.session.request(
            method=method,
            url=url,
            params=params,
            json=json,
            data=data,
            headers=request_headers,
            timeout=timeout or self.timeout,
            verify=self.verify_ssl
        )

        logger.debug(f"Response status: {response.status_code}")

        if response.status_code == 429:
            retry_after = response.headers.get('Retry-After', '1')
            try:
                wait_time = int(retry_after)
            except ValueError:
                wait_time = 1
            logger.warning(f"Rate limited (429). Retrying after {wait_time}s")
            time.sleep(wait_time)
            return self._make_request(
                method, url, params=params, json=json, data=data,
                headers=headers, timeout=timeout, authenticated=authenticated
            )

        return response

    @staticmethod
    def _error_from(response: requests.Response, action: str) -> PlatformApiError:
        """Build an exception carrying the server's own error message when it sent one."""
        message = f"HTTP {response.status_code}"
        code = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get('error') or body.get('message') or message
            code = body.get('code')
        elif response.text:
            message = f"{message}: {response.text[:200]}"

        error_cls = PageConflictError if response.status_code == 409 else PlatformApiError
        if response.status_code in (401, 403):
            error_cls = AuthenticationError
        return error_cls(f"{action} failed: {message}", response.status_code, code)

    @staticmethod
    def _json(response: requests.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    # ------------------------------------------------------------------
    # auth
    # ------------------------------------------------------------------

    def refresh_session(self, timeout: float = 5.0) -> Optional[str]:
        """
        Exchange the refresh token for a new access token.

        Returns:
            The new access token, or None when no refresh is possible
        """
        if not self.refresh_token or not self.auth_url:
            logger.debug("No refresh token or auth URL configured; cannot refresh session")
            return None

        try:
            response = self._make_request(
                'POST',
                f"{self.auth_url}/token",
                params={'grant_type': 'refresh_token'},
                json={'refresh_token': self.refresh_token},
                timeout=timeout,
                authenticated=False,
                headers={'apikey': self.anon_key} if self.anon_key else None
            )
        except requests.RequestException as e:
            logger.error(f"Session refresh failed: {e}")
            return None

        if not response.ok:
            logger.error(f"Session refresh rejected: HTTP {response.status_code}")
            return None

        payload = self._json(response)
        token = payload.get('access_token') if isinstance(payload, dict) else None
        if token:
            self.access_token = token
            self.refresh_token = payload.get('refresh_token', self.refresh_token)
            logger.info("Access token obtained from session refresh")
        return token

    # ------------------------------------------------------------------
    # page store
    # ------------------------------------------------------------------

    def create_page(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST /pages. Raises PageConflictError when the slug is taken."""
        response = self._make_request(
            'POST', f"{self.api_url}/pages", json=payload,
            headers={'Content-Type': 'application/json'}
        )
        if not response.ok:
            raise self._error_from(response, f"Create page '{payload.get('slug')}'")
        return self._json(response)

    def update_page(self, slug: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """PUT /pages/{slug}."""
        response = self._make_request(
            'PUT', f"{self.api_url}/pages/{slug}", json=payload,
            headers={'Content-Type': 'application/json'}
        )
        if not response.ok:
            raise self._error_from(response, f"Update page '{slug}'")
        return self._json(response)

    def get_page(self, slug: str, category: str) -> Optional[Dict[str, Any]]:
        """GET /pages/{slug}?category=. Returns None for unknown pages."""
        response = self._make_request('GET', f"{self.api_url}/pages/{slug}", params={'category': category})
        if response.status_code == 404:
            return None
        if not response.ok:
            raise self._error_from(response, f"Get page '{slug}'")
        payload = self._json(response)
        if isinstance(payload, dict) and isinstance(payload.get('page'), dict):
            return payload['page']
        return payload

    def delete_page(self, slug: str, category: str) -> bool:
        """DELETE /pages/{slug}?category=. Returns False when the page did not exist."""
        response = self._make_request('DELETE', f"{self.api_url}/pages/{slug}", params={'category': category})
        if response.status_code == 404:
            return False
        if not response.ok:
            raise self._error_from(response, f"Delete page '{slug}'")
        return True

    def list_pages(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        """GET /pages, optionally filtered to one category."""
        params = {'category': category} if category else None
        response = self._make_request('GET', f"{self.api_url}/pages", params=params)
        if not response.ok:
            raise self._error_from(response, "List pages")
        payload = self._json(response)
        return payload.get('pages') or [] if isinstance(payload, dict) else []

    # ------------------------------------------------------------------
    # menu store
    # ------------------------------------------------------------------

    def get_menu(self, category: str) -> List[Dict[str, Any]]:
        """GET /menu?category= and return the raw item list."""
        response = self._make_request('GET', f"{self.api_url}/menu", params={'category': category})
        if not response.ok:
            raise self._error_from(response, f"Get menu '{category}'")
        payload = self._json(response)
        return payload.get('menu') or [] if isinstance(payload, dict) else []

    def put_menu(self, menu: List[Dict[str, Any]], category: str) -> None:
        """PUT /menu replacing the full tree of a category."""
        response = self._make_request(
            'PUT', f"{self.api_url}/menu", json={'menu': menu, 'category': category},
            headers={'Content-Type': 'application/json'}
        )
        if not response.ok:
            raise self._error_from(response, f"Update menu '{category}'")

    # ------------------------------------------------------------------
    # object storage
    # ------------------------------------------------------------------

    def download(self, url: str) -> Tuple[int, bytes, str]:
        """
        Download an external file without platform credentials.

        Returns:
            (status_code, body, content_type)

        Raises:
            requests.RequestException: For transport failures
        """
        response = self._make_request('GET', url, authenticated=False, headers={'Accept': '*/*'})
        content_type = response.headers.get('Content-Type', 'application/octet-stream')
        return response.status_code, response.content, content_type

    def upload_object(self, path: str, data: bytes, content_type: str) -> str:
        """
        Upload raw bytes to the migration bucket.

        Returns:
            Public URL of the stored object
        """
        response = self._make_request(
            'POST',
            f"{self.storage_url}/object/{self.storage_bucket}/{path}",
            data=data,
            headers={
                'Content-Type': content_type,
                'x-upsert': 'false',
                'Cache-Control': '31536000'
            }
        )
        if not response.ok:
            raise self._error_from(response, f"Upload '{path}'")
        return self.public_url(path)

    def public_url(self, path: str) -> str:
        return f"{self.storage_url}/object/public/{self.storage_bucket}/{path}"

    # ------------------------------------------------------------------
    # legacy boards
    # ------------------------------------------------------------------

    def fetch_legacy_board(self, board_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a legacy board document through the CORS proxy."""
        response = self._make_request('GET', f"{self.api_url}/vividboard-proxy/{board_id}", authenticated=False)
        if not response.ok:
            logger.warning(f"Board proxy returned HTTP {response.status_code} for {board_id}")
            return None
        payload = self._json(response)
        return payload if isinstance(payload, dict) and payload else None

    # ------------------------------------------------------------------
    # asset catalog (PostgREST)
    # ------------------------------------------------------------------

    def find_catalog_asset(self, table: str, file_url: str, timeout: float) -> Optional[Dict[str, Any]]:
        """Return the catalog row with this file URL, or None."""
        response = self._make_request(
            'GET',
            f"{self._require_rest_url()}/{table}",
            params={'select': 'id', 'file_url': f'eq.{file_url}', 'limit': 1},
            timeout=timeout
        )
        if not response.ok:
            raise self._error_from(response, f"Query {table}")
        rows = self._json(response)
        return rows[0] if isinstance(rows, list) and rows else None

    def insert_catalog_asset(self, table: str, record: Dict[str, Any], timeout: float) -> None:
        response = self._make_request(
            'POST',
            f"{self._require_rest_url()}/{table}",
            json=record,
            timeout=timeout,
            headers={'Content-Type': 'application/json', 'Prefer': 'return=minimal'}
        )
        if not response.ok:
            raise self._error_from(response, f"Insert into {table}")

    def _require_rest_url(self) -> str:
        if not self.rest_url:
            raise PlatformApiError("platform.rest_url is not configured")
        return self.rest_url

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'PlatformClient':
        """
        Create client from configuration dictionary.

        Args:
            config: Configuration dict with 'platform' section
        """
        platform_config = config.get('platform', {})
        advanced_config = config.get('advanced', {})

        return cls(
            api_url=platform_config.get('api_url'),
            storage_url=platform_config.get('storage_url'),
            rest_url=resolved(platform_config.get('rest_url')),
            auth_url=resolved(platform_config.get('auth_url')),
            access_token=resolved(platform_config.get('access_token')),
            refresh_token=resolved(platform_config.get('refresh_token')),
            anon_key=resolved(platform_config.get('anon_key')),
            storage_bucket=platform_config.get('storage_bucket', DEFAULT_STORAGE_BUCKET),
            timeout=advanced_config.get('request_timeout', cls.DEFAULT_TIMEOUT),
            max_retries=advanced_config.get('max_retries', cls.DEFAULT_MAX_RETRIES),
            retry_backoff_factor=advanced_config.get('retry_backoff_factor', cls.DEFAULT_RETRY_BACKOFF),
            rate_limit=advanced_config.get('rate_limit', cls.DEFAULT_RATE_LIMIT),
            verify_ssl=advanced_config.get('verify_ssl', True)
        )
