"""In-memory stand-ins for the platform and the legacy API, plus sample books."""

import copy
from typing import Any, Dict, List, Optional

from vividbooks_migrator.fetchers import BaseFetcher, BookNotFoundError
from vividbooks_migrator.importers.platform_client import PageConflictError, PlatformApiError, PlatformClient
from vividbooks_migrator.models import LegacyBook

STORAGE_URL = 'https://project.supabase.co/storage/v1'
PDF_BYTES = b'%PDF-1.4 ' + b'x' * 200
IMAGE_BYTES = b'\x89PNG' + b'x' * 200
LOTTIE_BYTES = b'{"v": "5.7.4"}' + b' ' * 200


class FakePlatformClient(PlatformClient):
    """Platform client keeping pages, menus, uploads and catalog rows in memory."""

    def __init__(
        self,
        access_token: Optional[str] = 'token',
        files: Optional[Dict[str, Any]] = None,
        boards: Optional[Dict[str, Dict[str, Any]]] = None,
        catalog_table_exists: bool = True
    ):
        super().__init__(
            api_url='https://project.supabase.co/functions/v1/server',
            storage_url=STORAGE_URL,
            rest_url='https://project.supabase.co/rest/v1',
            auth_url='https://project.supabase.co/auth/v1',
            access_token=access_token
        )
        self.pages: Dict[tuple, Dict[str, Any]] = {}
        self.menus: Dict[str, List[Dict[str, Any]]] = {}
        self.files = files or {}
        self.uploads: Dict[str, bytes] = {}
        self.boards = boards or {}
        self.catalog: List[Dict[str, Any]] = []
        self.catalog_table_exists = catalog_table_exists
        self.calls: List[tuple] = []
        self.refreshed_token: Optional[str] = None
        self.fail_menu_put = False
        self.fail_page_slugs = set()

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    def page(self, slug: str, category: str) -> Optional[Dict[str, Any]]:
        return self.pages.get((slug, category))

    def refresh_session(self, timeout: float = 5.0) -> Optional[str]:
        self.calls.append(('REFRESH', timeout))
        if self.refreshed_token:
            self.access_token = self.refreshed_token
        return self.refreshed_token

    def create_page(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        slug = payload['slug']
        self.calls.append(('POST', slug))
        if slug in self.fail_page_slugs:
            raise PlatformApiError(f"Create page '{slug}' failed: HTTP 500", 500)
        key = (slug, payload['category'])
        if key in self.pages:
            raise PageConflictError(f"Create page '{slug}' failed: Page already exists", 409)
        self.pages[key] = copy.deepcopy(payload)
        return {'page': payload}

    def update_page(self, slug: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(('PUT', slug))
        self.pages[(slug, payload['category'])] = copy.deepcopy(payload)
        return {'page': payload}

    def get_page(self, slug: str, category: str) -> Optional[Dict[str, Any]]:
        return self.pages.get((slug, category))

    def delete_page(self, slug: str, category: str) -> bool:
        return self.pages.pop((slug, category), None) is not None

    def list_pages(self, category: Optional[str] = None) -> List[Dict[str, Any]]:
        return [page for (_, cat), page in self.pages.items() if category is None or cat == category]

    def get_menu(self, category: str) -> List[Dict[str, Any]]:
        self.calls.append(('GET_MENU', category))
        return copy.deepcopy(self.menus.get(category, []))

    def put_menu(self, menu: List[Dict[str, Any]], category: str) -> None:
        self.calls.append(('PUT_MENU', category))
        if self.fail_menu_put:
            raise PlatformApiError(f"Update menu '{category}' failed: HTTP 500", 500)
        self.menus[category] = copy.deepcopy(menu)

    def download(self, url: str):
        self.calls.append(('DOWNLOAD', url))
        entry = self.files.get(url)
        if entry is None:
            return 404, b'Not found', 'text/html'
        if isinstance(entry, Exception):
            raise entry
        return entry

    def upload_object(self, path: str, data: bytes, content_type: str) -> str:
        self.calls.append(('UPLOAD', path))
        self.uploads[path] = data
        return self.public_url(path)

    def fetch_legacy_board(self, board_id: str) -> Optional[Dict[str, Any]]:
        self.calls.append(('BOARD', board_id))
        return copy.deepcopy(self.boards.get(board_id))

    def _check_table(self) -> None:
        if not self.catalog_table_exists:
            raise PlatformApiError("Query vividbooks_assets failed: relation does not exist", 404, 'PGRST205')

    def find_catalog_asset(self, table: str, file_url: str, timeout: float) -> Optional[Dict[str, Any]]:
        self._check_table()
        return next((row for row in self.catalog if row['file_url'] == file_url), None)

    def insert_catalog_asset(self, table: str, record: Dict[str, Any], timeout: float) -> None:
        self._check_table()
        self.catalog.append(dict(record))


class FakeFetcher(BaseFetcher):
    """Serves legacy books from a dict of raw API payloads."""

    def __init__(self, payloads: Dict[int, Dict[str, Any]]):
        super().__init__({})
        self.payloads = payloads

    def fetch_book(self, book_id: int) -> LegacyBook:
        if book_id not in self.payloads:
            raise BookNotFoundError(f"Book {book_id} not found")
        return LegacyBook.from_dict(copy.deepcopy(self.payloads[book_id]))


def knowledge_payload(knowledge_id: int, name: str, **extra) -> Dict[str, Any]:
    data = {'id': knowledge_id, 'name': name, 'description': f"<p>{name} úvod</p>"}
    data.update(extra)
    return data


def document_payload(doc_id: int, name: str, **extra) -> Dict[str, Any]:
    data = {
        'id': doc_id,
        'name': name,
        'documentUrl': f"https://cdn.vividbooks.com/docs/{doc_id}.pdf",
        'previewUrl': f"https://cdn.vividbooks.com/docs/{doc_id}.png",
    }
    data.update(extra)
    return data


def sample_book_payload() -> Dict[str, Any]:
    """Book 44: three lessons (one with a PDF) and a block with two worksheets."""
    return {
        'id': 44,
        'name': 'Fyzika 6',
        'authors': 'Jan Novák',
        'eshopUrl': 'https://eshop.vividbooks.com/fyzika-6',
        'imageUrl': 'https://cdn.vividbooks.com/books/44.png',
        'subject': {'id': 3, 'name': 'Fyzika'},
        'chapters': [{
            'id': 7,
            'name': 'Teplota',
            'knowledge': [
                knowledge_payload(101, 'Teploměr', pdfUrl='https://cdn.vividbooks.com/k/101.pdf'),
                knowledge_payload(102, 'Tání'),
                knowledge_payload(103, 'Var'),
            ],
            'contentBlocks': [{
                'id': 70,
                'name': 'Měření teploty',
                'content': '<h1>Měření teploty</h1><p>Teplotu měříme teploměrem.</p>',
                'methodicalInspirationsPdf': [{'name': 'Metodika bloku', 'documentUrl': 'https://cdn.vividbooks.com/m/70.pdf'}],
                'documents': [
                    document_payload(
                        12, 'str. 12 Teplota',
                        practices=[{'name': 'Procvič teplotu', 'url': 'https://vividboard.vividbooks.com/share/1734c4da-1234-5678-9abc-def012345678', 'level': 2}],
                        tests=[{'playableLink': 'https://test.vividbooks.com/t/1'}]
                    ),
                    document_payload(5, 'str. 5 Teploměr'),
                ],
            }],
        }],
    }


def sample_files() -> Dict[str, Any]:
    """Every downloadable URL of the sample book, served with realistic bodies."""
    files = {
        'https://cdn.vividbooks.com/k/101.pdf': (200, PDF_BYTES, 'application/pdf'),
        'https://cdn.vividbooks.com/m/70.pdf': (200, PDF_BYTES, 'application/pdf'),
    }
    for doc_id in (12, 5):
        files[f"https://cdn.vividbooks.com/docs/{doc_id}.pdf"] = (200, PDF_BYTES, 'application/pdf')
        files[f"https://cdn.vividbooks.com/docs/{doc_id}.png"] = (200, IMAGE_BYTES, 'image/png')
    return files


def sample_board() -> Dict[str, Any]:
    return {
        'name': 'Teplota - procvičování',
        'content': {'pages': [
            {'type': 'abc', 'question': 'Kolik je 0 °C v K?', 'options': ['273', '0', '100'], 'correct_index': 0},
            {'type': 'open', 'question': 'Čím měříme teplotu?', 'answer': 'Teploměrem'},
            {'type': 'config'},
        ]},
    }


def base_config(**migration) -> Dict[str, Any]:
    config = {
        'legacy_api': {'base_url': 'https://api.vividbooks.com/v1', 'user_code': 'abc'},
        'platform': {
            'api_url': 'https://project.supabase.co/functions/v1/server',
            'storage_url': STORAGE_URL,
        },
        'migration': {
            'book_ids': '44',
            'category': 'fyzika',
            'download_files': True,
            'overwrite_existing': False,
            'selected_items': 'all',
            'item_delay': 0,
            'text_delay': 0,
            'import_boards': True,
        },
        'asset_catalog': {'enabled': True},
        'advanced': {'progress_bars': False},
    }
    config['migration'].update(migration)
    return config
