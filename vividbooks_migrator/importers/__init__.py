"""Import package for moving legacy Vividbooks content onto the documentation platform.

Package Structure:
- platform_client: REST client for pages, menu, storage, boards and the asset catalog
- page_store: Conflict-aware page upserts and whole-menu reads/writes
- slug_generator: Slugs, sanitized file names and ephemeral menu ids
- sub_resources: Per-kind normalizers for worksheet sub-resources
- asset_rehoster: Copies external files and PDF thumbnails into platform storage
- content_transformer: Builds lesson, worksheet and educational-text pages
- menu_synthesizer: Groups imported items into folders and workbooks
- menu_tree: Pure splice and board-rewrite functions over menu trees
- board_importer: Re-imports legacy boards as board pages
- asset_indexer: Background writer for the shared animation catalog

Configuration Referenced:
- platform.*: API, storage and auth endpoints and tokens
- migration.*: Category, selection, overwrite and download behavior
- asset_catalog.*: Catalog table settings
"""

from .platform_client import PlatformClient, PlatformApiError, PageConflictError, AuthenticationError
from .page_store import PageStore, MenuStore, PageExistsError, MenuUpdateError, is_already_exists
from .slug_generator import slugify, sanitize_filename, ephemeral_id
from .asset_rehoster import AssetRehoster
from .content_transformer import ContentTransformer
from .asset_indexer import AssetIndexer
from .board_importer import BoardImporter, is_importable_board_url
from .menu_tree import splice_items, rewrite_board_links
from . import menu_synthesizer

__all__ = [
    # Platform access
    'PlatformClient',
    'PlatformApiError',
    'PageConflictError',
    'AuthenticationError',
    'PageStore',
    'MenuStore',
    'PageExistsError',
    'MenuUpdateError',
    'is_already_exists',
    # Transformation
    'slugify',
    'sanitize_filename',
    'ephemeral_id',
    'AssetRehoster',
    'ContentTransformer',
    'AssetIndexer',
    'BoardImporter',
    'is_importable_board_url',
    # Menu
    'splice_items',
    'rewrite_board_links',
    'menu_synthesizer'
]
