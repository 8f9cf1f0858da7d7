"""Vividbooks Legacy Content Migrator

Imports books from the legacy Vividbooks content API into the documentation
platform: lessons and worksheets become pages, their media is copied into
platform storage, and the books are grouped into menu folders and workbooks.

Basic Usage:
    1. Copy config.yaml.example to config.yaml
    2. Fill in the legacy user code and platform tokens
    3. Run: vividbooks-migrate --book-ids 44,45 --category fyzika
    4. Preview first with: vividbooks-migrate --dry-run

Example Configuration (config.yaml):
    legacy_api:
        user_code: ${VIVIDBOOKS_USER_CODE}

    platform:
        api_url: "https://project.supabase.co/functions/v1/server"
        storage_url: "https://project.supabase.co/storage/v1"
        access_token: ${PLATFORM_ACCESS_TOKEN}

    migration:
        book_ids: "44,45"
        category: "fyzika"
"""

__version__ = "1.0.0"
__description__ = "Legacy Vividbooks content migration into the documentation platform"

from .models import (
    ImportContext,
    ImportStatus,
    LegacyBook,
    MenuItem,
    TargetPage,
)
from .config_loader import ConfigLoader, get_nested
from .logger import setup_logging, ProgressTracker, log_section, log_config

from .migrate import main as cli_main

__all__ = [
    '__version__',
    '__description__',

    # Core data models
    'ImportContext',
    'ImportStatus',
    'LegacyBook',
    'MenuItem',
    'TargetPage',

    # Configuration
    'ConfigLoader',
    'get_nested',

    # Logging
    'setup_logging',
    'ProgressTracker',
    'log_section',
    'log_config',

    # CLI entry point
    'cli_main',
]
