"""Structured logging infrastructure with verbosity levels and progress tracking."""

import copy
import logging
import logging.handlers
import time
from typing import Any, Dict, Optional

import colorlog

LOGGER_NAME = 'vividbooks_migrator'


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """
    Set up structured logging with configurable verbosity levels.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG)
        log_file: Optional path to a rotating log file
        log_format: Optional custom log format string
        date_format: Optional custom date format string
        level: Optional explicit log level string, overrides verbosity

    Returns:
        Configured package logger
    """
    if level:
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level_upper = level.upper()
        if level_upper not in allowed_levels:
            raise ValueError(
                f"Invalid log level '{level}'. Must be one of: {sorted(allowed_levels)}"
            )
        log_level = getattr(logging, level_upper)
    elif verbosity >= 2:
        log_level = logging.DEBUG
    elif verbosity >= 1:
        log_level = logging.INFO
    else:
        log_level = logging.WARNING

    if log_format is None:
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    if date_format is None:
        date_format = '%Y-%m-%d %H:%M:%S'

    # Root stays at WARNING so requests/urllib3/pdfminer do not flood the console
    logging.basicConfig(level=logging.WARNING, format=log_format, datefmt=date_format)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(colorlog.ColoredFormatter(
        fmt='%(log_color)s' + log_format,
        datefmt=date_format,
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        }
    ))
    logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(log_level)
            file_handler.setFormatter(logging.Formatter(fmt=log_format, datefmt=date_format))
            logger.addHandler(file_handler)
            logger.info(f"Logging to file: {log_file}")
        except OSError as e:
            logger.warning(f"Failed to set up file logging: {str(e)}")

    logger.debug(f"Log level: {logging.getLevelName(log_level)}")
    return logger


class ProgressTracker:
    """Context manager for tracking progress across an import phase."""

    def __init__(self, total_items: int, item_type: str = "items"):
        """
        Initialize progress tracker.

        Args:
            total_items: Total number of items to process
            item_type: Description of item type (e.g., "lessons", "worksheets")
        """
        self.total_items = total_items
        self.item_type = item_type
        self.processed_items = 0
        self.successful_items = 0
        self.failed_items = 0
        self.start_time: Optional[float] = None
        self.logger = logging.getLogger(LOGGER_NAME)

    def __enter__(self) -> 'ProgressTracker':
        self.start_time = time.time()
        self.logger.info(f"Starting processing of {self.total_items} {self.item_type}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is None:
            return

        elapsed = time.time() - self.start_time
        if self.failed_items and self.failed_items == self.total_items:
            log_method = self.logger.error
        elif self.failed_items:
            log_method = self.logger.warning
        else:
            log_method = self.logger.info

        log_method(
            f"{self.item_type.capitalize()} done: {self.successful_items}/{self.total_items} imported, "
            f"{self.failed_items} failed in {elapsed:.1f}s"
        )

    def increment(self, success: bool = True) -> None:
        """Record one processed item."""
        self.processed_items += 1
        if success:
            self.successful_items += 1
        else:
            self.failed_items += 1

        self.logger.info(
            f"[{self.processed_items}/{self.total_items}] {self.item_type}: "
            f"{'ok' if success else 'FAILED'}"
        )


def log_section(title: str) -> None:
    """Log a decorative section header."""
    logger = logging.getLogger(LOGGER_NAME)
    separator = "=" * 60
    logger.info("")
    logger.info(separator)
    logger.info(f"  {title.upper()}")
    logger.info(separator)
    logger.info("")


def log_config(config: Dict[str, Any]) -> None:
    """
    Log sanitized configuration for debugging.

    Args:
        config: Configuration dictionary to log
    """
    logger = logging.getLogger(LOGGER_NAME)
    sanitized = _sanitize_config(config)

    log_section("Configuration")

    legacy = sanitized.get('legacy_api', {})
    logger.info(f"Legacy API: {legacy.get('base_url', 'Not Set')} (user code: {legacy.get('user_code', 'Not Set')})")

    platform = sanitized.get('platform', {})
    logger.info(f"Platform API: {platform.get('api_url', 'Not Set')}")
    logger.info(f"Storage: {platform.get('storage_url', 'Not Set')} bucket={platform.get('storage_bucket', 'teacher-files')}")
    logger.info("Access Token: ***REDACTED***" if platform.get('access_token') else "Access Token: Not Set")
    logger.info("")

    migration = sanitized.get('migration', {})
    logger.info(f"Book IDs: {migration.get('book_ids', 'Not Set')}")
    logger.info(f"Category: {migration.get('category', 'Not Set')}")
    logger.info(f"Download Files: {migration.get('download_files', True)}")
    logger.info(f"Overwrite Existing: {migration.get('overwrite_existing', False)}")
    logger.info(f"Selection: {migration.get('selected_items', 'all')}")
    logger.info(f"Destination: {migration.get('destination_id') or 'menu root'}")
    logger.info(f"Import Boards: {migration.get('import_boards', True)}")

    catalog = sanitized.get('asset_catalog', {})
    logger.info(f"Asset Catalog: {'enabled' if catalog.get('enabled', True) else 'disabled'}")


def _sanitize_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Create a copy of the configuration with secrets masked."""
    sanitized = copy.deepcopy(config)

    sensitive_fields = {
        'password', 'secret', 'api_key', 'anon_key',
        'access_token', 'refresh_token', 'user_code'
    }

    def mask_sensitive(data: Any) -> Any:
        if isinstance(data, dict):
            masked = {}
            for key, value in data.items():
                is_sensitive = any(sensitive in key.lower() for sensitive in sensitive_fields)
                if is_sensitive and isinstance(value, str) and value:
                    masked[key] = "***REDACTED***"
                else:
                    masked[key] = mask_sensitive(value)
            return masked
        elif isinstance(data, list):
            return [mask_sensitive(item) for item in data]
        return data

    return mask_sensitive(sanitized)


__all__ = [
    'setup_logging',
    'ProgressTracker',
    'log_section',
    'log_config'
]
