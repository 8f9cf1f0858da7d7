"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

import yaml

DEFAULT_LEGACY_API_URL = 'https://api.vividbooks.com/v1'
DEFAULT_STORAGE_BUCKET = 'teacher-files'
DEFAULT_ASSET_TABLE = 'vividbooks_assets'


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a dictionary")

        return cls._substitute_env_vars_recursive(config_data)

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Raises:
            ValueError: If validation fails
        """
        legacy_url = get_nested(config, 'legacy_api.base_url', DEFAULT_LEGACY_API_URL)
        cls._validate_url(legacy_url, 'legacy_api.base_url')
        cls._validate_required_field(config, 'legacy_api.user_code')

        cls._validate_required_field(config, 'platform.api_url')
        cls._validate_url(get_nested(config, 'platform.api_url'), 'platform.api_url')
        cls._validate_required_field(config, 'platform.storage_url')
        cls._validate_url(get_nested(config, 'platform.storage_url'), 'platform.storage_url')

        for optional_url in ('platform.rest_url', 'platform.auth_url'):
            value = get_nested(config, optional_url)
            if value:
                cls._validate_url(value, optional_url)

        cls._validate_required_field(config, 'migration.category')
        category = get_nested(config, 'migration.category')
        if not re.fullmatch(r'[a-z0-9-]+', str(category)):
            raise ValueError("migration.category must be a lower-case slug (e.g. 'fyzika')")

        book_ids = parse_book_ids(get_nested(config, 'migration.book_ids', ''))
        if not book_ids:
            raise ValueError("migration.book_ids must contain at least one numeric book ID")

        for flag in ('migration.download_files', 'migration.overwrite_existing',
                     'migration.import_boards', 'asset_catalog.enabled'):
            value = get_nested(config, flag)
            if value is not None and not isinstance(value, bool):
                raise ValueError(f"{flag} must be a boolean")

        selected = get_nested(config, 'migration.selected_items', 'all')
        if not (selected == 'all' or isinstance(selected, list)):
            raise ValueError("migration.selected_items must be 'all' or a list of item IDs")

        for delay_key in ('migration.item_delay', 'migration.text_delay'):
            delay = get_nested(config, delay_key, 0)
            if not isinstance(delay, (int, float)) or delay < 0:
                raise ValueError(f"{delay_key} must be a non-negative number")

        timeout = get_nested(config, 'advanced.request_timeout', 30)
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError("advanced.request_timeout must be a positive number")

        catalog_timeout = get_nested(config, 'asset_catalog.timeout', 3)
        if not isinstance(catalog_timeout, (int, float)) or catalog_timeout <= 0:
            raise ValueError("asset_catalog.timeout must be a positive number")

        min_bytes = get_nested(config, 'advanced.min_asset_bytes', 100)
        if not isinstance(min_bytes, int) or min_bytes < 0:
            raise ValueError("advanced.min_asset_bytes must be a non-negative integer")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: argparse namespace

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)
        for section in ('legacy_api', 'platform', 'migration', 'logging'):
            merged.setdefault(section, {})

        if getattr(args, 'book_ids', None):
            merged['migration']['book_ids'] = args.book_ids

        if getattr(args, 'category', None):
            merged['migration']['category'] = args.category

        if getattr(args, 'download_files', None) is not None:
            merged['migration']['download_files'] = args.download_files

        if getattr(args, 'overwrite', None) is not None:
            merged['migration']['overwrite_existing'] = args.overwrite

        if getattr(args, 'import_boards', None) is not None:
            merged['migration']['import_boards'] = args.import_boards

        if getattr(args, 'select', None):
            if 'all' in args.select:
                merged['migration']['selected_items'] = 'all'
            else:
                merged['migration']['selected_items'] = list(args.select)

        if getattr(args, 'destination', None):
            merged['migration']['destination_id'] = args.destination

        if getattr(args, 'report_path', None):
            merged['migration']['report_path'] = args.report_path

        if getattr(args, 'user_code', None):
            merged['legacy_api']['user_code'] = args.user_code

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        if getattr(args, 'verbose', 0):
            merged['logging']['level'] = 'DEBUG' if args.verbose >= 2 else 'INFO'

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            env_value = os.getenv(match.group(1))
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @staticmethod
    def _validate_required_field(config: dict, field: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config, field)
        if value is None or value == '':
            raise ValueError(f"Missing required configuration: {field}")

        if isinstance(value, str) and '${' in value:
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ValueError(
                f"Configuration field '{field}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(url or '')
        if not parsed.scheme or parsed.scheme not in ['http', 'https']:
            raise ValueError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ValueError(f"{field_name} missing hostname: {url}")


def parse_book_ids(value: Union[str, int, List[Any], None]) -> List[int]:
    """Parse comma-separated (or listed) book IDs, dropping anything non-numeric.

    >>> parse_book_ids("44, 45,x")
    [44, 45]
    """
    if value is None:
        return []
    if isinstance(value, int):
        return [value]
    if isinstance(value, str):
        parts = value.split(',')
    else:
        parts = [str(part) for part in value]

    ids = []
    for part in parts:
        part = part.strip()
        if part.isdigit():
            ids.append(int(part))
    return ids


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "platform.api_url")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    value = config
    for key in path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value


def resolved(value: Any) -> Any:
    """None for optional values whose environment variable was never set."""
    if isinstance(value, str) and ConfigLoader.ENV_VAR_PATTERN.search(value):
        return None
    return value


def selected_items(config: Dict[str, Any]) -> Optional[List[str]]:
    """Selected item IDs from config, or None meaning every item."""
    selection = get_nested(config, 'migration.selected_items', 'all')
    if selection == 'all' or selection is None:
        return None
    return [str(item) for item in selection]


__all__ = ['ConfigLoader', 'get_nested', 'parse_book_ids', 'resolved', 'selected_items']
