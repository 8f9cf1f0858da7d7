"""Deterministic slugs, sanitized storage file names and ephemeral menu IDs."""

import re
import unicodedata
import uuid
from urllib.parse import urlparse

_NON_ALNUM = re.compile(r'[^a-z0-9]+')
_UNSAFE_FILENAME_CHARS = re.compile(r'[^a-zA-Z0-9.-]')


def slugify(name: str) -> str:
    """Derive a URL slug from a human readable name.

    Lower-cases, strips diacritics, collapses every run of characters outside
    ``[a-z0-9]`` into one hyphen and trims hyphens from both ends. Applying it
    to its own output returns the same slug.

    >>> slugify("Elektrický proud – úvod")
    'elektricky-proud-uvod'
    """
    decomposed = unicodedata.normalize('NFD', (name or '').lower())
    stripped = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_ALNUM.sub('-', stripped).strip('-')


def sanitize_filename(file_name: str) -> str:
    """Replace every character outside ``[a-zA-Z0-9.-]`` with an underscore."""
    return _UNSAFE_FILENAME_CHARS.sub('_', file_name)


def file_extension(url: str) -> str:
    """Lower-case extension of the URL path, or '' when there is none."""
    path = urlparse(url or '').path
    last_segment = path.rsplit('/', 1)[-1]
    if '.' not in last_segment:
        return ''
    return last_segment.rsplit('.', 1)[-1].lower()


def file_name_from_url(url: str) -> str:
    """Last path segment of the URL, defaulting to ``file``."""
    path = urlparse(url or '').path
    return path.rstrip('/').rsplit('/', 1)[-1] or 'file'


def ephemeral_id(*parts) -> str:
    """Menu item ID that is unique per import run.

    >>> ephemeral_id('imported', 42).startswith('imported-42-')
    True
    """
    prefix = '-'.join(str(part) for part in parts)
    return f"{prefix}-{uuid.uuid4().hex[:6]}"


__all__ = ['slugify', 'sanitize_filename', 'file_extension', 'file_name_from_url', 'ephemeral_id']
