"""
Input sanitization helpers for free-text fields (names, notes, descriptions).

The UI renders these fields back to staff, so script/style blocks and inline
event handlers are stripped before the values reach the store.
"""

import re
import unicodedata
from typing import Any, Optional


_EVENT_HANDLER_RE = re.compile(r'\bon\w+\s*=\s*("[^"]*"|\'[^\']*\'|[^\s>]+)', re.IGNORECASE)

_INVISIBLE_CHARS = (
    '\u200b',  # Zero Width Space
    '\u200c',  # Zero Width Non-Joiner
    '\u200d',  # Zero Width Joiner
    '\u200e',  # Left-to-Right Mark
    '\u200f',  # Right-to-Left Mark
    '\u202e',  # Right-to-Left Override
    '\ufeff',  # BOM
)


def strip_dangerous_tags(content: str) -> str:
    """
    Remove script/style blocks, inline event handlers and script URLs.
    """
    if not content:
        return content

    content = re.sub(r'<script[^>]*>.*?</script>', '', content, flags=re.IGNORECASE | re.DOTALL)
    content = re.sub(r'<style[^>]*>.*?</style>', '', content, flags=re.IGNORECASE | re.DOTALL)
    content = _EVENT_HANDLER_RE.sub('', content)
    content = re.sub(r'(javascript|vbscript)\s*:', '', content, flags=re.IGNORECASE)
    content = re.sub(r'data\s*:\s*text/html', '', content, flags=re.IGNORECASE)

    return content


def normalize_unicode(value: str) -> str:
    """NFKC-normalize and drop zero-width / direction-override characters."""
    if not value:
        return value

    normalized = unicodedata.normalize('NFKC', value)
    for char in _INVISIBLE_CHARS:
        normalized = normalized.replace(char, '')
    return normalized


def clean_text(value: Optional[str]) -> Optional[str]:
    """Sanitize a free-text field. Blank input collapses to an empty string."""
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    return strip_dangerous_tags(normalize_unicode(value)).strip()


def safe_truncate(value: str, max_length: int, suffix: str = "...") -> str:
    if not value or len(value) <= max_length:
        return value

    truncate_at = max_length - len(suffix)
    if truncate_at <= 0:
        return suffix[:max_length]

    return value[:truncate_at] + suffix


def sanitize_for_log(value: Any, max_length: int = 200) -> str:
    """
    Make a value safe to put in a log line: redacts obvious secrets and
    truncates long payloads.
    """
    if value is None:
        return "null"

    str_value = str(value)
    str_value = re.sub(
        r'(password|passwd|pwd|secret|token|api_key)["\']?\s*[:=]\s*["\']?[^\s"\']+',
        r'\1: [REDACTED]',
        str_value,
        flags=re.IGNORECASE
    )

    return safe_truncate(str_value, max_length)
