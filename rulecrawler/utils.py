"""
Utilities Module
Helper functions for text cleanup, URL handling and value shaping
"""

import json
import re
from typing import List, Any, Optional
from urllib.parse import urljoin, urlparse
import logging

logger = logging.getLogger(__name__)


class TextCleaner:
    """
    Text cleaning utilities for extracted content
    """

    @staticmethod
    def normalize_whitespace(text: str) -> str:
        """
        Normalize whitespace in text

        Args:
            text: Input text

        Returns:
            Text with every whitespace run collapsed into a single space
        """
        if not text:
            return ""

        text = re.sub(r'\s+', ' ', text)

        return text.strip()

    @staticmethod
    def truncate_text(text: str, max_length: int = 200, add_ellipsis: bool = True) -> str:
        """
        Truncate text to specified length

        Args:
            text: Input text
            max_length: Maximum length
            add_ellipsis: Whether to add "..." at the end

        Returns:
            Truncated text
        """
        if not text or len(text) <= max_length:
            return text

        truncated = text[:max_length]

        # Try to break at word boundary
        last_space = truncated.rfind(' ')
        if last_space > max_length * 0.8:
            truncated = truncated[:last_space]

        if add_ellipsis:
            truncated += "..."

        return truncated

    @staticmethod
    def stringify(value: Any) -> str:
        """Render a JSON value as text; containers are dumped as JSON"""
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        if isinstance(value, (dict, list, bool)):
            return json.dumps(value, ensure_ascii=False)
        return str(value)


class URLUtils:
    """
    URL helpers for building child requests
    """

    @staticmethod
    def absolutize(base_url: Optional[str], href: str) -> str:
        """Resolve `href` against `base_url`; returns `href` unchanged without a base"""
        if not href:
            return href
        href = href.strip()
        if not base_url:
            return href
        return urljoin(base_url, href)

    @staticmethod
    def is_http_url(url: str) -> bool:
        try:
            parsed = urlparse(url)
        except ValueError:
            return False
        return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


def collapse(values: List[Any]) -> Any:
    """None for no values, the value itself for one, the list otherwise"""
    if not values:
        return None
    if len(values) == 1:
        return values[0]
    return list(values)
