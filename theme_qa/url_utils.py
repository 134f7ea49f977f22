"""URL helpers for page id extraction and path comparison."""

from __future__ import annotations

import re
from urllib.parse import urlparse

from theme_qa.errors import IdExtractionError

DEFAULT_PAGE_ID_PATTERN = r"/pages/(?:edit|view)/(\d+)"


def extract_page_id(url: str, pattern: str = DEFAULT_PAGE_ID_PATTERN) -> str:
    """Pull the page id out of a post-save URL such as ``/s/pages/edit/42``."""
    match = re.search(pattern, urlparse(url).path)
    if not match:
        raise IdExtractionError(f"URL does not match '{pattern}': {url}")
    return match.group(1)


def same_path(url: str, path: str) -> bool:
    """True when ``url`` points at ``path``, ignoring query, trailing slash
    and any prefix the install lives under (``/mautic/s/login``)."""
    current = urlparse(url).path.rstrip("/")
    target = path.rstrip("/")
    if not target:
        return current == ""
    return current.endswith(target)
