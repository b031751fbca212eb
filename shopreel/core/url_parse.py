"""
Shop URL parsing and validation.
"""

import csv
from pathlib import Path
from urllib.parse import urlparse

from shopreel.core.error_codes import ValidationError

_ALLOWED_SCHEMES = ('http', 'https')


def normalize_url(url: str) -> str | None:
    """
    Return the trimmed URL if it is an absolute http(s) URL with a host,
    otherwise None.
    """
    url = (url or "").strip()
    if not url or any(c.isspace() for c in url):
        return None
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if parsed.scheme.lower() not in _ALLOWED_SCHEMES or not parsed.netloc:
        return None
    if not parsed.hostname:
        return None
    return url


def validate_source_url(url: str) -> str:
    """
    Validate a shop URL and return it trimmed.
    Raises ValidationError if invalid.
    """
    normalized = normalize_url(url)
    if not normalized:
        raise ValidationError(f"Invalid URL format: {url!r}")
    return normalized


def parse_input_lines(text: str) -> list[str]:
    """
    Parse pasted text into a list of shop URLs.
    - Trims whitespace
    - Skips blank lines and '#' comments
    - Drops invalid URLs
    - De-duplicates, keeping first occurrence order
    """
    urls = []
    seen = set()
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        url = normalize_url(line)
        if url and url not in seen:
            seen.add(url)
            urls.append(url)
    return urls


def parse_txt_file(path: Path) -> list[str]:
    """Parse a .txt file with one URL per line."""
    with open(path, 'r', encoding='utf-8') as f:
        return parse_input_lines(f.read())


def parse_csv_file(path: Path) -> list[str]:
    """Parse a CSV file; every cell that is a URL is taken."""
    cells = []
    with open(path, 'r', encoding='utf-8', newline='') as f:
        for row in csv.reader(f):
            cells.extend(row)
    return parse_input_lines("\n".join(cells))
