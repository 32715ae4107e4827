import re
from pathlib import Path
from typing import Iterable, List
from urllib.parse import urlparse

from .errors import InvalidUrl, UnsupportedFileType

MAX_URL_LENGTH = 2048

SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
URL_TOKEN_RE = re.compile(
    r"(https?://[^\s]+|(?:www\.)?[a-zA-Z0-9-]+\.[a-zA-Z]{2,}[^\s]*)", re.IGNORECASE
)
CELL_RE = re.compile(r"^(?:https?://)?(?:www\.)?[a-zA-Z0-9-]+\.[a-zA-Z]{2,}", re.IGNORECASE)
HOST_RE = re.compile(r"^(?:[a-z0-9-]+\.)+[a-z]{2,}$")

TRAILING_PUNCTUATION = ",.;:!?'\")]}>"
BRACKETS = {")": "(", "]": "[", "}": "{"}


def normalize_url(raw: str) -> str:
    """
    Minimal, lossless normalization:
    - Trim surrounding whitespace
    - Prepend https:// when no http(s) scheme is present
    Paths, queries and trailing slashes are left alone.
    """
    normalized = raw.strip()
    if not SCHEME_RE.match(normalized):
        normalized = "https://" + normalized
    return normalized


def is_valid_url(url: str) -> bool:
    if not url or len(url) > MAX_URL_LENGTH:
        return False
    if any(ch.isspace() for ch in url):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme.lower() not in {"http", "https"}:
        return False
    host = parsed.hostname or ""
    return bool(HOST_RE.match(host))


def validate_single_url(raw: str) -> str:
    url = normalize_url(raw)
    if len(url) > MAX_URL_LENGTH:
        raise InvalidUrl(raw, "URL too long")
    if not is_valid_url(url):
        raise InvalidUrl(raw)
    return url


def extract_domain(url: str) -> str:
    try:
        host = urlparse(normalize_url(url)).hostname
    except ValueError:
        return url
    if not host:
        return url
    if host.startswith("www."):
        host = host[4:]
    return host


def dedupe(urls: Iterable[str]) -> List[str]:
    # first occurrence wins, order preserved
    return list(dict.fromkeys(urls))


def _trim_token(token: str) -> str:
    while token and token[-1] in TRAILING_PUNCTUATION:
        closer = token[-1]
        opener = BRACKETS.get(closer)
        if opener and token.count(opener) >= token.count(closer):
            break
        token = token[:-1]
    return token


def _looks_like_url(token: str) -> bool:
    scheme = SCHEME_RE.match(token)
    if scheme:
        return len(token) > scheme.end()
    return bool(CELL_RE.match(token))


def extract_from_free_text(text: str) -> List[str]:
    urls = []
    for match in URL_TOKEN_RE.finditer(text or ""):
        token = _trim_token(match.group(0))
        if _looks_like_url(token):
            urls.append(normalize_url(token))
    return dedupe(urls)


def extract_from_delimited(text: str) -> List[str]:
    urls = []
    for line in (text or "").split("\n"):
        for cell in line.split(","):
            value = cell.strip().strip("\"'").strip()
            if CELL_RE.match(value):
                urls.append(normalize_url(value))
    return dedupe(urls)


def extract_from_file(filename: str, text: str) -> List[str]:
    suffix = Path(filename or "").suffix.lower()
    if suffix == ".csv":
        return extract_from_delimited(text)
    if suffix == ".txt":
        return extract_from_free_text(text)
    raise UnsupportedFileType(filename)
