from __future__ import annotations

import re
import time
import warnings
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx
from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning


DEFAULT_TIMEOUT = 8.0
DEFAULT_MAX_BYTES = 64 * 1024
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)
DEFAULT_FAVICON_SERVICE = "https://www.google.com/s2/favicons?domain={hostname}&sz=64"

HEAD_CLOSE_MARKER = b"</head>"

_WHITESPACE = re.compile(r"\s+")


@dataclass
class PageMetadata:
    title: str
    description: str
    favicon: str | None
    error: str | None = None

    def as_dict(self):
        return {
            "title": self.title,
            "description": self.description,
            "favicon": self.favicon,
        }


@dataclass
class FetchedPage:
    html: str
    final_url: str
    status_code: int


def _normalize_error(exc: Exception) -> str:
    message = str(exc).strip()
    if message:
        return message
    return exc.__class__.__name__


def _collapse(value: str | None) -> str:
    return _WHITESPACE.sub(" ", value or "").strip()


def fetch_page(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    max_bytes: int = DEFAULT_MAX_BYTES,
    user_agent: str = DEFAULT_USER_AGENT,
) -> FetchedPage:
    """Download the start of a page, stopping at ``</head>`` or ``max_bytes``.

    ``timeout`` is a wall-clock budget for the whole download, redirects
    included: every hop only gets what is left of it.
    """
    deadline = time.monotonic() + timeout
    headers = {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    }

    def enforce_deadline(request: httpx.Request) -> None:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise httpx.TimeoutException(
                f"fetch exceeded {timeout:g}s", request=request
            )
        request.extensions["timeout"] = httpx.Timeout(max(0.1, remaining)).as_dict()

    with httpx.Client(
        follow_redirects=True,
        timeout=timeout,
        headers=headers,
        event_hooks={"request": [enforce_deadline]},
    ) as client:
        with client.stream("GET", url) as response:
            buffer = bytearray()
            for chunk in response.iter_bytes():
                if time.monotonic() > deadline:
                    raise TimeoutError(f"fetch exceeded {timeout:g}s")
                scan_from = max(0, len(buffer) - len(HEAD_CLOSE_MARKER))
                buffer.extend(chunk)
                if len(buffer) >= max_bytes:
                    del buffer[max_bytes:]
                    break
                if bytes(buffer[scan_from:]).lower().find(HEAD_CLOSE_MARKER) != -1:
                    break
            encoding = response.encoding or "utf-8"
            return FetchedPage(
                html=bytes(buffer).decode(encoding, errors="ignore"),
                final_url=str(response.url),
                status_code=response.status_code,
            )


def _build_soup(html: str) -> BeautifulSoup:
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
        return BeautifulSoup(html, "lxml")


def _attr_text(tag, name: str) -> str:
    value = tag.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return (value or "").strip()


def extract_title(soup: BeautifulSoup) -> str:
    node = soup.find("title")
    if node is None:
        return ""
    return _collapse(node.get_text())


def extract_description(soup: BeautifulSoup) -> str:
    metas = soup.find_all("meta")
    for attr, expected in (("name", "description"), ("property", "og:description")):
        for meta in metas:
            if _attr_text(meta, attr).lower() != expected:
                continue
            content = _collapse(_attr_text(meta, "content"))
            if content:
                return content
    return ""


def find_icon_href(soup: BeautifulSoup) -> str | None:
    for link in soup.find_all("link"):
        rel = link.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if not any("icon" in token.lower() for token in rel):
            continue
        href = _attr_text(link, "href")
        if href:
            return href
    return None


def page_origin(url: str) -> tuple[str, str] | None:
    """Return ``(scheme, origin)`` for an absolute http(s) URL."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc or not parts.hostname:
        return None
    scheme = parts.scheme.lower()
    return scheme, f"{scheme}://{parts.netloc}"


def resolve_favicon_href(href: str, page_url: str) -> str | None:
    """Resolve an icon href against the page origin.

    Relative hrefs without a leading slash are joined to the origin, not to
    the page path: ``icon.png`` on ``https://example.com/blog/post`` becomes
    ``https://example.com/icon.png``.
    """
    lowered = href.lower()
    if lowered.startswith(("http://", "https://", "data:")):
        return href
    origin = page_origin(page_url)
    if origin is None:
        return None
    scheme, base = origin
    if href.startswith("//"):
        return f"{scheme}:{href}"
    if href.startswith("/"):
        return f"{base}{href}"
    return f"{base}/{href}"


def fallback_favicon(
    url: str, fetched: bool, favicon_service: str = DEFAULT_FAVICON_SERVICE
) -> str | None:
    origin = page_origin(url)
    if origin is None:
        return None
    if fetched:
        return f"{origin[1]}/favicon.ico"
    hostname = urlsplit(url).hostname
    return favicon_service.format(hostname=hostname)


def parse_metadata(html: str, page_url: str) -> tuple[str, str, str | None]:
    soup = _build_soup(html)
    href = find_icon_href(soup)
    favicon = resolve_favicon_href(href, page_url) if href else None
    return extract_title(soup), extract_description(soup), favicon


def extract_metadata(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    max_bytes: int = DEFAULT_MAX_BYTES,
    user_agent: str = DEFAULT_USER_AGENT,
    favicon_service: str = DEFAULT_FAVICON_SERVICE,
) -> PageMetadata:
    """Fetch ``url`` and pull out title, description and favicon.

    Never raises: network and parse failures leave the defaults (title is the
    URL, empty description, a guessed favicon) and are reported in ``error``.
    """
    title = url
    description = ""
    favicon = None
    error = None
    fetched = False
    page_url = url

    try:
        page = fetch_page(
            url, timeout=timeout, max_bytes=max_bytes, user_agent=user_agent
        )
        fetched = True
        page_url = page.final_url or url
        parsed_title, parsed_description, favicon = parse_metadata(
            page.html, page_url
        )
        title = parsed_title or url
        description = parsed_description
    except Exception as exc:
        error = _normalize_error(exc)

    if not favicon:
        try:
            favicon = fallback_favicon(page_url, fetched, favicon_service)
        except Exception as exc:
            error = error or _normalize_error(exc)
            favicon = None

    return PageMetadata(
        title=title, description=description, favicon=favicon, error=error
    )


def options_from_config(config) -> dict:
    return {
        "timeout": float(config.get("METADATA_FETCH_TIMEOUT", DEFAULT_TIMEOUT)),
        "max_bytes": int(config.get("METADATA_MAX_BYTES", DEFAULT_MAX_BYTES)),
        "user_agent": config.get("METADATA_USER_AGENT") or DEFAULT_USER_AGENT,
        "favicon_service": config.get("FAVICON_SERVICE_URL")
        or DEFAULT_FAVICON_SERVICE,
    }
