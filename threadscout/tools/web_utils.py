from __future__ import annotations

from urllib.parse import urlparse, urlunparse

from threadscout.config import settings

# Hosts that serve the server-rendered thread markup the extractor understands.
PARSE_FRIENDLY_HOSTS = {
    "www.reddit.com": "old.reddit.com",
    "reddit.com": "old.reddit.com",
}
ALTERNATE_HOSTS = {
    "old.reddit.com": "www.reddit.com",
    "www.reddit.com": "old.reddit.com",
    "reddit.com": "old.reddit.com",
}
NON_THREAD_PATH_MARKERS = ("klp/", "/t/")
THREAD_PATH_MARKER = "/comments/"


def ensure_scheme(url: str) -> str:
    url = url.strip()
    if url.startswith(("http://", "https://")):
        return url
    return f"https://{url}"


def is_discussion_url(url: str, domains: list[str] | None = None) -> bool:
    host = (urlparse(ensure_scheme(url)).hostname or "").lower()
    for domain in domains if domains is not None else settings.discussion_domain_list:
        if host == domain or host.endswith("." + domain):
            return True
    return False


def is_thread_url(url: str) -> bool:
    """True for links that point at a single discussion thread."""
    if any(marker in url for marker in NON_THREAD_PATH_MARKERS):
        return False
    return THREAD_PATH_MARKER in url


def _swap_host(url: str, mapping: dict[str, str]) -> str:
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    replacement = mapping.get(host)
    if not replacement:
        return url
    netloc = replacement if parsed.port is None else f"{replacement}:{parsed.port}"
    return urlunparse(parsed._replace(netloc=netloc))


def to_parse_friendly(url: str) -> str:
    return _swap_host(url, PARSE_FRIENDLY_HOSTS)


def alternate_host_url(url: str) -> str:
    return _swap_host(url, ALTERNATE_HOSTS)


def normalize_discussion_url(url: str) -> str | None:
    """Return the parse-friendly thread URL, or None when the link is not a thread."""
    url = ensure_scheme(url)
    parsed = urlparse(url)
    url = urlunparse(parsed._replace(query="", fragment=""))
    if not is_thread_url(url):
        return None
    return to_parse_friendly(url)
