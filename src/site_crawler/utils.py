"""
Utility Functions for the Site Crawler

This module provides various utility functions and classes for:
- URL normalization and handling
- Registrable-domain guessing for the same-site filter
- Per-host request pacing
"""

import random
import threading
import time
from urllib.parse import urlsplit, urlunsplit, urljoin, urldefrag, quote, unquote


_DEFAULT_PORTS = {'http': ':80', 'https': ':443'}


def _clean_origin(scheme: str, netloc: str) -> tuple[str, str]:
    """Lowercase scheme and host and drop the scheme's default port."""
    scheme, netloc = scheme.lower(), netloc.lower()
    port = _DEFAULT_PORTS.get(scheme)
    if port and netloc.endswith(port):
        netloc = netloc[:-len(port)]
    return scheme, netloc


def normalize_origin(url: str) -> str:
    """
    Reduce an absolute URL to its `scheme://host[:port]` origin, in the
    same form normalize_url() gives to crawled links.

    Raises:
        ValueError: if the URL cannot be split
    """
    parts = urlsplit(url)
    scheme, netloc = _clean_origin(parts.scheme, parts.netloc)
    return f"{scheme}://{netloc}"


def normalize_url(base: str, href: str):
    """
    Resolve `href` against `base` into the canonical form of a crawled link.

    The fragment is dropped, scheme and host are lowercased, default ports
    (80/443) removed and the path re-quoted. The robots engine compares
    links against an origin cleaned by normalize_origin(), so both must
    agree on the scheme and host form.

    Args:
        base (str): Base URL for resolving relative URLs
        href (str): URL or relative path to normalize

    Returns:
        str or None: Normalized URL, or None if invalid
    """
    try:
        abs_url, _ = urldefrag(urljoin(base, href))
        scheme, netloc, path, query, _ = urlsplit(abs_url)
    except ValueError:
        return None
    scheme, netloc = _clean_origin(scheme, netloc)
    return urlunsplit((scheme, netloc, quote(unquote(path)), query, ''))


def get_domain(url: str) -> tuple[str, str]:
    """
    Guess the registrable domain of a URL and a short name for it.

    A leading `www` label is ignored. Hosts with three labels keep all
    three (`pplware.sapo.pt`); the short name drops the middle label when
    it looks like a second-level suffix (`example.co.uk` -> `example`).

    Args:
        url (str): absolute URL

    Returns:
        tuple: (domain, domain_name); single-label hosts and IPv4 addresses
        are returned whole

    Examples:
        >>> get_domain('http://www.kitsupixel.pt')
        ('kitsupixel.pt', 'kitsupixel')
        >>> get_domain('http://pplware.sapo.pt')
        ('pplware.sapo.pt', 'pplware.sapo')
    """
    host = (urlsplit(url).hostname or '').lower()
    if '.' not in host or host.replace('.', '').isdigit():
        return host, host.replace('.', '_')

    parts = host.split('.')
    if parts[0] == 'www' and len(parts) > 2:
        parts = parts[1:]

    if len(parts) == 3:
        domain = '.'.join(parts)
        domain_name = parts[0] if len(parts[1]) <= 3 else f"{parts[0]}.{parts[1]}"
    else:
        domain = f"{parts[-2]}.{parts[-1]}"
        domain_name = parts[-2]
    return domain, domain_name


class RateLimiter:
    """
    Thread-safe rate limiter for controlling request rates per key (e.g., per host).
    
    Each request to a key waits `min_delay` plus a random extra in
    `[0, random_delay)` after the previous one.
    """
    
    def __init__(self, min_delay: float, random_delay: float = 0.0):
        """
        Initialize rate limiter.
        
        Args:
            min_delay (float): Minimum delay between requests in seconds
            random_delay (float): Upper bound of the random extra delay in seconds
        """
        self.min_delay = max(0.0, float(min_delay))
        self.random_delay = max(0.0, float(random_delay))
        self.lock = threading.Lock()
        self.last = {}  # Last request time per key

    def next_delay(self) -> float:
        if self.random_delay <= 0:
            return self.min_delay
        return self.min_delay + random.uniform(0.0, self.random_delay)

    def wait(self, key: str):
        """
        Wait if needed to keep the delay between requests to `key`.
        
        Args:
            key (str): Key to rate limit on (e.g., hostname)
        """
        gap = self.next_delay()
        if gap <= 0:
            return

        with self.lock:
            now = time.time()
            last = self.last.get(key)
            delay = 0.0 if last is None else gap - (now - last)
            if delay > 0:
                time.sleep(delay)
            else:
                delay = 0.0
            self.last[key] = now + delay
