"""
HTML Parser Module for the Site Crawler

This module provides functions for:
- Detecting HTML content
- Extracting and normalizing links from HTML
- Same-site and file-link checks
"""

import posixpath
from bs4 import BeautifulSoup, SoupStrainer
from urllib.parse import urlsplit
from .utils import normalize_url


def is_html_content(headers) -> bool:
    """
    Check if response headers indicate HTML content.
    
    Args:
        headers (dict): HTTP response headers
        
    Returns:
        bool: True if content type is HTML
    """
    ct = headers.get('Content-Type') or headers.get('content-type') or ''
    return 'text/html' in ct.lower()


def extract_links(base_url: str, html: bytes, max_links: int = 1000):
    """
    Extract absolute links from the anchors of an HTML page.
    
    Links are resolved against `base_url`, normalized, and lose any
    trailing slash. Empty and overlong (>= 2048 chars) links are skipped.
    
    Args:
        base_url (str): Base URL for resolving relative links
        html (bytes): Raw HTML content
        max_links (int): Maximum number of links to extract (default: 1000)
        
    Returns:
        list: Absolute URLs in document order
    """
    only_a_tags = SoupStrainer('a')  # parse only <a> tags
    soup = BeautifulSoup(html, 'html.parser', parse_only=only_a_tags)
    hrefs = []

    for a in soup.find_all('a', href=True):
        if len(hrefs) >= max_links:
            break
        link = normalize_url(base_url, a['href'].strip())
        if not link:
            continue
        link = link.rstrip('/')
        if link and len(link) < 2048:
            hrefs.append(link)
    return hrefs


def looks_like_file(url: str) -> bool:
    """
    True when the last path segment has an extension (`/a/b.pdf`).

    Examples:
        >>> looks_like_file('https://example.com/docs/report.pdf')
        True
        >>> looks_like_file('https://example.com/docs')
        False
    """
    return '.' in posixpath.basename(urlsplit(url).path)


def same_site(url: str, domain: str) -> bool:
    """
    Check that a URL is http(s) and its host belongs to `domain`.
    
    Args:
        url (str): URL to check
        domain (str): domain from get_domain()
        
    Returns:
        bool: True if the URL stays on the crawled site
    """
    parts = urlsplit(url)
    if parts.scheme not in ('http', 'https'):
        return False
    host = (parts.hostname or '').lower()
    return host == domain or host.endswith('.' + domain)
