"""
Web Page Fetcher Module

This module handles the fetching of web pages with features including:
- Per-host pacing with an optional random delay (robots crawl-delay)
- Retry handling with Retry-After support
- Proxy support
- Response timing
"""

import requests
import time
import logging
from datetime import datetime, timezone
import email.utils as eut
from urllib.parse import urlsplit
from requests.exceptions import RequestException

from .utils import RateLimiter

logger = logging.getLogger(__name__)


def parse_retry_after(value: str) -> int:
    """
    Parse the Retry-After header value to determine wait time.
    
    Handles both delta-seconds and HTTP-date formats according to RFC 7231.
    
    Args:
        value (str): The Retry-After header value
        
    Returns:
        int: Number of seconds to wait (>= 0). Returns 0 if parsing fails.
    """
    if not value:
        return 0
    v = value.strip()

    if v.isdigit():
        return int(v)

    try:
        dt = eut.parsedate_to_datetime(v)
    except (TypeError, ValueError):
        return 0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    wait = int((dt - datetime.now(timezone.utc)).total_seconds())
    return max(0, wait)


class Fetcher:
    """
    A web page fetcher with per-host pacing and retries.
    
    The session carries the crawler's User-Agent (and a From header when a
    contact address is configured), so it is also handed to the robots
    engine for the robots.txt request.
    """
    
    def __init__(self, user_agent: str, timeout: int, retries: int, delay: float,
                 random_delay: float = 0.0, proxy=None, contact_email: str | None = None):
        """
        Initialize the fetcher with the specified configuration.
        
        Args:
            user_agent (str): User agent string to identify the crawler
            timeout (int): Request timeout in seconds
            retries (int): Number of retry attempts for failed requests
            delay (float): Minimum delay between requests to the same host
            random_delay (float): Upper bound of an extra random delay per request
            proxy (str, optional): Proxy server URL
            contact_email (str, optional): Contact email for crawler identification
        """
        self.user_agent = user_agent
        self.timeout = timeout
        self.retries = retries
        self.proxy = proxy
        self.contact_email = contact_email

        self.session = requests.Session()
        headers = {"User-Agent": self.user_agent}
        if self.contact_email:
            headers["From"] = self.contact_email  # Identify crawler operator
        self.session.headers.update(headers)
        if self.proxy:
            self.session.proxies.update({"http": proxy, "https": proxy})

        self._rate = RateLimiter(delay, random_delay)

    def set_random_delay(self, random_delay: float):
        """Change the random delay upper bound, e.g. after reading robots.txt."""
        self._rate.random_delay = max(0.0, float(random_delay))

    def close(self):
        self.session.close()

    def fetch(self, url: str):
        """
        Fetch a URL with automatic retries.
        
        Args:
            url (str): The URL to fetch
            
        Returns:
            tuple: (
                status_code: int or None,
                headers: dict,
                content: bytes,
                elapsed_time: float,
                error: str or None
            )
        """
        last_err = None
        start = time.time()
        host = urlsplit(url).netloc
        logger.debug(f"Starting fetch for {url}")

        for attempt in range(1, self.retries + 2):
            try:
                self._rate.wait(host)
                logger.debug(f"Attempt {attempt} for {url}")

                resp = self.session.get(url, timeout=self.timeout)
                status = resp.status_code

                # 429 Too Many Requests, 503 Service Unavailable
                if status in (429, 503):
                    wait = parse_retry_after(resp.headers.get("Retry-After", ""))
                    if wait > 0:
                        logger.warning(f"Retry-After {wait}s for {url}")
                        time.sleep(min(wait, 120))
                    raise RequestException(f"retryable status {status}")

                elapsed = time.time() - start
                return status, resp.headers, resp.content, elapsed, None

            except RequestException as e:
                last_err = str(e)
                logger.debug(f"Attempt {attempt} for {url} failed: {e}")
                if attempt <= self.retries:
                    time.sleep(1.0 * attempt)

        elapsed = time.time() - start
        logger.warning(f"Giving up on {url}: {last_err}")
        return None, {}, b"", elapsed, last_err
