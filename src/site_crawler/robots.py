"""
Robots.txt Policy Engine

This module fetches, parses and evaluates a site's robots.txt with features:
- Per user-agent groups with fallback to the `*` group
- Longest-prefix precedence for literal paths
- First-match precedence for wildcard patterns
- Crawl-delay and sitemap declarations
- Graceful fallback to "allow everything" when robots.txt is missing

An engine is built once and is read-only afterwards, so worker threads can
query it without locking.
"""

import logging
import math
import re
import threading
from types import MappingProxyType
from urllib.parse import urlsplit

import requests
from requests.exceptions import RequestException

from .errors import (
    CrawlDelayParseError,
    InvalidOriginError,
    InvalidSitemapURLError,
    PatternCompileError,
    RobotsBodyError,
)
from .rules import Group, Rule, make_rule
from .utils import normalize_origin

logger = logging.getLogger(__name__)

WILDCARD_AGENT = "*"

_HTTPS = re.compile(r"^https://", re.IGNORECASE)


def _is_absolute(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc)


def _same_scheme(url: str) -> str:
    # https and http are compared as the same origin
    return _HTTPS.sub("http://", url, count=1)


def parse_crawl_delay(value: str) -> float:
    """
    Parse a Crawl-delay value as seconds.

    Raises:
        CrawlDelayParseError: if the value is not a finite, non-negative number
    """
    try:
        delay = float(value)
    except ValueError as e:
        raise CrawlDelayParseError(value) from e
    if not math.isfinite(delay) or delay < 0:
        raise CrawlDelayParseError(value)
    return delay


def validate_sitemap(url: str) -> str:
    """
    Return the sitemap URL if it is absolute.

    Raises:
        InvalidSitemapURLError: if scheme or host is missing
    """
    if not _is_absolute(url):
        raise InvalidSitemapURLError(url)
    return url


def parse_robots(body: str) -> tuple[dict[str, Group], list[str]]:
    """
    Parse the text of a robots.txt file.

    Every directive binds to the most recent User-agent line; directives
    before the first one bind to `*`. Repeated User-agent lines for the
    same token add to the same group. Bad Allow/Disallow patterns,
    crawl-delays and sitemaps are dropped and parsing goes on.

    Args:
        body (str): robots.txt content

    Returns:
        tuple: (groups keyed by lowercase agent token, sitemap URLs in order)
    """
    rules: dict[str, list[Rule]] = {}
    delays: dict[str, float] = {}
    sitemaps: list[str] = []
    current_agent = WILDCARD_AGENT

    for line_no, line in enumerate(body.lstrip("\ufeff").split("\n"), start=1):
        line = line.split("#", 1)[0]
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip().lower()
        value = value.strip()

        if key == "user-agent":
            current_agent = value.lower()
        elif key in ("allow", "disallow"):
            try:
                rule = make_rule(value, allow=(key == "allow"))
            except PatternCompileError as e:
                logger.debug(f"robots.txt line {line_no}: dropping rule: {e}")
                continue
            rules.setdefault(current_agent, []).append(rule)
        elif key == "crawl-delay":
            try:
                delays[current_agent] = parse_crawl_delay(value)
            except CrawlDelayParseError as e:
                logger.debug(f"robots.txt line {line_no}: {e}")
        elif key == "sitemap":
            try:
                sitemaps.append(validate_sitemap(value))
            except InvalidSitemapURLError as e:
                logger.debug(f"robots.txt line {line_no}: {e}")

    groups = {}
    for agent in (*rules, *delays):
        if agent not in groups:
            groups[agent] = Group(agent, tuple(rules.get(agent, ())), delays.get(agent, 0.0))
    return groups, sitemaps


def fetch_robots_txt(origin: str, session: requests.Session | None = None,
                     timeout: float = 10.0, cancel: threading.Event | None = None) -> str | None:
    """
    Download `<origin>/robots.txt` with a single GET.

    Redirects are followed by requests. A transport error, a non-200 answer
    or a cancellation all mean "no robots.txt".

    Args:
        origin (str): scheme and host, without a trailing slash
        session: optional requests session (shares headers with the crawler)
        timeout (float): request timeout in seconds
        cancel (threading.Event, optional): abort the download when set

    Returns:
        str or None: robots.txt body, or None when there is no policy

    Raises:
        RobotsBodyError: if a 200 body cannot be read to the end
    """
    robots_url = f"{origin}/robots.txt"
    if cancel is not None and cancel.is_set():
        logger.info(f"robots.txt fetch cancelled for {origin}")
        return None

    http = session if session is not None else requests
    try:
        resp = http.get(robots_url, timeout=timeout, stream=True)
    except RequestException as e:
        logger.warning(f"Failed to read robots.txt for {origin}: {e}")
        return None

    try:
        if resp.status_code != 200:
            logger.info(f"No robots.txt at {robots_url} (HTTP {resp.status_code})")
            return None

        chunks = []
        try:
            for chunk in resp.iter_content(chunk_size=8192):
                if cancel is not None and cancel.is_set():
                    logger.info(f"robots.txt fetch cancelled for {origin}")
                    return None
                chunks.append(chunk)
        except RequestException as e:
            raise RobotsBodyError("Failed to read robots.txt body", url=robots_url, details=str(e)) from e

        logger.info(f"Loaded robots.txt from {robots_url}")
        return b"".join(chunks).decode("utf-8", errors="replace")
    finally:
        resp.close()


class Robots:
    """
    robots.txt rules of one origin, as seen by one user agent.

    Usage:
        robots = Robots().build("https://example.com", "MyBot")
        if robots.is_allowed("https://example.com/some/page"):
            ...

    The engine starts empty (everything allowed) and is populated once by
    build() or from_text(). After that it does not change.
    """

    def __init__(self):
        self.origin: str | None = None
        self.user_agent = ""
        self.groups = MappingProxyType({})
        self._sitemaps: tuple[str, ...] = ()
        self._built = False

    def __repr__(self):
        return f"Robots(origin={self.origin!r}, user_agent={self.user_agent!r}, groups={sorted(self.groups)})"

    @property
    def sitemaps(self) -> tuple[str, ...]:
        """Sitemap URLs declared in robots.txt, in file order."""
        return self._sitemaps

    def _start(self, origin: str, user_agent: str):
        if self._built:
            raise RuntimeError("robots.txt rules are already built")

        origin = origin.strip().rstrip("/")
        if not _is_absolute(origin):
            raise InvalidOriginError(origin)
        self.origin = normalize_origin(origin)
        self.user_agent = user_agent
        self._built = True

    def _load(self, body: str):
        groups, sitemaps = parse_robots(body)
        self.groups = MappingProxyType(groups)
        self._sitemaps = tuple(sitemaps)
        logger.debug(f"robots.txt for {self.origin}: {len(groups)} group(s), {len(sitemaps)} sitemap(s)")

    def build(self, origin: str, user_agent: str, *, session: requests.Session | None = None,
              timeout: float = 10.0, cancel: threading.Event | None = None) -> "Robots":
        """
        Fetch and parse robots.txt for `origin`.

        A missing robots.txt, a transport error or a cancellation leaves the
        engine without rules, so every URL is allowed.

        Args:
            origin (str): seed URL; only scheme and host are kept
            user_agent (str): agent used to select a group
            session: optional requests session
            timeout (float): request timeout in seconds
            cancel (threading.Event, optional): cancellation signal

        Returns:
            Robots: self, for chaining

        Raises:
            InvalidOriginError: if origin lacks a scheme or host
            RobotsBodyError: if the robots.txt body cannot be read
            RuntimeError: if the engine was already built
        """
        self._start(origin, user_agent)
        body = fetch_robots_txt(self.origin, session=session, timeout=timeout, cancel=cancel)
        if body is not None:
            self._load(body)
        return self

    @classmethod
    def from_text(cls, origin: str, user_agent: str, body: str) -> "Robots":
        """Build an engine from robots.txt content already in hand."""
        robots = cls()
        robots._start(origin, user_agent)
        robots._load(body)
        return robots

    def _select_group(self, user_agent: str) -> Group | None:
        # A group that only has a crawl-delay does not shadow `*`
        for agent in (user_agent.lower(), WILDCARD_AGENT):
            group = self.groups.get(agent)
            if group is not None and group.rules:
                return group
        return None

    def _request_path(self, url: str) -> str:
        if not self.origin or not _is_absolute(url):
            return url
        # Host case and default ports must not defeat the origin prefix
        netloc = urlsplit(url).netloc
        host_start = url.index("//") + 2
        origin = _same_scheme(self.origin)
        if url.startswith(netloc, host_start):
            candidate = _same_scheme(normalize_origin(url) + url[host_start + len(netloc):])
        else:
            candidate = _same_scheme(url)
        if candidate.startswith(origin):
            rest = candidate[len(origin):]
            if not rest or rest[0] in "/?":
                return rest
        return url

    def is_allowed(self, url: str, user_agent: str | None = None) -> bool:
        """
        Check whether the user agent may visit `url`.

        Args:
            url (str): absolute URL on this origin, or a path with query
            user_agent (str, optional): overrides the engine's user agent

        Returns:
            bool: False only when a rule of the selected group disallows it
        """
        group = self._select_group(self.user_agent if user_agent is None else user_agent)
        if group is None:
            return True
        return group.is_allowed(self._request_path(url))

    def crawl_delay(self, user_agent: str | None = None) -> float:
        """
        Crawl-delay in seconds for the user agent, falling back to `*`.

        Returns 0.0 when neither group declares one.
        """
        agent = (self.user_agent if user_agent is None else user_agent).lower()
        own = self.groups.get(agent)
        if own is not None and (own.rules or own.crawl_delay):
            return own.crawl_delay
        wildcard = self.groups.get(WILDCARD_AGENT)
        return wildcard.crawl_delay if wildcard is not None else 0.0
