"""
Exception hierarchy for the site crawler.

The robots engine is lenient: most of these are raised by small helpers,
logged by the parser and dropped. Only InvalidOriginError, InvalidURLError
and RobotsBodyError reach the caller.
"""


class CrawlerError(Exception):
    """Base exception for all crawler errors."""

    def __init__(self, message: str = "", url: str = "", details: str = ""):
        self.url = url
        self.details = details
        full_msg = message
        if url:
            full_msg += f" [URL: {url}]"
        if details:
            full_msg += f" ({details})"
        super().__init__(full_msg)


class InvalidURLError(CrawlerError):
    """Seed URL is missing a scheme or host."""

    def __init__(self, url: str = "", **kwargs):
        super().__init__(message="URL is not valid", url=url, **kwargs)


# ---- robots.txt

class RobotsError(CrawlerError):
    """Base class for robots.txt errors."""
    pass


class InvalidOriginError(RobotsError):
    """Origin handed to the robots engine is missing a scheme or host."""

    def __init__(self, url: str = "", **kwargs):
        super().__init__(message="URL is not valid for this robots.txt file", url=url, **kwargs)


class InvalidSitemapURLError(RobotsError):
    """Sitemap directive is not an absolute URL."""

    def __init__(self, url: str = "", **kwargs):
        super().__init__(message="Sitemap is not an absolute URL", url=url, **kwargs)


class PatternCompileError(RobotsError):
    """Wildcard path could not be compiled into a regular expression."""

    def __init__(self, pattern: str, details: str = ""):
        self.pattern = pattern
        super().__init__(message=f"Cannot compile robots pattern {pattern!r}", details=details)


class CrawlDelayParseError(RobotsError):
    """Crawl-delay value is not a non-negative number of seconds."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(message=f"Invalid crawl-delay {value!r}")


class RobotsBodyError(RobotsError):
    """robots.txt answered 200 but its body could not be read."""
    pass
