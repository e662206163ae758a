"""
Frontier Module - Site Crawler Core Component

This module drives a crawl of one site, starting from a seed URL:
- Breadth-first, depth-bounded URL scheduling
- Concurrent fetching on a thread pool
- robots.txt admission for every discovered link
- Same-site and file-link filtering
- Discovered-URL list written to `<output_dir>/<site>.txt`, deduplicated at the end
- Progress bar and final report
"""

import concurrent.futures as cf
import logging
import os
import signal
import threading
import time
from collections import deque
from urllib.parse import urlsplit

from tqdm import tqdm

from .errors import InvalidURLError, RobotsBodyError
from .fetcher import Fetcher
from .parser import extract_links, is_html_content, looks_like_file, same_site
from .robots import Robots
from .storage import LinkWriter, remove_duplicates_from_file, write_summary_json
from .utils import get_domain, normalize_url

logger = logging.getLogger(__name__)


class Crawler:
    """
    Crawls the pages of a single site reachable from a seed URL.

    robots.txt is read once, when the crawler is created. Its crawl-delay
    becomes the upper bound of a random pause between requests to the host.
    """

    def __init__(self, cfg: dict, seed_url: str, robots: Robots | None = None):
        """
        Initialize the crawler.

        Args:
            cfg (dict): Configuration (see config.yaml for the keys)
            seed_url (str): Absolute URL the crawl starts from
            robots (Robots, optional): Prebuilt robots engine; built from the
                seed's origin when omitted

        Raises:
            InvalidURLError: if the seed URL lacks a scheme or host
        """
        self.cfg = cfg

        seed = seed_url.strip().rstrip("/")
        parts = urlsplit(seed)
        if not parts.scheme or not parts.netloc:
            raise InvalidURLError(seed_url)
        # Same form as discovered links, so the seed is not fetched twice
        self.seed_url = (normalize_url(seed, "") or seed).rstrip("/")
        self.domain, self.domain_name = get_domain(seed)

        # Core crawling parameters
        self.user_agent = cfg["user_agent"]
        self.max_depth = int(cfg.get("max_depth", 5))   # seed is depth 1
        self.respect_robots = bool(cfg.get("respect_robots", True))
        self.max_links_per_page = int(cfg.get("max_links_per_page", 1000))
        self.show_progress = bool(cfg.get("progress", True))

        output_dir = cfg.get("output_dir", "outputs")
        self.output_path = os.path.join(output_dir, f"{self.domain_name}.txt")
        self.summary_path = os.path.join(output_dir, f"{self.domain_name}_summary.json")

        self.fetcher = Fetcher(
            self.user_agent,
            int(cfg.get("request_timeout_sec", 20)),
            int(cfg.get("max_retries", 2)),
            float(cfg.get("min_delay_per_host_sec", 0.0)),
            proxy=cfg.get("proxy"),
            contact_email=cfg.get("contact_email"),
        )

        self._cancel = threading.Event()
        self.robots = robots if robots is not None else Robots()
        if self.respect_robots:
            if robots is None:
                self._build_robots(float(cfg.get("robots_timeout_sec", 10)))
            self.fetcher.set_random_delay(self.robots.crawl_delay())

        # Frontier state
        self._frontier = deque()        # (url, depth) waiting to be fetched
        self._visited = set()           # URLs ever scheduled
        self._visited_lock = threading.Lock()
        self._links = None

        # Statistics counters
        self._stats_lock = threading.Lock()
        self.pages_ok = 0                   # HTML pages fetched
        self.error_count = 0                # Transport errors and non-2xx answers
        self.non_html_count = 0             # 2xx answers that were not HTML
        self.robots_blocked_count = 0       # Links refused by robots.txt
        self.links_found = 0                # Links accepted into the output file

        self.stop_flag = False
        self.start_time = time.time()
        self._pbar = None

    def _build_robots(self, timeout: float):
        try:
            self.robots.build(self.seed_url, self.user_agent, session=self.fetcher.session,
                              timeout=timeout, cancel=self._cancel)
        except RobotsBodyError as e:
            logger.warning(f"Ignoring unreadable robots.txt: {e}")
        delay = self.robots.crawl_delay()
        if delay:
            logger.info(f"robots.txt crawl-delay: {delay}s")
        if self.robots.sitemaps:
            logger.info(f"robots.txt declares {len(self.robots.sitemaps)} sitemap(s)")

    def _bump(self, name: str):
        with self._stats_lock:
            setattr(self, name, getattr(self, name) + 1)

    def stop(self):
        """Stop the crawl; in-flight pages finish, nothing new is fetched."""
        self.stop_flag = True
        self._cancel.set()

    def _signal_handler(self, sig, frame):
        print("\nStopping crawler... please wait for active threads to finish.")
        self.stop()

    def _schedule(self, url: str, depth: int) -> bool:
        """Queue a URL once, if it is within the depth limit."""
        if depth > self.max_depth:
            return False
        with self._visited_lock:
            if url in self._visited:
                return False
            self._visited.add(url)
        self._frontier.append((url, depth))
        return True

    def accept_link(self, link: str) -> bool:
        """
        Decide whether a discovered link is part of the crawl.

        A link is kept when it does not point to a file, stays on the site
        and robots.txt allows it.
        """
        if looks_like_file(link):
            return False
        if not same_site(link, self.domain):
            return False
        if self.respect_robots and not self.robots.is_allowed(link):
            self._bump("robots_blocked_count")
            logger.debug(f"robots.txt disallows {link}")
            return False
        return True

    # ---------- Main loop ----------
    def run(self, workers: int | None = None) -> dict:
        """
        Crawl until the frontier is empty or stop() is called.

        Args:
            workers (int, optional): thread pool size; defaults to the
                `workers` config key, then to the CPU count

        Returns:
            dict: crawl summary
        """
        workers = workers or self.cfg.get("workers") or os.cpu_count() or 4
        in_main_thread = threading.current_thread() is threading.main_thread()
        previous_handler = signal.signal(signal.SIGINT, self._signal_handler) if in_main_thread else None

        self._schedule(self.seed_url, 1)
        logger.info(f"Crawling {self.seed_url} with {workers} worker(s), max depth {self.max_depth}")

        self._pbar = tqdm(desc="Crawling", unit="page", ncols=90, disable=not self.show_progress)
        try:
            with LinkWriter(self.output_path) as links:
                self._links = links
                with cf.ThreadPoolExecutor(max_workers=workers) as pool:
                    futures = set()

                    while not self.stop_flag:
                        while self._frontier and len(futures) < workers * 2:
                            url, depth = self._frontier.popleft()
                            futures.add(pool.submit(self._fetch_and_process, url, depth))
                        if not futures:
                            break

                        done, futures = cf.wait(futures, timeout=0.1, return_when=cf.FIRST_COMPLETED)
                        for fut in done:
                            try:
                                fut.result()
                            except Exception as e:
                                logger.exception("worker error: %s", e)

                        self._pbar.set_postfix_str(
                            f"ok={self.pages_ok} err={self.error_count} links={self.links_found} "
                            f"robots={self.robots_blocked_count} queue={len(self._frontier)}"
                        )

                    pool.shutdown(wait=True, cancel_futures=True)
        finally:
            if previous_handler is not None:
                signal.signal(signal.SIGINT, previous_handler)
            self._pbar.close()
            self.fetcher.close()

        unique = remove_duplicates_from_file(self.output_path)
        return self._final_report(unique)

    def _fetch_and_process(self, url: str, depth: int):
        """
        Worker: fetch one page and collect its links.

        Args:
            url (str): URL to fetch
            depth (int): depth of the URL, the seed being 1
        """
        if self.stop_flag:
            return

        logger.info(f"Visiting {url}")
        status, headers, content, elapsed, err = self.fetcher.fetch(url)

        if err or not status or not 200 <= status < 300:
            self._bump("error_count")
            logger.debug(f"Failed {url}: {err or status}")
            return

        if not (is_html_content(headers) and content):
            self._bump("non_html_count")
            return

        self._bump("pages_ok")
        self._pbar.update(1)

        for link in extract_links(url, content, self.max_links_per_page):
            if not self.accept_link(link):
                continue
            self._links.write(link)
            self._bump("links_found")
            self._schedule(link, depth + 1)

    # ---------- Final report ----------
    def _final_report(self, unique_links: int) -> dict:
        elapsed_total = max(1e-6, time.time() - self.start_time)
        summary = {
            "seed_url": self.seed_url,
            "user_agent": self.user_agent,
            "pages_ok": self.pages_ok,
            "error_count": self.error_count,
            "non_html_count": self.non_html_count,
            "robots_blocked_count": self.robots_blocked_count,
            "links_found": self.links_found,
            "unique_links": unique_links,
            "crawl_delay_sec": self.robots.crawl_delay() if self.respect_robots else 0.0,
            "sitemaps": list(self.robots.sitemaps),
            "elapsed_total_sec": elapsed_total,
            "pages_per_sec": self.pages_ok / elapsed_total,
            "stopped": self.stop_flag,
            "output_file": self.output_path,
        }
        write_summary_json(self.summary_path, summary)

        logger.info(
            f"Crawl finished: {summary['pages_ok']} page(s), {unique_links} unique link(s), "
            f"{summary['error_count']} error(s), {summary['robots_blocked_count']} blocked by robots.txt"
        )
        logger.info(f"Links written to {self.output_path}")
        return summary
