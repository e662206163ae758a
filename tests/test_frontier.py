# tests/test_frontier.py
from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest
import requests

from site_crawler.errors import InvalidURLError
from site_crawler.frontier import Crawler
from site_crawler.robots import Robots

SEED = "https://www.example.com/"
ROOT = "https://www.example.com"

SITE = {
    ROOT: """
        <a href="/about">About</a>
        <a href="/admin/secret">Admin</a>
        <a href="/docs/file.pdf">PDF</a>
        <a href="https://other.org/x">Elsewhere</a>
        <a href="/about/">About again</a>
        <a href="mailto:x@example.com">Mail</a>
    """,
    f"{ROOT}/about": '<a href="/team">Team</a><a href="/">Home</a>',
    f"{ROOT}/team": '<a href="/deep">Deep</a>',
    f"{ROOT}/deep": '<a href="/deeper">Deeper</a>',
}


@pytest.fixture
def cfg(tmp_path: Path):
    def _factory(**overrides):
        base = {
            "user_agent": "TestBot",
            "output_dir": str(tmp_path / "outputs"),
            "progress": False,
            "workers": 2,
            "max_retries": 0,
            "max_depth": 3,
        }
        base.update(overrides)
        return base

    return _factory


@pytest.fixture
def serve_site(monkeypatch):
    """Replace the crawler's fetcher with canned pages; returns the list of fetched URLs."""

    def _install(crawler: Crawler, site: dict[str, str] = SITE) -> list[str]:
        fetched: list[str] = []
        lock = threading.Lock()

        def fake_fetch(url: str):
            with lock:
                fetched.append(url)
            if url not in site:
                return 404, {"Content-Type": "text/html"}, b"", 0.01, None
            return 200, {"Content-Type": "text/html; charset=utf-8"}, site[url].encode(), 0.01, None

        monkeypatch.setattr(crawler.fetcher, "fetch", fake_fetch)
        return fetched

    return _install


def _robots(body: str, agent: str = "TestBot") -> Robots:
    return Robots.from_text(SEED, agent, body)


def test_invalid_seed(cfg) -> None:
    with pytest.raises(InvalidURLError):
        Crawler(cfg(respect_robots=False), "not a url")


def test_output_paths_use_site_name(cfg, tmp_path: Path) -> None:
    crawler = Crawler(cfg(respect_robots=False), SEED)
    assert crawler.seed_url == ROOT
    assert crawler.domain == "example.com"
    assert crawler.output_path == str(tmp_path / "outputs" / "example.txt")


def test_crawl_collects_same_site_links(cfg, serve_site) -> None:
    crawler = Crawler(cfg(), SEED, robots=_robots("User-agent: *\nDisallow: /admin/\n"))
    fetched = serve_site(crawler)

    summary = crawler.run()

    # depth: seed 1, about 2, team 3; /deep is written but not fetched
    assert sorted(fetched) == sorted([ROOT, f"{ROOT}/about", f"{ROOT}/team"])

    lines = Path(crawler.output_path).read_text(encoding="utf-8").splitlines()
    assert len(lines) == len(set(lines))
    assert set(lines) == {f"{ROOT}/about", f"{ROOT}/team", f"{ROOT}/deep", ROOT}

    assert summary["pages_ok"] == 3
    assert summary["robots_blocked_count"] == 1
    assert summary["error_count"] == 0
    assert summary["unique_links"] == 4
    assert json.loads(Path(crawler.summary_path).read_text(encoding="utf-8"))["pages_ok"] == 3


def test_ignore_robots_keeps_disallowed_links(cfg, serve_site) -> None:
    crawler = Crawler(cfg(respect_robots=False, max_depth=2), SEED, robots=_robots("User-agent: *\nDisallow: /\n"))
    fetched = serve_site(crawler)

    summary = crawler.run()

    assert f"{ROOT}/admin/secret" in fetched
    assert summary["robots_blocked_count"] == 0
    lines = Path(crawler.output_path).read_text(encoding="utf-8").splitlines()
    assert f"{ROOT}/admin/secret" in lines


def test_errors_are_counted(cfg, serve_site) -> None:
    site = {ROOT: '<a href="/missing">x</a>'}
    crawler = Crawler(cfg(respect_robots=False), SEED)
    serve_site(crawler, site)

    summary = crawler.run()

    assert summary["pages_ok"] == 1
    assert summary["error_count"] == 1


def test_non_html_pages_are_not_parsed(cfg, monkeypatch) -> None:
    crawler = Crawler(cfg(respect_robots=False), SEED)
    monkeypatch.setattr(
        crawler.fetcher,
        "fetch",
        lambda url: (200, {"Content-Type": "application/json"}, b'{"a": "<a href=\\"/x\\">"}', 0.01, None),
    )

    summary = crawler.run()

    assert summary["non_html_count"] == 1
    assert summary["pages_ok"] == 0
    assert Path(crawler.output_path).read_text(encoding="utf-8") == ""


def test_stop_before_run_fetches_nothing(cfg, serve_site) -> None:
    crawler = Crawler(cfg(respect_robots=False), SEED)
    fetched = serve_site(crawler)
    crawler.stop()

    summary = crawler.run()

    assert fetched == []
    assert summary["stopped"] is True


def test_accept_link(cfg) -> None:
    crawler = Crawler(cfg(), SEED, robots=_robots("User-agent: *\nDisallow: /private\n"))
    assert crawler.accept_link(f"{ROOT}/page") is True
    assert crawler.accept_link("https://blog.example.com/post") is True
    assert crawler.accept_link(f"{ROOT}/private/x") is False
    assert crawler.accept_link(f"{ROOT}/logo.png") is False
    assert crawler.accept_link("https://other.org/page") is False
    assert crawler.robots_blocked_count == 1


@pytest.mark.parametrize("seed", ["https://www.Example.com", "https://www.example.com:443/"])
def test_robots_apply_to_seed_with_uppercase_host_or_default_port(cfg, serve_site, seed: str) -> None:
    robots = Robots.from_text(seed, "TestBot", "User-agent: *\nDisallow: /admin/\n")
    crawler = Crawler(cfg(max_depth=1), seed, robots=robots)
    fetched = serve_site(crawler)

    assert crawler.seed_url == ROOT
    assert crawler.accept_link(f"{ROOT}/admin/secret") is False

    summary = crawler.run()
    assert fetched == [ROOT]
    assert summary["robots_blocked_count"] == 2
    lines = Path(crawler.output_path).read_text(encoding="utf-8").splitlines()
    assert f"{ROOT}/admin/secret" not in lines
    assert f"{ROOT}/about" in lines


def test_robots_built_from_seed_and_delay_applied(cfg, monkeypatch, fake_response) -> None:
    requested = []

    def fake_get(self, url, **kwargs):
        requested.append((url, self.headers.get("User-Agent")))
        return fake_response(200, b"User-agent: *\nDisallow: /private\nCrawl-delay: 2\n")

    monkeypatch.setattr(requests.Session, "get", fake_get)
    crawler = Crawler(cfg(), SEED)

    assert requested == [("https://www.example.com/robots.txt", "TestBot")]
    assert crawler.robots.is_allowed(f"{ROOT}/private/x") is False
    assert crawler.fetcher._rate.random_delay == 2.0


def test_respect_robots_false_skips_fetch(cfg, monkeypatch) -> None:
    def fail_get(self, url, **kwargs):
        raise AssertionError("robots.txt must not be requested")

    monkeypatch.setattr(requests.Session, "get", fail_get)
    crawler = Crawler(cfg(respect_robots=False), SEED)
    assert crawler.robots.origin is None
