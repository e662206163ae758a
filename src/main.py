#!/usr/bin/env python3
"""
Site Crawler Main Module

This module serves as the entry point for the crawler application.
It handles configuration, command-line arguments, logging setup, and
crawler initialization and execution.
"""

import argparse
import logging
import os
import sys
import time

import yaml

from site_crawler.errors import CrawlerError
from site_crawler.frontier import Crawler


def parse_args(argv=None):
    """Parse command-line arguments for the crawler.
    
    Returns:
        argparse.Namespace: Parsed command-line arguments including:
            - config: Path to configuration file (default: config.yaml)
            - url: Seed URL to start crawling from
            - user-agent: Name the crawler announces and matches robots.txt with
            - max-depth: Maximum depth of crawling
            - workers: Number of concurrent crawler workers
            - output-dir: Directory for the discovered-URL list and logs
            - ignore-robots: Do not read or obey robots.txt
            - verbose: Enable verbose logging
    """
    ap = argparse.ArgumentParser(description='Single-site crawler')
    ap.add_argument('--config', default='config.yaml')
    ap.add_argument('--url')
    ap.add_argument('--user-agent')
    ap.add_argument('--max-depth', type=int)
    ap.add_argument('--workers', type=int)
    ap.add_argument('--output-dir')
    ap.add_argument('--ignore-robots', action='store_true')
    ap.add_argument('--verbose', action='store_true')
    return ap.parse_args(argv)


def load_config(path):
    """Load crawler configuration from YAML file.
    
    Searches both the provided path (relative to current working directory)
    and the `src/` directory so the CLI works whether executed from the
    project root or inside `src`.
    """
    candidates = [path]
    if not os.path.isabs(path):
        candidates.append(os.path.join(os.path.dirname(__file__), path))

    for candidate in candidates:
        if os.path.exists(candidate):
            with open(candidate, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f) or {}

    raise FileNotFoundError(f"Config file not found in: {candidates}")


def apply_overrides(cfg: dict, args) -> dict:
    """Return a copy of the config with command-line values on top."""
    cfg = dict(cfg)
    if args.url: cfg['seed_url'] = args.url
    if args.user_agent: cfg['user_agent'] = args.user_agent
    if args.max_depth: cfg['max_depth'] = args.max_depth
    if args.workers: cfg['workers'] = args.workers
    if args.output_dir: cfg['output_dir'] = args.output_dir
    if args.ignore_robots: cfg['respect_robots'] = False
    return cfg


def setup_logging(verbose: bool, output_dir: str):
    """Configure logging for the crawler.
    
    Sets up logging to both console and file, with level based on verbosity.
    
    Args:
        verbose (bool): If True, set logging level to DEBUG; otherwise INFO
        output_dir (str): Directory where the logs/ folder is created
    """
    os.makedirs(os.path.join(output_dir, 'logs'), exist_ok=True)
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(os.path.join(output_dir, 'logs', 'crawler.log'), mode='a', encoding='utf-8')
        ]
    )
    # requests/urllib3 connection chatter
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def main(argv=None):
    """Main entry point for the crawler application."""
    start = time.time()
    args = parse_args(argv)
    cfg = apply_overrides(load_config(args.config), args)

    output_dir = cfg.setdefault('output_dir', 'outputs')
    setup_logging(args.verbose, output_dir)

    seed_url = cfg.get('seed_url')
    if not seed_url:
        print("No seed URL: pass --url or set seed_url in the config", file=sys.stderr)
        return 2

    try:
        crawler = Crawler(cfg, seed_url)
    except CrawlerError as e:
        logging.getLogger("crawler").error(str(e))
        return 2

    crawler.run()
    print(f"\n\nCrawler took {time.time() - start:.2f}s")
    return 0


if __name__ == '__main__':
    sys.exit(main())
