import os, json, logging, threading

logger = logging.getLogger(__name__)


def remove_duplicates(lines):
    """Drop repeated and empty lines, keeping first occurrences in order."""
    seen = set()
    unique = []
    for line in lines:
        if line and line not in seen:
            seen.add(line)
            unique.append(line)
    return unique


def remove_duplicates_from_file(path: str) -> int:
    """Rewrite a one-URL-per-line file without duplicates. Returns the line count."""
    with open(path, 'r', encoding='utf-8') as f:
        lines = f.read().split('\n')
    unique = remove_duplicates(lines)
    with open(path, 'w', encoding='utf-8') as f:
        for line in unique:
            f.write(line + '\n')
    logger.info(f"Removed {len([l for l in lines if l]) - len(unique)} duplicate link(s) from {path}")
    return len(unique)


def write_summary_json(path: str, summary: dict):
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(summary, f, ensure_ascii=False, indent=2)
    return path


class LinkWriter:
    """Thread-safe appender for the discovered-URL list."""

    def __init__(self, path: str):
        self.path = path
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        self._lock = threading.Lock()
        self._f = open(path, 'w', encoding='utf-8')
        self.count = 0

    def write(self, url: str):
        with self._lock:
            self._f.write(url + '\n')
            self.count += 1

    def close(self):
        with self._lock:
            if not self._f.closed:
                self._f.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
