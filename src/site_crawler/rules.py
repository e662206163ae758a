"""
Robots Rule Model

This module holds the in-memory form of robots.txt directives:
- Wildcard path compilation (`*` and a trailing `$`)
- Literal and pattern rule variants
- Per user-agent groups of rules
"""

import re
from dataclasses import dataclass
from urllib.parse import unquote

from .errors import PatternCompileError

# A percent sign not followed by two hex digits
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def _replace_suffix(s: str, suffix: str, replacement: str) -> str:
    if s.endswith(suffix):
        return s[:len(s) - len(suffix)] + replacement
    return s


def _path_unescape(path: str) -> str:
    """Percent-decode a path, rejecting malformed escapes."""
    if _BAD_ESCAPE.search(path):
        raise ValueError(f"invalid escape in {path!r}")
    return unquote(path)


def is_pattern(path: str) -> bool:
    """A path is a pattern when it holds a `*` or ends with `$`."""
    return "*" in path or path.endswith("$")


def compile_pattern(path: str) -> re.Pattern:
    """
    Turn a robots wildcard path into a regular expression.

    `*` matches any run of characters and a trailing `$` anchors the end
    of the URL. A trailing `%24` is a literal dollar and `%2A` a literal
    asterisk.

    Raises:
        PatternCompileError: if the resulting expression does not compile
    """
    pattern = re.escape(path)
    pattern = pattern.replace(r"\*", "(?:.*)")

    pattern = _replace_suffix(pattern, r"\$", r"\Z")
    pattern = _replace_suffix(pattern, "%24", r"\$")
    pattern = _replace_suffix(pattern, "%2524", "%24")

    pattern = pattern.replace("%2A", r"\*")

    try:
        return re.compile(pattern)
    except re.error as e:
        raise PatternCompileError(path, str(e)) from e


@dataclass(frozen=True)
class LiteralRule:
    """Allow/Disallow with a plain path prefix. Longest prefix wins."""
    allow: bool
    path: str

    def matches(self, path: str) -> bool:
        return path.startswith(self.path)


@dataclass(frozen=True)
class PatternRule:
    """Allow/Disallow with a wildcard path. First matching pattern wins."""
    allow: bool
    path: str
    regex: re.Pattern

    def matches(self, path: str) -> bool:
        return self.regex.search(path) is not None


Rule = LiteralRule | PatternRule


def make_rule(path: str, allow: bool) -> Rule:
    """
    Build a rule from the raw value of an Allow/Disallow line.

    The path is percent-decoded, except that an encoded `*` anywhere and an
    encoded `$` at the end of a pattern survive as `%2A` / `%24` so the
    compiler can tell them apart from real wildcards and anchors. When the
    path holds a malformed escape it is kept as written.

    Raises:
        PatternCompileError: if a wildcard path does not compile
    """
    pattern = is_pattern(path)
    if pattern:
        path = _replace_suffix(path, "%24", "%2524")

    # Keep encoded * escaped
    path = path.replace("%2A", "%252A")
    try:
        path = _path_unescape(path)
    except ValueError:
        path = path.replace("%252A", "%2A")

    if pattern:
        return PatternRule(allow, path, compile_pattern(path))
    return LiteralRule(allow, path)


@dataclass(frozen=True)
class Group:
    """
    Rules declared for one user-agent token.

    Attributes:
        agent: lowercase user-agent token (`*`, `googlebot`, ...)
        rules: rules in source order
        crawl_delay: advisory delay between requests, in seconds
    """
    agent: str
    rules: tuple[Rule, ...] = ()
    crawl_delay: float = 0.0

    def is_allowed(self, path: str) -> bool:
        """
        Decide a path against this group's rules.

        Pattern rules are tried in order and the first match decides
        immediately. Literal rules are ranked by prefix length; on equal
        length the later rule wins.
        """
        result = True
        best_len = 0

        for rule in self.rules:
            if isinstance(rule, PatternRule):
                if rule.matches(path):
                    return rule.allow
            elif len(rule.path) >= best_len and rule.matches(path):
                result = rule.allow
                best_len = len(rule.path)

        return result
