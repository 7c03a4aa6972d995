"""
Trie-based request matcher.

Alternative backend to the regex alternations in ``ruleset``. Rules are
indexed by shape instead of merged:

1. Character trie over URL paths for plain rules (``*`` is a wildcard edge)
2. Hostname suffix check for ``||domain`` rules
3. Case-insensitive equality for ``|full address|`` rules
4. Per-rule regex for regex literals and other start-anchored rules

A candidate found by the index is confirmed with the rule's own options,
domain restrictions and compiled regex.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from functools import cached_property

from ..request import Request
from .base import RequestMatcher
from .options import derive_options, options_match
from .parser import Rule
from .ruleset import DiagnosticSink, iter_rules

logger = logging.getLogger(__name__)

WILDCARD = "*"
# Trie insertion stops at a separator or an end-of-address anchor
_TERMINATORS = ("^", "|")


class _RequestContext:
    """Per-request values, computed at most once per match call."""

    def __init__(self, request: Request, strict_third_party: bool) -> None:
        self.request = request
        self.url = request.url
        self.hostname = request.hostname.lower()
        self.path = request.path.lower()
        self._strict_third_party = strict_third_party

    @cached_property
    def flags(self) -> dict[str, bool]:
        return derive_options(self.request, strict_third_party=self._strict_third_party)


def _extract_hostname_from_pattern(pattern: str) -> str | None:
    """Extract hostname from a hostname-anchored pattern."""
    # Pattern like: example.com^ or example.com/path
    if not pattern:
        return None

    end = len(pattern)
    for i, c in enumerate(pattern):
        if c in ("^", "/", "*", "?", "|", ":"):
            end = i
            break

    hostname = pattern[:end]

    if hostname and "." in hostname and not hostname.startswith("."):
        return hostname.lower()

    return None


def _domains_allow(rule: Rule, hostname: str) -> bool:
    """Check domain restrictions by substring containment on the hostname."""
    return all((domain in hostname) == required for domain, required in rule.domains.items())


def _rule_accepts(rule: Rule, ctx: _RequestContext) -> bool:
    if not _domains_allow(rule, ctx.hostname):
        return False
    if not options_match(rule.options, ctx.flags):
        return False
    return rule.get_regex().search(ctx.url) is not None


class _TrieNode:
    __slots__ = ("next", "rules")

    def __init__(self) -> None:
        self.next: dict[str, _TrieNode] = {}
        self.rules: list[Rule] = []


class PathTrie:
    """Character trie over rule pattern text."""

    def __init__(self) -> None:
        self._root = _TrieNode()

    def add(self, text: str, rule: Rule) -> None:
        """Insert a rule. A separator or end anchor ends the walk early."""
        node = self._root
        for c in text.lower().strip(WILDCARD):
            if c in _TERMINATORS:
                break
            node = node.next.setdefault(c, _TrieNode())
        node.rules.append(rule)

    def find(self, path: str, accept: Callable[[Rule], bool]) -> Rule | None:
        """Find an accepted rule matching the path at any offset.

        Each (node, offset) state is explored at most once per call and each
        rule is passed to ``accept`` at most once, so the walk stays linear in
        the path length for a fixed trie.
        """
        walk = _Walk(path, accept)
        for start in range(len(path) + 1):
            found = self._find_next(self._root, start, walk)
            if found is not None:
                return found
        return None

    def _find_next(self, node: _TrieNode, pos: int, walk: _Walk) -> Rule | None:
        if (node, pos) in walk.visited:
            return None
        walk.visited.add((node, pos))

        for rule in node.rules:
            if walk.accepts(rule):
                return rule

        path = walk.path
        if pos < len(path):
            child = node.next.get(path[pos])
            if child is not None:
                found = self._find_next(child, pos + 1, walk)
                if found is not None:
                    return found

        wildcard = node.next.get(WILDCARD)
        if wildcard is not None:
            # Wildcard consumes any number of characters; offsets from an
            # earlier failed scan of this edge are known to fail
            stop = walk.scanned.get(wildcard, len(path) + 1)
            for offset in range(pos, stop):
                found = self._find_next(wildcard, offset, walk)
                if found is not None:
                    return found
            walk.scanned[wildcard] = min(pos, stop)

        return None


class _Walk:
    """Search state for one PathTrie.find call."""

    __slots__ = ("path", "_accept", "_verdicts", "visited", "scanned")

    def __init__(self, path: str, accept: Callable[[Rule], bool]) -> None:
        self.path = path
        self._accept = accept
        self._verdicts: dict[int, bool] = {}
        self.visited: set[tuple[_TrieNode, int]] = set()
        # wildcard node -> lowest offset from which every offset failed
        self.scanned: dict[_TrieNode, int] = {}

    def accepts(self, rule: Rule) -> bool:
        key = id(rule)
        verdict = self._verdicts.get(key)
        if verdict is None:
            verdict = self._verdicts[key] = self._accept(rule)
        return verdict


class _RuleIndex:
    """Index of rules of one polarity (blocking or exception)."""

    def __init__(self) -> None:
        self._paths = PathTrie()
        self._hostname_rules: list[tuple[str, Rule]] = []
        self._exact_rules: dict[str, list[Rule]] = {}
        self._regex_rules: list[Rule] = []
        self.size = 0

    def add(self, rule: Rule) -> None:
        self.size += 1

        if rule.is_regex_literal:
            self._regex_rules.append(rule)
        elif rule.is_domain_anchor:
            hostname = _extract_hostname_from_pattern(rule.pattern[2:])
            if hostname:
                self._hostname_rules.append((hostname, rule))
            else:
                self._regex_rules.append(rule)
        elif rule.is_exact_address:
            address = rule.pattern[1:-1].lower()
            self._exact_rules.setdefault(address, []).append(rule)
        elif rule.pattern.startswith("|"):
            self._regex_rules.append(rule)
        else:
            self._paths.add(rule.pattern, rule)

    def find(self, ctx: _RequestContext) -> Rule | None:
        """Find a rule matching the request."""
        found = self._paths.find(ctx.path, lambda rule: _rule_accepts(rule, ctx))
        if found is not None:
            return found

        for hostname, rule in self._hostname_rules:
            if ctx.hostname != hostname and not ctx.hostname.endswith("." + hostname):
                continue
            if _rule_accepts(rule, ctx):
                return rule

        for rule in self._exact_rules.get(ctx.url.lower(), []):
            if _domains_allow(rule, ctx.hostname) and options_match(rule.options, ctx.flags):
                return rule

        for rule in self._regex_rules:
            if _rule_accepts(rule, ctx):
                return rule

        return None


class TrieMatcher(RequestMatcher):
    """Request matcher backed by a path trie and per-shape rule lists."""

    def __init__(self, rules: Iterable[Rule] = (), strict_third_party: bool = False) -> None:
        self._blocking = _RuleIndex()
        self._exceptions = _RuleIndex()
        self._strict_third_party = strict_third_party
        self.add_rules(rules)

    def add_rules(self, rules: Iterable[Rule]) -> None:
        for rule in rules:
            (self._exceptions if rule.is_exception else self._blocking).add(rule)

        logger.debug(
            "Indexed %d rules (%d exceptions)",
            self.rule_count,
            self._exceptions.size,
        )

    @property
    def rule_count(self) -> int:
        return self._blocking.size + self._exceptions.size

    def find_blocking_rule(self, request: Request) -> Rule | None:
        """Return the rule blocking the request, or None if it is allowed."""
        ctx = _RequestContext(request, self._strict_third_party)

        rule = self._blocking.find(ctx)
        if rule is None:
            return None

        exception = self._exceptions.find(ctx)
        if exception is not None:
            logger.debug("Exception %s overrides %s", exception.raw, rule.raw)
            return None

        return rule

    def is_blocked(self, request: Request) -> bool:
        return self.find_blocking_rule(request) is not None


def build_trie_matcher(
    lines: Iterable[str],
    diagnostics: DiagnosticSink | None = None,
    *,
    strict_third_party: bool = False,
) -> TrieMatcher:
    """Build a trie matcher from raw filter-list lines.

    Raises:
        FilterSetBuildError: A rule failed to parse.
    """
    # Parse everything first so a failure leaves no partial matcher behind
    rules = list(iter_rules(lines, diagnostics))
    return TrieMatcher(rules, strict_third_party=strict_third_party)
