"""
Regex-alternation filter set.

Rules are partitioned by the options they declare and each partition is
merged into one alternation, so matching a request costs one regex search
per option category the request falls into, regardless of list size:

1. Unconditional alternation (rules without options)
2. One alternation per declared option (``image``) and per negated option (``~image``)
3. The same two steps over exception rules, which override a block

Alternations are compiled with RE2, so each search is linear in the URL length.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

import re2  # type: ignore

from ..request import Request
from .base import RequestMatcher
from .errors import FilterSetBuildError, ParseFailure, RuleSkipped
from .filter_lists import read_filter_lines
from .options import derive_options, options_match
from .parser import Rule, compile_regex, parse_rule

logger = logging.getLogger(__name__)

DiagnosticSink = Callable[[RuleSkipped, str], None]


def log_diagnostic(error: RuleSkipped, line: str) -> None:
    """Default diagnostic sink: log skipped rules at debug level."""
    logger.debug("Skipping rule (%s): %s", error.reason, line)


@dataclass
class BuildDiagnostics:
    """Diagnostic sink that records skipped rules."""

    counts: dict[str, int] = field(default_factory=dict)
    skipped: list[tuple[str, str]] = field(default_factory=list)

    def __call__(self, error: RuleSkipped, line: str) -> None:
        self.counts[error.reason] = self.counts.get(error.reason, 0) + 1
        self.skipped.append((error.reason, line))
        log_diagnostic(error, line)

    @property
    def total(self) -> int:
        return len(self.skipped)


class _LazyPattern:
    """Alternation source compiled at most once, on first use."""

    __slots__ = ("source", "_compiled", "_lock")

    def __init__(self, source: str) -> None:
        self.source = source
        self._compiled: re2._Regexp | None = None
        self._lock = threading.Lock()

    @property
    def is_compiled(self) -> bool:
        return self._compiled is not None

    def get(self) -> re2._Regexp:
        if self._compiled is None:
            with self._lock:
                if self._compiled is None:
                    self._compiled = compile_regex(self.source)
        return self._compiled

    def search(self, url: str) -> bool:
        # An empty partition matches nothing
        if not self.source:
            return False
        return self.get().search(url) is not None


def _merge(patterns: list[str]) -> str:
    return "|".join(f"(?:{p})" for p in patterns)


class PatternPartition:
    """Merged alternations for one polarity (blocking or exception) of a filter set.

    Regex rules with capture groups are kept out of the alternations and
    searched one by one, so their groups are numbered as written.
    """

    def __init__(
        self,
        unconditional: str = "",
        included: dict[str, str] | None = None,
        excluded: dict[str, str] | None = None,
        isolated: list[Rule] | None = None,
    ) -> None:
        self._unconditional = _LazyPattern(unconditional)
        self._included = {k: _LazyPattern(v) for k, v in (included or {}).items()}
        self._excluded = {k: _LazyPattern(v) for k, v in (excluded or {}).items()}
        self._isolated = list(isolated or [])

    @property
    def unconditional(self) -> str:
        return self._unconditional.source

    @property
    def included(self) -> dict[str, str]:
        return {k: p.source for k, p in self._included.items()}

    @property
    def excluded(self) -> dict[str, str]:
        return {k: p.source for k, p in self._excluded.items()}

    @property
    def isolated(self) -> list[Rule]:
        return list(self._isolated)

    @property
    def is_empty(self) -> bool:
        return not (
            self._unconditional.source or self._included or self._excluded or self._isolated
        )

    def _patterns(self) -> list[_LazyPattern]:
        return [self._unconditional, *self._included.values(), *self._excluded.values()]

    def compile(self) -> None:
        """Compile every alternation now instead of on first match."""
        for pattern in self._patterns():
            if pattern.source:
                pattern.get()

    def matches_unconditional(self, url: str) -> bool:
        if self._unconditional.search(url):
            return True
        return any(
            not rule.options and rule.get_regex().search(url) is not None
            for rule in self._isolated
        )

    def matches_options(self, url: str, flags: dict[str, bool]) -> bool:
        for name, active in flags.items():
            pattern = (self._included if active else self._excluded).get(name)
            if pattern is not None and pattern.search(url):
                return True
        return any(
            rule.options
            and options_match(rule.options, flags)
            and rule.get_regex().search(url) is not None
            for rule in self._isolated
        )

    def matches(self, url: str, flags: dict[str, bool]) -> bool:
        return self.matches_unconditional(url) or self.matches_options(url, flags)


class _PartitionBuilder:
    def __init__(self) -> None:
        self.unconditional: list[str] = []
        self.included: dict[str, list[str]] = {}
        self.excluded: dict[str, list[str]] = {}
        self.isolated: list[Rule] = []

    def add(self, rule: Rule) -> None:
        if rule.has_capture_groups:
            self.isolated.append(rule)
            return
        if not rule.options:
            self.unconditional.append(rule.regex)
            return
        for name, included in rule.options.items():
            target = self.included if included else self.excluded
            target.setdefault(name, []).append(rule.regex)

    def build(self) -> PatternPartition:
        return PatternPartition(
            unconditional=_merge(self.unconditional),
            included={k: _merge(v) for k, v in self.included.items()},
            excluded={k: _merge(v) for k, v in self.excluded.items()},
            isolated=self.isolated,
        )


class FilterSet(RequestMatcher):
    """Compiled filter list backed by merged regex alternations."""

    def __init__(
        self,
        blocking: PatternPartition,
        exceptions: PatternPartition,
        rule_count: int,
        strict_third_party: bool = False,
    ) -> None:
        self.blocking = blocking
        self.exceptions = exceptions
        self._rule_count = rule_count
        self._strict_third_party = strict_third_party

    @property
    def rule_count(self) -> int:
        return self._rule_count

    def compile(self) -> None:
        self.blocking.compile()
        self.exceptions.compile()

    def is_blocked(self, request: Request) -> bool:
        """Check if a request should be blocked.

        Exception rules take precedence over blocking rules.
        """
        url = request.url
        flags: dict[str, bool] | None = None

        if not self.blocking.matches_unconditional(url):
            flags = derive_options(request, strict_third_party=self._strict_third_party)
            if not self.blocking.matches_options(url, flags):
                return False

        if self.exceptions.is_empty:
            return True

        if flags is None:
            flags = derive_options(request, strict_third_party=self._strict_third_party)
        return not self.exceptions.matches(url, flags)


def iter_rules(
    lines: Iterable[str], diagnostics: DiagnosticSink | None = None
) -> Iterator[Rule]:
    """Parse lines into rules, reporting skipped ones to ``diagnostics``.

    Blank lines are ignored. A rule that fails to parse raises
    FilterSetBuildError carrying its line number.
    """
    sink = diagnostics or log_diagnostic

    for line_number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            rule = parse_rule(line)
        except RuleSkipped as e:
            sink(e, line)
            continue
        except ParseFailure as e:
            logger.info("Cannot parse rule at line %d: %s", line_number, e)
            raise FilterSetBuildError(str(e), line_number, line) from e
        yield rule


def build_filter_set(
    lines: Iterable[str],
    diagnostics: DiagnosticSink | None = None,
    *,
    eager: bool = True,
    strict_third_party: bool = False,
) -> FilterSet:
    """Build a filter set from raw filter-list lines.

    Args:
        lines: Raw rule lines, one rule per line.
        diagnostics: Called with each skipped rule. Defaults to debug logging.
        eager: Compile all alternations before returning.
        strict_third_party: Passed to option derivation at match time.

    Raises:
        FilterSetBuildError: A rule failed to parse or an alternation failed
            to compile. No partial filter set is returned.
    """
    blocking = _PartitionBuilder()
    exceptions = _PartitionBuilder()
    rule_count = 0
    exception_count = 0

    for rule in iter_rules(lines, diagnostics):
        if rule.is_exception:
            exceptions.add(rule)
            exception_count += 1
        else:
            blocking.add(rule)
        rule_count += 1

    filter_set = FilterSet(
        blocking.build(),
        exceptions.build(),
        rule_count,
        strict_third_party=strict_third_party,
    )

    if eager:
        try:
            filter_set.compile()
        except re2.error as e:
            raise FilterSetBuildError(f"cannot compile filter set: {e}") from e

    logger.debug(
        "Built filter set: %d rules (%d exceptions), %d blocking options",
        rule_count,
        exception_count,
        len(blocking.included) + len(blocking.excluded),
    )
    return filter_set


def load_filter_set(
    path: Path | str,
    diagnostics: DiagnosticSink | None = None,
    *,
    eager: bool = True,
    strict_third_party: bool = False,
) -> FilterSet:
    """Build a filter set from a filter-list file."""
    return build_filter_set(
        read_filter_lines(path),
        diagnostics,
        eager=eager,
        strict_third_party=strict_third_party,
    )
