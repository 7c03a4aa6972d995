"""
Network request filtering for abpfilter.

Compiles AdBlock-style filter lists into a matcher that decides whether a
request is blocked.
"""

from .engine import FilterEngine, build_matcher
from .errors import (
    FilterSetBuildError,
    ParseFailure,
    RuleSkipped,
    SkipComment,
    SkipUnsupportedOption,
    SkipUnsupportedSyntax,
)
from .parser import Rule, parse_rule, rule_to_regex
from .ruleset import BuildDiagnostics, FilterSet, build_filter_set, load_filter_set
from .trie import TrieMatcher, build_trie_matcher

__all__ = [
    "BuildDiagnostics",
    "FilterEngine",
    "FilterSet",
    "FilterSetBuildError",
    "ParseFailure",
    "Rule",
    "RuleSkipped",
    "SkipComment",
    "SkipUnsupportedOption",
    "SkipUnsupportedSyntax",
    "TrieMatcher",
    "build_filter_set",
    "build_matcher",
    "build_trie_matcher",
    "load_filter_set",
    "parse_rule",
    "rule_to_regex",
]
