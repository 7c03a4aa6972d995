"""
Filter syntax parser for ABP network rules.

Parses one filter-list line into a Rule and translates its pattern text into
regular-expression syntax. Compilation of the pattern string is left to the
caller, so many rules can be merged into a few alternations first.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType

import re2  # type: ignore

from .errors import (
    ParseFailure,
    SkipComment,
    SkipUnsupportedOption,
    SkipUnsupportedSyntax,
)
from .options import OPTION_ALIASES, SUPPORTED_OPTIONS

COMMENT_MARKERS = ("!", "[Adblock")
COSMETIC_MARKERS = ("##", "#@#", "#?#", "#$#")
EXCEPTION_MARKER = "@@"

# Separator: anything but a letter, a digit, or one of _ - . %; end of address counts too
SEPARATOR_REGEX = r"(?:[^a-zA-Z0-9_\-.%]|$)"
# Optional scheme, then optional "//" with any subdomain labels (RFC 3986 appendix B)
DOMAIN_ANCHOR_REGEX = r"^(?:[^:/?#]+:)?(?://(?:[^/?#]*\.)?)?"
MATCH_ANYTHING = ".*"

_WILDCARD_RUN = re.compile(r"\*{2,}")

# Merged alternations of large lists need more than the default 8 MiB
RE2_MAX_MEM = 256 << 20


@dataclass(frozen=True)
class Rule:
    """Parsed network filter rule."""

    raw: str
    pattern: str
    regex: str
    is_exception: bool = False

    # option name -> True (required) / False (negated with ~)
    options: Mapping[str, bool] = field(default_factory=lambda: MappingProxyType({}))
    # domain substring -> True (required) / False (excluded)
    domains: Mapping[str, bool] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def is_regex_literal(self) -> bool:
        return _is_regex_literal(self.pattern)

    @property
    def is_domain_anchor(self) -> bool:
        return self.pattern.startswith("||")

    @property
    def is_exact_address(self) -> bool:
        return (
            len(self.pattern) >= 2
            and not self.is_domain_anchor
            and self.pattern.startswith("|")
            and self.pattern.endswith("|")
        )

    @property
    def has_capture_groups(self) -> bool:
        """Regex literal with groups that would renumber inside a merged alternation."""
        return self.is_regex_literal and compile_pattern(self.regex).groups > 0

    def get_regex(self) -> re2._Regexp:
        """Get compiled regex for this rule."""
        return compile_pattern(self.regex)


def compile_regex(pattern: str) -> re2._Regexp:
    """Compile a translated pattern string with RE2.

    RE2 matches in time linear in the URL length. URLs are matched
    case-insensitively.

    Raises:
        re2.error: The pattern uses syntax RE2 does not support, such as
            backreferences or lookaround.
    """
    options = re2.Options()
    options.case_sensitive = False
    options.log_errors = False
    options.max_mem = RE2_MAX_MEM
    return re2.compile(pattern, options)


@lru_cache(maxsize=4096)
def compile_pattern(pattern: str) -> re2._Regexp:
    """Compile a single rule pattern, cached."""
    return compile_regex(pattern)


def _is_regex_literal(text: str) -> bool:
    return len(text) >= 2 and text.startswith("/") and text.endswith("/")


def rule_to_regex(text: str) -> str:
    """Convert an AdBlock pattern to a regular expression string."""
    if not text:
        return MATCH_ANYTHING

    # Already a regex: no escaping at all
    if _is_regex_literal(text):
        return text[1:-1]

    prefix = ""
    if text.startswith("||"):
        prefix = DOMAIN_ANCHOR_REGEX
        text = text[2:]
    elif text.startswith("|"):
        prefix = "^"
        text = text[1:]

    suffix = ""
    if text.endswith("|"):
        suffix = "$"
        text = text[:-1]

    # Collapse wildcard runs; edge wildcards are implied by search unless anchored
    text = _WILDCARD_RUN.sub("*", text)
    if not prefix:
        text = text.lstrip("*")
    if not suffix:
        text = text.rstrip("*")

    escaped = []
    for c in text:
        if c == "*":
            escaped.append(".*")
        elif c == "^":
            escaped.append(SEPARATOR_REGEX)
        elif c == "|":
            escaped.append(r"\|")
        else:
            escaped.append(re.escape(c))

    body = "".join(escaped)
    if not (prefix or body or suffix):
        return MATCH_ANYTHING
    return prefix + body + suffix


def _split_options(line: str) -> tuple[str, str]:
    """Split a rule into pattern text and option text."""
    start = 0
    # A $ inside /regex$/ belongs to the pattern
    if line.startswith("/"):
        closing = line.rfind("/")
        if closing > 0:
            start = closing

    pos = line.find("$", start)
    if pos == -1:
        return line, ""
    return line[:pos], line[pos + 1 :]


def _parse_domains(domain_str: str) -> dict[str, bool]:
    """Parse a domain option value like ``a.com|~b.com``."""
    domains: dict[str, bool] = {}

    for domain in domain_str.split("|"):
        domain = domain.strip().lower()
        if not domain:
            continue
        if domain.startswith("~"):
            domains[domain[1:]] = False
        else:
            domains[domain] = True

    if not domains:
        raise ParseFailure(f"empty domain option: domain={domain_str}")
    return domains


def _parse_modifiers(modifier_str: str) -> tuple[dict[str, bool], dict[str, bool]]:
    """Parse modifiers like ``script,~image,domain=example.com``."""
    options: dict[str, bool] = {}
    domains: dict[str, bool] = {}

    for modifier in modifier_str.split(","):
        modifier = modifier.strip().lower()
        if not modifier:
            continue

        if modifier.startswith("domain="):
            domains.update(_parse_domains(modifier[7:]))
            continue

        negated = modifier.startswith("~")
        name = modifier[1:] if negated else modifier
        name = OPTION_ALIASES.get(name, name)

        if name not in SUPPORTED_OPTIONS:
            raise SkipUnsupportedOption(modifier)
        options[name] = not negated

    return options, domains


def parse_rule(line: str) -> Rule:
    """Parse a network filter rule.

    Raises:
        SkipComment: The line is a comment or a list header.
        SkipUnsupportedSyntax: The line is an element-hiding rule.
        SkipUnsupportedOption: The rule uses an option this matcher ignores.
        ParseFailure: The rule is malformed.
    """
    raw = line
    line = line.strip()

    if any(marker in line for marker in COMMENT_MARKERS):
        raise SkipComment(line)

    if any(marker in line for marker in COSMETIC_MARKERS):
        raise SkipUnsupportedSyntax(line)

    is_exception = line.startswith(EXCEPTION_MARKER)
    if is_exception:
        line = line[len(EXCEPTION_MARKER) :]

    pattern, modifier_str = _split_options(line)

    options: dict[str, bool] = {}
    domains: dict[str, bool] = {}
    if modifier_str:
        options, domains = _parse_modifiers(modifier_str)

    regex = rule_to_regex(pattern)
    if _is_regex_literal(pattern):
        try:
            compile_pattern(regex)
        except re2.error as e:
            raise ParseFailure(f"invalid regular expression {pattern}: {e}") from e

    return Rule(
        raw=raw,
        pattern=pattern,
        regex=regex,
        is_exception=is_exception,
        options=MappingProxyType(options),
        domains=MappingProxyType(domains),
    )
