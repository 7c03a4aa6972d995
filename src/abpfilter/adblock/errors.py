"""
Errors raised while turning filter-list lines into rules.

Skips are per-rule and non-fatal: the builder reports them and moves on.
Parse failures abort the whole build.
"""

from __future__ import annotations


class RuleSkipped(Exception):
    """A rule that is valid filter syntax but not handled by this matcher."""

    reason = "skipped"


class SkipComment(RuleSkipped):
    """Comment or list-metadata header line."""

    reason = "comment"


class SkipUnsupportedSyntax(RuleSkipped):
    """Element-hiding (cosmetic) rule."""

    reason = "unsupported-html"


class SkipUnsupportedOption(RuleSkipped):
    """Rule carrying an option outside the supported vocabulary."""

    reason = "unsupported-option"

    def __init__(self, option: str) -> None:
        super().__init__(f"Unsupported option: {option}")
        self.option = option


class ParseFailure(Exception):
    """A rule that cannot be turned into a pattern."""


class FilterSetBuildError(Exception):
    """Building a filter set was aborted; no partial set is returned."""

    def __init__(
        self, message: str, line_number: int | None = None, line: str | None = None
    ) -> None:
        if line_number is not None:
            message = f"cannot parse rule at line {line_number} ({line!r}): {message}"
        super().__init__(message)
        self.line_number = line_number
        self.line = line
