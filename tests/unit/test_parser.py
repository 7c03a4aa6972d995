"""Unit tests for rule parsing and pattern translation."""

from __future__ import annotations

import pytest


class TestParseRule:
    """Tests for parse_rule."""

    @pytest.mark.parametrize(
        "line",
        [
            "! This is a comment",
            "[Adblock Plus 2.0]",
            "||ads.example.com^ ! trailing note",
        ],
    )
    def test_comment_lines_are_skipped(self, line: str) -> None:
        """Any line containing a comment marker is a comment."""
        from abpfilter.adblock.errors import SkipComment
        from abpfilter.adblock.parser import parse_rule

        with pytest.raises(SkipComment):
            parse_rule(line)

    @pytest.mark.parametrize(
        "line", ["##.ad-banner", "example.com##.sponsored", "example.com#@#.ad", "a.com#?#div"]
    )
    def test_element_hiding_is_unsupported(self, line: str) -> None:
        """Element-hiding rules are skipped."""
        from abpfilter.adblock.errors import SkipUnsupportedSyntax
        from abpfilter.adblock.parser import parse_rule

        with pytest.raises(SkipUnsupportedSyntax):
            parse_rule(line)

    def test_parse_block_rule(self) -> None:
        """Test parsing a basic blocking rule."""
        from abpfilter.adblock.parser import parse_rule

        rule = parse_rule("||example.com^")
        assert rule.pattern == "||example.com^"
        assert rule.is_exception is False
        assert rule.is_domain_anchor is True
        assert dict(rule.options) == {}
        assert dict(rule.domains) == {}

    def test_parse_exception_rule(self) -> None:
        """The exception marker is flagged and stripped."""
        from abpfilter.adblock.parser import parse_rule

        rule = parse_rule("@@||example.com^")
        assert rule.is_exception is True
        assert rule.pattern == "||example.com^"
        assert rule.raw == "@@||example.com^"

    def test_parse_options_and_domains(self) -> None:
        """Options and domain restrictions are kept apart."""
        from abpfilter.adblock.parser import parse_rule

        rule = parse_rule("||ads.com^$script,~image,domain=a.com|~b.com")
        assert rule.pattern == "||ads.com^"
        assert dict(rule.options) == {"script": True, "image": False}
        assert dict(rule.domains) == {"a.com": True, "b.com": False}
        assert "domain" not in rule.options

    @pytest.mark.parametrize("option", ["third-party", "3p", "thirdparty"])
    def test_third_party_aliases(self, option: str) -> None:
        """All third-party spellings map to the same option."""
        from abpfilter.adblock.parser import parse_rule

        rule = parse_rule(f"||tracker.com^${option}")
        assert dict(rule.options) == {"thirdparty": True}

    def test_unsupported_option_skips_rule(self) -> None:
        """A single unknown option drops the whole rule."""
        from abpfilter.adblock.errors import SkipUnsupportedOption
        from abpfilter.adblock.parser import parse_rule

        with pytest.raises(SkipUnsupportedOption) as exc_info:
            parse_rule("||ads.com^$script,popup")
        assert exc_info.value.option == "popup"
        assert exc_info.value.reason == "unsupported-option"

    def test_bare_domain_option_is_unsupported(self) -> None:
        """``domain`` without a value is not an option."""
        from abpfilter.adblock.errors import SkipUnsupportedOption
        from abpfilter.adblock.parser import parse_rule

        with pytest.raises(SkipUnsupportedOption):
            parse_rule("||ads.com^$domain")

    def test_empty_domain_option_fails(self) -> None:
        """An empty domain list is malformed."""
        from abpfilter.adblock.errors import ParseFailure
        from abpfilter.adblock.parser import parse_rule

        with pytest.raises(ParseFailure):
            parse_rule("||ads.com^$domain=")

    def test_invalid_regex_literal_fails(self) -> None:
        """A regex rule the regex engine rejects is a parse failure."""
        from abpfilter.adblock.errors import ParseFailure
        from abpfilter.adblock.parser import parse_rule

        with pytest.raises(ParseFailure):
            parse_rule("/ads[/")

    @pytest.mark.parametrize("line", [r"/(x)\1/", "/ads(?=bar)/", "/(?<=x)ads/"])
    def test_backtracking_regex_literal_fails(self, line: str) -> None:
        """Backreferences and lookaround cannot run in linear time."""
        from abpfilter.adblock.errors import ParseFailure
        from abpfilter.adblock.parser import parse_rule

        with pytest.raises(ParseFailure):
            parse_rule(line)

    def test_capture_groups_detected(self) -> None:
        """Only regex rules with capturing groups report them."""
        from abpfilter.adblock.parser import parse_rule

        assert parse_rule("/(ab)c/").has_capture_groups is True
        assert parse_rule("/(?P<n>ab)c/").has_capture_groups is True
        assert parse_rule("/(?:ab)c/").has_capture_groups is False
        assert parse_rule("||ads.com^").has_capture_groups is False

    def test_dollar_inside_regex_literal(self) -> None:
        """A $ inside /regex/ is not the option separator."""
        from abpfilter.adblock.parser import parse_rule

        rule = parse_rule(r"/banner\d+$/$image")
        assert rule.pattern == r"/banner\d+$/"
        assert rule.regex == r"banner\d+$"
        assert dict(rule.options) == {"image": True}

    def test_rule_is_immutable(self) -> None:
        """Rules cannot be changed after parsing."""
        from dataclasses import FrozenInstanceError

        from abpfilter.adblock.parser import parse_rule

        rule = parse_rule("||ads.com^$image")
        with pytest.raises(FrozenInstanceError):
            rule.pattern = "other"  # type: ignore[misc]
        with pytest.raises(TypeError):
            rule.options["script"] = True  # type: ignore[index]


class TestRuleToRegex:
    """Tests for AdBlock pattern translation."""

    def test_empty_matches_everything(self) -> None:
        """An empty pattern matches any string."""
        from abpfilter.adblock.parser import compile_pattern, rule_to_regex

        regex = compile_pattern(rule_to_regex(""))
        for s in ("", "http://example.com/", "anything at all"):
            assert regex.search(s) is not None

    def test_regex_literal_is_verbatim(self) -> None:
        """/.../ patterns are unwrapped with no escaping."""
        from abpfilter.adblock.parser import compile_pattern, rule_to_regex

        assert rule_to_regex("/foo.*bar/") == "foo.*bar"
        regex = compile_pattern(rule_to_regex("/foo.*bar/"))
        assert regex.search("xx foo123bar yy") is not None
        assert regex.search("barfoo") is None

    def test_plain_text_is_substring_match(self) -> None:
        """Plain text matches exactly the strings containing it."""
        from abpfilter.adblock.parser import compile_pattern, rule_to_regex

        regex = compile_pattern(rule_to_regex("ad-banner.gif?x=1"))
        assert regex.search("http://example.com/ad-banner.gif?x=1") is not None
        assert regex.search("http://example.com/ad-bannerXgif?x=1") is None
        assert regex.search("http://example.com/banner.gif") is None

    def test_separator(self) -> None:
        """^ matches a separator character or the end of the address."""
        from abpfilter.adblock.parser import compile_pattern, rule_to_regex

        regex = compile_pattern(rule_to_regex("ads^"))
        assert regex.search("http://x.com/ads/1") is not None
        assert regex.search("http://x.com/ads?q") is not None
        assert regex.search("http://x.com/ads") is not None
        assert regex.search("http://x.com/ads.js") is None
        assert regex.search("http://x.com/adsense") is None
        assert regex.search("http://x.com/ads%20") is None

    def test_wildcard(self) -> None:
        """* matches any sequence of characters."""
        from abpfilter.adblock.parser import compile_pattern, rule_to_regex

        regex = compile_pattern(rule_to_regex("/ads/*/banner"))
        assert regex.search("http://x.com/ads/a/b/banner.gif") is not None
        assert regex.search("http://x.com/ads/banner.gif") is None

    def test_wildcard_runs_collapse(self) -> None:
        """Repeated and unanchored edge wildcards add nothing."""
        from abpfilter.adblock.parser import rule_to_regex

        assert rule_to_regex("**ads***") == "ads"
        assert rule_to_regex("a**b") == "a.*b"
        assert rule_to_regex("*") == ".*"
        assert rule_to_regex("|*ads") == "^.*ads"

    def test_start_and_end_anchors(self) -> None:
        """Single | anchors to the start or end of the address."""
        from abpfilter.adblock.parser import compile_pattern, rule_to_regex

        assert rule_to_regex("|http://exact.test/a|") == r"^http://exact\.test/a$"

        start = compile_pattern(rule_to_regex("|https://ads."))
        assert start.search("https://ads.example.com/") is not None
        assert start.search("http://x.com/?u=https://ads.") is None

        end = compile_pattern(rule_to_regex(".swf|"))
        assert end.search("http://x.com/movie.swf") is not None
        assert end.search("http://x.com/movie.swf?x") is None

    def test_inner_pipe_is_literal(self) -> None:
        """A | in the middle of a pattern is not alternation."""
        from abpfilter.adblock.parser import compile_pattern, rule_to_regex

        regex = compile_pattern(rule_to_regex("a|b"))
        assert regex.search("xa|by") is not None
        assert regex.search("a") is None
        assert regex.search("b") is None

    def test_domain_anchor(self) -> None:
        """|| matches the domain and its subdomains under any scheme."""
        from abpfilter.adblock.parser import compile_pattern, rule_to_regex

        regex = compile_pattern(rule_to_regex("||example.com^"))
        assert regex.search("http://sub.example.com/x") is not None
        assert regex.search("https://example.com/y") is not None
        assert regex.search("http://a.b.example.com") is not None
        assert regex.search("http://notexample.com/y") is None
        assert regex.search("http://example.com.evil.org/") is None
        assert regex.search("http://x.com/?r=http://example.com/") is None
