"""
Filter engine that selects a matching backend and applies it to requests,
including requests intercepted from a Playwright page.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from typing import TYPE_CHECKING

from ..config import FilterConfig, resolve_backend
from ..request import Request
from .base import RequestMatcher
from .filter_lists import iter_filter_lines
from .ruleset import DiagnosticSink, build_filter_set
from .trie import build_trie_matcher

if TYPE_CHECKING:
    from playwright.async_api import Page, Route

logger = logging.getLogger(__name__)

# Playwright resource types issued by scripts rather than the page itself
XHR_RESOURCE_TYPES = ("xhr", "fetch")


def build_matcher(
    lines: Iterable[str],
    config: FilterConfig | None = None,
    diagnostics: DiagnosticSink | None = None,
) -> RequestMatcher:
    """Build the backend selected by configuration.

    Raises:
        FilterSetBuildError: A rule failed to parse.
    """
    if config is None:
        config = FilterConfig()

    backend = resolve_backend(config)
    if backend == "trie":
        return build_trie_matcher(
            lines, diagnostics, strict_third_party=config.strict_third_party
        )
    return build_filter_set(
        lines,
        diagnostics,
        eager=config.eager_compile,
        strict_third_party=config.strict_third_party,
    )


class FilterEngine:
    """Applies a compiled filter list to outgoing requests."""

    def __init__(
        self,
        config: FilterConfig | None = None,
        lines: Iterable[str] | None = None,
        diagnostics: DiagnosticSink | None = None,
    ) -> None:
        """Initialize the filter engine.

        Args:
            config: Engine configuration. If None, loads the user config.
            lines: Rule lines to use instead of the configured filter lists.
            diagnostics: Sink for skipped rules, passed to the builder.
        """
        self._config = config if config is not None else FilterConfig.load()
        self._lines = list(lines) if lines is not None else None
        self._diagnostics = diagnostics
        self._matcher: RequestMatcher | None = None
        self._init_lock = threading.Lock()

        # Statistics, updated under _stats_lock
        self._stats_lock = threading.Lock()
        self._requests_checked = 0
        self._requests_blocked = 0

    def initialize(self) -> RequestMatcher:
        """Build the matcher from rule lines or the configured filter lists.

        Raises:
            FilterSetBuildError: A rule failed to parse.
            OSError: A configured filter list cannot be read.
        """
        with self._init_lock:
            if self._matcher is not None:
                return self._matcher

            if self._lines is not None:
                lines: Iterable[str] = self._lines
            else:
                if not self._config.filter_lists:
                    logger.warning("No filter lists configured, nothing will be blocked")
                lines = iter_filter_lines(self._config.filter_lists)

            self._matcher = build_matcher(lines, self._config, self._diagnostics)
            logger.info(
                "Filter engine initialized: %d rules (%s backend)",
                self._matcher.rule_count,
                resolve_backend(self._config),
            )
            return self._matcher

    @property
    def matcher(self) -> RequestMatcher:
        if self._matcher is not None:
            return self._matcher
        return self.initialize()

    def check(self, request: Request) -> bool:
        """Return True if the request should be blocked."""
        blocked = self.matcher.is_blocked(request)

        with self._stats_lock:
            self._requests_checked += 1
            if blocked:
                self._requests_blocked += 1
        if blocked:
            logger.debug("Blocking: %s", request.url[:80])
        return blocked

    async def setup_page(self, page: Page) -> None:
        """Install a route handler that blocks matching requests on the page."""
        self.initialize()
        await page.route("**/*", self._handle_route)
        logger.debug("Request filtering setup complete for page")

    async def _handle_route(self, route: Route) -> None:
        """Block or continue one intercepted request."""
        pw_request = route.request
        url = pw_request.url

        # Skip non-http(s) URLs
        if not url.startswith(("http://", "https://")):
            await route.continue_()
            return

        try:
            request = Request.from_headers(
                url,
                pw_request.headers,
                is_xhr=pw_request.resource_type in XHR_RESOURCE_TYPES,
            )
        except ValueError as e:
            logger.debug("Not filtering malformed URL %s: %s", url[:80], e)
            await route.continue_()
            return

        if self.check(request):
            try:
                await route.abort("blockedbyclient")
            except Exception as e:
                logger.debug("Failed to abort: %s", e)
            return

        try:
            await route.continue_()
        except Exception as e:
            # Route may already be handled
            logger.debug("Failed to continue route: %s", e)

    def get_stats(self) -> dict[str, int]:
        """Get blocking statistics."""
        with self._stats_lock:
            return {
                "requests_checked": self._requests_checked,
                "requests_blocked": self._requests_blocked,
            }
