"""
Request value checked against a filter set.

Built by the caller (proxy, browser hook, ...) and read-only while matching.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from urllib.parse import SplitResult, urlsplit


@dataclass(frozen=True)
class Request:
    """A network request about to be sent."""

    url: str
    origin: str = ""
    referer: str = ""
    is_xhr: bool = False

    _parts: SplitResult = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        parts = urlsplit(self.url)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"Request URL must be absolute: {self.url!r}")
        object.__setattr__(self, "_parts", parts)

    @classmethod
    def from_headers(
        cls, url: str, headers: Mapping[str, str], is_xhr: bool = False
    ) -> Request:
        """Create a Request from a URL and its (case-insensitive) headers."""
        lowered = {k.lower(): v for k, v in headers.items()}
        if lowered.get("x-requested-with", "").lower() == "xmlhttprequest":
            is_xhr = True
        return cls(
            url=url,
            origin=lowered.get("origin", ""),
            referer=lowered.get("referer", ""),
            is_xhr=is_xhr,
        )

    @property
    def scheme(self) -> str:
        return self._parts.scheme.lower()

    @property
    def hostname(self) -> str:
        return self._parts.hostname or ""

    @property
    def path(self) -> str:
        return self._parts.path

    def __str__(self) -> str:
        return self.url
