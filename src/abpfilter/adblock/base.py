"""
Interface shared by the matching backends.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..request import Request


class RequestMatcher(ABC):
    """Decides whether a request is blocked by a compiled filter list."""

    @abstractmethod
    def is_blocked(self, request: Request) -> bool: ...

    @property
    @abstractmethod
    def rule_count(self) -> int: ...

    def allow(self, request: Request) -> bool:
        return not self.is_blocked(request)
