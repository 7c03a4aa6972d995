"""
abpfilter: AdBlock filter-list request matching.
"""

from .request import Request

__all__ = ["Request"]
