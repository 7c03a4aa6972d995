"""
Request option derivation.

Works out which option categories (script, image, ...) a request belongs to,
so the matcher knows which option-restricted patterns to test.
"""

from __future__ import annotations

import posixpath
from collections.abc import Mapping
from urllib.parse import urlsplit

from ..request import Request

SUPPORTED_OPTIONS = ("image", "script", "stylesheet", "font", "thirdparty")

# Spellings accepted in filter lists for the same option
OPTION_ALIASES = {
    "third-party": "thirdparty",
    "3p": "thirdparty",
}

SCRIPT_SUFFIXES = (".js", ".js.gz")
IMAGE_SUFFIXES = (
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".webp",
    ".tiff",
    ".psd",
    ".raw",
    ".bmp",
    ".heif",
    ".indd",
    ".jpeg2000",
)
STYLESHEET_SUFFIXES = (".css",)
# Matched anywhere in the file name, not only at the end
FONT_MARKERS = (".otf", ".ttf", ".fnt")


def _get_domain(hostname: str) -> str:
    """Registrable domain, simplified to the last two labels."""
    parts = hostname.split(".")
    if len(parts) >= 2:
        return ".".join(parts[-2:])
    return hostname


def _is_cross_site(request: Request) -> bool:
    referer_host = (urlsplit(request.referer).hostname or "").lower()
    if not referer_host:
        return False
    return _get_domain(request.hostname.lower()) != _get_domain(referer_host)


def get_filename(request: Request) -> str:
    """Last segment of the request path, lower-cased."""
    return posixpath.basename(request.path).lower()


def derive_options(request: Request, *, strict_third_party: bool = False) -> dict[str, bool]:
    """Compute the option flags for a request.

    Args:
        request: The request being matched.
        strict_third_party: Treat a request as third-party only when the
            Referer belongs to another site. By default any Referer counts.

    Returns:
        Mapping of every supported option to whether it applies.
    """
    filename = get_filename(request)

    if strict_third_party:
        third_party = _is_cross_site(request)
    else:
        third_party = request.referer != ""

    return {
        "script": filename.endswith(SCRIPT_SUFFIXES),
        "image": filename.endswith(IMAGE_SUFFIXES),
        "stylesheet": filename.endswith(STYLESHEET_SUFFIXES),
        "font": any(marker in filename for marker in FONT_MARKERS),
        "thirdparty": third_party,
    }


def options_match(rule_options: Mapping[str, bool], flags: dict[str, bool]) -> bool:
    """Check a rule's option restrictions against derived flags.

    A rule with no options always matches. Otherwise any one satisfied
    option is enough: ``image`` needs the image flag set, ``~image`` needs
    it unset.
    """
    if not rule_options:
        return True
    return any(
        flags.get(name, False) == included for name, included in rule_options.items()
    )
