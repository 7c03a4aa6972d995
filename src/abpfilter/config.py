"""
Configuration and path management for abpfilter.
"""

import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

Backend = Literal["regex", "trie"]
BACKENDS: tuple[str, ...] = ("regex", "trie")

# Environment variable to override the configured backend
BACKEND_ENV = "ABPFILTER_BACKEND"


@dataclass
class FilterConfig:
    """Main configuration."""

    # Matching
    backend: Backend = "regex"
    eager_compile: bool = True  # False = compile alternations on first match
    strict_third_party: bool = False  # True = compare Referer site, not just presence

    # Filter list files, read in order
    filter_lists: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown backend {self.backend!r}, expected one of {BACKENDS}")

    @classmethod
    def load(cls, path: Path | None = None) -> "FilterConfig":
        """Load configuration from file."""
        if path is None:
            path = get_config_dir() / "config.json"

        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        return cls(
            backend=data.get("backend", "regex"),
            eager_compile=data.get("eager_compile", True),
            strict_third_party=data.get("strict_third_party", False),
            filter_lists=list(data.get("filter_lists", [])),
        )

    def save(self, path: Path | None = None) -> None:
        """Save configuration to file."""
        if path is None:
            path = get_config_dir() / "config.json"

        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "backend": self.backend,
            "eager_compile": self.eager_compile,
            "strict_third_party": self.strict_third_party,
            "filter_lists": self.filter_lists,
        }

        with open(path, "w") as f:
            json.dump(data, f, indent=2)


def get_config_dir() -> Path:
    """Get config directory following platform conventions."""
    if sys.platform == "win32":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))

    return base / "abpfilter"


def resolve_backend(cfg: FilterConfig | None = None) -> Backend:
    """Resolve the matching backend.

    Priority:
    1. ABPFILTER_BACKEND environment variable
    2. backend from config
    """
    if cfg is None:
        cfg = FilterConfig.load()

    env_backend = os.environ.get(BACKEND_ENV)
    if env_backend:
        env_backend = env_backend.strip().lower()
        if env_backend not in BACKENDS:
            raise ValueError(f"{BACKEND_ENV}={env_backend!r} is not one of {BACKENDS}")
        return env_backend  # type: ignore[return-value]

    return cfg.backend
