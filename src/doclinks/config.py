"""Configuration management for doclinks.

This module contains all configurable constants for keyword indexing,
resolution and caching. Magic numbers are documented here rather than
scattered throughout the codebase.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .models import CacheConfig


class ConfigurationError(Exception):
    """Raised when required configuration is missing."""

    pass


# =============================================================================
# Content discovery
# =============================================================================

# Directory name looked up in the working directory when DOCLINKS_CONTENT_ROOT
# is not set.
DEFAULT_CONTENT_DIR = "contents"

# Optional resolver settings file inside the content root
SITE_CONFIG_FILENAME = ".doclinks.yaml"

# Extension of content documents. index.mdx is folder metadata, not a document.
CONTENT_EXTENSION = ".mdx"
FOLDER_INDEX_JSON = "index.json"
FOLDER_INDEX_MDX = "index.mdx"

# Sort keys used when frontmatter carries no `order`. Unordered files always
# sort after unordered folders.
DEFAULT_FOLDER_ORDER = 0
DEFAULT_FILE_ORDER = 999

# Doc type for documents that sit directly in the content root
DEFAULT_DOC_TYPE = "docs"


# =============================================================================
# Caching
# =============================================================================

# Document trees are rebuilt at most every 5 minutes per (subpath, auth state)
TREE_CACHE_TTL = 5 * 60

# Upper bound on cached trees (subpath x auth state combinations)
TREE_CACHE_MAX_SIZE = 100

# Cache profile for development: watch files, expire after 10 minutes,
# wipe the whole cache every 5 minutes.
DEV_CACHE_CONFIG = CacheConfig(
    enable_file_watcher=True,
    update_interval=5 * 60,
    ttl=10 * 60,
    max_size=1000,
    persist_to_disk=True,
    version="1.0.0",
)

# Cache profile for production: no watcher, no expiry, no periodic clear.
PROD_CACHE_CONFIG = CacheConfig(
    enable_file_watcher=False,
    update_interval=0,
    ttl=0,
    max_size=5000,
    persist_to_disk=True,
    version="1.0.0",
)

# Seconds to wait after the last content change before invalidating caches
WATCHER_DEBOUNCE_SECONDS = 1.0


# =============================================================================
# Resolution
# =============================================================================

# Keywords of this length or shorter always resolve strictly under the
# adaptive strategy (short keywords are too noisy for substring matching).
ADAPTIVE_STRICT_MAX_LENGTH = 3

# Keywords used more often than this resolve strictly under the adaptive strategy
ADAPTIVE_STRICT_USAGE_THRESHOLD = 5

# Distinct keywords tracked in the usage-frequency table
KEYWORD_USAGE_MAX_KEYS = 100

# Related keywords attached to a resolution when a context is supplied
DEFAULT_MAX_RELATED_KEYWORDS = 5

# "Did you mean" keywords attached to a failed resolution
SIMILAR_KEYWORD_LIMIT = 3

# Documents returned by find_similar_documents
SIMILAR_DOCUMENT_LIMIT = 5

# find_similar_documents scores: term matches the title (either way round),
# appears in the description, or appears in the path.
SIMILAR_TITLE_SCORE = 10
SIMILAR_DESCRIPTION_SCORE = 5
SIMILAR_PATH_SCORE = 3


# =============================================================================
# Ranking
# =============================================================================

# Context matching: full containment scores 1.0; partial matches accumulate
# per-segment bonuses and are capped below 1.0.
CONTEXT_FULL_MATCH_SCORE = 1.0
CONTEXT_SEGMENT_SCORE = 0.2
CONTEXT_POSITION_SCORE = 0.1
CONTEXT_PARTIAL_CAP = 0.9
CONTEXT_MIN_SEGMENT_LENGTH = 2

# Documents modified within this many days get a non-zero recency score
RECENCY_WINDOW_DAYS = 30

# CUSTOM criterion: bonus per frontmatter keyword and the title length that
# zeroes the short-title term.
CUSTOM_KEYWORD_BONUS = 0.1
CUSTOM_TITLE_LENGTH_SCALE = 100


# =============================================================================
# Environment discovery
# =============================================================================


def get_content_root() -> Path:
    """Get the documentation content root.

    Discovery order:
    1. DOCLINKS_CONTENT_ROOT environment variable
    2. ./contents if it exists

    Raises:
        ConfigurationError: If no content root can be found.
    """
    root = os.environ.get("DOCLINKS_CONTENT_ROOT")
    if root:
        return Path(root)

    local = Path.cwd() / DEFAULT_CONTENT_DIR
    if local.is_dir():
        return local

    raise ConfigurationError(
        "No content directory found. Set DOCLINKS_CONTENT_ROOT or run from a "
        f"directory containing ./{DEFAULT_CONTENT_DIR}/"
    )


def get_cache_dir() -> Path:
    """Get the directory for the filesystem cache tier."""
    root = os.environ.get("DOCLINKS_CACHE_DIR")
    if root:
        return Path(root)
    return Path.cwd() / ".cache" / "doclinks"


def get_cache_config(env: str | None = None) -> CacheConfig:
    """Select the cache profile for the running environment.

    Args:
        env: Environment name. Defaults to DOCLINKS_ENV.

    Returns:
        PROD_CACHE_CONFIG for "production", DEV_CACHE_CONFIG otherwise.
    """
    env = env if env is not None else os.environ.get("DOCLINKS_ENV", "development")
    if env.lower() in ("production", "prod"):
        return PROD_CACHE_CONFIG
    return DEV_CACHE_CONFIG


@dataclass
class SiteConfig:
    """Resolver settings from a .doclinks.yaml file in the content root.

    Example:
        base_path: /
        resolve_strategy: adaptive
        aliases:
          - alias: /old-docs/
            path: /docs/
        doc_type_priorities:
          docs: 1.0
          wiki: 0.5
    """

    base_path: str = "/"
    aliases: list[dict[str, str]] = field(default_factory=list)
    resolve_strategy: str = "adaptive"
    doc_type_priorities: dict[str, float] = field(default_factory=dict)
    enable_context_matching: bool = True
    enable_priority_matching: bool = True
    enable_related_keywords: bool = True
    max_related_keywords: int = DEFAULT_MAX_RELATED_KEYWORDS
    source_file: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], source_file: Path | None = None) -> "SiteConfig":
        """Create SiteConfig from parsed YAML dict."""
        defaults = cls()
        return cls(
            base_path=data.get("base_path", defaults.base_path),
            aliases=data.get("aliases", []),
            resolve_strategy=data.get("resolve_strategy", defaults.resolve_strategy),
            doc_type_priorities=data.get("doc_type_priorities", {}),
            enable_context_matching=data.get(
                "enable_context_matching", defaults.enable_context_matching
            ),
            enable_priority_matching=data.get(
                "enable_priority_matching", defaults.enable_priority_matching
            ),
            enable_related_keywords=data.get(
                "enable_related_keywords", defaults.enable_related_keywords
            ),
            max_related_keywords=data.get("max_related_keywords", defaults.max_related_keywords),
            source_file=source_file,
        )


def load_site_config(content_root: Path) -> SiteConfig:
    """Load .doclinks.yaml from the content root.

    Missing, empty or malformed files yield the defaults.
    """
    config_file = content_root / SITE_CONFIG_FILENAME
    if not config_file.exists():
        return SiteConfig()

    try:
        data = yaml.safe_load(config_file.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError):
        return SiteConfig()

    if not isinstance(data, dict):
        return SiteConfig(source_file=config_file)

    return SiteConfig.from_dict(data, source_file=config_file)
