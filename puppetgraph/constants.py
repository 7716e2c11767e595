"""
Centralized constants for puppetgraph.

This module defines immutable configuration values used across puppetgraph,
including Forge endpoints, network settings, resolution limits, and logging
formats. All values are intended to be treated as read-only.
"""

from typing import Final, Sequence

# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------

#: HTTP User-Agent template used for outbound requests.
USER_AGENT_TEMPLATE: Final[str] = (
    "puppetgraph/{version} (https://github.com/puppetgraph/puppetgraph)"
)

# ---------------------------------------------------------------------------
# Puppet Forge endpoints
# ---------------------------------------------------------------------------

#: Base URL for the Puppet Forge API.
FORGE_API_URL: Final[str] = "https://forgeapi.puppet.com"

#: Path of the paginated release listing endpoint.
FORGE_RELEASES_PATH: Final[str] = "/v3/releases"

#: Page size requested from the release listing endpoint (Forge maximum).
FORGE_PAGE_LIMIT: Final[int] = 100

#: Upper bound on release pages followed for a single module.
DEFAULT_MAX_PAGES: Final[int] = 5

# ---------------------------------------------------------------------------
# HTTP configuration
# ---------------------------------------------------------------------------

#: Default network timeout in seconds.
DEFAULT_TIMEOUT: Final[int] = 30

#: Maximum number of retries for failed HTTP requests.
DEFAULT_MAX_RETRIES: Final[int] = 3

#: Requests allowed in flight at once per client.
DEFAULT_MAX_CONCURRENCY: Final[int] = 10

#: Consecutive 429 answers tolerated before a request is abandoned.
MAX_RATE_LIMIT_WAITS: Final[int] = 5

# ---------------------------------------------------------------------------
# Git metadata
# ---------------------------------------------------------------------------

#: Ref used when a Git module declares neither a ref nor a tag.
DEFAULT_GIT_REF: Final[str] = "main"

#: Refs tried, in order, when the default ref has no metadata.json.
FALLBACK_GIT_REFS: Final[Sequence[str]] = ("master", "develop", "HEAD")

#: File holding a Puppet module's name, version and dependencies.
GIT_METADATA_FILE: Final[str] = "metadata.json"

# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

#: ``imposed_by`` value used for requirements pinned in the Puppetfile.
MANIFEST_SOURCE: Final[str] = "Puppetfile"

#: Maximum depth of a dependency walk below the declared modules.
DEFAULT_MAX_DEPTH: Final[int] = 10

#: Number of simultaneous fetches in one batch-warm window.
DEFAULT_BATCH_SIZE: Final[int] = 5

#: Pause in seconds between batch-warm windows.
DEFAULT_BATCH_PAUSE: Final[float] = 0.1

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
