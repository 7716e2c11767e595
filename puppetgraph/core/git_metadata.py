"""Git repository metadata client.

Puppet modules installed from Git carry their name, version and
dependencies in a ``metadata.json`` at the repository root. This module
turns a repository URL into the raw-file URL of that document on the
usual hosts and fetches it.

Supported URL shapes::

    https://github.com/owner/repo(.git)
    git@github.com:owner/repo.git
    https://gitlab.com/group/repo
    https://bitbucket.org/owner/repo
    https://git.example.com/owner/repo      (generic ``/raw/<ref>/`` layout)

A missing document or any fetch failure yields ``None``; the result,
``None`` included, is cached per URL and ref until :meth:`clear`.
"""

from __future__ import annotations

import re
from urllib.parse import urlparse
from typing import Dict, Optional

from puppetgraph.utils.http import HTTPClient
from puppetgraph.utils.logger import get_logger
from puppetgraph.exceptions import NetworkError
from puppetgraph.models.module import GitModuleMetadata
from puppetgraph.constants import DEFAULT_GIT_REF, FALLBACK_GIT_REFS, GIT_METADATA_FILE

logger = get_logger("git_metadata")

__all__ = ["GitMetadataClient", "convert_to_raw_url"]

_SSH_URL = re.compile(r"^git@([^:]+):")


def convert_to_raw_url(git_url: str, ref: Optional[str] = None) -> Optional[str]:
    """Return the raw ``metadata.json`` URL for a repository, or ``None``.

    Examples:
        >>> convert_to_raw_url("https://github.com/acme/acme-ntp.git")
        'https://raw.githubusercontent.com/acme/acme-ntp/main/metadata.json'
        >>> convert_to_raw_url("git@gitlab.com:group/mod.git", "v1.0.0")
        'https://gitlab.com/group/mod/-/raw/v1.0.0/metadata.json'
    """
    clean = git_url.strip()
    if clean.endswith(".git"):
        clean = clean[: -len(".git")]
    clean = _SSH_URL.sub(r"https://\1/", clean)
    clean = clean.rstrip("/")

    parsed = urlparse(clean)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        logger.warning("Unsupported Git URL: %s", git_url)
        return None

    target = ref or DEFAULT_GIT_REF
    host = parsed.hostname.lower()

    if host == "github.com":
        return (
            f"https://raw.githubusercontent.com{parsed.path}/{target}/"
            f"{GIT_METADATA_FILE}"
        )
    if host == "gitlab.com":
        return f"{clean}/-/raw/{target}/{GIT_METADATA_FILE}"
    # Bitbucket and other hosts share the /raw/<ref>/ layout
    return f"{clean}/raw/{target}/{GIT_METADATA_FILE}"


class GitMetadataClient:
    """Fetch and cache ``metadata.json`` from Git hosting services.

    Args:
        http_client: Shared :class:`HTTPClient`.
    """

    def __init__(self, http_client: HTTPClient) -> None:
        self.http_client = http_client
        self._cache: Dict[str, Optional[GitModuleMetadata]] = {}

    @staticmethod
    def _cache_key(git_url: str, ref: Optional[str]) -> str:
        return f"{git_url}:{ref or 'default'}"

    def convert_to_raw_url(
        self, git_url: str, ref: Optional[str] = None
    ) -> Optional[str]:
        return convert_to_raw_url(git_url, ref)

    async def get_metadata(
        self,
        git_url: str,
        ref: Optional[str] = None,
    ) -> Optional[GitModuleMetadata]:
        """Return the repository's metadata at ``ref`` (default branch ``main``).

        Returns ``None`` when the URL is unsupported, the file does not
        exist, or the request fails.
        """
        key = self._cache_key(git_url, ref)
        if key in self._cache:
            return self._cache[key]

        raw_url = convert_to_raw_url(git_url, ref)
        if raw_url is None:
            self._cache[key] = None
            return None

        try:
            data = await self.http_client.get_json(raw_url)
        except NetworkError as exc:
            if exc.status_code == 404:
                logger.debug("No %s at %s", GIT_METADATA_FILE, raw_url)
            else:
                logger.warning("Failed to fetch Git metadata from %s: %s", git_url, exc)
            self._cache[key] = None
            return None

        metadata = GitModuleMetadata.from_json(data)
        self._cache[key] = metadata
        return metadata

    async def get_metadata_with_fallback(
        self,
        git_url: str,
        ref: Optional[str] = None,
    ) -> Optional[GitModuleMetadata]:
        """Like :meth:`get_metadata`, but when no ref was given and the
        default branch has no metadata, try ``master``, ``develop`` and
        ``HEAD`` in that order."""
        metadata = await self.get_metadata(git_url, ref)
        if metadata is not None or ref:
            return metadata

        for alternative in FALLBACK_GIT_REFS:
            metadata = await self.get_metadata(git_url, alternative)
            if metadata is not None:
                logger.debug("Found metadata for %s on ref %s", git_url, alternative)
                return metadata

        return None

    def clear(self) -> None:
        self._cache.clear()

    def is_cached(self, git_url: str, ref: Optional[str] = None) -> bool:
        return self._cache_key(git_url, ref) in self._cache

    @property
    def cache_size(self) -> int:
        return len(self._cache)
