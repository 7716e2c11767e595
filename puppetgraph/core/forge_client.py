"""Puppet Forge release listing client.

:class:`ForgeClient` is the registry collaborator behind
:class:`~puppetgraph.core.metadata_cache.MetadataCache`: given a module it
returns every published release, newest first, each with its declared
dependencies.

Forge endpoint used::

    GET {base}/v3/releases?module=owner-name&limit=100&sort_by=version&order=desc

Responses are paginated; ``pagination.next`` is a path relative to the
base URL and is followed up to ``max_pages`` times.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from puppetgraph.utils.http import HTTPClient
from puppetgraph.utils.logger import get_logger
from puppetgraph.exceptions import ForgeError, NetworkError
from puppetgraph.models.module import DependencySpec, ReleaseMetadata
from puppetgraph.utils.module_names import get_module_name_variants, to_dash_format
from puppetgraph.constants import (
    DEFAULT_MAX_PAGES,
    FORGE_API_URL,
    FORGE_PAGE_LIMIT,
    FORGE_RELEASES_PATH,
)

logger = get_logger("forge_client")

__all__ = ["ForgeClient"]

# Status codes the Forge uses for an unknown or malformed module slug.
_NOT_FOUND_STATUSES = (400, 404)


class ForgeClient:
    """Fetch release lists from the Puppet Forge.

    Args:
        http_client: Shared :class:`HTTPClient` (owns the connection pool).
        base_url: Forge API root, without a trailing slash.
        page_limit: Releases requested per page.
        max_pages: Upper bound on pages followed per module.
    """

    def __init__(
        self,
        http_client: HTTPClient,
        base_url: str = FORGE_API_URL,
        page_limit: int = FORGE_PAGE_LIMIT,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> None:
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.page_limit = page_limit
        self.max_pages = max_pages

    async def fetch_releases(self, module: str) -> List[ReleaseMetadata]:
        """Return every release of ``module``, newest first.

        When the Forge answers 400 or 404 for the name as given, each
        spelling from :func:`get_module_name_variants` is tried in turn and
        the first non-empty result wins. A module no spelling matches
        yields ``[]``.

        Raises:
            ForgeError: For any other failure (5xx after retries, timeouts,
                malformed responses).
        """
        slug = to_dash_format(module)

        try:
            return await self._fetch_all_pages(slug)
        except NetworkError as exc:
            if exc.status_code not in _NOT_FOUND_STATUSES:
                raise _as_forge_error(module, exc) from exc
            logger.debug("Forge has no module %s (HTTP %s)", slug, exc.status_code)

        tried = {slug}
        for variant in get_module_name_variants(module):
            candidate = to_dash_format(variant)
            if candidate in tried:
                continue
            tried.add(candidate)

            try:
                releases = await self._fetch_all_pages(candidate)
            except NetworkError as exc:
                if exc.status_code not in _NOT_FOUND_STATUSES:
                    raise _as_forge_error(module, exc) from exc
                continue

            if releases:
                logger.info("Resolved %s via alias %s", module, candidate)
                return releases

        logger.warning("Module %s not found on the Forge", module)
        return []

    async def _fetch_all_pages(self, slug: str) -> List[ReleaseMetadata]:
        releases: List[ReleaseMetadata] = []

        data = await self.http_client.get_json(
            f"{self.base_url}{FORGE_RELEASES_PATH}",
            params={
                "module": slug,
                "limit": self.page_limit,
                "sort_by": "version",
                "order": "desc",
            },
        )
        releases.extend(_parse_results(data))

        pages = 1
        next_path = _next_page(data)
        while next_path and pages < self.max_pages:
            data = await self.http_client.get_json(f"{self.base_url}{next_path}")
            releases.extend(_parse_results(data))
            next_path = _next_page(data)
            pages += 1

        if next_path:
            logger.debug(
                "Stopped after %d pages of releases for %s", self.max_pages, slug
            )
        return releases


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def _parse_results(data: Dict[str, Any]) -> List[ReleaseMetadata]:
    results = data.get("results") or []
    releases: List[ReleaseMetadata] = []

    for item in results:
        if not isinstance(item, dict) or not item.get("version"):
            continue
        metadata = item.get("metadata") or {}
        raw_deps = metadata.get("dependencies") or []
        releases.append(
            ReleaseMetadata(
                version=str(item["version"]),
                created_at=item.get("created_at"),
                dependencies=[
                    DependencySpec.from_json(dep)
                    for dep in raw_deps
                    if isinstance(dep, dict) and dep.get("name")
                ],
            )
        )

    return releases


def _next_page(data: Dict[str, Any]) -> Optional[str]:
    pagination = data.get("pagination") or {}
    return pagination.get("next") or None


def _as_forge_error(module: str, exc: NetworkError) -> ForgeError:
    return ForgeError(
        f"Failed to fetch releases for {module}: {exc.message}",
        module_name=module,
        url=exc.url,
        status_code=exc.status_code,
    )
