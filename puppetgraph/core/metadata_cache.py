"""Release metadata cache for puppetgraph.

Provides a two-level, async-safe cache (canonical module key, then
version, then :class:`ReleaseMetadata`) in front of the Forge so that
the tree builder, the conflict analysis and batch warming share a single
fetch per module.

One cache object is created per session and injected wherever lookups
happen; there is no module-level state. Entries never expire. Call
:meth:`MetadataCache.invalidate` or :meth:`MetadataCache.clear` to force a
refetch.

Typical usage::

    async with HTTPClient() as http:
        cache = MetadataCache(ForgeClient(http))

        await cache.warm(["puppetlabs/stdlib", "puppetlabs/concat"])
        versions = await cache.get_available_versions("puppetlabs-stdlib")
        print(versions[:3])                 # newest first
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from puppetgraph.utils.logger import get_logger
from puppetgraph.models.module import ReleaseMetadata
from puppetgraph.utils.module_names import to_canonical_format
from puppetgraph.utils.version_utils import compare_versions, version_sort_key
from puppetgraph.constants import DEFAULT_BATCH_PAUSE, DEFAULT_BATCH_SIZE
from puppetgraph.core.progress import (
    CancellationToken,
    ProgressChannel,
    ProgressPhase,
)

logger = get_logger("metadata_cache")

__all__ = ["MetadataCache", "WarmResult"]


@dataclass
class WarmResult:
    """Summary of one :meth:`MetadataCache.warm` call.

    Attributes:
        fetched: Modules fetched (successfully) by this call.
        skipped: Modules already cached and therefore not fetched.
        failed: Failure message per canonical module key.
        cancelled: True when the token stopped the warm between windows.
    """

    fetched: int = 0
    skipped: int = 0
    failed: Dict[str, str] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def failed_count(self) -> int:
        return len(self.failed)


# ---------------------------------------------------------------------------
# Cache with one in-flight fetch per key
# ---------------------------------------------------------------------------


class MetadataCache:
    """Async-safe, per-session cache of Forge release lists.

    Each canonical module key triggers **at most one** concurrent call to
    ``fetcher.fetch_releases``. Callers that arrive while a fetch is
    running await the same task. The task is shielded, so cancelling one
    waiter does not abort the fetch for the others.

    A successful fetch is cached even when it returned no releases. A
    failed fetch is not cached and the next call retries.

    Args:
        fetcher: Object with ``async fetch_releases(module) ->
            List[ReleaseMetadata]``, usually a
            :class:`~puppetgraph.core.forge_client.ForgeClient`.
    """

    def __init__(self, fetcher: Any) -> None:
        self.fetcher = fetcher

        # canonical key -> version -> release, newest version first
        self._releases: Dict[str, Dict[str, ReleaseMetadata]] = {}
        self._in_flight: Dict[str, "asyncio.Task[Dict[str, ReleaseMetadata]]"] = {}

        # Bumped by clear()/invalidate() so fetches already running when the
        # cache was reset do not repopulate it
        self._generation: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Public async accessors
    # ------------------------------------------------------------------

    async def get_release_list(self, module: str) -> List[ReleaseMetadata]:
        """Return every release of ``module``, newest first.

        Raises:
            Whatever the fetcher raises (typically
            :class:`~puppetgraph.exceptions.ForgeError`). Nothing is cached
            in that case.
        """
        key = to_canonical_format(module)

        cached = self._releases.get(key)
        if cached is not None:
            return list(cached.values())

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(
                self._load(key, self._generation.get(key, 0))
            )
            task.add_done_callback(_retrieve_exception)
            self._in_flight[key] = task

        version_map = await asyncio.shield(task)
        return list(version_map.values())

    async def get_release(
        self,
        module: str,
        version: str,
    ) -> Optional[ReleaseMetadata]:
        """Return one release, matching ``1.0`` against ``1.0.0`` if needed."""
        await self.get_release_list(module)
        version_map = self._releases.get(to_canonical_format(module), {})

        release = version_map.get(version)
        if release is not None:
            return release

        for candidate, metadata in version_map.items():
            if compare_versions(candidate, version) == 0:
                return metadata
        return None

    async def get_available_versions(self, module: str) -> List[str]:
        """Return published version strings, newest first."""
        return [release.version for release in await self.get_release_list(module)]

    async def warm(
        self,
        modules: Iterable[str],
        *,
        concurrency: int = DEFAULT_BATCH_SIZE,
        pause: float = DEFAULT_BATCH_PAUSE,
        token: Optional[CancellationToken] = None,
        progress: Optional[ProgressChannel] = None,
        only_uncached: bool = True,
    ) -> WarmResult:
        """Fetch release lists for many modules in fixed-size windows.

        Each window of ``concurrency`` modules is fetched concurrently and
        awaited as a whole before the next one starts, with ``pause``
        seconds in between. A module that fails is logged and recorded in
        :attr:`WarmResult.failed`; the batch carries on. ``token`` is
        checked at every window boundary.

        Args:
            modules: Module names in any spelling; duplicates are ignored.
            concurrency: Window size.
            pause: Delay in seconds between windows.
            token: Optional cancellation token.
            progress: Optional channel receiving ``warm`` events.
            only_uncached: Skip modules already in the cache.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        result = WarmResult()
        keys: List[str] = []
        for key in dict.fromkeys(to_canonical_format(m) for m in modules):
            if only_uncached and key in self._releases:
                result.skipped += 1
            else:
                keys.append(key)

        total = len(keys)
        windows = [keys[i : i + concurrency] for i in range(0, total, concurrency)]
        if progress is not None:
            progress.emit(ProgressPhase.WARM, f"Caching {total} modules", 0, total)

        done = 0
        for index, window in enumerate(windows):
            if token is not None and token.is_cancelled:
                logger.info("Cache warm cancelled after %d/%d modules", done, total)
                result.cancelled = True
                break

            if not only_uncached:
                for key in window:
                    self.invalidate(key)

            outcomes = await asyncio.gather(
                *(self.get_release_list(key) for key in window),
                return_exceptions=True,
            )

            for key, outcome in zip(window, outcomes):
                done += 1
                # CancelledError is a BaseException
                if isinstance(outcome, BaseException):
                    logger.warning("Failed to cache %s: %r", key, outcome)
                    result.failed[key] = str(outcome) or type(outcome).__name__
                    message = f"Skipped {key} (error)"
                else:
                    result.fetched += 1
                    message = f"Cached {key}"
                if progress is not None:
                    progress.emit(ProgressPhase.WARM, message, done, total)

            if pause > 0 and index < len(windows) - 1:
                await asyncio.sleep(pause)

        logger.debug(
            "Warm finished: %d fetched, %d skipped, %d failed",
            result.fetched,
            result.skipped,
            result.failed_count,
        )
        return result

    # ------------------------------------------------------------------
    # Public synchronous accessors (cache-only, no I/O)
    # ------------------------------------------------------------------

    def is_cached(self, module: str) -> bool:
        return to_canonical_format(module) in self._releases

    def get_cached_release_list(self, module: str) -> Optional[List[ReleaseMetadata]]:
        """Return cached releases without fetching, or ``None`` if absent."""
        cached = self._releases.get(to_canonical_format(module))
        return list(cached.values()) if cached is not None else None

    def invalidate(self, module: str) -> None:
        """Drop one module so its next lookup fetches again."""
        key = to_canonical_format(module)
        self._releases.pop(key, None)
        self._in_flight.pop(key, None)
        self._generation[key] = self._generation.get(key, 0) + 1

    def clear(self) -> None:
        """Empty both cache levels."""
        for key in set(self._releases) | set(self._in_flight):
            self._generation[key] = self._generation.get(key, 0) + 1
        self._releases.clear()
        self._in_flight.clear()

    def __len__(self) -> int:
        return len(self._releases)

    # ------------------------------------------------------------------
    # Network helpers (private)
    # ------------------------------------------------------------------

    async def _load(self, key: str, generation: int) -> Dict[str, ReleaseMetadata]:
        # generation was captured when the fetch was scheduled
        this_task = asyncio.current_task()

        try:
            releases = await self.fetcher.fetch_releases(key)
        finally:
            if self._in_flight.get(key) is this_task:
                del self._in_flight[key]

        ordered = sorted(
            releases,
            key=lambda release: version_sort_key(release.version),
            reverse=True,
        )
        version_map = {release.version: release for release in ordered}

        if self._generation.get(key, 0) == generation:
            self._releases[key] = version_map
            logger.debug("Cached %d releases for %s", len(version_map), key)
        return version_map


def _retrieve_exception(task: "asyncio.Future[Any]") -> None:
    # Failures are re-raised to every waiter; mark them retrieved so a fetch
    # whose waiters were all cancelled does not log "never retrieved"
    if not task.cancelled():
        task.exception()
