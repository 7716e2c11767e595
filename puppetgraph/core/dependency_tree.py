"""Dependency tree construction and conflict detection for puppetgraph.

A build runs in three phases:

1. **warm**: release lists of every Forge module declared in the
   Puppetfile are fetched in windows through the shared
   :class:`~puppetgraph.core.metadata_cache.MetadataCache`.
2. **tree**: each declared module is walked depth first. Every edge
   adds a :class:`~puppetgraph.models.requirement.Requirement` to the
   dependency's requirement list, and a module already on the current
   path halts its branch with a circular conflict.
3. **conflicts**: every module with at least one requirement is
   analyzed against its published versions and any conflict is attached
   to all of that module's Forge nodes.

Git modules are never version-resolved. Their ``metadata.json``
dependencies appear as children but add no requirements, and the Git
node itself never carries a conflict. The same holds where a Forge
module depends on a module the Puppetfile takes from Git: that edge
yields a Git node that is neither fetched nor analyzed.

Failures are isolated: a module whose releases cannot be fetched is
marked ``ERRORED`` and recorded in :attr:`DependencyTree.errors`, and the
rest of the tree is still built.

Typical usage::

    async with HTTPClient() as http:
        cache = MetadataCache(ForgeClient(http))
        builder = DependencyTreeBuilder(cache, git_source=GitMetadataClient(http))
        tree = await builder.build([ModuleRecord("puppetlabs/apache", "12.0.0")])

        for conflict in tree.all_conflicts():
            print(conflict.details)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from puppetgraph.utils.logger import get_logger
from puppetgraph.core.metadata_cache import MetadataCache
from puppetgraph.core.conflict_analyzer import ConflictAnalyzer
from puppetgraph.utils.module_names import to_canonical_format
from puppetgraph.models.requirement import Requirement, VersionRequirement
from puppetgraph.utils.version_utils import (
    compare_versions,
    find_satisfying_versions,
    parse_constraint,
)
from puppetgraph.core.progress import (
    CancellationToken,
    ProgressChannel,
    ProgressPhase,
)
from puppetgraph.models.module import (
    DependencyNode,
    DependencyTree,
    ModuleRecord,
    ModuleSource,
    NodeState,
    ReleaseMetadata,
)
from puppetgraph.constants import (
    DEFAULT_BATCH_PAUSE,
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_DEPTH,
    MANIFEST_SOURCE,
)

logger = get_logger("dependency_tree")

__all__ = ["DependencyTreeBuilder"]


# ---------------------------------------------------------------------------
# Per-build state
# ---------------------------------------------------------------------------


@dataclass
class _Walk:
    """Mutable state owned by exactly one :meth:`DependencyTreeBuilder.build`."""

    tree: DependencyTree
    token: Optional[CancellationToken]
    progress: Optional[ProgressChannel]
    pinned: Dict[str, str] = field(default_factory=dict)
    git_declared: Dict[str, ModuleRecord] = field(default_factory=dict)
    requirements: Dict[str, List[Requirement]] = field(default_factory=dict)
    nodes: Dict[str, List[DependencyNode]] = field(default_factory=dict)
    path: List[str] = field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        return self.token is not None and self.token.is_cancelled

    def add_requirement(self, module: str, requirement: Requirement) -> None:
        self.requirements.setdefault(module, []).append(requirement)

    def register(self, node: DependencyNode) -> None:
        self.nodes.setdefault(node.module, []).append(node)

    def emit(
        self,
        phase: ProgressPhase,
        message: str,
        completed: Optional[int] = None,
        total: Optional[int] = None,
    ) -> None:
        if self.progress is not None:
            self.progress.emit(phase, message, completed, total)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class DependencyTreeBuilder:
    """Build dependency trees from Puppetfile module records.

    The builder holds no per-build state, so one instance may run several
    builds concurrently; they share only the injected cache.

    Args:
        cache: Shared release metadata cache.
        git_source: Object with ``async get_metadata_with_fallback(url,
            ref)``, usually a
            :class:`~puppetgraph.core.git_metadata.GitMetadataClient`.
            Without one, Git modules are reported with no children.
        analyzer: Conflict analyzer; a fresh one is created if omitted.
        max_depth: Nodes at this depth are reported but not expanded.
        warm_roots: Batch-fetch declared Forge modules before walking.
        batch_size: Window size for the warm phase.
        batch_pause: Pause in seconds between warm windows.
    """

    def __init__(
        self,
        cache: MetadataCache,
        git_source: Any = None,
        analyzer: Optional[ConflictAnalyzer] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        warm_roots: bool = True,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_pause: float = DEFAULT_BATCH_PAUSE,
    ) -> None:
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")

        self.cache = cache
        self.git_source = git_source
        self.analyzer = analyzer or ConflictAnalyzer()
        self.max_depth = max_depth
        self.warm_roots = warm_roots
        self.batch_size = batch_size
        self.batch_pause = batch_pause

    async def build(
        self,
        modules: Sequence[ModuleRecord],
        *,
        token: Optional[CancellationToken] = None,
        progress: Optional[ProgressChannel] = None,
    ) -> DependencyTree:
        """Resolve ``modules`` into a :class:`DependencyTree`.

        Never raises for fetch failures or conflicts; both are reported in
        the returned tree. When ``token`` is cancelled the tree built so
        far is returned with ``cancelled`` set. ``progress`` is closed
        before this method returns.
        """
        walk = _Walk(tree=DependencyTree(), token=token, progress=progress)

        try:
            self._register_pins(walk, modules)

            if self.warm_roots and not walk.cancelled:
                await self._warm(walk, modules)

            if not walk.cancelled:
                await self._walk_roots(walk, modules)

            if not walk.cancelled:
                await self._analyze(walk)
        finally:
            walk.tree.requirements = walk.requirements
            walk.tree.cancelled = walk.cancelled
            if progress is not None:
                progress.close()

        logger.info(
            "Built tree for %d modules: %d conflicts, %d errors%s",
            len(modules),
            len(walk.tree.all_conflicts()),
            len(walk.tree.errors),
            " (cancelled)" if walk.tree.cancelled else "",
        )
        return walk.tree

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _register_pins(self, walk: _Walk, modules: Sequence[ModuleRecord]) -> None:
        for record in modules:
            if record.source is ModuleSource.GIT:
                walk.git_declared.setdefault(record.key, record)
                continue
            if not record.version:
                continue
            key = record.key
            walk.pinned[key] = record.version
            walk.add_requirement(
                key,
                Requirement(
                    constraint=f"= {record.version}",
                    imposed_by=MANIFEST_SOURCE,
                    path=(key,),
                    is_direct_dependency=True,
                ),
            )

    async def _warm(self, walk: _Walk, modules: Sequence[ModuleRecord]) -> None:
        forge = [r.key for r in modules if r.source is ModuleSource.FORGE]
        if not forge:
            return

        result = await self.cache.warm(
            forge,
            concurrency=self.batch_size,
            pause=self.batch_pause,
            token=walk.token,
            progress=walk.progress,
        )
        if result.failed:
            logger.warning(
                "Could not cache %d of %d modules", result.failed_count, len(forge)
            )

    async def _walk_roots(self, walk: _Walk, modules: Sequence[ModuleRecord]) -> None:
        total = len(modules)
        walk.emit(ProgressPhase.TREE, "Building dependency tree...", 0, total)

        for index, record in enumerate(modules):
            if walk.cancelled:
                return
            walk.emit(
                ProgressPhase.TREE,
                f"Processing {record.name} ({index + 1}/{total})...",
                index,
                total,
            )

            if record.source is ModuleSource.GIT:
                node = await self._visit_git(walk, record)
            else:
                node = await self._visit(
                    walk,
                    record.name,
                    depth=0,
                    is_direct=True,
                )
            if node is not None:
                walk.tree.nodes.append(node)

    async def _analyze(self, walk: _Walk) -> None:
        modules = [
            key
            for key, reqs in walk.requirements.items()
            if reqs and key not in walk.git_declared
        ]
        total = len(modules)
        walk.emit(ProgressPhase.CONFLICTS, "Starting conflict analysis...", 0, total)

        for index, key in enumerate(modules):
            if walk.cancelled:
                return
            walk.emit(
                ProgressPhase.CONFLICTS,
                f"Analyzing conflicts for {key} ({index + 1}/{total})...",
                index,
                total,
            )

            try:
                available = await self.cache.get_available_versions(key)
            except Exception as exc:  # noqa: BLE001 - isolate per-module failures
                logger.warning("Skipping conflict analysis for %s: %s", key, exc)
                walk.tree.errors.setdefault(key, str(exc))
                continue

            result = self.analyzer.analyze_module(
                key, walk.requirements[key], available
            )
            if not result.has_conflict or result.conflict is None:
                continue

            walk.tree.conflicts[key] = result.conflict
            for node in walk.nodes.get(key, []):
                if node.source is not ModuleSource.FORGE or node.conflict is not None:
                    continue
                node.conflict = result.conflict
                node.state = NodeState.CONFLICTED

        walk.emit(ProgressPhase.CONFLICTS, "Conflict analysis complete", total, total)

    # ------------------------------------------------------------------
    # Node visits
    # ------------------------------------------------------------------

    async def _visit(
        self,
        walk: _Walk,
        name: str,
        *,
        depth: int,
        is_direct: bool,
        imposed_by: Optional[str] = None,
        edge_constraint: Optional[str] = None,
        informational: bool = False,
    ) -> Optional[DependencyNode]:
        """Visit one Forge module occurrence and, recursively, its dependencies."""
        if walk.cancelled:
            return None

        key = to_canonical_format(name)

        git_record = walk.git_declared.get(key)
        if git_record is not None:
            return self._visit_git_reference(
                walk, git_record, name, depth=depth, edge_constraint=edge_constraint
            )

        if imposed_by and edge_constraint and not informational:
            walk.add_requirement(
                key,
                Requirement(
                    constraint=edge_constraint,
                    imposed_by=imposed_by,
                    path=walk.path,
                    is_direct_dependency=is_direct,
                ),
            )

        node = DependencyNode(
            module=key,
            source=ModuleSource.FORGE,
            depth=depth,
            is_direct_dependency=is_direct,
            version_requirement=edge_constraint,
            display_name=name,
        )
        walk.register(node)

        circular = self.analyzer.check_for_circular_dependencies(key, walk.path)
        if circular is not None:
            logger.info("%s", circular.details)
            node.conflict = circular
            node.state = NodeState.CONFLICTED
            if all(c.details != circular.details for c in walk.tree.circular):
                walk.tree.circular.append(circular)
            return node

        node.state = NodeState.FETCHING_VERSIONS
        try:
            releases = await self.cache.get_release_list(key)
        except Exception as exc:  # noqa: BLE001 - isolate per-module failures
            return self._fail(walk, node, f"Could not fetch releases: {exc}")

        if not releases:
            return self._fail(
                walk, node, f"No releases of {key} found on the Forge"
            )

        node.resolved_version = self._choose_version(
            walk, key, edge_constraint, releases
        )

        if depth >= self.max_depth:
            logger.debug(
                "Not expanding %s: depth limit %d reached", key, self.max_depth
            )
            node.state = NodeState.RESOLVED
            return node

        node.state = NodeState.FETCHING_DEPENDENCIES
        try:
            release = await self.cache.get_release(key, node.resolved_version)
        except Exception as exc:  # noqa: BLE001 - isolate per-module failures
            return self._fail(walk, node, f"Could not fetch dependencies: {exc}")

        if release is None:
            logger.warning(
                "%s %s is not published; its dependencies are unknown",
                key,
                node.resolved_version,
            )
        else:
            if depth > 0:
                walk.emit(ProgressPhase.TREE, f"  Fetching dependencies for {key}...")
            await self._visit_children(walk, node, key, release.dependencies)

        node.state = NodeState.RESOLVED
        return node

    async def _visit_git(self, walk: _Walk, record: ModuleRecord) -> DependencyNode:
        """Visit a Git-sourced Puppetfile entry.

        Metadata failures are downgraded to "no metadata"; the node is
        always reported as resolved and without conflict.
        """
        key = record.key
        node = DependencyNode(
            module=key,
            resolved_version=record.git_revision,
            source=ModuleSource.GIT,
            depth=0,
            is_direct_dependency=True,
            git_url=record.git_url,
            git_ref=record.git_ref,
            git_tag=record.git_tag,
            display_name=record.name,
            state=NodeState.FETCHING_VERSIONS,
        )
        walk.register(node)

        metadata = None
        if self.git_source is None:
            logger.debug("No Git metadata source configured; skipping %s", key)
        else:
            try:
                metadata = await self.git_source.get_metadata_with_fallback(
                    record.git_url, record.git_revision
                )
            except Exception as exc:  # noqa: BLE001 - Git metadata is informational
                logger.warning("Could not fetch Git metadata for %s: %s", key, exc)

        if metadata is not None:
            if node.resolved_version is None:
                node.resolved_version = metadata.version
            node.state = NodeState.FETCHING_DEPENDENCIES
            await self._visit_children(
                walk, node, key, metadata.dependencies, informational=True
            )

        node.state = NodeState.RESOLVED
        return node

    @staticmethod
    def _visit_git_reference(
        walk: _Walk,
        record: ModuleRecord,
        name: str,
        *,
        depth: int,
        edge_constraint: Optional[str],
    ) -> DependencyNode:
        """Visit a dependency on a module the Puppetfile takes from Git.

        The occurrence is informational: it is not fetched from the Forge,
        adds no requirement and is never analyzed. Its dependencies are
        shown under the Git root only.
        """
        node = DependencyNode(
            module=record.key,
            resolved_version=record.git_revision,
            source=ModuleSource.GIT,
            depth=depth,
            version_requirement=edge_constraint,
            state=NodeState.RESOLVED,
            git_url=record.git_url,
            git_ref=record.git_ref,
            git_tag=record.git_tag,
            display_name=name,
        )
        walk.register(node)
        logger.debug("%s is declared from Git; not resolving it", node.module)
        return node

    async def _visit_children(
        self,
        walk: _Walk,
        node: DependencyNode,
        key: str,
        dependencies: Sequence[Any],
        *,
        informational: bool = False,
    ) -> None:
        walk.path.append(key)
        try:
            for dep in dependencies:
                if walk.cancelled:
                    break
                child = await self._visit(
                    walk,
                    dep.name,
                    depth=node.depth + 1,
                    is_direct=False,
                    imposed_by=key,
                    edge_constraint=dep.version_requirement,
                    informational=informational,
                )
                if child is not None:
                    node.children.append(child)
        finally:
            walk.path.pop()

    # ------------------------------------------------------------------
    # Helpers (private)
    # ------------------------------------------------------------------

    @staticmethod
    def _choose_version(
        walk: _Walk,
        key: str,
        edge_constraint: Optional[str],
        releases: Sequence[ReleaseMetadata],
    ) -> str:
        """Pick the version whose dependencies are expanded.

        Order of preference: the Puppetfile pin, the newest release meeting
        every requirement gathered so far, the newest release meeting the
        edge constraint alone, the newest release.
        """
        versions = [release.version for release in releases]

        pinned = walk.pinned.get(key)
        if pinned is not None:
            for version in versions:
                if compare_versions(version, pinned) == 0:
                    return version
            return pinned

        accumulated: List[VersionRequirement] = []
        for req in walk.requirements.get(key, []):
            accumulated.extend(parse_constraint(req.constraint))
        if accumulated:
            candidates = find_satisfying_versions(versions, accumulated)
            if candidates:
                return candidates[0]

        if edge_constraint:
            candidates = find_satisfying_versions(
                versions, parse_constraint(edge_constraint)
            )
            if candidates:
                return candidates[0]

        return versions[0]

    @staticmethod
    def _fail(walk: _Walk, node: DependencyNode, message: str) -> DependencyNode:
        logger.warning("%s: %s", node.module, message)
        node.state = NodeState.ERRORED
        node.error = message
        walk.tree.errors.setdefault(node.module, message)
        return node
