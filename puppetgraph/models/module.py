"""
Module, release and dependency-tree data models for puppetgraph.

This module defines:

- :class:`ModuleRecord`, the already-parsed Puppetfile entry the engine
  consumes,
- :class:`ReleaseMetadata` and :class:`GitModuleMetadata`, what the Forge
  and Git collaborators return,
- :class:`DependencyNode` and :class:`DependencyTree`, what a build
  produces.

Nodes only ever point at their children, so a tree never contains a
reference cycle even when the requirement graph does.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from puppetgraph.exceptions import InvalidModuleError
from puppetgraph.models.conflict import Conflict
from puppetgraph.models.requirement import Requirement
from puppetgraph.utils.module_names import to_canonical_format


class ModuleSource(Enum):
    """Where a module's releases come from."""

    FORGE = "forge"
    GIT = "git"

    def __str__(self) -> str:
        return self.value


class NodeState(Enum):
    """Lifecycle of a node during a build.

    ``PENDING -> FETCHING_VERSIONS -> FETCHING_DEPENDENCIES`` and then one
    of ``RESOLVED``, ``CONFLICTED`` or ``ERRORED``.
    """

    PENDING = "pending"
    FETCHING_VERSIONS = "fetching-versions"
    FETCHING_DEPENDENCIES = "fetching-dependencies"
    RESOLVED = "resolved"
    CONFLICTED = "conflicted"
    ERRORED = "errored"

    @property
    def is_final(self) -> bool:
        return self in (NodeState.RESOLVED, NodeState.CONFLICTED, NodeState.ERRORED)


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModuleRecord:
    """A module declared in a Puppetfile.

    Args:
        name: Module name in any accepted spelling.
        version: Pinned version, if the Puppetfile fixes one.
        source: Forge or Git.
        git_url: Repository URL; required for Git modules.
        git_ref: Branch or commit for Git modules.
        git_tag: Tag for Git modules; preferred over ``git_ref``.

    Raises:
        InvalidModuleError: If the name is blank or a Git module has no URL.
    """

    name: str
    version: Optional[str] = None
    source: ModuleSource = ModuleSource.FORGE
    git_url: Optional[str] = None
    git_ref: Optional[str] = None
    git_tag: Optional[str] = None

    def __post_init__(self) -> None:
        name = (self.name or "").strip()
        if not name or name in ("/", "-"):
            raise InvalidModuleError(
                "Module declaration has no recognisable name",
                module_name=self.name,
            )
        object.__setattr__(self, "name", name)

        if self.source is ModuleSource.GIT and not self.git_url:
            raise InvalidModuleError(
                f"Git module '{name}' does not declare a repository URL",
                module_name=name,
            )

    @property
    def key(self) -> str:
        """Canonical module key."""
        return to_canonical_format(self.name)

    @property
    def git_revision(self) -> Optional[str]:
        """Tag if set, else ref."""
        return self.git_tag or self.git_ref


@dataclass(frozen=True)
class DependencySpec:
    """One entry of a release's ``dependencies`` list."""

    name: str
    version_requirement: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "DependencySpec":
        return cls(
            name=str(data.get("name", "")),
            version_requirement=data.get("version_requirement"),
        )

    def to_json(self) -> Dict[str, Optional[str]]:
        return {"name": self.name, "version_requirement": self.version_requirement}


@dataclass(frozen=True)
class ReleaseMetadata:
    """A single published release of a Forge module.

    Attributes:
        version: Release version string.
        created_at: Publication timestamp as reported by the Forge.
        dependencies: Modules this release depends on.
    """

    version: str
    created_at: Optional[str] = None
    dependencies: List[DependencySpec] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "created_at": self.created_at,
            "dependencies": [dep.to_json() for dep in self.dependencies],
        }


@dataclass(frozen=True)
class GitModuleMetadata:
    """The parts of a repository's ``metadata.json`` puppetgraph uses."""

    name: str
    version: Optional[str] = None
    dependencies: List[DependencySpec] = field(default_factory=list)
    author: Optional[str] = None
    summary: Optional[str] = None
    license: Optional[str] = None
    source: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "GitModuleMetadata":
        """Build from a decoded ``metadata.json`` document.

        Malformed dependency entries (non-dicts or entries without a name)
        are skipped.
        """
        raw_deps = data.get("dependencies") or []
        dependencies = [
            DependencySpec.from_json(dep)
            for dep in raw_deps
            if isinstance(dep, dict) and dep.get("name")
        ]
        return cls(
            name=str(data.get("name", "")),
            version=data.get("version"),
            dependencies=dependencies,
            author=data.get("author"),
            summary=data.get("summary"),
            license=data.get("license"),
            source=data.get("source"),
        )


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


@dataclass
class DependencyNode:
    """One module occurrence in a dependency tree.

    The same module may appear under several parents; each occurrence is
    its own node.

    Attributes:
        module: Canonical module key.
        resolved_version: Version chosen for this occurrence, if any.
        children: Dependencies of the chosen version.
        conflict: Conflict attached after analysis, or a circular conflict
            found while walking.
        source: Forge or Git.
        depth: Distance from the root (roots are depth 0).
        is_direct_dependency: True for modules listed in the Puppetfile.
        version_requirement: Constraint on the edge leading here.
        state: Where this node ended in its lifecycle.
        error: Failure message when ``state`` is ``ERRORED``.
        display_name: Name as written by whoever declared it.
    """

    module: str
    resolved_version: Optional[str] = None
    children: List["DependencyNode"] = field(default_factory=list)
    conflict: Optional[Conflict] = None
    source: ModuleSource = ModuleSource.FORGE
    depth: int = 0
    is_direct_dependency: bool = False
    version_requirement: Optional[str] = None
    state: NodeState = NodeState.PENDING
    error: Optional[str] = None
    git_url: Optional[str] = None
    git_ref: Optional[str] = None
    git_tag: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def display_version(self) -> Optional[str]:
        """Pinned version for Puppetfile entries, the edge constraint otherwise."""
        if self.is_direct_dependency or not self.version_requirement:
            return self.resolved_version
        return self.version_requirement

    def walk(self) -> Iterator["DependencyNode"]:
        """Yield this node and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_json(self) -> Dict[str, Any]:
        """Return a JSON-serializable representation, children included."""
        data: Dict[str, Any] = {
            "module": self.module,
            "name": self.display_name or self.module,
            "version": self.resolved_version,
            "source": self.source.value,
            "depth": self.depth,
            "direct": self.is_direct_dependency,
            "version_requirement": self.version_requirement,
            "state": self.state.value,
        }
        if self.source is ModuleSource.GIT:
            data["git"] = {
                "url": self.git_url,
                "ref": self.git_ref,
                "tag": self.git_tag,
            }
        if self.error:
            data["error"] = self.error
        if self.conflict:
            data["conflict"] = self.conflict.to_json()
        data["children"] = [child.to_json() for child in self.children]
        return data


@dataclass
class DependencyTree:
    """Result of a build.

    Attributes:
        nodes: One root node per declared module, in declaration order.
        conflicts: Analysis conflicts keyed by canonical module key.
        circular: Circular conflicts found while walking.
        errors: Fetch failure messages keyed by canonical module key.
        requirements: Every requirement gathered, keyed by module.
        cancelled: True when the build stopped early; the tree is partial.
    """

    nodes: List[DependencyNode] = field(default_factory=list)
    conflicts: Dict[str, Conflict] = field(default_factory=dict)
    circular: List[Conflict] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)
    requirements: Dict[str, List[Requirement]] = field(default_factory=dict)
    cancelled: bool = False

    def walk(self) -> Iterator[DependencyNode]:
        for node in self.nodes:
            yield from node.walk()

    def all_conflicts(self) -> List[Conflict]:
        """Return analysis conflicts followed by circular ones."""
        return list(self.conflicts.values()) + list(self.circular)

    def has_conflicts(self) -> bool:
        return bool(self.conflicts or self.circular)

    def find(self, module: str) -> List[DependencyNode]:
        """Return every node for ``module`` (any spelling)."""
        key = to_canonical_format(module)
        return [node for node in self.walk() if node.module == key]

    def to_json(self) -> Dict[str, Any]:
        return {
            "cancelled": self.cancelled,
            "modules": [node.to_json() for node in self.nodes],
            "conflicts": [conflict.to_json() for conflict in self.all_conflicts()],
            "errors": dict(self.errors),
            "requirements": {
                module: [req.to_json() for req in reqs]
                for module, reqs in self.requirements.items()
            },
        }
