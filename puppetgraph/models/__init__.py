"""
Unified data model exports for puppetgraph.

Users can import models directly from ``puppetgraph.models`` instead of
individual submodules.

Example:
    >>> from puppetgraph.models import ModuleRecord, DependencyTree, Conflict
"""

from __future__ import annotations

from puppetgraph.models.version_range import Bound, VersionRange
from puppetgraph.models.requirement import (
    ConstraintForm,
    Operator,
    Requirement,
    VersionRequirement,
)
from puppetgraph.models.conflict import (
    SUGGEST_LATEST,
    SUGGEST_NONE,
    AnalysisResult,
    Conflict,
    ConflictType,
    SuggestedFix,
)
from puppetgraph.models.module import (
    DependencyNode,
    DependencySpec,
    DependencyTree,
    GitModuleMetadata,
    ModuleRecord,
    ModuleSource,
    NodeState,
    ReleaseMetadata,
)

__all__ = [
    # Versions
    "Bound",
    "VersionRange",
    "Operator",
    "ConstraintForm",
    "VersionRequirement",
    "Requirement",
    # Conflicts
    "ConflictType",
    "Conflict",
    "SuggestedFix",
    "AnalysisResult",
    "SUGGEST_NONE",
    "SUGGEST_LATEST",
    # Modules and trees
    "ModuleSource",
    "ModuleRecord",
    "DependencySpec",
    "ReleaseMetadata",
    "GitModuleMetadata",
    "NodeState",
    "DependencyNode",
    "DependencyTree",
]
