"""
puppetgraph: dependency resolution and conflict detection for Puppetfiles.

Given the modules declared in a Puppetfile, puppetgraph walks their
transitive dependencies on the Puppet Forge (and in ``metadata.json`` of
Git-sourced modules), gathers every version constraint imposed on each
module, and reports modules whose constraints cannot be met together.

Typical usage::

    from puppetgraph import (
        DependencyTreeBuilder,
        ForgeClient,
        HTTPClient,
        MetadataCache,
        ModuleRecord,
    )

    async with HTTPClient() as http:
        builder = DependencyTreeBuilder(MetadataCache(ForgeClient(http)))
        tree = await builder.build([ModuleRecord("puppetlabs/apache", "12.0.0")])
"""

from __future__ import annotations

from puppetgraph.__version__ import __version__
from puppetgraph.utils.http import HTTPClient
from puppetgraph.models import (
    Conflict,
    ConflictType,
    DependencyNode,
    DependencyTree,
    ModuleRecord,
    ModuleSource,
    SuggestedFix,
)
from puppetgraph.core import (
    CancellationToken,
    ConflictAnalyzer,
    DependencyTreeBuilder,
    ForgeClient,
    GitMetadataClient,
    MetadataCache,
    ProgressChannel,
)

# ---------------------------------------------------------------------------
# Package Metadata
# ---------------------------------------------------------------------------

__author__ = "puppetgraph Contributors"
__license__ = "Apache-2.0"
__url__ = "https://github.com/puppetgraph/puppetgraph"
__description__ = "Dependency resolution and conflict detection for Puppetfiles."

__all__ = [
    "__version__",
    # Engine
    "DependencyTreeBuilder",
    "MetadataCache",
    "ConflictAnalyzer",
    "ForgeClient",
    "GitMetadataClient",
    "HTTPClient",
    "CancellationToken",
    "ProgressChannel",
    # Models
    "ModuleRecord",
    "ModuleSource",
    "DependencyNode",
    "DependencyTree",
    "Conflict",
    "ConflictType",
    "SuggestedFix",
]
