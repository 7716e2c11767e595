"""
Core functionality exports for puppetgraph.

Importing from here keeps user-facing imports clean and stable:

    from puppetgraph.core import DependencyTreeBuilder, MetadataCache
"""

from __future__ import annotations

from puppetgraph.core.forge_client import ForgeClient
from puppetgraph.core.conflict_analyzer import ConflictAnalyzer
from puppetgraph.core.dependency_tree import DependencyTreeBuilder
from puppetgraph.core.metadata_cache import MetadataCache, WarmResult
from puppetgraph.core.git_metadata import GitMetadataClient, convert_to_raw_url
from puppetgraph.core.progress import (
    CancellationToken,
    ProgressChannel,
    ProgressEvent,
    ProgressPhase,
)

__all__ = [
    "ForgeClient",
    "GitMetadataClient",
    "convert_to_raw_url",
    "MetadataCache",
    "WarmResult",
    "ConflictAnalyzer",
    "DependencyTreeBuilder",
    "CancellationToken",
    "ProgressChannel",
    "ProgressEvent",
    "ProgressPhase",
]
