"""
Conflict data models for puppetgraph.

Conflicts are values, not exceptions: the analyzer returns them and the
tree builder attaches them to the nodes of the affected module.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from puppetgraph.models.version_range import VersionRange

#: ``suggested_version`` meaning "drop this dependency".
SUGGEST_NONE = "none"

#: ``suggested_version`` meaning "move to a newer release of this module".
SUGGEST_LATEST = "latest"


class ConflictType(Enum):
    """Why a module's requirements cannot be met."""

    NO_INTERSECTION = "no-intersection"
    NO_AVAILABLE_VERSION = "no-available-version"
    CIRCULAR = "circular"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class SuggestedFix:
    """A change that may resolve a conflict.

    Args:
        module: Module whose declaration should change.
        suggested_version: A version string, :data:`SUGGEST_NONE` or
            :data:`SUGGEST_LATEST`.
        reason: Human-readable explanation.
        current_version: Version currently in use, when known.
    """

    module: str
    suggested_version: str
    reason: str
    current_version: str = "current"

    def to_json(self) -> Dict[str, str]:
        """Return a JSON-serializable representation."""
        return {
            "module": self.module,
            "current_version": self.current_version,
            "suggested_version": self.suggested_version,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class Conflict:
    """A structured, non-exceptional resolution failure.

    Args:
        type: Kind of conflict.
        details: Human-readable description, possibly multi-line.
        suggested_fixes: Candidate fixes, most relevant first.
        module: Canonical key of the module the conflict is about.
    """

    type: ConflictType
    details: str
    suggested_fixes: List[SuggestedFix] = field(default_factory=list)
    module: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        """Return a JSON-serializable representation."""
        return {
            "type": self.type.value,
            "module": self.module,
            "details": self.details,
            "suggested_fixes": [fix.to_json() for fix in self.suggested_fixes],
        }

    def __str__(self) -> str:
        return f"[{self.type.value}] {self.details}"


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of analysing every requirement on one module.

    Attributes:
        has_conflict: True when ``conflict`` is set.
        satisfying_versions: Available versions inside the merged range,
            in the order they were supplied. Empty on conflict.
        conflict: The conflict found, if any.
        merged_range: Intersection of all requirements, or ``None`` when
            they are mutually exclusive.
    """

    has_conflict: bool
    satisfying_versions: List[str] = field(default_factory=list)
    conflict: Optional[Conflict] = None
    merged_range: Optional[VersionRange] = None
