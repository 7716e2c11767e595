"""
Version range model for puppetgraph.

A :class:`VersionRange` is the folded intersection of a set of
requirements: at most one lower and one upper :class:`Bound`. An empty
intersection is represented by ``None`` at the call site, never by a
degenerate range.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Bound:
    """One end of a version range.

    Attributes:
        version: Version string at the boundary.
        inclusive: Whether ``version`` itself lies inside the range.
    """

    version: str
    inclusive: bool = True

    def to_json(self) -> Dict[str, Any]:
        """Return a JSON-serializable representation."""
        return {"version": self.version, "inclusive": self.inclusive}


@dataclass(frozen=True)
class VersionRange:
    """Intersection of a set of version requirements.

    Attributes:
        min: Lower bound, or ``None`` when unbounded below.
        max: Upper bound, or ``None`` when unbounded above.
    """

    min: Optional[Bound] = None
    max: Optional[Bound] = None

    @property
    def is_unbounded(self) -> bool:
        """Return True when neither end is constrained."""
        return self.min is None and self.max is None

    @property
    def is_exact(self) -> bool:
        """Return True when the range admits exactly one version."""
        return (
            self.min is not None
            and self.max is not None
            and self.min.version == self.max.version
            and self.min.inclusive
            and self.max.inclusive
        )

    def to_json(self) -> Dict[str, Any]:
        """Return a JSON-serializable representation."""
        return {
            "min": self.min.to_json() if self.min else None,
            "max": self.max.to_json() if self.max else None,
        }
