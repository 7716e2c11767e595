"""
Requirement data models for puppetgraph.

Two kinds of requirement exist:

- :class:`VersionRequirement` is one operator/version pair produced by
  parsing a constraint string such as ``">= 4.13.1 < 9.0.0"``.
- :class:`Requirement` is one constraint imposed on a module by a specific
  edge of the dependency graph, together with its provenance.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, Tuple


class Operator(Enum):
    """Comparison operators understood by the constraint parser."""

    EQ = "="
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="

    @property
    def is_lower_bound(self) -> bool:
        """Return True for ``>`` and ``>=``."""
        return self in (Operator.GT, Operator.GTE)

    @property
    def is_upper_bound(self) -> bool:
        """Return True for ``<`` and ``<=``."""
        return self in (Operator.LT, Operator.LTE)

    @property
    def is_inclusive(self) -> bool:
        """Return True when the bound includes its own version."""
        return self in (Operator.EQ, Operator.GTE, Operator.LTE)

    def __str__(self) -> str:
        return self.value


class ConstraintForm(Enum):
    """How a :class:`VersionRequirement` was recognised in the source text.

    ``FALLBACK`` marks tokens the parser could not make sense of. They are
    kept as exact-version requirements on the raw token so that one
    malformed constraint in upstream metadata does not abort resolution.
    """

    EXPLICIT = "explicit"
    PESSIMISTIC = "pessimistic"
    WILDCARD = "wildcard"
    BARE = "bare"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class VersionRequirement:
    """A single operator/version pair.

    Attributes:
        operator: Comparison operator.
        version: Version string the operator applies to.
        form: Parser branch that produced this requirement. Not part of
            equality, so ``~> 1.2.0`` compares equal to its explicit
            expansion.
    """

    operator: Operator
    version: str
    form: ConstraintForm = field(default=ConstraintForm.EXPLICIT, compare=False)

    @property
    def is_fallback(self) -> bool:
        """Return True when the requirement came from an unparseable token."""
        return self.form is ConstraintForm.FALLBACK

    def __str__(self) -> str:
        return f"{self.operator.value} {self.version}"


@dataclass(frozen=True)
class Requirement:
    """A version constraint imposed on a module by one graph edge.

    Attributes:
        constraint: Raw constraint text, e.g. ``">= 4.0.0 < 9.0.0"``.
        imposed_by: Module (or ``"Puppetfile"``) that declared the edge.
        path: Canonical module keys from the resolution root to the
            module carrying this requirement.
        is_direct_dependency: True when the constraint comes from the
            Puppetfile itself.
    """

    constraint: str
    imposed_by: str
    path: Tuple[str, ...] = ()
    is_direct_dependency: bool = False

    def __post_init__(self) -> None:
        # Callers usually hand over the walk's live path list
        object.__setattr__(self, "path", tuple(self.path))

    def to_json(self) -> Dict[str, object]:
        """Return a JSON-serializable representation."""
        return {
            "constraint": self.constraint,
            "imposed_by": self.imposed_by,
            "path": list(self.path),
            "is_direct_dependency": self.is_direct_dependency,
        }

    def __str__(self) -> str:
        return f"{self.imposed_by} requires {self.constraint}"
