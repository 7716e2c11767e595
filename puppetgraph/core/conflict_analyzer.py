"""Per-module conflict analysis for puppetgraph.

:class:`ConflictAnalyzer` answers two questions:

1. Can every requirement gathered for one module be met at once, and by
   which published versions? (:meth:`ConflictAnalyzer.analyze_module`)
2. Does the resolution path leading to a module already contain it?
   (:meth:`ConflictAnalyzer.check_for_circular_dependencies`)

Both return data; neither raises on a conflict.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from puppetgraph.constants import MANIFEST_SOURCE
from puppetgraph.utils.logger import get_logger
from puppetgraph.models.requirement import Operator, Requirement, VersionRequirement
from puppetgraph.models.version_range import VersionRange
from puppetgraph.models.conflict import (
    SUGGEST_LATEST,
    SUGGEST_NONE,
    AnalysisResult,
    Conflict,
    ConflictType,
    SuggestedFix,
)
from puppetgraph.utils.version_utils import (
    find_satisfying_versions,
    format_range,
    intersect,
    parse_constraint,
    sort_versions,
)

logger = get_logger("conflict_analyzer")

__all__ = ["ConflictAnalyzer"]

# Number of available versions quoted in a no-available-version message.
_SAMPLE_SIZE: int = 3


class ConflictAnalyzer:
    """Stateless analyzer; one instance may be shared by any number of builds."""

    # ------------------------------------------------------------------
    # Requirement satisfiability
    # ------------------------------------------------------------------

    def analyze_module(
        self,
        module_id: str,
        requirements: Sequence[Requirement],
        available_versions: Sequence[str],
    ) -> AnalysisResult:
        """Decide whether ``requirements`` can be met by ``available_versions``.

        Args:
            module_id: Module the requirements apply to.
            requirements: Every requirement gathered for the module.
            available_versions: Published versions, in the caller's order of
                preference (usually newest first).

        Returns:
            An :class:`AnalysisResult`. On success ``satisfying_versions``
            keeps the order of ``available_versions``.

        Example::

            >>> result = ConflictAnalyzer().analyze_module(
            ...     "m",
            ...     [Requirement(">=8.0.0", "a"), Requirement("<9.0.0", "b")],
            ...     ["7.9.0", "8.0.0", "8.5.0", "9.0.0"],
            ... )
            >>> result.satisfying_versions
            ['8.0.0', '8.5.0']
        """
        parsed = _parse_all(requirements)
        merged = intersect(parsed)

        if merged is None:
            logger.debug(
                "No intersection for %s across %d requirements",
                module_id,
                len(requirements),
            )
            conflict = Conflict(
                type=ConflictType.NO_INTERSECTION,
                details=self._no_intersection_details(module_id, requirements),
                suggested_fixes=self._suggest_fixes(
                    module_id, requirements, available_versions
                ),
                module=module_id,
            )
            return AnalysisResult(has_conflict=True, conflict=conflict)

        satisfying = find_satisfying_versions(available_versions, parsed)
        if not satisfying:
            logger.debug(
                "No published version of %s within %s",
                module_id,
                format_range(merged),
            )
            conflict = Conflict(
                type=ConflictType.NO_AVAILABLE_VERSION,
                details=self._no_available_details(
                    module_id, merged, available_versions
                ),
                suggested_fixes=self._suggest_fixes(
                    module_id, requirements, available_versions
                ),
                module=module_id,
            )
            return AnalysisResult(
                has_conflict=True, conflict=conflict, merged_range=merged
            )

        return AnalysisResult(
            has_conflict=False,
            satisfying_versions=satisfying,
            merged_range=merged,
        )

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    def check_for_circular_dependencies(
        self,
        module_id: str,
        path: Sequence[str],
    ) -> Optional[Conflict]:
        """Return a circular conflict if ``module_id`` already occurs in ``path``.

        ``path`` runs from the root to the module being expanded and does
        not yet contain ``module_id``. The single suggested fix removes the
        most recently added edge, i.e. the last module in ``path``.

        Example::

            >>> c = ConflictAnalyzer().check_for_circular_dependencies(
            ...     "moduleB", ["moduleA", "moduleB", "moduleC"]
            ... )
            >>> c.details
            'Circular dependency detected: moduleB -> moduleC -> moduleB'
        """
        if module_id not in path:
            return None

        start = list(path).index(module_id)
        cycle = list(path[start:]) + [module_id]
        breaker = path[-1]

        return Conflict(
            type=ConflictType.CIRCULAR,
            details=f"Circular dependency detected: {' -> '.join(cycle)}",
            suggested_fixes=[
                SuggestedFix(
                    module=breaker,
                    suggested_version=SUGGEST_NONE,
                    reason="Remove this dependency to break the circular reference",
                )
            ],
            module=module_id,
        )

    # ------------------------------------------------------------------
    # Message and fix helpers (private)
    # ------------------------------------------------------------------

    @staticmethod
    def _no_intersection_details(
        module_id: str,
        requirements: Sequence[Requirement],
    ) -> str:
        lines = [f"No version of {module_id} satisfies all requirements:"]
        lines.extend(
            f"  - {req.imposed_by} requires {req.constraint}" for req in requirements
        )
        return "\n".join(lines)

    @staticmethod
    def _no_available_details(
        module_id: str,
        merged: VersionRange,
        available_versions: Sequence[str],
    ) -> str:
        if not available_versions:
            return (
                f"{module_id} requires {format_range(merged)}, "
                "but no versions are published"
            )

        newest_first = sort_versions(available_versions)
        sample = ", ".join(newest_first[:_SAMPLE_SIZE])
        more = "..." if len(newest_first) > _SAMPLE_SIZE else ""
        return (
            f"{module_id} requires {format_range(merged)}, but only versions "
            f"{sample}{more} are available (latest: {newest_first[0]})"
        )

    def _suggest_fixes(
        self,
        module_id: str,
        requirements: Sequence[Requirement],
        available_versions: Sequence[str],
    ) -> List[SuggestedFix]:
        """One fix per distinct imposer that contributed at least one bound.

        The Puppetfile entry is offered the newest published version that
        the other requirements still accept. Transitive imposers are
        asked to move to a release whose constraint is looser.
        """
        by_imposer: Dict[str, List[Requirement]] = {}
        for req in requirements:
            if not parse_constraint(req.constraint):
                continue
            by_imposer.setdefault(req.imposed_by, []).append(req)

        fixes: List[SuggestedFix] = []
        for imposer, own in by_imposer.items():
            others = [req for req in requirements if req.imposed_by != imposer]
            constraints = " ".join(req.constraint for req in own)

            is_manifest = imposer == MANIFEST_SOURCE or any(
                req.is_direct_dependency for req in own
            )
            if is_manifest:
                target = self._best_version(others, available_versions)
                if target is None:
                    reason = (
                        f"No published version of {module_id} satisfies the "
                        "remaining requirements"
                    )
                else:
                    reason = (
                        f"Change the Puppetfile entry for {module_id} to "
                        f"{target} to satisfy the other requirements"
                    )
                fixes.append(
                    SuggestedFix(
                        module=module_id,
                        suggested_version=target or SUGGEST_NONE,
                        reason=reason,
                        current_version=_pinned_version(own),
                    )
                )
            else:
                fixes.append(
                    SuggestedFix(
                        module=imposer,
                        suggested_version=SUGGEST_LATEST,
                        reason=(
                            f"Update {imposer} to a version that relaxes its "
                            f"requirement on {module_id} ({constraints})"
                        ),
                    )
                )

        return fixes

    @staticmethod
    def _best_version(
        requirements: Sequence[Requirement],
        available_versions: Sequence[str],
    ) -> Optional[str]:
        candidates = find_satisfying_versions(
            available_versions, _parse_all(requirements)
        )
        if not candidates:
            return None
        return sort_versions(candidates)[0]


def _parse_all(requirements: Sequence[Requirement]) -> List[VersionRequirement]:
    parsed: List[VersionRequirement] = []
    for req in requirements:
        parsed.extend(parse_constraint(req.constraint))
    return parsed


def _pinned_version(requirements: Sequence[Requirement]) -> str:
    for req in requirements:
        parsed = parse_constraint(req.constraint)
        if len(parsed) == 1 and parsed[0].operator is Operator.EQ:
            return parsed[0].version
    return "current"
