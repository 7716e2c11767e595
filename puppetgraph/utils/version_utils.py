"""
Version comparison and constraint utilities for puppetgraph.

Puppet modules use ``MAJOR.MINOR.PATCH[-PRERELEASE]`` version strings and
Puppetfile/metadata constraints such as ``">= 4.13.1 < 9.0.0"``,
``"~> 1.2"`` or ``"3.x"``. This module parses those constraints into
:class:`~puppetgraph.models.requirement.VersionRequirement` lists, orders
versions, and folds requirement sets into a single
:class:`~puppetgraph.models.version_range.VersionRange`.

Two behaviours are deliberately permissive:

- Constraint text that cannot be recognised never raises. Each unusable
  token becomes an exact-version requirement tagged
  :attr:`ConstraintForm.FALLBACK` so callers can tell it apart.
- Pre-release suffixes compare as plain strings, so ``1.0.0-beta.2``
  sorts above ``1.0.0-beta.11``.
"""

from __future__ import annotations

import re
import functools
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from puppetgraph.utils.logger import get_logger
from puppetgraph.models.version_range import Bound, VersionRange
from puppetgraph.models.requirement import (
    ConstraintForm,
    Operator,
    VersionRequirement,
)

logger = get_logger("version_utils")

_PESSIMISTIC = "~>"

# Longest first so ">=" is not read as ">" followed by "=1.0.0"
_OPERATORS: Tuple[Operator, ...] = tuple(
    sorted(Operator, key=lambda op: len(op.value), reverse=True)
)

_MAJOR_WILDCARD = re.compile(r"^(\d+)\.x(?:\.x)?$", re.IGNORECASE)
_MINOR_WILDCARD = re.compile(r"^(\d+)\.(\d+)\.x$", re.IGNORECASE)
_VERSION_TOKEN = re.compile(r"^\d+(?:\.\d+)*(?:-[0-9A-Za-z.\-]+)?$")
_NUMERIC = re.compile(r"^\d+$")
_PRERELEASE = re.compile(r"-(alpha|beta|rc|pre|dev|snapshot)", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Constraint parsing
# ---------------------------------------------------------------------------


def parse_constraint(constraint: Optional[str]) -> List[VersionRequirement]:
    """Parse a constraint string into a list of requirements.

    Supported forms, any number of them separated by whitespace:

    - ``~> X.Y[.Z]`` expands to ``>= X.Y[.Z]`` and ``< X.(Y+1).0``
    - ``N.x`` / ``N.x.x`` expands to ``>= N.0.0`` and ``< (N+1).0.0``
    - ``N.M.x`` expands to ``>= N.M.0`` and ``< N.(M+1).0``
    - ``>=``, ``>``, ``<=``, ``<``, ``=`` followed by a version, with or
      without a space in between
    - a bare version, read as ``=``

    Anything else becomes an exact-version requirement on the raw token
    (see :attr:`ConstraintForm.FALLBACK`).

    Args:
        constraint: Constraint text. ``None`` or blank means "any version".

    Returns:
        Requirements in the order they appear in the text.

    Example:
        >>> [str(r) for r in parse_constraint("~> 1.2.0")]
        ['>= 1.2.0', '< 1.3.0']
    """
    if not constraint:
        return []

    tokens = constraint.split()
    requirements: List[VersionRequirement] = []
    i = 0

    while i < len(tokens):
        token = tokens[i]

        if token == _PESSIMISTIC:
            if i + 1 < len(tokens):
                requirements.extend(_expand_pessimistic(tokens[i + 1]))
            else:
                logger.debug("Ignoring dangling '~>' in %r", constraint)
            i += 2
            continue

        wildcard = _expand_wildcard(token)
        if wildcard is not None:
            requirements.extend(wildcard)
            i += 1
            continue

        operator = _match_operator(token)
        if operator is not None:
            glued = token[len(operator.value):]
            if glued:
                requirements.append(VersionRequirement(operator, glued))
                i += 1
                continue
            if i + 1 < len(tokens):
                requirements.append(VersionRequirement(operator, tokens[i + 1]))
                i += 2
                continue

        if _VERSION_TOKEN.match(token):
            requirements.append(
                VersionRequirement(Operator.EQ, token, ConstraintForm.BARE)
            )
        else:
            logger.debug(
                "Unrecognised token %r in constraint %r, treating it as an "
                "exact version",
                token,
                constraint,
            )
            requirements.append(
                VersionRequirement(Operator.EQ, token, ConstraintForm.FALLBACK)
            )
        i += 1

    return requirements


def _match_operator(token: str) -> Optional[Operator]:
    for operator in _OPERATORS:
        if token.startswith(operator.value):
            return operator
    return None


def _expand_pessimistic(version: str) -> List[VersionRequirement]:
    parts = version.split("-", 1)[0].split(".")
    major = _leading_int(parts[0])
    minor = _leading_int(parts[1]) if len(parts) > 1 else 0
    upper = f"{major}.{minor + 1}.0"

    return [
        VersionRequirement(Operator.GTE, version, ConstraintForm.PESSIMISTIC),
        VersionRequirement(Operator.LT, upper, ConstraintForm.PESSIMISTIC),
    ]


def _expand_wildcard(token: str) -> Optional[List[VersionRequirement]]:
    match = _MAJOR_WILDCARD.match(token)
    if match:
        major = int(match.group(1))
        return [
            VersionRequirement(
                Operator.GTE, f"{major}.0.0", ConstraintForm.WILDCARD
            ),
            VersionRequirement(
                Operator.LT, f"{major + 1}.0.0", ConstraintForm.WILDCARD
            ),
        ]

    match = _MINOR_WILDCARD.match(token)
    if match:
        major, minor = int(match.group(1)), int(match.group(2))
        return [
            VersionRequirement(
                Operator.GTE, f"{major}.{minor}.0", ConstraintForm.WILDCARD
            ),
            VersionRequirement(
                Operator.LT, f"{major}.{minor + 1}.0", ConstraintForm.WILDCARD
            ),
        ]

    return None


def _leading_int(text: str) -> int:
    match = re.match(r"\d+", text)
    return int(match.group(0)) if match else 0


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


def compare_versions(a: str, b: str) -> int:
    """Compare two version strings.

    Dot-separated numeric components are compared numerically, with
    missing trailing components treated as ``0`` (``1.0 == 1.0.0``). If
    either main part has a non-numeric component the two strings are
    compared lexically as a whole.

    For equal numeric parts a release sorts above any pre-release of it
    (``1.0.0 > 1.0.0-beta``) and two pre-release suffixes compare as
    strings.

    Returns:
        ``-1``, ``0`` or ``1``.

    Examples:
        >>> compare_versions("1.0", "1.0.0")
        0
        >>> compare_versions("1.0.0", "1.0.0-rc1")
        1
    """
    main_a, _, pre_a = a.partition("-")
    main_b, _, pre_b = b.partition("-")

    parts_a = main_a.split(".")
    parts_b = main_b.split(".")

    if not all(_NUMERIC.match(p) for p in parts_a + parts_b):
        return _sign(a, b)

    nums_a = [int(p) for p in parts_a]
    nums_b = [int(p) for p in parts_b]
    width = max(len(nums_a), len(nums_b))
    nums_a.extend([0] * (width - len(nums_a)))
    nums_b.extend([0] * (width - len(nums_b)))

    if nums_a != nums_b:
        return -1 if nums_a < nums_b else 1

    if not pre_a and pre_b:
        return 1
    if pre_a and not pre_b:
        return -1
    return _sign(pre_a, pre_b)


def _sign(a: str, b: str) -> int:
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


#: ``sorted(versions, key=version_sort_key)`` sorts oldest first.
version_sort_key: Callable[[str], object] = functools.cmp_to_key(compare_versions)


def sort_versions(versions: Iterable[str], *, descending: bool = True) -> List[str]:
    """Return ``versions`` sorted by :func:`compare_versions`, newest first
    unless ``descending`` is False."""
    return sorted(versions, key=version_sort_key, reverse=descending)


def is_prerelease(version: str) -> bool:
    """Return True for versions with an alpha/beta/rc/pre/dev/snapshot suffix."""
    return bool(_PRERELEASE.search(version))


def satisfies(version: str, requirement: VersionRequirement) -> bool:
    """Return True if ``version`` meets a single requirement."""
    cmp = compare_versions(version, requirement.version)
    operator = requirement.operator

    if operator is Operator.EQ:
        return cmp == 0
    if operator is Operator.GT:
        return cmp > 0
    if operator is Operator.GTE:
        return cmp >= 0
    if operator is Operator.LT:
        return cmp < 0
    if operator is Operator.LTE:
        return cmp <= 0
    raise ValueError(f"Unsupported operator: {operator!r}")


def satisfies_all(version: str, requirements: Iterable[VersionRequirement]) -> bool:
    """Return True if ``version`` meets every requirement."""
    return all(satisfies(version, req) for req in requirements)


# ---------------------------------------------------------------------------
# Range intersection
# ---------------------------------------------------------------------------


def intersect(requirements: Iterable[VersionRequirement]) -> Optional[VersionRange]:
    """Fold requirements into the single range they jointly allow.

    Lower bounds keep the larger version and upper bounds the smaller; on
    equal versions the exclusive bound wins. An ``=`` requirement is
    checked against the bounds gathered so far and then collapses the
    range to that one version.

    Returns:
        The merged range, or ``None`` when no version can satisfy every
        requirement. An empty input yields an unbounded range.

    Example:
        >>> intersect(parse_constraint(">= 6.0.0 < 7.0.0 >= 7.0.0")) is None
        True
    """
    low: Optional[Bound] = None
    high: Optional[Bound] = None

    for req in requirements:
        operator = req.operator
        candidate = Bound(req.version, operator.is_inclusive)

        if operator is Operator.EQ:
            within = _above_lower(req.version, low) and _below_upper(req.version, high)
            if not within:
                return None
            low = high = Bound(req.version, True)
        elif operator.is_lower_bound:
            low = _tighter_lower(low, candidate)
        elif operator.is_upper_bound:
            high = _tighter_upper(high, candidate)
        else:
            raise ValueError(f"Unsupported operator: {operator!r}")

    if low is not None and high is not None:
        cmp = compare_versions(low.version, high.version)
        if cmp > 0:
            return None
        if cmp == 0 and not (low.inclusive and high.inclusive):
            return None

    return VersionRange(min=low, max=high)


def _tighter_lower(current: Optional[Bound], candidate: Bound) -> Bound:
    if current is None:
        return candidate
    cmp = compare_versions(candidate.version, current.version)
    if cmp > 0:
        return candidate
    if cmp == 0 and not candidate.inclusive:
        return candidate
    return current


def _tighter_upper(current: Optional[Bound], candidate: Bound) -> Bound:
    if current is None:
        return candidate
    cmp = compare_versions(candidate.version, current.version)
    if cmp < 0:
        return candidate
    if cmp == 0 and not candidate.inclusive:
        return candidate
    return current


def _above_lower(version: str, bound: Optional[Bound]) -> bool:
    if bound is None:
        return True
    cmp = compare_versions(version, bound.version)
    return cmp > 0 or (cmp == 0 and bound.inclusive)


def _below_upper(version: str, bound: Optional[Bound]) -> bool:
    if bound is None:
        return True
    cmp = compare_versions(version, bound.version)
    return cmp < 0 or (cmp == 0 and bound.inclusive)


def is_version_in_range(version: str, version_range: VersionRange) -> bool:
    """Return True if ``version`` lies inside ``version_range``."""
    return _above_lower(version, version_range.min) and _below_upper(
        version, version_range.max
    )


def find_satisfying_versions(
    available: Sequence[str],
    requirements: Iterable[VersionRequirement],
) -> List[str]:
    """Filter ``available`` down to versions meeting every requirement.

    The requirements are intersected once; candidates are then tested
    against the merged range only. Input order is preserved.
    """
    merged = intersect(requirements)
    if merged is None:
        return []
    return [v for v in available if is_version_in_range(v, merged)]


def format_range(version_range: Optional[VersionRange]) -> str:
    """Render a range the way constraints are written in a Puppetfile.

    Examples:
        >>> format_range(VersionRange(Bound("1.0.0"), Bound("2.0.0", False)))
        '>= 1.0.0 < 2.0.0'
        >>> format_range(VersionRange(Bound("1.2.3"), Bound("1.2.3")))
        '= 1.2.3'
    """
    if version_range is None:
        return "none"
    if version_range.is_unbounded:
        return "any"
    if version_range.is_exact:
        return f"= {version_range.min.version}"

    parts: List[str] = []
    if version_range.min is not None:
        op = ">=" if version_range.min.inclusive else ">"
        parts.append(f"{op} {version_range.min.version}")
    if version_range.max is not None:
        op = "<=" if version_range.max.inclusive else "<"
        parts.append(f"{op} {version_range.max.version}")
    return " ".join(parts)
