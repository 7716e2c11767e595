"""
Module name normalization for puppetgraph.

Puppet module names show up in several spellings:

- ``puppetlabs/stdlib`` in a Puppetfile,
- ``puppetlabs-stdlib`` in Forge API responses and ``metadata.json``,
- ``puppet/nginx`` for modules that moved from ``puppetlabs/puppet-nginx``.

Every cache key and every requirement map in puppetgraph is indexed by
the canonical form returned by :func:`to_canonical_format`.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass
from typing import List

UNKNOWN_OWNER = "unknown"

_LEGACY_OWNER = "puppetlabs"
_SHORT_OWNER = "puppet"
_LEGACY_PREFIX = "puppet-"


@dataclass(frozen=True)
class ModuleNameParts:
    """Owner and name of a module as written, plus ``owner/name``."""

    owner: str
    name: str
    full_name: str


class ModuleNameFormat(Enum):
    """Spellings :func:`to_format` can produce."""

    SLASH = "slash"
    DASH = "dash"
    CANONICAL = "canonical"


def parse_module_name(module_name: str) -> ModuleNameParts:
    """Split a module name into owner and name.

    A ``/`` takes precedence over a ``-``; a name with neither gets the
    owner ``"unknown"``. Case is preserved.

    Examples:
        >>> parse_module_name("puppetlabs/stdlib").owner
        'puppetlabs'
        >>> parse_module_name("puppet-nginx").name
        'nginx'
    """
    text = module_name.strip()

    if "/" in text:
        owner, _, name = text.partition("/")
    elif "-" in text:
        owner, _, name = text.partition("-")
    else:
        owner, name = UNKNOWN_OWNER, text

    return ModuleNameParts(owner=owner, name=name, full_name=f"{owner}/{name}")


def to_canonical_format(module_name: str) -> str:
    """Return the lowercase ``owner-name`` key used throughout puppetgraph.

    Example:
        >>> to_canonical_format("Puppetlabs/StdLib")
        'puppetlabs-stdlib'
    """
    return to_dash_format(module_name).lower()


def to_slash_format(module_name: str) -> str:
    """Return the Puppetfile spelling, ``owner/name``."""
    return parse_module_name(module_name).full_name


def to_dash_format(module_name: str) -> str:
    """Return the Forge API spelling, ``owner-name``, case preserved."""
    parts = parse_module_name(module_name)
    return f"{parts.owner}-{parts.name}"


def to_format(module_name: str, fmt: ModuleNameFormat) -> str:
    if fmt is ModuleNameFormat.SLASH:
        return to_slash_format(module_name)
    if fmt is ModuleNameFormat.DASH:
        return to_dash_format(module_name)
    if fmt is ModuleNameFormat.CANONICAL:
        return to_canonical_format(module_name)
    raise ValueError(f"Unsupported module name format: {fmt!r}")


def get_module_name_variants(module_name: str) -> List[str]:
    """Return the spellings worth trying when looking a module up.

    The list starts with the slash, dash and canonical forms of the input.
    ``puppetlabs/puppet-X`` additionally yields ``puppet/X`` and
    ``puppet-X``; ``puppet/X`` additionally yields
    ``puppetlabs/puppet-X`` and ``puppetlabs-puppet-X``. Duplicates are
    dropped and order is preserved.
    """
    parts = parse_module_name(module_name)
    candidates = [
        to_slash_format(module_name),
        to_dash_format(module_name),
        to_canonical_format(module_name),
    ]

    owner = parts.owner.lower()
    if owner == _LEGACY_OWNER and parts.name.lower().startswith(_LEGACY_PREFIX):
        short_name = parts.name[len(_LEGACY_PREFIX):]
        candidates.extend(
            [
                f"{_SHORT_OWNER}/{short_name}",
                f"{_SHORT_OWNER}-{short_name}",
                f"{_SHORT_OWNER}-{short_name}".lower(),
            ]
        )

    if owner == _SHORT_OWNER:
        candidates.extend(
            [
                f"{_LEGACY_OWNER}/{_LEGACY_PREFIX}{parts.name}",
                f"{_LEGACY_OWNER}-{_LEGACY_PREFIX}{parts.name}",
                f"{_LEGACY_OWNER}-{_LEGACY_PREFIX}{parts.name}".lower(),
            ]
        )

    return list(dict.fromkeys(candidates))


def are_equivalent(first: str, second: str) -> bool:
    """Return True if two spellings name the same module.

    Example:
        >>> are_equivalent("puppetlabs/puppet-nginx", "puppet/nginx")
        True
    """
    if to_canonical_format(first) == to_canonical_format(second):
        return True

    keys = {to_canonical_format(v) for v in get_module_name_variants(first)}
    return any(to_canonical_format(v) in keys for v in get_module_name_variants(second))


def get_owner(module_name: str) -> str:
    return parse_module_name(module_name).owner


def get_module_name(module_name: str) -> str:
    return parse_module_name(module_name).name
