"""
Utility helpers for puppetgraph.

This package provides reusable utilities used across puppetgraph, including:

- Console output helpers (Rich-based)
- Logging configuration and retrieval
- Async HTTP client utilities
- Version constraint parsing and comparison
- Module name normalization

Only symbols listed in ``__all__`` are considered part of the public API.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Logging utilities
# ---------------------------------------------------------------------------

from puppetgraph.utils.logger import (
    disable_logging,
    get_logger,
    is_logging_configured,
    setup_logging,
)

# ---------------------------------------------------------------------------
# Console utilities
# ---------------------------------------------------------------------------

from puppetgraph.utils.console import (
    colorize_conflict_type,
    get_raw_console,
    print_error,
    print_success,
    print_table,
    print_warning,
    reconfigure_console,
)

# ---------------------------------------------------------------------------
# HTTP utilities
# ---------------------------------------------------------------------------

from puppetgraph.utils.http import HTTPClient

# ---------------------------------------------------------------------------
# Module name utilities
# ---------------------------------------------------------------------------

from puppetgraph.utils.module_names import (
    are_equivalent,
    get_module_name_variants,
    parse_module_name,
    to_canonical_format,
    to_dash_format,
    to_slash_format,
)

# ---------------------------------------------------------------------------
# Version utilities
# ---------------------------------------------------------------------------

from puppetgraph.utils.version_utils import (
    compare_versions,
    find_satisfying_versions,
    format_range,
    intersect,
    parse_constraint,
    satisfies,
    sort_versions,
)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    # Console
    "print_error",
    "print_table",
    "print_success",
    "print_warning",
    "get_raw_console",
    "reconfigure_console",
    "colorize_conflict_type",
    # Logging
    "get_logger",
    "setup_logging",
    "disable_logging",
    "is_logging_configured",
    # HTTP
    "HTTPClient",
    # Module names
    "parse_module_name",
    "to_canonical_format",
    "to_slash_format",
    "to_dash_format",
    "get_module_name_variants",
    "are_equivalent",
    # Versions
    "parse_constraint",
    "compare_versions",
    "sort_versions",
    "satisfies",
    "intersect",
    "find_satisfying_versions",
    "format_range",
]
