"""
Custom exception hierarchy for puppetgraph.

This module defines structured exception types used across puppetgraph.
All exceptions inherit from :class:`PuppetGraphError` and support optional
structured metadata via the ``details`` attribute to improve diagnostics
and logging.

Version conflicts are *not* exceptions: they are returned as
:class:`~puppetgraph.models.conflict.Conflict` values attached to the
dependency tree.
"""

from __future__ import annotations

from typing import Any, Mapping, MutableMapping, Optional


class PuppetGraphError(Exception):
    """Base exception for all puppetgraph errors.

    All puppetgraph-specific exceptions should inherit from this class.
    It supports structured metadata via ``details`` for richer error
    reporting and debugging.

    Args:
        message: Human-readable error message.
        details: Optional structured metadata describing the error.
    """

    __slots__ = ("message", "details")

    def __init__(
        self,
        message: str,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.message: str = message
        # Internally normalize to a mutable dict
        self.details: MutableMapping[str, Any] = dict(details) if details else {}
        super().__init__(message)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        formatted = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{self.message} ({formatted})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, details={dict(self.details)!r})"
        )


def _add_if(details: MutableMapping[str, Any], key: str, value: Any) -> None:
    """Add a key to ``details`` only if ``value`` is not ``None``."""
    if value is not None:
        details[key] = value


def _truncate(text: str, max_length: int = 200) -> str:
    """Truncate long text for safe logging or error reporting."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


class ConfigError(PuppetGraphError):
    """Raised when a configuration file is missing, unreadable or invalid.

    Args:
        message: Error description.
        config_path: Path of the configuration file involved.
        option: Name of the offending option, if any.
    """

    __slots__ = ("config_path", "option")

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        option: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", config_path)
        _add_if(details, "option", option)

        super().__init__(message, details)

        self.config_path = config_path
        self.option = option


class InvalidModuleError(PuppetGraphError):
    """Raised when a module record cannot be used by the resolver.

    This covers records without a recognisable name and Git records that
    do not say where the repository lives.

    Args:
        message: Error description.
        module_name: Raw name carried by the record, if any.
    """

    __slots__ = ("module_name",)

    def __init__(
        self,
        message: str,
        *,
        module_name: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "module", module_name)

        super().__init__(message, details)

        self.module_name = module_name


class NetworkError(PuppetGraphError):
    """Raised when HTTP or network operations fail.

    Args:
        message: Error description.
        url: URL being accessed.
        status_code: HTTP status code, if available.
        response_body: Raw response body, truncated for safety.
    """

    __slots__ = ("url", "status_code", "response_body")

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "url", url)
        _add_if(details, "status_code", status_code)

        if response_body is not None:
            details["response"] = _truncate(response_body)

        super().__init__(message, details)

        self.url = url
        self.status_code = status_code
        self.response_body = response_body


class ForgeError(NetworkError):
    """Raised for failures related to the Puppet Forge API.

    Args:
        message: Error description.
        module_name: Name of the module involved.
        **kwargs: Additional arguments forwarded to ``NetworkError``.
    """

    __slots__ = ("module_name",)

    def __init__(
        self,
        message: str,
        *,
        module_name: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)

        self.module_name = module_name
        if module_name is not None:
            self.details["module"] = module_name
