"""
Shared context object for puppetgraph CLI commands.

One :class:`PuppetGraphContext` is created per invocation by the root
command and handed to subcommands through Click's context mechanism.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from puppetgraph.config import PuppetGraphConfig


class PuppetGraphContext:
    """Global context object for puppetgraph CLI commands.

    Attributes:
        config_path: Configuration file in use, if any.
        config: Loaded configuration (defaults until the root command runs).
        verbose: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG).
        color: Whether colored terminal output is enabled.
    """

    __slots__ = ("config_path", "config", "verbose", "color")

    def __init__(self) -> None:
        self.config_path: Optional[Path] = None
        self.config: PuppetGraphConfig = PuppetGraphConfig()
        self.verbose: int = 0
        self.color: bool = True


#: Click decorator for injecting :class:`PuppetGraphContext` into commands.
pass_context = click.make_pass_decorator(PuppetGraphContext, ensure=True)
