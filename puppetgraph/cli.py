"""
Command-line interface for puppetgraph.

This module provides the main CLI entry point and handles global options,
configuration loading, and command registration.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import click

from puppetgraph.config import CONFIG_ENV_VAR, load_config
from puppetgraph.__version__ import __version__
from puppetgraph.context import PuppetGraphContext
from puppetgraph.commands.check import check
from puppetgraph.exceptions import ConfigError, PuppetGraphError
from puppetgraph.utils.logger import get_logger, setup_logging
from puppetgraph.utils.console import print_error, print_warning, reconfigure_console

logger = get_logger("cli")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file.",
    envvar=CONFIG_ENV_VAR,
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv).",
)
@click.option(
    "--color/--no-color",
    default=True,
    help="Enable or disable colored output.",
    envvar="PUPPETGRAPH_COLOR",
)
@click.version_option(
    version=__version__,
    prog_name="puppetgraph",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: int,
    color: bool,
) -> None:
    """puppetgraph: dependency resolution and conflict detection for Puppetfiles.

    \b
    Available commands:
      puppetgraph check            Resolve modules and report conflicts

    \b
    Examples:
      puppetgraph check puppetlabs/apache@12.0.0 puppetlabs/stdlib@9.4.1
      puppetgraph check --git mymod=https://github.com/me/mymod#v1.0.0
      puppetgraph -v check puppetlabs/concat --format json

    Use ``puppetgraph COMMAND --help`` for command-specific options.
    """
    _configure_logging(verbose)

    try:
        loaded_config = load_config(config)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    pg_ctx = PuppetGraphContext()
    pg_ctx.config_path = config or loaded_config.source_path
    pg_ctx.config = loaded_config
    pg_ctx.color = color
    pg_ctx.verbose = verbose
    ctx.obj = pg_ctx

    # Respect NO_COLOR for downstream libraries
    if color:
        os.environ.pop("NO_COLOR", None)
    else:
        os.environ["NO_COLOR"] = "1"
    reconfigure_console()

    logger.debug("puppetgraph v%s", __version__)
    logger.debug("Config path: %s", pg_ctx.config_path)
    logger.debug("Configuration: %s", loaded_config.to_log_dict())


def _configure_logging(verbose: int) -> None:
    if verbose <= 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    setup_logging(level=level, verbose=verbose >= 2)
    logger.debug("Logging initialized at %s level", logging.getLevelName(level))


cli.add_command(check)


def main() -> int:
    """Main entry point for the puppetgraph CLI.

    Returns:
        Exit code:
            0   Success, no conflicts
            1   Conflicts or fetch errors found, or an application error
            2   Usage error (Click)
            130 Interrupted by user (Ctrl+C)
    """
    try:
        # Without standalone mode Click returns ctx.exit() codes instead of exiting
        exit_code = cli(standalone_mode=False)
        return exit_code if isinstance(exit_code, int) else 0

    except click.ClickException as exc:
        exc.show()
        return exc.exit_code

    except click.exceptions.Abort:
        print_warning("\nOperation cancelled by user")
        return 130

    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 1

    except PuppetGraphError as exc:
        print_error(str(exc))
        logger.debug(
            "PuppetGraphError details: %s",
            exc.details or "<none>",
            exc_info=True,
        )
        return 1

    except KeyboardInterrupt:
        print_warning("\nOperation cancelled by user")
        return 130

    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in CLI")
        return 1


if __name__ == "__main__":
    sys.exit(main())
