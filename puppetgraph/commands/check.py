"""Check command implementation for puppetgraph.

Resolves the transitive dependency graph of a set of Puppetfile modules
and reports version conflicts.

Modules are given on the command line as already-parsed records, since
puppetgraph does not read Puppetfile syntax:

- ``owner/name`` or ``owner-name`` for an unpinned Forge module
- ``owner/name@1.2.3`` for a Forge module pinned to a version
- ``--git name=URL`` or ``--git name=URL#REF`` for a Git module

The command wires the engine together the same way every caller should:
one :class:`HTTPClient`, one :class:`MetadataCache` injected into the
:class:`DependencyTreeBuilder`, and a :class:`ProgressChannel` drained
while the build runs.

Typical usage::

    $ puppetgraph check puppetlabs/apache@12.0.0 puppetlabs/stdlib@8.6.0
    $ puppetgraph check puppetlabs/concat --git site=git@github.com:me/site.git#prod
    $ puppetgraph check puppetlabs/apache --format json > tree.json
"""

from __future__ import annotations

import json
import click
import asyncio
from typing import Dict, List, Optional, Sequence, Tuple

from puppetgraph.config import PuppetGraphConfig
from puppetgraph.context import pass_context, PuppetGraphContext
from puppetgraph.models import (
    DependencyTree,
    ModuleRecord,
    ModuleSource,
)
from puppetgraph.core import (
    CancellationToken,
    DependencyTreeBuilder,
    ForgeClient,
    GitMetadataClient,
    MetadataCache,
    ProgressChannel,
)
from puppetgraph.utils import (
    HTTPClient,
    colorize_conflict_type,
    get_logger,
    get_raw_console,
    print_error,
    print_success,
    print_table,
    print_warning,
)

logger = get_logger("commands.check")


@click.command()
@click.argument("modules", nargs=-1)
@click.option(
    "--git",
    "git_modules",
    multiple=True,
    metavar="NAME=URL[#REF]",
    help="Git-sourced module; may be repeated. Listed after MODULES.",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.option(
    "--max-depth",
    type=click.IntRange(min=1),
    default=None,
    help="Stop expanding dependencies below this depth.",
)
@pass_context
def check(
    ctx: PuppetGraphContext,
    modules: Tuple[str, ...],
    git_modules: Tuple[str, ...],
    format: str,
    max_depth: Optional[int],
) -> None:
    """Resolve MODULES and report dependency conflicts.

    Forge modules are reported first and Git modules after them, each
    group in the order given on the command line.

    Exits with status 1 when a conflict or a fetch error was found.
    """
    records = _parse_records(modules, git_modules)
    if not records:
        raise click.UsageError("Give at least one module or --git module.")

    config = ctx.config
    depth = max_depth or config.max_depth

    tree = asyncio.run(
        _check_async(records, config, depth, show_progress=format == "table")
    )

    if format == "json":
        click.echo(json.dumps(tree.to_json(), indent=2))
    else:
        _display_table(tree)

    failed = tree.has_conflicts() or bool(tree.errors)
    click.get_current_context().exit(1 if failed else 0)


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _parse_records(
    modules: Sequence[str],
    git_modules: Sequence[str],
) -> List[ModuleRecord]:
    """Turn CLI arguments into validated :class:`ModuleRecord` objects.

    Forge records come first, then Git records, each in argument order.

    Raises:
        click.BadParameter: A ``--git`` value is not ``NAME=URL[#REF]``.
        InvalidModuleError: A module has no usable name.
    """
    records: List[ModuleRecord] = []

    for spec in modules:
        name, _, version = spec.partition("@")
        records.append(ModuleRecord(name=name, version=version or None))

    for spec in git_modules:
        name, sep, location = spec.partition("=")
        if not sep or not location:
            raise click.BadParameter(
                f"expected NAME=URL[#REF], got {spec!r}", param_hint="--git"
            )
        url, _, ref = location.partition("#")
        records.append(
            ModuleRecord(
                name=name,
                source=ModuleSource.GIT,
                git_url=url,
                git_ref=ref or None,
            )
        )

    return records


# ---------------------------------------------------------------------------
# Async orchestration
# ---------------------------------------------------------------------------


async def _check_async(
    records: List[ModuleRecord],
    config: PuppetGraphConfig,
    max_depth: int,
    *,
    show_progress: bool,
) -> DependencyTree:
    token = CancellationToken()
    progress = ProgressChannel()

    async with HTTPClient(timeout=config.timeout) as http:
        cache = MetadataCache(ForgeClient(http, base_url=config.forge_url))
        builder = DependencyTreeBuilder(
            cache,
            git_source=GitMetadataClient(http),
            max_depth=max_depth,
            batch_size=config.batch_size,
            batch_pause=config.batch_pause,
        )

        build = asyncio.ensure_future(
            builder.build(records, token=token, progress=progress)
        )
        try:
            await _drain_progress(progress, show_progress)
            return await build
        except asyncio.CancelledError:
            token.cancel()
            raise


async def _drain_progress(progress: ProgressChannel, show: bool) -> None:
    console = get_raw_console()
    if not show or not console.is_terminal:
        async for event in progress:
            logger.debug("[%s] %s", event.phase, event.message)
        return

    with console.status("Resolving dependencies...") as status:
        async for event in progress:
            status.update(f"[{event.phase}] {event.message}")


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------


def _display_table(tree: DependencyTree) -> None:
    if tree.cancelled:
        print_warning("Resolution was cancelled; results are partial")

    roots = [
        {
            "Module": node.display_name or node.module,
            "Version": node.resolved_version or "-",
            "Source": node.source.value,
            "Dependencies": str(sum(1 for _ in node.walk()) - 1),
            "Status": node.state.value,
        }
        for node in tree.nodes
    ]
    print_table(roots, title="Declared modules")

    conflicts = tree.all_conflicts()
    if conflicts:
        rows: List[Dict[str, str]] = []
        for conflict in conflicts:
            fixes = "\n".join(
                f"{fix.module} -> {fix.suggested_version}: {fix.reason}"
                for fix in conflict.suggested_fixes
            )
            rows.append(
                {
                    "Module": conflict.module or "-",
                    "Type": colorize_conflict_type(conflict.type.value),
                    "Details": conflict.details,
                    "Suggested fixes": fixes or "-",
                }
            )
        print_table(
            rows,
            title="Conflicts",
            column_styles={"Module": {"style": "module", "no_wrap": True}},
            show_row_lines=True,
        )

    for module, message in tree.errors.items():
        print_error(f"{module}: {message}")

    if not conflicts and not tree.errors:
        print_success("No dependency conflicts found")
