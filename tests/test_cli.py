from __future__ import annotations

import sys
import json
import logging
from pathlib import Path
from typing import Iterator, List
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner, Result

from puppetgraph.cli import cli, main
from puppetgraph.config import PuppetGraphConfig
from puppetgraph.commands.check import _parse_records
from puppetgraph.exceptions import InvalidModuleError
from puppetgraph.utils.logger import LOGGER_NAMESPACE, is_logging_configured
from puppetgraph.models import (
    Conflict,
    ConflictType,
    DependencyNode,
    DependencyTree,
    ModuleSource,
    NodeState,
    SuggestedFix,
)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Run every test in an empty directory so no config file is discovered."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("PUPPETGRAPH_CONFIG", raising=False)
    yield tmp_path


@pytest.fixture
def clean_tree() -> DependencyTree:
    root = DependencyNode(
        module="puppetlabs-apache",
        resolved_version="12.0.0",
        is_direct_dependency=True,
        state=NodeState.RESOLVED,
        children=[
            DependencyNode(
                module="puppetlabs-stdlib",
                resolved_version="9.4.1",
                depth=1,
                version_requirement=">= 9.0.0 < 10.0.0",
                state=NodeState.RESOLVED,
            )
        ],
    )
    return DependencyTree(nodes=[root])


@pytest.fixture
def conflicted_tree() -> DependencyTree:
    conflict = Conflict(
        type=ConflictType.NO_INTERSECTION,
        details="No version of puppetlabs-stdlib satisfies all requirements:",
        suggested_fixes=[
            SuggestedFix(
                module="puppetlabs-concat",
                suggested_version="latest",
                reason="Update puppetlabs-concat",
            )
        ],
        module="puppetlabs-stdlib",
    )
    node = DependencyNode(
        module="puppetlabs-stdlib",
        resolved_version="8.6.0",
        is_direct_dependency=True,
        state=NodeState.CONFLICTED,
        conflict=conflict,
    )
    return DependencyTree(nodes=[node], conflicts={"puppetlabs-stdlib": conflict})


def _invoke(args: List[str]) -> Result:
    # Wide terminal so Rich tables do not fold module names
    return CliRunner(env={"COLUMNS": "200"}).invoke(cli, args)


# ============================================================================
# Argument parsing
# ============================================================================


@pytest.mark.unit
class TestParseRecords:
    """Tests for turning CLI arguments into module records."""

    def test_forge_modules_with_and_without_version(self) -> None:
        records = _parse_records(["puppetlabs/apache@12.0.0", "puppetlabs-stdlib"], [])

        assert [(r.key, r.version) for r in records] == [
            ("puppetlabs-apache", "12.0.0"),
            ("puppetlabs-stdlib", None),
        ]
        assert all(r.source is ModuleSource.FORGE for r in records)

    def test_git_module_with_ref(self) -> None:
        records = _parse_records(
            [], ["site=git@github.com:acme/site.git#production"]
        )

        assert len(records) == 1
        record = records[0]
        assert record.source is ModuleSource.GIT
        assert record.git_url == "git@github.com:acme/site.git"
        assert record.git_ref == "production"

    def test_git_module_without_ref(self) -> None:
        (record,) = _parse_records([], ["site=https://github.com/acme/site"])

        assert record.git_ref is None

    def test_git_modules_follow_forge_modules_in_given_order(self) -> None:
        records = _parse_records(
            ["puppetlabs/concat", "puppetlabs/apache"],
            [
                "acme/zeta=https://github.com/acme/zeta",
                "acme/alpha=https://github.com/acme/alpha",
            ],
        )

        assert [(r.key, r.source) for r in records] == [
            ("puppetlabs-concat", ModuleSource.FORGE),
            ("puppetlabs-apache", ModuleSource.FORGE),
            ("acme-zeta", ModuleSource.GIT),
            ("acme-alpha", ModuleSource.GIT),
        ]

    def test_malformed_git_option(self) -> None:
        import click

        with pytest.raises(click.BadParameter):
            _parse_records([], ["https://github.com/acme/site"])

    def test_blank_module_name(self) -> None:
        with pytest.raises(InvalidModuleError):
            _parse_records(["@1.0.0"], [])


# ============================================================================
# check command
# ============================================================================


@pytest.mark.unit
class TestCheckCommand:
    """Tests for ``puppetgraph check`` with the engine stubbed out."""

    def test_clean_tree_exits_zero(self, clean_tree: DependencyTree) -> None:
        with patch(
            "puppetgraph.commands.check._check_async",
            new=AsyncMock(return_value=clean_tree),
        ):
            result = _invoke(["check", "puppetlabs/apache@12.0.0"])

        assert result.exit_code == 0, result.output
        assert "No dependency conflicts found" in result.output

    def test_conflict_exits_one(self, conflicted_tree: DependencyTree) -> None:
        with patch(
            "puppetgraph.commands.check._check_async",
            new=AsyncMock(return_value=conflicted_tree),
        ):
            result = _invoke(["check", "puppetlabs/stdlib@8.6.0"])

        assert result.exit_code == 1
        assert "puppetlabs-stdlib" in result.output

    def test_fetch_error_exits_one(self, clean_tree: DependencyTree) -> None:
        clean_tree.errors["acme-missing"] = "Could not fetch releases: boom"

        with patch(
            "puppetgraph.commands.check._check_async",
            new=AsyncMock(return_value=clean_tree),
        ):
            result = _invoke(["check", "acme/missing"])

        assert result.exit_code == 1
        assert "acme-missing" in result.output

    def test_json_output(self, conflicted_tree: DependencyTree) -> None:
        with patch(
            "puppetgraph.commands.check._check_async",
            new=AsyncMock(return_value=conflicted_tree),
        ):
            result = _invoke(["check", "puppetlabs/stdlib", "--format", "json"])

        data = json.loads(result.stdout)
        assert data["modules"][0]["module"] == "puppetlabs-stdlib"
        assert data["conflicts"][0]["type"] == "no-intersection"

    def test_max_depth_overrides_config(self, clean_tree: DependencyTree) -> None:
        mock = AsyncMock(return_value=clean_tree)

        with patch("puppetgraph.commands.check._check_async", new=mock):
            _invoke(["check", "puppetlabs/apache", "--max-depth", "2"])

        records, config, depth = mock.await_args.args
        assert depth == 2
        assert isinstance(config, PuppetGraphConfig)
        assert records[0].key == "puppetlabs-apache"

    def test_max_depth_defaults_to_config(
        self, clean_tree: DependencyTree, isolated_cwd: Path
    ) -> None:
        (isolated_cwd / "puppetgraph.toml").write_text(
            "[puppetgraph]\nmax_depth = 4\n", encoding="utf-8"
        )
        mock = AsyncMock(return_value=clean_tree)

        with patch("puppetgraph.commands.check._check_async", new=mock):
            _invoke(["check", "puppetlabs/apache"])

        assert mock.await_args.args[2] == 4

    def test_requires_a_module(self) -> None:
        result = _invoke(["check"])

        assert result.exit_code == 2

    def test_invalid_config_exits_one(self, isolated_cwd: Path) -> None:
        (isolated_cwd / "puppetgraph.toml").write_text(
            "[puppetgraph]\nbogus = 1\n", encoding="utf-8"
        )

        result = _invoke(["check", "puppetlabs/apache"])

        assert result.exit_code == 1


# ============================================================================
# Logging state
# ============================================================================


@pytest.mark.unit
class TestLoggingIsolation:
    """CLI runs install handlers; later tests must not inherit them."""

    def test_cli_configures_logging(self, clean_tree: DependencyTree) -> None:
        with patch(
            "puppetgraph.commands.check._check_async",
            new=AsyncMock(return_value=clean_tree),
        ):
            result = _invoke(["-v", "check", "puppetlabs/apache"])

        assert result.exit_code == 0, result.output
        assert is_logging_configured() is True

    def test_handlers_do_not_leak_into_next_test(self) -> None:
        root_logger = logging.getLogger(LOGGER_NAMESPACE)

        assert is_logging_configured() is False
        assert not any(
            type(h) is logging.StreamHandler for h in root_logger.handlers
        )
        assert root_logger.propagate is True


# ============================================================================
# main() entry point
# ============================================================================


@pytest.mark.unit
class TestMainEntryPoint:
    """Tests for the exit codes returned by ``main``."""

    def test_version_returns_zero(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "argv", ["puppetgraph", "--version"])

        assert main() == 0

    def test_usage_error_returns_two(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "argv", ["puppetgraph", "check"])

        assert main() == 2

    def test_puppetgraph_error_returns_one(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(sys, "argv", ["puppetgraph", "check", "/"])

        assert main() == 1

    def test_conflicts_return_one(
        self, monkeypatch: pytest.MonkeyPatch, conflicted_tree: DependencyTree
    ) -> None:
        monkeypatch.setattr(sys, "argv", ["puppetgraph", "check", "puppetlabs/stdlib"])

        with patch(
            "puppetgraph.commands.check._check_async",
            new=AsyncMock(return_value=conflicted_tree),
        ):
            assert main() == 1

    def test_keyboard_interrupt_returns_130(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(sys, "argv", ["puppetgraph", "check", "puppetlabs/stdlib"])

        with patch(
            "puppetgraph.commands.check._check_async",
            new=AsyncMock(side_effect=KeyboardInterrupt),
        ):
            assert main() == 130
