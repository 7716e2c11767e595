from __future__ import annotations

import json
import pytest
import asyncio
from typing import List

from puppetgraph.core.dependency_tree import DependencyTreeBuilder
from puppetgraph.core.metadata_cache import MetadataCache
from puppetgraph.core.progress import (
    CancellationToken,
    ProgressChannel,
    ProgressEvent,
    ProgressPhase,
)
from puppetgraph.models import (
    ConflictType,
    DependencySpec,
    GitModuleMetadata,
    ModuleRecord,
    ModuleSource,
    NodeState,
)

STDLIB = ("puppetlabs/stdlib", ">= 9.0.0 < 10.0.0")


@pytest.fixture
def forge(make_forge, make_release):
    release = make_release
    return make_forge(
        {
            "puppetlabs-apache": [
                release(
                    "12.0.0", STDLIB, ("puppetlabs/concat", ">= 7.0.0 < 10.0.0")
                ),
                release("11.1.0", STDLIB),
            ],
            "puppetlabs-concat": [release("9.0.2", STDLIB), release("7.4.0")],
            "puppetlabs-stdlib": [
                release("10.0.0"),
                release("9.4.1", ("acme/deep", None)),
                release("9.0.0"),
                release("8.6.0"),
            ],
            "acme-deep": [release("0.1.0")],
            "acme-a": [release("1.0.0", ("acme/b", ">= 1.0.0"))],
            "acme-b": [release("1.0.0", ("acme/a", ">= 1.0.0"))],
            "acme-web": [release("2.0.0")],
            "acme-ghost": [],
        },
        failing=["acme-broken"],
    )


@pytest.fixture
def builder(forge) -> DependencyTreeBuilder:
    return DependencyTreeBuilder(MetadataCache(forge), batch_pause=0)


async def _collect(progress: ProgressChannel) -> List[ProgressEvent]:
    return [event async for event in progress]


@pytest.mark.unit
class TestBuilderConstruction:
    def test_rejects_zero_depth(self, forge) -> None:
        with pytest.raises(ValueError):
            DependencyTreeBuilder(MetadataCache(forge), max_depth=0)


@pytest.mark.unit
class TestResolution:
    """Tests for a clean build."""

    @pytest.mark.asyncio
    async def test_resolves_transitive_dependencies(
        self, builder: DependencyTreeBuilder
    ) -> None:
        tree = await builder.build([ModuleRecord("puppetlabs/apache", "12.0.0")])

        assert not tree.has_conflicts()
        assert tree.errors == {}
        assert tree.cancelled is False

        (apache,) = tree.nodes
        assert apache.module == "puppetlabs-apache"
        assert apache.display_name == "puppetlabs/apache"
        assert apache.resolved_version == "12.0.0"
        assert apache.is_direct_dependency is True
        assert apache.state is NodeState.RESOLVED
        assert [c.module for c in apache.children] == [
            "puppetlabs-stdlib",
            "puppetlabs-concat",
        ]

        stdlib, concat = apache.children
        assert stdlib.resolved_version == "9.4.1"
        assert stdlib.depth == 1
        assert stdlib.version_requirement == ">= 9.0.0 < 10.0.0"
        assert stdlib.display_version == ">= 9.0.0 < 10.0.0"
        assert concat.resolved_version == "9.0.2"
        assert [c.module for c in concat.children] == ["puppetlabs-stdlib"]

    @pytest.mark.asyncio
    async def test_records_requirements_with_paths(
        self, builder: DependencyTreeBuilder
    ) -> None:
        tree = await builder.build([ModuleRecord("puppetlabs/apache", "12.0.0")])

        pin = tree.requirements["puppetlabs-apache"]
        assert [(r.constraint, r.imposed_by) for r in pin] == [
            ("= 12.0.0", "Puppetfile")
        ]
        assert pin[0].is_direct_dependency is True

        on_stdlib = tree.requirements["puppetlabs-stdlib"]
        assert [r.imposed_by for r in on_stdlib] == [
            "puppetlabs-apache",
            "puppetlabs-concat",
        ]
        assert on_stdlib[1].path == ("puppetlabs-apache", "puppetlabs-concat")
        assert "acme-deep" not in tree.requirements

    @pytest.mark.asyncio
    async def test_unpinned_root_uses_latest(
        self, builder: DependencyTreeBuilder
    ) -> None:
        tree = await builder.build([ModuleRecord("puppetlabs-concat")])

        assert tree.nodes[0].resolved_version == "9.0.2"
        assert "puppetlabs-concat" not in tree.requirements

    @pytest.mark.asyncio
    async def test_max_depth_stops_expansion(self, forge) -> None:
        builder = DependencyTreeBuilder(
            MetadataCache(forge), max_depth=1, batch_pause=0
        )

        tree = await builder.build([ModuleRecord("puppetlabs/apache", "11.1.0")])

        (stdlib,) = tree.nodes[0].children
        assert stdlib.resolved_version == "9.4.1"
        assert stdlib.state is NodeState.RESOLVED
        assert stdlib.children == []
        assert "acme-deep" not in forge.calls

    @pytest.mark.asyncio
    async def test_json_output_is_serializable(
        self, builder: DependencyTreeBuilder
    ) -> None:
        tree = await builder.build([ModuleRecord("puppetlabs/apache", "12.0.0")])

        data = json.loads(json.dumps(tree.to_json()))

        assert data["modules"][0]["version"] == "12.0.0"
        assert data["modules"][0]["children"][0]["module"] == "puppetlabs-stdlib"
        assert data["conflicts"] == []


@pytest.mark.unit
class TestConflicts:
    """Tests for conflict detection."""

    @pytest.mark.asyncio
    async def test_pin_against_transitive_requirement(
        self, builder: DependencyTreeBuilder
    ) -> None:
        tree = await builder.build(
            [
                ModuleRecord("puppetlabs/concat", "9.0.2"),
                ModuleRecord("puppetlabs/stdlib", "8.6.0"),
            ]
        )

        assert tree.has_conflicts()
        conflict = tree.conflicts["puppetlabs-stdlib"]
        assert conflict.type is ConflictType.NO_INTERSECTION

        stdlib_nodes = tree.find("puppetlabs/stdlib")
        assert len(stdlib_nodes) == 2
        assert all(n.state is NodeState.CONFLICTED for n in stdlib_nodes)
        assert all(n.conflict is conflict for n in stdlib_nodes)
        assert all(n.resolved_version == "8.6.0" for n in stdlib_nodes)

        fix = conflict.suggested_fixes[0]
        assert fix.module == "puppetlabs-stdlib"
        assert fix.current_version == "8.6.0"
        assert fix.suggested_version == "9.4.1"
        assert tree.nodes[0].state is NodeState.RESOLVED

    @pytest.mark.asyncio
    async def test_unpublished_pin(self, builder: DependencyTreeBuilder) -> None:
        tree = await builder.build([ModuleRecord("puppetlabs/stdlib", "1.2.3")])

        (node,) = tree.nodes
        assert node.resolved_version == "1.2.3"
        assert node.children == []
        assert node.state is NodeState.CONFLICTED
        assert node.conflict.type is ConflictType.NO_AVAILABLE_VERSION

    @pytest.mark.asyncio
    async def test_circular_dependency(self, builder: DependencyTreeBuilder) -> None:
        tree = await builder.build([ModuleRecord("acme/a")])

        assert tree.conflicts == {}
        (circular,) = tree.circular
        assert circular.type is ConflictType.CIRCULAR
        assert circular.details == (
            "Circular dependency detected: acme-a -> acme-b -> acme-a"
        )
        assert circular.suggested_fixes[0].module == "acme-b"

        a = tree.nodes[0]
        b = a.children[0]
        (repeat,) = b.children
        assert a.state is NodeState.RESOLVED
        assert repeat.module == "acme-a"
        assert repeat.state is NodeState.CONFLICTED
        assert repeat.children == []
        assert tree.all_conflicts() == [circular]

    @pytest.mark.asyncio
    async def test_circular_conflicts_are_deduplicated(
        self, builder: DependencyTreeBuilder
    ) -> None:
        tree = await builder.build([ModuleRecord("acme/a"), ModuleRecord("acme-a")])

        assert len(tree.nodes) == 2
        assert len(tree.circular) == 1


@pytest.mark.unit
class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_fetch_error_marks_node_errored(
        self, builder: DependencyTreeBuilder
    ) -> None:
        tree = await builder.build(
            [ModuleRecord("acme/broken"), ModuleRecord("acme/web")]
        )

        broken, web = tree.nodes
        assert broken.state is NodeState.ERRORED
        assert broken.error.startswith("Could not fetch releases:")
        assert tree.errors["acme-broken"] == broken.error
        assert web.state is NodeState.RESOLVED
        assert web.resolved_version == "2.0.0"

    @pytest.mark.asyncio
    async def test_module_without_releases(
        self, builder: DependencyTreeBuilder
    ) -> None:
        tree = await builder.build([ModuleRecord("acme/ghost")])

        assert tree.nodes[0].state is NodeState.ERRORED
        assert tree.errors == {
            "acme-ghost": "No releases of acme-ghost found on the Forge"
        }


@pytest.mark.unit
class TestGitModules:
    """Tests for Git-sourced Puppetfile entries."""

    URL = "https://github.com/acme/site"

    @staticmethod
    def _record(ref=None) -> ModuleRecord:
        return ModuleRecord(
            "site", source=ModuleSource.GIT, git_url=TestGitModules.URL, git_ref=ref
        )

    @pytest.mark.asyncio
    async def test_dependencies_are_informational(
        self, forge, make_git_source
    ) -> None:
        git = make_git_source(
            {
                self.URL: GitModuleMetadata(
                    name="acme-site",
                    version="3.0.0",
                    dependencies=[DependencySpec("puppetlabs/stdlib", ">= 100.0.0")],
                )
            }
        )
        builder = DependencyTreeBuilder(
            MetadataCache(forge), git_source=git, batch_pause=0
        )

        tree = await builder.build([self._record("prod")])

        (site,) = tree.nodes
        assert site.source is ModuleSource.GIT
        assert site.resolved_version == "prod"
        assert site.state is NodeState.RESOLVED
        assert site.conflict is None
        assert site.children[0].module == "puppetlabs-stdlib"
        assert site.children[0].resolved_version == "10.0.0"
        assert not tree.has_conflicts()
        assert "puppetlabs-stdlib" not in tree.requirements
        assert git.calls == [(self.URL, "prod")]

    @pytest.mark.asyncio
    async def test_version_falls_back_to_metadata(
        self, forge, make_git_source
    ) -> None:
        git = make_git_source({self.URL: GitModuleMetadata("acme-site", "3.0.0")})
        builder = DependencyTreeBuilder(
            MetadataCache(forge), git_source=git, batch_pause=0
        )

        tree = await builder.build([self._record()])

        assert tree.nodes[0].resolved_version == "3.0.0"
        assert tree.nodes[0].children == []

    @pytest.mark.asyncio
    async def test_missing_metadata_or_source(self, forge, make_git_source) -> None:
        for git_source in (make_git_source({}), None):
            builder = DependencyTreeBuilder(
                MetadataCache(forge), git_source=git_source, batch_pause=0
            )

            tree = await builder.build([self._record("main")])

            (site,) = tree.nodes
            assert site.state is NodeState.RESOLVED
            assert site.children == []
            assert tree.errors == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("forge_releases", [["1.0.0"], []])
    async def test_forge_dependency_on_git_module_is_informational(
        self, make_forge, make_release, make_git_source, forge_releases
    ) -> None:
        forge = make_forge(
            {
                "puppetlabs-web": [make_release("1.0.0", ("acme/app", ">= 2.0.0"))],
                "acme-app": [make_release(v) for v in forge_releases],
            }
        )
        builder = DependencyTreeBuilder(
            MetadataCache(forge), git_source=make_git_source({}), batch_pause=0
        )
        app = ModuleRecord(
            "acme/app", source=ModuleSource.GIT, git_url=self.URL, git_tag="v3.0.0"
        )

        tree = await builder.build([ModuleRecord("puppetlabs/web"), app])

        assert forge.calls == ["puppetlabs-web"]
        assert tree.conflicts == {}
        assert tree.errors == {}
        assert "acme-app" not in tree.requirements

        (dependency,) = tree.nodes[0].children
        assert dependency.module == "acme-app"
        assert dependency.source is ModuleSource.GIT
        assert dependency.resolved_version == "v3.0.0"
        assert dependency.version_requirement == ">= 2.0.0"
        assert dependency.state is NodeState.RESOLVED
        assert dependency.conflict is None
        assert [n.source for n in tree.find("acme-app")] == [ModuleSource.GIT] * 2

@pytest.mark.unit
class TestCancellationAndProgress:
    @pytest.mark.asyncio
    async def test_cancelled_before_start(
        self, builder: DependencyTreeBuilder, forge
    ) -> None:
        token = CancellationToken()
        token.cancel()
        progress = ProgressChannel()

        tree = await builder.build(
            [ModuleRecord("acme/web")], token=token, progress=progress
        )

        assert tree.cancelled is True
        assert tree.nodes == []
        assert forge.calls == []
        assert progress.closed

    @pytest.mark.asyncio
    async def test_cancelled_mid_walk_returns_partial_tree(self, forge) -> None:
        token = CancellationToken()
        fetch = forge.fetch_releases

        async def fetch_and_cancel(module: str):
            if module == "acme-a":
                token.cancel()
            return await fetch(module)

        forge.fetch_releases = fetch_and_cancel
        builder = DependencyTreeBuilder(MetadataCache(forge), warm_roots=False)

        tree = await builder.build(
            [ModuleRecord("acme/web"), ModuleRecord("acme/a"), ModuleRecord("x/y")],
            token=token,
        )

        assert tree.cancelled is True
        assert [n.module for n in tree.nodes] == ["acme-web", "acme-a"]
        assert tree.nodes[1].children == []
        assert forge.calls == ["acme-web", "acme-a"]
        assert tree.circular == []

    @pytest.mark.asyncio
    async def test_progress_phases_in_order(
        self, builder: DependencyTreeBuilder
    ) -> None:
        progress = ProgressChannel()

        await builder.build(
            [ModuleRecord("puppetlabs/apache", "12.0.0")], progress=progress
        )
        events = await _collect(progress)

        phases = list(dict.fromkeys(e.phase for e in events))
        assert phases == [
            ProgressPhase.WARM,
            ProgressPhase.TREE,
            ProgressPhase.CONFLICTS,
        ]
        assert events[-1].message == "Conflict analysis complete"
        assert progress.closed

    @pytest.mark.asyncio
    async def test_concurrent_builds_share_fetches(
        self, builder: DependencyTreeBuilder, forge
    ) -> None:
        first, second = await asyncio.gather(
            builder.build([ModuleRecord("puppetlabs/apache", "12.0.0")]),
            builder.build([ModuleRecord("puppetlabs/apache", "11.1.0")]),
        )

        assert first.nodes[0].resolved_version == "12.0.0"
        assert second.nodes[0].resolved_version == "11.1.0"
        assert forge.calls.count("puppetlabs-apache") == 1
        assert forge.calls.count("puppetlabs-stdlib") == 1
