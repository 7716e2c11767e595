"""In-memory stand-ins for the Forge and Git collaborators."""

from __future__ import annotations

import pytest
import asyncio
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from puppetgraph.exceptions import ForgeError
from puppetgraph.utils.module_names import to_canonical_format
from puppetgraph.models.module import (
    DependencySpec,
    GitModuleMetadata,
    ReleaseMetadata,
)


def release(version: str, *deps: Tuple[str, Optional[str]]) -> ReleaseMetadata:
    return ReleaseMetadata(
        version=version,
        dependencies=[DependencySpec(name, req) for name, req in deps],
    )


class FakeForge:
    """Serves release lists from a dict and records every fetch.

    Modules listed in ``failing`` raise :class:`ForgeError`. When ``gate``
    is set, every fetch waits on it before answering.
    """

    def __init__(
        self,
        releases: Dict[str, Sequence[ReleaseMetadata]],
        failing: Sequence[str] = (),
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.releases = {to_canonical_format(k): list(v) for k, v in releases.items()}
        self.failing = {to_canonical_format(m) for m in failing}
        self.gate = gate
        self.calls: List[str] = []

    async def fetch_releases(self, module: str) -> List[ReleaseMetadata]:
        self.calls.append(module)
        if self.gate is not None:
            await self.gate.wait()
        if module in self.failing:
            raise ForgeError(f"Forge unavailable for {module}", module_name=module)
        return list(self.releases.get(module, []))


class FakeGitSource:
    def __init__(self, metadata: Dict[str, GitModuleMetadata]) -> None:
        self.metadata = metadata
        self.calls: List[Tuple[str, Optional[str]]] = []

    async def get_metadata_with_fallback(
        self, git_url: str, ref: Optional[str] = None
    ) -> Optional[GitModuleMetadata]:
        self.calls.append((git_url, ref))
        return self.metadata.get(git_url)


@pytest.fixture
def make_forge() -> Callable[..., FakeForge]:
    return FakeForge


@pytest.fixture
def make_release() -> Callable[..., ReleaseMetadata]:
    return release


@pytest.fixture
def make_git_source() -> Callable[..., FakeGitSource]:
    return FakeGitSource
