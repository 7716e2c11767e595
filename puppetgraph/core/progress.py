"""Cancellation and progress primitives for long-running puppetgraph work.

Both are plain objects handed to :meth:`DependencyTreeBuilder.build` and
:meth:`MetadataCache.warm`; nothing is reported through callbacks.

Typical usage::

    token = CancellationToken()
    progress = ProgressChannel()

    build = asyncio.create_task(builder.build(modules, token=token, progress=progress))
    async for event in progress:
        print(f"[{event.phase}] {event.message}")
    tree = await build
"""

from __future__ import annotations

import asyncio
from enum import Enum
from dataclasses import dataclass
from typing import AsyncIterator, Optional

__all__ = ["CancellationToken", "ProgressChannel", "ProgressEvent", "ProgressPhase"]


class CancellationToken:
    """Cooperative cancellation flag.

    Work checks :attr:`is_cancelled` at its suspension points and returns
    whatever it has built so far once the flag is set.
    """

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled})"


class ProgressPhase(Enum):
    WARM = "warm"
    TREE = "tree"
    CONFLICTS = "conflicts"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ProgressEvent:
    """One progress update.

    Attributes:
        phase: Which part of the build emitted the event.
        message: Human-readable status line.
        completed: Units of work finished in this phase, when countable.
        total: Units of work in this phase, when known.
    """

    phase: ProgressPhase
    message: str
    completed: Optional[int] = None
    total: Optional[int] = None


class ProgressChannel:
    """Unbounded queue of :class:`ProgressEvent` consumed with ``async for``.

    The producer calls :meth:`publish` and finally :meth:`close`; iteration
    ends once every event published before ``close`` has been yielded.
    Publishing never blocks, so a slow or absent consumer cannot stall a
    build.
    """

    _CLOSED = object()

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()
        self._closed = False

    def publish(self, event: ProgressEvent) -> None:
        if self._closed:
            return
        self._queue.put_nowait(event)

    def emit(
        self,
        phase: ProgressPhase,
        message: str,
        completed: Optional[int] = None,
        total: Optional[int] = None,
    ) -> None:
        self.publish(ProgressEvent(phase, message, completed, total))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(self._CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ProgressEvent]:
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield item  # type: ignore[misc]
