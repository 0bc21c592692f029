from __future__ import annotations

import asyncio
from dataclasses import dataclass
from time import monotonic
from typing import Any, Callable, Generic, Mapping, Optional, Sequence, TypeVar

from loguru import logger

from .errors import TransportFailure, map_client_error
from .metrics import SINK_CHUNK_LATENCY, SINK_CHUNKS_TOTAL
from .sinks.base import BatchSink

T = TypeVar("T")


def chunk(
    ops: Sequence[T],
    size: int,
    *,
    max_bytes: Optional[int] = None,
    size_of: Optional[Callable[[T], int]] = None,
) -> list[list[T]]:
    """
    Split ``ops`` into consecutive groups of at most ``size``, keeping order.

    With ``max_bytes`` a group is also closed before its summed ``size_of``
    would exceed the budget. An operation larger than the budget on its own
    travels alone.
    """
    if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
        raise ValueError(f"chunk size must be a positive integer, got {size!r}")
    if max_bytes is None:
        return [list(ops[i : i + size]) for i in range(0, len(ops), size)]
    if max_bytes <= 0 or size_of is None:
        raise ValueError("max_bytes needs a positive budget and a size_of function")

    chunks: list[list[T]] = []
    current: list[T] = []
    used = 0
    for op in ops:
        n = size_of(op)
        if current and (len(current) == size or used + n > max_bytes):
            chunks.append(current)
            current, used = [], 0
        current.append(op)
        used += n
    if current:
        chunks.append(current)
    return chunks


@dataclass(frozen=True)
class ChunkResult(Generic[T]):
    """Settled outcome of one batch call: a response or a transport error."""

    index: int
    operations: Sequence[T]
    response: Optional[Mapping[str, Any]] = None
    error: Optional[TransportFailure] = None

    @property
    def rejected(self) -> bool:
        return self.error is not None


class BatchDispatcher(Generic[T]):
    """
    Submits every chunk to a sink concurrently and waits for all of them.

    A failing call never cancels its siblings and is never retried; it settles
    into a ``ChunkResult`` carrying a ``TransportFailure``.
    """

    def __init__(self, sink: BatchSink[T]):
        self._sink = sink

    async def dispatch(self, chunks: Sequence[Sequence[T]]) -> list[ChunkResult[T]]:
        if not chunks:
            return []
        return list(await asyncio.gather(*(self._settle(i, c) for i, c in enumerate(chunks))))

    async def _settle(self, index: int, ops: Sequence[T]) -> ChunkResult[T]:
        sink = self._sink.name
        t0 = monotonic()
        try:
            response = await self._sink.submit(ops)
        except Exception as e:
            failure = map_client_error(e)
            SINK_CHUNKS_TOTAL.labels(sink=sink, status="rejected").inc()
            logger.debug(f"{sink} chunk {index} ({len(ops)} ops) rejected: {failure}")
            return ChunkResult(index=index, operations=ops, error=failure)
        finally:
            SINK_CHUNK_LATENCY.labels(sink=sink).observe(monotonic() - t0)

        SINK_CHUNKS_TOTAL.labels(sink=sink, status="fulfilled").inc()
        logger.debug(f"{sink} chunk {index} ({len(ops)} ops) fulfilled")
        return ChunkResult(index=index, operations=ops, response=response or {})
