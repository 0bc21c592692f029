from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Generic, Iterator, Mapping, NamedTuple, Optional, Sequence, TypeVar

T = TypeVar("T")


class ItemError(NamedTuple):
    """Error marker on one entry of an otherwise successful batch response."""

    position: int
    code: str
    message: str


class BatchSink(ABC, Generic[T]):
    """A remote batch API that accepts chunks of write operations.

    ``submit`` returns the raw response or raises; ``item_failures`` reads the
    per-item error markers out of a successful response.
    """

    name: str = "sink"
    unit: str = "operations"
    # request payload cap; None means the API bounds calls by count only
    max_batch_bytes: Optional[int] = None

    def __init__(self, client: Any, *, batch_limit: int):
        if batch_limit <= 0:
            raise ValueError("batch_limit must be > 0")
        self._client = client
        self.batch_limit = batch_limit

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self) -> None:
        close = getattr(self._client, "close", None)
        if callable(close):
            await asyncio.to_thread(close)

    def operation_size(self, op: T) -> int:
        """Bytes ``op`` adds to a request, counted against ``max_batch_bytes``."""
        return 0

    async def _call(self, method: str, **kwargs) -> Mapping[str, Any]:
        # boto3 clients block; run the call off the event loop so chunks overlap
        return await asyncio.to_thread(getattr(self._client, method), **kwargs)

    @abstractmethod
    async def submit(self, chunk: Sequence[T]) -> Mapping[str, Any]:
        """Send one chunk in a single batch call."""

    @abstractmethod
    def item_failures(self, chunk: Sequence[T], response: Mapping[str, Any]) -> Iterator[ItemError]:
        """Yield the per-item errors embedded in ``response``."""
