"""Delivery sink: Firehose ``PutRecordBatch`` for archived records."""

from __future__ import annotations

from typing import Any, Iterator, Mapping, Sequence

from ..config import DEFAULT_RECORD_BATCH_SIZE, MAX_RECORD_BATCH_BYTES, MAX_RECORD_BATCH_SIZE
from ..models import PayloadRecord
from .base import BatchSink, ItemError


class FirehoseDeliverySink(BatchSink[PayloadRecord]):
    name = "firehose"
    unit = "records"
    max_batch_bytes = MAX_RECORD_BATCH_BYTES

    def __init__(
        self,
        client: Any,
        delivery_stream_name: str,
        *,
        batch_limit: int = DEFAULT_RECORD_BATCH_SIZE,
    ):
        if not delivery_stream_name:
            raise ValueError("delivery_stream_name required")
        if batch_limit > MAX_RECORD_BATCH_SIZE:
            raise ValueError(f"PutRecordBatch accepts at most {MAX_RECORD_BATCH_SIZE}")
        super().__init__(client, batch_limit=batch_limit)
        self.delivery_stream_name = delivery_stream_name

    def operation_size(self, op: PayloadRecord) -> int:
        return len(op.data)

    async def submit(self, chunk: Sequence[PayloadRecord]) -> Mapping[str, Any]:
        return await self._call(
            "put_record_batch",
            DeliveryStreamName=self.delivery_stream_name,
            Records=[{"Data": r.data} for r in chunk],
        )

    def item_failures(
        self, chunk: Sequence[PayloadRecord], response: Mapping[str, Any]
    ) -> Iterator[ItemError]:
        for position, entry in enumerate(response.get("RequestResponses") or []):
            code = entry.get("ErrorCode")
            if code:
                yield ItemError(position, code, entry.get("ErrorMessage") or "")
