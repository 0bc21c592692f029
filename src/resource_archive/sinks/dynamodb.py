"""Statement sink: PartiQL ``BatchExecuteStatement`` against the resource table."""

from __future__ import annotations

from typing import Any, Iterator, Mapping, Sequence

from ..config import DEFAULT_STATEMENT_BATCH_SIZE, MAX_STATEMENT_BATCH_SIZE
from ..models import Statement
from .base import BatchSink, ItemError


class DynamoDBStatementSink(BatchSink[Statement]):
    name = "dynamodb"
    unit = "statements"

    def __init__(self, client: Any, *, batch_limit: int = DEFAULT_STATEMENT_BATCH_SIZE):
        if batch_limit > MAX_STATEMENT_BATCH_SIZE:
            raise ValueError(f"BatchExecuteStatement accepts at most {MAX_STATEMENT_BATCH_SIZE}")
        super().__init__(client, batch_limit=batch_limit)

    async def submit(self, chunk: Sequence[Statement]) -> Mapping[str, Any]:
        return await self._call(
            "batch_execute_statement",
            Statements=[{"Statement": s.text} for s in chunk],
        )

    def item_failures(
        self, chunk: Sequence[Statement], response: Mapping[str, Any]
    ) -> Iterator[ItemError]:
        for position, entry in enumerate(response.get("Responses") or []):
            error = entry.get("Error")
            if error:
                yield ItemError(position, error.get("Code") or "Unknown", error.get("Message") or "")
