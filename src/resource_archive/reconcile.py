"""
Reconcile settled chunk results into one outcome per sink.

Two failure channels feed the same list: a rejected batch call (one entry for
the whole chunk) and error markers on individual entries of a successful
response. A call that returned normally is not proof that its items landed.
"""

from __future__ import annotations

import json
from typing import Sequence

from loguru import logger

from .batching import ChunkResult
from .metrics import SINK_OPERATIONS_TOTAL
from .models import FailureDetail, InvocationOutcome
from .sinks.base import BatchSink


def reconcile(sink: BatchSink, results: Sequence[ChunkResult]) -> InvocationOutcome:
    failures: list[FailureDetail] = []
    attempted = 0
    failed_ops = 0

    for result in results:
        size = len(result.operations)
        attempted += size

        if result.rejected:
            failures.append(
                FailureDetail(
                    kind="transport",
                    code=result.error.code,
                    message=result.error.message,
                    chunk_index=result.index,
                    chunk_size=size,
                )
            )
            failed_ops += size
            continue

        for err in sink.item_failures(result.operations, result.response or {}):
            operation = (
                result.operations[err.position].describe() if err.position < size else None
            )
            failures.append(
                FailureDetail(
                    kind="item",
                    code=err.code,
                    message=err.message,
                    chunk_index=result.index,
                    chunk_size=size,
                    position=err.position,
                    operation=operation,
                )
            )
            failed_ops += 1

    # responses settle in any order; report failures in chunk then response order
    failures.sort(key=lambda f: (f.chunk_index, -1 if f.position is None else f.position))
    succeeded = max(0, attempted - failed_ops)

    if succeeded:
        SINK_OPERATIONS_TOTAL.labels(sink=sink.name, outcome="succeeded").inc(succeeded)
    if attempted - succeeded:
        SINK_OPERATIONS_TOTAL.labels(sink=sink.name, outcome="failed").inc(attempted - succeeded)

    return InvocationOutcome(
        sink=sink.name,
        unit=sink.unit,
        attempted=attempted,
        succeeded=succeeded,
        chunks=len(results),
        failures=failures,
    )


def summary_line(outcome: InvocationOutcome) -> str:
    if outcome.clean:
        return f"{outcome.succeeded} {outcome.unit} succeeded."
    detail = json.dumps([f.model_dump(exclude_none=True) for f in outcome.failures], indent=2)
    return f"{outcome.failure_count} {outcome.unit} failed: {detail}"


def report(outcome: InvocationOutcome) -> str:
    """Emit the single summary line for a sink run and return it."""
    line = summary_line(outcome)
    if outcome.clean:
        logger.info(line)
    else:
        logger.error(line)
    return line
