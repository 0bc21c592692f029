"""
Pipeline orchestration: classify, then archive expired records to the
delivery sink, then stamp TTLs through the statement sink.

The two sink runs are independent; failures are collected into the report and
never raised out of ``process_batch``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Sequence

from loguru import logger

from .batching import BatchDispatcher, chunk
from .builder import StatementBuilder, build_payload_records
from .classifier import Classifier, classify
from .config import PipelineConfig, Settings
from .errors import PolicyMissing
from .models import ChangeRecord, InvocationOutcome
from .reconcile import reconcile, report
from .sinks import BatchSink, DynamoDBStatementSink, FirehoseDeliverySink
from .stream import parse_stream_event


@dataclass
class PipelineReport:
    delivery: Optional[InvocationOutcome] = None
    statements: Optional[InvocationOutcome] = None
    rejected: list[PolicyMissing] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return all(o.clean for o in (self.delivery, self.statements) if o is not None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "clean": self.clean,
            "delivery": self.delivery.model_dump() if self.delivery else None,
            "statements": self.statements.model_dump() if self.statements else None,
            "rejected": [
                {"id": e.record_id, "resource_type": e.resource_type} for e in self.rejected
            ],
        }


class ArchivePipeline:
    def __init__(
        self,
        config: PipelineConfig,
        *,
        statement_sink: BatchSink,
        delivery_sink: BatchSink,
        classifier: Classifier = classify,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self._statement_sink = statement_sink
        self._delivery_sink = delivery_sink
        self._classifier = classifier
        self._builder = StatementBuilder(config.table_name, config.ttl_policy, clock=clock)

    async def aclose(self) -> None:
        await self._delivery_sink.aclose()
        await self._statement_sink.aclose()

    async def process_event(self, event: Optional[Mapping[str, Any]]) -> PipelineReport:
        return await self.process_batch(parse_stream_event(event))

    async def process_batch(self, records: Sequence[ChangeRecord]) -> PipelineReport:
        result = PipelineReport()
        if not records:
            return result

        logger.info(f"Change stream published {len(records)} records to process.")
        split = self._classifier(records, self.config.ttl_policy)

        logger.info(f"{len(split.expired_by_ttl)} records removed by TTL to archive.")
        result.delivery = await self._run_sink(
            self._delivery_sink,
            build_payload_records(split.expired_by_ttl),
            self.config.record_batch_size,
        )

        logger.info(f"{len(split.needs_ttl_stamp)} records need a TTL stamp.")
        built = self._builder.build(split.needs_ttl_stamp)
        for missing in built.rejected:
            logger.warning(f"Skipping TTL stamp: {missing}")
        result.rejected = built.rejected
        result.statements = await self._run_sink(
            self._statement_sink, built.operations, self.config.statement_batch_size
        )
        return result

    async def _run_sink(
        self, sink: BatchSink, operations: Sequence[Any], size: int
    ) -> Optional[InvocationOutcome]:
        if not operations:
            return None
        chunks = chunk(
            operations,
            min(size, sink.batch_limit),
            max_bytes=sink.max_batch_bytes,
            size_of=sink.operation_size,
        )
        results = await BatchDispatcher(sink).dispatch(chunks)
        outcome = reconcile(sink, results)
        report(outcome)
        return outcome


def build_pipeline(settings: Settings, **kwargs) -> ArchivePipeline:
    """Wire the pipeline to real DynamoDB and Firehose clients."""
    import boto3

    config = PipelineConfig.from_settings(settings)
    client_kwargs = {
        "region_name": settings.AWS_REGION,
        "endpoint_url": settings.AWS_ENDPOINT_URL,
    }
    statement_sink = DynamoDBStatementSink(
        boto3.client("dynamodb", **client_kwargs),
        batch_limit=config.statement_batch_size,
    )
    delivery_sink = FirehoseDeliverySink(
        boto3.client("firehose", **client_kwargs),
        config.delivery_stream_name,
        batch_limit=config.record_batch_size,
    )
    return ArchivePipeline(
        config, statement_sink=statement_sink, delivery_sink=delivery_sink, **kwargs
    )
