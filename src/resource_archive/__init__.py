"""
Resource Archive Service

Consumes a DynamoDB change stream, archives TTL-expired resources to a
Firehose delivery stream and stamps TTLs on the version history of live
resources.

Usage:
    from resource_archive import ArchivePipeline, build_pipeline, load_settings

    pipeline = build_pipeline(load_settings())
    report = await pipeline.process_event(event)
"""

from .batching import BatchDispatcher, ChunkResult, chunk
from .builder import BuildResult, StatementBuilder, build_payload_records
from .classifier import Classification, classify
from .config import PipelineConfig, Settings, load_settings, parse_archive_config
from .errors import (
    ArchiveError,
    ConfigurationError,
    PolicyMissing,
    StreamRecordError,
    TransportFailure,
)
from .models import (
    ChangeRecord,
    EventName,
    FailureDetail,
    InvocationOutcome,
    PayloadRecord,
    RecordKeys,
    Statement,
)
from .pipeline import ArchivePipeline, PipelineReport, build_pipeline
from .reconcile import reconcile, report
from .stream import parse_stream_event, parse_stream_record

__version__ = "1.0.0"
__all__ = [
    # pipeline
    "ArchivePipeline",
    "PipelineReport",
    "build_pipeline",
    # stages
    "StatementBuilder",
    "BuildResult",
    "build_payload_records",
    "chunk",
    "BatchDispatcher",
    "ChunkResult",
    "reconcile",
    "report",
    "classify",
    "Classification",
    "parse_stream_event",
    "parse_stream_record",
    # config
    "Settings",
    "PipelineConfig",
    "load_settings",
    "parse_archive_config",
    # models
    "ChangeRecord",
    "EventName",
    "RecordKeys",
    "Statement",
    "PayloadRecord",
    "FailureDetail",
    "InvocationOutcome",
    # errors
    "ArchiveError",
    "ConfigurationError",
    "PolicyMissing",
    "StreamRecordError",
    "TransportFailure",
]
