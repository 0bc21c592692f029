"""Batch sinks the pipeline writes to."""

from .base import BatchSink, ItemError
from .dynamodb import DynamoDBStatementSink
from .firehose import FirehoseDeliverySink

__all__ = [
    "BatchSink",
    "ItemError",
    "DynamoDBStatementSink",
    "FirehoseDeliverySink",
]
