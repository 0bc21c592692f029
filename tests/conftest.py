"""
Pytest configuration and fixtures for resource-archive-service.

Provides change-stream builders, fake AWS clients and log capture.
"""

import asyncio
import sys
from typing import Optional

import pytest
from loguru import logger

from resource_archive.config import PipelineConfig
from resource_archive.models import ChangeRecord

# Set policy *before* pytest-asyncio creates any loops
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

TABLE = "resource-db-dev"
PATIENT_ID = "5d431a2a-be00-41b5-9cff-111265b2d9a5"
NOW = 1_647_264_242


class FakeDynamoDB:
    """Stands in for a boto3 dynamodb client; records every batch call."""

    def __init__(self, respond=None, error: Optional[Exception] = None):
        self.calls: list[list[dict]] = []
        self.closed = False
        self._respond = respond
        self._error = error

    def batch_execute_statement(self, Statements):
        self.calls.append(Statements)
        if self._error is not None:
            raise self._error
        if self._respond is not None:
            return self._respond(Statements)
        return {"Responses": [{"TableName": TABLE} for _ in Statements]}

    def close(self):
        self.closed = True


class FakeFirehose:
    """Stands in for a boto3 firehose client; records every batch call."""

    def __init__(self, respond=None, error: Optional[Exception] = None):
        self.calls: list[dict] = []
        self.closed = False
        self._respond = respond
        self._error = error

    def put_record_batch(self, DeliveryStreamName, Records):
        self.calls.append({"DeliveryStreamName": DeliveryStreamName, "Records": Records})
        if self._error is not None:
            raise self._error
        if self._respond is not None:
            return self._respond(Records)
        return {
            "FailedPutCount": 0,
            "Encrypted": True,
            "RequestResponses": [{"RecordId": f"rec-{i}"} for i in range(len(Records))],
        }

    def close(self):
        self.closed = True


@pytest.fixture
def policy():
    return {"Patient": 150000, "AuditEvent": 86400}


@pytest.fixture
def pipeline_config(policy):
    return PipelineConfig(
        table_name=TABLE,
        delivery_stream_name="resource-archive-dev",
        ttl_policy=policy,
        statement_batch_size=10,
        record_batch_size=500,
    )


@pytest.fixture
def make_record():
    """ChangeRecord factory with sensible defaults for a fresh Patient."""

    def _make(
        id: str = PATIENT_ID,
        version: int = 1,
        event_name: str = "INSERT",
        resource_type: Optional[str] = "Patient",
        **overrides,
    ) -> ChangeRecord:
        image = {"id": id, "vid": version, "resourceType": resource_type, "gender": "male"}
        fields = {
            "event_name": event_name,
            "keys": {"id": id, "version": version},
            "resource_type": resource_type,
        }
        if event_name == "REMOVE":
            fields.update(old_image=image, removed_by_service=True, ttl=NOW - 10)
        else:
            fields.update(new_image=image)
        fields.update(overrides)
        return ChangeRecord(**fields)

    return _make


@pytest.fixture
def make_stream_record():
    """Raw DynamoDB stream record (DynamoDB JSON) factory."""

    def _make(
        id: str = PATIENT_ID,
        vid: int = 1,
        event_name: str = "INSERT",
        resource_type: str = "Patient",
        ttl: Optional[int] = None,
        ttl_removal: bool = False,
    ) -> dict:
        image = {
            "id": {"S": id},
            "vid": {"N": str(vid)},
            "resourceType": {"S": resource_type},
            "gender": {"S": "male"},
            "active": {"BOOL": True},
            "meta": {"M": {"versionId": {"S": str(vid)}}},
            "_references": {"L": [{"S": "Organization/19d9bd55-56fc-4d19-850f-2c1ee651aefb"}]},
        }
        if ttl is not None:
            image["_ttlInSeconds"] = {"N": str(ttl)}
        body = {
            "ApproximateCreationDateTime": NOW,
            "Keys": {"vid": {"N": str(vid)}, "id": {"S": id}},
            "SequenceNumber": "46107900000000048533287743",
            "SizeBytes": 512,
            "StreamViewType": "NEW_AND_OLD_IMAGES",
        }
        if event_name == "REMOVE":
            body["OldImage"] = image
        else:
            body["NewImage"] = image
        raw = {
            "eventID": f"evt-{id}-{vid}",
            "eventName": event_name,
            "eventVersion": "1.1",
            "eventSource": "aws:dynamodb",
            "awsRegion": "us-west-2",
            "dynamodb": body,
        }
        if ttl_removal:
            raw["userIdentity"] = {"principalId": "dynamodb.amazonaws.com", "type": "Service"}
        return raw

    return _make


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during the test as (level, message)."""
    captured: list[tuple[str, str]] = []
    handler_id = logger.add(
        lambda m: captured.append((m.record["level"].name, m.record["message"])),
        level="DEBUG",
    )
    yield captured
    logger.remove(handler_id)


@pytest.fixture
def fake_dynamodb():
    """FakeDynamoDB class; call it with ``respond=`` or ``error=``."""
    return FakeDynamoDB


@pytest.fixture
def fake_firehose():
    """FakeFirehose class; call it with ``respond=`` or ``error=``."""
    return FakeFirehose
