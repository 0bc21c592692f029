"""
Data models for the resource archive pipeline.

Change records and outcomes are pydantic models; write operations are frozen
dataclasses so they hash by value and collapse in sets.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

TTL_FIELD_NAME = "_ttlInSeconds"


class EventName(str, Enum):
    INSERT = "INSERT"
    MODIFY = "MODIFY"
    REMOVE = "REMOVE"


class RecordKeys(BaseModel):
    """Primary key of a versioned resource row."""

    model_config = ConfigDict(frozen=True)

    id: str
    version: int

    @field_validator("id")
    @classmethod
    def _non_empty(cls, v):
        if not v:
            raise ValueError("id must not be empty")
        return v

    @field_validator("version")
    @classmethod
    def _positive(cls, v):
        if v < 1:
            raise ValueError("version must be a positive integer")
        return v


class ChangeRecord(BaseModel):
    """One change-stream notification.

    Only the fields the pipeline reads are typed; the images are passed
    through untouched.
    """

    model_config = ConfigDict(frozen=True)

    event_name: EventName
    keys: RecordKeys
    event_id: Optional[str] = None
    resource_type: Optional[str] = None
    ttl: Optional[int] = None
    removed_by_service: bool = False
    old_image: Optional[dict[str, Any]] = None
    new_image: Optional[dict[str, Any]] = None
    approximate_timestamp: Optional[datetime] = None

    @property
    def id(self) -> str:
        return self.keys.id

    @property
    def version(self) -> int:
        return self.keys.version


def _quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _quote_identifier(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


@dataclass(frozen=True)
class Statement:
    """PartiQL update that stamps a TTL on one (id, version) row."""

    table: str
    id: str
    version: int
    ttl: int

    @property
    def text(self) -> str:
        return (
            f"UPDATE {_quote_identifier(self.table)} SET {TTL_FIELD_NAME} = {self.ttl} "
            f"WHERE id = {_quote_literal(self.id)} AND vid = {self.version}"
        )

    def describe(self) -> str:
        return self.text


@dataclass(frozen=True)
class PayloadRecord:
    """Opaque record pushed to the delivery stream."""

    id: str
    version: int
    data: bytes

    def describe(self) -> str:
        return f"{self.id}@{self.version}"


class FailureDetail(BaseModel):
    """One aggregated failure, from either the transport or the item channel."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["transport", "item"]
    code: str
    message: str = ""
    chunk_index: int
    chunk_size: int
    position: Optional[int] = None
    operation: Optional[str] = None


class InvocationOutcome(BaseModel):
    """Aggregate result of one sink pipeline run."""

    sink: str
    unit: str
    attempted: int = 0
    succeeded: int = 0
    chunks: int = 0
    failures: list[FailureDetail] = Field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.failures

    @property
    def failure_count(self) -> int:
        return len(self.failures)
