"""
Build write operations for both sinks.

Statements for the TTL-stamp path are deduplicated by value. TTL retirement
covers the whole version history of an id: a record at version ``v`` stamps
rows ``1..v``, all with the same TTL.
"""

from __future__ import annotations

import base64
import json
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Iterable, Mapping, Optional, Sequence

from boto3.dynamodb.types import Binary

from .errors import PolicyMissing
from .models import ChangeRecord, PayloadRecord, Statement


@dataclass
class BuildResult:
    operations: list[Statement] = field(default_factory=list)
    rejected: list[PolicyMissing] = field(default_factory=list)


class StatementBuilder:
    """Turns TTL-stamp records into PartiQL update statements."""

    def __init__(
        self,
        table: str,
        policy: Mapping[str, int],
        *,
        clock: Callable[[], float] = time.time,
    ):
        if not table:
            raise ValueError("table required")
        self._table = table
        self._policy = policy
        self._clock = clock

    def ttl_for(self, record: ChangeRecord, now: int) -> int:
        retention = self._policy.get(record.resource_type) if record.resource_type else None
        if retention is None:
            raise PolicyMissing(record.resource_type, record.id)
        return now + retention

    def statements_for(self, record: ChangeRecord, now: int) -> list[Statement]:
        ttl = self.ttl_for(record, now)
        return [
            Statement(table=self._table, id=record.id, version=v, ttl=ttl)
            for v in range(1, record.version + 1)
        ]

    def build(self, records: Sequence[ChangeRecord], now: Optional[int] = None) -> BuildResult:
        result = BuildResult()
        if not records:
            return result
        if now is None:
            now = int(self._clock())

        # dict keeps first-seen order while deduplicating
        unique: dict[Statement, None] = {}
        for record in records:
            try:
                statements = self.statements_for(record, now)
            except PolicyMissing as e:
                result.rejected.append(e)
                continue
            unique.update(dict.fromkeys(statements))
        result.operations = list(unique)
        return result


def _json_default(value):
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, Binary):
        value = value.value
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_image(image: Mapping[str, object]) -> bytes:
    """Newline-terminated JSON document, the framing the delivery stream expects."""
    body = json.dumps(image, default=_json_default, ensure_ascii=False, separators=(",", ":"))
    return (body + "\n").encode("utf-8")


def build_payload_records(records: Iterable[ChangeRecord]) -> list[PayloadRecord]:
    """One payload per expired record; records are naturally unique, no dedup."""
    out: list[PayloadRecord] = []
    for record in records:
        image = record.old_image if record.old_image is not None else record.new_image
        out.append(PayloadRecord(id=record.id, version=record.version, data=encode_image(image or {})))
    return out
