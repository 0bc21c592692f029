"""Default split of change records into archive and TTL-stamp subsets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Mapping, Sequence

from .models import ChangeRecord, EventName


@dataclass(frozen=True)
class Classification:
    expired_by_ttl: list[ChangeRecord] = field(default_factory=list)
    needs_ttl_stamp: list[ChangeRecord] = field(default_factory=list)


Classifier = Callable[[Sequence[ChangeRecord], Mapping[str, int]], Classification]


def is_expired_by_ttl(record: ChangeRecord) -> bool:
    """A row the table itself deleted because its TTL elapsed."""
    return (
        record.event_name == EventName.REMOVE
        and record.removed_by_service
        and record.old_image is not None
    )


def needs_ttl_stamp(record: ChangeRecord, policy: Mapping[str, int]) -> bool:
    # rows already carrying a TTL include the updates this service writes itself
    return (
        record.event_name in (EventName.INSERT, EventName.MODIFY)
        and record.new_image is not None
        and record.resource_type in policy
        and record.ttl is None
    )


def classify(records: Sequence[ChangeRecord], policy: Mapping[str, int]) -> Classification:
    expired: list[ChangeRecord] = []
    stamp: list[ChangeRecord] = []
    for record in records:
        if is_expired_by_ttl(record):
            expired.append(record)
        elif needs_ttl_stamp(record, policy):
            stamp.append(record)
    return Classification(expired_by_ttl=expired, needs_ttl_stamp=stamp)
