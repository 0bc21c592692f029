"""
Decoding of raw DynamoDB stream events into ``ChangeRecord`` models.

Images arrive in DynamoDB JSON (``{"S": "..."}``, ``{"N": "1"}``) and are
unmarshalled with boto3's ``TypeDeserializer``; numbers come back as
``Decimal``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Mapping, Optional

from boto3.dynamodb.types import TypeDeserializer
from loguru import logger
from pydantic import ValidationError

from .errors import StreamRecordError
from .models import TTL_FIELD_NAME, ChangeRecord, EventName

SERVICE_PRINCIPAL = "dynamodb.amazonaws.com"
VERSION_KEY = "vid"

_deserializer = TypeDeserializer()


def _unmarshal(image: Optional[Mapping[str, Any]]) -> Optional[dict[str, Any]]:
    if image is None:
        return None
    return {k: _deserializer.deserialize(v) for k, v in image.items()}


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, Decimal)):
        return int(value)
    try:
        return int(str(value))
    except ValueError:
        return None


def _is_service_removal(raw: Mapping[str, Any]) -> bool:
    identity = raw.get("userIdentity") or {}
    return identity.get("type") == "Service" and identity.get("principalId") == SERVICE_PRINCIPAL


def parse_stream_record(raw: Mapping[str, Any]) -> ChangeRecord:
    """Decode one ``Records[]`` entry of a DynamoDB stream event."""
    body = raw.get("dynamodb")
    if not isinstance(body, Mapping):
        raise StreamRecordError("stream record has no 'dynamodb' section")

    try:
        keys = _unmarshal(body.get("Keys")) or {}
        new_image = _unmarshal(body.get("NewImage"))
        old_image = _unmarshal(body.get("OldImage"))
    except (TypeError, ValueError, AttributeError) as e:
        raise StreamRecordError(f"cannot unmarshal stream images: {e}") from e

    record_id = keys.get("id")
    version = _as_int(keys.get(VERSION_KEY))
    if not isinstance(record_id, str) or version is None:
        raise StreamRecordError(f"stream record keys must carry 'id' and '{VERSION_KEY}': {keys}")

    event_name = raw.get("eventName")
    current = old_image if event_name == EventName.REMOVE.value else new_image
    resource_type = (new_image or {}).get("resourceType") or (old_image or {}).get("resourceType")

    created = body.get("ApproximateCreationDateTime")
    timestamp = (
        datetime.fromtimestamp(float(created), tz=timezone.utc) if created is not None else None
    )

    try:
        return ChangeRecord(
            event_id=raw.get("eventID"),
            event_name=event_name,
            keys={"id": record_id, "version": version},
            resource_type=resource_type,
            ttl=_as_int((current or {}).get(TTL_FIELD_NAME)),
            removed_by_service=_is_service_removal(raw),
            old_image=old_image,
            new_image=new_image,
            approximate_timestamp=timestamp,
        )
    except ValidationError as e:
        raise StreamRecordError(f"invalid stream record {record_id}: {e}") from e


def parse_stream_event(event: Optional[Mapping[str, Any]]) -> list[ChangeRecord]:
    """Decode every record of a stream event, skipping (and logging) malformed ones."""
    if not event:
        return []
    records: list[ChangeRecord] = []
    for raw in event.get("Records") or []:
        try:
            records.append(parse_stream_record(raw))
        except StreamRecordError as e:
            logger.warning(f"Skipping stream record {raw.get('eventID', '?')}: {e}")
    return records
