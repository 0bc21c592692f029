"""Runtime configuration for the archive service."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

DEFAULT_STATEMENT_BATCH_SIZE = 10
DEFAULT_RECORD_BATCH_SIZE = 500

# BatchExecuteStatement and PutRecordBatch hard limits
MAX_STATEMENT_BATCH_SIZE = 25
MAX_RECORD_BATCH_SIZE = 500
MAX_RECORD_BATCH_BYTES = 4 * 1024 * 1024


class Settings(BaseSettings):
    ARCHIVE_CONFIG: str
    RESOURCE_TABLE: str
    DELIVERY_STREAM_NAME: str
    DYNAMODB_BATCH_SIZE: int = DEFAULT_STATEMENT_BATCH_SIZE
    FIREHOSE_BATCH_SIZE: int = DEFAULT_RECORD_BATCH_SIZE
    AWS_REGION: Optional[str] = None
    AWS_ENDPOINT_URL: Optional[str] = None

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @field_validator("RESOURCE_TABLE", "DELIVERY_STREAM_NAME")
    @classmethod
    def _not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("DYNAMODB_BATCH_SIZE")
    @classmethod
    def _statement_batch_size(cls, v):
        if not 1 <= v <= MAX_STATEMENT_BATCH_SIZE:
            raise ValueError(f"must be between 1 and {MAX_STATEMENT_BATCH_SIZE}")
        return v

    @field_validator("FIREHOSE_BATCH_SIZE")
    @classmethod
    def _record_batch_size(cls, v):
        if not 1 <= v <= MAX_RECORD_BATCH_SIZE:
            raise ValueError(f"must be between 1 and {MAX_RECORD_BATCH_SIZE}")
        return v

    @property
    def ttl_policy(self) -> Mapping[str, int]:
        return parse_archive_config(self.ARCHIVE_CONFIG)


def _coerce_seconds(resource_type: str, value: object) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"retention for {resource_type!r} must be an integer")
    try:
        seconds = int(str(value).strip())
    except ValueError:
        raise ConfigurationError(
            f"retention for {resource_type!r} must be an integer, got {value!r}"
        ) from None
    if seconds <= 0:
        raise ConfigurationError(f"retention for {resource_type!r} must be positive")
    return seconds


def parse_archive_config(raw: Optional[str]) -> Mapping[str, int]:
    """
    Parse the TTL policy string into a read-only ``{resourceType: seconds}`` map.

    Accepts either a JSON object (``{"Patient": 150000}``) or a comma separated
    list of ``Type=seconds`` pairs (``Patient=150000,AuditEvent=86400``).
    """
    if raw is None or not raw.strip():
        raise ConfigurationError("ARCHIVE_CONFIG is empty")
    text = raw.strip()

    if text.startswith("{"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"ARCHIVE_CONFIG is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError("ARCHIVE_CONFIG must be a JSON object")
        pairs = list(data.items())
    else:
        pairs = []
        for entry in text.split(","):
            entry = entry.strip()
            if not entry:
                continue
            name, sep, value = entry.partition("=")
            if not sep:
                raise ConfigurationError(f"ARCHIVE_CONFIG entry {entry!r} is not Type=seconds")
            pairs.append((name, value))

    policy: dict[str, int] = {}
    for name, value in pairs:
        name = str(name).strip()
        if not name:
            raise ConfigurationError("ARCHIVE_CONFIG contains an empty resource type")
        if name in policy:
            raise ConfigurationError(f"ARCHIVE_CONFIG lists {name!r} twice")
        policy[name] = _coerce_seconds(name, value)

    if not policy:
        raise ConfigurationError("ARCHIVE_CONFIG defines no resource types")
    return MappingProxyType(policy)


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable configuration handed to the pipeline at construction."""

    table_name: str
    delivery_stream_name: str
    ttl_policy: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    statement_batch_size: int = DEFAULT_STATEMENT_BATCH_SIZE
    record_batch_size: int = DEFAULT_RECORD_BATCH_SIZE

    def __post_init__(self):
        if self.statement_batch_size <= 0 or self.record_batch_size <= 0:
            raise ConfigurationError("batch sizes must be positive")
        if not isinstance(self.ttl_policy, MappingProxyType):
            object.__setattr__(self, "ttl_policy", MappingProxyType(dict(self.ttl_policy)))

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        return cls(
            table_name=settings.RESOURCE_TABLE,
            delivery_stream_name=settings.DELIVERY_STREAM_NAME,
            ttl_policy=settings.ttl_policy,
            statement_batch_size=settings.DYNAMODB_BATCH_SIZE,
            record_batch_size=settings.FIREHOSE_BATCH_SIZE,
        )


def load_settings(**overrides) -> Settings:
    """Load settings from the environment (and ``.env``); fail fast when malformed."""
    try:
        settings = Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e
    parse_archive_config(settings.ARCHIVE_CONFIG)
    return settings
