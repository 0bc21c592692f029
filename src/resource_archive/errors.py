"""
Custom exceptions for the resource archive service.

Per-item write failures are not exceptions: they are carried as
``FailureDetail`` entries in the invocation outcome.
"""

from __future__ import annotations


class ArchiveError(Exception):
    """Base error for the archive service."""

    pass


class ConfigurationError(ArchiveError):
    """Malformed or missing configuration; fatal at startup."""

    pass


class StreamRecordError(ArchiveError):
    """A raw change-stream record could not be decoded."""

    pass


class PolicyMissing(ArchiveError):
    """No TTL retention is configured for a record's resource type."""

    def __init__(self, resource_type: str | None, record_id: str):
        self.resource_type = resource_type
        self.record_id = record_id
        super().__init__(f"no TTL policy for resource type {resource_type!r} (id={record_id})")


class TransportFailure(ArchiveError):
    """A whole batch call was rejected (network, auth, throttling, validation)."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


def map_client_error(e: Exception) -> TransportFailure:
    from botocore.exceptions import BotoCoreError, ClientError

    if isinstance(e, TransportFailure):
        return e
    if isinstance(e, ClientError):
        err = e.response.get("Error", {})
        return TransportFailure(err.get("Code") or "ClientError", err.get("Message") or str(e))
    if isinstance(e, BotoCoreError):
        return TransportFailure(type(e).__name__, str(e))
    return TransportFailure(type(e).__name__, str(e))
