"""
Unit tests for StatementBuilder and payload record building.
"""

import json
from decimal import Decimal

import pytest
from boto3.dynamodb.types import Binary

from resource_archive.builder import StatementBuilder, build_payload_records, encode_image
from resource_archive.errors import PolicyMissing
from resource_archive.models import Statement

TABLE = "resource-db-dev"
PATIENT_ID = "5d431a2a-be00-41b5-9cff-111265b2d9a5"
T = 1_700_000_000


@pytest.fixture
def builder(policy):
    return StatementBuilder(TABLE, policy, clock=lambda: T + 0.75)


def test_single_record_stamps_its_own_row(builder, make_record):
    """One Patient at version 1 yields exactly one statement with now + retention."""
    result = builder.build([make_record(id=PATIENT_ID, version=1)])

    assert result.rejected == []
    assert result.operations == [Statement(table=TABLE, id=PATIENT_ID, version=1, ttl=T + 150000)]
    assert result.operations[0].text == (
        f'UPDATE "{TABLE}" SET _ttlInSeconds = {T + 150000} '
        f"WHERE id = '{PATIENT_ID}' AND vid = 1"
    )


def test_cascade_covers_every_prior_version(builder, make_record):
    result = builder.build([make_record(id="abc", version=4)])

    assert [op.version for op in result.operations] == [1, 2, 3, 4]
    assert {op.id for op in result.operations} == {"abc"}
    assert {op.ttl for op in result.operations} == {T + 150000}


def test_cascade_never_goes_past_the_triggering_version(builder, make_record):
    result = builder.build([make_record(id="abc", version=2)])
    assert max(op.version for op in result.operations) == 2


def test_identical_records_collapse(builder, make_record):
    record = make_record()
    result = builder.build([record, record.model_copy()])
    assert len(result.operations) == 1


def test_overlapping_histories_deduplicated(builder, make_record):
    """v2 and v3 of the same id share rows 1 and 2; each row is stamped once."""
    result = builder.build([make_record(id="abc", version=2), make_record(id="abc", version=3)])

    assert [op.version for op in result.operations] == [1, 2, 3]
    assert len(set(result.operations)) == len(result.operations)


def test_clock_read_once_per_build(make_record, policy):
    ticks = iter([T, T + 5000])
    builder = StatementBuilder(TABLE, policy, clock=lambda: next(ticks))

    result = builder.build([make_record(id="a"), make_record(id="b")])

    assert {op.ttl for op in result.operations} == {T + 150000}


def test_policy_missing_isolated_to_its_record(builder, make_record):
    records = [
        make_record(id="obs-1", resource_type="Observation"),
        make_record(id="pat-1", version=2),
    ]
    result = builder.build(records)

    assert [(op.id, op.version) for op in result.operations] == [("pat-1", 1), ("pat-1", 2)]
    assert len(result.rejected) == 1
    assert result.rejected[0].resource_type == "Observation"
    assert result.rejected[0].record_id == "obs-1"


def test_statements_for_raises_policy_missing(builder, make_record):
    with pytest.raises(PolicyMissing, match="Observation"):
        builder.statements_for(make_record(resource_type="Observation"), T)


def test_missing_resource_type_is_not_defaulted(builder, make_record):
    with pytest.raises(PolicyMissing):
        builder.statements_for(make_record(resource_type=None), T)


def test_empty_input_builds_nothing(policy):
    def clock():
        raise AssertionError("clock should not be read for empty input")

    result = StatementBuilder(TABLE, policy, clock=clock).build([])
    assert result.operations == []
    assert result.rejected == []


def test_quotes_in_ids_are_escaped(builder, make_record):
    result = builder.build([make_record(id="o'brien")])
    assert "WHERE id = 'o''brien' AND vid = 1" in result.operations[0].text


def test_table_required(policy):
    with pytest.raises(ValueError):
        StatementBuilder("", policy)


class TestPayloadRecords:
    def test_one_payload_per_record_without_dedup(self, make_record):
        record = make_record(event_name="REMOVE")
        payloads = build_payload_records([record, record])

        assert len(payloads) == 2
        assert payloads[0].describe() == f"{PATIENT_ID}@1"

    def test_payload_is_old_image_as_json_line(self, make_record):
        record = make_record(event_name="REMOVE", id="a87babae", version=3)
        (payload,) = build_payload_records([record])

        assert payload.data.endswith(b"\n")
        doc = json.loads(payload.data)
        assert doc["id"] == "a87babae"
        assert doc["resourceType"] == "Patient"

    def test_encode_image_handles_dynamodb_types(self):
        data = encode_image(
            {
                "vid": Decimal("2"),
                "score": Decimal("0.5"),
                "tags": {"b", "a"},
                "blob": Binary(b"\x00\x01"),
            }
        )
        doc = json.loads(data)

        assert doc == {"vid": 2, "score": 0.5, "tags": ["a", "b"], "blob": "AAE="}

    def test_empty_input(self):
        assert build_payload_records([]) == []
