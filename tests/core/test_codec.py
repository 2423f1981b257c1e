"""
Tests for botsync.core.codec module.

Tests cover:
- Compound values stored as compact JSON text
- Timestamps stored as ISO-8601 text (aware values normalized to UTC)
- None preserved as None
- Input records never mutated
- Decoding drops the reserved payload field and optionally nulls
"""

from datetime import UTC, date, datetime, timedelta, timezone

from botsync.core.codec import (
    RESERVED_PAYLOAD_FIELD,
    decode,
    decode_value,
    encode,
    encode_value,
    strip_payload,
)


class TestEncodeValue:
    def test_list_becomes_compact_json(self):
        assert encode_value([1, 2, {"a": "b"}]) == '[1,2,{"a":"b"}]'

    def test_dict_becomes_compact_json(self):
        assert encode_value({"name": "Foo", "n": 1}) == '{"name":"Foo","n":1}'

    def test_none_stays_none(self):
        assert encode_value(None) is None

    def test_scalars_pass_through(self):
        assert encode_value("abc") == "abc"
        assert encode_value(42) == 42
        assert encode_value(1.5) == 1.5
        assert encode_value(True) is True

    def test_aware_datetime_normalized_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        value = datetime(2024, 5, 1, 12, 0, tzinfo=plus_two)
        assert encode_value(value) == "2024-05-01T10:00:00+00:00"

    def test_naive_datetime_isoformat(self):
        assert encode_value(datetime(2024, 5, 1, 12, 0)) == "2024-05-01T12:00:00"

    def test_date_isoformat(self):
        assert encode_value(date(2024, 5, 1)) == "2024-05-01"

    def test_nested_timestamp_in_compound(self):
        encoded = encode_value({"seen": date(2024, 1, 2)})
        assert encoded == '{"seen":"2024-01-02"}'


class TestEncode:
    def test_returns_new_dict(self):
        record = {"uid": "1", "officers": [{"name": "A"}]}
        encoded = encode(record)
        assert encoded is not record
        assert encoded["officers"] == '[{"name":"A"}]'

    def test_does_not_mutate_input(self):
        officers = [{"name": "A"}]
        retrieved = datetime(2024, 5, 1, tzinfo=UTC)
        record = {"uid": "1", "officers": officers, "retrieved_at": retrieved}
        encode(record)
        assert record == {"uid": "1", "officers": [{"name": "A"}], "retrieved_at": retrieved}
        assert record["officers"] is officers

    def test_null_not_coerced(self):
        assert encode({"uid": "1", "previous_names": None}) == {"uid": "1", "previous_names": None}


class TestDecode:
    def test_json_text_decoded(self):
        row = {"uid": "1", "officers": '[{"name":"A"}]', "attrs": '{"k":"v"}'}
        assert decode(row) == {"uid": "1", "officers": [{"name": "A"}], "attrs": {"k": "v"}}

    def test_plain_text_untouched(self):
        assert decode_value("Acme Ltd") == "Acme Ltd"

    def test_invalid_json_left_as_text(self):
        assert decode_value("[not json") == "[not json"

    def test_payload_field_dropped(self):
        row = {"uid": "1", RESERVED_PAYLOAD_FIELD: '{"raw": true}'}
        assert decode(row) == {"uid": "1"}

    def test_nulls_kept_by_default(self):
        assert decode({"uid": "1", "name": None}) == {"uid": "1", "name": None}

    def test_skip_nulls(self):
        assert decode({"uid": "1", "name": None}, skip_nulls=True) == {"uid": "1"}

    def test_stored_form_round_trips(self):
        record = {"uid": "1", "previous_names": [{"company_name": "Old Ltd"}], "status": None}
        assert decode(encode(record)) == record


class TestStripPayload:
    def test_removes_only_payload(self):
        record = {"uid": "1", "name": "Foo", "data": {"raw": 1}}
        assert strip_payload(record) == {"uid": "1", "name": "Foo"}
        assert "data" in record
