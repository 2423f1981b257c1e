"""
Tests for botsync.framework.export module.

Tests cover:
- Change-aware suppression (fingerprint + last_updated)
- Per-item stamping and partial consumption
- Two-phase export_batch
- JSON lines / JSON array output
- spotcheck_data and validate_data (no stamping)
"""

import io
import json
import threading

import pytest

from botsync.core.errors import ConfigError
from botsync.core.validation import Validator
from botsync.framework.export import EXPORT_FINGERPRINT, LAST_EXPORTED_AT, ExportEngine
from botsync.framework.record_type import RecordType


@pytest.fixture
def exporter(store, licence_type, clock):
    return ExportEngine(licence_type, store, Validator(), clock=clock)


def _seed(store, uid, name, **fields):
    store.upsert(["uid"], {"uid": uid, "name": name, "category": "Alcohol", **fields})


class TestExportData:
    def test_same_record_exported_once(self, exporter, store):
        _seed(store, "A1", "Acme Ltd", updated_at="2024-04-01T00:00:00+00:00")

        first = list(exporter.export_data())
        second = list(exporter.export_data())

        assert [p["company"]["name"] for p in first] == ["Acme Ltd"]
        assert second == []

    def test_advanced_last_updated_exports_again(self, exporter, store, clock):
        _seed(store, "A1", "Acme Ltd", updated_at="2024-04-01T00:00:00+00:00")
        assert len(list(exporter.export_data())) == 1
        assert list(exporter.export_data()) == []

        clock.advance(hours=1)
        store.upsert(["uid"], {"uid": "A1", "updated_at": "2024-05-01T12:30:00+00:00"})

        assert len(list(exporter.export_data())) == 1
        assert list(exporter.export_data()) == []

    def test_changed_content_exports_again(self, exporter, store):
        _seed(store, "A1", "Acme Ltd")
        list(exporter.export_data())

        store.upsert(["uid"], {"uid": "A1", "category": "Gaming"})

        published = list(exporter.export_data())
        assert published[0]["data"][0]["properties"] == {"category": "Gaming"}

    def test_stamps_bookkeeping(self, exporter, store):
        _seed(store, "A1", "Acme Ltd")
        list(exporter.export_data())

        row = store.fetch("A1")
        assert row[LAST_EXPORTED_AT] == "2024-05-01T12:00:00+00:00"
        assert len(row[EXPORT_FINGERPRINT]) == 32
        assert row["name"] == "Acme Ltd"

    def test_partial_consumption_stamps_only_received(self, exporter, store):
        _seed(store, "A1", "Acme Ltd")
        _seed(store, "B2", "Bravo Ltd")

        stream = exporter.export_data()
        next(stream)
        stream.close()

        assert store.fetch("A1")[LAST_EXPORTED_AT] is not None
        assert store.fetch("B2")[LAST_EXPORTED_AT] is None
        assert [p["company"]["name"] for p in exporter.export_data()] == ["Bravo Ltd"]

    def test_paused_stream_does_not_block_writers(self, exporter, store):
        _seed(store, "A1", "Acme Ltd")
        _seed(store, "B2", "Bravo Ltd")

        stream = exporter.export_data()
        next(stream)
        writer = threading.Thread(
            target=store.upsert,
            args=(["uid"], {"uid": "C3", "name": "Charlie Ltd", "category": "Alcohol"}),
        )
        writer.start()
        writer.join(timeout=5)

        assert not writer.is_alive()
        assert store.exists("C3")
        stream.close()

    def test_dry_run_does_not_stamp(self, exporter, store):
        _seed(store, "A1", "Acme Ltd")
        assert len(list(exporter.export_data(stamp=False))) == 1
        assert len(list(exporter.export_data(stamp=False))) == 1
        assert not store.has_column(LAST_EXPORTED_AT)

    def test_volatile_fields_ignored(self, store, clock):
        def publish(record):
            return {
                "company": {"name": record["name"], "jurisdiction": "gb"},
                "data": [{"retrieved_at": record.get("retrieved_at"), "value": record["name"]}],
            }

        record_type = RecordType(
            name="x", publish=publish, publish_schema="publication",
            last_updated=lambda record: None,
        )
        exporter = ExportEngine(record_type, store, Validator(), clock=clock)
        _seed(store, "A1", "Acme Ltd", retrieved_at="2024-05-01T00:00:00+00:00")
        assert len(list(exporter.export_data())) == 1

        store.upsert(["uid"], {"uid": "A1", "retrieved_at": "2024-05-01T11:00:00+00:00"})

        assert list(exporter.export_data()) == []

    def test_sync_writes_do_not_touch_bookkeeping(self, exporter, store):
        _seed(store, "A1", "Acme Ltd")
        list(exporter.export_data())
        before = store.fetch("A1")

        store.upsert(["uid"], {"uid": "A1", "name": "Acme Ltd", "retrieved_at": "2024-05-02"})

        after = store.fetch("A1")
        assert after[LAST_EXPORTED_AT] == before[LAST_EXPORTED_AT]
        assert after[EXPORT_FINGERPRINT] == before[EXPORT_FINGERPRINT]


class TestExportBatch:
    def test_stamps_everything(self, exporter, store):
        _seed(store, "A1", "Acme Ltd")
        _seed(store, "B2", "Bravo Ltd")

        batch = exporter.export_batch()

        assert len(batch) == 2
        assert store.fetch("B2")[LAST_EXPORTED_AT] is not None
        assert exporter.export_batch() == []

    def test_publish_failure_stamps_nothing(self, store, clock):
        def publish(record):
            if record["uid"] == "B2":
                raise ValueError("cannot publish")
            return {"company": {"name": record["name"]}}

        record_type = RecordType(
            name="x", publish=publish, publish_schema="publication", last_updated=lambda r: None
        )
        exporter = ExportEngine(record_type, store, Validator(), clock=clock)
        _seed(store, "A1", "Acme Ltd")
        _seed(store, "B2", "Bravo Ltd")

        with pytest.raises(ValueError):
            exporter.export_batch()

        assert not store.has_column(LAST_EXPORTED_AT)


class TestExportOutput:
    def test_json_lines(self, exporter, store):
        _seed(store, "A1", "Acme Ltd")
        _seed(store, "B2", "Bravo Ltd")
        output = io.StringIO()

        assert exporter.export(output) == 2

        lines = output.getvalue().splitlines()
        assert [json.loads(line)["company"]["name"] for line in lines] == ["Acme Ltd", "Bravo Ltd"]

    def test_json_array(self, exporter, store):
        _seed(store, "A1", "Acme Ltd")
        output = io.StringIO()

        assert exporter.export(output, as_array=True) == 1

        items = json.loads(output.getvalue())
        assert isinstance(items, list)
        assert items[0]["company"]["name"] == "Acme Ltd"


class TestReadOnlyChecks:
    def test_all_stored_records_decoded(self, exporter, store):
        store.upsert(["uid"], {"uid": "A1", "name": "Acme", "tags": '["a","b"]', "data": "{}", "x": None})

        assert exporter.all_stored_records() == [
            {"uid": "A1", "name": "Acme", "tags": ["a", "b"], "x": None}
        ]
        assert exporter.all_stored_records(skip_nulls=True) == [
            {"uid": "A1", "name": "Acme", "tags": ["a", "b"]}
        ]

    def test_spotcheck_all(self, exporter, store):
        _seed(store, "A1", "Acme Ltd")
        _seed(store, "B2", "Bravo Ltd")
        assert len(exporter.spotcheck_data()) == 2
        assert not store.has_column(LAST_EXPORTED_AT)

    def test_spotcheck_sample(self, exporter, store):
        _seed(store, "A1", "Acme Ltd")
        _seed(store, "B2", "Bravo Ltd")
        assert len(exporter.spotcheck_data(sample=1)) == 1

    def test_validate_data_reports_invalid_only(self, exporter, store):
        _seed(store, "A1", "Acme Ltd")
        _seed(store, "B2", "")

        invalid = exporter.validate_data()

        assert len(invalid) == 1
        assert invalid[0]["record"]["company"]["name"] == ""
        assert invalid[0]["errors"][0]["field"] == "company.name"
        assert not store.has_column(LAST_EXPORTED_AT)

    def test_validate_data_all_valid(self, exporter, store):
        _seed(store, "A1", "Acme Ltd")
        assert exporter.validate_data() == []


class TestConstruction:
    def test_non_exportable_type_rejected(self, store):
        record_type = RecordType(name="x", exportable=False)
        with pytest.raises(ConfigError):
            ExportEngine(record_type, store, Validator())
