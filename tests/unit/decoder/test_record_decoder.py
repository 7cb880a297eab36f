"""
Tests for decoding Cloud Logging entries into LogRecords.

Decoding is best-effort: bad fields are skipped, the rest is kept, and
the problem is reported through DecodeError.record.
"""

import json

import pytest
from pydantic import ValidationError

from kubetail.core.decoder import decode_record
from kubetail.core.exceptions import DecodeError
from kubetail.models.log_record import LogRecord


class TestRecordDecoder:
    """Test decoding of well-formed and malformed payloads."""

    def test_legacy_gke_entry(self, make_entry):
        """Test all fields of a legacy GKE entry are mapped."""
        payload = json.dumps(make_entry()).encode()

        record = decode_record(payload)

        assert record.timestamp == "2024-01-01T00:00:00Z"
        assert record.text_payload == "started"
        assert record.structured_payload == ""
        assert record.pod_name == "app-7d8"
        assert record.namespace_name == "default"
        assert record.container_name == "app"
        assert record.project_id == "demo-project"
        assert record.zone == "us-central1-a"

    def test_k8s_container_resource_labels(self):
        """Test workload labels fall back to the k8s_container resource."""
        entry = {
            "timestamp": "2024-01-01T00:00:00Z",
            "textPayload": "hello",
            "resource": {
                "type": "k8s_container",
                "labels": {
                    "project_id": "demo-project",
                    "location": "europe-west1",
                    "namespace_name": "payments",
                    "pod_name": "api-5c9",
                    "container_name": "api",
                },
            },
        }

        record = decode_record(json.dumps(entry).encode())

        assert record.pod_name == "api-5c9"
        assert record.namespace_name == "payments"
        assert record.container_name == "api"
        assert record.zone == "europe-west1"

    def test_json_payload_kept_verbatim(self):
        """Test jsonPayload keeps its own text: numbers and escapes are not rewritten."""
        payload = (
            b'{"timestamp": "2024-01-01T00:00:00Z",\n'
            b' "jsonPayload" : {"level": "info", "n": 1e5, "s": "caf\\u00e9"} ,\n'
            b' "resource": {"labels": {"container_name": "app"}}}'
        )

        record = decode_record(payload)

        assert record.structured_payload == '{"level": "info", "n": 1e5, "s": "caf\\u00e9"}'
        assert record.container_name == "app"

    def test_json_payload_duplicate_key_last_wins(self):
        """Test the last jsonPayload member is the one kept, as json.loads does."""
        payload = b'{"jsonPayload": {"a": 1}, "jsonPayload": ["x", {"b": "}"}]}'

        record = decode_record(payload)

        assert record.structured_payload == '["x", {"b": "}"}]'

    def test_json_payload_with_utf8_bom(self):
        """Test a leading byte order mark is tolerated."""
        payload = b"\xef\xbb\xbf" + b'{"jsonPayload": {"message": "hi"}}'

        record = decode_record(payload)

        assert record.structured_payload == '{"message": "hi"}'

    def test_null_json_payload_is_empty(self, make_entry):
        """Test a null jsonPayload is treated as absent."""
        entry = make_entry(text_payload=None)
        entry["jsonPayload"] = None

        record = decode_record(json.dumps(entry).encode())

        assert record.structured_payload == ""

    def test_missing_fields_are_empty(self):
        """Test absent fields decode as empty strings without error."""
        record = decode_record(b"{}")

        assert record == LogRecord()

    def test_invalid_json_carries_empty_record(self):
        """Test unparseable payloads raise with an empty record attached."""
        with pytest.raises(DecodeError) as exc_info:
            decode_record(b"not json at all")

        assert exc_info.value.record == LogRecord()
        assert exc_info.value.error_code == "decode_error"

    def test_invalid_utf8_carries_empty_record(self):
        """Test undecodable bytes are reported, not raised raw."""
        with pytest.raises(DecodeError) as exc_info:
            decode_record(b"\x80\x81log")

        assert exc_info.value.record == LogRecord()

    def test_non_object_payload(self):
        """Test a JSON array is rejected with an empty record."""
        with pytest.raises(DecodeError) as exc_info:
            decode_record(b"[1, 2, 3]")

        assert exc_info.value.record == LogRecord()
        assert exc_info.value.details["payload_type"] == "list"

    def test_wrong_field_type_keeps_other_fields(self, make_entry):
        """Test a mistyped field is skipped and the rest still decodes."""
        entry = make_entry()
        entry["textPayload"] = 42

        with pytest.raises(DecodeError) as exc_info:
            decode_record(json.dumps(entry).encode())

        record = exc_info.value.record
        assert record.text_payload == ""
        assert record.pod_name == "app-7d8"
        assert record.container_name == "app"
        assert exc_info.value.details["fields"] == ["textPayload"]

    def test_labels_not_an_object(self, make_entry):
        """Test non-object labels are reported and treated as empty."""
        entry = make_entry()
        entry["labels"] = ["oops"]

        with pytest.raises(DecodeError) as exc_info:
            decode_record(json.dumps(entry).encode())

        record = exc_info.value.record
        assert record.pod_name == ""
        assert record.container_name == "app"
        assert "labels" in exc_info.value.details["fields"]

    def test_record_is_immutable(self, make_entry):
        """Test decoded records cannot be modified."""
        record = decode_record(json.dumps(make_entry()).encode())

        with pytest.raises(ValidationError):
            record.pod_name = "other"
