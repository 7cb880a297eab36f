"""
Record decoder for Cloud Logging entries exported to Pub/Sub.

Decoding is best-effort: a field with an unexpected type is left empty
and the rest of the entry is still decoded. Any problem is reported as a
DecodeError that carries the partial record, so the delivery cycle can
keep going with whatever was recovered.
"""

import json
import re
from json.decoder import scanstring
from typing import Any, Dict, List

from ..models.log_record import LogRecord
from .exceptions import DecodeError

# Entry labels written by the legacy GKE logging agent
POD_NAME_LABEL = "container.googleapis.com/pod_name"
NAMESPACE_NAME_LABEL = "container.googleapis.com/namespace_name"

_WHITESPACE = re.compile(r"[ \t\n\r]*")


def decode_record(payload: bytes) -> LogRecord:
    """
    Decode a raw Pub/Sub payload into a LogRecord.

    Args:
        payload: Message data, expected to be a JSON LogEntry

    Returns:
        The decoded record

    Raises:
        DecodeError: If the payload is not a JSON object or any field had
            the wrong type. ``exc.record`` holds the best-effort record.
    """
    try:
        text = payload.decode("utf-8-sig")
        document = json.loads(text)
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeError(
            "Payload is not valid JSON",
            record=LogRecord(),
            details={"error": str(e), "payload_bytes": len(payload)},
        ) from e

    if not isinstance(document, dict):
        raise DecodeError(
            "Payload is not a JSON object",
            record=LogRecord(),
            details={"payload_type": type(document).__name__},
        )

    problems: List[str] = []

    labels = _mapping(document, "labels", "labels", problems)
    resource = _mapping(document, "resource", "resource", problems)
    resource_labels = _mapping(resource, "labels", "resource.labels", problems)

    record = LogRecord(
        timestamp=_text(document, "timestamp", "timestamp", problems),
        text_payload=_text(document, "textPayload", "textPayload", problems),
        structured_payload=_source_text(text, document, "jsonPayload"),
        pod_name=(
            _text(labels, POD_NAME_LABEL, f"labels.{POD_NAME_LABEL}", problems)
            or _text(resource_labels, "pod_name", "resource.labels.pod_name", problems)
        ),
        namespace_name=(
            _text(labels, NAMESPACE_NAME_LABEL, f"labels.{NAMESPACE_NAME_LABEL}", problems)
            or _text(resource_labels, "namespace_name", "resource.labels.namespace_name", problems)
        ),
        container_name=_text(
            resource_labels, "container_name", "resource.labels.container_name", problems
        ),
        project_id=_text(resource_labels, "project_id", "resource.labels.project_id", problems),
        zone=(
            _text(resource_labels, "zone", "resource.labels.zone", problems)
            or _text(resource_labels, "location", "resource.labels.location", problems)
        ),
    )

    if problems:
        raise DecodeError(
            "Payload decoded partially",
            record=record,
            details={"fields": problems},
        )

    return record


def _mapping(
    container: Dict[str, Any],
    key: str,
    path: str,
    problems: List[str],
) -> Dict[str, Any]:
    """Return a nested object, or {} when it is absent or not an object."""
    value = container.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        problems.append(path)
        return {}
    return value


def _text(
    container: Dict[str, Any],
    key: str,
    path: str,
    problems: List[str],
) -> str:
    """Return a string field, or "" when it is absent or not a string."""
    value = container.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        problems.append(path)
        return ""
    return value


def _source_text(text: str, document: Dict[str, Any], key: str) -> str:
    """
    Return a top-level member's value exactly as it appears in the payload.

    "" when the member is absent or null. With duplicate keys the last one
    wins, as it does for json.loads.
    """
    if document.get(key) is None:
        return ""

    decoder = json.JSONDecoder()
    found = ""
    # text is known to hold a single JSON object
    index = _WHITESPACE.match(text).end() + 1
    while True:
        index = _WHITESPACE.match(text, index).end()
        if text[index] == "}":
            return found
        name, index = scanstring(text, index + 1)
        index = _WHITESPACE.match(text, index).end() + 1
        start = _WHITESPACE.match(text, index).end()
        _, index = decoder.raw_decode(text, start)
        if name == key:
            found = text[start:index]
        index = _WHITESPACE.match(text, index).end()
        if text[index] == "}":
            return found
        index += 1
