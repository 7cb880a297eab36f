"""
Summary extraction and line rendering.

Upstream entries are either captured stdout (textPayload) or structured
JSON logging (jsonPayload). The extractor degrades through these tiers:

1. trimmed textPayload
2. the "message" field of jsonPayload
3. the jsonPayload text exactly as it appeared in the entry
4. a fixed fallback string
"""

import json

from ..models.log_record import LogRecord

FALLBACK_SUMMARY = "Unable to determine text log"


def summarize(record: LogRecord) -> str:
    """Return the best available human-readable text for a record. Never empty."""
    text = record.text_payload.strip()
    if text:
        return text

    if not record.structured_payload:
        return FALLBACK_SUMMARY

    try:
        payload = json.loads(record.structured_payload)
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message:
            return message

    return record.structured_payload


def render_line(record: LogRecord, summary: str) -> str:
    """Format one output line: "<timestamp> [<pod>]: <summary>"."""
    return f"{record.timestamp} [{record.pod_name}]: {summary}"
