"""Decoding of the storage flow's XML-derived JSON envelope.

The flow backend converts S3 XML responses into nested lists of single-key
objects: every element is ``{Tag: [children...]}`` and element text lives in a
``{"#text": ...}`` child. A bucket listing looks like::

    {"body": [
        {...},
        {"ListAllMyBucketsResult": [
            {"Owner": [...]},
            {"Buckets": [
                {"Bucket": [{"Name": [{"#text": "my-bucket"}]},
                            {"CreationDate": [{"#text": "2024-01-01T00:00:00.000Z"}]}]}
            ]}
        ]}
    ]}

and errors arrive as ``{"success-response": {"body": [{...}, {"Error": [...]}]}}``.
Nothing in this module raises on malformed input; missing nodes degrade to
``None`` or an empty list.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from infrachat.core.logging import get_logger
from infrachat.provisioning.models import ResourceRecord

logger = get_logger(__name__)

TEXT_KEY = "#text"


@dataclass(frozen=True)
class FlowError:
    code: str | None
    message: str | None

    def describe(self) -> str:
        return f"AWS Error: {self.code or 'Unknown'} - {self.message or 'no message'}"


def _children(node: Any, tag: str) -> list[Any] | None:
    if not isinstance(node, dict):
        return None
    value = node.get(tag)
    return value if isinstance(value, list) else None


def _find_child(nodes: Any, tag: str, index: int) -> list[Any] | None:
    """Children of the element ``tag`` within ``nodes``.

    The element is expected at ``nodes[index]``; when it is not there the list is
    scanned for the first element carrying the tag.
    """
    if not isinstance(nodes, list):
        return None
    if 0 <= index < len(nodes):
        found = _children(nodes[index], tag)
        if found is not None:
            return found
    for node in nodes:
        found = _children(node, tag)
        if found is not None:
            return found
    return None


def _text(nodes: list[Any] | None) -> str | None:
    if not nodes or not isinstance(nodes[0], dict):
        return None
    value = nodes[0].get(TEXT_KEY)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _body(payload: Any) -> list[Any] | None:
    if not isinstance(payload, dict):
        return None
    envelope = payload.get("success-response")
    if not isinstance(envelope, dict):
        envelope = payload
    body = envelope.get("body")
    return body if isinstance(body, list) else None


def _normalize_timestamp(raw: str | None) -> str | None:
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("unparseable bucket creation date", raw=raw)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC).isoformat()


def extract_flow_error(payload: Any) -> FlowError | None:
    body = _body(payload)
    error = _find_child(body, "Error", 1)
    if error is None:
        return None
    code = _find_child(error, "Code", 0)
    message = _find_child(error, "Message", 1)
    return FlowError(code=_text(code), message=_text(message))


def _bucket_record(entry: Any) -> ResourceRecord | None:
    bucket = _children(entry, "Bucket")
    if bucket is None:
        return None
    name = _text(_find_child(bucket, "Name", 0))
    if not name:
        return None
    created = _normalize_timestamp(_text(_find_child(bucket, "CreationDate", 1)))
    region = _text(_find_child(bucket, "BucketRegion", 2))
    return ResourceRecord(id=name, name=name, region=region, created_at=created)


def parse_bucket_list(payload: Any) -> list[ResourceRecord]:
    body = _body(payload)
    result = _find_child(body, "ListAllMyBucketsResult", 1)
    buckets = _find_child(result, "Buckets", 1)
    if not buckets:
        return []
    records = [r for r in (_bucket_record(entry) for entry in buckets) if r is not None]
    if len(records) != len(buckets):
        logger.debug("dropped unnamed bucket entries", total=len(buckets), kept=len(records))
    return records
