"""Streaming decoder for ``ListBucketResult`` documents."""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from botocore.utils import parse_timestamp

from .errors import MalformedResponse
from .models import ListPage, ObjectSummary

LOGGER = logging.getLogger(__name__)

ROOT_TAG = "ListBucketResult"
_STRICT_TIMESTAMP = "%Y-%m-%dT%H:%M:%S.%fZ"
_OBJECT_FIELDS = frozenset({"Key", "Size", "LastModified", "ETag", "StorageClass"})


class _State(Enum):
    IDLE = "idle"
    IN_CONTENTS = "in_contents"
    IN_COMMON_PREFIXES = "in_common_prefixes"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_size(text: str) -> Optional[int]:
    try:
        size = int(text)
    except ValueError:
        return None
    return size if size >= 0 else None


def parse_last_modified(text: str) -> Optional[datetime]:
    """Parse an S3 timestamp, strict form first (``2024-01-01T00:00:00.000Z``)."""
    if not text:
        return None
    try:
        return datetime.strptime(text, _STRICT_TIMESTAMP).replace(tzinfo=timezone.utc)
    except ValueError:
        pass
    try:
        float(text)
    except ValueError:
        pass
    else:
        # Bare epoch numbers (and inf/nan) are not ISO-8601 timestamps.
        return None
    try:
        parsed = parse_timestamp(text)
    except (ValueError, OverflowError, RuntimeError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class ListResultDecoder:
    """Single-use decoder turning a ``ListBucketResult`` into a :class:`ListPage`.

    Feed the document in chunks with :meth:`feed` and collect the page with
    :meth:`close`. A ``<Contents>`` entry is only kept when both ``Key`` and
    ``Size`` were readable; anything less is dropped rather than reported.
    """

    def __init__(self) -> None:
        self._parser = ET.XMLPullParser(events=("start", "end"))
        self._state = _State.IDLE
        self._depth = 0
        self._partial: dict[str, object] = {}
        self._page = ListPage()
        self._has_content = False
        self._closed = False

    def feed(self, chunk: bytes | str) -> None:
        if self._closed:
            raise RuntimeError("ListResultDecoder cannot be reused after close()")
        if not chunk:
            return
        if chunk.strip():
            self._has_content = True
        try:
            self._parser.feed(chunk)
            self._drain()
        except ET.ParseError as exc:
            raise MalformedResponse(f"Invalid ListBucketResult XML: {exc}") from exc

    def close(self) -> ListPage:
        if self._closed:
            raise RuntimeError("ListResultDecoder cannot be reused after close()")
        self._closed = True
        if not self._has_content:
            return self._page
        try:
            self._parser.close()
            self._drain()
        except ET.ParseError as exc:
            raise MalformedResponse(f"Invalid ListBucketResult XML: {exc}") from exc
        return self._page

    def _drain(self) -> None:
        for event, element in self._parser.read_events():
            tag = _local_name(element.tag)
            if event == "start":
                self._depth += 1
                self._on_start(tag)
            else:
                self._on_end(tag, (element.text or "").strip())
                self._depth -= 1
                if self._depth == 1:
                    element.clear()

    def _on_start(self, tag: str) -> None:
        if self._depth == 1:
            if tag != ROOT_TAG:
                raise MalformedResponse(f"Expected <{ROOT_TAG}> document, got <{tag}>")
            return
        if self._state is _State.IDLE and self._depth == 2:
            if tag == "Contents":
                self._state = _State.IN_CONTENTS
                self._partial = {}
            elif tag == "CommonPrefixes":
                self._state = _State.IN_COMMON_PREFIXES

    def _on_end(self, tag: str, text: str) -> None:
        if self._state is _State.IN_CONTENTS:
            if tag == "Contents" and self._depth == 2:
                self._finish_contents()
                self._state = _State.IDLE
            elif tag in _OBJECT_FIELDS and self._depth == 3:
                self._assign(tag, text)
            return

        if self._state is _State.IN_COMMON_PREFIXES:
            if tag == "CommonPrefixes" and self._depth == 2:
                self._state = _State.IDLE
            elif tag == "Prefix" and text:
                self._page.common_prefixes.append(text)
            return

        if self._depth != 2:
            return
        if tag == "NextContinuationToken":
            self._page.next_continuation_token = text or None
        elif tag == "IsTruncated":
            self._page.is_truncated = text.lower() == "true"
        elif tag == "KeyCount":
            self._page.key_count = parse_size(text)

    def _assign(self, tag: str, text: str) -> None:
        if tag == "Key":
            if text:
                self._partial["key"] = text
        elif tag == "Size":
            size = parse_size(text)
            if size is not None:
                self._partial["size"] = size
        elif tag == "LastModified":
            self._partial["last_modified"] = parse_last_modified(text)
        elif tag == "ETag":
            self._partial["etag"] = text.strip('"') or None
        elif tag == "StorageClass":
            self._partial["storage_class"] = text or None

    def _finish_contents(self) -> None:
        partial, self._partial = self._partial, {}
        if "key" not in partial or "size" not in partial:
            LOGGER.debug("Dropping incomplete <Contents> entry (fields: %s)", sorted(partial))
            return
        self._page.objects.append(ObjectSummary(**partial))


def decode_list_result(data: bytes | str) -> ListPage:
    """Decode a complete ``ListBucketResult`` document."""
    decoder = ListResultDecoder()
    decoder.feed(data)
    return decoder.close()
