"""
Classifies range responses into typed outcomes.

Every outcome is a plain dataclass tagged by `kind`. Protocol problems are
returned as `Malformed` values rather than raised, so the poller can report
them and keep polling. Only `probe_size()` raises, since a HEAD probe has no
cycle to report into.
"""
import re
from dataclasses import dataclass, field
from typing import Optional

from requests.structures import CaseInsensitiveDict

NEW_BYTES = "new-bytes"
UNCHANGED = "unchanged"
TRUNCATED = "truncated"
MALFORMED = "malformed"
TRANSPORT_FAILURE = "transport-failure"

# Malformed reasons
MISSING_HEADER = "missing-header"
INVALID_HEADER = "invalid-header"
UNEXPECTED_STATUS = "unexpected-status"
NON_206 = "non-206"
RESPONSE_TOO_LONG = "response-too-long"

_DIGITS = re.compile(r"^[0-9]+$")
_UNSATISFIED_RANGE = re.compile(r"^\s*bytes\s+\*/([0-9]+)\s*$")


@dataclass
class NewBytes:
    body: bytes
    reported_total_size: int
    kind: str = field(default=NEW_BYTES, init=False)


@dataclass
class Unchanged:
    reported_total_size: int
    kind: str = field(default=UNCHANGED, init=False)


@dataclass
class Truncated:
    new_size: Optional[int] = None
    kind: str = field(default=TRUNCATED, init=False)


@dataclass
class Malformed:
    reason: str
    status: Optional[int] = None
    status_text: str = ""
    headers: dict = field(default_factory=dict)
    detail: str = ""
    length: Optional[int] = None
    kind: str = field(default=MALFORMED, init=False)

    def to_dict(self):
        return {
            "reason": self.reason,
            "status": self.status,
            "status_text": self.status_text,
            "headers": dict(self.headers),
            "detail": self.detail,
            "length": self.length,
        }


@dataclass
class TransportFailure:
    cause: Exception
    kind: str = field(default=TRANSPORT_FAILURE, init=False)


class MalformedResponseError(Exception):
    def __init__(self, outcome):
        super().__init__(outcome.detail or outcome.reason)
        self.outcome = outcome


def parse_int(value):
    """Digits-only integer parse. Returns None for anything else."""
    if value is None:
        return None
    value = str(value).strip()
    if not _DIGITS.match(value):
        return None
    return int(value)


def parse_content_range_total(value):
    """Total size from `[bytes ]<start>-<end>/<total>`, or None."""
    if not value or "/" not in value:
        return None
    return parse_int(value.rsplit("/", 1)[1])


def _malformed(reason, status, reason_text, headers, detail):
    return Malformed(
        reason=reason,
        status=status,
        status_text=reason_text or "",
        headers=dict(headers.items()),
        detail=detail,
    )


def interpret(status, headers, body, must_get_206, anchored=False, reason=""):
    """Classify one response to a planned range request."""
    headers = CaseInsensitiveDict(headers or {})
    body = body or b""

    if status == 206:
        content_range = headers.get("Content-Range")
        if not content_range:
            return _malformed(MISSING_HEADER, status, reason, headers,
                              "206 response without a Content-Range header")
        total = parse_content_range_total(content_range)
        if total is None:
            return _malformed(INVALID_HEADER, status, reason, headers,
                              f"Invalid Content-Range {content_range!r}")
        if anchored and len(body) == 1:
            return Unchanged(reported_total_size=total)
        return NewBytes(body=body, reported_total_size=total)

    if status == 200:
        if must_get_206:
            return _malformed(NON_206, status, reason, headers,
                              "Expected 206 Partial Content, got 200")
        content_length = headers.get("Content-Length")
        if content_length is None:
            total = len(body)
        else:
            total = parse_int(content_length)
            if total is None:
                return _malformed(INVALID_HEADER, status, reason, headers,
                                  f"Invalid Content-Length {content_length!r}")
        return NewBytes(body=body, reported_total_size=total)

    if status == 416:
        if not anchored:
            # Nothing to load: a suffix range against an empty file
            return Unchanged(reported_total_size=0)
        match = _UNSATISFIED_RANGE.match(headers.get("Content-Range") or "")
        return Truncated(new_size=int(match.group(1)) if match else None)

    return _malformed(UNEXPECTED_STATUS, status, reason, headers,
                      f"Unexpected server response {status} {reason}".strip())


def probe_size(transport, url):
    """HEAD the url and return its Content-Length.

    Raises MalformedResponseError when the response is not a 2xx or lacks a
    usable Content-Length. TransportError propagates unchanged.
    """
    resp = transport.head(url)
    headers = CaseInsensitiveDict(resp.headers or {})
    if not 200 <= resp.status < 300:
        raise MalformedResponseError(_malformed(
            UNEXPECTED_STATUS, resp.status, resp.reason, headers,
            f"Size probe got {resp.status} {resp.reason}".strip()))
    content_length = headers.get("Content-Length")
    if content_length is None:
        raise MalformedResponseError(_malformed(
            MISSING_HEADER, resp.status, resp.reason, headers,
            "Size probe response without a Content-Length header"))
    size = parse_int(content_length)
    if size is None:
        raise MalformedResponseError(_malformed(
            INVALID_HEADER, resp.status, resp.reason, headers,
            f"Invalid Content-Length {content_length!r}"))
    return size
