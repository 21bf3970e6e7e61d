from services.range_interpreter import (
    RESPONSE_TOO_LONG, UNCHANGED, Malformed, MalformedResponseError,
)

NEWLINE = b"\n"


class ResponseTooLongError(MalformedResponseError):
    """A "last N bytes" request came back with more than N bytes."""


def clip_leading_line(body, total_size):
    """Drop the partial first line of a suffix that doesn't start at byte 0."""
    if total_size > len(body):
        return body[body.find(NEWLINE) + 1:]
    return body


def trim(buffer, load_bytes):
    """Trim `buffer` to at most `load_bytes`, cutting after a newline.

    Cuts after the first newline at or past `len(buffer) - load_bytes`. A tail
    with no such newline (one line longer than the budget) is hard-cut.
    """
    excess = len(buffer) - load_bytes
    if excess <= 0:
        return buffer
    nl = buffer.find(NEWLINE, excess)
    if nl == -1:
        return buffer[excess:]
    return buffer[nl + 1:]


def merge(outcome, session, plan):
    """Merge a NewBytes outcome into `session.buffer`.

    Returns the increment listeners should see: the new content after the
    anchor byte is dropped, before trimming. Suffix requests (the first load,
    or a reload after truncation) replace the buffer instead of appending.
    """
    if outcome.kind == UNCHANGED:
        return b""

    body = outcome.body
    if not plan.anchored:
        if len(body) > session.load_bytes:
            raise ResponseTooLongError(Malformed(
                reason=RESPONSE_TOO_LONG,
                status=None,
                detail=(f"Server response too long: asked for the last "
                        f"{session.load_bytes} bytes, got {len(body)}"),
                length=len(body),
            ))
        increment = clip_leading_line(body, outcome.reported_total_size)
        session.buffer = increment
        session.first_load = False
        return increment

    increment = body[1:]
    if increment:
        session.buffer = trim(session.buffer + increment, session.load_bytes)
    return increment
