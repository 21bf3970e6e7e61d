import os
import re
from flask import Blueprint, Response, abort, current_app, request

logs_bp = Blueprint("logs", __name__, url_prefix="/logs")

_RANGE = re.compile(r"^\s*bytes\s*=\s*(\d*)\s*-\s*(\d*)\s*$")


def _safe_path(logs_dir, subpath):
    """Resolve and validate a path inside LOGS_DIR."""
    root = os.path.realpath(logs_dir)
    target = os.path.realpath(os.path.join(root, subpath))
    # Prevent path traversal
    if target != root and not target.startswith(root + os.sep):
        return None
    return target


def _byte_range(header, size):
    """Inclusive (start, end) for a single byte range.

    Returns None when the header should be ignored (absent, malformed or
    multi-range) and False when the range cannot be satisfied.
    """
    if not header:
        return None
    m = _RANGE.match(header)
    if not m:
        return None
    first, last = m.groups()
    if not first and not last:
        return None

    if not first:
        # Suffix range: the last N bytes, or the whole file if it's shorter
        n = int(last)
        if n == 0 or size == 0:
            return False
        return max(0, size - n), size - 1

    start = int(first)
    end = int(last) if last else size - 1
    if last and end < start:
        return None
    if start >= size:
        return False
    return start, min(end, size - 1)


@logs_bp.route("/<path:subpath>", methods=["GET", "HEAD"])
def serve(subpath):
    logs_dir = current_app.config["LOGS_DIR"]
    target = _safe_path(logs_dir, subpath)
    if target is None:
        abort(403)
    if not os.path.isfile(target):
        abort(404)

    size = os.path.getsize(target)
    rng = _byte_range(request.headers.get("Range"), size)
    headers = {"Accept-Ranges": "bytes", "Cache-Control": "no-cache"}

    if rng is False:
        headers["Content-Range"] = f"bytes */{size}"
        return Response(b"", status=416, headers=headers, mimetype="text/plain")

    with open(target, "rb") as f:
        if rng is None:
            data = f.read()
            return Response(data, status=200, headers=headers, mimetype="text/plain")
        start, end = rng
        f.seek(start)
        data = f.read(end - start + 1)
        if not data:
            # Shrunk below `start` between the stat and the read
            headers["Content-Range"] = f"bytes */{os.fstat(f.fileno()).st_size}"
            return Response(b"", status=416, headers=headers, mimetype="text/plain")

    # The file may have shrunk between the stat and the read
    end = start + len(data) - 1
    headers["Content-Range"] = f"bytes {start}-{end}/{size}"
    return Response(data, status=206, headers=headers, mimetype="text/plain")
