import logging
from dataclasses import dataclass, field

import requests
from requests.structures import CaseInsensitiveDict

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = (10, 30)  # (connect, read) seconds


class TransportError(Exception):
    """No HTTP response was obtained. The underlying error is `cause`."""

    def __init__(self, message, cause=None):
        super().__init__(message)
        self.cause = cause


@dataclass
class TransportResponse:
    status: int
    reason: str = ""
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    body: bytes = b""


class HttpTransport:
    """GET/HEAD over a requests.Session."""

    def __init__(self, session=None, timeout=DEFAULT_TIMEOUT):
        self.session = session or requests.Session()
        self.timeout = timeout

    def _send(self, method, url, headers=None):
        try:
            r = self.session.request(method, url, headers=headers,
                                     timeout=self.timeout, allow_redirects=True)
        except requests.RequestException as e:
            log.warning("%s %s failed: %s", method, url, e)
            raise TransportError(f"{method} {url} failed: {e}", cause=e) from e
        return TransportResponse(
            status=r.status_code,
            reason=r.reason or "",
            headers=CaseInsensitiveDict(r.headers),
            body=r.content if method != "HEAD" else b"",
        )

    def get(self, url, headers=None):
        return self._send("GET", url, headers)

    def head(self, url):
        return self._send("HEAD", url, {"Accept-Encoding": "identity",
                                        "Cache-Control": "no-cache"})

    def close(self):
        self.session.close()
