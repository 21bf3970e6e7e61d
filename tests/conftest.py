import os

import pytest
from requests.structures import CaseInsensitiveDict

from app import create_app
from services.transport import TransportResponse


@pytest.fixture
def app(tmp_path):
    application = create_app()
    application.config["TESTING"] = True
    application.config["LOGS_DIR"] = str(tmp_path / "logs")
    (tmp_path / "logs").mkdir()
    return application


@pytest.fixture
def client(app):
    return app.test_client()


def write_log(app, name="app.log", data=b""):
    """Create (or overwrite) a log file under LOGS_DIR."""
    path = os.path.join(app.config["LOGS_DIR"], name)
    with open(path, "wb") as f:
        f.write(data)
    return path


class FakeTimer:
    """Stands in for threading.Timer. Never fires unless fire() is called."""

    created = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            return self.function()


@pytest.fixture
def timers():
    FakeTimer.created = []
    yield FakeTimer
    FakeTimer.created = []


class FakeTransport:
    """Returns queued responses and records every request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []
        self.heads = []
        self.head_responses = []
        self.closed = False

    def get(self, url, headers=None):
        self.requests.append((url, dict(headers or {})))
        resp = self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp

    def head(self, url):
        self.heads.append(url)
        resp = self.head_responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp

    def close(self):
        self.closed = True


def response(status, body=b"", reason="", **headers):
    """Build a TransportResponse; header kwargs use underscores for dashes."""
    hdrs = CaseInsensitiveDict({k.replace("_", "-"): str(v) for k, v in headers.items()})
    return TransportResponse(status=status, reason=reason, headers=hdrs, body=body)


class FlaskClientTransport:
    """Routes transport calls through the Flask test client (the /logs server)."""

    def __init__(self, client):
        self.client = client
        self.closed = False

    def _wrap(self, resp):
        return TransportResponse(
            status=resp.status_code,
            reason=resp.status.split(" ", 1)[1] if " " in resp.status else "",
            headers=CaseInsensitiveDict(dict(resp.headers)),
            body=resp.get_data(),
        )

    def get(self, url, headers=None):
        return self._wrap(self.client.get(url, headers=headers or {}))

    def head(self, url):
        return self._wrap(self.client.head(url))

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def reset_tail_manager():
    """Ensure no tail sessions leak between tests."""
    from services import tail_manager
    tail_manager.stop_all()
    yield
    tail_manager.stop_all()
