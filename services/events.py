import logging
import threading
from dataclasses import dataclass
from typing import Optional

log = logging.getLogger(__name__)

DATA_APPENDED = "data-appended"
FETCH_ERROR = "fetch-error"
MALFORMED_RESPONSE = "malformed-response"
TRUNCATED = "truncated"

ALL = "*"


@dataclass
class FetchError:
    message: str
    cause: Optional[Exception] = None

    def to_dict(self):
        return {"message": self.message,
                "cause": str(self.cause) if self.cause else None}


@dataclass
class Truncation:
    previous_size: Optional[int]
    new_size: Optional[int]
    probe_error: Optional[str] = None

    def to_dict(self):
        return {"previous_size": self.previous_size,
                "new_size": self.new_size,
                "probe_error": self.probe_error}


class EventChannel:
    """Named callback registry. Callbacks get (name, payload)."""

    def __init__(self):
        self._listeners = {}
        self._lock = threading.Lock()

    def subscribe(self, name, callback):
        with self._lock:
            self._listeners.setdefault(name, []).append(callback)

        def unsubscribe():
            with self._lock:
                callbacks = self._listeners.get(name, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def emit(self, name, payload=None):
        with self._lock:
            callbacks = list(self._listeners.get(name, ()))
            callbacks += self._listeners.get(ALL, ())
        for callback in callbacks:
            try:
                callback(name, payload)
            except Exception:
                log.exception("Listener for %s failed", name)
