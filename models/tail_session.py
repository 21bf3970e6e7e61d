DEFAULT_LOAD_BYTES = 30 * 1024
DEFAULT_POLL_INTERVAL_MS = 1000

OPTION_NAMES = ("url", "load_bytes", "poll_interval_ms", "paused", "debug")


def _positive_int(name, value):
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise TypeError(f"'{name}' must be a positive integer, not {value!r}")
    return value


class TailSession:
    """State for one tailed remote file.

    Holds the configuration (url, load_bytes, poll_interval_ms, paused, debug)
    and the cursor fields the poller updates each cycle. Only TailBuffer and
    TailPoller mutate `buffer`, `known_file_size` and `first_load`.
    """

    def __init__(self, url, load_bytes=DEFAULT_LOAD_BYTES,
                 poll_interval_ms=DEFAULT_POLL_INTERVAL_MS,
                 paused=False, debug=False):
        if not isinstance(url, str) or not url:
            raise TypeError(f"'url' must be a non-empty string, not {url!r}")
        self._url = url
        self.load_bytes = load_bytes
        self.poll_interval_ms = poll_interval_ms
        self.paused = paused
        self.debug = debug

        self.known_file_size = None
        self.first_load = True
        self.loading = False
        self.buffer = b""

    @property
    def url(self):
        return self._url

    @property
    def load_bytes(self):
        return self._load_bytes

    @load_bytes.setter
    def load_bytes(self, value):
        self._load_bytes = _positive_int("load_bytes", value)

    @property
    def poll_interval_ms(self):
        return self._poll_interval_ms

    @poll_interval_ms.setter
    def poll_interval_ms(self, value):
        self._poll_interval_ms = _positive_int("poll_interval_ms", value)

    @property
    def paused(self):
        return self._paused

    @paused.setter
    def paused(self, value):
        self._paused = bool(value)

    @property
    def debug(self):
        return self._debug

    @debug.setter
    def debug(self, value):
        self._debug = bool(value)

    @property
    def must_get_206(self):
        """True when the next request starts past byte 0 and must be partial."""
        return self.known_file_size is not None and self.known_file_size > 1

    @property
    def text(self):
        return self.buffer.decode("utf-8", errors="replace")

    def to_dict(self):
        return {
            "url": self.url,
            "load_bytes": self.load_bytes,
            "poll_interval_ms": self.poll_interval_ms,
            "paused": self.paused,
            "debug": self.debug,
            "loading": self.loading,
            "known_file_size": self.known_file_size,
            "must_get_206": self.must_get_206,
            "first_load": self.first_load,
            "buffer_bytes": len(self.buffer),
        }

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise TypeError("Tail configuration must be a JSON object")
        unknown = sorted(set(data) - set(OPTION_NAMES))
        if unknown:
            raise TypeError(f"Unknown option(s): {', '.join(unknown)}")
        if "url" not in data:
            raise TypeError("'url' is required")
        return cls(**data)
