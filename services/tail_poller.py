import logging
import threading

from services import range_interpreter, range_planner, tail_buffer
from services.events import (
    DATA_APPENDED, FETCH_ERROR, MALFORMED_RESPONSE, TRUNCATED,
    EventChannel, FetchError, Truncation,
)
from services.range_interpreter import (
    MALFORMED, NEW_BYTES, TRUNCATED as TRUNCATED_KIND, UNCHANGED,
    MalformedResponseError, TransportFailure, Truncated, interpret,
)
from services.transport import HttpTransport, TransportError

log = logging.getLogger(__name__)

FETCH_ERROR_MESSAGE = ("Fetching the log file failed. This may be due to a "
                       "network error. Please try again in a few minutes")


class TailPoller:
    """Drives one TailSession: plan, request, interpret, merge, notify, repeat.

    Cycles are scheduled with a timer, one pending timer at most. A cycle is
    skipped while the session is paused (the loop keeps ticking) or while a
    request is already in flight (no-op). A transport failure (or any other
    error escaping a cycle) is reported as fetch-error and pauses the
    session and stops the loop until resume(). stop() cancels the pending
    timer and discards any response still in flight.
    """

    def __init__(self, session, transport=None, events=None,
                 probe_size=False, timer_factory=threading.Timer):
        self.session = session
        self._owns_transport = transport is None
        self.transport = transport or HttpTransport()
        self.events = events or EventChannel()
        self.probe_size = probe_size
        self._probed_size = None
        self._timer_factory = timer_factory
        self._timer = None
        self._lock = threading.Lock()
        # Held while the buffer changes and its increment is emitted
        self._buffer_lock = threading.RLock()
        self._started = False
        self._stopped = False

    @property
    def stopped(self):
        return self._stopped

    def _log(self, msg, *args):
        level = logging.INFO if self.session.debug else logging.DEBUG
        log.log(level, msg, *args)

    # --- loop control ---

    def start(self):
        with self._lock:
            if self._stopped or self._started:
                return
            self._started = True
        log.info("Tailing %s (load_bytes=%d, poll=%dms)", self.session.url,
                 self.session.load_bytes, self.session.poll_interval_ms)
        self._schedule(0)

    def pause(self):
        self.session.paused = True
        log.info("Paused tail of %s", self.session.url)

    def resume(self):
        self.session.paused = False
        log.info("Resumed tail of %s", self.session.url)
        with self._lock:
            self._started = True
        self._schedule(0)

    def stop(self):
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        if self._owns_transport:
            self.transport.close()
        log.info("Stopped tail of %s", self.session.url)

    def _schedule(self, delay_s):
        with self._lock:
            if self._stopped:
                return
            if self._timer is not None:
                self._timer.cancel()
            timer = self._timer_factory(delay_s, self.poll)
            timer.daemon = True
            self._timer = timer
        timer.start()

    def _schedule_next(self):
        self._schedule(self.session.poll_interval_ms / 1000)

    # --- one cycle ---

    def poll(self):
        """Run one cycle. Returns its outcome, or None when skipped."""
        session = self.session
        with self._lock:
            if self._stopped:
                return None
            if session.loading:
                self._log("Skipping cycle for %s: request in flight", session.url)
                return None
            paused = session.paused
            if not paused:
                session.loading = True

        if paused:
            self._schedule_next()
            return None

        try:
            outcome = self._cycle()
        except Exception as e:
            log.exception("Tail cycle for %s failed", session.url)
            outcome = self._transport_failed(TransportError(str(e), cause=e))
        finally:
            session.loading = False

        if outcome is not None and not isinstance(outcome, TransportFailure):
            self._schedule_next()
        return outcome

    def _cycle(self):
        session = self.session

        if self.probe_size and not session.known_file_size and self._probed_size is None:
            try:
                self._probed_size = range_interpreter.probe_size(self.transport, session.url)
            except TransportError as e:
                return self._transport_failed(e)
            except MalformedResponseError as e:
                if self._stopped:
                    return None
                self.events.emit(MALFORMED_RESPONSE, e.outcome)
                return e.outcome

        plan = range_planner.plan(session.known_file_size, session.load_bytes,
                                  self._probed_size)
        self._log("GET %s Range: bytes=%s", session.url, plan.range_spec)

        try:
            resp = self.transport.get(session.url, plan.headers())
        except TransportError as e:
            return self._transport_failed(e)

        if self._stopped:
            self._log("Discarding response for stopped tail of %s", session.url)
            return None

        outcome = interpret(resp.status, resp.headers, resp.body,
                            plan.expect_must_get_206, anchored=plan.anchored,
                            reason=resp.reason)
        self._log("%s %s -> %s", resp.status, plan.range_spec, outcome.kind)

        if outcome.kind == NEW_BYTES:
            if (plan.anchored and session.known_file_size is not None
                    and outcome.reported_total_size < session.known_file_size):
                return self._truncated(Truncated(new_size=outcome.reported_total_size))
            return self._apply(outcome, plan, resp)
        if outcome.kind == UNCHANGED:
            if plan.anchored:
                session.known_file_size = outcome.reported_total_size
            return outcome
        if outcome.kind == TRUNCATED_KIND:
            return self._truncated(outcome)
        if outcome.kind == MALFORMED:
            log.warning("Malformed response from %s: %s", session.url, outcome.detail)
            self.events.emit(MALFORMED_RESPONSE, outcome)
        return outcome

    def _apply(self, outcome, plan, resp):
        session = self.session
        with self._buffer_lock:
            try:
                increment = tail_buffer.merge(outcome, session, plan)
            except tail_buffer.ResponseTooLongError as e:
                malformed = e.outcome
                malformed.status = resp.status
                malformed.status_text = resp.reason or ""
                malformed.headers = dict(resp.headers.items())
                log.warning("Malformed response from %s: %s", session.url, malformed.detail)
                self.events.emit(MALFORMED_RESPONSE, malformed)
                return malformed

            session.known_file_size = outcome.reported_total_size
            if increment:
                self.events.emit(DATA_APPENDED, increment)
        return outcome

    def _truncated(self, outcome):
        session = self.session
        if self._stopped:
            return None
        probe_error = None
        if outcome.new_size is None:
            try:
                outcome.new_size = range_interpreter.probe_size(self.transport, session.url)
            except (TransportError, MalformedResponseError) as e:
                probe_error = str(e)
            if self._stopped:
                return None

        previous = session.known_file_size
        log.info("%s was truncated (%s -> %s bytes), reloading tail",
                 session.url, previous, outcome.new_size)
        with self._buffer_lock:
            session.known_file_size = None
            session.buffer = b""
            self._probed_size = None
            self.events.emit(TRUNCATED, Truncation(previous, outcome.new_size, probe_error))
        return outcome

    def _transport_failed(self, error):
        session = self.session
        if self._stopped:
            self._log("Ignoring failure for stopped tail of %s: %s", session.url, error)
            return None
        session.paused = True
        log.warning("Fetching %s failed, pausing: %s", session.url, error)
        self.events.emit(FETCH_ERROR, FetchError(FETCH_ERROR_MESSAGE, error.cause or error))
        return TransportFailure(cause=error.cause or error)

    def subscribe_with_snapshot(self, name, callback):
        """Subscribe and return (buffer, unsubscribe) with no increment
        either missed or delivered twice between the two."""
        with self._buffer_lock:
            return self.session.buffer, self.events.subscribe(name, callback)
