import logging
import threading
import uuid

from models.tail_session import TailSession
from services.tail_poller import TailPoller

log = logging.getLogger(__name__)

_pollers = {}  # {tail_id: TailPoller}
_lock = threading.Lock()


def start_tail(config, transport=None, probe_size=False):
    """Create a session from a config dict and start polling it."""
    try:
        session = TailSession.from_dict(config)
    except TypeError as e:
        return {"error": str(e)}

    tail_id = uuid.uuid4().hex[:12]
    poller = TailPoller(session, transport=transport, probe_size=probe_size)
    with _lock:
        _pollers[tail_id] = poller
    poller.start()
    log.info("Started tail %s for %s", tail_id, session.url)
    return {"id": tail_id, **session.to_dict()}


def get_tail(tail_id):
    with _lock:
        return _pollers.get(tail_id)


def get_tail_status(tail_id):
    poller = get_tail(tail_id)
    if not poller:
        return {"error": "Tail not found"}
    return {"id": tail_id, **poller.session.to_dict()}


def list_tails():
    with _lock:
        items = list(_pollers.items())
    return [{"id": tail_id, **poller.session.to_dict()} for tail_id, poller in items]


def pause_tail(tail_id):
    poller = get_tail(tail_id)
    if not poller:
        return {"error": "Tail not found"}
    poller.pause()
    return {"id": tail_id, "status": "paused"}


def resume_tail(tail_id):
    poller = get_tail(tail_id)
    if not poller:
        return {"error": "Tail not found"}
    poller.resume()
    return {"id": tail_id, "status": "running"}


def stop_tail(tail_id):
    """Stop and forget a tail. Stopping an unknown id is an error, not a crash."""
    with _lock:
        poller = _pollers.pop(tail_id, None)
    if not poller:
        return {"error": "Tail not found"}
    poller.stop()
    return {"id": tail_id, "status": "stopped"}


def stop_all():
    with _lock:
        pollers = list(_pollers.values())
        _pollers.clear()
    for poller in pollers:
        poller.stop()
