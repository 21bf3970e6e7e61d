import json
import queue
from flask import Blueprint, Response, current_app, jsonify, request

from services.events import ALL, DATA_APPENDED
from services.tail_manager import (
    get_tail, get_tail_status, list_tails, pause_tail, resume_tail,
    start_tail, stop_tail,
)

tail_bp = Blueprint("tail", __name__, url_prefix="/tails")

KEEPALIVE_SECONDS = 15


def _result(result, status=200):
    if "error" in result:
        return jsonify(result), 404 if result["error"] == "Tail not found" else 400
    return jsonify(result), status


@tail_bp.route("", methods=["GET"])
def index():
    return jsonify(list_tails())


@tail_bp.route("", methods=["POST"])
def create():
    config = dict(current_app.config["TAIL_DEFAULTS"])
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({"error": "Expected a JSON object"}), 400
    config.update(body)
    return _result(start_tail(config), status=201)


@tail_bp.route("/<tail_id>")
def status(tail_id):
    return _result(get_tail_status(tail_id))


@tail_bp.route("/<tail_id>/content")
def content(tail_id):
    poller = get_tail(tail_id)
    if not poller:
        return jsonify({"error": "Tail not found"}), 404
    return Response(poller.session.text, mimetype="text/plain")


@tail_bp.route("/<tail_id>/pause", methods=["POST"])
def pause(tail_id):
    return _result(pause_tail(tail_id))


@tail_bp.route("/<tail_id>/resume", methods=["POST"])
def resume(tail_id):
    return _result(resume_tail(tail_id))


@tail_bp.route("/<tail_id>/stop", methods=["POST"])
def stop(tail_id):
    return _result(stop_tail(tail_id))


def _event_data(name, payload):
    if name == DATA_APPENDED:
        return {"text": payload.decode("utf-8", errors="replace")}
    return payload.to_dict()


def format_event(name, payload):
    return f"event: {name}\ndata: {json.dumps(_event_data(name, payload))}\n\n"


@tail_bp.route("/<tail_id>/stream")
def stream(tail_id):
    poller = get_tail(tail_id)
    if not poller:
        return jsonify({"error": "Tail not found"}), 404

    events = queue.Queue()
    snapshot, unsubscribe = poller.subscribe_with_snapshot(
        ALL, lambda name, payload: events.put((name, payload)))

    def generate():
        try:
            # Replay what is already buffered, then stream notifications
            if snapshot:
                yield format_event(DATA_APPENDED, snapshot)
            while not poller.stopped:
                try:
                    name, payload = events.get(timeout=KEEPALIVE_SECONDS)
                except queue.Empty:
                    yield ": keepalive\n\n"
                    continue
                yield format_event(name, payload)
            yield "event: done\ndata: stopped\n\n"
        finally:
            unsubscribe()

    return Response(generate(), mimetype="text/event-stream",
                    headers={"Cache-Control": "no-cache",
                             "X-Accel-Buffering": "no"})
