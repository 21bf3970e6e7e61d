import logging
import os
from flask import Flask

from models.tail_session import DEFAULT_LOAD_BYTES, DEFAULT_POLL_INTERVAL_MS

RANGETAIL_HOME = os.path.dirname(os.path.abspath(__file__))


def create_app():
    app = Flask(__name__)
    app.secret_key = os.environ.get("RANGETAIL_SECRET", "dev-secret-change-me")
    app.config["RANGETAIL_HOME"] = RANGETAIL_HOME
    app.config["LOGS_DIR"] = os.environ.get(
        "RANGETAIL_LOGS_DIR", os.path.join(RANGETAIL_HOME, "logs"))
    app.config["TAIL_DEFAULTS"] = {
        "load_bytes": DEFAULT_LOAD_BYTES,
        "poll_interval_ms": DEFAULT_POLL_INTERVAL_MS,
    }

    os.makedirs(app.config["LOGS_DIR"], exist_ok=True)

    from routes.logs import logs_bp
    from routes.tail import tail_bp

    app.register_blueprint(logs_bp)
    app.register_blueprint(tail_bp)

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = create_app()
    app.run(debug=True, host="0.0.0.0", port=9843, threaded=True)
