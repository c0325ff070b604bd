"""
Flask application factory.

All errors leave as JSON {"error": ..., "details": ...}; the status code
comes from utils.error_handler.http_status_for().
"""
from typing import Optional

from flask import Flask, jsonify
from loguru import logger
from werkzeug.exceptions import HTTPException

from src.api.routes import BLUEPRINTS
from src.api.services import EXTENSION_KEY, MelaServices, build_services
from utils.error_handler import MelaException, http_status_for
from utils.platform import now_ist

ERROR_LABELS = {
    400: "Invalid request",
    401: "API key required",
    402: "Insufficient Stonks",
    404: "Not found",
    409: "Conflict",
    429: "Rate limit reached",
    502: "All AI providers exhausted or failed",
}


def _error_response(status: int, details: str):
    label = ERROR_LABELS.get(status, "Internal error")
    return jsonify({"error": label, "details": details}), status


def create_app(services: Optional[MelaServices] = None) -> Flask:
    app = Flask(__name__)
    app.json.sort_keys = False
    app.extensions[EXTENSION_KEY] = services or build_services()

    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)

    @app.errorhandler(MelaException)
    def handle_mela_error(e: MelaException):
        status = http_status_for(e)
        if status >= 500:
            logger.error(f"{type(e).__name__}: {e.message}")
        else:
            logger.debug(f"{type(e).__name__} -> {status}: {e.message}")
        return _error_response(status, e.message)

    @app.errorhandler(ValueError)
    def handle_value_error(e: ValueError):
        return _error_response(400, str(e))

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return jsonify({"error": e.name, "details": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.exception(f"Unhandled error: {e}")
        return _error_response(500, str(e))

    @app.get("/health")
    def health():
        svc = app.extensions[EXTENSION_KEY]
        return jsonify({
            "status": "ok",
            "time": now_ist().isoformat(),
            "activeProvider": svc.gateway.current_provider(),
            "providers": svc.gateway.get_provider_status(),
            "chatSessions": svc.broker.session_count(),
        })

    logger.info(f"AI Mela API ready ({len(BLUEPRINTS)} blueprints)")
    return app
