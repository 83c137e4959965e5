import logging
import os
from typing import Any, Optional

from flask import Flask, jsonify
from flask_cors import CORS
from pymongo.errors import DuplicateKeyError
from werkzeug.exceptions import (
    BadRequest,
    Conflict,
    Forbidden,
    HTTPException,
    MethodNotAllowed,
    NotFound,
    Unauthorized,
)

from gomint.core import (
    configure_logging,
    ensure_indexes,
    env_flag,
    get_auth_settings,
    get_database,
    get_mongo_client,
    load_environment,
)
from gomint.routes import create_api_blueprint
from gomint.services.lifecycle import TransitionError

logger = logging.getLogger(__name__)


def error_response(slug: str, message: str, status: int, **extra: Any):
    response = jsonify({"error": slug, "message": message, **extra})
    response.status_code = status
    return response


def duplicate_field(error: DuplicateKeyError) -> Optional[str]:
    details = error.details or {}
    keys = details.get("keyValue") or details.get("keyPattern") or {}
    return next(iter(keys), None)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(Unauthorized)
    def handle_unauthorized(error):
        return error_response("unauthorized", error.description, 401)

    @app.errorhandler(BadRequest)
    def handle_bad_request(error):
        return error_response("bad_request", error.description, 400)

    @app.errorhandler(Forbidden)
    def handle_forbidden(error):
        return error_response("forbidden", error.description, 403)

    @app.errorhandler(NotFound)
    def handle_not_found(error):
        return error_response("not_found", error.description, 404)

    @app.errorhandler(MethodNotAllowed)
    def handle_method_not_allowed(error):
        return error_response("method_not_allowed", error.description, 405)

    @app.errorhandler(Conflict)
    def handle_conflict(error):
        return error_response("conflict", error.description, 409)

    @app.errorhandler(TransitionError)
    def handle_transition_error(error):
        return error_response(
            "invalid_transition", error.message, 409, **{"from": error.current, "to": error.target}
        )

    @app.errorhandler(DuplicateKeyError)
    def handle_duplicate_key(error):
        field = duplicate_field(error)
        message = f"{field} already in use" if field else "duplicate value for a unique field"
        return error_response("conflict", message, 409)

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        if isinstance(error, HTTPException):
            return error_response(error.name.lower().replace(" ", "_"), error.description, error.code)
        app.logger.exception("Unhandled error: %s", error)
        return error_response("internal_error", "An internal error occurred", 500)


def create_app(database=None) -> Flask:
    load_environment()
    configure_logging()
    app = Flask(__name__)

    allowed_origin = os.environ.get("CLIENT_ORIGIN", "http://localhost:5173").rstrip("/")
    CORS(
        app,
        resources={r"/api/*": {"origins": [allowed_origin, "http://127.0.0.1:5173"]}},
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
        expose_headers=["Content-Type"],
    )

    mongo_client = None
    if database is None:
        mongo_client = get_mongo_client()
        database = get_database(mongo_client)
    ensure_indexes(database)

    app.config.update(
        AUTH_SETTINGS=get_auth_settings(),
        MONGO_CLIENT=mongo_client,
        MONGO_DB=database,
    )

    if env_flag("SEED"):
        from gomint.seed import seed_demo_data

        logger.info("SEED=true, seeding demo data")
        seed_demo_data(database)

    @app.get("/api/health")
    def health_check():
        return jsonify({"status": "ok"})

    register_error_handlers(app)
    app.register_blueprint(create_api_blueprint(database))

    return app


if __name__ == "__main__":
    # Create and run the Flask app directly (use a WSGI server in production)
    app = create_app()
    port = int(os.environ.get("PORT", "3000"))
    debug = env_flag("FLASK_DEBUG")
    app.run(host="0.0.0.0", port=port, debug=debug)
