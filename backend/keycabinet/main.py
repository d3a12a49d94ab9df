import atexit
import logging

from flask import Flask, jsonify
from flask_cors import CORS

from keycabinet.api.auth_middleware import init_auth_middleware
from keycabinet.api.error_handlers import register_error_handlers
from keycabinet.api.routes.audit import audit_bp
from keycabinet.api.routes.auth import auth_bp
from keycabinet.api.routes.favorites import favorites_bp
from keycabinet.api.routes.keys import keys_bp
from keycabinet.api.routes.loans import loans_bp
from keycabinet.api.routes.users import users_bp
from keycabinet.config import settings
from keycabinet.scheduler import start_scheduler

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


def create_app(start_background_jobs: bool = None) -> Flask:
    app = Flask(__name__)
    app.json.sort_keys = False

    # CORS
    CORS(
        app,
        origins=[settings.frontend_url],
        supports_credentials=True,
        allow_headers=["Authorization", "Content-Type"],
        methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    )

    register_error_handlers(app)
    init_auth_middleware(app)

    app.register_blueprint(audit_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(keys_bp)
    app.register_blueprint(loans_bp)
    app.register_blueprint(favorites_bp)
    app.register_blueprint(users_bp)

    @app.route("/")
    def root():
        return jsonify({"message": "Key Cabinet API", "version": API_VERSION})

    @app.route("/health")
    def health():
        return jsonify({"status": "healthy"})

    if start_background_jobs is None:
        start_background_jobs = settings.scheduler_enabled
    if start_background_jobs:
        try:
            scheduler = start_scheduler()
        except Exception as e:
            logger.error(f"Error during startup: {e}")
            raise
        atexit.register(lambda: scheduler.shutdown(wait=False))
        app.extensions["scheduler"] = scheduler

    logger.info("Application started")
    return app
