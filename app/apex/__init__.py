import logging

from dotenv import load_dotenv
from flask import Flask, request

# Load every model before anything that queries them, so Base.metadata is complete.
from app.apex import models  # noqa: F401
from app.apex.auth import bp as auth_bp, load_current_user
from app.apex.config import load_config
from app.apex.db import ENGINE_KEY, init_db, teardown_db_session
from app.apex.errors import register_error_handlers
from app.apex.routes import bp as routes_bp
from app.apex.modules.customers.admin import bp as customers_bp
from app.apex.modules.employees.admin import bp as employees_bp
from app.apex.modules.engagements.admin import attachments_bp, poc_bp, project_bp
from app.apex.modules.pocs.admin import bp as pocs_bp
from app.apex.modules.projects.admin import bp as projects_bp
from app.apex.modules.tasks.admin import bp as tasks_bp


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.json.sort_keys = app.config["JSON_SORT_KEYS"]

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if not app.config.get("FIREBASE_CREDENTIALS") and not app.config.get("FIREBASE_PROJECT_ID"):
            raise RuntimeError("FIREBASE_CREDENTIALS or FIREBASE_PROJECT_ID is required in production.")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os

        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get(ENGINE_KEY)
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    # Storage config check (fail loudly on misconfiguration)
    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [
            key
            for key in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY")
            if not app.config.get(key)
        ]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))

    if not app.config.get("SMTP_HOST"):
        app.logger.warning("SMTP is not configured; notification emails will only be logged.")

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(employees_bp, url_prefix="/api")
    app.register_blueprint(customers_bp, url_prefix="/api")
    app.register_blueprint(pocs_bp, url_prefix="/api")
    app.register_blueprint(projects_bp, url_prefix="/api")
    app.register_blueprint(poc_bp, url_prefix="/api")
    app.register_blueprint(project_bp, url_prefix="/api")
    app.register_blueprint(attachments_bp, url_prefix="/api")
    app.register_blueprint(tasks_bp, url_prefix="/api")

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)
    register_error_handlers(app)

    allowed_origins = app.config.get("CORS_ORIGINS") or []

    @app.after_request
    def _cors_headers(response):  # type: ignore[no-redef]
        origin = request.headers.get("Origin")
        if origin and ("*" in allowed_origins or origin in allowed_origins):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
        return response

    # Startup logging
    logging.getLogger(__name__).info("create_app() complete; app ready to serve (env=%s)", env or "development")

    return app
