import logging
from typing import Any

from dotenv import load_dotenv
from flask import Flask, g, render_template, request, session

from app.portal.api import bp as api_bp
from app.portal.auth.session_store import load_current_session
from app.portal.auth.views import bp as auth_bp
from app.portal.config import load_config
from app.portal.dashboard import bp as dashboard_bp
from app.portal.remote import init_cms
from app.portal.routes import bp as routes_bp
from app.portal.security import ensure_csrf_token, validate_csrf

_UNTRACKED_PREFIXES = ("/static/", "/health", "/healthz")


def create_app(config_overrides: dict[str, Any] | None = None) -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    if config_overrides:
        app.config.update(config_overrides)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_cms(app)

    @app.context_processor
    def _inject_template_globals() -> dict:
        return {
            "csrf_token": ensure_csrf_token(),
            "current_session": getattr(g, "session_record", None),
        }

    def _load_session_wrapper():
        if request.path.startswith(_UNTRACKED_PREFIXES):
            g.session_record = None
            return None
        return load_current_session()

    app.before_request(_load_session_wrapper)

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(_UNTRACKED_PREFIXES):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Auth and JSON API endpoints carry their own credentials.
            endpoint = request.endpoint or ""
            if endpoint.startswith(("auth.", "api.")):
                return None
            if not validate_csrf(request):
                return render_template("errors/400.html", message="CSRF token missing or invalid."), 400
        return None

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp, url_prefix="/dashboard")
    app.register_blueprint(api_bp, url_prefix="/api")

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return render_template("errors/500.html"), 500

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return render_template("errors/404.html"), 404

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        app.logger.warning("Forbidden: path=%s request_id=%s", request.path, getattr(g, "request_id", None))
        return render_template("errors/403.html"), 403

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
