import logging
from datetime import timedelta

from flask import Flask, g, render_template, request, session
from dotenv import load_dotenv

from app.helpdesk.config import load_config
from app.helpdesk.db import init_store
from app.helpdesk.errors import AuthorizationDenied, NotFound, StoreUnavailable
from app.helpdesk.routes import bp as routes_bp
from app.helpdesk.auth import bp as auth_bp, load_current_user
from app.helpdesk.admin import bp as admin_bp
from app.helpdesk.modules.tickets.admin import bp as tickets_bp
from app.helpdesk.modules.clients.admin import bp as clients_bp
from app.helpdesk.modules.users.admin import bp as users_bp
from app.helpdesk.modules.reports.admin import bp as reports_bp
from app.helpdesk.modules.print_settings.admin import bp as print_settings_bp


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    from app.helpdesk.security import ensure_csrf_token, validate_csrf

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    @app.context_processor
    def _inject_permissions() -> dict:
        from app.helpdesk.rbac import can_view_page, user_has_permission, visible_pages

        user = getattr(g, "current_user", None)

        def has_perm(key: str) -> bool:
            return user_has_permission(user, key)

        def can_view(page: str) -> bool:
            return bool(user) and can_view_page(user.role, page)

        return {
            "has_perm": has_perm,
            "can_view": can_view,
            "current_user": user,
            "nav_pages": [p.value for p in visible_pages(user.role)] if user else [],
        }

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d") -> str:
        if value is None:
            return "-"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # login/logout carry no session-bound token yet
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return render_template("errors/400.html", message="CSRF token missing or invalid."), 400

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if app.config.get("STORE_BACKEND") == "sql" and str(app.config.get("DATABASE_URL") or "").startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")

    init_store(app)

    def _dispose_engine_on_fork() -> None:
        import os

        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [
            key
            for key in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY")
            if not app.config.get(key)
        ]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(tickets_bp, url_prefix="/admin")
    app.register_blueprint(clients_bp, url_prefix="/admin")
    app.register_blueprint(users_bp, url_prefix="/admin")
    app.register_blueprint(reports_bp, url_prefix="/admin")
    app.register_blueprint(print_settings_bp, url_prefix="/admin")

    def _load_user_wrapper():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)

    @app.errorhandler(AuthorizationDenied)
    def _err_denied(e: AuthorizationDenied):  # type: ignore[no-redef]
        g.denied_message = e.message
        app.logger.warning("Forbidden: %s request_id=%s", e.message, getattr(g, "request_id", None))
        return render_template("errors/403.html", message=e.message), 403

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        message = getattr(g, "denied_message", None)
        if message:
            app.logger.warning("Forbidden: %s request_id=%s", message, getattr(g, "request_id", None))
        return render_template("errors/403.html", message=message), 403

    @app.errorhandler(NotFound)
    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        message = e.message if isinstance(e, NotFound) else None
        return render_template("errors/404.html", message=message), 404

    @app.errorhandler(StoreUnavailable)
    def _err_503(e: StoreUnavailable):  # type: ignore[no-redef]
        app.logger.error(
            "Store unavailable (request_id=%s): %s", getattr(g, "request_id", None), e.__cause__ or e
        )
        return render_template("errors/503.html", message=e.message), 503

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        rid = getattr(g, "request_id", None)
        app.logger.exception("Unhandled 500 (request_id=%s)", rid)
        return render_template("errors/500.html", request_id=rid), 500

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        from flask import flash, redirect, url_for

        flash("File too large.", "danger")
        referrer = request.referrer
        if referrer and referrer.startswith(request.host_url):
            return redirect(referrer), 302
        return redirect(url_for("admin.index")), 302

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
