import click
from flask import Flask, request, g
from config import Config
from routes import health_bp, auth_bp

from models import db
from models.user import User, Role
from flask_migrate import Migrate
from security.csrf import require_csrf
from security.manager import SessionManager
from security.session import Session
from utils.audit import register_session_audit
from utils.auth_context import bind_request, load_current_user, write_cookies
from utils.seed import seed_roles


def create_app(config_object=Config, country_lookup=None):
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Session engine: settings are frozen from config and passed in explicitly
    manager = SessionManager.from_config(app.config, country_lookup=country_lookup)
    manager.resolver.register(User)
    register_session_audit(manager.events)
    app.extensions["session_manager"] = manager

    # Seed default roles at startup (safe & idempotent)
    if app.config.get("SEED_ROLES_ON_STARTUP", True):
        with app.app_context():
            seed_roles()

    @app.before_request
    def _load_session():
        bind_request()
        load_current_user()

    CSRF_EXEMPT_PATHS = {
        "/auth/login",
        "/auth/register",
        "/health",
    }

    @app.before_request
    def _csrf_protect():
        # Only protect state-changing requests
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            if request.path in CSRF_EXEMPT_PATHS:
                return None

            # Only enforce CSRF if user is already authenticated (cookie session)
            if getattr(g, "user", None) is not None:
                failure = require_csrf()
                if failure:
                    return failure

    @app.after_request
    def _write_session_cookies(resp):
        return write_cookies(resp)

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------

def register_cli(app):
    @app.cli.command("sessions-cleanup")
    def sessions_cleanup():
        """Invalidate expired and inactive sessions (run from cron)."""
        manager = app.extensions["session_manager"]
        invalidated = Session.cleanup(manager)
        click.echo(f"Invalidated {len(invalidated)} sessions")

    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        admin_role = Role.query.filter_by(name="ADMIN").first()
        if not admin_role:
            admin_role = Role(name="ADMIN")
            db.session.add(admin_role)
            db.session.commit()

        if admin_role not in user.roles:
            user.roles.append(admin_role)
            db.session.commit()

        click.echo(f"{user.email} promoted to ADMIN")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
