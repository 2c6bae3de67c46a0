from flask import Flask, jsonify
from sqlalchemy.exc import IntegrityError
from config import Config
from routes import health_bp, auth_bp, booking_bp, offers_bp, admin_bp

from models import db
from flask_migrate import Migrate
from rental.clock import default_clock
from rental.errors import RentalError
from utils.seed import seed_roles
from utils.auth_context import load_current_user
from utils.scheduler import start_scheduler


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    app.config.setdefault("RENTAL_CLOCK", default_clock)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(offers_bp)
    app.register_blueprint(admin_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Seed default roles at startup (safe & idempotent)
    with app.app_context():
        if app.config.get("CREATE_TABLES_ON_START"):
            db.create_all()
        seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.errorhandler(RentalError)
    def _rental_error(exc):
        db.session.rollback()
        app.logger.info("Rejected request: %s", exc.message)
        return jsonify(error=exc.message), exc.status_code

    @app.errorhandler(IntegrityError)
    def _integrity_error(exc):
        db.session.rollback()
        app.logger.warning("Integrity error: %s", exc.orig)
        return jsonify(error="Conflicting update, please retry"), 409

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        # live figures change every second; never serve them from a cache
        resp.headers["Cache-Control"] = "no-store"
        return resp

    register_cli(app)

    if app.config.get("BACKGROUND_JOBS_ENABLED"):
        app.extensions["housekeeping_scheduler"] = start_scheduler(app)

    return app

#-------------------------
import click
from models.user import User, Role
from security.session import create_session
from utils.clock import now_ms, utcnow
from utils.payment_timeout import expire_stale_negotiations, sweep_payment_timeouts
from utils.stage_sync import sync_all_stages

def register_cli(app):
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

    @app.cli.command("issue-session")
    @click.argument("email")
    @click.option("--name", default=None, help="Full name for a new user.")
    def issue_session(email, name):
        """Create the renter if needed and print a session token for the auth cookie."""
        email = email.strip().lower()
        user = User.query.filter_by(email=email).first()
        if not user:
            user = User(email=email, full_name=name)
            renter = Role.query.filter_by(name="RENTER").first()
            if renter:
                user.roles.append(renter)
            db.session.add(user)
            db.session.commit()
        click.echo(create_session(user.id))

    @app.cli.command("sync-stages")
    def sync_stages():
        """Advance stored rental stages and persist overdue late fees."""
        changed = sync_all_stages(now_ms())
        click.echo(f"{changed} bookings updated")

    @app.cli.command("sweep-timeouts")
    def sweep_timeouts():
        """Cancel unpaid bookings past their payment window and expire idle negotiations."""
        now = utcnow()
        cancelled = sweep_payment_timeouts(now)
        expired = expire_stale_negotiations(now)
        click.echo(f"{cancelled} bookings cancelled, {expired['offers']} offers and "
                   f"{expired['bookings']} bargains expired")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
