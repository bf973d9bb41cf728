from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from config import Config
from routes import health_bp, booking_bp, basket_bp

from models import db
from flask_migrate import Migrate
from core.errors import BookingError
from utils.auth_context import load_current_user


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(basket_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    @app.before_request
    def _load_user():
        load_current_user()

    register_error_handlers(app)

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

def register_error_handlers(app):
    @app.errorhandler(BookingError)
    def _booking_error(exc):
        if exc.status_code >= 500:
            app.logger.error("booking engine failure: %s (cause: %r)", exc.message, exc.__cause__)
            return jsonify(success=False, message="Internal server error"), exc.status_code
        return jsonify(success=False, message=exc.message), exc.status_code

    @app.errorhandler(HTTPException)
    def _http_error(exc):
        return jsonify(success=False, message=exc.description), exc.code

    @app.errorhandler(Exception)
    def _unexpected(exc):
        db.session.rollback()
        app.logger.exception("unhandled error")
        return jsonify(success=False, message="Internal server error"), 500

#-------------------------
import click
from models.user import User
from security.session import issue_token
from utils.seed import seed_demo_temple

def register_cli(app):
    @app.cli.command("seed-demo")
    def seed_demo():
        """Create a demo temple with weekly timings and services."""
        temple = seed_demo_temple()
        print(f"Temple {temple.id}: {temple.name}")
        for s in temple.services:
            print(f"  service {s.id}: {s.name} ({s.price})")

    @app.cli.command("issue-token")
    @click.argument("email")
    @click.option("--name", default=None, help="Display name when the user is created.")
    def issue_dev_token(email, name):
        """Issue a bearer token for a user (dev only; creates the user if missing)."""
        email = email.strip().lower()
        user = User.query.filter_by(email=email).first()
        if not user:
            user = User(email=email, name=name)
            db.session.add(user)
            db.session.commit()

        print(issue_token(user.id))

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
