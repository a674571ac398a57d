from __future__ import annotations

import logging.config

import click
from flask import Flask, jsonify

from app.accounts import accounts_bp
from app.core.auth import auth_bp
from app.core.config import Config, logging_config
from app.core.errors import register_error_handlers
from app.core.extensions import db, login_manager, migrate
from app.core.models import User, seed_demo_data
from app.renovation import renovation_bp


def create_app(config_object: type[Config] | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    logging.config.dictConfig(logging_config(app.config["LOG_LEVEL"]))

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(renovation_bp)
    app.register_blueprint(accounts_bp)

    register_error_handlers(app)
    register_cli(app)
    return app


def register_cli(app: Flask) -> None:
    @app.cli.command("seed-demo")
    @click.option("--reset", is_flag=True, help="Delete existing data before seed.")
    def seed_demo(reset: bool) -> None:
        """Seed roles, permissions, lots and sample reference data."""
        if reset:
            db.drop_all()
            db.create_all()
        if not User.query.first():
            seed_demo_data(db.session)
            click.echo("Demo data seeded.")
        else:
            click.echo("Seed skipped: existing users found.")

    @app.cli.command("import-customers")
    @click.argument("path", type=click.Path(exists=True, dir_okay=False))
    def import_customers_command(path: str) -> None:
        """Load customers from a spreadsheet, upserting by inscription."""
        from app.renovation.importer import import_customers

        result = import_customers(path)
        click.echo(f"customers created={result.created} updated={result.updated} skipped={result.skipped}")

    @app.cli.command("import-meters")
    @click.argument("path", type=click.Path(exists=True, dir_okay=False))
    def import_meters_command(path: str) -> None:
        """Load new meters from a spreadsheet, upserting by meter number."""
        from app.renovation.importer import import_meters

        result = import_meters(path)
        click.echo(f"meters created={result.created} updated={result.updated} skipped={result.skipped}")


@login_manager.user_loader
def load_user(user_id: str) -> User | None:
    user = db.session.get(User, int(user_id))
    return user if user and user.is_active else None


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "No autenticado"}), 401
