import os

import click
from flask import Flask

from app.extensions import db
from app.models import User
from app.models.user import ROLE_MANAGER
from app.services import lots as store


def register_commands(app: Flask) -> None:
    @app.cli.command("seed-manager")
    def seed_manager():
        """Create the manager account from MANAGER_USERNAME / MANAGER_PASSWORD."""
        username = (os.getenv("MANAGER_USERNAME") or "").strip()
        password = os.getenv("MANAGER_PASSWORD") or ""
        email = (os.getenv("MANAGER_EMAIL") or "").strip().lower() or None
        if not username or not password:
            raise click.ClickException("Set MANAGER_USERNAME and MANAGER_PASSWORD env vars first.")
        if len(password) < 6:
            raise click.ClickException("MANAGER_PASSWORD must be at least 6 characters.")

        user = User.query.filter_by(username=username).first()
        if user:
            click.echo(f"Manager already exists (user_id={user.id}, role={user.role})")
            return
        user = User(username=username, email=email, role=ROLE_MANAGER)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        app.logger.info("Seeded manager account: %s", username)
        click.echo(f"Manager created (user_id={user.id})")

    @app.cli.command("refresh-metrics")
    def refresh_metrics():
        """Recompute stored ageing and days-to-expiry for every lot."""
        n = store.refresh_metrics()
        db.session.commit()
        click.echo(f"Refreshed metrics for {n} lots")
