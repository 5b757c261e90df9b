import io

import pytest

from app import create_app
from app.config import TestConfig
from app.extensions import db
from app.models import InventoryLot, User


def test_production_requires_a_strong_secret(tmp_path):
    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        create_app(TestConfig, ENV_NAME="prod", SECRET_KEY="short", INSTANCE_DIR=str(tmp_path))


def test_production_requires_a_database_url(tmp_path):
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        create_app(
            TestConfig,
            ENV_NAME="prod",
            SECRET_KEY="x" * 32,
            DATABASE_URL_PROVIDED=False,
            INSTANCE_DIR=str(tmp_path),
        )


def test_oversized_upload_is_a_validation_error(app, client, employee_headers):
    app.config["MAX_CONTENT_LENGTH"] = 64
    data = {"file": (io.BytesIO(b"x" * 1024), "big.csv")}
    r = client.post("/api/upload-csv", data=data, headers=employee_headers, content_type="multipart/form-data")
    assert r.status_code == 400
    assert r.get_json()["field"] == "file"


def test_seed_manager_command(app, monkeypatch):
    monkeypatch.setenv("MANAGER_USERNAME", "owner")
    monkeypatch.setenv("MANAGER_PASSWORD", "owner-pass")
    monkeypatch.setenv("MANAGER_EMAIL", "Owner@Example.com")
    runner = app.test_cli_runner()

    result = runner.invoke(args=["seed-manager"])
    assert result.exit_code == 0, result.output
    assert "Manager created" in result.output

    result = runner.invoke(args=["seed-manager"])
    assert "already exists" in result.output

    with app.app_context():
        u = User.query.filter_by(username="owner").one()
        assert u.role == "manager"
        assert u.email == "owner@example.com"
        assert u.check_password("owner-pass")


def test_seed_manager_needs_credentials(app, monkeypatch):
    monkeypatch.delenv("MANAGER_USERNAME", raising=False)
    monkeypatch.delenv("MANAGER_PASSWORD", raising=False)
    result = app.test_cli_runner().invoke(args=["seed-manager"])
    assert result.exit_code != 0


def test_refresh_metrics_command(app, make_lot):
    make_lot()
    make_lot(batch="B2")
    with app.app_context():
        InventoryLot.query.update({"ageing_days": None})
        db.session.commit()

    result = app.test_cli_runner().invoke(args=["refresh-metrics"])
    assert "Refreshed metrics for 2 lots" in result.output
