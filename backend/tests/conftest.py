from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Callable

import pytest

from app import create_app
from app.config import TestConfig
from app.extensions import db
from app.models import User
from app.models.user import ROLE_EMPLOYEE, ROLE_MANAGER
from app.services import lots as store
from app.utils.jwt_utils import create_token_for


@pytest.fixture
def app(tmp_path):
    """A fresh app per test on a file-backed SQLite database.

    A file (not :memory:) so worker threads in the concurrency tests see the
    same data through their own connections.
    """
    db_path = (tmp_path / "inventory-test.db").as_posix()
    app = create_app(
        TestConfig,
        SQLALCHEMY_DATABASE_URI=f"sqlite:///{db_path}",
        INSTANCE_DIR=str(tmp_path),
    )
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    # Only for tests that call services directly; never combine with `client`
    # since requests would share this context's session and `g`.
    with app.app_context():
        yield app


@pytest.fixture
def make_user(app) -> Callable[..., dict]:
    def _make(username: str, password: str = "secret123", role: str = ROLE_EMPLOYEE, email: str | None = None) -> dict:
        with app.app_context():
            u = User(username=username, email=email, role=role)
            u.set_password(password)
            db.session.add(u)
            db.session.commit()
            return {"id": u.id, "username": username, "password": password, "token": create_token_for(u)}
    return _make


@pytest.fixture
def manager(make_user) -> dict:
    return make_user("boss", role=ROLE_MANAGER, email="boss@example.com")


@pytest.fixture
def employee(make_user) -> dict:
    return make_user("clerk", role=ROLE_EMPLOYEE, email="clerk@example.com")


def bearer(user: dict) -> dict:
    return {"Authorization": f"Bearer {user['token']}"}


@pytest.fixture
def manager_headers(manager) -> dict:
    return bearer(manager)


@pytest.fixture
def employee_headers(employee) -> dict:
    return bearer(employee)


@pytest.fixture
def make_lot(app) -> Callable[..., int]:
    """Insert a lot in its own app context and return its id."""
    def _make(
        part_number: str = "P-100",
        batch: str = "B1",
        mfg_date: date = date(2024, 1, 1),
        exp_date: date = date(2025, 1, 1),
        qty: int = 10,
        description: str = "Widget",
        **extra,
    ) -> int:
        values = {
            "part_number": part_number,
            "customer_part_number": extra.pop("customer_part_number", ""),
            "description": description,
            "uom": extra.pop("uom", "EA"),
            "batch": batch,
            "mfg_date": mfg_date,
            "exp_date": exp_date,
            "qty": qty,
            "weight": Decimal(str(extra.pop("weight", "1.5"))),
        }
        with app.app_context():
            lot = store.create_lot(values, as_of=extra.pop("as_of", None))
            db.session.commit()
            return lot.id
    return _make
