"""Shared fixtures: a Flask app bound to a throwaway SQLite order table."""

import pytest

from app import app as flask_app
from app import init_storage
from order_store import SqliteOrderStore

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "secret-pass"
DASHBOARD_PASSWORD = "sky12"


@pytest.fixture
def app(tmp_path):
    flask_app.config.update(
        TESTING=True,
        SECRET_KEY="test-secret",
        ORDER_BACKEND="sqlite",
        SQLITE_PATH=str(tmp_path / "orders.db"),
        ADMIN_EMAIL=ADMIN_EMAIL,
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        DASHBOARD_PASSWORD=DASHBOARD_PASSWORD,
        ORDERS_PER_PAGE=10,
        DASHBOARD_REFRESH_SECONDS=60,
    )
    init_storage()
    yield flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return SqliteOrderStore(app.config["SQLITE_PATH"])


@pytest.fixture
def admin_client(client):
    response = client.post("/admin/login", data={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 302
    return client


@pytest.fixture
def dashboard_client(client):
    response = client.post("/dashboard/login", data={"password": DASHBOARD_PASSWORD})
    assert response.status_code == 302
    return client


def make_order(**overrides):
    order = {
        "party_name": "Airforce",
        "location": "Jodhpur",
        "model": "2s+cargo",
        "type": "Classic",
        "tyre": "145-80-12",
        "motor": "2000",
        "battery": "Lion-105ah",
        "customization": None,
        "order_date": "2025-08-22",
        "delivery_date": "11-Sep-25",
        "status": "Priority",
        "remarks": None,
        "email": None,
        "phoneno": None,
    }
    order.update(overrides)
    return order
