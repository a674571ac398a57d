from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app import create_app
from app.core.config import Config
from app.core.extensions import db
from app.core.models import Customer, Lot, LotStatus, MeterRenovation, Technician, seed_demo_data


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SECRET_KEY = "test-secret"
    LOG_LEVEL = "WARNING"
    REPORT_BATCH_SIZE = 2


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        seed_demo_data(db.session)
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _login(client, username: str, password: str):
    response = client.post("/api/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200
    return response


@pytest.fixture
def login_admin(client):
    return lambda: _login(client, "admin", "admin123")


@pytest.fixture
def login_digitador(client):
    return lambda: _login(client, "digitador", "digitador123")


@pytest.fixture
def login_almacenero(client):
    return lambda: _login(client, "almacenero", "almacenero123")


@pytest.fixture
def refs(app):
    """Ids of the seeded reference rows, keyed by business value."""
    return {
        "active_lot": Lot.query.filter_by(status=LotStatus.ACTIVE).one().id,
        "inactive_lot": Lot.query.filter_by(status=LotStatus.INACTIVE).one().id,
        "customers": [c.id for c in Customer.query.order_by(Customer.id).all()],
        "meters": [m.id for m in MeterRenovation.query.order_by(MeterRenovation.id).all()],
        "technicians": [t.id for t in Technician.query.order_by(Technician.id).all()],
    }


@pytest.fixture
def act_payload(refs):
    def _build(file_number: str = "1001", customer: int = 0, meter: int = 0, **overrides):
        payload = {
            "lot_id": refs["active_lot"],
            "file_number": file_number,
            "file_date": "2024-03-25",
            "file_time": "09:30",
            "reading": "1520",
            "observations": "SIN_OBSERVACIONES",
            "rotating_pointer": "SI",
            "meter_security_seal": "SI",
            "reading_impossibility_viewer": "NO",
            "customer_id": refs["customers"][customer],
            "technician_id": refs["technicians"][0],
            "meter_id": refs["meters"][meter],
        }
        payload.update(overrides)
        return payload

    return _build


@pytest.fixture
def precatastral_payload(refs):
    def _build(file_number: str = "2001", customer: int = 0, **overrides):
        payload = {
            "lot_id": refs["active_lot"],
            "file_number": file_number,
            "property": "DOMESTICO",
            "is_located": "SI",
            "located_box": "EXTERIOR",
            "buried_connection": "NO",
            "has_meter": "SI",
            "reading": "330",
            "has_cover": "SI",
            "cover_state": "BUENO",
            "has_box": "SI",
            "box_state": "MALO",
            "keys": "1",
            "cover_material": "Concreto",
            "observations": "SIN_OBSERVACIONES",
            "customer_id": refs["customers"][customer],
            "technician_id": refs["technicians"][1],
        }
        payload.update(overrides)
        return payload

    return _build
