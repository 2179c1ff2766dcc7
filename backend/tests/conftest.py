"""
Pytest fixtures for cobros backend tests.

Every test gets a fresh app bound to its own in-memory SQLite database, an
active app context, and an empty live query registry.
"""

import pytest

from cobros import create_app
from cobros.extensions import db, live_queries
from cobros.services import merchant_service, payment_service, stall_service, user_service


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'FEED_DEBOUNCE_SECONDS': 0.0,
    })

    with app.app_context():
        yield app
        live_queries.clear()
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Session bound to the test database."""
    yield db.session
    db.session.rollback()


@pytest.fixture(scope='function')
def collector(db_session):
    """Registered collector account."""
    return user_service.register_user("Luis", "Martinez", "luis", "secreto123")


@pytest.fixture(scope='function')
def other_collector(db_session):
    return user_service.register_user("Marta", "Rivas", "marta", "secreto456")


@pytest.fixture(scope='function')
def merchant(db_session):
    return merchant_service.create_merchant("Ana")


@pytest.fixture(scope='function')
def stall(db_session, merchant):
    return stall_service.create_stall("A1", merchant.id_comerciante)


@pytest.fixture(scope='function')
def market(db_session, collector):
    """
    Two merchants, three stalls, a handful of payments.

    Ana owns A1 and A2; Beto owns B1. All payments belong to ``collector``.
    """
    ana = merchant_service.create_merchant("Ana")
    beto = merchant_service.create_merchant("Beto")
    a1 = stall_service.create_stall("A1", ana.id_comerciante)
    a2 = stall_service.create_stall("A2", ana.id_comerciante)
    b1 = stall_service.create_stall("B1", beto.id_comerciante)

    payments = [
        payment_service.create_payment(
            id_puesto=a1.id_puesto, monto_cobrado="10.00", dinero_recibido="20.00",
            fecha_cobro="2024-03-01", id_usuario=collector.id_usuario,
        ),
        payment_service.create_payment(
            id_puesto=a2.id_puesto, monto_cobrado="5.00", dinero_recibido="5.00",
            fecha_cobro="2024-03-05", id_usuario=collector.id_usuario,
        ),
        payment_service.create_payment(
            id_puesto=b1.id_puesto, monto_cobrado="7.50", dinero_recibido="10.00",
            fecha_cobro="2024-03-10", latitud=13.69, longitud=-89.19,
            id_usuario=collector.id_usuario,
        ),
    ]
    return {
        "merchants": {"ana": ana, "beto": beto},
        "stalls": {"A1": a1, "A2": a2, "B1": b1},
        "payments": payments,
        "collector": collector,
    }


class Recorder:
    """Callback that keeps every emission it receives."""

    def __init__(self):
        self.emissions = []

    def __call__(self, rows):
        self.emissions.append(list(rows))

    @property
    def last(self):
        return self.emissions[-1]

    @property
    def count(self):
        return len(self.emissions)


@pytest.fixture(scope='function')
def recorder():
    return Recorder()
