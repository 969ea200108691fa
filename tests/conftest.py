"""Shared fixtures: a throwaway SQLite database per test, seeded tariffs, actors and tokens."""

import datetime as dt
import os
import tempfile
from decimal import Decimal

# the app module builds its engine at import time, so point it at SQLite first
_TMP_DIR = tempfile.mkdtemp(prefix="lifton-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/app.db"
os.environ["SECRET_KEY"] = "test-secret"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event

from lifton.db import create_tables, get_db, make_engine, make_session_factory
from lifton.engine.actors import Actor, Role
from lifton.models.booking import ServiceType
from lifton.models.pricing import CompetitorPrice, PricingRule
from lifton.services.bookings import create_booking
from lifton.services.pricing import load_snapshot
from lifton.utils.security import create_access_token

T0 = dt.datetime(2026, 3, 1, 9, 0, 0)

# Bengaluru: MG Road -> Koramangala, a bit over 6 km by road
PICKUP = (12.9716, 77.5946)
DROP = (12.9352, 77.6245)

RIDER = Actor(id=101, role=Role.RIDER)
OTHER_RIDER = Actor(id=102, role=Role.RIDER)
DRIVER_A = Actor(id=201, role=Role.DRIVER)
DRIVER_B = Actor(id=202, role=Role.DRIVER)
DRIVER_C = Actor(id=203, role=Role.DRIVER)
ADMIN = Actor(id=1, role=Role.ADMIN)


def seed_pricing(db):
    db.add_all([
        PricingRule(service_type=ServiceType.CAB, base_fare=Decimal("50"), per_km_rate=Decimal("12"),
                    minimum_fare=Decimal("80"), surge_multiplier=Decimal("1"), is_active=True),
        PricingRule(service_type=ServiceType.AUTO_RICKSHAW, base_fare=Decimal("30"), per_km_rate=Decimal("10"),
                    minimum_fare=Decimal("40"), surge_multiplier=Decimal("1"), is_active=True),
        PricingRule(service_type=ServiceType.BIKE_TAXI, base_fare=Decimal("20"), per_km_rate=Decimal("6"),
                    minimum_fare=Decimal("30"), surge_multiplier=Decimal("1"), is_active=False),
        CompetitorPrice(competitor_name="Ola", service_type=ServiceType.CAB, base_fare=Decimal("60"),
                        per_km_rate=Decimal("14"), surge_multiplier=Decimal("1")),
        CompetitorPrice(competitor_name="Uber", service_type=ServiceType.CAB, base_fare=Decimal("45"),
                        per_km_rate=Decimal("11"), surge_multiplier=Decimal("1")),
    ])
    db.commit()


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'lifton.db'}")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    factory = make_session_factory(engine)
    s = factory()
    try:
        seed_pricing(s)
    finally:
        s.close()
    return factory


@pytest.fixture
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture
def snapshot(db):
    snap = load_snapshot(db)
    # снимок уже в памяти, транзакцию чтения отпускаем
    db.commit()
    return snap


@pytest.fixture
def booking_factory(db, snapshot):
    def make(actor=RIDER, service_type="cab", now=T0, **kw):
        kw.setdefault("pickup_address", "MG Road")
        kw.setdefault("drop_address", "Koramangala")
        kw.setdefault("pickup", PICKUP)
        kw.setdefault("drop", DROP)
        return create_booking(db, actor, snapshot, service_type=service_type, now=now, **kw)

    return make


@pytest.fixture
def client(session_factory):
    from lifton.main import app

    def override_get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth(actor: Actor) -> dict:
    return {"Authorization": f"Bearer {create_access_token(actor.id, actor.role.value)}"}


@pytest.fixture
def update_log(engine):
    """Tables hit by UPDATE statements, in execution order."""
    tables = []

    def record(conn, cursor, statement, parameters, context, executemany):
        words = statement.split()
        if words and words[0].upper() == "UPDATE":
            tables.append(words[1].strip('"'))

    event.listen(engine, "before_cursor_execute", record)
    yield tables
    event.remove(engine, "before_cursor_execute", record)
