"""
Pytest configuration and shared fixtures.
"""

import os

from cryptography.fernet import Fernet

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("TOKEN_ENCRYPTION_KEY", Fernet.generate_key().decode())

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models
from database import Base, create_db_tables, get_db
from main import app


@pytest.fixture
def engine():
    # One shared in-memory connection so every session sees the same tables
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_tables(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(engine):
    testing_session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = testing_session()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def host(db):
    """Host in New York with a branded company and no Google Calendar."""
    company = models.Company(name="Acme Cleaning", primary_color="#4f46e5")
    user = models.User(
        id="host-1",
        email="Jane.Doe@example.com",
        name="Jane Doe",
        timezone="America/New_York",
        company=company,
    )
    db.add_all([company, user])
    db.commit()
    return user


def add_rule(db, user, day_of_week, start, end, duration=30, buffer=0, active=True):
    rule = models.Availability(
        user_id=user.id,
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
        duration_minutes=duration,
        buffer_minutes=buffer,
        is_active=active,
    )
    db.add(rule)
    db.commit()
    return rule


def add_booking(db, user, start, end, email="client@example.com"):
    """``start``/``end`` are naive UTC, the way bookings are stored."""
    booking = models.Booking(
        user_id=user.id,
        client_name="Client",
        client_email=email,
        start_time=start,
        end_time=end,
    )
    db.add(booking)
    db.commit()
    return booking
