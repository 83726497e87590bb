# tests/conftest.py
import os

# Settings are read on first import of the package
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENFORCE_BOOKING_WINDOW"] = "false"

from datetime import date, timedelta

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from practice_scheduler import models
from practice_scheduler.config import SchedulingDefaults
from practice_scheduler.database import create_tables, drop_tables, get_db

# 2030-01-07 is a Monday
MONDAY = date(2030, 1, 7)


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=test_engine)
    yield test_engine
    drop_tables(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def defaults():
    return SchedulingDefaults()


@pytest.fixture
def make_provider(db):
    def _make(first_name="Ada", last_name="Lovelace", role=models.ProviderRole.attending, npi=None, is_bookable=True, **kwargs):
        provider = models.Provider(
            first_name=first_name,
            last_name=last_name,
            role=role,
            npi=npi,
            is_bookable=is_bookable,
            is_active=kwargs.pop("is_active", True),
            **kwargs
        )
        db.add(provider)
        db.commit()
        db.refresh(provider)
        return provider
    return _make


@pytest.fixture
def make_payer(db):
    def _make(name="Acme Health", credentialing_status="Approved", effective_date=date(2020, 1, 1), **kwargs):
        payer = models.Payer(
            name=name,
            credentialing_status=credentialing_status,
            effective_date=effective_date,
            **kwargs
        )
        db.add(payer)
        db.commit()
        db.refresh(payer)
        return payer
    return _make


@pytest.fixture
def add_to_network(db):
    def _add(provider, payer):
        db.add(models.ProviderPayerNetwork(provider_id=provider.id, payer_id=payer.id))
        db.commit()
    return _add


@pytest.fixture
def make_appointment(db):
    def _make(provider, start, duration_minutes=60, status=models.AppointmentStatus.scheduled):
        appointment = models.Appointment(
            provider_id=provider.id,
            scheduled_provider_id=provider.id,
            start_time=start,
            end_time=start + timedelta(minutes=duration_minutes),
            duration_minutes=duration_minutes,
            status=status,
            patient_first_name="Pat",
            patient_last_name="Example",
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment
    return _make


@pytest.fixture
def set_policy(db):
    def _set(provider, **values):
        settings = models.ProviderBookingSettings(provider_id=provider.id, **values)
        db.add(settings)
        db.commit()
        return settings
    return _set


@pytest_asyncio.fixture
async def async_client(db):
    from practice_scheduler.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
