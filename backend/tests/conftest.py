# backend/tests/conftest.py
"""
Pytest configuration for the lounge booking engine.

Every test gets its own in-memory SQLite database and its own cache.
"""

import os

# Set testing mode BEFORE any lounge imports
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["IS_TESTING"] = "true"
os.environ.pop("REDIS_URL", None)

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Callable, Optional

import pytest
from sqlalchemy.orm import Session, sessionmaker

from lounge.core.enums import BookingStatus, StationType
from lounge.database import Base, build_engine, init_db
from lounge.models import Booking, Customer, Station
from lounge.services.cache_service import CacheService
from lounge.services.base import BaseService

# A Monday well clear of the real clock
BOOKING_DATE = date(2030, 1, 14)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def cache() -> CacheService:
    return CacheService()


@pytest.fixture(autouse=True)
def reset_service_metrics():
    BaseService._class_metrics.clear()
    yield


@pytest.fixture
def booking_date() -> date:
    return BOOKING_DATE


@pytest.fixture
def morning_before() -> datetime:
    """Clock value the day before BOOKING_DATE."""
    return datetime.combine(BOOKING_DATE - timedelta(days=1), time(12, 0))


@pytest.fixture
def make_station(db: Session) -> Callable[..., Station]:
    counter = {"n": 0}

    def _make(
        station_type: StationType = StationType.PS5,
        hourly_rate: Decimal = Decimal("300"),
        name: Optional[str] = None,
        is_occupied: bool = False,
        parent: Optional[Station] = None,
    ) -> Station:
        counter["n"] += 1
        station = Station(
            name=name or f"{StationType(station_type).value.upper()} {counter['n']}",
            station_type=station_type,
            hourly_rate=hourly_rate,
            is_occupied=is_occupied,
            is_controller_unit=parent is not None,
        )
        if parent is not None:
            station.parent = parent
        db.add(station)
        db.commit()
        return station

    return _make


@pytest.fixture
def make_customer(db: Session) -> Callable[..., Customer]:
    counter = {"n": 0}

    def _make(name: str = "Asha", phone: Optional[str] = None) -> Customer:
        counter["n"] += 1
        customer = Customer(name=name, phone=phone or f"98765{counter['n']:05d}")
        db.add(customer)
        db.commit()
        return customer

    return _make


@pytest.fixture
def make_booking(db: Session) -> Callable[..., Booking]:
    def _make(
        station: Station,
        customer: Customer,
        start: time,
        end: time,
        on: date = BOOKING_DATE,
        status: BookingStatus = BookingStatus.CONFIRMED,
        group_id: Optional[str] = None,
    ) -> Booking:
        minutes = int(
            (datetime.combine(on, end) - datetime.combine(on, start)).total_seconds() // 60
        )
        booking = Booking(
            booking_group_id=group_id or "01HZZZZZZZZZZZZZZZZZZZZZZZ",
            station_id=station.id,
            customer_id=customer.id,
            booking_date=on,
            start_time=start,
            end_time=end,
            duration_minutes=minutes,
            status=status.value,
            discount_percentage=Decimal("0"),
            original_price=Decimal("300.00"),
            final_price=Decimal("300.00"),
        )
        db.add(booking)
        db.commit()
        return booking

    return _make
