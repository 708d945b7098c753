import os

# Configure before the package reads its environment
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

from datetime import datetime, time  # noqa: E402
from types import SimpleNamespace  # noqa: E402
from zoneinfo import ZoneInfo  # noqa: E402

import pytest  # noqa: E402
from fastapi import Depends  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from salon_scheduler.database import Base, build_engine, get_db  # noqa: E402
from salon_scheduler.domain.kiosk.router import get_kiosk_service  # noqa: E402
from salon_scheduler.domain.kiosk.service import KioskService  # noqa: E402
from salon_scheduler.domain.scheduling.availability_service import AvailabilityService  # noqa: E402
from salon_scheduler.domain.scheduling.booking_service import BookingService  # noqa: E402
from salon_scheduler.domain.scheduling.recurring_service import RecurringService  # noqa: E402
from salon_scheduler.domain.scheduling.router import (  # noqa: E402
    get_availability_service,
    get_booking_service,
    get_recurring_service,
)
from salon_scheduler.domain.waitlist.router import get_waitlist_service  # noqa: E402
from salon_scheduler.domain.waitlist.service import WaitlistService  # noqa: E402
from salon_scheduler.main import app  # noqa: E402
from salon_scheduler.models import (  # noqa: E402
    Client,
    Salon,
    ScheduleTemplateEntry,
    Service,
    Technician,
)

LA = ZoneInfo("America/Los_Angeles")

# Monday 1 June 2026, 08:00 in Los Angeles (PDT, UTC-7)
MONDAY = datetime(2026, 6, 1).date()
NOW = datetime(2026, 6, 1, 15, 0)  # naive UTC


def local(hour: int, minute: int = 0, day=MONDAY) -> datetime:
    """Aware salon-local datetime"""
    return datetime.combine(day, time(hour, minute), tzinfo=LA)


def hhmm(value: datetime) -> str:
    """Salon-local HH:MM of a naive-UTC or aware datetime"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=ZoneInfo("UTC"))
    return value.astimezone(LA).strftime("%H:%M")


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'salon.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def seed(db):
    salon = Salon(
        name="Glow Nails",
        timezone="America/Los_Angeles",
        slot_granularity_minutes=30,
        minimum_lead_minutes=0,
        default_wait_minutes_per_party=15,
    )
    other_salon = Salon(name="Polished", timezone="America/New_York")
    db.add_all([salon, other_salon])
    db.flush()

    anna = Technician(salon_id=salon.id, name="Anna")
    bella = Technician(salon_id=salon.id, name="Bella")
    cara = Technician(salon_id=salon.id, name="Cara", active=False)
    outsider = Technician(salon_id=other_salon.id, name="Olga")
    db.add_all([anna, bella, cara, outsider])
    db.flush()

    for technician in (anna, bella, cara):
        db.add(
            ScheduleTemplateEntry(
                technician_id=technician.id,
                day_of_week=1,  # Monday
                start_time=time(9, 0),
                end_time=time(19, 0),
                is_working=True,
            )
        )
    db.add(ScheduleTemplateEntry(technician_id=anna.id, day_of_week=0, is_working=False))

    manicure = Service(salon_id=salon.id, name="Gel Manicure", duration_minutes=30, base_price=35)
    pedicure = Service(salon_id=salon.id, name="Pedicure", duration_minutes=45, base_price=45)
    full_set = Service(salon_id=salon.id, name="Full Set", duration_minutes=60, base_price=60)
    foreign_service = Service(
        salon_id=other_salon.id, name="Spa Pedicure", duration_minutes=50, base_price=55
    )
    db.add_all([manicure, pedicure, full_set, foreign_service])

    dana = Client(salon_id=salon.id, name="Dana Lee", phone="+14085551234")
    eli = Client(salon_id=salon.id, name="Eli Park", phone="+14085559876")
    foreign_client = Client(salon_id=other_salon.id, name="Fay Moss", phone="+12125550000")
    db.add_all([dana, eli, foreign_client])
    db.commit()

    return SimpleNamespace(
        salon=salon,
        other_salon=other_salon,
        anna=anna,
        bella=bella,
        cara=cara,
        outsider=outsider,
        manicure=manicure,
        pedicure=pedicure,
        full_set=full_set,
        foreign_service=foreign_service,
        dana=dana,
        eli=eli,
        foreign_client=foreign_client,
    )


@pytest.fixture
def availability(db, clock):
    return AvailabilityService(db, clock)


@pytest.fixture
def booking(db, clock):
    return BookingService(db, clock)


@pytest.fixture
def recurring(db, clock):
    return RecurringService(db, clock)


@pytest.fixture
def waitlist(db, clock):
    return WaitlistService(db, clock)


@pytest.fixture
def kiosk(db, clock):
    return KioskService(db, clock)


@pytest.fixture
def client(session_factory, clock, seed):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def availability_override(db: Session = Depends(get_db)):
        return AvailabilityService(db, clock)

    def booking_override(db: Session = Depends(get_db)):
        return BookingService(db, clock)

    def recurring_override(db: Session = Depends(get_db)):
        return RecurringService(db, clock)

    def waitlist_override(db: Session = Depends(get_db)):
        return WaitlistService(db, clock)

    def kiosk_override(db: Session = Depends(get_db)):
        return KioskService(db, clock)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_availability_service] = availability_override
    app.dependency_overrides[get_booking_service] = booking_override
    app.dependency_overrides[get_recurring_service] = recurring_override
    app.dependency_overrides[get_waitlist_service] = waitlist_override
    app.dependency_overrides[get_kiosk_service] = kiosk_override

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def dashboard_headers(seed):
    return {"X-Salon-ID": str(seed.salon.id)}
