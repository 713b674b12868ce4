"""Pytest configuration and shared fixtures."""

import os

os.environ.setdefault("APP_KEY", "3f" * 32)
os.environ.setdefault("APP_IV", "a5" * 16)
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DPI_SALT", "test-salt")
os.environ["DATABASE_URL"] = "sqlite://"

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pullapi.auth.schemas import StaffClaims
from pullapi.auth.utils import RESERVATION_ADMIN_ROLE, get_password_hash
from pullapi.bookings.statuses import StatusTable
from pullapi.config import settings
from pullapi.database import Base, get_db
from pullapi.identity import hash_dpi
from pullapi.main import app
from pullapi.models import (
    Organization, OrganizationWorker, Venue, Event, TicketType, PublicUser,
    Reservation, ReservationGuest, ReservationStatus, GuestStatus, Role
)
from seed_data import seed_reference_data

WORKER_PASSWORD = "door-pass-123"
CREATOR_DPI = "1234567890123"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=True, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def codec():
    return app.state.codec


@pytest.fixture
def tokens():
    return app.state.tokens


@pytest.fixture
def seeded(db):
    """Two organizations with one venue each; the first one has an event on sale"""
    seed_reference_data(db)

    org = Organization(name="Pull Entertainment")
    other_org = Organization(name="Other Group")
    db.add_all([org, other_org])
    db.flush()

    venue = Venue(organization_id=org.id, slug="club-central", name="Club Central",
                  location="Zona 10", description="Live music", reservation_types=["table", "general"],
                  days={"friday": True})
    other_venue = Venue(organization_id=other_org.id, slug="other-venue", name="Other Venue")
    db.add_all([venue, other_venue])
    db.flush()

    event = Event(venue_id=venue.id, organization_id=org.id, slug="summer-opening",
                  name="Summer Opening", event_date=date.today() + timedelta(days=10),
                  start_time=time(21, 0), end_time=time(2, 0), ticket_limit=100,
                  requirements=["Valid ID"])
    other_event = Event(venue_id=other_venue.id, organization_id=other_org.id, slug="other-event",
                        name="Other Event", event_date=date.today() + timedelta(days=5))
    db.add_all([event, other_event])
    db.flush()

    ticket_type = TicketType(event_id=event.id, name="General", price=Decimal("100.00"),
                             initial_quantity=5, available_quantity=5, benefits=["Entry"])
    other_ticket_type = TicketType(event_id=other_event.id, name="Other", price=Decimal("50.00"),
                                   initial_quantity=10, available_quantity=10)
    db.add_all([ticket_type, other_ticket_type])

    role = db.query(Role).filter(Role.type == "manager").first()
    worker = OrganizationWorker(email="manager@club.example", password_hash=get_password_hash(WORKER_PASSWORD),
                                first_name="Ana", last_name="Lopez", organization_id=org.id,
                                venue_id=venue.id, role_id=role.id)
    other_worker = OrganizationWorker(email="staff@other.example", password_hash=get_password_hash(WORKER_PASSWORD),
                                      first_name="Luis", last_name="Perez", organization_id=other_org.id,
                                      venue_id=other_venue.id, role_id=role.id)
    db.add_all([worker, other_worker])
    db.commit()

    return SimpleNamespace(
        org=org, other_org=other_org,
        venue=venue, other_venue=other_venue,
        event=event, other_event=other_event,
        ticket_type=ticket_type, other_ticket_type=other_ticket_type,
        worker=worker, other_worker=other_worker
    )


def staff_token(tokens, worker: OrganizationWorker) -> str:
    claims = StaffClaims(
        employee_id=worker.id,
        organization_id=worker.organization_id,
        venue_id=worker.venue_id,
        role="manager",
        email=worker.email,
        name=f"{worker.first_name} {worker.last_name}"
    )
    return tokens.create_access_token(claims.model_dump())


@pytest.fixture
def staff_headers(tokens, seeded):
    return {"Authorization": f"Bearer {staff_token(tokens, seeded.worker)}"}


@pytest.fixture
def staff_body(codec, seeded):
    """Venue/organization/employee IDs as a staff client sends them"""
    return {
        "venue_id": codec.encode(seeded.venue.id),
        "organization_id": codec.encode(seeded.org.id),
        "employee_id": codec.encode(seeded.worker.id),
    }


@pytest.fixture
def creator(db, codec, seeded):
    person = PublicUser(
        dpi_hashed=hash_dpi(CREATOR_DPI, settings.DPI_SALT),
        dpi=codec.encode(CREATOR_DPI),
        name="Maria",
        surname="Gomez",
        email="maria@example.com"
    )
    db.add(person)
    db.commit()
    return person


@pytest.fixture
def make_reservation(db, seeded, creator):
    """Factory for a reservation with the creator plus named guests, all confirmed"""
    def _make(status="confirmed", guest_names=("Guest A", "Guest B"), venue=None,
              total_amount=Decimal("500.00"), password=None):
        statuses = StatusTable.load(db, ReservationStatus)
        guest_statuses = StatusTable.load(db, GuestStatus)
        start = datetime.now().replace(microsecond=0) + timedelta(days=7)

        reservation = Reservation(
            venue_id=(venue or seeded.venue).id,
            creator_id=creator.id,
            status_id=statuses.find(status),
            guests=1 + len(guest_names),
            total_amount=total_amount,
            start_date=start,
            end_date=start + timedelta(hours=3),
            password=get_password_hash(password) if password else None
        )
        db.add(reservation)
        db.flush()

        confirmed = guest_statuses.find("confirmed")
        db.add(ReservationGuest(reservation_id=reservation.id, user_id=creator.id,
                                status_id=confirmed, is_cancelled=False))
        for name in guest_names:
            db.add(ReservationGuest(reservation_id=reservation.id, temp_name=name,
                                    status_id=confirmed, is_cancelled=False))
        db.commit()
        return reservation

    return _make


def owner_token(tokens, reservation: Reservation) -> str:
    return tokens.create_access_token({
        "booking_id": reservation.id,
        "user_id": reservation.creator_id,
        "role": RESERVATION_ADMIN_ROLE,
        "dpi_hash": hash_dpi(CREATOR_DPI, settings.DPI_SALT)
    })


@pytest.fixture
def staff_headers_for(tokens):
    return lambda worker: {"Authorization": f"Bearer {staff_token(tokens, worker)}"}


@pytest.fixture
def owner_headers_for(tokens):
    return lambda reservation: {"Authorization": f"Bearer {owner_token(tokens, reservation)}"}
