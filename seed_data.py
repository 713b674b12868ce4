#!/usr/bin/env python3

import os
from datetime import date, time, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from pullapi.database import Base, SessionLocal, engine
from pullapi.auth.utils import get_password_hash
from pullapi.bookings.statuses import ReservationState, GuestState
from pullapi.models import (
    Organization, Role, OrganizationWorker, Venue, Event, TicketType,
    ReservationStatus, GuestStatus, ReservationType
)

ROLE_TYPES = ["admin", "manager", "door_staff"]
RESERVATION_TYPES = ["table", "general"]

def seed_reference_data(db: Session):
    """Status tables, reservation types and staff roles"""
    db.add_all([ReservationStatus(name=state.value) for state in ReservationState])
    db.add_all([GuestStatus(name=state.value) for state in GuestState])
    db.add_all([ReservationType(name=name) for name in RESERVATION_TYPES])
    db.add_all([Role(type=role) for role in ROLE_TYPES])
    db.flush()

def create_seed_data():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    try:
        print("🚀 Creating seed data for Pull Events Management...")

        print("Creating status tables, reservation types and roles...")
        seed_reference_data(db)

        print("Creating organization and venue...")
        organization = Organization(name="Pull Entertainment")
        db.add(organization)
        db.flush()

        venue = Venue(
            organization_id=organization.id,
            slug="club-central",
            name="Club Central",
            email="reservations@clubcentral.example",
            capacity=400,
            open_time=time(20, 0),
            close_time=time(3, 0),
            location="Zona 10, Guatemala City",
            latitude=Decimal("14.598000"),
            longitude=Decimal("-90.510000"),
            description="Live music and DJ sets every weekend.",
            reservation_types=["table", "general"],
            days={"friday": True, "saturday": True}
        )
        db.add(venue)
        db.flush()

        print("Creating event and ticket types...")
        event = Event(
            venue_id=venue.id,
            organization_id=organization.id,
            slug="summer-opening",
            name="Summer Opening Night",
            description="Season opening with guest DJs.",
            event_date=date.today() + timedelta(days=30),
            start_time=time(21, 0),
            end_time=time(2, 0),
            ticket_limit=300,
            min_age=18,
            dress_code="Smart casual",
            requirements=["Valid ID"]
        )
        db.add(event)
        db.flush()

        ticket_types = [
            TicketType(event_id=event.id, name="General", price=Decimal("100.00"),
                       initial_quantity=250, available_quantity=250, benefits=["Entry"]),
            TicketType(event_id=event.id, name="VIP", price=Decimal("350.00"),
                       initial_quantity=50, available_quantity=50,
                       benefits=["Entry", "VIP area", "Welcome drink"], expenses=Decimal("15.00")),
        ]
        db.add_all(ticket_types)

        print("Creating staff worker...")
        manager_role = db.query(Role).filter(Role.type == "manager").first()
        worker = OrganizationWorker(
            email="manager@clubcentral.example",
            password_hash=get_password_hash(os.getenv("SEED_WORKER_PASSWORD", "ChangeMe123!")),
            first_name="Ana",
            last_name="Lopez",
            organization_id=organization.id,
            venue_id=venue.id,
            role_id=manager_role.id
        )
        db.add(worker)

        db.commit()
        print("✅ Successfully created seed data!")
        print(f"Created:")
        print(f"  - {len(ReservationState)} reservation statuses, {len(GuestState)} guest statuses")
        print(f"  - {len(ROLE_TYPES)} roles")
        print(f"  - 1 organization, 1 venue, 1 event")
        print(f"  - {len(ticket_types)} ticket types")
        print(f"  - 1 staff worker ({worker.email})")

    except Exception as e:
        print(f"❌ Error creating seed data: {e}")
        db.rollback()
        raise
    finally:
        db.close()

if __name__ == "__main__":
    create_seed_data()
