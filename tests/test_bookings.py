"""Tests for the reservation lifecycle and guest modification workflow.

Run with: pytest tests/test_bookings.py -v
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from pullapi.auth.utils import verify_password
from pullapi.bookings.statuses import (
    StatusTable, ReservationState, GuestState,
    ensure_transition_allowed, modification_blocked_message
)
from pullapi.errors import InternalError, InvalidBookingStatusError
from pullapi.models import Reservation, ReservationGuest, ReservationStatus, GuestStatus

from conftest import CREATOR_DPI

BOOKINGS = "/api/v1/bookings"


def reservation_status(db, reservation_id):
    db.expire_all()
    reservation = db.query(Reservation).filter(Reservation.id == reservation_id).one()
    return StatusTable.load(db, ReservationStatus).name_for(reservation.status_id)


def guest_rows(db, reservation_id):
    db.expire_all()
    return db.query(ReservationGuest).filter(
        ReservationGuest.reservation_id == reservation_id
    ).order_by(ReservationGuest.guest_id).all()


class TestTransitionRules:
    """Tests for ensure_transition_allowed."""

    @pytest.mark.parametrize("current,target", [
        ("pending", "confirmed"),
        ("pending", "rejected"),
        ("pending", "cancelled"),
        ("confirmed", "cancelled"),
        ("confirmed", "completed"),
        ("confirmed", "no_show"),
        ("no_show", "cancelled"),
    ])
    def test_allowed(self, current, target):
        ensure_transition_allowed(current, target)

    @pytest.mark.parametrize("current,target", [
        ("pending", "pending"),
        ("pending", "completed"),
        ("confirmed", "pending"),
        ("cancelled", "confirmed"),
        ("rejected", "pending"),
        ("completed", "no_show"),
        ("confirmed", "modified"),
        ("modified", "confirmed"),
        ("modified", "cancelled"),
    ])
    def test_rejected(self, current, target):
        with pytest.raises(InvalidBookingStatusError):
            ensure_transition_allowed(current, target)

    def test_blocked_modification_messages(self):
        assert modification_blocked_message("pending") == "Cannot modify booking. Current status: pending approval"
        assert modification_blocked_message("modified").endswith("already has pending modifications")
        assert modification_blocked_message("no_show").endswith("no_show")


class TestStatusTable:
    """Tests for StatusTable."""

    def test_lookup_by_name_and_id(self):
        table = StatusTable({"pending": 10, "confirmed": 20, "vip_hold": 30})
        assert table.id_for(ReservationState.CONFIRMED) == 20
        assert table.state_of(10) == ReservationState.PENDING
        assert table.state_of(30) is None
        assert table.name_for(30) == "vip_hold"
        assert table.names() == ["pending", "confirmed", "vip_hold"]

    def test_missing_canonical_status_is_configuration_error(self):
        with pytest.raises(InternalError):
            StatusTable({"confirmed": 1}).id_for(GuestState.PENDING_ADD)

    def test_loads_seeded_tables(self, db, seeded):
        guests = StatusTable.load(db, GuestStatus)
        assert set(guests.names()) == {state.value for state in GuestState}


class TestRequestReservation:
    """Tests for POST /venues/request-reservation."""

    def body(self, **reservation):
        slot = {
            "venueId": "club-central",
            "date": (datetime.now() + timedelta(days=3)).date().isoformat(),
            "startTime": "20:00",
            "endTime": "23:30",
            "table": True,
            "totalAmount": "900.00",
        }
        slot.update(reservation)
        return {
            "user": {"name": "Maria", "surname": "Gomez", "email": "maria@example.com", "dpi": CREATOR_DPI},
            "reservation": slot,
            "guestNames": ["Guest A", "Guest B"],
        }

    def test_creates_pending_reservation_with_confirmed_guests(self, client, db, codec, seeded):
        response = client.post("/api/v1/venues/request-reservation", json=self.body())

        assert response.status_code == 201
        reservation_id = codec.decode_id(response.json()["reservationId"])
        assert reservation_status(db, reservation_id) == "pending"

        reservation = db.query(Reservation).filter(Reservation.id == reservation_id).one()
        assert reservation.guests == 3
        assert reservation.reservation_type.name == "table"
        assert reservation.password is None

        confirmed = StatusTable.load(db, GuestStatus).find("confirmed")
        rows = guest_rows(db, reservation_id)
        assert len(rows) == 3
        assert all(row.status_id == confirmed for row in rows)
        assert rows[0].user_id == reservation.creator_id
        assert [row.temp_name for row in rows[1:]] == ["Guest A", "Guest B"]

    def test_unknown_venue(self, client, seeded):
        response = client.post("/api/v1/venues/request-reservation", json=self.body(venueId="nowhere"))
        assert response.status_code == 404

    def test_overnight_slot_ends_next_day(self, client, db, codec, seeded):
        """An end time earlier than the start time falls on the following day."""
        body = self.body(startTime="22:00", endTime="02:00")
        response = client.post("/api/v1/venues/request-reservation", json=body)

        assert response.status_code == 201
        reservation_id = codec.decode_id(response.json()["reservationId"])
        reservation = db.query(Reservation).filter(Reservation.id == reservation_id).one()
        assert reservation.start_date.date().isoformat() == body["reservation"]["date"]
        assert reservation.end_date - reservation.start_date == timedelta(hours=4)

    def test_zero_length_slot(self, client, seeded):
        response = client.post("/api/v1/venues/request-reservation",
                               json=self.body(startTime="22:00", endTime="22:00"))
        assert response.status_code == 400

    def test_guest_count_matches_guest_rows(self, client, db, codec, seeded):
        body = self.body()
        body["guestNames"] = ["Guest A", "Guest B", "Guest C", "Guest D"]
        response = client.post("/api/v1/venues/request-reservation", json=body)

        reservation_id = codec.decode_id(response.json()["reservationId"])
        reservation = db.query(Reservation).filter(Reservation.id == reservation_id).one()
        assert reservation.guests == len(guest_rows(db, reservation_id)) == 5

    def test_invalid_dpi(self, client, seeded):
        body = self.body()
        body["user"]["dpi"] = "12ab"
        response = client.post("/api/v1/venues/request-reservation", json=body)
        assert response.status_code == 400


class TestUpdateStatus:
    """Tests for PATCH /bookings/update-status."""

    def test_confirming_issues_management_password(self, client, db, codec, make_reservation,
                                                   staff_headers, staff_body):
        reservation = make_reservation(status="pending")
        response = client.patch(f"{BOOKINGS}/update-status/{codec.encode(reservation.id)}",
                                headers=staff_headers, json={**staff_body, "status": "confirmed"})

        assert response.status_code == 200
        password = response.json()["managementPassword"]
        assert len(password) == 6 and password.isdigit()
        assert reservation_status(db, reservation.id) == "confirmed"

        stored = db.query(Reservation).filter(Reservation.id == reservation.id).one().password
        assert stored != password
        assert verify_password(password, stored)

    def test_cancel_returns_no_password(self, client, db, codec, make_reservation, staff_headers, staff_body):
        reservation = make_reservation(status="confirmed")
        response = client.patch(f"{BOOKINGS}/update-status/{codec.encode(reservation.id)}",
                                headers=staff_headers, json={**staff_body, "status": "cancelled"})

        assert response.status_code == 200
        assert response.json()["managementPassword"] is None
        assert reservation_status(db, reservation.id) == "cancelled"

    def test_unknown_status_name(self, client, codec, make_reservation, staff_headers, staff_body):
        reservation = make_reservation(status="pending")
        response = client.patch(f"{BOOKINGS}/update-status/{codec.encode(reservation.id)}",
                                headers=staff_headers, json={**staff_body, "status": "archived"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_terminal_status_cannot_be_left(self, client, db, codec, make_reservation, staff_headers, staff_body):
        reservation = make_reservation(status="cancelled")
        response = client.patch(f"{BOOKINGS}/update-status/{codec.encode(reservation.id)}",
                                headers=staff_headers, json={**staff_body, "status": "confirmed"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_BOOKING_STATUS"
        assert reservation_status(db, reservation.id) == "cancelled"

    def test_booking_of_another_venue(self, client, codec, seeded, make_reservation, staff_headers, staff_body):
        reservation = make_reservation(status="pending", venue=seeded.other_venue)
        response = client.patch(f"{BOOKINGS}/update-status/{codec.encode(reservation.id)}",
                                headers=staff_headers, json={**staff_body, "status": "confirmed"})
        assert response.status_code == 403

    def test_body_must_match_staff_token(self, client, codec, seeded, make_reservation, staff_headers):
        reservation = make_reservation(status="pending")
        body = {
            "venue_id": codec.encode(seeded.other_venue.id),
            "organization_id": codec.encode(seeded.other_org.id),
            "employee_id": codec.encode(seeded.worker.id),
            "status": "confirmed",
        }
        response = client.patch(f"{BOOKINGS}/update-status/{codec.encode(reservation.id)}",
                                headers=staff_headers, json=body)
        assert response.status_code == 403

    def test_requires_staff_token(self, client, codec, make_reservation, staff_body):
        reservation = make_reservation(status="pending")
        response = client.patch(f"{BOOKINGS}/update-status/{codec.encode(reservation.id)}",
                                json={**staff_body, "status": "confirmed"})
        assert response.status_code == 401


class TestOwnerAuth:
    """Tests for POST /bookings/{bookingId}/auth."""

    def test_valid_credentials_issue_owner_token(self, client, codec, tokens, make_reservation):
        reservation = make_reservation(password="482913")
        response = client.post(f"{BOOKINGS}/{codec.encode(reservation.id)}/auth",
                               json={"dpi": CREATOR_DPI, "password": "482913"})

        assert response.status_code == 200
        claims = tokens.verify_token(response.json()["token"])
        assert claims["role"] == "reservation_admin"
        assert claims["booking_id"] == reservation.id
        assert response.json()["user"]["name"] == "Maria Gomez"

    def test_wrong_password(self, client, codec, make_reservation):
        reservation = make_reservation(password="482913")
        response = client.post(f"{BOOKINGS}/{codec.encode(reservation.id)}/auth",
                               json={"dpi": CREATOR_DPI, "password": "000000"})
        assert response.status_code == 401

    def test_wrong_dpi(self, client, codec, make_reservation):
        reservation = make_reservation(password="482913")
        response = client.post(f"{BOOKINGS}/{codec.encode(reservation.id)}/auth",
                               json={"dpi": "9999999999999", "password": "482913"})
        assert response.status_code == 401

    def test_dpi_must_have_13_digits(self, client, codec, make_reservation):
        reservation = make_reservation(password="482913")
        response = client.post(f"{BOOKINGS}/{codec.encode(reservation.id)}/auth",
                               json={"dpi": "123456789012", "password": "482913"})
        assert response.status_code == 400

    def test_unconfirmed_booking_has_no_password(self, client, codec, make_reservation):
        reservation = make_reservation(status="pending")
        response = client.post(f"{BOOKINGS}/{codec.encode(reservation.id)}/auth",
                               json={"dpi": CREATOR_DPI, "password": "482913"})
        assert response.status_code == 401


class TestGuestModifications:
    """Tests for the modify-guests / process-modifications workflow."""

    @pytest.fixture
    def booking(self, make_reservation):
        """Confirmed booking: creator plus four named guests"""
        return make_reservation(guest_names=("G1", "G2", "G3", "G4"))

    def submit(self, client, codec, headers, reservation, changes):
        return client.put(f"{BOOKINGS}/{codec.encode(reservation.id)}/modify-guests",
                          headers=headers, json={"guestChanges": changes})

    def process(self, client, codec, headers, body, reservation, action):
        return client.patch(f"{BOOKINGS}/process-modifications/{codec.encode(reservation.id)}",
                            headers=headers, json={**body, "action": action})

    def changes(self, db, codec, booking):
        """Remove the last two guests, add one"""
        rows = guest_rows(db, booking.id)
        return [
            {"action": "delete", "guestId": codec.encode(rows[3].guest_id)},
            {"action": "delete", "guestId": codec.encode(rows[4].guest_id)},
            {"action": "add", "guestName": "New Guest"},
        ]

    def test_submit_marks_changes_pending(self, client, db, codec, booking, owner_headers_for):
        response = self.submit(client, codec, owner_headers_for(booking), booking, self.changes(db, codec, booking))

        assert response.status_code == 200
        assert response.json()["guestsToRemove"] == 2
        assert response.json()["guestsToAdd"] == 1
        assert reservation_status(db, booking.id) == "modified"

        names = StatusTable.load(db, GuestStatus)
        statuses = [names.name_for(row.status_id) for row in guest_rows(db, booking.id)]
        assert statuses == ["confirmed", "confirmed", "confirmed", "pending_remove", "pending_remove", "pending_add"]

    def test_accept_applies_changes(self, client, db, codec, booking, owner_headers_for, staff_headers, staff_body):
        self.submit(client, codec, owner_headers_for(booking), booking, self.changes(db, codec, booking))
        response = self.process(client, codec, staff_headers, staff_body, booking, "accept")

        assert response.status_code == 200
        assert response.json()["data"] == {"updatedGuests": 4, "previousGuests": 5}
        assert reservation_status(db, booking.id) == "confirmed"

        names = StatusTable.load(db, GuestStatus)
        statuses = [names.name_for(row.status_id) for row in guest_rows(db, booking.id)]
        assert statuses == ["confirmed", "confirmed", "confirmed", "removed", "removed", "confirmed"]

    def test_reject_restores_guest_list(self, client, db, codec, booking, owner_headers_for, staff_headers, staff_body):
        self.submit(client, codec, owner_headers_for(booking), booking, self.changes(db, codec, booking))
        response = self.process(client, codec, staff_headers, staff_body, booking, "reject")

        assert response.status_code == 200
        assert response.json()["data"]["updatedGuests"] == 5
        assert reservation_status(db, booking.id) == "confirmed"

        names = StatusTable.load(db, GuestStatus)
        statuses = [names.name_for(row.status_id) for row in guest_rows(db, booking.id)]
        assert statuses == ["confirmed"] * 5 + ["removed"]

    def test_pending_booking_cannot_be_modified(self, client, db, codec, make_reservation, owner_headers_for):
        reservation = make_reservation(status="pending")
        response = self.submit(client, codec, owner_headers_for(reservation), reservation,
                               [{"action": "add", "guestName": "New Guest"}])

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Cannot modify booking. Current status: pending approval"

    def test_second_request_waits_for_the_first(self, client, db, codec, booking, owner_headers_for):
        headers = owner_headers_for(booking)
        self.submit(client, codec, headers, booking, [{"action": "add", "guestName": "First"}])
        response = self.submit(client, codec, headers, booking, [{"action": "add", "guestName": "Second"}])

        assert response.status_code == 400
        assert "already has pending modifications" in response.json()["error"]["message"]

    def test_unknown_guest_leaves_booking_untouched(self, client, db, codec, booking, owner_headers_for):
        rows = guest_rows(db, booking.id)
        response = self.submit(client, codec, owner_headers_for(booking), booking, [
            {"action": "delete", "guestId": codec.encode(rows[1].guest_id)},
            {"action": "delete", "guestId": codec.encode(999999)},
        ])

        assert response.status_code == 404
        assert reservation_status(db, booking.id) == "confirmed"
        confirmed = StatusTable.load(db, GuestStatus).find("confirmed")
        assert all(row.status_id == confirmed for row in guest_rows(db, booking.id))

    def test_guest_of_another_booking_is_not_found(self, client, db, codec, make_reservation, owner_headers_for):
        first = make_reservation()
        second = make_reservation()
        foreign_guest = guest_rows(db, second.id)[1]

        response = self.submit(client, codec, owner_headers_for(first), first, [
            {"action": "delete", "guestId": codec.encode(foreign_guest.guest_id)},
        ])
        assert response.status_code == 404

    def test_empty_guest_name(self, client, codec, booking, owner_headers_for):
        response = self.submit(client, codec, owner_headers_for(booking), booking,
                               [{"action": "add", "guestName": "   "}])
        assert response.status_code == 400

    def test_unknown_action(self, client, codec, booking, owner_headers_for):
        response = self.submit(client, codec, owner_headers_for(booking), booking,
                               [{"action": "rename", "guestName": "X"}])
        assert response.status_code == 400

    def test_token_bound_to_another_booking(self, client, codec, make_reservation, owner_headers_for):
        first = make_reservation()
        second = make_reservation()
        response = self.submit(client, codec, owner_headers_for(first), second,
                               [{"action": "add", "guestName": "X"}])

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "BOOKING_MISMATCH"

    def test_staff_token_cannot_modify_guests(self, client, codec, booking, staff_headers):
        response = self.submit(client, codec, staff_headers, booking, [{"action": "add", "guestName": "X"}])

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "INVALID_ROLE"

    def test_owner_token_cannot_act_as_staff(self, client, codec, booking, owner_headers_for, staff_body):
        response = self.process(client, codec, owner_headers_for(booking), staff_body, booking, "accept")
        assert response.status_code == 403

    def test_processing_requires_modified_status(self, client, codec, booking, staff_headers, staff_body):
        response = self.process(client, codec, staff_headers, staff_body, booking, "accept")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_BOOKING_STATUS"

    def test_invalid_process_action(self, client, db, codec, booking, owner_headers_for, staff_headers, staff_body):
        self.submit(client, codec, owner_headers_for(booking), booking, self.changes(db, codec, booking))
        response = self.process(client, codec, staff_headers, staff_body, booking, "maybe")

        assert response.status_code == 400
        assert reservation_status(db, booking.id) == "modified"


class TestBookingViews:
    """Tests for the staff listing/summary and the owner details page."""

    def test_list_upcoming_bookings(self, client, codec, seeded, make_reservation, staff_headers):
        make_reservation(status="pending")
        make_reservation(status="confirmed")
        make_reservation(status="pending", venue=seeded.other_venue)

        response = client.get(f"{BOOKINGS}/get-bookings/{codec.encode(seeded.venue.id)}", headers=staff_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["pagination"]["totalCount"] == 2
        assert body["bookings"][0]["customerName"] == "Maria Gomez"

    def test_list_filtered_by_status(self, client, codec, seeded, make_reservation, staff_headers):
        make_reservation(status="pending")
        make_reservation(status="confirmed")

        response = client.get(f"{BOOKINGS}/get-bookings/{codec.encode(seeded.venue.id)}",
                              headers=staff_headers, params={"status": "pending", "limit": 1})

        body = response.json()
        assert body["pagination"] == {
            "currentPage": 1, "totalPages": 1, "totalCount": 1, "hasMore": False, "limit": 1
        }
        assert body["bookings"][0]["status"] == "pending"

    def test_list_with_unknown_status_filter(self, client, codec, seeded, staff_headers):
        response = client.get(f"{BOOKINGS}/get-bookings/{codec.encode(seeded.venue.id)}",
                              headers=staff_headers, params={"status": "archived"})
        assert response.status_code == 400

    def test_list_of_another_venue_is_denied(self, client, codec, seeded, staff_headers):
        response = client.get(f"{BOOKINGS}/get-bookings/{codec.encode(seeded.other_venue.id)}", headers=staff_headers)
        assert response.status_code == 403

    def test_summary_counts_pending_changes(self, client, db, codec, make_reservation, owner_headers_for, staff_headers):
        booking = make_reservation()
        rows = guest_rows(db, booking.id)
        client.put(f"{BOOKINGS}/{codec.encode(booking.id)}/modify-guests", headers=owner_headers_for(booking),
                   json={"guestChanges": [
                       {"action": "delete", "guestId": codec.encode(rows[2].guest_id)},
                       {"action": "add", "guestName": "X"},
                       {"action": "add", "guestName": "Y"},
                   ]})

        response = client.get(f"{BOOKINGS}/get-booking-details/{codec.encode(booking.id)}", headers=staff_headers)

        assert response.status_code == 200
        assert response.json()["modifications"] == {"guestsToRemove": 1, "guestsToAdd": 2, "hasModifications": True}

    def test_summary_without_modifications(self, client, codec, make_reservation, staff_headers):
        booking = make_reservation()
        response = client.get(f"{BOOKINGS}/get-booking-details/{codec.encode(booking.id)}", headers=staff_headers)
        assert response.json()["modifications"] is None

    def test_owner_details_list_creator_first_with_payments(self, client, db, codec, make_reservation):
        booking = make_reservation(guest_names=("Guest A", "Guest B"), total_amount=Decimal("500.00"))
        rows = guest_rows(db, booking.id)
        rows[0].paid_at = datetime.now()
        rows[2].status_id = StatusTable.load(db, GuestStatus).find("removed")
        db.commit()

        response = client.get(f"{BOOKINGS}/{codec.encode(booking.id)}/details")

        assert response.status_code == 200
        details = response.json()["booking"]
        assistants = details["assistants"]
        assert [a["name"] for a in assistants] == ["Maria Gomez", "Guest A"]
        assert assistants[0]["isCreator"] is True
        assert assistants[1]["isRegisteredUser"] is False
        assert codec.decode_id(assistants[1]["id"]) == rows[1].guest_id

        payments = details["paymentSummary"]
        assert Decimal(str(payments["totalPaid"])) == Decimal("166.67")
        assert Decimal(str(payments["totalPending"])) == Decimal("333.33")
        assert payments["paymentProgress"] == 33

    def test_owner_details_unknown_booking(self, client, codec, seeded):
        response = client.get(f"{BOOKINGS}/{codec.encode(424242)}/details")
        assert response.status_code == 404
