import hmac
import logging
import math
import re
import secrets
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from pullapi.auth.utils import TokenService, RESERVATION_ADMIN_ROLE, get_password_hash, verify_password
from pullapi.bookings.schemas import (
    BookingListItem, BookingListResponse, Pagination, BookingSummary, BookingSummaryResponse,
    ModificationCounts, StatusUpdateResponse, ProcessModificationsResponse, ModificationResult,
    GuestInfo, PaymentSummary, BookingDetails, BookingDetailsResponse, OwnerInfo, OwnerAuthResponse,
    GuestChange, GuestChangeAction, GuestChangesResponse, ModificationAction,
    ReservationUser, ReservationSlot
)
from pullapi.bookings.statuses import (
    StatusTable, ReservationState, GuestState,
    ensure_transition_allowed, modification_blocked_message
)
from pullapi.codec import IdCodec
from pullapi.errors import (
    AccessDeniedError, AuthError, InvalidBookingStatusError, NotFoundError, ValidationError
)
from pullapi.identity import IdentityResolver, hash_dpi
from pullapi.identity.service import EMAIL_PATTERN, DPI_PATTERN
from pullapi.models import (
    Reservation, ReservationGuest, ReservationStatus, GuestStatus, ReservationType, Venue
)

logger = logging.getLogger(__name__)

OWNER_DPI_PATTERN = re.compile(r"^\d{13}$")
TABLE_RESERVATION_TYPE = "table"
GENERAL_RESERVATION_TYPE = "general"
CENTS = Decimal("0.01")

def generate_management_password() -> str:
    """Random 6-digit code handed to the booking owner on confirmation"""
    return str(secrets.randbelow(900000) + 100000)

def _parse_slot(day: str, clock: str, field: str) -> datetime:
    try:
        return datetime.combine(date.fromisoformat(day.strip()), time.fromisoformat(clock.strip()))
    except (ValueError, AttributeError):
        raise ValidationError(f"Invalid reservation {field}")

class BookingService:
    """Reservation lifecycle: requests, staff status changes, guest-list modifications"""

    def __init__(self, db: Session, codec: IdCodec, dpi_salt: str, tokens: Optional[TokenService] = None):
        self.db = db
        self.codec = codec
        self.dpi_salt = dpi_salt
        self.tokens = tokens
        self.identity = IdentityResolver(db, codec, dpi_salt)

    # ---------------------------------------------------------------
    # Lookups
    # ---------------------------------------------------------------

    def reservation_statuses(self) -> StatusTable:
        return StatusTable.load(self.db, ReservationStatus)

    def guest_statuses(self) -> StatusTable:
        return StatusTable.load(self.db, GuestStatus)

    def get_reservation(self, booking_id: int) -> Reservation:
        reservation = self.db.query(Reservation).options(
            joinedload(Reservation.creator),
            joinedload(Reservation.status),
            joinedload(Reservation.reservation_type),
            joinedload(Reservation.venue)
        ).filter(Reservation.id == booking_id).first()

        if not reservation:
            raise NotFoundError("Booking not found")
        return reservation

    def _lock_reservation(self, booking_id: int) -> Reservation:
        """Load the reservation row with a row lock held until commit/rollback"""
        reservation = self.db.query(Reservation).filter(
            Reservation.id == booking_id
        ).with_for_update().first()

        if not reservation:
            raise NotFoundError("Booking not found")
        return reservation

    def ensure_staff_owns(self, reservation: Reservation, venue_id: int, organization_id: int):
        """The booking must belong to the staff member's venue and organization"""
        venue = reservation.venue or self.db.query(Venue).filter(Venue.id == reservation.venue_id).first()
        if reservation.venue_id != venue_id or venue is None or venue.organization_id != organization_id:
            logger.warning("Staff access to booking %s from another venue was rejected", reservation.id)
            raise AccessDeniedError("Access denied. You don't have permission to modify this booking")

    def _count_active_confirmed(self, booking_id: int, guest_statuses: StatusTable) -> int:
        return self.db.query(ReservationGuest).filter(
            ReservationGuest.reservation_id == booking_id,
            ReservationGuest.status_id == guest_statuses.id_for(GuestState.CONFIRMED),
            ReservationGuest.is_cancelled.is_(False)
        ).count()

    # ---------------------------------------------------------------
    # Reservation requests
    # ---------------------------------------------------------------

    def create_reservation(self, user: ReservationUser, slot: ReservationSlot, guest_names: List[str]) -> Reservation:
        """Create a pending reservation with the creator and named guests confirmed"""
        dpi = user.dpi.strip()
        if not DPI_PATTERN.match(dpi):
            raise ValidationError("Invalid DPI format", details={"fields": ["dpi"]})
        if not EMAIL_PATTERN.match(user.email.strip()):
            raise ValidationError("Invalid email format", details={"fields": ["email"]})

        names = [name.strip() for name in guest_names]
        if any(not name for name in names):
            raise ValidationError("Guest names cannot be empty")

        start_date = _parse_slot(slot.date, slot.startTime, "start time")
        end_date = _parse_slot(slot.date, slot.endTime, "end time")
        if end_date == start_date:
            raise ValidationError("Reservation end time must differ from its start time")
        if end_date < start_date:
            # Slot runs past midnight
            end_date += timedelta(days=1)

        venue = self.db.query(Venue).filter(Venue.slug == slot.venueId).first()
        if not venue:
            raise NotFoundError("Venue not found")

        statuses = self.reservation_statuses()
        guest_statuses = self.guest_statuses()
        type_name = TABLE_RESERVATION_TYPE if slot.table else GENERAL_RESERVATION_TYPE
        reservation_type = self.db.query(ReservationType).filter(ReservationType.name == type_name).first()

        try:
            creator_id = self.identity.resolve(
                dpi=dpi,
                email=user.email.strip(),
                name=user.name.strip(),
                surname=user.surname.strip(),
                birth_date=self._parse_birth_date(user.birth_date)
            )

            reservation = Reservation(
                venue_id=venue.id,
                creator_id=creator_id,
                reservation_type_id=reservation_type.id if reservation_type else None,
                status_id=statuses.id_for(ReservationState.PENDING),
                payment_term_id=slot.paymentTerm,
                guests=0,
                total_amount=slot.totalAmount,
                start_date=start_date,
                end_date=end_date
            )
            self.db.add(reservation)
            self.db.flush()

            confirmed = guest_statuses.id_for(GuestState.CONFIRMED)
            self.db.add(ReservationGuest(
                reservation_id=reservation.id,
                user_id=creator_id,
                status_id=confirmed,
                is_cancelled=False
            ))
            for name in names:
                self.db.add(ReservationGuest(
                    reservation_id=reservation.id,
                    temp_name=name,
                    status_id=confirmed,
                    is_cancelled=False
                ))
            self.db.flush()

            reservation.guests = self._count_active_confirmed(reservation.id, guest_statuses)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Reservation %s requested at venue %s for %s guests", reservation.id, venue.id, reservation.guests)
        return reservation

    @staticmethod
    def _parse_birth_date(value: Optional[str]) -> Optional[date]:
        if not value:
            return None
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            raise ValidationError("Invalid birth date", details={"fields": ["birth_date"]})

    # ---------------------------------------------------------------
    # Staff views
    # ---------------------------------------------------------------

    def _list_item(self, reservation: Reservation) -> dict:
        creator = reservation.creator
        return dict(
            id=self.codec.encode(reservation.id),
            customerName=f"{creator.name} {creator.surname}",
            email=creator.email,
            guests=reservation.guests,
            totalAmount=reservation.total_amount,
            status=reservation.status.name if reservation.status else None,
            type=reservation.reservation_type.name if reservation.reservation_type else None,
            date=reservation.start_date.date().isoformat(),
            startDateTime=reservation.start_date,
            endDateTime=reservation.end_date,
            createdAt=reservation.created_at
        )

    def list_venue_bookings(
        self,
        venue_id: int,
        status_name: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
        now: Optional[datetime] = None
    ) -> BookingListResponse:
        """Upcoming bookings of a venue, soonest first"""
        now = now or datetime.now()

        query = self.db.query(Reservation).options(
            joinedload(Reservation.creator),
            joinedload(Reservation.status),
            joinedload(Reservation.reservation_type)
        ).filter(
            Reservation.venue_id == venue_id,
            Reservation.start_date >= now
        )

        if status_name and status_name != "All":
            status_id = self.reservation_statuses().find(status_name)
            if status_id is None:
                raise ValidationError("Invalid status filter")
            query = query.filter(Reservation.status_id == status_id)

        total_count = query.count()
        bookings = query.order_by(Reservation.start_date.asc()).offset((page - 1) * limit).limit(limit).all()
        total_pages = math.ceil(total_count / limit)

        return BookingListResponse(
            bookings=[BookingListItem(**self._list_item(b)) for b in bookings],
            pagination=Pagination(
                currentPage=page,
                totalPages=total_pages,
                totalCount=total_count,
                hasMore=page < total_pages,
                limit=limit
            )
        )

    def get_booking_summary(self, booking_id: int, venue_id: int, organization_id: int) -> BookingSummaryResponse:
        """Staff view of one booking, with pending change counts while modified"""
        reservation = self.get_reservation(booking_id)
        self.ensure_staff_owns(reservation, venue_id, organization_id)

        summary = BookingSummary(
            **self._list_item(reservation),
            phone=reservation.creator.phone,
            time=reservation.start_date.strftime("%H:%M"),
            endTime=reservation.end_date.strftime("%H:%M")
        )

        modifications = None
        if reservation.status and reservation.status.name == ReservationState.MODIFIED.value:
            guest_statuses = self.guest_statuses()
            to_remove = self._count_in_status(booking_id, guest_statuses.id_for(GuestState.PENDING_REMOVE))
            to_add = self._count_in_status(booking_id, guest_statuses.id_for(GuestState.PENDING_ADD))
            modifications = ModificationCounts(
                guestsToRemove=to_remove,
                guestsToAdd=to_add,
                hasModifications=to_remove > 0 or to_add > 0
            )

        return BookingSummaryResponse(booking=summary, modifications=modifications)

    def _count_in_status(self, booking_id: int, status_id: int) -> int:
        return self.db.query(ReservationGuest).filter(
            ReservationGuest.reservation_id == booking_id,
            ReservationGuest.status_id == status_id
        ).count()

    # ---------------------------------------------------------------
    # Staff actions
    # ---------------------------------------------------------------

    def update_status(self, booking_id: int, status_name: str, venue_id: int, organization_id: int) -> StatusUpdateResponse:
        """Move a booking to another status by name.

        Confirming issues a fresh management password. Only its hash is stored;
        the plaintext is returned in the response and nowhere else.
        """
        management_password = None
        try:
            reservation = self._lock_reservation(booking_id)
            self.ensure_staff_owns(reservation, venue_id, organization_id)

            statuses = self.reservation_statuses()
            target_id = statuses.find(status_name)
            if target_id is None:
                raise ValidationError(
                    f"Invalid status. Valid statuses are: {', '.join(statuses.names())}"
                )

            current_name = statuses.name_for(reservation.status_id)
            ensure_transition_allowed(current_name, status_name)

            reservation.status_id = target_id
            if status_name == ReservationState.CONFIRMED.value:
                management_password = generate_management_password()
                reservation.password = get_password_hash(management_password)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Booking %s moved from %s to %s", booking_id, current_name, status_name)
        if management_password:
            # Delivery by email is not wired up yet
            logger.info("Management password issued for booking %s", booking_id)

        return StatusUpdateResponse(
            message=f"Booking {status_name} successfully",
            status=status_name,
            managementPassword=management_password
        )

    def process_modifications(
        self,
        booking_id: int,
        action: ModificationAction,
        venue_id: int,
        organization_id: int
    ) -> ProcessModificationsResponse:
        """Accept or reject every pending guest change of a modified booking at once"""
        try:
            reservation = self._lock_reservation(booking_id)
            self.ensure_staff_owns(reservation, venue_id, organization_id)

            statuses = self.reservation_statuses()
            if statuses.state_of(reservation.status_id) != ReservationState.MODIFIED:
                raise InvalidBookingStatusError("Booking has no pending modifications")

            guest_statuses = self.guest_statuses()
            confirmed = guest_statuses.id_for(GuestState.CONFIRMED)
            removed = guest_statuses.id_for(GuestState.REMOVED)

            if action == ModificationAction.ACCEPT:
                remove_to, add_to = removed, confirmed
            else:
                remove_to, add_to = confirmed, removed

            self._move_guests(booking_id, guest_statuses.id_for(GuestState.PENDING_REMOVE), remove_to)
            self._move_guests(booking_id, guest_statuses.id_for(GuestState.PENDING_ADD), add_to)

            previous_guests = reservation.guests
            reservation.guests = self._count_active_confirmed(booking_id, guest_statuses)
            reservation.status_id = statuses.id_for(ReservationState.CONFIRMED)
            updated_guests = reservation.guests

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        action_text = "accepted" if action == ModificationAction.ACCEPT else "rejected"
        logger.info("Modifications %s for booking %s: %s -> %s guests", action_text, booking_id, previous_guests, updated_guests)

        return ProcessModificationsResponse(
            message=f"Modifications {action_text} successfully",
            data=ModificationResult(updatedGuests=updated_guests, previousGuests=previous_guests)
        )

    def _move_guests(self, booking_id: int, from_status: int, to_status: int) -> int:
        return self.db.query(ReservationGuest).filter(
            ReservationGuest.reservation_id == booking_id,
            ReservationGuest.status_id == from_status
        ).update({ReservationGuest.status_id: to_status}, synchronize_session=False)

    # ---------------------------------------------------------------
    # Owner self-service
    # ---------------------------------------------------------------

    def authenticate_owner(self, booking_id: int, dpi: str, password: str) -> OwnerAuthResponse:
        """Exchange the creator's DPI and the management password for an owner token"""
        if not OWNER_DPI_PATTERN.match(dpi):
            raise ValidationError("DPI must be exactly 13 digits")

        reservation = self.get_reservation(booking_id)
        creator = reservation.creator
        dpi_hashed = hash_dpi(dpi, self.dpi_salt)

        if not hmac.compare_digest(creator.dpi_hashed, dpi_hashed):
            logger.warning("Owner authentication for booking %s failed: DPI mismatch", booking_id)
            raise AuthError("Invalid DPI for this booking")

        if not verify_password(password, reservation.password):
            logger.warning("Owner authentication for booking %s failed: wrong password", booking_id)
            raise AuthError("Invalid password")

        token = self.tokens.create_access_token({
            "booking_id": reservation.id,
            "user_id": reservation.creator_id,
            "role": RESERVATION_ADMIN_ROLE,
            "dpi_hash": dpi_hashed
        })

        return OwnerAuthResponse(
            token=token,
            user=OwnerInfo(name=f"{creator.name} {creator.surname}", email=creator.email)
        )

    def get_booking_guests(self, reservation: Reservation, guest_statuses: StatusTable) -> List[GuestInfo]:
        """Active guests, creator first and otherwise in insertion order"""
        removed = guest_statuses.id_for(GuestState.REMOVED)
        rows = [
            guest for guest in reservation.guest_rows
            if not guest.is_cancelled and guest.status_id != removed
        ]
        rows.sort(key=lambda guest: 0 if guest.user_id == reservation.creator_id else 1)

        guests = []
        for guest in rows:
            if guest.user_id and guest.user:
                name = f"{guest.user.name or ''} {guest.user.surname or ''}".strip()
            else:
                name = guest.temp_name or "Unknown Guest"
            guests.append(GuestInfo(
                id=self.codec.encode(guest.guest_id),
                name=name,
                email=guest.user.email if guest.user else None,
                paidAt=guest.paid_at,
                status=guest_statuses.name_for(guest.status_id) or GuestState.CONFIRMED.value,
                isRegisteredUser=guest.user_id is not None,
                isCreator=guest.user_id == reservation.creator_id
            ))
        return guests

    def get_booking_details(self, booking_id: int) -> BookingDetailsResponse:
        reservation = self.get_reservation(booking_id)
        guest_statuses = self.guest_statuses()
        guests = self.get_booking_guests(reservation, guest_statuses)

        total = Decimal(reservation.total_amount or 0)
        per_guest = total / reservation.guests if reservation.guests else Decimal("0")
        paid_count = sum(1 for guest in guests if guest.paidAt)
        total_paid = (per_guest * paid_count).quantize(CENTS)
        progress = int(round(total_paid / total * 100)) if total > 0 else 0

        creator = reservation.creator
        venue = reservation.venue
        return BookingDetailsResponse(booking=BookingDetails(
            id=self.codec.encode(reservation.id),
            venueId=self.codec.encode(reservation.venue_id),
            venueName=venue.name if venue else "",
            venueAddress=(venue.location or "") if venue else "",
            customerName=f"{creator.name} {creator.surname}",
            email=creator.email,
            guests=reservation.guests,
            totalAmount=total,
            status=reservation.status.name if reservation.status else None,
            type=reservation.reservation_type.name if reservation.reservation_type else "",
            startDate=reservation.start_date,
            endDate=reservation.end_date,
            createdAt=reservation.created_at,
            assistants=guests,
            paymentSummary=PaymentSummary(
                totalPaid=total_paid,
                totalPending=(total - total_paid).quantize(CENTS),
                totalAmount=total,
                paymentProgress=progress
            )
        ))

    def submit_guest_changes(self, booking_id: int, changes: List[GuestChange]) -> GuestChangesResponse:
        """Queue guest additions/removals for venue approval.

        All changes are checked before anything is written and applied in one
        transaction; the booking moves to ``modified`` until staff process them.
        """
        if not changes:
            raise ValidationError("At least one guest change is required")

        remove_ids = []
        add_names = []
        for index, change in enumerate(changes):
            if change.action == GuestChangeAction.DELETE:
                if not change.guestId:
                    raise ValidationError(f"Change {index + 1}: guestId is required to delete a guest")
                remove_ids.append(self.codec.decode_id(change.guestId))
            else:
                name = (change.guestName or "").strip()
                if not name:
                    raise ValidationError(f"Change {index + 1}: guestName is required to add a guest")
                add_names.append(name)

        try:
            reservation = self._lock_reservation(booking_id)
            statuses = self.reservation_statuses()

            if statuses.state_of(reservation.status_id) != ReservationState.CONFIRMED:
                current_name = statuses.name_for(reservation.status_id)
                raise InvalidBookingStatusError(
                    modification_blocked_message(current_name),
                    details={"currentStatus": current_name}
                )

            guest_statuses = self.guest_statuses()
            unique_ids = set(remove_ids)
            if unique_ids:
                marked = self.db.query(ReservationGuest).filter(
                    ReservationGuest.guest_id.in_(unique_ids),
                    ReservationGuest.reservation_id == booking_id,
                    ReservationGuest.status_id == guest_statuses.id_for(GuestState.CONFIRMED),
                    ReservationGuest.is_cancelled.is_(False)
                ).update(
                    {ReservationGuest.status_id: guest_statuses.id_for(GuestState.PENDING_REMOVE)},
                    synchronize_session=False
                )
                if marked != len(unique_ids):
                    raise NotFoundError("One or more guests were not found in this booking")

            pending_add = guest_statuses.id_for(GuestState.PENDING_ADD)
            for name in add_names:
                self.db.add(ReservationGuest(
                    reservation_id=booking_id,
                    temp_name=name,
                    status_id=pending_add,
                    is_cancelled=False
                ))

            reservation.status_id = statuses.id_for(ReservationState.MODIFIED)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Guest changes submitted for booking %s: %s to remove, %s to add",
            booking_id, len(unique_ids), len(add_names)
        )

        return GuestChangesResponse(
            guestsToRemove=len(unique_ids),
            guestsToAdd=len(add_names),
            status=ReservationState.MODIFIED.value
        )
