import logging
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pullapi.database import get_db
from pullapi.auth.dependencies import get_codec, get_token_service, get_current_staff, validate_booking_access
from pullapi.auth.schemas import StaffClaims
from pullapi.auth.utils import TokenService
from pullapi.bookings.schemas import (
    StaffContext, StatusUpdateRequest, StatusUpdateResponse,
    ProcessModificationsRequest, ProcessModificationsResponse,
    BookingListResponse, BookingSummaryResponse, BookingDetailsResponse,
    OwnerAuthRequest, OwnerAuthResponse, ModifyGuestsRequest, GuestChangesResponse
)
from pullapi.bookings.service import BookingService
from pullapi.codec import IdCodec
from pullapi.config import settings
from pullapi.errors import AccessDeniedError

logger = logging.getLogger(__name__)

router = APIRouter()

def get_booking_service(
    db: Session = Depends(get_db),
    codec: IdCodec = Depends(get_codec),
    tokens: TokenService = Depends(get_token_service)
) -> BookingService:
    return BookingService(db, codec, settings.DPI_SALT, tokens)

def resolve_staff_scope(context: StaffContext, staff: StaffClaims, codec: IdCodec) -> Tuple[int, int]:
    """Decode the venue/organization a staff request acts on; it must be the staff member's own"""
    venue_id = codec.decode_id(context.venue_id)
    organization_id = codec.decode_id(context.organization_id)
    employee_id = codec.decode_id(context.employee_id)

    if (venue_id, organization_id, employee_id) != (staff.venue_id, staff.organization_id, staff.employee_id):
        logger.warning("Staff request for another venue or employee was rejected")
        raise AccessDeniedError("Access denied. You don't have permission to modify this booking")

    return venue_id, organization_id

# Staff endpoints

@router.get("/get-bookings/{venue_id}", response_model=BookingListResponse)
def get_bookings(
    venue_id: str,
    status: Optional[str] = Query(None, description="Status name, or All"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    staff: StaffClaims = Depends(get_current_staff),
    codec: IdCodec = Depends(get_codec),
    booking_service: BookingService = Depends(get_booking_service)
):
    """Upcoming bookings of the staff member's venue"""
    real_venue_id = codec.decode_id(venue_id)
    if real_venue_id != staff.venue_id:
        raise AccessDeniedError("Access denied. You can only list bookings of your own venue")
    return booking_service.list_venue_bookings(real_venue_id, status, page, limit)

@router.get("/get-booking-details/{booking_id}", response_model=BookingSummaryResponse)
def get_booking_details(
    booking_id: str,
    staff: StaffClaims = Depends(get_current_staff),
    codec: IdCodec = Depends(get_codec),
    booking_service: BookingService = Depends(get_booking_service)
):
    return booking_service.get_booking_summary(
        codec.decode_id(booking_id), staff.venue_id, staff.organization_id
    )

@router.patch("/update-status/{booking_id}", response_model=StatusUpdateResponse)
def update_status(
    booking_id: str,
    request: StatusUpdateRequest,
    staff: StaffClaims = Depends(get_current_staff),
    codec: IdCodec = Depends(get_codec),
    booking_service: BookingService = Depends(get_booking_service)
):
    """Change a booking's status; confirming returns the owner's management password"""
    real_booking_id = codec.decode_id(booking_id)
    venue_id, organization_id = resolve_staff_scope(request, staff, codec)
    return booking_service.update_status(real_booking_id, request.status, venue_id, organization_id)

@router.patch("/process-modifications/{booking_id}", response_model=ProcessModificationsResponse)
def process_modifications(
    booking_id: str,
    request: ProcessModificationsRequest,
    staff: StaffClaims = Depends(get_current_staff),
    codec: IdCodec = Depends(get_codec),
    booking_service: BookingService = Depends(get_booking_service)
):
    """Accept or reject the pending guest changes of a booking"""
    real_booking_id = codec.decode_id(booking_id)
    venue_id, organization_id = resolve_staff_scope(request, staff, codec)
    return booking_service.process_modifications(real_booking_id, request.action, venue_id, organization_id)

# Owner endpoints

@router.get("/{bookingId}/details", response_model=BookingDetailsResponse)
def get_owner_booking_details(
    bookingId: str,
    codec: IdCodec = Depends(get_codec),
    booking_service: BookingService = Depends(get_booking_service)
):
    """Booking page reached through the opaque link sent to the owner"""
    return booking_service.get_booking_details(codec.decode_id(bookingId))

@router.post("/{bookingId}/auth", response_model=OwnerAuthResponse)
def authenticate_owner(
    bookingId: str,
    request: OwnerAuthRequest,
    codec: IdCodec = Depends(get_codec),
    booking_service: BookingService = Depends(get_booking_service)
):
    return booking_service.authenticate_owner(codec.decode_id(bookingId), request.dpi, request.password)

@router.put("/{bookingId}/modify-guests", response_model=GuestChangesResponse)
def modify_guests(
    request: ModifyGuestsRequest,
    booking_id: int = Depends(validate_booking_access),
    booking_service: BookingService = Depends(get_booking_service)
):
    """Request guest additions/removals; they wait for venue approval"""
    return booking_service.submit_guest_changes(booking_id, request.guestChanges)
