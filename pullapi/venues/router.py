from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List

from pullapi.database import get_db
from pullapi.auth.dependencies import get_codec
from pullapi.bookings.router import get_booking_service
from pullapi.bookings.service import BookingService
from pullapi.codec import IdCodec
from pullapi.errors import NotFoundError
from pullapi.events.schemas import EventListItem
from pullapi.events.service import EventService
from pullapi.venues.schemas import (
    VenueListItem, VenueInfo, VenueDescription, ReservationTypesResponse,
    ReservationRequest, ReservationRequestResponse
)
from pullapi.venues.service import VenueService

router = APIRouter()

@router.get("/get-all-venues", response_model=List[VenueListItem])
def get_all_venues(db: Session = Depends(get_db), codec: IdCodec = Depends(get_codec)):
    return [
        VenueListItem(
            id=codec.encode(venue.id),
            slug=venue.slug,
            venue_name=venue.name,
            image=venue.image,
            open_time=venue.open_time,
            close_time=venue.close_time,
            location=venue.location
        )
        for venue in VenueService.get_venues(db)
    ]

@router.get("/events/get-all-events/{slug}", response_model=List[EventListItem])
def get_venue_events(
    slug: str,
    takeNumber: int = Query(10, ge=1, le=100, description="Number of events to return"),
    db: Session = Depends(get_db),
    codec: IdCodec = Depends(get_codec)
):
    """Latest events of a venue"""
    venue = VenueService.get_venue_by_slug(db, slug)
    return EventService.get_venue_events(db, codec, venue.id, takeNumber)

@router.get("/events/get-venue-info/{slug}", response_model=VenueInfo)
def get_venue_info(slug: str, db: Session = Depends(get_db)):
    venue = VenueService.get_venue_by_slug(db, slug)
    return VenueInfo(
        name=venue.name,
        capacity=venue.capacity,
        email=venue.email,
        image=venue.image,
        open_time=venue.open_time,
        close_time=venue.close_time,
        long_location=venue.location,
        latitude=venue.latitude or 0,
        longitud=venue.longitude or 0
    )

@router.get("/events/get-venue-description/{slug}", response_model=VenueDescription)
def get_venue_description(slug: str, db: Session = Depends(get_db)):
    venue = VenueService.get_venue_by_slug(db, slug)
    if not venue.description:
        raise NotFoundError("Venue has no description")
    return VenueDescription(description=venue.description)

@router.get("/get-reservation-types/{encryptedVenueId}", response_model=ReservationTypesResponse)
def get_reservation_types(
    encryptedVenueId: str,
    db: Session = Depends(get_db),
    codec: IdCodec = Depends(get_codec)
):
    """Reservation options and opening days configured by a venue"""
    venue = VenueService.get_venue(db, codec.decode_id(encryptedVenueId))
    return ReservationTypesResponse(
        venue_id=encryptedVenueId,
        reservation_types=venue.reservation_types or [],
        days=venue.days or {}
    )

@router.post("/request-reservation", response_model=ReservationRequestResponse, status_code=status.HTTP_201_CREATED)
def request_reservation(
    request: ReservationRequest,
    codec: IdCodec = Depends(get_codec),
    booking_service: BookingService = Depends(get_booking_service)
):
    """Ask a venue for a reservation; it stays pending until staff confirm it"""
    reservation = booking_service.create_reservation(request.user, request.reservation, request.guestNames)
    return ReservationRequestResponse(reservationId=codec.encode(reservation.id))
