from pydantic import BaseModel
from typing import List, Optional, Any
from datetime import time
from decimal import Decimal

from pullapi.bookings.schemas import ReservationUser, ReservationSlot

class VenueListItem(BaseModel):
    id: str
    slug: str
    venue_name: str
    image: Optional[str] = None
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    location: Optional[str] = None

class VenueInfo(BaseModel):
    name: str
    capacity: Optional[int] = None
    email: Optional[str] = None
    image: Optional[str] = None
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    long_location: Optional[str] = None
    latitude: Decimal = Decimal("0")
    longitud: Decimal = Decimal("0")

class VenueDescription(BaseModel):
    description: str

class ReservationTypesResponse(BaseModel):
    venue_id: str
    reservation_types: List[Any] = []
    days: Any = {}

class ReservationRequest(BaseModel):
    user: ReservationUser
    reservation: ReservationSlot
    guestNames: List[str] = []

class ReservationRequestResponse(BaseModel):
    status: int = 201
    message: str = "Reservation requested successfully"
    reservationId: str
