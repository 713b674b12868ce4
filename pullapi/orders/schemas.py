from pydantic import BaseModel, Field, validator
from typing import List, Optional, Any
from datetime import date, time
from decimal import Decimal

class TicketHolder(BaseModel):
    """One ticket in a reservation request.

    Fields are loosely typed on purpose: the order service checks them
    with fixed patterns and reports every invalid field of a ticket at once.
    """
    owner_name: Optional[Any] = None
    owner_last_name: Optional[Any] = None
    owner_email: Optional[Any] = None
    owner_phone: Optional[Any] = None
    owner_dpi: Optional[Any] = None
    owner_birthdate: Optional[Any] = None

class TicketReservationRequest(BaseModel):
    slug_id: str = Field(..., min_length=1)
    ticket_type_id: str = Field(..., min_length=1)
    tickets: List[TicketHolder]

    @validator('tickets')
    def validate_tickets(cls, v):
        if not v:
            raise ValueError('At least one ticket is required')
        return v

class TicketReservationResponse(BaseModel):
    message: str = "Reservation completed successfully"
    order_id: str
    total: Decimal
    quantity: int

class OrderTicketInfo(BaseModel):
    owner_full_name: str
    owner_email: Optional[str] = None
    event_name: str
    event_date: date
    start_time: Optional[time] = None
    qr_token: str
    benefits: List[Any] = []

class OrderTicketsResponse(BaseModel):
    tickets: List[OrderTicketInfo]
