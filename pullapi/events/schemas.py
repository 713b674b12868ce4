from pydantic import BaseModel
from typing import List, Optional, Any
from datetime import date, time
from decimal import Decimal

class EventListItem(BaseModel):
    event_id: str
    event_slug: str
    event_img: Optional[str] = None
    event_name: str
    venue_name: Optional[str] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    event_date: date
    custom_location: Optional[str] = None
    requirements: List[Any] = []

class DetailedEventInfo(BaseModel):
    event_name: str
    event_img: Optional[str] = None
    date: date
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    location: Optional[str] = None
    requirements: List[Any] = []

class EventInfo(BaseModel):
    event_name: str
    event_img: Optional[str] = None
    date: date
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    location: Optional[str] = None

class TicketTypeListItem(BaseModel):
    ticket_type_id: str
    slug: str
    ticket_name: str
    ticket_price: Decimal
    ticket_description: List[Any] = []
    ticket_quantity: int

class TicketTypeInfo(BaseModel):
    ticket_name: str
    ticket_price: Decimal
    ticket_description: List[Any] = []
    ticket_quantity: int
    ticket_expenses: Decimal = Decimal("0")

class UpcomingEvent(BaseModel):
    id: str
    name: str
    image: Optional[str] = None
    event_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    ticket_limit: Optional[int] = None
    tickets_sold: int
    tickets_available: Optional[int] = None

class UpcomingEventsResponse(BaseModel):
    success: bool = True
    events: List[UpcomingEvent]
    total_events: int

class EventTicketTypeDetail(BaseModel):
    id: str
    name: str
    price: Decimal
    description: Any = None
    max: int
    commission: Decimal = Decimal("0")
    sold: int
    available: int

class EventDetail(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    poster: Optional[str] = None
    date: date
    startTime: Optional[time] = None
    endTime: Optional[time] = None
    accessType: str = "public"
    minAge: Optional[int] = None
    maxTickets: Optional[int] = None
    ticketsSold: int
    dressCode: Optional[str] = None
    customLocation: Optional[str] = None
    requirements: Optional[List[Any]] = None
    ticketTypes: List[EventTicketTypeDetail]

class EventDetailResponse(BaseModel):
    success: bool = True
    event: EventDetail
