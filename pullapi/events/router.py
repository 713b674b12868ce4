from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from pullapi.database import get_db
from pullapi.auth.dependencies import get_codec
from pullapi.codec import IdCodec
from pullapi.errors import NotFoundError
from pullapi.events.schemas import (
    EventListItem, DetailedEventInfo, EventInfo, TicketTypeListItem, TicketTypeInfo,
    UpcomingEventsResponse, EventDetailResponse
)
from pullapi.events.service import EventService

router = APIRouter()

@router.get("/get-all-events", response_model=List[EventListItem])
def get_all_events(db: Session = Depends(get_db), codec: IdCodec = Depends(get_codec)):
    """All events with their venue name"""
    return EventService.get_all_events(db, codec)

@router.get("/get-detailed-event-info/{slug}", response_model=DetailedEventInfo)
def get_detailed_event_info(slug: str, db: Session = Depends(get_db)):
    event = EventService.get_event_by_slug(db, slug)
    if not event.venue:
        raise NotFoundError("Venue not found")

    return DetailedEventInfo(
        event_name=event.name,
        event_img=event.image,
        date=event.event_date,
        open_time=event.start_time,
        close_time=event.end_time,
        location=event.venue.name,
        requirements=event.requirements or []
    )

@router.get("/get-tickets-types/{slug}", response_model=List[TicketTypeListItem])
def get_ticket_types(slug: str, db: Session = Depends(get_db), codec: IdCodec = Depends(get_codec)):
    """Ticket types on sale for an event"""
    event = EventService.get_event_by_slug(db, slug)
    return [
        TicketTypeListItem(
            ticket_type_id=codec.encode(ticket_type.id),
            slug=slug,
            ticket_name=ticket_type.name,
            ticket_price=ticket_type.price,
            ticket_description=ticket_type.benefits or [],
            ticket_quantity=ticket_type.available_quantity
        )
        for ticket_type in EventService.get_ticket_types(db, event.id)
    ]

@router.get("/get-event-info/{slug}", response_model=EventInfo)
def get_event_info(slug: str, db: Session = Depends(get_db)):
    event = EventService.get_event_by_slug(db, slug)
    return EventInfo(
        event_name=event.name,
        event_img=event.image,
        date=event.event_date,
        open_time=event.start_time,
        close_time=event.end_time,
        location=event.custom_location
    )

@router.get("/get-ticket-info/{slug}/{ticketTypeId}", response_model=TicketTypeInfo)
def get_ticket_info(
    slug: str,
    ticketTypeId: str,
    db: Session = Depends(get_db),
    codec: IdCodec = Depends(get_codec)
):
    """Price and availability of one ticket type of an event"""
    ticket_type_id = codec.decode_id(ticketTypeId)
    event = EventService.get_event_by_slug(db, slug)
    ticket_type = EventService.get_ticket_type(db, event.id, ticket_type_id)

    return TicketTypeInfo(
        ticket_name=ticket_type.name,
        ticket_price=ticket_type.price,
        ticket_description=ticket_type.benefits or [],
        ticket_quantity=ticket_type.available_quantity,
        ticket_expenses=ticket_type.expenses or 0
    )

@router.get("/upcoming-events/{venue_id}", response_model=UpcomingEventsResponse)
def get_upcoming_events(venue_id: str, db: Session = Depends(get_db), codec: IdCodec = Depends(get_codec)):
    events = EventService.get_upcoming_events(db, codec, codec.decode_id(venue_id))
    return UpcomingEventsResponse(events=events, total_events=len(events))

@router.get("/get-event-details/{event_id}", response_model=EventDetailResponse)
def get_event_details(event_id: str, db: Session = Depends(get_db), codec: IdCodec = Depends(get_codec)):
    """Full event record with per ticket type sales"""
    return EventDetailResponse(event=EventService.get_event_details(db, codec, codec.decode_id(event_id)))
