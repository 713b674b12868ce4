from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from pullapi.codec import IdCodec
from pullapi.errors import NotFoundError
from pullapi.models import Event, Ticket, TicketType

UPCOMING_EVENTS_LIMIT = 5

class EventService:
    """Public event catalog and staff event dashboards"""

    @staticmethod
    def list_item(event: Event, codec: IdCodec) -> dict:
        return {
            "event_id": codec.encode(event.id),
            "event_slug": event.slug,
            "event_img": event.image,
            "event_name": event.name,
            "venue_name": event.venue.name if event.venue else None,
            "start_time": event.start_time,
            "end_time": event.end_time,
            "event_date": event.event_date,
            "custom_location": event.custom_location,
            "requirements": event.requirements or []
        }

    @staticmethod
    def get_all_events(db: Session, codec: IdCodec) -> List[dict]:
        events = db.query(Event).options(joinedload(Event.venue)).order_by(Event.event_date.asc()).all()
        return [EventService.list_item(event, codec) for event in events]

    @staticmethod
    def get_venue_events(db: Session, codec: IdCodec, venue_id: int, take: int = 10) -> List[dict]:
        """Most recent events of a venue first"""
        events = db.query(Event).options(joinedload(Event.venue)).filter(
            Event.venue_id == venue_id
        ).order_by(Event.event_date.desc()).limit(take).all()
        return [EventService.list_item(event, codec) for event in events]

    @staticmethod
    def get_event_by_slug(db: Session, slug: str) -> Event:
        event = db.query(Event).options(joinedload(Event.venue)).filter(Event.slug == slug).first()
        if not event:
            raise NotFoundError("Event not found")
        return event

    @staticmethod
    def get_ticket_types(db: Session, event_id: int) -> List[TicketType]:
        return db.query(TicketType).filter(TicketType.event_id == event_id).order_by(TicketType.id).all()

    @staticmethod
    def get_ticket_type(db: Session, event_id: int, ticket_type_id: int) -> TicketType:
        """A ticket type, only when it belongs to the given event"""
        ticket_type = db.query(TicketType).filter(
            TicketType.id == ticket_type_id,
            TicketType.event_id == event_id
        ).first()
        if not ticket_type:
            raise NotFoundError("Ticket type not found for this event")
        return ticket_type

    @staticmethod
    def tickets_sold_by_type(db: Session, event_id: int) -> Dict[int, int]:
        rows = db.query(Ticket.ticket_type_id, func.count(Ticket.id)).filter(
            Ticket.event_id == event_id
        ).group_by(Ticket.ticket_type_id).all()
        return {ticket_type_id: count for ticket_type_id, count in rows}

    @staticmethod
    def get_upcoming_events(db: Session, codec: IdCodec, venue_id: int, today: Optional[date] = None) -> List[dict]:
        """Next events of a venue with sold/available counts against the event ticket limit"""
        today = today or date.today()
        events = db.query(Event).filter(
            Event.venue_id == venue_id,
            Event.event_date >= today
        ).order_by(Event.event_date.asc(), Event.start_time.asc()).limit(UPCOMING_EVENTS_LIMIT).all()

        sold_counts = {}
        if events:
            rows = db.query(Ticket.event_id, func.count(Ticket.id)).filter(
                Ticket.event_id.in_([event.id for event in events])
            ).group_by(Ticket.event_id).all()
            sold_counts = {event_id: count for event_id, count in rows}

        upcoming = []
        for event in events:
            sold = sold_counts.get(event.id, 0)
            upcoming.append({
                "id": codec.encode(event.id),
                "name": event.name,
                "image": event.image,
                "event_date": event.event_date,
                "start_time": event.start_time,
                "end_time": event.end_time,
                "ticket_limit": event.ticket_limit,
                "tickets_sold": sold,
                "tickets_available": event.ticket_limit - sold if event.ticket_limit else None
            })
        return upcoming

    @staticmethod
    def get_event_details(db: Session, codec: IdCodec, event_id: int) -> dict:
        event = db.query(Event).options(joinedload(Event.ticket_types)).filter(Event.id == event_id).first()
        if not event:
            raise NotFoundError("Event not found")

        sold_by_type = EventService.tickets_sold_by_type(db, event.id)
        ticket_types = [
            {
                "id": codec.encode(ticket_type.id),
                "name": ticket_type.name,
                "price": ticket_type.price,
                "description": ticket_type.benefits or f"{ticket_type.name} ticket",
                "max": ticket_type.initial_quantity,
                "commission": ticket_type.expenses or 0,
                "sold": sold_by_type.get(ticket_type.id, 0),
                "available": ticket_type.available_quantity
            }
            for ticket_type in sorted(event.ticket_types, key=lambda t: t.id)
        ]

        return {
            "id": codec.encode(event.id),
            "name": event.name,
            "description": event.description,
            "poster": event.image,
            "date": event.event_date,
            "startTime": event.start_time,
            "endTime": event.end_time,
            "accessType": event.access_type or "public",
            "minAge": event.min_age,
            "maxTickets": event.ticket_limit,
            "ticketsSold": sum(sold_by_type.values()),
            "dressCode": event.dress_code,
            "customLocation": event.custom_location,
            "requirements": event.requirements,
            "ticketTypes": ticket_types
        }
