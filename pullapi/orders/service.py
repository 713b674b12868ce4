import logging
import re
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from pullapi.codec import IdCodec
from pullapi.errors import NotFoundError, ValidationError
from pullapi.identity import IdentityResolver
from pullapi.identity.service import EMAIL_PATTERN, DPI_PATTERN
from pullapi.models import Event, Order
from pullapi.orders.inventory import InventoryLedger
from pullapi.orders.schemas import (
    TicketHolder, TicketReservationRequest, TicketReservationResponse,
    OrderTicketInfo, OrderTicketsResponse
)
from pullapi.tickets.pdf import render_tickets_pdf
from pullapi.tickets.service import TicketService

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"^\d{6,15}$")

ORDER_STATUS_PAID = "paid"

def parse_birthdate(value) -> Optional[date]:
    """Parse an ISO date or datetime string, None if it cannot be parsed"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).date()
    except ValueError:
        return None

def _matches(pattern: re.Pattern, value) -> bool:
    return isinstance(value, str) and pattern.match(value) is not None

def invalid_holder_fields(holder: TicketHolder, today: Optional[date] = None) -> List[str]:
    """Names of the fields of one ticket that fail validation"""
    today = today or date.today()
    invalid = []

    if not isinstance(holder.owner_name, str) or not holder.owner_name.strip():
        invalid.append("owner_name")
    if not isinstance(holder.owner_last_name, str) or not holder.owner_last_name.strip():
        invalid.append("owner_last_name")
    if not _matches(EMAIL_PATTERN, holder.owner_email):
        invalid.append("owner_email")
    if not _matches(PHONE_PATTERN, holder.owner_phone):
        invalid.append("owner_phone")
    if not _matches(DPI_PATTERN, holder.owner_dpi):
        invalid.append("owner_dpi")

    birthdate = parse_birthdate(holder.owner_birthdate)
    if birthdate is None or birthdate > today:
        invalid.append("owner_birthdate")

    return invalid

class OrderService:
    """Ticket purchase: inventory, identities, order and tickets in one transaction"""

    def __init__(self, db: Session, codec: IdCodec, dpi_salt: str):
        self.db = db
        self.codec = codec
        self.identity = IdentityResolver(db, codec, dpi_salt)
        self.inventory = InventoryLedger(db)
        self.tickets = TicketService(db, codec)

    def get_event_by_slug(self, slug: str) -> Event:
        event = self.db.query(Event).filter(Event.slug == slug).first()
        if not event:
            raise NotFoundError("Event not found for the given slug")
        return event

    def reserve_tickets(self, request: TicketReservationRequest) -> TicketReservationResponse:
        for index, holder in enumerate(request.tickets):
            invalid = invalid_holder_fields(holder)
            if invalid:
                raise ValidationError(
                    f"Ticket {index + 1} has invalid fields: {', '.join(invalid)}",
                    details={"ticket": index + 1, "fields": invalid}
                )

        ticket_type_id = self.codec.decode_id(request.ticket_type_id)
        event = self.get_event_by_slug(request.slug_id)
        quantity = len(request.tickets)

        try:
            ticket_type = self.inventory.check_and_reserve(ticket_type_id, event.id, quantity)

            holder_ids = [
                self.identity.resolve(
                    dpi=holder.owner_dpi,
                    email=holder.owner_email,
                    name=holder.owner_name.strip(),
                    surname=holder.owner_last_name.strip(),
                    birth_date=parse_birthdate(holder.owner_birthdate),
                    phone=holder.owner_phone
                )
                for holder in request.tickets
            ]

            total = ticket_type.price * quantity
            order = Order(
                event_id=event.id,
                ticket_type_id=ticket_type.id,
                user_id=holder_ids[0],
                quantity=quantity,
                total=total,
                status=ORDER_STATUS_PAID
            )
            self.db.add(order)
            self.db.flush()

            for holder_id in holder_ids:
                self.tickets.issue(order.id, event.id, ticket_type.id, holder_id)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Order %s created: %s tickets of type %s", order.id, quantity, ticket_type_id)

        return TicketReservationResponse(
            order_id=self.codec.encode(order.id),
            total=total,
            quantity=quantity
        )

    def get_order_tickets(self, encrypted_order_id: str, slug: str) -> OrderTicketsResponse:
        order_id = self.codec.decode_id(encrypted_order_id)
        event = self.get_event_by_slug(slug)

        tickets = [t for t in self.tickets.get_order_tickets(order_id) if t.event_id == event.id]
        if not tickets:
            raise NotFoundError("No tickets found for this order")

        return OrderTicketsResponse(tickets=[
            OrderTicketInfo(
                owner_full_name=f"{ticket.holder.name} {ticket.holder.surname}",
                owner_email=ticket.holder.email,
                event_name=ticket.event.name,
                event_date=ticket.event.event_date,
                start_time=ticket.event.start_time,
                qr_token=self.tickets.encoded_qr_token(ticket),
                benefits=ticket.ticket_type.benefits or []
            )
            for ticket in tickets
        ])

    def render_order_pdf(self, encrypted_order_id: str) -> bytes:
        order_id = self.codec.decode_id(encrypted_order_id)

        order = self.db.query(Order).options(
            joinedload(Order.event),
            joinedload(Order.ticket_type)
        ).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError("Order not found")

        tickets = self.tickets.get_order_tickets(order_id)
        if not tickets:
            raise NotFoundError("No tickets found for this order")

        payloads = [self.tickets.encoded_qr_token(ticket) for ticket in tickets]
        return render_tickets_pdf(order, tickets, payloads)
