import logging
import secrets
import time
from datetime import datetime, timezone
from typing import List

from sqlalchemy.orm import Session, joinedload

from pullapi.codec import IdCodec
from pullapi.errors import AccessDeniedError, AlreadyValidatedError, NotFoundError
from pullapi.models import Ticket
from pullapi.tickets.schemas import TicketValidationResponse

logger = logging.getLogger(__name__)

def generate_qr_token() -> str:
    """Fresh single-use ticket token.

    The 128-bit random part carries all of the unpredictability; the
    millisecond suffix only separates tokens in the unlikely event of a
    random collision.
    """
    return f"{secrets.token_hex(16)}-{int(time.time() * 1000)}"

class TicketService:
    """Issues tickets and performs one-time door validation"""

    def __init__(self, db: Session, codec: IdCodec):
        self.db = db
        self.codec = codec

    def issue(self, order_id: int, event_id: int, ticket_type_id: int, holder_id: int) -> Ticket:
        """Create one ticket for an order (flushed, not committed)"""
        ticket = Ticket(
            order_id=order_id,
            event_id=event_id,
            ticket_type_id=ticket_type_id,
            holder_id=holder_id,
            qr_token=generate_qr_token()
        )
        self.db.add(ticket)
        self.db.flush()
        return ticket

    def get_order_tickets(self, order_id: int) -> List[Ticket]:
        return self.db.query(Ticket).options(
            joinedload(Ticket.event),
            joinedload(Ticket.ticket_type),
            joinedload(Ticket.holder)
        ).filter(Ticket.order_id == order_id).order_by(Ticket.id).all()

    def encoded_qr_token(self, ticket: Ticket) -> str:
        """The only form in which a ticket token leaves the system"""
        return self.codec.encode(ticket.qr_token)

    def validate(self, encoded_token: str, venue_id: int, organization_id: int) -> TicketValidationResponse:
        """Validate a scanned ticket at the door and mark it used.

        Raises:
            MalformedTokenError: the scanned payload cannot be decoded.
            NotFoundError: no ticket carries this token.
            AccessDeniedError: the ticket's event belongs to another organization or venue.
            AlreadyValidatedError: the ticket was used before.
        """
        qr_token = self.codec.decode(encoded_token.strip())

        ticket = self.db.query(Ticket).options(
            joinedload(Ticket.event),
            joinedload(Ticket.ticket_type)
        ).filter(Ticket.qr_token == qr_token).first()

        if not ticket:
            raise NotFoundError("Invalid QR code. Ticket not found")
        if not ticket.event:
            raise NotFoundError("Event missing from ticket")
        if not ticket.ticket_type:
            raise NotFoundError("Ticket type missing from ticket")

        if ticket.event.organization_id != organization_id:
            logger.warning("Ticket %s scanned by another organization", ticket.id)
            raise AccessDeniedError("Access denied. Invalid organization")

        if ticket.event.venue_id != venue_id:
            logger.warning("Ticket %s scanned at another venue", ticket.id)
            raise AccessDeniedError("Access denied. Invalid venue")

        if ticket.validated_at is not None:
            raise AlreadyValidatedError("Ticket already validated")

        validated_at = datetime.now(timezone.utc)

        # Compare-and-swap: only one concurrent scan can win
        updated = self.db.query(Ticket).filter(
            Ticket.id == ticket.id,
            Ticket.validated_at.is_(None)
        ).update({Ticket.validated_at: validated_at}, synchronize_session=False)

        if updated == 0:
            self.db.rollback()
            raise AlreadyValidatedError("Ticket already validated")

        self.db.commit()
        logger.info("Ticket %s validated for event %s", ticket.id, ticket.event_id)

        return TicketValidationResponse(
            success=True,
            message="Ticket validated successfully",
            event_name=ticket.event.name,
            ticket_type=ticket.ticket_type.name,
            validated_at=validated_at
        )
