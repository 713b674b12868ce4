import logging

from sqlalchemy.orm import Session

from pullapi.errors import InsufficientInventoryError, NotFoundError, ValidationError
from pullapi.models import TicketType

logger = logging.getLogger(__name__)

class InventoryLedger:
    """Per ticket-type availability with atomic decrement"""

    def __init__(self, db: Session):
        self.db = db

    def check_and_reserve(self, ticket_type_id: int, event_id: int, quantity: int) -> TicketType:
        """Take ``quantity`` units of a ticket type inside the caller's transaction.

        The decrement is a single conditional UPDATE, so two concurrent
        purchases can never push availability below zero: the second one
        either waits on the row lock and re-checks the condition, or matches
        nothing. The ticket type must belong to ``event_id``.

        Raises:
            ValidationError: quantity is not positive.
            NotFoundError: no such ticket type for this event.
            InsufficientInventoryError: not enough units left.
        """
        if quantity < 1:
            raise ValidationError("At least one ticket is required")

        updated = self.db.query(TicketType).filter(
            TicketType.id == ticket_type_id,
            TicketType.event_id == event_id,
            TicketType.available_quantity >= quantity
        ).update(
            {TicketType.available_quantity: TicketType.available_quantity - quantity},
            synchronize_session=False
        )

        ticket_type = self.db.query(TicketType).populate_existing().filter(
            TicketType.id == ticket_type_id,
            TicketType.event_id == event_id
        ).first()

        if ticket_type is None:
            raise NotFoundError("Ticket type not found")

        if updated == 0:
            logger.info(
                "Rejected purchase of %s units of ticket type %s (%s left)",
                quantity, ticket_type_id, ticket_type.available_quantity
            )
            raise InsufficientInventoryError("Not enough tickets available")

        return ticket_type

    def get_available(self, ticket_type_id: int, event_id: int) -> int:
        ticket_type = self.db.query(TicketType).filter(
            TicketType.id == ticket_type_id,
            TicketType.event_id == event_id
        ).first()
        if ticket_type is None:
            raise NotFoundError("Ticket type not found")
        return ticket_type.available_quantity
