from fastapi import APIRouter, Depends, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from pullapi.database import get_db
from pullapi.auth.dependencies import get_codec
from pullapi.codec import IdCodec
from pullapi.config import settings
from pullapi.orders.schemas import TicketReservationRequest, TicketReservationResponse, OrderTicketsResponse
from pullapi.orders.service import OrderService

router = APIRouter()

def get_order_service(db: Session = Depends(get_db), codec: IdCodec = Depends(get_codec)) -> OrderService:
    return OrderService(db, codec, settings.DPI_SALT)

@router.post("/reserve", response_model=TicketReservationResponse, status_code=status.HTTP_201_CREATED)
def reserve_tickets(
    request: TicketReservationRequest,
    order_service: OrderService = Depends(get_order_service)
):
    """Buy N tickets of one ticket type for an event"""
    return order_service.reserve_tickets(request)

@router.get("/{encryptedOrderId}/pdf")
def get_tickets_pdf(
    encryptedOrderId: str,
    order_service: OrderService = Depends(get_order_service)
):
    """Printable tickets, one page per ticket"""
    content = order_service.render_order_pdf(encryptedOrderId)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": 'attachment; filename="tickets.pdf"'}
    )

@router.get("/{encryptedOrderId}/{slugId}", response_model=OrderTicketsResponse)
def get_order_tickets(
    encryptedOrderId: str,
    slugId: str,
    order_service: OrderService = Depends(get_order_service)
):
    """Ticket holders and event details for an order"""
    return order_service.get_order_tickets(encryptedOrderId, slugId)
