from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pullapi.database import get_db
from pullapi.auth.dependencies import get_codec, get_current_staff
from pullapi.auth.schemas import StaffClaims
from pullapi.codec import IdCodec
from pullapi.errors import AccessDeniedError
from pullapi.tickets.schemas import TicketValidationRequest, TicketValidationResponse
from pullapi.tickets.service import TicketService

router = APIRouter()

@router.post("/validate-ticket", response_model=TicketValidationResponse)
def validate_ticket(
    request: TicketValidationRequest,
    staff: StaffClaims = Depends(get_current_staff),
    db: Session = Depends(get_db),
    codec: IdCodec = Depends(get_codec)
):
    """Validate a scanned QR code at the door (single use)"""
    venue_id = codec.decode_id(request.venue_id)
    organization_id = codec.decode_id(request.organization_id)

    if venue_id != staff.venue_id or organization_id != staff.organization_id:
        raise AccessDeniedError("Access denied. Scanner does not belong to this venue")

    ticket_service = TicketService(db, codec)
    return ticket_service.validate(request.qr_token, venue_id, organization_id)
