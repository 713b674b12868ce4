from pydantic import BaseModel, Field
from datetime import datetime

class TicketValidationRequest(BaseModel):
    """Payload sent by the door scanner"""
    qr_token: str = Field(..., min_length=1)
    venue_id: str = Field(..., min_length=1)
    organization_id: str = Field(..., min_length=1)

class TicketValidationResponse(BaseModel):
    success: bool
    message: str
    event_name: str
    ticket_type: str
    validated_at: datetime
