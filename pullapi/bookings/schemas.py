from pydantic import BaseModel, Field, validator
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum

class GuestChangeAction(str, Enum):
    ADD = "add"
    DELETE = "delete"

class ModificationAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"

# Staff requests
class StaffContext(BaseModel):
    """Opaque venue/organization/employee IDs sent with every staff action"""
    venue_id: str = Field(..., min_length=1)
    organization_id: str = Field(..., min_length=1)
    employee_id: str = Field(..., min_length=1)

class StatusUpdateRequest(StaffContext):
    status: str = Field(..., min_length=1)

class ProcessModificationsRequest(StaffContext):
    action: ModificationAction

# Owner requests
class OwnerAuthRequest(BaseModel):
    dpi: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

class GuestChange(BaseModel):
    action: GuestChangeAction
    guestId: Optional[str] = None
    guestName: Optional[str] = None

class ModifyGuestsRequest(BaseModel):
    guestChanges: List[GuestChange]

    @validator('guestChanges')
    def validate_changes(cls, v):
        if not v:
            raise ValueError('At least one guest change is required')
        return v

# Responses
class BookingListItem(BaseModel):
    id: str
    customerName: str
    email: Optional[str] = None
    guests: int
    totalAmount: Decimal
    status: Optional[str] = None
    type: Optional[str] = None
    date: str
    startDateTime: datetime
    endDateTime: datetime
    createdAt: Optional[datetime] = None

class Pagination(BaseModel):
    currentPage: int
    totalPages: int
    totalCount: int
    hasMore: bool
    limit: int

class BookingListResponse(BaseModel):
    success: bool = True
    bookings: List[BookingListItem]
    pagination: Pagination

class BookingSummary(BookingListItem):
    phone: Optional[str] = None
    time: str
    endTime: str

class ModificationCounts(BaseModel):
    guestsToRemove: int
    guestsToAdd: int
    hasModifications: bool

class BookingSummaryResponse(BaseModel):
    success: bool = True
    booking: BookingSummary
    modifications: Optional[ModificationCounts] = None

class StatusUpdateResponse(BaseModel):
    success: bool = True
    message: str
    status: str
    managementPassword: Optional[str] = None

class ModificationResult(BaseModel):
    updatedGuests: int
    previousGuests: int

class ProcessModificationsResponse(BaseModel):
    success: bool = True
    message: str
    data: ModificationResult

class GuestInfo(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    paidAt: Optional[datetime] = None
    status: str
    isRegisteredUser: bool
    isCreator: bool

class PaymentSummary(BaseModel):
    totalPaid: Decimal
    totalPending: Decimal
    totalAmount: Decimal
    paymentProgress: int

class BookingDetails(BaseModel):
    id: str
    venueId: str
    venueName: str
    venueAddress: str
    customerName: str
    email: Optional[str] = None
    guests: int
    totalAmount: Decimal
    status: Optional[str] = None
    type: str
    startDate: datetime
    endDate: datetime
    createdAt: Optional[datetime] = None
    assistants: List[GuestInfo]
    paymentSummary: PaymentSummary

class BookingDetailsResponse(BaseModel):
    success: bool = True
    booking: BookingDetails

class OwnerInfo(BaseModel):
    name: str
    email: Optional[str] = None

class OwnerAuthResponse(BaseModel):
    success: bool = True
    message: str = "Authentication successful"
    token: str
    user: OwnerInfo

class GuestChangesResponse(BaseModel):
    success: bool = True
    message: str = "Guest changes submitted for approval"
    guestsToRemove: int
    guestsToAdd: int
    status: str

# Reservation requests
class ReservationUser(BaseModel):
    name: str = Field(..., min_length=1)
    surname: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    dpi: str = Field(..., min_length=1)
    birth_date: Optional[str] = None

class ReservationSlot(BaseModel):
    venueId: str = Field(..., min_length=1, description="Venue slug")
    date: str
    startTime: str
    endTime: str
    guests: Optional[int] = None
    paymentTerm: Optional[int] = None
    table: bool = False
    totalAmount: Decimal = Decimal("0")

    @validator('totalAmount')
    def validate_total(cls, v):
        if v < 0:
            raise ValueError('Total amount cannot be negative')
        return v
