from pydantic import BaseModel, EmailStr
from typing import Optional

# Staff login
class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class WorkerProfile(BaseModel):
    """Staff identity as exposed to clients (opaque IDs)"""
    id: str
    name: str
    email: str
    role: Optional[str] = None
    organization_id: str
    venue_id: str

class LoginResponse(BaseModel):
    user: WorkerProfile
    token: str
    message: str = "Login successful"

class RefreshRequest(BaseModel):
    token: str

class RefreshResponse(BaseModel):
    token: str
    message: str = "Token refreshed successfully"

class VerifyResponse(BaseModel):
    valid: bool
    user: WorkerProfile

# Decoded token claims
class StaffClaims(BaseModel):
    employee_id: int
    organization_id: int
    venue_id: int
    role: Optional[str] = None
    email: str
    name: str

class ReservationOwnerClaims(BaseModel):
    booking_id: int
    user_id: int
    role: str
    dpi_hash: str
