import logging
from typing import Optional

from fastapi import Depends, Path, Request
from fastapi.security import OAuth2PasswordBearer
from pydantic import ValidationError as ClaimsValidationError
from sqlalchemy.orm import Session

from pullapi.auth.schemas import StaffClaims, ReservationOwnerClaims
from pullapi.auth.service import StaffAuthService
from pullapi.auth.utils import TokenService, RESERVATION_ADMIN_ROLE
from pullapi.codec import IdCodec
from pullapi.config import settings
from pullapi.database import get_db
from pullapi.errors import AuthError, InvalidRoleError, BookingMismatchError

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login-workers",
    auto_error=False
)

def get_codec(request: Request) -> IdCodec:
    """Codec built once at startup"""
    return request.app.state.codec

def get_token_service(request: Request) -> TokenService:
    """Token service built once at startup"""
    return request.app.state.tokens

def _require_token(token: Optional[str]) -> str:
    if not token:
        raise AuthError("Access token required")
    return token

def get_current_staff(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
    codec: IdCodec = Depends(get_codec),
    tokens: TokenService = Depends(get_token_service)
) -> StaffClaims:
    """Verify a staff session token against an active worker and return its claims"""
    payload = tokens.verify_token(_require_token(token))

    if payload.get("role") == RESERVATION_ADMIN_ROLE:
        raise InvalidRoleError("Reservation tokens cannot be used for staff operations")

    try:
        claims = StaffClaims(**payload)
    except ClaimsValidationError:
        raise AuthError("Invalid or expired token")

    StaffAuthService(db, codec, tokens).ensure_active(claims)
    return claims

def get_reservation_owner(
    token: Optional[str] = Depends(oauth2_scheme),
    tokens: TokenService = Depends(get_token_service)
) -> ReservationOwnerClaims:
    """Verify a reservation-owner token (role ``reservation_admin``)"""
    payload = tokens.verify_token(_require_token(token))

    if payload.get("role") != RESERVATION_ADMIN_ROLE:
        raise InvalidRoleError("Invalid token role for reservation management")

    try:
        return ReservationOwnerClaims(**payload)
    except ClaimsValidationError:
        raise AuthError("Invalid or expired token")

def validate_booking_access(
    bookingId: str = Path(..., description="Opaque booking ID"),
    owner: ReservationOwnerClaims = Depends(get_reservation_owner),
    codec: IdCodec = Depends(get_codec)
) -> int:
    """Return the real booking ID after checking it is the one the token is bound to"""
    booking_id = codec.decode_id(bookingId)

    if owner.booking_id != booking_id:
        logger.warning("Reservation token bound to another booking was rejected")
        raise BookingMismatchError()

    return booking_id
