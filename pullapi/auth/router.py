from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pullapi.database import get_db
from pullapi.auth.schemas import LoginRequest, LoginResponse, RefreshRequest, RefreshResponse, VerifyResponse, StaffClaims
from pullapi.auth.service import StaffAuthService
from pullapi.auth.utils import TokenService
from pullapi.auth.dependencies import get_codec, get_token_service, get_current_staff
from pullapi.codec import IdCodec

router = APIRouter()

@router.post("/login-workers", response_model=LoginResponse)
def login_workers(
    login_data: LoginRequest,
    db: Session = Depends(get_db),
    codec: IdCodec = Depends(get_codec),
    tokens: TokenService = Depends(get_token_service)
):
    """Staff login, returns a session token"""
    service = StaffAuthService(db, codec, tokens)
    return service.login(login_data.email, login_data.password)

@router.post("/refresh-token", response_model=RefreshResponse)
def refresh_token(
    request: RefreshRequest,
    db: Session = Depends(get_db),
    codec: IdCodec = Depends(get_codec),
    tokens: TokenService = Depends(get_token_service)
):
    """Re-issue a token with a fresh expiry"""
    service = StaffAuthService(db, codec, tokens)
    return RefreshResponse(token=service.refresh(request.token))

@router.get("/verify-token", response_model=VerifyResponse)
def verify_token(
    staff: StaffClaims = Depends(get_current_staff),
    db: Session = Depends(get_db),
    codec: IdCodec = Depends(get_codec),
    tokens: TokenService = Depends(get_token_service)
):
    """Check a staff token and echo the identity it carries"""
    service = StaffAuthService(db, codec, tokens)
    return VerifyResponse(valid=True, user=service.profile(staff))
