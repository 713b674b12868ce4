import logging
from typing import Optional

from pydantic import ValidationError as ClaimsValidationError
from sqlalchemy.orm import Session, joinedload

from pullapi.auth.schemas import StaffClaims, WorkerProfile, LoginResponse
from pullapi.auth.utils import TokenService, RESERVATION_ADMIN_ROLE, verify_password
from pullapi.codec import IdCodec
from pullapi.errors import AuthError
from pullapi.models import OrganizationWorker

logger = logging.getLogger(__name__)

class StaffAuthService:
    """Authentication of venue staff (organization workers)"""

    def __init__(self, db: Session, codec: IdCodec, tokens: TokenService):
        self.db = db
        self.codec = codec
        self.tokens = tokens

    def _active_workers(self):
        return self.db.query(OrganizationWorker).options(
            joinedload(OrganizationWorker.role)
        ).filter(OrganizationWorker.deleted_at.is_(None))

    def get_worker_by_email(self, email: str) -> Optional[OrganizationWorker]:
        """Get an active worker by email"""
        return self._active_workers().filter(
            OrganizationWorker.email == email.strip().lower()
        ).first()

    def get_worker_by_id(self, employee_id: int) -> Optional[OrganizationWorker]:
        """Get an active worker by id"""
        return self._active_workers().filter(OrganizationWorker.id == employee_id).first()

    def ensure_active(self, claims: StaffClaims) -> OrganizationWorker:
        """The worker behind a staff token must still exist and hold the same post"""
        worker = self.get_worker_by_id(claims.employee_id)
        if (
            worker is None
            or worker.organization_id != claims.organization_id
            or worker.venue_id != claims.venue_id
        ):
            logger.warning("Staff token of inactive worker %s was rejected", claims.employee_id)
            raise AuthError("Invalid or expired token")
        return worker

    def refresh(self, token: str) -> str:
        """Re-issue a token; staff tokens only while the worker is still active"""
        payload = self.tokens.decode_for_refresh(token)

        if payload.get("role") != RESERVATION_ADMIN_ROLE:
            try:
                claims = StaffClaims(**payload)
            except ClaimsValidationError:
                raise AuthError("Unable to refresh token")
            self.ensure_active(claims)

        return self.tokens.reissue(payload)

    def login(self, email: str, password: str) -> LoginResponse:
        worker = self.get_worker_by_email(email)

        # Same message for unknown email and wrong password
        if not worker or not verify_password(password, worker.password_hash):
            logger.warning("Rejected staff login attempt")
            raise AuthError("Invalid email or password. Please check your credentials")

        claims = StaffClaims(
            employee_id=worker.id,
            organization_id=worker.organization_id,
            venue_id=worker.venue_id,
            role=worker.role.type if worker.role else None,
            email=worker.email,
            name=f"{worker.first_name} {worker.last_name}"
        )
        token = self.tokens.create_access_token(claims.model_dump())

        logger.info("Staff member %s logged in", worker.id)
        return LoginResponse(user=self.profile(claims), token=token)

    def profile(self, claims: StaffClaims) -> WorkerProfile:
        return WorkerProfile(
            id=self.codec.encode(claims.employee_id),
            name=claims.name,
            email=claims.email,
            role=claims.role,
            organization_id=self.codec.encode(claims.organization_id),
            venue_id=self.codec.encode(claims.venue_id)
        )
