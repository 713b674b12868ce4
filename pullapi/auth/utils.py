from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from pullapi.config import Settings
from pullapi.errors import AuthError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

RESERVATION_ADMIN_ROLE = "reservation_admin"

def get_password_hash(password: str) -> str:
    """Hash a password for storage"""
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its stored hash"""
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Stored value is not a recognised hash
        return False

class TokenService:
    """Issues and verifies signed, expiring access tokens"""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 60, issuer: str = "pull-api"):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes
        self.issuer = issuer

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret_key=settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
            expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
            issuer=settings.TOKEN_ISSUER
        )

    def create_access_token(self, data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        to_encode = data.copy()
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=self.expire_minutes))
        to_encode.update({"exp": expire, "iat": now, "iss": self.issuer})
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Dict[str, Any]:
        """Return the token payload, or raise AuthError if invalid or expired"""
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer
            )
        except jwt.PyJWTError:
            raise AuthError("Invalid or expired token")

    def decode_for_refresh(self, token: str) -> Dict[str, Any]:
        """Payload of a correctly signed token, even if it already expired"""
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"verify_exp": False}
            )
        except jwt.PyJWTError:
            raise AuthError("Unable to refresh token")

    def reissue(self, payload: Dict[str, Any]) -> str:
        """Sign the claims of ``payload`` again with a fresh expiry"""
        claims = {key: value for key, value in payload.items() if key not in ("exp", "iat", "iss")}
        return self.create_access_token(claims)
