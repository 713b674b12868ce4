import hashlib
import logging
import re
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pullapi.codec import IdCodec
from pullapi.models import PublicUser

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DPI_PATTERN = re.compile(r"^\d{6,20}$")


def hash_dpi(dpi: str, salt: str) -> str:
    """Salted one-way hash of a national ID, used as the dedup key"""
    return hashlib.sha256(f"{dpi}{salt}".encode("utf-8")).hexdigest()


class IdentityResolver:
    """Deduplicates people by their hashed national ID (DPI)"""

    def __init__(self, db: Session, codec: IdCodec, salt: str):
        self.db = db
        self.codec = codec
        self.salt = salt

    def get_by_dpi(self, dpi: str) -> Optional[PublicUser]:
        return self._get_by_hash(hash_dpi(dpi, self.salt))

    def resolve(
        self,
        dpi: str,
        email: Optional[str],
        name: str,
        surname: str,
        birth_date: Optional[date] = None,
        phone: Optional[str] = None
    ) -> int:
        """Return the id of the person owning ``dpi``, creating the record on first sight.

        An existing record only gets its email refreshed; every other field is
        kept as first registered. Runs inside the caller's transaction and
        never commits.
        """
        dpi_hashed = hash_dpi(dpi, self.salt)

        existing = self._get_by_hash(dpi_hashed)
        if existing:
            self._refresh_email(existing, email)
            return existing.id

        user = PublicUser(
            dpi_hashed=dpi_hashed,
            dpi=self.codec.encode(dpi),
            name=name,
            surname=surname,
            email=email,
            phone=phone,
            birth_date=birth_date
        )

        # Concurrent first-time inserts race on the unique dpi_hashed index;
        # the loser falls back to the winner's row.
        try:
            with self.db.begin_nested():
                self.db.add(user)
        except IntegrityError:
            logger.info("Concurrent identity insert detected, reusing existing record")
            existing = self._get_by_hash(dpi_hashed)
            if existing is None:
                raise
            self._refresh_email(existing, email)
            return existing.id

        return user.id

    def _get_by_hash(self, dpi_hashed: str) -> Optional[PublicUser]:
        return self.db.query(PublicUser).filter(PublicUser.dpi_hashed == dpi_hashed).first()

    def _refresh_email(self, user: PublicUser, email: Optional[str]):
        if email and user.email != email:
            user.email = email
            self.db.flush()
