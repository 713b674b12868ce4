from sqlalchemy.orm import Session
from typing import List

from pullapi.errors import NotFoundError
from pullapi.models import Venue

class VenueService:
    @staticmethod
    def get_venues(db: Session) -> List[Venue]:
        return db.query(Venue).order_by(Venue.name).all()

    @staticmethod
    def get_venue_by_slug(db: Session, slug: str) -> Venue:
        venue = db.query(Venue).filter(Venue.slug == slug).first()
        if not venue:
            raise NotFoundError("Venue not found")
        return venue

    @staticmethod
    def get_venue(db: Session, venue_id: int) -> Venue:
        venue = db.query(Venue).filter(Venue.id == venue_id).first()
        if not venue:
            raise NotFoundError("Venue not found")
        return venue
