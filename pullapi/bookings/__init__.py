"""
Venue reservations.

- statuses.py: status tables and lifecycle rules
- service.py: reservation requests, staff status changes, guest modification workflow
- router.py: /bookings endpoints
"""

from .service import BookingService
from .statuses import ReservationState, GuestState, StatusTable

__all__ = ["BookingService", "ReservationState", "GuestState", "StatusTable"]
