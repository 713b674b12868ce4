"""
Ticket orders.

- inventory.py: per ticket-type availability with atomic decrement
- service.py: purchase flow (validation, identity, order, tickets) and order lookups
- router.py: /orders endpoints
"""

from .inventory import InventoryLedger
from .service import OrderService

__all__ = ["InventoryLedger", "OrderService"]
