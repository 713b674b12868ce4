"""
Ticket issuance and door validation.

- service.py: ticket creation with single-use QR tokens, one-time validation
- pdf.py: printable ticket documents with embedded QR codes
- router.py: validation endpoint used by venue scanners
"""

from .service import TicketService, generate_qr_token

__all__ = ["TicketService", "generate_qr_token"]
