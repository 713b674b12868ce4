from io import BytesIO
from typing import List

import qrcode
from qrcode import constants
from PIL import Image
from reportlab.lib import colors
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from pullapi.models import Order, Ticket

PAGE_SIZE = (420, 650)
QR_SIZE = 140

def generate_qr_image(payload: str, size: int = 300) -> Image.Image:
    """Render a QR code for ``payload`` as a PIL image"""
    qr = qrcode.QRCode(
        version=1,
        error_correction=constants.ERROR_CORRECT_M,
        box_size=10,
        border=1,
    )
    qr.add_data(payload)
    qr.make(fit=True)

    qr_image = qr.make_image(fill_color="black", back_color="white").convert("RGB")
    return qr_image.resize((size, size), Image.LANCZOS)

def render_tickets_pdf(order: Order, tickets: List[Ticket], qr_payloads: List[str]) -> bytes:
    """One page per ticket, each embedding the ticket's encoded QR token"""
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=PAGE_SIZE)
    width, height = PAGE_SIZE

    event = order.event
    ticket_type_name = order.ticket_type.name if order.ticket_type else "General"

    for ticket, payload in zip(tickets, qr_payloads):
        # Background
        pdf.setFillColor(colors.Color(0.05, 0.05, 0.15))
        pdf.rect(0, 0, width, height, stroke=0, fill=1)

        # Header
        pdf.setFillColor(colors.white)
        pdf.setFont("Helvetica-Bold", 16)
        pdf.drawString(30, height - 75, "Pull")
        pdf.setFillColor(colors.Color(0.7, 0.7, 0.7))
        pdf.setFont("Helvetica", 10)
        pdf.drawString(30, height - 95, "Events management")
        pdf.rect(30, height - 115, width - 60, 2, stroke=0, fill=1)

        # Event
        pdf.setFillColor(colors.white)
        pdf.setFont("Helvetica-Bold", 18)
        pdf.drawString(30, height - 160, event.name.upper())
        pdf.setFont("Helvetica", 12)
        pdf.setFillColor(colors.Color(0.9, 0.9, 0.9))
        pdf.drawString(30, height - 185, event.event_date.strftime("%A %d %B %Y"))
        if event.start_time:
            pdf.drawString(30, height - 205, event.start_time.strftime("%H:%M"))
        pdf.drawString(30, height - 225, ticket_type_name)

        # QR code
        qr_x = (width - QR_SIZE) / 2
        qr_y = 280
        pdf.setFillColor(colors.white)
        pdf.rect(qr_x - 10, qr_y - 10, QR_SIZE + 20, QR_SIZE + 20, stroke=0, fill=1)
        pdf.drawImage(ImageReader(generate_qr_image(payload)), qr_x, qr_y, QR_SIZE, QR_SIZE)
        pdf.setFillColor(colors.Color(0.8, 0.8, 0.8))
        pdf.setFont("Helvetica-Bold", 10)
        pdf.drawCentredString(width / 2, qr_y - 30, "SCAN TO ENTER")

        # Holder
        holder = ticket.holder
        pdf.setFillColor(colors.white)
        pdf.setFont("Helvetica-Bold", 14)
        pdf.drawString(30, 180, f"{holder.name} {holder.surname}")
        pdf.setFont("Helvetica", 9)
        pdf.setFillColor(colors.Color(0.8, 0.8, 0.8))
        if holder.email:
            pdf.drawString(30, 162, holder.email)

        # Terms
        pdf.setFont("Helvetica", 8)
        pdf.setFillColor(colors.Color(0.7, 0.7, 0.7))
        pdf.drawString(30, 90, "Present your ID together with this ticket")
        pdf.drawString(30, 75, "Non transferable. Valid only for the date shown")

        pdf.showPage()

    pdf.save()
    return buffer.getvalue()
