# receipts.py
"""Fixed-layout PDF receipts for bookings.

Works on a booking as serialized by the API (camelCase keys, slot/level/lot
populated), so the same record can be rendered by the server or by the
dashboard client from its local list.
"""

import logging
from datetime import date, datetime

from fpdf import FPDF

from config import settings
from parking_system_operations import ParkingSystem

logger = logging.getLogger(__name__)

PLACEHOLDER = "N/A"


def _as_datetime(value):
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def format_date_ddmmyyyy(value) -> str:
    d = _as_datetime(value)
    return f"{d.day:02d}/{d.month:02d}/{d.year}"


def _lookup(record, *path):
    for key in path:
        if not isinstance(record, dict):
            return None
        record = record.get(key)
    return record


def _or_placeholder(value):
    return PLACEHOLDER if value in (None, "") else value


def receipt_filename(booking: dict) -> str:
    return f"Parking_Receipt_{str(booking['id'])[:8]}.pdf"


def receipt_lines(booking: dict, generated_on: date = None):
    """Return the receipt as (kind, text) pairs in print order."""
    generated_on = generated_on or date.today()
    slot = booking.get("parkingSlot")

    lines = [
        ("title", "PARKING BOOKING RECEIPT"),
        ("divider", ""),
        ("heading", "Booking Details"),
        ("text", f"Booking ID: {booking['id']}"),
        ("text", f"Slot Number: {_or_placeholder(_lookup(slot, 'slotNumber'))}"),
        ("text", f"Vehicle Number: {booking['vehicleNumber']}"),
        ("text", f"From Date: {format_date_ddmmyyyy(booking['fromDate'])}"),
        ("text", f"To Date: {format_date_ddmmyyyy(booking['toDate'])}"),
        ("divider", ""),
    ]

    if slot:
        lines += [
            ("heading", "Parking Slot Details"),
            ("text", f"Parking Lot: {_or_placeholder(_lookup(slot, 'parkingLevel', 'parkingLot', 'name'))}"),
            ("text", f"Parking Lot Location: {_or_placeholder(_lookup(slot, 'parkingLevel', 'parkingLot', 'address'))}"),
            ("text", f"Level: {_or_placeholder(_lookup(slot, 'parkingLevel', 'name'))}"),
        ]

    lines += [
        ("footer", "Thank you for choosing our parking service!"),
        ("footer", f"For any queries, contact: {settings.SUPPORT_EMAIL}"),
        ("footer", f"Generated on: {format_date_ddmmyyyy(generated_on)}"),
    ]
    return lines


def _latin1(text: str) -> str:
    # core PDF fonts only cover latin-1
    return text.encode("latin-1", "replace").decode("latin-1")


def render_receipt_pdf(booking: dict, generated_on: date = None, parking_system: ParkingSystem = None) -> bytes:
    parking_system = parking_system or ParkingSystem()
    pdf = FPDF(format="A4")
    pdf.add_page()

    y = 25
    for kind, text in receipt_lines(booking, generated_on):
        text = _latin1(text)
        if kind == "title":
            pdf.set_font("helvetica", "B", 22)
            pdf.set_text_color(40, 40, 40)
            pdf.set_xy(0, y - 8)
            pdf.cell(210, 10, text, align="C")
            y += 5
        elif kind == "divider":
            pdf.set_draw_color(200, 200, 200)
            pdf.set_line_width(0.5)
            pdf.line(20, y, 190, y)
            y += 15
        elif kind == "heading":
            pdf.set_font("helvetica", "B", 14)
            pdf.set_text_color(60, 60, 60)
            pdf.text(20, y, text)
            y += 10
        elif kind == "text":
            pdf.set_font("helvetica", "", 12)
            pdf.set_text_color(60, 60, 60)
            pdf.text(20, y, text)
            y += 10
        elif kind == "footer":
            if y < 180:
                y = 180
            pdf.set_font("helvetica", "", 10)
            pdf.set_text_color(100, 100, 100)
            pdf.set_xy(0, y - 4)
            pdf.cell(210, 5, text, align="C")
            y += 5

    qr = parking_system.generate_qr(booking["id"], info=f"Vehicle: {booking['vehicleNumber']}")
    pdf.image(qr, x=150, y=40, w=40)

    logger.info("Rendered receipt for booking %s", booking["id"])
    return bytes(pdf.output())
